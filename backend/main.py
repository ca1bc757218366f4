# backend/main.py
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from config import settings
from database import init_db
from schemas.common import ErrorResponse
from utils.errors import register_exception_handlers

from routes.auth import router as auth_router
from routes.logs import router as logs_router
from routes.cart import router as cart_router
from routes.orders import router as orders_router
from routes.products import router as products_router
from routes.categories import router as categories_router
from routes.reviews import router as reviews_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Storefront API started (%s)", settings.ENVIRONMENT)
    yield


# Every error leaves the app in the {message, errors} shape
ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 500)}

app = FastAPI(title="Storefront API", version="1.0.0", lifespan=lifespan, responses=ERROR_RESPONSES)

# Local dev frontends plus the deployed one from FRONTEND_URL
origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(products_router)
app.include_router(categories_router)
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(reviews_router)
app.include_router(logs_router)


@app.get("/")
def read_root():
    return {"message": "Storefront API is running"}
