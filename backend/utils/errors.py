# backend/utils/errors.py
# Services raise ShopError subclasses; the handlers registered by
# register_exception_handlers render them as {message, errors} with the
# matching status code. Anything else becomes a logged 500.
import logging
import traceback
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from config import settings

logger = logging.getLogger(__name__)


class ShopError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(ShopError):
    default_message = "Invalid request data"


class NotFound(ShopError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Unauthorized(ShopError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ShopError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotEligible(Forbidden):
    default_message = "You can only review products you have purchased"


class Conflict(ShopError):
    default_message = "Resource already exists"


class InvalidTransition(ShopError):
    default_message = "Status change not allowed"


class InsufficientStock(ShopError):
    def __init__(self, product_name: str, available: int):
        self.product_name = product_name
        self.available = available
        super().__init__(
            f"Insufficient stock for product '{product_name}'. Only {available} items available"
        )


def _envelope(message: str, errors=None, **extra) -> dict:
    body = {"message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return body


async def shop_error_handler(request: Request, exc: ShopError):
    return JSONResponse(status_code=exc.status_code, content=_envelope(exc.message, exc.errors))


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope("Invalid request data", errors),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    extra = {}
    if settings.ENVIRONMENT.lower() != "production":
        extra = {"detail": str(exc), "trace": traceback.format_exception(type(exc), exc, exc.__traceback__)}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope("Internal server error", **extra),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
