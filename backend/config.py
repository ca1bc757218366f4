# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./database_storefront.db"

    FRONTEND_URL: str = "http://localhost:3000"

    # "production" hides exception details in 500 responses
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Checkout pricing
    TAX_RATE: float = 0.20
    SHIPPING_FLAT_FEE: float = 10.00

    # Reviews require a delivered order containing the product
    REQUIRE_VERIFIED_PURCHASE: bool = True

    RELATED_PRODUCTS_LIMIT: int = 4

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
