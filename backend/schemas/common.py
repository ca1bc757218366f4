import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Every successful response: {"message": ..., "data": ...}
class Envelope(BaseModel, Generic[T]):
    message: str
    data: Optional[T] = None


# Error body produced by utils/errors.py handlers
class ErrorResponse(BaseModel):
    message: str
    errors: Optional[List[str]] = None


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_previous_page: bool
    has_next_page: bool


def make_page(items, total: int, page: int, page_size: int) -> dict:
    total_pages = math.ceil(total / page_size) if page_size else 0
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_previous_page": page > 1,
        "has_next_page": page < total_pages,
    }


def ok(message: str, data=None) -> dict:
    return {"message": message, "data": data}
