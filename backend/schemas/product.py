# backend/schemas/product.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from models.category import CatalogStatus
from schemas.common import ORMBase


# ---- Categories ----

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = None


class CategoryUpdate(CategoryCreate):
    status: CatalogStatus = CatalogStatus.ACTIVE


class CategoryOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    status: CatalogStatus
    created_at: Optional[datetime] = None
    product_count: int = 0


# Compact category shown inside product payloads
class CategorySummary(ORMBase):
    id: int
    name: str


# ---- Reviews embedded in product detail ----

class ProductReviewBrief(ORMBase):
    id: int
    user_id: int
    user_name: str
    rating: int
    comment: str
    created_at: Optional[datetime] = None


# ---- Products ----

# Shared writable attributes for admin create/update
class ProductBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    price: float = Field(gt=0, le=999999.99)
    sale_price: Optional[float] = Field(default=None, gt=0, le=999999.99)
    stock_quantity: int = Field(ge=0)
    image_url: Optional[str] = None
    is_featured: bool = False
    category_id: int


class ProductCreate(ProductBase):
    pass


# Full replacement (PUT); status lets an admin re-activate a retired product
class ProductUpdate(ProductBase):
    status: CatalogStatus = CatalogStatus.ACTIVE


class ProductOut(ORMBase):
    id: int
    name: str
    description: str
    price: float
    sale_price: Optional[float] = None
    effective_price: float
    stock_quantity: int
    in_stock: bool
    image_url: Optional[str] = None
    status: CatalogStatus
    is_featured: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    category: CategorySummary
    average_rating: float = 0.0
    review_count: int = 0


class ProductDetailOut(ProductOut):
    reviews: List[ProductReviewBrief] = []
