# backend/routes/products.py
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import Envelope, Page, make_page, ok
from schemas.product import ProductCreate, ProductDetailOut, ProductOut, ProductUpdate
from services import catalog
from utils.audit import write_log
from utils.tokenJWT import role_required

router = APIRouter(prefix="/products", tags=["Products"])

SortKey = Literal["created_at", "name", "price", "stock_quantity"]
SortOrder = Literal["asc", "desc"]


# ---- STOREFRONT ----

@router.get("", response_model=Envelope[Page[ProductOut]])
def list_products(
    category_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Name, description or category name"),
    is_featured: Optional[bool] = Query(None),
    on_sale: Optional[bool] = Query(None),
    sort_by: SortKey = Query("created_at"),
    sort_order: SortOrder = Query("desc"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    filters = catalog.ProductFilters(
        category_id=category_id, search=search, is_featured=is_featured, on_sale=on_sale
    )
    rows, total = catalog.list_products(
        db, filters=filters, sort_by=sort_by, sort_order=sort_order, page=page, page_size=page_size
    )
    items = [catalog.product_to_out(p) for p in rows]
    return ok("Products retrieved successfully", make_page(items, total, page, page_size))


@router.get("/{product_id}", response_model=Envelope[ProductDetailOut])
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = catalog.get_product(db, product_id)
    return ok("Product retrieved successfully", catalog.product_to_out(product, with_reviews=True))


@router.get("/{product_id}/related", response_model=Envelope[List[ProductOut]])
def related_products(
    product_id: int,
    limit: int = Query(4, ge=1, le=20),
    db: Session = Depends(get_db),
):
    rows = catalog.related_products(db, product_id, limit=limit)
    return ok("Related products retrieved successfully", [catalog.product_to_out(p) for p in rows])


# ---- ADMIN ----

@router.post("", response_model=Envelope[ProductOut], status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    product = catalog.create_product(db, payload=payload)
    write_log(db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
              entity_id=product.id, request=request, meta={"name": product.name})
    return ok("Product created successfully", catalog.product_to_out(product))


@router.put("/{product_id}", response_model=Envelope[ProductOut])
def update_product(
    product_id: int,
    payload: ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    product = catalog.update_product(db, product_id=product_id, payload=payload)
    write_log(db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products",
              entity_id=product.id, request=request, meta=payload.model_dump(mode="json"))
    return ok("Product updated successfully", catalog.product_to_out(product))


# Soft delete: the product is retired so past orders keep their reference
@router.delete("/{product_id}", response_model=Envelope[None])
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    product = catalog.retire_product(db, product_id=product_id)
    write_log(db, user_id=current_user.id, action="PRODUCT_RETIRE", resource="products",
              entity_id=product.id, request=request)
    return ok("Product deleted successfully")
