# backend/routes/categories.py
from typing import List, Literal

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import Envelope, Page, make_page, ok
from schemas.product import CategoryCreate, CategoryOut, CategoryUpdate, ProductOut
from services import catalog
from utils.audit import write_log
from utils.tokenJWT import role_required

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=Envelope[List[CategoryOut]])
def list_categories(db: Session = Depends(get_db)):
    return ok("Categories retrieved successfully", catalog.list_categories(db))


@router.get("/{category_id}", response_model=Envelope[CategoryOut])
def get_category(category_id: int, db: Session = Depends(get_db)):
    return ok("Category retrieved successfully", catalog.category_detail(db, category_id))


@router.get("/{category_id}/products", response_model=Envelope[Page[ProductOut]])
def category_products(
    category_id: int,
    sort_by: Literal["created_at", "name", "price", "stock_quantity"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = catalog.category_products(
        db, category_id=category_id, sort_by=sort_by, sort_order=sort_order,
        page=page, page_size=page_size,
    )
    items = [catalog.product_to_out(p) for p in rows]
    return ok("Category products retrieved successfully", make_page(items, total, page, page_size))


@router.post("", response_model=Envelope[CategoryOut], status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    category = catalog.create_category(db, payload=payload)
    write_log(db, user_id=current_user.id, action="CATEGORY_CREATE", resource="categories",
              entity_id=category.id, request=request, meta={"name": category.name})
    return ok("Category created successfully", category)


@router.put("/{category_id}", response_model=Envelope[CategoryOut])
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    category = catalog.update_category(db, category_id=category_id, payload=payload)
    write_log(db, user_id=current_user.id, action="CATEGORY_UPDATE", resource="categories",
              entity_id=category.id, request=request, meta=payload.model_dump(mode="json"))
    return ok("Category updated successfully", category)


@router.delete("/{category_id}", response_model=Envelope[None])
def delete_category(
    category_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    category = catalog.retire_category(db, category_id=category_id)
    write_log(db, user_id=current_user.id, action="CATEGORY_RETIRE", resource="categories",
              entity_id=category.id, request=request)
    return ok("Category deleted successfully")
