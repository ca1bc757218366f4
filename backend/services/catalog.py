# backend/services/catalog.py
# Products and categories: storefront reads and admin maintenance
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from config import settings
from models.category import CatalogStatus, Category
from models.product import Product
from models.review import ProductReview
from schemas.product import (
    CategoryCreate, CategoryOut, CategorySummary, CategoryUpdate,
    ProductCreate, ProductDetailOut, ProductOut, ProductReviewBrief, ProductUpdate,
)
from utils.errors import Conflict, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

# Caller-facing sort keys; anything else is rejected at the API boundary
SORT_COLUMNS = {
    "created_at": Product.created_at,
    "name": Product.name,
    "price": Product.price,
    "stock_quantity": Product.stock_quantity,
}


@dataclass
class ProductFilters:
    category_id: Optional[int] = None
    search: Optional[str] = None
    is_featured: Optional[bool] = None
    on_sale: Optional[bool] = None


# ---- Serialization ----

def _approved(product: Product) -> List[ProductReview]:
    return [r for r in product.reviews if r.is_approved]


def product_to_out(product: Product, with_reviews: bool = False) -> ProductOut:
    approved = _approved(product)
    average = round(sum(r.rating for r in approved) / len(approved), 2) if approved else 0.0
    data = dict(
        id=product.id,
        name=product.name,
        description=product.description or "",
        price=product.price,
        sale_price=product.sale_price,
        effective_price=product.effective_price,
        stock_quantity=product.stock_quantity,
        in_stock=product.stock_quantity > 0,
        image_url=product.image_url,
        status=product.status,
        is_featured=product.is_featured,
        created_at=product.created_at,
        updated_at=product.updated_at,
        category=CategorySummary(id=product.category.id, name=product.category.name),
        average_rating=average,
        review_count=len(approved),
    )
    if not with_reviews:
        return ProductOut(**data)
    reviews = [
        ProductReviewBrief(
            id=r.id,
            user_id=r.user_id,
            user_name=r.user.full_name if r.user else "",
            rating=r.rating,
            comment=r.comment,
            created_at=r.created_at,
        )
        for r in sorted(approved, key=lambda r: (r.created_at is None, r.created_at), reverse=True)
    ]
    return ProductDetailOut(**data, reviews=reviews)


def _active_product_counts(db: Session, category_ids: List[int]) -> Dict[int, int]:
    if not category_ids:
        return {}
    rows = (
        db.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.in_(category_ids), Product.status == CatalogStatus.ACTIVE)
        .group_by(Product.category_id)
        .all()
    )
    return {cid: count for cid, count in rows}


def category_to_out(category: Category, product_count: int = 0) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        description=category.description,
        image_url=category.image_url,
        status=category.status,
        created_at=category.created_at,
        product_count=product_count,
    )


# ---- Products ----

def _product_query(db: Session):
    return db.query(Product).options(
        joinedload(Product.category),
        selectinload(Product.reviews).joinedload(ProductReview.user),
    )


def _sorted(query, sort_by: str, sort_order: str):
    col = SORT_COLUMNS.get(sort_by, Product.created_at)
    if sort_order == "asc":
        return query.order_by(col.asc(), Product.id.asc())
    return query.order_by(col.desc(), Product.id.desc())


def list_products(db: Session, *, filters: ProductFilters, sort_by: str = "created_at",
                  sort_order: str = "desc", page: int = 1, page_size: int = 20):
    query = (
        db.query(Product)
        .join(Category, Category.id == Product.category_id)
        .filter(Product.status == CatalogStatus.ACTIVE)
    )

    if filters.category_id is not None:
        query = query.filter(Product.category_id == filters.category_id)
    if filters.search:
        like = f"%{filters.search}%"
        query = query.filter(or_(
            Product.name.ilike(like),
            Product.description.ilike(like),
            Category.name.ilike(like),
        ))
    if filters.is_featured is not None:
        query = query.filter(Product.is_featured.is_(filters.is_featured))
    if filters.on_sale is not None:
        on_sale = Product.sale_price.isnot(None) & (Product.sale_price > 0)
        query = query.filter(on_sale if filters.on_sale else ~on_sale)

    total = query.count()
    rows = (
        _sorted(query, sort_by, sort_order)
        .options(joinedload(Product.category), selectinload(Product.reviews))
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def get_product(db: Session, product_id: int) -> Product:
    product = _product_query(db).filter(
        Product.id == product_id, Product.status == CatalogStatus.ACTIVE
    ).first()
    if not product:
        raise NotFound("Product not found")
    return product


def related_products(db: Session, product_id: int, limit: Optional[int] = None) -> List[Product]:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")
    return (
        _product_query(db)
        .filter(
            Product.category_id == product.category_id,
            Product.id != product.id,
            Product.status == CatalogStatus.ACTIVE,
        )
        .order_by(func.random())
        .limit(limit or settings.RELATED_PRODUCTS_LIMIT)
        .all()
    )


def _require_category(db: Session, category_id: int, for_active_product: bool = True) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise ValidationFailed("Category not found")
    # A retired category never holds active products
    if for_active_product and not category.is_active:
        logger.warning("Refused active product in retired category %s", category.id)
        raise ValidationFailed("Category is retired")
    return category


def create_product(db: Session, *, payload: ProductCreate) -> Product:
    _require_category(db, payload.category_id)
    product = Product(**payload.model_dump(), status=CatalogStatus.ACTIVE)
    db.add(product)
    db.commit()
    logger.info("Product %s created", product.id)
    return _product_query(db).filter(Product.id == product.id).first()


def update_product(db: Session, *, product_id: int, payload: ProductUpdate) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")
    _require_category(
        db, payload.category_id, for_active_product=payload.status == CatalogStatus.ACTIVE
    )

    for key, value in payload.model_dump().items():
        setattr(product, key, value)
    db.commit()
    return _product_query(db).filter(Product.id == product.id).first()


def retire_product(db: Session, *, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")
    product.status = CatalogStatus.RETIRED
    db.commit()
    logger.info("Product %s retired", product.id)
    return product


# ---- Categories ----

def list_categories(db: Session) -> List[CategoryOut]:
    categories = (
        db.query(Category)
        .filter(Category.status == CatalogStatus.ACTIVE)
        .order_by(Category.name.asc())
        .all()
    )
    counts = _active_product_counts(db, [c.id for c in categories])
    return [category_to_out(c, counts.get(c.id, 0)) for c in categories]


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(
        Category.id == category_id, Category.status == CatalogStatus.ACTIVE
    ).first()
    if not category:
        raise NotFound("Category not found")
    return category


def category_detail(db: Session, category_id: int) -> CategoryOut:
    category = get_category(db, category_id)
    counts = _active_product_counts(db, [category.id])
    return category_to_out(category, counts.get(category.id, 0))


def category_products(db: Session, *, category_id: int, sort_by: str = "created_at",
                      sort_order: str = "desc", page: int = 1, page_size: int = 20):
    get_category(db, category_id)
    return list_products(
        db,
        filters=ProductFilters(category_id=category_id),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(Category).filter(func.lower(Category.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise Conflict("Category with this name already exists")


def create_category(db: Session, *, payload: CategoryCreate) -> CategoryOut:
    _ensure_unique_name(db, payload.name)
    category = Category(
        name=payload.name.strip(),
        description=payload.description,
        image_url=payload.image_url,
        status=CatalogStatus.ACTIVE,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    return category_to_out(category, 0)


def update_category(db: Session, *, category_id: int, payload: CategoryUpdate) -> CategoryOut:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFound("Category not found")
    _ensure_unique_name(db, payload.name, exclude_id=category_id)

    counts = _active_product_counts(db, [category.id])
    if payload.status == CatalogStatus.RETIRED and counts.get(category.id, 0):
        raise Conflict("Cannot retire category with active products")

    category.name = payload.name.strip()
    category.description = payload.description
    category.image_url = payload.image_url
    category.status = payload.status
    db.commit()
    db.refresh(category)
    return category_to_out(category, counts.get(category.id, 0))


def retire_category(db: Session, *, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFound("Category not found")
    if _active_product_counts(db, [category.id]).get(category.id, 0):
        raise Conflict("Cannot delete category with active products")
    category.status = CatalogStatus.RETIRED
    db.commit()
    logger.info("Category %s retired", category.id)
    return category
