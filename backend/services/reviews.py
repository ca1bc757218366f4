# backend/services/reviews.py
import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from config import settings
from models.order import Order, OrderItem, OrderStatus
from models.product import Product
from models.review import ProductReview
from models.users import User
from schemas.review import ReviewOut
from utils.errors import Conflict, Forbidden, NotEligible, NotFound

logger = logging.getLogger(__name__)


def review_to_out(review: ProductReview, detailed: bool = False) -> ReviewOut:
    user = review.user
    product = review.product
    return ReviewOut(
        id=review.id,
        product_id=review.product_id,
        user_id=review.user_id,
        user_name=user.full_name if user else "",
        user_email=user.email if (user and detailed) else None,
        product_name=product.name if product else None,
        product_image_url=product.image_url if product else None,
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
        is_approved=review.is_approved,
    )


def has_delivered_purchase(db: Session, *, user_id: int, product_id: int) -> bool:
    return db.query(OrderItem.id).join(Order, Order.id == OrderItem.order_id).filter(
        Order.user_id == user_id,
        Order.status == OrderStatus.DELIVERED,
        OrderItem.product_id == product_id,
    ).first() is not None


def _get_review(db: Session, review_id: int) -> ProductReview:
    review = db.query(ProductReview).filter(ProductReview.id == review_id).first()
    if not review:
        raise NotFound("Review not found")
    return review


def _authored(db: Session, user: User, review_id: int) -> ProductReview:
    review = _get_review(db, review_id)
    if review.user_id != user.id:
        raise Forbidden("You can only modify your own reviews")
    return review


def submit_review(db: Session, *, user: User, product_id: int, rating: int, comment: str) -> ProductReview:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product or not product.is_active:
        raise NotFound("Product not found")

    existing = db.query(ProductReview).filter(
        ProductReview.product_id == product_id, ProductReview.user_id == user.id
    ).first()
    if existing:
        raise Conflict("You have already reviewed this product")

    if settings.REQUIRE_VERIFIED_PURCHASE and not has_delivered_purchase(
        db, user_id=user.id, product_id=product_id
    ):
        logger.warning("User %s tried to review product %s without a delivered order", user.id, product_id)
        raise NotEligible()

    review = ProductReview(
        product_id=product_id, user_id=user.id, rating=rating, comment=comment, is_approved=True
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError:
        # A parallel submission for the same product won the unique constraint
        db.rollback()
        raise Conflict("You have already reviewed this product")
    db.refresh(review)
    return review


def update_review(db: Session, *, user: User, review_id: int, rating: int, comment: str) -> ProductReview:
    review = _authored(db, user, review_id)
    # created_at and approval are left as they are
    review.rating = rating
    review.comment = comment
    db.commit()
    db.refresh(review)
    return review


def delete_review(db: Session, *, user: User, review_id: int) -> None:
    review = _authored(db, user, review_id)
    db.delete(review)
    db.commit()


def set_approval(db: Session, *, review_id: int, approved: bool) -> ProductReview:
    review = _get_review(db, review_id)
    review.is_approved = approved
    db.commit()
    db.refresh(review)
    return review


def list_product_reviews(db: Session, *, product_id: int, page: int, page_size: int,
                         rating: Optional[int] = None):
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product or not product.is_active:
        raise NotFound("Product not found")

    q = db.query(ProductReview).filter(
        ProductReview.product_id == product_id, ProductReview.is_approved.is_(True)
    )
    if rating is not None:
        q = q.filter(ProductReview.rating == rating)
    return _paginate(q, page, page_size)


def list_user_reviews(db: Session, *, user: User, page: int, page_size: int):
    q = db.query(ProductReview).filter(ProductReview.user_id == user.id)
    return _paginate(q, page, page_size)


def list_all_reviews(db: Session, *, page: int, page_size: int, is_approved: Optional[bool] = None,
                     rating: Optional[int] = None, search: Optional[str] = None):
    q = (
        db.query(ProductReview)
        .join(User, User.id == ProductReview.user_id)
        .join(Product, Product.id == ProductReview.product_id)
    )
    if is_approved is not None:
        q = q.filter(ProductReview.is_approved.is_(is_approved))
    if rating is not None:
        q = q.filter(ProductReview.rating == rating)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            ProductReview.comment.ilike(like),
            User.email.ilike(like),
            User.first_name.ilike(like),
            User.last_name.ilike(like),
            Product.name.ilike(like),
        ))
    return _paginate(q, page, page_size)


def _paginate(q, page: int, page_size: int):
    total = q.count()
    rows = (
        q.options(joinedload(ProductReview.user), joinedload(ProductReview.product))
        .order_by(ProductReview.created_at.desc(), ProductReview.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total
