# backend/routes/reviews.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import Envelope, Page, make_page, ok
from schemas.review import ReviewCreate, ReviewOut
from services import reviews as review_service
from utils.audit import write_log
from utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/reviews", tags=["Reviews"])


# Public: approved reviews of one product
@router.get("/product/{product_id}", response_model=Envelope[Page[ReviewOut]])
def product_reviews(
    product_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    rating: Optional[int] = Query(None, ge=1, le=5),
    db: Session = Depends(get_db),
):
    rows, total = review_service.list_product_reviews(
        db, product_id=product_id, page=page, page_size=page_size, rating=rating
    )
    items = [review_service.review_to_out(r) for r in rows]
    return ok("Reviews retrieved successfully", make_page(items, total, page, page_size))


@router.get("/user", response_model=Envelope[Page[ReviewOut]])
def my_reviews(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows, total = review_service.list_user_reviews(db, user=current_user, page=page, page_size=page_size)
    items = [review_service.review_to_out(r) for r in rows]
    return ok("Reviews retrieved successfully", make_page(items, total, page, page_size))


@router.post("", response_model=Envelope[ReviewOut], status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    request: Request,
    product_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review = review_service.submit_review(
        db, user=current_user, product_id=product_id, rating=payload.rating, comment=payload.comment
    )
    out = review_service.review_to_out(review)
    write_log(db, user_id=current_user.id, action="REVIEW_CREATE", resource="reviews", entity_id=out.id,
              request=request, meta={"product_id": product_id, "rating": payload.rating})
    return ok("Review created successfully", out)


@router.put("/{review_id}", response_model=Envelope[ReviewOut])
def update_review(
    review_id: int,
    payload: ReviewCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review = review_service.update_review(
        db, user=current_user, review_id=review_id, rating=payload.rating, comment=payload.comment
    )
    out = review_service.review_to_out(review)
    write_log(db, user_id=current_user.id, action="REVIEW_UPDATE", resource="reviews", entity_id=review_id,
              request=request, meta={"rating": payload.rating})
    return ok("Review updated successfully", out)


@router.delete("/{review_id}", response_model=Envelope[None])
def delete_review(
    review_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review_service.delete_review(db, user=current_user, review_id=review_id)
    write_log(db, user_id=current_user.id, action="REVIEW_DELETE", resource="reviews", entity_id=review_id,
              request=request)
    return ok("Review deleted successfully")


# ---- ADMIN ----

@router.get("/admin/all", response_model=Envelope[Page[ReviewOut]])
def all_reviews(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    is_approved: Optional[bool] = Query(None),
    rating: Optional[int] = Query(None, ge=1, le=5),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    rows, total = review_service.list_all_reviews(
        db, page=page, page_size=page_size, is_approved=is_approved, rating=rating, search=search
    )
    items = [review_service.review_to_out(r, detailed=True) for r in rows]
    return ok("Reviews retrieved successfully", make_page(items, total, page, page_size))


def _moderate(db: Session, request: Request, admin: User, review_id: int, approved: bool) -> ReviewOut:
    review = review_service.set_approval(db, review_id=review_id, approved=approved)
    out = review_service.review_to_out(review, detailed=True)
    write_log(db, user_id=admin.id, action="REVIEW_APPROVE" if approved else "REVIEW_REJECT",
              resource="reviews", entity_id=review_id, request=request)
    return out


@router.put("/admin/{review_id}/approve", response_model=Envelope[ReviewOut])
def approve_review(
    review_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    return ok("Review approved successfully", _moderate(db, request, current_user, review_id, True))


@router.put("/admin/{review_id}/reject", response_model=Envelope[ReviewOut])
def reject_review(
    review_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    return ok("Review rejected successfully", _moderate(db, request, current_user, review_id, False))
