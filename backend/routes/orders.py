# backend/routes/orders.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.order import OrderStatus
from models.users import User
from schemas.common import Envelope, Page, make_page, ok
from schemas.order import OrderCreatePayload, OrderResponse, OrderStatusUpdate
from services import orders as order_service
from utils.audit import write_log
from utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/orders", tags=["Orders"])


# Checkout: turns the current cart into a Pending order
@router.post("", response_model=Envelope[OrderResponse], status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreatePayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.place_order(db, user=current_user, shipping=payload)
    out = order_service.order_to_out(order)
    write_log(db, user_id=current_user.id, action="ORDER_PLACE", resource="orders", entity_id=out.id,
              request=request, meta={"order_number": out.order_number, "total_amount": out.total_amount})
    return ok("Order created successfully", out)


@router.get("", response_model=Envelope[Page[OrderResponse]])
def my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows, total = order_service.list_orders(
        db, user=current_user, page=page, page_size=page_size, status=status_filter
    )
    items = [order_service.order_to_out(o) for o in rows]
    return ok("Orders retrieved successfully", make_page(items, total, page, page_size))


# ---- ADMIN ----
# Declared before /{order_id} so "admin" is never parsed as an id

@router.get("/admin/all", response_model=Envelope[Page[OrderResponse]])
def all_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Order number, customer email or name"),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    rows, total = order_service.list_all_orders(
        db, page=page, page_size=page_size, status=status_filter, search=search
    )
    items = [order_service.order_to_out(o) for o in rows]
    return ok("Orders retrieved successfully", make_page(items, total, page, page_size))


@router.put("/admin/{order_id}/status", response_model=Envelope[OrderResponse])
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    order = order_service.update_status(
        db, admin=current_user, order_id=order_id, status=payload.status,
        tracking_number=payload.tracking_number,
    )
    out = order_service.order_to_out(order)
    write_log(db, user_id=current_user.id, action="ORDER_STATUS", resource="orders", entity_id=order_id,
              request=request, meta={"status": payload.status.value, "tracking_number": payload.tracking_number})
    return ok("Order status updated successfully", out)


# ---- SINGLE ORDER ----

@router.get("/{order_id}", response_model=Envelope[OrderResponse])
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.get_order(db, user=current_user, order_id=order_id)
    return ok("Order retrieved successfully", order_service.order_to_out(order))


@router.post("/{order_id}/cancel", response_model=Envelope[OrderResponse])
def cancel_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.cancel_order(db, user=current_user, order_id=order_id)
    out = order_service.order_to_out(order)
    write_log(db, user_id=current_user.id, action="ORDER_CANCEL", resource="orders", entity_id=order_id,
              request=request, meta={"order_number": out.order_number})
    return ok("Order cancelled successfully", out)
