# backend/services/orders.py
# Checkout and the order status lifecycle.
# place_order validates stock, freezes the cart into order items, decrements
# stock and empties the cart in one transaction: all of it commits or none of it.
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from config import settings
from models.cart import Cart, CartItem
from models.order import Order, OrderItem, OrderStatus, TERMINAL_STATUSES, UNSHIPPED_STATUSES
from models.product import Product
from models.users import User
from schemas.order import OrderCreatePayload, OrderCustomer, OrderItemOut, OrderResponse
from services.cart import find_cart
from utils.errors import InsufficientStock, InvalidTransition, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def order_number_for(order: Order) -> str:
    placed = order.placed_at or datetime.now(timezone.utc)
    return f"ORD-{placed:%Y%m%d}-{order.id:06d}"


def order_to_out(order: Order) -> OrderResponse:
    items = [
        OrderItemOut(
            id=it.id,
            product_id=it.product_id,
            product_name=it.product_name,
            product_image_url=it.product.image_url if it.product else None,
            qty=it.qty,
            unit_price=it.unit_price,
            line_total=it.line_total,
        )
        for it in order.items
    ]
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        total_amount=round(order.total_amount, 2),
        tax_amount=round(order.tax_amount, 2),
        shipping_amount=round(order.shipping_amount, 2),
        grand_total=order.grand_total,
        shipping_address=order.shipping_address,
        shipping_city=order.shipping_city,
        shipping_postal_code=order.shipping_postal_code,
        shipping_country=order.shipping_country,
        phone_number=order.phone_number,
        notes=order.notes,
        placed_at=order.placed_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        tracking_number=order.tracking_number,
        customer=OrderCustomer(
            id=order.user.id,
            email=order.user.email,
            first_name=order.user.first_name,
            last_name=order.user.last_name,
        ),
        items=items,
    )


def _with_details(db: Session):
    return db.query(Order).options(
        joinedload(Order.user),
        joinedload(Order.items).joinedload(OrderItem.product),
    )


def _restore_stock(db: Session, order: Order) -> None:
    for item in order.items:
        product = db.query(Product).filter(Product.id == item.product_id).with_for_update().first()
        if product:
            product.stock_quantity += item.qty


def place_order(db: Session, *, user: User, shipping: OrderCreatePayload) -> Order:
    cart: Optional[Cart] = find_cart(db, user.id)
    if cart is None or not cart.items:
        raise ValidationFailed("Shopping cart is empty")

    try:
        # 1. Lock every product in the cart and validate stock before any write
        locked = {}
        for ci in cart.items:
            product = db.query(Product).filter(Product.id == ci.product_id).with_for_update().first()
            if product is None or not product.is_active:
                raise NotFound(f"Product {ci.product_id} is no longer available")
            if product.stock_quantity < ci.qty:
                raise InsufficientStock(product.name, product.stock_quantity)
            locked[ci.product_id] = product

        # 2. Freeze the cart lines at today's effective prices
        order = Order(
            user_id=user.id,
            status=OrderStatus.PENDING,
            placed_at=datetime.now(timezone.utc),
            total_amount=0.0,
            **shipping.model_dump(),
        )
        total = 0.0
        for ci in cart.items:
            product = locked[ci.product_id]
            unit_price = product.effective_price
            line_total = round(unit_price * ci.qty, 2)
            total += line_total
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                qty=ci.qty,
                unit_price=unit_price,
                line_total=line_total,
            ))
            # 3. Take the goods off the shelf
            product.stock_quantity -= ci.qty

        order.total_amount = round(total, 2)
        order.tax_amount = round(total * settings.TAX_RATE, 2)
        order.shipping_amount = settings.SHIPPING_FLAT_FEE
        db.add(order)

        # 4. Empty the cart
        db.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)

        db.flush()
        order.order_number = order_number_for(order)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Checkout failed for user %s", user.id)
        raise
    except Exception:
        db.rollback()
        raise

    logger.info("Order %s placed by user %s, total %.2f", order.order_number, user.id, order.total_amount)
    return get_order(db, user=user, order_id=order.id)


def get_order(db: Session, *, user: User, order_id: int) -> Order:
    order = _with_details(db).filter(Order.id == order_id).first()
    # Other users' orders are reported as missing, not forbidden
    if not order or (order.user_id != user.id and not user.is_admin):
        raise NotFound("Order not found")
    return order


def list_orders(db: Session, *, user: User, page: int, page_size: int,
                status: Optional[OrderStatus] = None):
    q = db.query(Order).filter(Order.user_id == user.id)
    if status is not None:
        q = q.filter(Order.status == status)
    total = q.count()
    rows = (
        q.options(joinedload(Order.user), joinedload(Order.items).joinedload(OrderItem.product))
        .order_by(Order.placed_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def list_all_orders(db: Session, *, page: int, page_size: int,
                    status: Optional[OrderStatus] = None, search: Optional[str] = None):
    q = db.query(Order).join(User, User.id == Order.user_id)
    if status is not None:
        q = q.filter(Order.status == status)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            Order.order_number.ilike(like),
            User.email.ilike(like),
            User.first_name.ilike(like),
            User.last_name.ilike(like),
        ))
    total = q.count()
    rows = (
        q.options(joinedload(Order.user), joinedload(Order.items).joinedload(OrderItem.product))
        .order_by(Order.placed_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def cancel_order(db: Session, *, user: User, order_id: int) -> Order:
    order = get_order(db, user=user, order_id=order_id)
    if order.status != OrderStatus.PENDING:
        logger.warning("Refused cancel of order %s in status %s", order.id, order.status.value)
        raise InvalidTransition("Order cannot be cancelled in current status")

    _restore_stock(db, order)
    order.status = OrderStatus.CANCELLED
    db.commit()
    logger.info("Order %s cancelled by user %s", order.order_number, user.id)
    db.refresh(order)
    return order


def update_status(db: Session, *, admin: User, order_id: int, status: OrderStatus,
                  tracking_number: Optional[str] = None) -> Order:
    """Admin status change.

    Any target is accepted while the order is not terminal. Stock comes back
    whenever an order that never shipped ends up cancelled or refunded.
    """
    order = _with_details(db).filter(Order.id == order_id).first()
    if not order:
        raise NotFound("Order not found")

    old_status = order.status
    if old_status in TERMINAL_STATUSES:
        raise InvalidTransition(f"Cannot change status of a {old_status.value} order")

    if status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED) and old_status in UNSHIPPED_STATUSES:
        _restore_stock(db, order)

    now = datetime.now(timezone.utc)
    order.status = status
    if status == OrderStatus.SHIPPED:
        order.shipped_at = now
        if tracking_number:
            order.tracking_number = tracking_number
    elif status == OrderStatus.DELIVERED:
        order.delivered_at = now

    db.commit()
    logger.info(
        "Order %s status %s -> %s by admin %s", order.order_number, old_status.value, status.value, admin.id
    )
    db.refresh(order)
    return order
