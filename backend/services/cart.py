# backend/services/cart.py
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.cart import Cart, CartItem
from models.product import Product
from models.users import User
from schemas.cart import CartItemOut, CartOut
from utils.errors import InsufficientStock, NotFound

logger = logging.getLogger(__name__)


def find_cart(db: Session, user_id: int) -> Optional[Cart]:
    return db.query(Cart).filter(Cart.user_id == user_id).first()


def _new_cart(db: Session, user_id: int) -> Cart:
    cart = Cart(user_id=user_id)
    db.add(cart)
    db.flush()
    return cart


def _active_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product or not product.is_active:
        raise NotFound("Product not found")
    return product


def _check_stock(product: Product, wanted: int) -> None:
    # Reads stock as it is right now; nothing is reserved until checkout
    if wanted > product.stock_quantity:
        logger.warning(
            "Refused cart quantity %s for product %s (stock %s)", wanted, product.id, product.stock_quantity
        )
        raise InsufficientStock(product.name, product.stock_quantity)


def _owned_item(db: Session, user: User, item_id: int) -> CartItem:
    item = (
        db.query(CartItem)
        .join(Cart, Cart.id == CartItem.cart_id)
        .filter(CartItem.id == item_id, Cart.user_id == user.id)
        .first()
    )
    if not item:
        raise NotFound("Cart item not found")
    return item


def cart_to_out(cart: Cart) -> CartOut:
    items_out = []
    for it in cart.items:
        product = it.product
        items_out.append(CartItemOut(
            id=it.id,
            product_id=it.product_id,
            name=product.name,
            image_url=product.image_url,
            category_name=product.category.name if product.category else None,
            qty=it.qty,
            unit_price=product.price,
            sale_price=product.sale_price,
            effective_price=product.effective_price,
            line_total=it.line_total,
            in_stock=product.stock_quantity > 0,
            available_stock=product.stock_quantity,
        ))
    return CartOut(
        id=cart.id,
        user_id=cart.user_id,
        created_at=cart.created_at,
        items=items_out,
        total=cart.total,
        total_items=cart.total_items,
    )


def get_or_create_cart(db: Session, *, user: User) -> Cart:
    cart = find_cart(db, user.id)
    if cart is None:
        cart = _new_cart(db, user.id)
        db.commit()
        db.refresh(cart)
    return cart


def _add_once(db: Session, user: User, product: Product, qty: int) -> Cart:
    cart = find_cart(db, user.id)

    item = None
    if cart is not None:
        item = db.query(CartItem).filter(
            CartItem.cart_id == cart.id, CartItem.product_id == product.id
        ).first()

    _check_stock(product, (item.qty if item else 0) + qty)

    if cart is None:
        cart = _new_cart(db, user.id)
    if item:
        item.qty += qty
    else:
        db.add(CartItem(cart_id=cart.id, product_id=product.id, qty=qty))

    db.commit()
    db.refresh(cart)
    return cart


def add_item(db: Session, *, user: User, product_id: int, qty: int) -> Cart:
    """Add ``qty`` units of a product, merging into an existing line.

    Everything is validated before the first write, so a refused request
    leaves the cart exactly as it was. When a parallel request creates the
    same cart or line first, the unique constraint trips and the add is
    replayed once as a merge.
    """
    product = _active_product(db, product_id)
    try:
        return _add_once(db, user, product, qty)
    except IntegrityError:
        db.rollback()
        logger.warning("Concurrent add of product %s for user %s, merging", product_id, user.id)
        product = _active_product(db, product_id)
        return _add_once(db, user, product, qty)


def update_item(db: Session, *, user: User, item_id: int, qty: int) -> Cart:
    item = _owned_item(db, user, item_id)
    cart = item.cart

    if qty == 0:
        db.delete(item)
    else:
        # Retired products can only leave the cart
        product = _active_product(db, item.product_id)
        _check_stock(product, qty)
        item.qty = qty

    db.commit()
    db.refresh(cart)
    return cart


def remove_item(db: Session, *, user: User, item_id: int) -> Cart:
    item = _owned_item(db, user, item_id)
    cart = item.cart
    db.delete(item)
    db.commit()
    db.refresh(cart)
    return cart


def clear_cart(db: Session, *, user: User) -> Optional[Cart]:
    cart = find_cart(db, user.id)
    if cart is None:
        return None
    # delete-orphan cascade removes the rows
    cart.items.clear()
    db.commit()
    db.refresh(cart)
    return cart
