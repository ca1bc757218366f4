# backend/routes/cart.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.cart import CartAddItem, CartOut, CartUpdateItem
from schemas.common import Envelope, ok
from services import cart as cart_service
from utils.audit import write_log
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/shoppingcart", tags=["Cart"])


@router.get("", response_model=Envelope[CartOut])
def get_cart(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    cart = cart_service.get_or_create_cart(db, user=current_user)
    return ok("Cart retrieved successfully", cart_service.cart_to_out(cart))


@router.post("/add", response_model=Envelope[CartOut])
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart = cart_service.add_item(db, user=current_user, product_id=payload.product_id, qty=payload.qty)
    write_log(db, user_id=current_user.id, action="CART_ADD", resource="cart", entity_id=payload.product_id,
              request=request, meta={"qty": payload.qty})
    return ok("Item added to cart successfully", cart_service.cart_to_out(cart))


@router.put("/items/{item_id}", response_model=Envelope[CartOut])
def update_cart_item(
    item_id: int,
    payload: CartUpdateItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart = cart_service.update_item(db, user=current_user, item_id=item_id, qty=payload.qty)
    write_log(db, user_id=current_user.id, action="CART_UPDATE", resource="cart", entity_id=item_id,
              request=request, meta={"qty": payload.qty})
    return ok("Cart item updated successfully", cart_service.cart_to_out(cart))


@router.delete("/items/{item_id}", response_model=Envelope[CartOut])
def remove_cart_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart = cart_service.remove_item(db, user=current_user, item_id=item_id)
    write_log(db, user_id=current_user.id, action="CART_REMOVE", resource="cart", entity_id=item_id,
              request=request)
    return ok("Item removed from cart successfully", cart_service.cart_to_out(cart))


@router.delete("/clear", response_model=Envelope[None])
def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart = cart_service.clear_cart(db, user=current_user)
    if cart is not None:
        write_log(db, user_id=current_user.id, action="CART_CLEAR", resource="cart", entity_id=cart.id,
                  request=request)
    return ok("Cart cleared successfully")
