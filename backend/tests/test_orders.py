"""Checkout and the order lifecycle."""

import re

import pytest

from conftest import SHIPPING
from models.cart import CartItem
from models.order import Order, OrderStatus
from models.product import Product
from schemas.order import OrderCreatePayload
from services import cart as cart_service
from services import orders as order_service
from utils.errors import InsufficientStock, InvalidTransition, NotFound, ValidationFailed

SHIPPING_PAYLOAD = OrderCreatePayload(**SHIPPING)


def _stock(db, product_id):
    db.expire_all()
    return db.query(Product).filter(Product.id == product_id).one().stock_quantity


def _checkout(db, user, product, qty):
    cart_service.add_item(db, user=user, product_id=product.id, qty=qty)
    return order_service.place_order(db, user=user, shipping=SHIPPING_PAYLOAD)


class TestPlaceOrder:
    def test_cart_to_order_scenario(self, db, customer, product):
        cart = cart_service.add_item(db, user=customer, product_id=product.id, qty=3)
        assert cart.total == 240.0

        with pytest.raises(InsufficientStock):
            cart_service.add_item(db, user=customer, product_id=product.id, qty=3)
        db.expire_all()
        assert cart_service.find_cart(db, customer.id).total == 240.0

        cart = cart_service.add_item(db, user=customer, product_id=product.id, qty=2)
        assert cart.items[0].qty == 5
        assert cart.total == 400.0

        order = order_service.place_order(db, user=customer, shipping=SHIPPING_PAYLOAD)

        assert order.total_amount == 400.0
        assert order.status == OrderStatus.PENDING
        assert _stock(db, product.id) == 0
        assert cart_service.find_cart(db, customer.id).items == []

    def test_amounts(self, db, customer, product):
        order = _checkout(db, customer, product, 2)

        assert order.total_amount == 160.0
        assert order.tax_amount == 32.0
        assert order.shipping_amount == 10.0
        assert order.grand_total == 202.0

    def test_items_are_frozen_at_effective_price(self, db, customer, product):
        order = _checkout(db, customer, product, 2)

        item = order.items[0]
        assert item.product_name == "Headphones"
        assert item.unit_price == 80.0
        assert item.line_total == 160.0
        assert item.qty == 2

        product = db.get(Product, product.id)
        product.sale_price = None
        product.name = "Renamed"
        db.commit()

        again = order_service.get_order(db, user=customer, order_id=order.id)
        assert again.items[0].unit_price == 80.0
        assert again.items[0].product_name == "Headphones"

    def test_order_number_format(self, db, customer, product):
        order = _checkout(db, customer, product, 1)

        assert re.fullmatch(r"ORD-\d{8}-\d{6}", order.order_number)
        assert order.order_number.endswith(f"{order.id:06d}")

    def test_order_numbers_are_unique(self, db, customer, other_customer, product):
        first = _checkout(db, customer, product, 1)
        second = _checkout(db, other_customer, product, 1)

        assert first.order_number != second.order_number

    def test_empty_cart(self, db, customer):
        with pytest.raises(ValidationFailed) as exc:
            order_service.place_order(db, user=customer, shipping=SHIPPING_PAYLOAD)

        assert exc.value.message == "Shopping cart is empty"

    def test_shortfall_changes_nothing(self, db, customer, product, make_product):
        cable = make_product(name="Cable", price=10.0, stock=10)
        cart_service.add_item(db, user=customer, product_id=cable.id, qty=4)
        cart_service.add_item(db, user=customer, product_id=product.id, qty=5)

        # Someone else bought the stock between add and checkout
        product = db.get(Product, product.id)
        product.stock_quantity = 2
        db.commit()

        with pytest.raises(InsufficientStock) as exc:
            order_service.place_order(db, user=customer, shipping=SHIPPING_PAYLOAD)

        assert exc.value.product_name == "Headphones"
        assert exc.value.available == 2
        assert db.query(Order).count() == 0
        assert _stock(db, cable.id) == 10
        assert _stock(db, product.id) == 2
        assert db.query(CartItem).count() == 2


class TestCancel:
    def test_cancel_pending_restores_stock(self, db, customer, product):
        order = _checkout(db, customer, product, 3)
        assert _stock(db, product.id) == 2

        cancelled = order_service.cancel_order(db, user=customer, order_id=order.id)

        assert cancelled.status == OrderStatus.CANCELLED
        assert _stock(db, product.id) == 5

    def test_cancel_non_pending_fails(self, db, customer, admin, product):
        order = _checkout(db, customer, product, 3)
        order_service.update_status(db, admin=admin, order_id=order.id, status=OrderStatus.SHIPPED)

        with pytest.raises(InvalidTransition):
            order_service.cancel_order(db, user=customer, order_id=order.id)

        assert _stock(db, product.id) == 2

    def test_other_users_order_is_not_found(self, db, customer, other_customer, product):
        order = _checkout(db, customer, product, 1)

        with pytest.raises(NotFound):
            order_service.cancel_order(db, user=other_customer, order_id=order.id)
        with pytest.raises(NotFound):
            order_service.get_order(db, user=other_customer, order_id=order.id)


class TestAdminStatus:
    def test_ship_stamps_tracking(self, db, customer, admin, product):
        order = _checkout(db, customer, product, 1)

        shipped = order_service.update_status(
            db, admin=admin, order_id=order.id, status=OrderStatus.SHIPPED, tracking_number="TRK-1"
        )

        assert shipped.shipped_at is not None
        assert shipped.tracking_number == "TRK-1"

    def test_deliver_stamps_delivered_at(self, db, customer, admin, product):
        order = _checkout(db, customer, product, 1)

        delivered = order_service.update_status(db, admin=admin, order_id=order.id, status=OrderStatus.DELIVERED)

        assert delivered.delivered_at is not None

    def test_terminal_status_is_final(self, db, customer, admin, product):
        order = _checkout(db, customer, product, 1)
        order_service.update_status(db, admin=admin, order_id=order.id, status=OrderStatus.DELIVERED)

        with pytest.raises(InvalidTransition):
            order_service.update_status(db, admin=admin, order_id=order.id, status=OrderStatus.PROCESSING)

    @pytest.mark.parametrize("target", [OrderStatus.CANCELLED, OrderStatus.REFUNDED])
    def test_unshipped_exit_restores_stock(self, db, customer, admin, product, target):
        order = _checkout(db, customer, product, 2)
        order_service.update_status(db, admin=admin, order_id=order.id, status=OrderStatus.PROCESSING)

        order_service.update_status(db, admin=admin, order_id=order.id, status=target)

        assert _stock(db, product.id) == 5

    def test_refund_after_shipping_keeps_stock(self, db, customer, admin, product):
        order = _checkout(db, customer, product, 2)
        order_service.update_status(db, admin=admin, order_id=order.id, status=OrderStatus.SHIPPED)

        order_service.update_status(db, admin=admin, order_id=order.id, status=OrderStatus.REFUNDED)

        assert _stock(db, product.id) == 3


class TestOrdersApi:
    def _fill_cart(self, client, headers, product, qty):
        client.post("/shoppingcart/add", json={"product_id": product.id, "qty": qty}, headers=headers)

    def test_checkout(self, client, db, customer_headers, product):
        self._fill_cart(client, customer_headers, product, 5)

        response = client.post("/orders", json=SHIPPING, headers=customer_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["total_amount"] == 400.0
        assert data["grand_total"] == 490.0
        assert data["customer"]["email"] == "customer@example.com"
        assert data["items"][0]["qty"] == 5
        assert _stock(db, product.id) == 0

        cart = client.get("/shoppingcart", headers=customer_headers).json()["data"]
        assert cart["items"] == []

    def test_checkout_requires_shipping_fields(self, client, customer_headers, product):
        self._fill_cart(client, customer_headers, product, 1)

        response = client.post("/orders", json={"shipping_city": "X"}, headers=customer_headers)

        assert response.status_code == 400
        assert any(e.startswith("shipping_address") for e in response.json()["errors"])

    def test_list_and_get_own_orders(self, client, customer_headers, product):
        self._fill_cart(client, customer_headers, product, 1)
        order_id = client.post("/orders", json=SHIPPING, headers=customer_headers).json()["data"]["id"]

        page = client.get("/orders", headers=customer_headers).json()["data"]
        assert page["total"] == 1
        assert page["items"][0]["id"] == order_id
        assert page["has_next_page"] is False

        response = client.get(f"/orders/{order_id}", headers=customer_headers)
        assert response.status_code == 200

    def test_cancel(self, client, db, customer_headers, product):
        self._fill_cart(client, customer_headers, product, 2)
        order_id = client.post("/orders", json=SHIPPING, headers=customer_headers).json()["data"]["id"]

        response = client.post(f"/orders/{order_id}/cancel", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "Cancelled"
        assert _stock(db, product.id) == 5

        response = client.post(f"/orders/{order_id}/cancel", headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Order cannot be cancelled in current status"

    def test_admin_endpoints_require_admin(self, client, customer_headers):
        assert client.get("/orders/admin/all", headers=customer_headers).status_code == 403

    def test_admin_list_and_status(self, client, customer_headers, admin_headers, product):
        self._fill_cart(client, customer_headers, product, 1)
        order = client.post("/orders", json=SHIPPING, headers=customer_headers).json()["data"]

        page = client.get(
            "/orders/admin/all", params={"search": "customer@"}, headers=admin_headers
        ).json()["data"]
        assert [o["id"] for o in page["items"]] == [order["id"]]

        response = client.put(
            f"/orders/admin/{order['id']}/status",
            json={"status": "Shipped", "tracking_number": "TRK-9"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["tracking_number"] == "TRK-9"

        filtered = client.get(
            "/orders/admin/all", params={"status": "Pending"}, headers=admin_headers
        ).json()["data"]
        assert filtered["total"] == 0
