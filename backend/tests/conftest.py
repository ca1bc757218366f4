"""Shared fixtures: a fresh in-memory database per test and an API client bound to it."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models.category import Category
from models.order import Order, OrderItem, OrderStatus
from models.product import Product
from models.users import ROLE_ADMIN, ROLE_CUSTOMER, User
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token

PASSWORD = "secret123"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
def _make_user(db, email, role=ROLE_CUSTOMER, first_name="Test", last_name="User"):
    user = User(
        email=email,
        password_hash=get_password_hash(PASSWORD),
        role=role,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def customer(db):
    return _make_user(db, "customer@example.com", first_name="Jane", last_name="Doe")


@pytest.fixture()
def other_customer(db):
    return _make_user(db, "other@example.com", first_name="John", last_name="Smith")


@pytest.fixture()
def admin(db):
    return _make_user(db, "admin@example.com", role=ROLE_ADMIN, first_name="Ada", last_name="Admin")


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture()
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture()
def other_headers(other_customer):
    return auth_headers(other_customer)


@pytest.fixture()
def admin_headers(admin):
    return auth_headers(admin)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
@pytest.fixture()
def category(db):
    category = Category(name="Electronics", description="Gadgets and devices")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture()
def make_product(db, category):
    def _make(name="Headphones", price=100.0, sale_price=None, stock=5, **kwargs):
        kwargs.setdefault("category_id", category.id)
        product = Product(
            name=name,
            description=f"{name} description",
            price=price,
            sale_price=sale_price,
            stock_quantity=stock,
            **kwargs,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture()
def product(make_product):
    """Stock 5, list price 100, on sale for 80."""
    return make_product(sale_price=80.0)


@pytest.fixture()
def deliver(db):
    """Record a delivered order of ``product`` for ``user`` (review eligibility)."""

    def _deliver(user, product, qty=1):
        order = Order(
            user_id=user.id,
            status=OrderStatus.DELIVERED,
            total_amount=product.price * qty,
            shipping_address="1 Main St",
            shipping_city="Springfield",
            shipping_postal_code="12345",
            shipping_country="US",
        )
        order.items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            qty=qty,
            unit_price=product.price,
            line_total=product.price * qty,
        ))
        db.add(order)
        db.commit()
        return order

    return _deliver


SHIPPING = {
    "shipping_address": "1 Main St",
    "shipping_city": "Springfield",
    "shipping_postal_code": "12345",
    "shipping_country": "US",
    "phone_number": "555-0100",
}
