import os
import tempfile

# Settings are read at import time: point them at a throwaway SQLite file first
_TMP_DIR = tempfile.mkdtemp(prefix="remarket-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CSRF_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["LOCK_TIMEOUT_MS"] = "30000"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402
from config.database import Base, SessionLocal, engine  # noqa: E402
from common.security import hash_password  # noqa: E402
from modules.catalog.models import Product, ProductStatus  # noqa: E402
from modules.cart.models import CartItem  # noqa: E402
from modules.order.models import Order  # noqa: E402
from modules.user.models import User  # noqa: E402

PASSWORD = "secret-pass"

# Every helper below opens and closes its own session: SQLite serializes
# transactions, so nothing may stay open across an API or engine call.


@pytest.fixture(scope="session", autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Clear every table after each test"""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def make_client():
    """Factory for independent clients; pass a username to log it in."""
    clients = []

    def _make(username=None):
        client = TestClient(main.app)
        clients.append(client)
        if username:
            res = client.post("/auth?action=login", json={"username": username, "password": PASSWORD})
            assert res.status_code == 200, res.text
        return client

    yield _make
    for client in clients:
        client.close()


def create_user(username, real_name=None, phone=None, address=None):
    with SessionLocal() as db:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(PASSWORD),
            real_name=real_name,
            phone=phone,
            address=address,
        )
        db.add(user)
        db.commit()
        return user.id


def create_buyer(username):
    """User with a complete saved shipping profile."""
    return create_user(
        username,
        real_name=f"{username.title()} Smith",
        phone="555-0100",
        address="1 Market Street",
    )


def create_product(seller_id, quantity=1, price="10.00", is_unlimited=False,
                   sold_quantity=0, status=ProductStatus.AVAILABLE.value, title="Vintage lamp", **extra):
    with SessionLocal() as db:
        product = Product(
            seller_id=seller_id,
            title=title,
            price=Decimal(price),
            quantity=quantity,
            sold_quantity=sold_quantity,
            is_unlimited=is_unlimited,
            status=status,
            **extra,
        )
        db.add(product)
        db.commit()
        return product.id


def add_to_cart(user_id, product_id, quantity=1):
    with SessionLocal() as db:
        item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
        db.add(item)
        db.commit()
        return item.id


def get_product(product_id):
    with SessionLocal() as db:
        return db.get(Product, product_id)


def get_user(user_id):
    with SessionLocal() as db:
        return db.get(User, user_id)


def get_order(order_id):
    with SessionLocal() as db:
        return db.get(Order, order_id)


def list_orders(buyer_id=None):
    with SessionLocal() as db:
        q = db.query(Order)
        if buyer_id is not None:
            q = q.filter(Order.buyer_id == buyer_id)
        return q.order_by(Order.id).all()


def cart_rows(user_id):
    with SessionLocal() as db:
        return db.query(CartItem).filter(CartItem.user_id == user_id).order_by(CartItem.id).all()
