"""Cart endpoints: add/remove/list, cart checkout and buy-now."""

import pytest

from config.database import SessionLocal
from common.exceptions import InsufficientStockError
from modules.cart.service import cart_service
from modules.catalog.models import ProductStatus
from tests.conftest import (
    create_user, create_buyer, create_product, add_to_cart,
    get_product, get_user, list_orders, cart_rows,
)


@pytest.fixture
def seller():
    return create_user("seller")


@pytest.fixture
def buyer():
    return create_buyer("buyer")


def test_add_merges_quantity_into_one_row(make_client, seller, buyer):
    pid = create_product(seller, quantity=5)
    client = make_client("buyer")

    assert client.post("/cart?action=add", json={"product_id": pid}).json()["success"] is True
    assert client.post("/cart?action=add", json={"product_id": pid, "quantity": 2}).status_code == 200

    rows = cart_rows(buyer)
    assert len(rows) == 1
    assert rows[0].quantity == 3


def test_add_clamps_bad_quantity_to_one(make_client, seller, buyer):
    pid = create_product(seller, quantity=5)
    client = make_client("buyer")

    client.post("/cart?action=add", json={"product_id": pid, "quantity": -4})

    assert cart_rows(buyer)[0].quantity == 1


def test_add_beyond_stock_counts_what_is_already_in_cart(make_client, seller, buyer):
    pid = create_product(seller, quantity=3, title="Kettle")
    client = make_client("buyer")
    client.post("/cart?action=add", json={"product_id": pid, "quantity": 2})

    res = client.post("/cart?action=add", json={"product_id": pid, "quantity": 2})

    assert res.status_code == 400
    assert res.json()["code"] == "INSUFFICIENT_STOCK"
    assert res.json()["error"] == "Not enough stock for Kettle (Available: 1, Requested: 2)"
    assert cart_rows(buyer)[0].quantity == 2


def test_add_rejections(make_client, seller, buyer):
    own = create_product(seller, quantity=2)
    sold = create_product(seller, quantity=1, sold_quantity=1, status=ProductStatus.SOLD.value)
    seller_client = make_client("seller")
    buyer_client = make_client("buyer")

    res = seller_client.post("/cart?action=add", json={"product_id": own})
    assert res.json()["code"] == "SELF_PURCHASE"

    res = buyer_client.post("/cart?action=add", json={"product_id": sold})
    assert res.json()["code"] == "ALREADY_SOLD"

    res = buyer_client.post("/cart?action=add", json={"product_id": 999999})
    assert res.status_code == 404

    res = buyer_client.post("/cart?action=add", json={})
    assert res.json()["error"] == "Product ID required"

    assert cart_rows(buyer) == []


def test_unlimited_product_can_be_added_in_any_amount(make_client, seller, buyer):
    pid = create_product(seller, quantity=1, is_unlimited=True)
    client = make_client("buyer")

    res = client.post("/cart?action=add", json={"product_id": pid, "quantity": 500})

    assert res.status_code == 200
    assert cart_rows(buyer)[0].quantity == 500


def test_add_rejects_quantity_beyond_line_limit(make_client, seller, buyer):
    pid = create_product(seller, is_unlimited=True)
    client = make_client("buyer")

    res = client.post("/cart?action=add", json={"product_id": pid, "quantity": 10 ** 20})

    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"
    assert res.json()["error"] == "Quantity cannot exceed 10000"
    assert cart_rows(buyer) == []


def test_merge_cannot_push_cart_row_past_line_limit(make_client, seller, buyer):
    pid = create_product(seller, is_unlimited=True)
    add_to_cart(buyer, pid, 9999)

    res = make_client("buyer").post("/cart?action=add", json={"product_id": pid, "quantity": 2})

    assert res.status_code == 400
    assert cart_rows(buyer)[0].quantity == 9999


def test_out_of_range_ids_are_treated_as_missing(make_client, buyer):
    client = make_client("buyer")

    res = client.post("/cart?action=add", json={"product_id": 10 ** 20})
    assert res.json()["error"] == "Product ID required"

    res = client.post("/cart?action=remove", json={"cart_id": 10 ** 20})
    assert res.json()["error"] == "Cart ID required"


@pytest.fixture
def stale_first_lookup(monkeypatch):
    """Make the first cart row lookup miss, as if another request inserted the row just after it."""
    real_get = cart_service._get_item
    calls = []

    def lookup(db, user_id, product_id):
        calls.append(product_id)
        return None if len(calls) == 1 else real_get(db, user_id, product_id)

    monkeypatch.setattr(cart_service, "_get_item", lookup)


def test_merge_after_concurrent_insert_rechecks_stock(seller, buyer, stale_first_lookup):
    pid = create_product(seller, quantity=3, title="Kettle")
    add_to_cart(buyer, pid, 2)

    with SessionLocal() as db:
        with pytest.raises(InsufficientStockError) as exc:
            cart_service.add_item(db, buyer, pid, 2)
        db.rollback()

    assert exc.value.message == "Not enough stock for Kettle (Available: 1, Requested: 2)"
    assert cart_rows(buyer)[0].quantity == 2


def test_merge_after_concurrent_insert_adds_quantity(seller, buyer, stale_first_lookup):
    pid = create_product(seller, quantity=5)
    add_to_cart(buyer, pid, 2)

    with SessionLocal() as db:
        cart_service.add_item(db, buyer, pid, 2)
        db.commit()

    rows = cart_rows(buyer)
    assert len(rows) == 1
    assert rows[0].quantity == 4


def test_remove_only_touches_own_rows(make_client, seller, buyer):
    pid = create_product(seller, quantity=5)
    other = create_buyer("other")
    mine = add_to_cart(buyer, pid)
    theirs = add_to_cart(other, pid)
    client = make_client("buyer")

    assert client.post("/cart?action=remove", json={"cart_id": theirs}).status_code == 200
    assert [r.id for r in cart_rows(other)] == [theirs]

    client.post("/cart?action=remove", json={"cart_id": mine})
    assert cart_rows(buyer) == []

    assert client.post("/cart?action=remove", json={}).json()["error"] == "Cart ID required"


def test_list_flags_sold_out_products(make_client, seller, buyer):
    lamp = create_product(seller, quantity=2, price="15.00", title="Lamp")
    clock = create_product(seller, quantity=1, title="Clock")
    add_to_cart(buyer, lamp, 2)
    add_to_cart(buyer, clock, 1)
    other = create_buyer("other")
    make_client("other").post("/cart?action=buy_now", json={"product_id": clock})

    items = make_client("buyer").get("/cart").json()

    assert [i["title"] for i in items] == ["Lamp", "Clock"]
    assert items[0]["cart_quantity"] == 2
    assert items[0]["line_total"] == "30.00"
    assert items[0]["seller_name"] == "seller"
    assert items[0]["is_sold"] is False
    assert items[1]["is_sold"] is True
    assert items[1]["available_quantity"] == 0
    assert len(list_orders(other)) == 1


def test_unknown_action(make_client, buyer):
    res = make_client("buyer").post("/cart?action=explode", json={})
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"


# ==========================================
# Checkout via HTTP
# ==========================================

def test_cart_checkout_creates_orders_and_empties_cart(make_client, seller, buyer):
    a = create_product(seller, quantity=3, price="5.00", title="Mug")
    b = create_product(seller, quantity=1, price="40.00", title="Mirror")
    add_to_cart(buyer, a, 2)
    add_to_cart(buyer, b, 1)
    client = make_client("buyer")

    res = client.post("/cart?action=checkout", json={})

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["message"] == "Checkout successful"
    assert len(body["order_ids"]) == 2
    assert cart_rows(buyer) == []
    assert get_product(a).sold_quantity == 2
    assert get_product(b).status == ProductStatus.SOLD.value

    purchases = client.get("/orders").json()
    assert {p["title"] for p in purchases} == {"Mug", "Mirror"}
    assert {p["total_price"] for p in purchases} == {"10.00", "40.00"}
    assert all(p["shipping_status"] == "pending" for p in purchases)


def test_failed_cart_checkout_keeps_cart(make_client, seller, buyer):
    a = create_product(seller, quantity=3, title="Mug")
    b = create_product(seller, quantity=1, title="Mirror")
    add_to_cart(buyer, a, 1)
    add_to_cart(buyer, b, 1)
    create_buyer("other")
    make_client("other").post("/cart?action=buy_now", json={"product_id": b})

    res = make_client("buyer").post("/cart?action=checkout", json={})

    assert res.status_code == 400
    assert res.json()["code"] == "INSUFFICIENT_STOCK"
    assert len(cart_rows(buyer)) == 2
    assert get_product(a).sold_quantity == 0
    assert list_orders(buyer) == []


def test_empty_cart_checkout(make_client, buyer):
    res = make_client("buyer").post("/cart?action=checkout", json={})

    assert res.status_code == 400
    assert res.json()["error"] == "Cart is empty"


def test_checkout_without_any_shipping_info(make_client, seller):
    create_user("newbie")
    pid = create_product(seller)
    client = make_client("newbie")

    res = client.post("/cart?action=buy_now", json={"product_id": pid})

    assert res.status_code == 400
    assert res.json() == {
        "error": "MISSING_ADDRESS",
        "code": "MISSING_ADDRESS",
        "message": "Shipping information is incomplete.",
        "details": "Missing: Name, Address, Phone",
    }
    assert get_product(pid).sold_quantity == 0


def test_buy_now_with_shipping_fields_saves_profile(make_client, seller):
    uid = create_user("newbie")
    pid = create_product(seller, quantity=4, price="7.25")
    client = make_client("newbie")

    res = client.post("/cart?action=buy_now", json={
        "product_id": pid,
        "quantity": 2,
        "shipping_name": "  Nia Newbie ",
        "shipping_address": "3 Pine Court",
        "shipping_phone": "555-0142",
    })

    assert res.status_code == 200
    assert res.json()["message"] == "Purchase successful"
    order = list_orders(uid)[0]
    assert order.quantity == 2
    assert order.shipping_name == "Nia Newbie"
    user = get_user(uid)
    assert (user.real_name, user.address, user.phone) == ("Nia Newbie", "3 Pine Court", "555-0142")


def test_buy_now_own_product(make_client, seller):
    pid = create_product(seller)
    res = make_client("seller").post("/cart?action=buy_now", json={
        "product_id": pid, "shipping_name": "S", "shipping_address": "A", "shipping_phone": "P",
    })

    assert res.status_code == 400
    assert res.json() == {
        "error": "Cannot buy your own product",
        "code": "SELF_PURCHASE",
        "message": "Cannot buy your own product",
    }


def test_buy_now_single_unit_race_is_sequentially_exclusive(make_client, seller):
    pid = create_product(seller, quantity=1)
    create_buyer("alice")
    create_buyer("bob")

    first = make_client("alice").post("/cart?action=buy_now", json={"product_id": pid})
    second = make_client("bob").post("/cart?action=buy_now", json={"product_id": pid})

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["code"] == "INSUFFICIENT_STOCK"
    assert get_product(pid).status == ProductStatus.SOLD.value
    assert len(list_orders()) == 1


def test_buy_now_rejects_quantity_beyond_line_limit(make_client, seller, buyer):
    pid = create_product(seller, is_unlimited=True)

    res = make_client("buyer").post("/cart?action=buy_now", json={"product_id": pid, "quantity": 10 ** 20})

    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"
    assert res.json()["error"] == "Quantity cannot exceed 10000"
    assert list_orders() == []


def test_buy_now_rejects_overlong_shipping_phone(make_client, seller, buyer):
    pid = create_product(seller)

    res = make_client("buyer").post("/cart?action=buy_now", json={
        "product_id": pid,
        "shipping_name": "Ann Buyer",
        "shipping_address": "9 Elm Road",
        "shipping_phone": "5" * 30,
    })

    assert res.status_code == 400
    assert res.json()["error"] == "Phone is too long (max 20 characters)"
    assert get_product(pid).sold_quantity == 0
