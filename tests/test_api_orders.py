from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

import main
import payments


@pytest.fixture
def placed_order(client, user_headers, catalog):
    client.post("/me/cart", headers=user_headers, json={"product_id": catalog["Classic White Tee"], "quantity": 2})
    client.post("/me/cart", headers=user_headers, json={"product_id": catalog["Leather Derby Shoes"]})
    r = client.post("/orders/checkout", headers=user_headers, json={"shipping_address": "12 MG Road, Pune"})
    assert r.status_code == 201, r.text
    return r.json()["id"]


def test_checkout_writes_order_index_and_notification(client, user_headers, placed_order, mongo):
    order = mongo["order"].find_one({"_id": ObjectId(placed_order)})
    assert order["status"] == "Pending"
    assert order["total"] == 170.0
    assert order["user_email"] == "ravi@acoof.com"
    assert order["payment_method"] == "COD"
    assert [i["product_name"] for i in order["items"]] == ["Classic White Tee", "Leather Derby Shoes"]

    user = mongo["user"].find_one({"email": "ravi@acoof.com"})
    assert user["orders"] == [placed_order]
    assert user["cart"] == []

    note = mongo["notification"].find_one({"order_id": placed_order})
    assert note["type"] == "new_order"
    assert note["read"] is False
    assert note["message"] == f"New order #{placed_order[-6:].upper()} placed by ravi@acoof.com. Total: ₹170.00"


def test_checkout_with_empty_cart(client, user_headers):
    r = client.post("/orders/checkout", headers=user_headers, json={"shipping_address": "Somewhere"})
    assert r.status_code == 400


def test_checkout_falls_back_to_profile_address(client, user_headers, catalog, mongo):
    client.put("/me", headers=user_headers, json={"address": "4 Park Street", "city": "Kolkata"})
    client.post("/me/cart", headers=user_headers, json={"product_id": catalog["Canvas Tote Bag"]})
    oid = client.post("/orders/checkout", headers=user_headers, json={}).json()["id"]
    assert mongo["order"].find_one({"_id": ObjectId(oid)})["shipping_address"] == "4 Park Street, Kolkata"


@pytest.fixture
def gateway(client, user_headers, monkeypatch):
    """Create Razorpay orders through the API with the gateway call stubbed."""
    monkeypatch.setenv("RAZORPAY_KEY_SECRET", "shh")

    def fake_create(amount, receipt=None):
        return {"id": f"order_{payments.to_paise(amount)}", "amount": payments.to_paise(amount), "currency": "INR"}

    monkeypatch.setattr(main, "create_razorpay_order", fake_create)

    def create(amount):
        r = client.post("/payments/razorpay/order", headers=user_headers, json={"amount": amount})
        assert r.status_code == 200, r.text
        return r.json()["id"]

    return create


def razorpay_checkout(order_id, payment_id, signature=None):
    return {
        "shipping_address": "12 MG Road, Pune",
        "payment_method": "Razorpay",
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature or payments.payment_signature(order_id, payment_id, "shh"),
    }


def test_razorpay_checkout_requires_valid_signature(client, user_headers, catalog, gateway, mongo):
    client.post("/me/cart", headers=user_headers, json={"product_id": catalog["Cargo Trousers"]})
    gateway_order = gateway(80)

    forged = razorpay_checkout(gateway_order, "pay_1", signature="forged")
    assert client.post("/orders/checkout", headers=user_headers, json=forged).status_code == 400

    r = client.post("/orders/checkout", headers=user_headers, json=razorpay_checkout(gateway_order, "pay_1"))
    assert r.status_code == 201
    assert r.json()["total"] == 80.0

    payment = mongo["payment"].find_one({"razorpay_order_id": gateway_order})
    assert payment["razorpay_payment_id"] == "pay_1"
    assert payment["order_id"] == r.json()["id"]


def test_razorpay_payment_backs_a_single_order(client, user_headers, catalog, gateway, mongo):
    client.post("/me/cart", headers=user_headers, json={"product_id": catalog["Cargo Trousers"]})
    gateway_order = gateway(80)
    payload = razorpay_checkout(gateway_order, "pay_1")
    assert client.post("/orders/checkout", headers=user_headers, json=payload).status_code == 201

    client.post("/me/cart", headers=user_headers, json={"product_id": catalog["Cargo Trousers"]})
    again = client.post("/orders/checkout", headers=user_headers, json=payload)
    assert again.status_code == 400
    assert "already been used" in again.json()["detail"]

    other_payment = client.post("/orders/checkout", headers=user_headers, json=razorpay_checkout(gateway_order, "pay_2"))
    assert other_payment.status_code == 400
    assert mongo["order"].count_documents({}) == 1


def test_razorpay_amount_must_match_order_total(client, user_headers, catalog, gateway, mongo):
    cheap_order = gateway(1)
    client.post("/me/cart", headers=user_headers, json={"product_id": catalog["Leather Derby Shoes"]})

    r = client.post("/orders/checkout", headers=user_headers, json=razorpay_checkout(cheap_order, "pay_1"))

    assert r.status_code == 400
    assert "does not match" in r.json()["detail"]
    assert mongo["order"].count_documents({}) == 0
    assert mongo["user"].find_one({"email": "ravi@acoof.com"})["cart"] != []


def test_razorpay_order_from_outside_the_api_is_refused(client, user_headers, catalog, gateway):
    client.post("/me/cart", headers=user_headers, json={"product_id": catalog["Cargo Trousers"]})
    r = client.post("/orders/checkout", headers=user_headers, json=razorpay_checkout("order_elsewhere", "pay_1"))
    assert r.status_code == 400
    assert "Unknown payment order" in r.json()["detail"]


def test_list_and_get_own_orders(client, user_headers, placed_order, login_as):
    orders = client.get("/orders", headers=user_headers).json()
    assert [o["id"] for o in orders] == [placed_order]

    order = client.get(f"/orders/{placed_order}", headers=user_headers).json()
    assert order["can_cancel"] is True

    client.post("/auth/register", json={"name": "Other", "email": "other@acoof.com", "password": "secret123"})
    other = login_as("other@acoof.com", "secret123")
    assert client.get(f"/orders/{placed_order}", headers=other).status_code == 404


def test_customer_cancels_pending_order(client, user_headers, placed_order, mongo):
    r = client.post(f"/orders/{placed_order}/cancel", headers=user_headers, json={"reason": "Ordered the wrong size"})
    assert r.json() == {"id": placed_order, "status": "Cancelled", "type": "order_cancellation"}

    order = mongo["order"].find_one({"_id": ObjectId(placed_order)})
    assert order["status"] == "Cancelled"
    assert order["cancellation_reason"] == "Ordered the wrong size"
    assert mongo["notification"].count_documents({"order_id": placed_order, "type": "order_cancellation"}) == 1

    again = client.post(f"/orders/{placed_order}/cancel", headers=user_headers, json={"reason": "again"})
    assert again.status_code == 400


def test_delivered_order_return_creates_return_notification(client, user_headers, admin_headers, placed_order, mongo):
    client.patch(f"/admin/orders/{placed_order}/status", headers=admin_headers, json={"status": "Delivered"})
    r = client.post(f"/orders/{placed_order}/cancel", headers=user_headers, json={"reason": "Does not fit"})
    assert r.json()["type"] == "order_return"

    returns = client.get("/admin/notifications", headers=admin_headers).json()
    assert "order_return" in {n["type"] for n in returns}


def test_cancel_after_window_is_refused(client, user_headers, placed_order, mongo):
    old = (datetime.now(timezone.utc) - timedelta(days=8)).isoformat()
    mongo["order"].update_one({"_id": ObjectId(placed_order)}, {"$set": {"date": old}})
    r = client.post(f"/orders/{placed_order}/cancel", headers=user_headers, json={"reason": "Too late"})
    assert r.status_code == 400


def test_shipped_order_cannot_be_cancelled(client, user_headers, admin_headers, placed_order):
    client.post(f"/admin/orders/{placed_order}/accept", headers=admin_headers)
    r = client.post(f"/orders/{placed_order}/cancel", headers=user_headers, json={"reason": "Changed my mind"})
    assert r.status_code == 400


def test_admin_accepts_order(client, user_headers, admin_headers, placed_order, mongo):
    assert client.get("/admin/notifications", headers=admin_headers, params={"unread_only": True}).json()[0]["order_id"] == placed_order

    r = client.post(f"/admin/orders/{placed_order}/accept", headers=admin_headers)
    assert r.json() == {"id": placed_order, "status": "Shipped"}
    assert mongo["order"].find_one({"_id": ObjectId(placed_order)})["status"] == "Shipped"
    assert client.get("/admin/notifications", headers=admin_headers, params={"unread_only": True}).json() == []

    mine = client.get("/me/notifications", headers=user_headers).json()
    assert [n["type"] for n in mine] == ["order_accepted"]
    assert client.post(f"/me/notifications/{mine[0]['id']}/read", headers=user_headers).json() == {"read": True}

    assert client.post(f"/admin/orders/{placed_order}/accept", headers=admin_headers).status_code == 400


def test_admin_rejects_order(client, user_headers, admin_headers, placed_order, mongo):
    r = client.post(f"/admin/orders/{placed_order}/reject", headers=admin_headers, json={"reason": "Out of stock"})
    assert r.json()["status"] == "Cancelled"
    order = mongo["order"].find_one({"_id": ObjectId(placed_order)})
    assert order["cancellation_reason"] == "Out of stock"

    mine = client.get("/me/notifications", headers=user_headers).json()
    assert mine[0]["type"] == "order_rejected"
    assert "Out of stock" in mine[0]["message"]


def test_admin_order_listing_and_status_filter(client, admin_headers, placed_order):
    assert [o["id"] for o in client.get("/admin/orders", headers=admin_headers).json()] == [placed_order]
    assert client.get("/admin/orders", headers=admin_headers, params={"status": "Shipped"}).json() == []
    bad = client.patch(f"/admin/orders/{placed_order}/status", headers=admin_headers, json={"status": "Lost"})
    assert bad.status_code == 422


def test_admin_status_patch(client, admin_headers, placed_order, mongo):
    r = client.patch(f"/admin/orders/{placed_order}/status", headers=admin_headers, json={"status": "Delivered"})
    assert r.json() == {"id": placed_order, "status": "Delivered"}
    assert mongo["order"].find_one({"_id": ObjectId(placed_order)})["status"] == "Delivered"

    for missing in ("not-an-id", "65f0c0ffee0123456789abcd"):
        r = client.patch(f"/admin/orders/{missing}/status", headers=admin_headers, json={"status": "Shipped"})
        assert r.status_code == 404


def test_admin_notification_read_endpoints(client, admin_headers, placed_order):
    notes = client.get("/admin/notifications", headers=admin_headers).json()
    assert client.post(f"/admin/notifications/{notes[0]['id']}/read", headers=admin_headers).json() == {"read": True}
    assert client.post("/admin/notifications/read-all", headers=admin_headers).json() == {"updated": 0}
    assert client.post("/admin/notifications/65f0c0ffee0123456789abcd/read", headers=admin_headers).status_code == 404


def test_admin_dashboard(client, admin_headers, placed_order):
    client.patch(f"/admin/orders/{placed_order}/status", headers=admin_headers, json={"status": "Delivered"})
    stats = client.get("/admin/dashboard", headers=admin_headers).json()
    assert stats["total_revenue"] == 170.0
    assert stats["sales_count"] == 1
    assert stats["users_count"] == 1
    assert stats["products_count"] == 8
    assert stats["monthly_sales"][-1]["sales"] == 1
    assert stats["category_sales"] == [{"name": "Tshirts", "sales": 2}, {"name": "Shoes", "sales": 1}]


def test_admin_users_list(client, admin_headers, user_headers):
    users = client.get("/admin/users", headers=admin_headers).json()
    assert {u["email"] for u in users} == {main.ADMIN_EMAIL, "ravi@acoof.com"}
    assert all("password_hash" not in u and "cart" not in u for u in users)
