from jose import jwt

from checkout.errors import ProviderError
from checkout.models import Order, PaymentRecord


def test_create_order(client, db):
    response = client.post("/api/orders", json={"items": [
        {"title": "Air Jordan 1 Chicago", "unit_price_cents": 50000, "quantity": 2},
        {"title": "Dunk Low Panda", "unit_price_cents": 30000, "quantity": 1},
    ]})

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "created"
    assert data["total_cents"] == 130000

    order = db.get(Order, data["order_id"])
    assert order is not None
    assert [i.title for i in order.items] == ["Air Jordan 1 Chicago", "Dunk Low Panda"]


def test_create_order_requires_items(client):
    assert client.post("/api/orders", json={"items": []}).status_code == 422
    assert client.post("/api/orders", json={"items": [
        {"title": "Yeezy", "unit_price_cents": 100, "quantity": 0},
    ]}).status_code == 422


def test_issue_preference(client, db, mp_client, make_order):
    make_order("ORD-1", [
        ("Air Jordan 1 Chicago", 50000, 2),
        ("Dunk Low Panda", 30000, 1),
    ])
    mp_client.create_preference.return_value = {
        "id": "pref-123",
        "init_point": "https://www.mercadopago.com.mx/checkout?pref_id=pref-123",
    }

    response = client.post("/api/checkout/preference", json={"order_id": "ORD-1"})

    assert response.status_code == 200
    assert response.json()["preference_id"] == "pref-123"
    assert response.json()["init_point"].endswith("pref-123")

    body = mp_client.create_preference.call_args.args[0]
    assert [i["id"] for i in body["items"]] == ["ORD-1-0", "ORD-1-1"]
    assert [i["unit_price"] for i in body["items"]] == [500.00, 300.00]
    assert [i["quantity"] for i in body["items"]] == [2, 1]
    assert {i["currency_id"] for i in body["items"]} == {"MXN"}
    assert body["external_reference"] == "ORD-1"
    assert body["auto_return"] == "approved"
    assert body["back_urls"]["success"] == "https://shop.example/checkout/success"
    assert body["notification_url"] == "https://shop.example/api/mercadopago/webhook"

    db.expire_all()
    order = db.get(Order, "ORD-1")
    assert order.status == "pending_payment"
    assert order.preference_id == "pref-123"


def test_issue_preference_without_items_is_not_found(client, db, mp_client, make_order):
    make_order("ORD-EMPTY", [])

    response = client.post("/api/checkout/preference", json={"order_id": "ORD-EMPTY"})

    assert response.status_code == 404
    mp_client.create_preference.assert_not_awaited()


def test_issue_preference_provider_error_leaves_order_untouched(client, db, mp_client, make_order):
    make_order("ORD-2", [("Air Max 90", 25000, 1)])
    mp_client.create_preference.side_effect = ProviderError("Mercado Pago unavailable", 503)

    response = client.post("/api/checkout/preference", json={"order_id": "ORD-2"})

    assert response.status_code == 502
    db.expire_all()
    order = db.get(Order, "ORD-2")
    assert order.status == "created"
    assert order.preference_id is None


def test_admin_order_lookup(client, db, settings, make_order):
    make_order("ORD-3", [("Samba OG", 21000, 1)], status="paid")
    db.add(PaymentRecord(payment_id="42", order_id="ORD-3", status="approved",
                         amount_cents=21000, currency="MXN"))
    db.commit()
    token = jwt.encode({"sub": "admin"}, settings.jwt_secret, algorithm="HS256")

    response = client.get("/api/admin/orders/ORD-3", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "paid"
    assert data["items"] == [{"title": "Samba OG", "unit_price_cents": 21000, "quantity": 1}]
    assert [p["payment_id"] for p in data["payments"]] == ["42"]


def test_admin_order_lookup_rejects_bad_token(client, db, make_order):
    make_order("ORD-4", [("Gel-Kayano 14", 32000, 1)])
    token = jwt.encode({"sub": "admin"}, "some-other-secret", algorithm="HS256")

    response = client.get("/api/admin/orders/ORD-4", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401

    response = client.get("/api/admin/orders/ORD-4", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401


def test_admin_order_lookup_unknown_order(client, settings):
    token = jwt.encode({"sub": "admin"}, settings.jwt_secret, algorithm="HS256")
    response = client.get("/api/admin/orders/nope", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 404


def test_issue_preference_incomplete_provider_response(client, db, mp_client, make_order):
    make_order("ORD-5", [("Air Max 1", 27000, 1)])
    mp_client.create_preference.return_value = {"id": "pref-no-link"}

    response = client.post("/api/checkout/preference", json={"order_id": "ORD-5"})

    assert response.status_code == 502
    db.expire_all()
    order = db.get(Order, "ORD-5")
    assert order.status == "created"
    assert order.preference_id is None
