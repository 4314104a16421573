from datetime import datetime

from conftest import PNG_BYTES

from atelier.domain.orders.service import days_left, initial_payment_method


def admin_checkout(client, admin, customer, catalog, **extra):
    payload = {
        "user": customer["id"],
        "address": "Calle 80 # 12-30",
        "items": [
            {"productId": catalog["chair_id"], "quantity": 4, "value": 400},
            {"kind": "service", "serviceId": catalog["repair_id"], "value": 600},
        ],
        **extra,
    }
    return client.post("/api/orders", json=payload, headers=admin["headers"])


class TestCheckout:
    def test_initial_deposit_drives_status(self, client, admin, customer, catalog):
        resp = admin_checkout(client, admin, customer, catalog, initialPayment={"amount": 300, "method": "cash"})
        assert resp.status_code == 201
        order = resp.json()["order"]
        assert order["total"] == 1000
        assert order["paid"] == 300
        assert order["status"] == "in_progress"
        assert order["productionStartedAt"] is not None
        assert order["initialPaymentMethod"] == "offline_cash"
        assert order["payments"][0]["status"] == "aprobado"
        assert order["canStartProduction"] is True
        assert order["needsDeposit"] is False

    def test_small_deposit_is_partial(self, client, admin, customer, catalog):
        order = admin_checkout(client, admin, customer, catalog, initialPayment={"amount": 100}).json()["order"]
        assert order["status"] == "partial_deposit"
        assert order["initialPaymentMethod"] == "offline_transfer"
        assert order["needsDeposit"] is True
        assert order["depositPercentage"] == 10

    def test_without_deposit_stays_pending(self, client, admin, customer, catalog):
        order = admin_checkout(client, admin, customer, catalog).json()["order"]
        assert order["status"] == "pending"
        assert order["payments"] == []

    def test_unknown_catalog_reference(self, client, admin, customer, catalog):
        resp = client.post(
            "/api/orders",
            json={"user": customer["id"], "items": [{"productId": 999, "value": 10}]},
            headers=admin["headers"],
        )
        assert resp.status_code == 400

    def test_customers_cannot_use_admin_checkout(self, client, customer, catalog):
        assert admin_checkout(client, customer, customer, catalog).status_code == 403

    def test_self_checkout_uses_catalog_images(self, client, customer, catalog):
        resp = client.post(
            "/api/orders/mine",
            json={"items": [{"productId": catalog["chair_id"], "imageUrl": "https://evil.test/x.png", "value": 100}]},
            headers=customer["headers"],
        )
        assert resp.status_code == 201
        assert resp.json()["order"]["items"][0]["imageUrl"] == "https://cdn.test/silla.png"

    def test_self_checkout_requires_items(self, client, customer):
        assert client.post("/api/orders/mine", json={"items": []}, headers=customer["headers"]).status_code == 400


class TestOrderViews:
    def test_my_orders_summary(self, client, admin, customer, catalog):
        admin_checkout(client, admin, customer, catalog, initialPayment={"amount": 500})

        orders = client.get("/api/orders/mine", headers=customer["headers"]).json()["orders"]
        assert len(orders) == 1
        summary = orders[0]
        assert summary["name"] == "Silla"
        assert summary["remaining"] == 500
        assert summary["initialPaymentAmount"] == 500
        assert 0 <= summary["daysLeft"] <= 15

    def test_open_orders_exclude_settled(self, client, admin, customer, catalog):
        admin_checkout(client, admin, customer, catalog, initialPayment={"amount": 1000})
        admin_checkout(client, admin, customer, catalog)

        orders = client.get("/api/orders", headers=admin["headers"]).json()
        assert [o["remaining"] for o in orders] == [1000]

    def test_order_visibility(self, client, admin, customer, other_customer, catalog):
        order_id = admin_checkout(client, admin, customer, catalog).json()["order"]["id"]
        assert client.get(f"/api/orders/{order_id}", headers=customer["headers"]).status_code == 200
        assert client.get(f"/api/orders/{order_id}", headers=other_customer["headers"]).status_code == 403
        assert client.get("/api/orders/999", headers=admin["headers"]).status_code == 404

    def test_admin_update(self, client, admin, customer, catalog):
        order_id = admin_checkout(client, admin, customer, catalog).json()["order"]["id"]
        resp = client.patch(
            f"/api/orders/{order_id}",
            json={"status": "cancelled", "deliveredAt": "2026-03-01T12:00:00Z"},
            headers=admin["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["deliveredAt"] == "2026-03-01T12:00:00"


class TestAttachments:
    def test_upload_images(self, client, admin, customer, catalog):
        order = admin_checkout(client, admin, customer, catalog).json()["order"]
        item_id = order["items"][0]["id"]

        resp = client.post(
            f"/api/orders/{order['id']}/attachments",
            files=[
                ("product_images", ("a.png", PNG_BYTES, "image/png")),
                ("product_images", ("b.png", PNG_BYTES, "image/png")),
            ],
            data={"item_id": str(item_id)},
            headers=customer["headers"],
        )
        assert resp.status_code == 200
        attachments = resp.json()["order"]["attachments"]
        assert len(attachments) == 2
        assert {a["itemId"] for a in attachments} == {item_id}
        assert all(a["uploadedBy"] == customer["id"] for a in attachments)

    def test_rejects_non_images(self, client, admin, customer, catalog):
        order_id = admin_checkout(client, admin, customer, catalog).json()["order"]["id"]
        resp = client.post(
            f"/api/orders/{order_id}/attachments",
            files=[("product_images", ("notes.txt", b"hello", "text/plain"))],
            headers=customer["headers"],
        )
        assert resp.status_code == 400

    def test_item_must_belong_to_order(self, client, admin, customer, catalog):
        order_id = admin_checkout(client, admin, customer, catalog).json()["order"]["id"]
        resp = client.post(
            f"/api/orders/{order_id}/attachments",
            files=[("product_images", ("a.png", PNG_BYTES, "image/png"))],
            data={"item_id": "999"},
            headers=customer["headers"],
        )
        assert resp.status_code == 400


def test_initial_payment_method_mapping():
    assert initial_payment_method("cash") == "offline_cash"
    assert initial_payment_method("offline_cash") == "offline_cash"
    assert initial_payment_method("transfer") == "offline_transfer"
    assert initial_payment_method(None) == "offline_transfer"


def test_days_left_never_negative():
    started = datetime(2026, 1, 1)
    assert days_left(started, datetime(2026, 1, 1)) == 15
    assert days_left(started, datetime(2026, 1, 10, 12)) == 6
    assert days_left(started, datetime(2026, 3, 1)) == 0
    assert days_left(None) is None
