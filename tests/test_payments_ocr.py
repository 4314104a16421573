import pytest
from sqlalchemy.orm.exc import StaleDataError

from conftest import PNG_BYTES

from atelier.database import SessionLocal
from atelier.domain.payments.schemas import PaymentCreate, ReceiptSubmitRequest
from atelier.domain.payments.service import PaymentService
from atelier.models import User
from atelier.models_order import Order, Payment
from atelier.shared.errors import ValidationError


@pytest.fixture
def order_id(client, admin, customer, catalog):
    resp = client.post(
        "/api/orders",
        json={
            "user": customer["id"],
            "address": "Carrera 7 # 40-10",
            "items": [{"kind": "service", "serviceId": catalog["service_id"], "details": "Closet", "value": 300}],
        },
        headers=admin["headers"],
    )
    assert resp.status_code == 201
    order = resp.json()["order"]
    assert order["status"] == "pending"
    return order["id"]


def direct_payment(order_id, amount):
    return PaymentCreate(order_id=order_id, amount=amount, paid_at="2026-01-05T10:00:00", method="efectivo", status="aprobado")


def upload_receipt(client, order_id, headers):
    return client.post(
        f"/api/orders/{order_id}/payments/ocr",
        files={"payment_image": ("recibo.png", PNG_BYTES, "image/png")},
        headers=headers,
    )


class TestReceiptPreview:
    def test_preview_projects_balance_without_saving(self, client, customer, order_id, ocr_text):
        ocr_text["text"] = "Transferencia exitosa\nMonto transferido $150"

        resp = upload_receipt(client, order_id, customer["headers"])
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["current"] == {"total": 300, "paid": 0, "restante": 300}
        assert body["detectedAmount"] == 150
        assert body["projected"] == {"amountToPay": 150, "restanteAfter": 150}
        assert body["receipt"]["receiptUrl"]
        assert "150" in body["receipt"]["ocrText"]

        ledger = client.get(f"/api/payments/{order_id}", headers=customer["headers"]).json()
        assert ledger["payments"] == []

    def test_no_amount_detected(self, client, customer, order_id, ocr_text):
        ocr_text["text"] = "sin monto"

        resp = upload_receipt(client, order_id, customer["headers"])
        assert resp.status_code == 422
        assert resp.json()["ocrText"] == "sin monto"

    def test_image_is_required(self, client, customer, order_id, ocr_text):
        resp = client.post(f"/api/orders/{order_id}/payments/ocr", headers=customer["headers"])
        assert resp.status_code == 400

    def test_only_owner_or_staff(self, client, other_customer, order_id, ocr_text):
        ocr_text["text"] = "Monto $150"
        assert upload_receipt(client, order_id, other_customer["headers"]).status_code == 403

    def test_unknown_order(self, client, customer, ocr_text):
        ocr_text["text"] = "Monto $150"
        assert upload_receipt(client, 999, customer["headers"]).status_code == 404


class TestReceiptSubmit:
    def test_submit_creates_pending_payment(self, client, admin, customer, order_id):
        resp = client.post(
            f"/api/orders/{order_id}/payments/ocr/submit",
            json={"amount": 150, "receiptUrl": "receipts/1/r.png", "ocrText": "Monto $150"},
            headers=customer["headers"],
        )
        assert resp.status_code == 201
        payment = resp.json()["payment"]
        assert payment["status"] == "pendiente"
        assert payment["method"] == "comprobante"
        assert payment["amount"] == 150

        order = client.get(f"/api/orders/{order_id}", headers=customer["headers"]).json()
        assert order["paid"] == 0
        assert order["status"] == "pending"

        # Approval by staff is what moves the order forward
        resp = client.put(
            f"/api/payments/{order_id}/{payment['id']}",
            json={"status": "aprobado"},
            headers=admin["headers"],
        )
        assert resp.status_code == 200

        order = client.get(f"/api/orders/{order_id}", headers=customer["headers"]).json()
        assert order["paid"] == 150
        assert order["remaining"] == 150
        assert order["status"] == "in_progress"
        assert order["productionStartedAt"] is not None

    @pytest.mark.parametrize("amount", [0, -10, None])
    def test_invalid_amount(self, client, customer, order_id, amount):
        resp = client.post(
            f"/api/orders/{order_id}/payments/ocr/submit", json={"amount": amount}, headers=customer["headers"]
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("amount", [float("inf"), float("nan")])
    def test_non_finite_amount_is_rejected(self, db, customer, order_id, amount):
        service = PaymentService(db)
        user = db.get(User, customer["id"])

        with pytest.raises(ValidationError):
            service.submit_receipt(order_id, user, ReceiptSubmitRequest(amount=amount))
        with pytest.raises(ValidationError):
            service.create_payment(direct_payment(order_id, amount))
        assert db.query(Payment).count() == 0


class TestDirectPayments:
    def test_create_update_delete(self, client, admin, customer, order_id):
        resp = client.post(
            "/api/payments",
            json={
                "orderId": order_id,
                "amount": 300,
                "paidAt": "2026-01-05T10:00:00Z",
                "method": "transferencia",
                "status": "Aprobado",
            },
            headers=admin["headers"],
        )
        assert resp.status_code == 201
        payment_id = resp.json()["id"]

        order = client.get(f"/api/orders/{order_id}", headers=admin["headers"]).json()
        assert order["status"] == "completed"
        assert order["paymentStatus"] == "paid"

        ledger = client.get(f"/api/payments/{order_id}", headers=customer["headers"]).json()
        assert ledger["remaining"] == 0
        assert ledger["payments"][0]["remainingAfter"] == 0

        assert client.delete(f"/api/payments/{order_id}/{payment_id}", headers=admin["headers"]).status_code == 204
        order = client.get(f"/api/orders/{order_id}", headers=admin["headers"]).json()
        assert order["status"] == "pending"
        assert order["payments"] == []

    def test_missing_fields(self, client, admin, order_id):
        resp = client.post("/api/payments", json={"orderId": order_id, "amount": 100}, headers=admin["headers"])
        assert resp.status_code == 400
        assert resp.json()["detail"] == "orderId, amount, paidAt, method, status are required"

    def test_customers_cannot_record_payments(self, client, customer, order_id):
        resp = client.post(
            "/api/payments",
            json={"orderId": order_id, "amount": 1, "paidAt": "2026-01-05", "method": "x", "status": "aprobado"},
            headers=customer["headers"],
        )
        assert resp.status_code == 403


class TestConcurrentWrites:
    def test_write_on_stale_order_copy_fails(self, db, order_id):
        other = SessionLocal()
        try:
            loaded_version = other.get(Order, order_id).version

            PaymentService(db).create_payment(direct_payment(order_id, 100))

            with pytest.raises(StaleDataError):
                PaymentService(other).create_payment(direct_payment(order_id, 50))
            other.rollback()
        finally:
            other.close()

        db.expire_all()
        order = db.get(Order, order_id)
        assert [p.amount for p in order.payments] == [100]
        assert order.version == loaded_version + 1

    def test_stale_write_is_reported_as_conflict(self, client, admin, order_id, monkeypatch):
        def lose_race(self, data):
            raise StaleDataError("UPDATE statement on table 'orders' expected to update 1 row(s); 0 were matched.")

        monkeypatch.setattr(PaymentService, "create_payment", lose_race)
        resp = client.post(
            "/api/payments",
            json={"orderId": order_id, "amount": 10, "paidAt": "2026-01-05T10:00:00Z", "method": "efectivo", "status": "aprobado"},
            headers=admin["headers"],
        )
        assert resp.status_code == 409
        assert "modified by another request" in resp.json()["detail"]
