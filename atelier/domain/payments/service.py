"""Payment service - installment ledger, direct entry and OCR-assisted receipts"""

import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import ensure_owner_or_permission
from ...models import User
from ...models_order import PENDING_PAYMENT_STATUS, Order, Payment
from ...services.ocr_service import extract_text_from_image, parse_amount_from_text
from ...services.storage import store_file
from ...shared.errors import NotFoundError, UnprocessableEntityError, ValidationError
from ...shared.validators import to_utc_naive
from ..orders.schemas import PaymentResponse
from ..orders.status import apply_payment_status
from ..orders.totals import compute_totals, running_balances
from .repository import PaymentRepository
from .schemas import (
    CurrentTotals,
    OrderPayments,
    PaymentCreate,
    PaymentLedgerEntry,
    PaymentUpdate,
    ProjectedPayment,
    ReceiptInfo,
    ReceiptPreview,
    ReceiptSubmitRequest,
)

logger = logging.getLogger(__name__)

RECEIPT_PAYMENT_METHOD = "comprobante"


def build_ledger(order: Order) -> OrderPayments:
    """Totals plus the balance left after each payment"""
    totals = compute_totals(order)
    entries = [
        PaymentLedgerEntry(
            **PaymentResponse.model_validate(payment).model_dump(),
            remaining_after=remaining,
        )
        for payment, remaining in running_balances(order)
    ]
    return OrderPayments(
        order_id=order.id,
        total=totals.total,
        paid=totals.paid,
        remaining=totals.remaining,
        payments=entries,
    )


class PaymentService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()

    def _get_order(self, order_id: int) -> Order:
        order = self.repo.get_order(self.db, order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def _recompute_and_save(self, order: Order) -> Order:
        apply_payment_status(order)
        return self.repo.save(self.db, order)

    def list_ledgers(self) -> list[OrderPayments]:
        return [build_ledger(order) for order in self.repo.list_orders(self.db)]

    def get_ledger(self, order_id: int, user: User) -> OrderPayments:
        order = self._get_order(order_id)
        ensure_owner_or_permission(user, order.user_id, "payments", "view")
        return build_ledger(order)

    def create_payment(self, data: PaymentCreate) -> Payment:
        if not data.order_id or data.amount is None or not data.paid_at or not data.method or not data.status:
            raise ValidationError("orderId, amount, paidAt, method, status are required")
        if not math.isfinite(data.amount):
            raise ValidationError("amount must be a finite number")

        order = self._get_order(data.order_id)
        payment = Payment(
            amount=data.amount,
            paid_at=to_utc_naive(data.paid_at),
            method=data.method.strip(),
            status=data.status.strip(),
            receipt_url=data.receipt_url,
        )
        order.payments.append(payment)
        self._recompute_and_save(order)
        logger.info(f"💰 Payment {payment.id} of {payment.amount} ({payment.status}) added to order {order.id}")
        return payment

    def update_payment(self, order_id: int, payment_id: int, data: PaymentUpdate) -> Payment:
        order = self._get_order(order_id)
        payment = self.repo.find_payment(order, payment_id)
        if not payment:
            raise NotFoundError("Order or payment not found")

        if data.amount is not None:
            if not math.isfinite(data.amount):
                raise ValidationError("amount must be a finite number")
            payment.amount = data.amount
        if data.paid_at is not None:
            payment.paid_at = to_utc_naive(data.paid_at)
        if data.method is not None:
            payment.method = data.method.strip()
        if data.status is not None:
            payment.status = data.status.strip()

        self._recompute_and_save(order)
        return payment

    def remove_payment(self, order_id: int, payment_id: int) -> None:
        order = self._get_order(order_id)
        payment = self.repo.find_payment(order, payment_id)
        if not payment:
            raise NotFoundError("Order or payment not found")

        order.payments.remove(payment)
        self._recompute_and_save(order)
        logger.info(f"Payment {payment_id} removed from order {order_id}")

    # ------------------------------------------------------------------
    # OCR receipts
    # ------------------------------------------------------------------

    async def preview_receipt(
        self,
        order_id: int,
        user: User,
        contents: bytes,
        filename: Optional[str],
        content_type: Optional[str],
    ) -> ReceiptPreview:
        """Read the amount off a receipt image. Nothing is persisted except the image."""
        order = self._get_order(order_id)
        ensure_owner_or_permission(user, order.user_id, "payments", "create")
        totals = compute_totals(order)

        receipt_url = store_file(contents, f"receipts/{order.id}", filename, content_type)
        text = await extract_text_from_image(contents)
        amount = parse_amount_from_text(text)
        if amount is None:
            logger.warning(f"⚠️ No amount detected on receipt for order {order.id}")
            raise UnprocessableEntityError(
                "No se pudo detectar un monto válido en el comprobante", ocrText=text
            )

        return ReceiptPreview(
            order_id=order.id,
            current=CurrentTotals(total=totals.total, paid=totals.paid, remaining=totals.remaining),
            detected_amount=amount,
            projected=ProjectedPayment(amount_to_pay=amount, remaining_after=totals.remaining - amount),
            receipt=ReceiptInfo(receipt_url=receipt_url, ocr_text=text),
        )

    def submit_receipt(self, order_id: int, user: User, data: ReceiptSubmitRequest) -> Payment:
        """Record a receipt payment awaiting approval"""
        if data.amount is None or not data.amount > 0 or not math.isfinite(data.amount):
            raise ValidationError("amount must be a positive number")

        order = self._get_order(order_id)
        ensure_owner_or_permission(user, order.user_id, "payments", "create")

        payment = Payment(
            amount=data.amount,
            paid_at=to_utc_naive(data.paid_at) if data.paid_at else datetime.utcnow(),
            method=(data.method or RECEIPT_PAYMENT_METHOD).strip(),
            status=PENDING_PAYMENT_STATUS,
            receipt_url=data.receipt_url,
            ocr_text=data.ocr_text,
        )
        order.payments.append(payment)
        self._recompute_and_save(order)
        logger.info(f"🧾 Receipt payment {payment.id} of {payment.amount} submitted for order {order.id}")
        return payment
