"""Payment domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ...shared.schemas import CamelModel
from ..orders.schemas import PaymentResponse


class PaymentCreate(CamelModel):
    """Direct payment entry; every field is required"""

    order_id: Optional[int] = None
    amount: Optional[float] = None
    paid_at: Optional[datetime] = None
    method: Optional[str] = None
    status: Optional[str] = None
    receipt_url: Optional[str] = None


class PaymentUpdate(CamelModel):
    amount: Optional[float] = None
    paid_at: Optional[datetime] = None
    method: Optional[str] = None
    status: Optional[str] = None


class ReceiptSubmitRequest(CamelModel):
    """Amount confirmed by the customer after the OCR preview"""

    amount: Optional[float] = None
    paid_at: Optional[datetime] = None
    method: Optional[str] = None
    receipt_url: Optional[str] = None
    ocr_text: Optional[str] = None


class PaymentLedgerEntry(PaymentResponse):
    remaining_after: float


class OrderPayments(CamelModel):
    order_id: int
    total: float
    paid: float
    remaining: float
    payments: list[PaymentLedgerEntry]


class CurrentTotals(CamelModel):
    total: float
    paid: float
    remaining: float = Field(alias="restante")


class ProjectedPayment(CamelModel):
    amount_to_pay: float
    remaining_after: float = Field(alias="restanteAfter")


class ReceiptInfo(CamelModel):
    receipt_url: Optional[str] = None
    ocr_text: str


class ReceiptPreview(CamelModel):
    ok: bool = True
    order_id: int
    current: CurrentTotals
    detected_amount: float
    projected: ProjectedPayment
    receipt: ReceiptInfo
