"""Payment router - ledger, direct payments and OCR receipt flow"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_permission
from ...database import get_db
from ...models import User
from ...shared.errors import ValidationError
from ..orders.schemas import PaymentResponse
from .schemas import OrderPayments, PaymentCreate, PaymentUpdate, ReceiptPreview, ReceiptSubmitRequest
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


@router.get("/payments")
async def list_payments(
    current_user: User = Depends(require_permission("payments", "view")),
    service: PaymentService = Depends(get_payment_service),
):
    """Every order with its payments and the balance after each one"""
    payments: list[OrderPayments] = service.list_ledgers()
    return {"ok": True, "payments": payments}


@router.get("/payments/{order_id}", response_model=OrderPayments)
async def get_order_payments(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_ledger(order_id, current_user)


@router.post("/payments", status_code=201, response_model=PaymentResponse)
async def create_payment(
    data: PaymentCreate,
    current_user: User = Depends(require_permission("payments", "create")),
    service: PaymentService = Depends(get_payment_service),
):
    return PaymentResponse.model_validate(service.create_payment(data))


@router.put("/payments/{order_id}/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    order_id: int,
    payment_id: int,
    data: PaymentUpdate,
    current_user: User = Depends(require_permission("payments", "update")),
    service: PaymentService = Depends(get_payment_service),
):
    """Partial update; approving a payment here is what moves the order status"""
    return PaymentResponse.model_validate(service.update_payment(order_id, payment_id, data))


@router.delete("/payments/{order_id}/{payment_id}", status_code=204)
async def delete_payment(
    order_id: int,
    payment_id: int,
    current_user: User = Depends(require_permission("payments", "delete")),
    service: PaymentService = Depends(get_payment_service),
):
    service.remove_payment(order_id, payment_id)
    return Response(status_code=204)


# ============================================================================
# OCR RECEIPTS
# ============================================================================


@router.post("/orders/{order_id}/payments/ocr", response_model=ReceiptPreview)
async def preview_receipt(
    order_id: int,
    payment_image: Optional[UploadFile] = File(default=None),
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Detect the paid amount on a receipt image without creating a payment"""
    if payment_image is None:
        raise ValidationError("payment_image file is required")

    contents = await payment_image.read()
    return await service.preview_receipt(
        order_id, current_user, contents, payment_image.filename, payment_image.content_type
    )


@router.post("/orders/{order_id}/payments/ocr/submit", status_code=201)
async def submit_receipt(
    order_id: int,
    data: ReceiptSubmitRequest,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Create the receipt payment with status pendiente"""
    payment = service.submit_receipt(order_id, current_user, data)
    return {"ok": True, "payment": PaymentResponse.model_validate(payment)}
