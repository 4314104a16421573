"""Quotation router - cart, quotation lifecycle, decision and chat messages"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_permission
from ...database import get_db
from ...email_service import send_quotation_decision_notification
from ...models import User
from ...services.template_service import TemplateRenderer, get_template_renderer
from .schemas import (
    AdminCreateRequest,
    CartItemAdd,
    CartQuantityUpdate,
    DecisionRequest,
    ItemIn,
    ItemUpdate,
    MessageCreate,
    MessageResponse,
    Pagination,
    QuickCreateRequest,
    SetQuoteRequest,
    StatusUpdate,
)
from .service import QuotationService, build_quotation_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quotations", tags=["Quotations"])


def get_quotation_service(db: Session = Depends(get_db)) -> QuotationService:
    """Dependency injection for QuotationService"""
    return QuotationService(db)


# ============================================================================
# CART
# ============================================================================


@router.get("/mine")
async def list_my_quotations(
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    quotations = service.list_mine(current_user)
    return {"ok": True, "quotations": [build_quotation_response(q) for q in quotations]}


@router.post("/cart")
@router.get("/cart")
async def get_cart(
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    """Current cart, created on first use"""
    return {"ok": True, "cart": build_quotation_response(service.get_or_create_cart(current_user))}


@router.post("/cart/items", status_code=201)
async def add_item_to_cart(
    data: CartItemAdd,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    cart = service.add_to_cart(current_user, data)
    return {"ok": True, "cart": build_quotation_response(cart), "message": "Product added to cart"}


@router.post("/cart/custom", status_code=201)
async def add_custom_item_to_cart(
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    color: Optional[str] = Form(default=None),
    quantity: Optional[int] = Form(default=None),
    size: Optional[str] = Form(default=None),
    wood_type: Optional[str] = Form(default=None, alias="woodType"),
    reference_image: Optional[UploadFile] = File(default=None, alias="referenceImage"),
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    """Add a made-to-measure piece, optionally with a reference image"""
    image = None
    if reference_image is not None and reference_image.filename:
        image = (await reference_image.read(), reference_image.filename, reference_image.content_type)

    cart = service.add_custom_to_cart(
        current_user, name, description, color, quantity, size, wood_type, image
    )
    return {"ok": True, "cart": build_quotation_response(cart)}


@router.patch("/cart/items")
async def update_cart_item_quantity(
    data: CartQuantityUpdate,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    cart = service.update_cart_quantity(current_user, data)
    return {"ok": True, "cart": build_quotation_response(cart)}


@router.delete("/cart/items/{item_id}")
async def remove_cart_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    cart = service.remove_cart_item(current_user, item_id)
    return {"ok": True, "cart": build_quotation_response(cart), "message": "Item removed successfully"}


@router.post("/cart/request")
async def request_quotation(
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    """Turn the cart into a quotation request"""
    quotation = service.request_from_cart(current_user)
    return {
        "ok": True,
        "quotation": build_quotation_response(quotation),
        "message": "Quotation requested successfully",
    }


# ============================================================================
# DIRECT CREATION
# ============================================================================


@router.post("/quick", status_code=201)
async def quick_create(
    data: QuickCreateRequest,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    quotation = service.quick_create(current_user, data)
    return {"ok": True, "quotation": build_quotation_response(quotation)}


@router.post("/admin/create", status_code=201)
async def admin_create(
    data: AdminCreateRequest,
    current_user: User = Depends(require_permission("quotations", "create")),
    service: QuotationService = Depends(get_quotation_service),
):
    """Create a quotation on behalf of a customer"""
    quotation = service.admin_create(data)
    return {"ok": True, "quotation": build_quotation_response(quotation)}


# ============================================================================
# QUOTATIONS
# ============================================================================


@router.get("")
async def list_quotations(
    status: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(20),
    current_user: User = Depends(require_permission("quotations", "view")),
    service: QuotationService = Depends(get_quotation_service),
):
    """All quotations, newest first, paginated"""
    quotations, total = service.list_all(status, page, limit)
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    return {
        "ok": True,
        "quotations": [build_quotation_response(q) for q in quotations],
        "pagination": Pagination(total=total, page=page, limit=limit, pages=math.ceil(total / limit)),
    }


@router.get("/{quotation_id}")
async def get_quotation(
    quotation_id: int,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    quotation = service.get_quotation(quotation_id, current_user)
    return {"ok": True, "quotation": build_quotation_response(quotation)}


@router.post("/{quotation_id}/items")
async def add_item(
    quotation_id: int,
    data: ItemIn,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    quotation = service.add_item(quotation_id, current_user, data)
    return {"ok": True, "quotation": build_quotation_response(quotation)}


@router.put("/{quotation_id}/items/{item_id}")
async def update_item(
    quotation_id: int,
    item_id: int,
    data: ItemUpdate,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    quotation = service.update_item(quotation_id, item_id, current_user, data)
    return {"ok": True, "quotation": build_quotation_response(quotation)}


@router.delete("/{quotation_id}/items/{item_id}")
async def remove_item(
    quotation_id: int,
    item_id: int,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    quotation = service.remove_item(quotation_id, item_id, current_user)
    return {
        "ok": True,
        "quotation": build_quotation_response(quotation),
        "message": "Item removed successfully",
    }


@router.post("/{quotation_id}/submit")
async def submit_quotation(
    quotation_id: int,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    quotation = service.submit(quotation_id, current_user)
    return {
        "ok": True,
        "quotation": build_quotation_response(quotation),
        "message": "Quotation submitted successfully",
    }


@router.post("/{quotation_id}/quote")
async def set_quote(
    quotation_id: int,
    data: SetQuoteRequest,
    current_user: User = Depends(require_permission("quotations", "update")),
    service: QuotationService = Depends(get_quotation_service),
):
    """Set item prices and the total estimate"""
    quotation = service.set_quote(quotation_id, data)
    return {"ok": True, "quotation": build_quotation_response(quotation)}


@router.patch("/{quotation_id}/status")
async def set_status(
    quotation_id: int,
    data: StatusUpdate,
    current_user: User = Depends(require_permission("quotations", "update")),
    service: QuotationService = Depends(get_quotation_service),
):
    quotation = service.set_status(quotation_id, data.status)
    return {"ok": True, "quotation": build_quotation_response(quotation)}


@router.post("/{quotation_id}/decision")
async def decide(
    quotation_id: int,
    data: DecisionRequest,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
    renderer: TemplateRenderer = Depends(get_template_renderer),
):
    """Accept (creates an order) or reject a quotation; either way it is deleted"""
    result = service.decide(quotation_id, current_user, data.decision)

    try:
        await send_quotation_decision_notification(
            renderer,
            customer_email=result.customer_email,
            quotation_id=result.quotation_id,
            decision=result.decision,
            total_estimate=result.total_estimate,
            order_id=result.order.id if result.order else None,
        )
    except Exception as email_err:
        logger.error(f"❌ Failed to notify decision on quotation {result.quotation_id}: {email_err}")

    return {
        "ok": True,
        "deleted": True,
        "quotationId": result.quotation_id,
        "decision": result.decision,
        "orderId": result.order.id if result.order else None,
    }


# ============================================================================
# MESSAGES
# ============================================================================


@router.get("/{quotation_id}/messages")
async def list_messages(
    quotation_id: int,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    messages = service.list_messages(quotation_id, current_user)
    return {"ok": True, "messages": [MessageResponse.model_validate(m) for m in messages]}


@router.post("/{quotation_id}/messages", status_code=201)
async def post_message(
    quotation_id: int,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    service: QuotationService = Depends(get_quotation_service),
):
    message = service.post_message(quotation_id, current_user, data.message)
    return {"ok": True, "message": MessageResponse.model_validate(message)}
