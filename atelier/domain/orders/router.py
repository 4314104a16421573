"""Order router - FastAPI endpoints for checkout, orders, attachments and reviews"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_permission
from ...database import get_db
from ...models import User
from .schemas import (
    AdminCheckoutRequest,
    OrderResponse,
    OrderSummary,
    OrderUpdate,
    ReviewCreate,
    ReviewResponse,
    SelfCheckoutRequest,
)
from .service import OrderService, build_order_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db)


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("", status_code=201)
async def create_order(
    data: AdminCheckoutRequest,
    current_user: User = Depends(require_permission("orders", "create")),
    service: OrderService = Depends(get_order_service),
):
    """Create an order on behalf of a customer, optionally with a deposit"""
    order = service.create_admin_order(data, current_user)
    return {"ok": True, "order": build_order_response(order)}


@router.post("/mine", status_code=201)
async def create_my_order(
    data: SelfCheckoutRequest,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Checkout for the authenticated customer"""
    order = service.create_my_order(data, current_user)
    return {"ok": True, "order": build_order_response(order)}


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    current_user: User = Depends(require_permission("orders", "view")),
    service: OrderService = Depends(get_order_service),
):
    """Orders with an outstanding balance"""
    return service.list_open_orders()


@router.get("/mine")
async def list_my_orders(
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    orders: list[OrderSummary] = service.list_my_orders(current_user)
    return {"ok": True, "orders": orders}


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.get_order_for(order_id, current_user)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    data: OrderUpdate,
    current_user: User = Depends(require_permission("orders", "update")),
    service: OrderService = Depends(get_order_service),
):
    """Update address, status or delivery date"""
    return build_order_response(service.update_order(order_id, data))


# ============================================================================
# ATTACHMENTS
# ============================================================================


@router.post("/{order_id}/attachments")
async def add_attachments(
    order_id: int,
    product_images: list[UploadFile] = File(default=[]),
    item_id: Optional[int] = Form(default=None),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Upload product images for an order (owner or orders:update)"""
    files = [(await f.read(), f.filename, f.content_type) for f in product_images]
    order = service.add_attachments(order_id, current_user, files, item_id)
    return {"ok": True, "order": build_order_response(order)}


# ============================================================================
# REVIEWS
# ============================================================================


@router.post("/{order_id}/reviews", status_code=201)
async def create_review(
    order_id: int,
    data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    review = service.create_review(order_id, current_user, data)
    return {"ok": True, "review": ReviewResponse.model_validate(review)}


@router.get("/{order_id}/reviews")
async def list_reviews(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    reviews = service.list_reviews(order_id, current_user)
    return {"ok": True, "reviews": [ReviewResponse.model_validate(r) for r in reviews]}
