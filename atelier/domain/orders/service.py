"""Order service - checkout, order views, attachments and reviews"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import ensure_owner_or_permission
from ...config import DEPOSIT_THRESHOLD, PRODUCTION_DAYS
from ...models import User
from ...models_order import (
    APPROVED_PAYMENT_STATUS,
    Attachment,
    ItemKind,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    Review,
)
from ...services.storage import store_file
from ...shared.errors import ConflictError, NotFoundError, ValidationError
from ...shared.validators import to_utc_naive
from .repository import OrderRepository
from .schemas import (
    AdminCheckoutRequest,
    OrderItemIn,
    OrderResponse,
    OrderSummary,
    OrderUpdate,
    ReviewCreate,
    SelfCheckoutRequest,
)
from .status import apply_payment_status, derive_status
from .totals import compute_totals

logger = logging.getLogger(__name__)


def initial_payment_method(method: Optional[str]) -> str:
    """Checkout deposits are recorded as offline cash or offline transfer"""
    if method in ("cash", "offline_cash"):
        return "offline_cash"
    return "offline_transfer"


def days_left(started_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days left in the production window, never negative"""
    if started_at is None:
        return None
    remaining = started_at + timedelta(days=PRODUCTION_DAYS) - (now or datetime.utcnow())
    return max(math.ceil(remaining.total_seconds() / 86400), 0)


def build_order_response(order: Order) -> OrderResponse:
    totals = compute_totals(order)
    initial = order.initial_payment_amount or 0
    return OrderResponse.model_validate(order).model_copy(
        update={
            "total": totals.total,
            "paid": totals.paid,
            "remaining": totals.remaining,
            "needs_deposit": initial < totals.total * DEPOSIT_THRESHOLD,
            "deposit_percentage": (initial / totals.total) * 100 if totals.total > 0 else 0,
            "can_start_production": totals.paid >= totals.total * DEPOSIT_THRESHOLD,
            "payment_status": "paid" if totals.remaining <= 0 else "pending",
        }
    )


def _order_name(order: Order) -> str:
    first = order.items[0] if order.items else None
    if first is not None:
        if first.service is not None and first.service.name:
            return first.service.name
        if first.product is not None and first.product.name:
            return first.product.name
    return "Pedido"


def _normalize_quantity(quantity: Optional[float]) -> int:
    if quantity is None or not math.isfinite(quantity) or quantity <= 0:
        return 1
    return max(int(quantity), 1)


class OrderService:
    """Service layer for order business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def build_items(self, items: list[OrderItemIn], prefer_catalog_images: bool) -> list[OrderItem]:
        """Turn checkout lines into OrderItems, checking catalog references"""
        product_ids = {i.product_id for i in items if i.product_id}
        service_ids = {i.service_id for i in items if i.service_id}
        products = self.repo.get_products(self.db, product_ids)
        services = self.repo.get_services(self.db, service_ids)

        unknown = (product_ids - products.keys()) or (service_ids - services.keys())
        if unknown:
            raise ValidationError(f"Unknown catalog reference(s): {sorted(unknown)}")

        lines = []
        for item in items:
            kind = item.kind or (ItemKind.PRODUCT if item.product_id else ItemKind.SERVICE)
            line = OrderItem(
                kind=kind.value,
                details=item.details,
                quantity=_normalize_quantity(item.quantity),
                value=item.value,
            )
            if kind == ItemKind.PRODUCT:
                if not item.product_id:
                    raise ValidationError("productId is required for product items")
                line.product_id = item.product_id
                catalog_image = products[item.product_id].image_url
            else:
                line.service_id = item.service_id
                catalog_image = services[item.service_id].image_url if item.service_id else None

            if prefer_catalog_images:
                line.image_url = catalog_image or None
            else:
                line.image_url = item.image_url or catalog_image
            lines.append(line)
        return lines

    def create_order(
        self,
        user_id: int,
        items: list[OrderItem],
        address: Optional[str] = None,
        started_at: Optional[datetime] = None,
        initial_amount: float = 0,
        initial_method: Optional[str] = None,
        registered_by: Optional[int] = None,
        quotation_id: Optional[int] = None,
        commit: bool = True,
    ) -> Order:
        """
        Persist a new order. A positive initial amount is recorded as an
        approved payment and drives the starting status; without one the
        order starts pending.
        """
        now = datetime.utcnow()
        order = Order(
            user_id=user_id,
            quotation_id=quotation_id,
            address=address,
            started_at=to_utc_naive(started_at) if started_at else now,
            status=OrderStatus.PENDING.value,
            items=items,
        )

        if initial_amount and initial_amount > 0:
            method = initial_payment_method(initial_method)
            order.initial_payment_amount = initial_amount
            order.initial_payment_method = method
            order.initial_payment_registered_at = now
            order.initial_payment_registered_by = registered_by
            order.payments.append(
                Payment(amount=initial_amount, paid_at=now, method=method, status=APPROVED_PAYMENT_STATUS)
            )

        self.repo.add_order(self.db, order)

        if order.payments:
            apply_payment_status(order, now)
        else:
            totals = compute_totals(order)
            order.status = derive_status(totals.total, totals.paid, payments_recorded=False).value

        logger.info(f"🧾 Order {order.id} created for user {user_id} with status {order.status}")
        if commit:
            return self.repo.save(self.db, order)
        return order

    def create_admin_order(self, data: AdminCheckoutRequest, admin: User) -> Order:
        if not data.user_id or not data.items:
            raise ValidationError("user and items are required")
        if not self.repo.get_user(self.db, data.user_id):
            raise NotFoundError("User not found")

        initial = data.initial_payment
        return self.create_order(
            user_id=data.user_id,
            items=self.build_items(data.items, prefer_catalog_images=False),
            address=data.address,
            started_at=data.started_at,
            initial_amount=initial.amount if initial else 0,
            initial_method=initial.method if initial else None,
            registered_by=admin.id,
        )

    def create_my_order(self, data: SelfCheckoutRequest, user: User) -> Order:
        if not data.items:
            raise ValidationError("items is required and must be a non-empty array")

        return self.create_order(
            user_id=user.id,
            items=self.build_items(data.items, prefer_catalog_images=True),
            address=data.address,
            quotation_id=data.quotation_id,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = self.repo.get_order(self.db, order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_order_for(self, order_id: int, user: User) -> OrderResponse:
        order = self.get_order(order_id)
        ensure_owner_or_permission(user, order.user_id, "orders", "view")
        return build_order_response(order)

    def list_open_orders(self) -> list[OrderResponse]:
        """Orders that still have a balance to pay"""
        responses = [build_order_response(o) for o in self.repo.list_orders(self.db)]
        return [r for r in responses if r.remaining > 0]

    def list_my_orders(self, user: User, now: Optional[datetime] = None) -> list[OrderSummary]:
        summaries = []
        for order in self.repo.list_user_orders(self.db, user.id):
            response = build_order_response(order)
            summaries.append(
                OrderSummary(
                    id=order.id,
                    name=_order_name(order),
                    status=order.status,
                    total=response.total,
                    paid=response.paid,
                    remaining=response.remaining,
                    days_left=days_left(order.started_at, now),
                    needs_deposit=response.needs_deposit,
                    deposit_percentage=response.deposit_percentage,
                    initial_payment_amount=order.initial_payment_amount or 0,
                    started_at=order.started_at,
                )
            )
        return summaries

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_order(self, order_id: int, data: OrderUpdate) -> Order:
        order = self.get_order(order_id)

        if data.address is not None:
            order.address = data.address
        if data.delivered_at is not None:
            order.delivered_at = to_utc_naive(data.delivered_at)
        if data.status is not None and data.status.value != order.status:
            logger.info(f"Order {order.id} status {order.status} -> {data.status.value} (manual)")
            order.status = data.status.value

        return self.repo.save(self.db, order)

    def add_attachments(
        self,
        order_id: int,
        user: User,
        files: list[tuple[bytes, Optional[str], Optional[str]]],
        item_id: Optional[int] = None,
    ) -> Order:
        """Store uploaded images and attach them to the order"""
        order = self.get_order(order_id)
        ensure_owner_or_permission(user, order.user_id, "orders", "update")

        if not files:
            raise ValidationError("No files uploaded")
        if item_id is not None and item_id not in {i.id for i in order.items}:
            raise ValidationError("item_id does not belong to this order")

        now = datetime.utcnow()
        attachments = []
        for contents, filename, content_type in files:
            url = store_file(contents, f"orders/{order.id}", filename, content_type)
            attachments.append(
                Attachment(url=url, type="product_image", uploaded_by=user.id, uploaded_at=now, item_id=item_id)
            )

        logger.info(f"📎 {len(attachments)} attachment(s) added to order {order.id}")
        return self.repo.add_attachments(self.db, order, attachments)

    def create_review(self, order_id: int, user: User, data: ReviewCreate) -> Review:
        if not math.isfinite(data.rating) or data.rating < 1 or data.rating > 5 or data.rating != int(data.rating):
            raise ValidationError("rating must be a number between 1 and 5")

        order = self.get_order(order_id)
        ensure_owner_or_permission(user, order.user_id, "orders", "update")

        if self.repo.get_review(self.db, order.id, user.id):
            logger.warning(f"Duplicate review by user {user.id} on order {order.id}")
            raise ConflictError("Review already exists for this order")

        review = Review(user_id=user.id, rating=int(data.rating), comment=data.comment)
        order.reviews.append(review)
        order.touch()
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race against another review by the same user
            self.db.rollback()
            logger.warning(f"Duplicate review by user {user.id} on order {order_id}: {e}")
            raise ConflictError("Review already exists for this order") from e

        self.db.refresh(review)
        return review

    def list_reviews(self, order_id: int, user: User) -> list[Review]:
        order = self.get_order(order_id)
        ensure_owner_or_permission(user, order.user_id, "orders", "view")
        return list(order.reviews)
