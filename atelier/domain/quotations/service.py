"""
Quotation service.

A quotation starts life as the customer's cart (one per customer), is
requested, priced by the workshop (quoted) and finally accepted or rejected
by its owner. The decision removes the quotation; acceptance also turns its
items into an order.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import ensure_owner_or_permission
from ...config import DUPLICATE_ORDER_WINDOW_MINUTES, QUOTATION_DEFAULT_SERVICE_ID
from ...models import User
from ...models_order import ItemKind, Order, OrderItem
from ...models_quotation import (
    CatalogItem,
    CustomItem,
    Quotation,
    QuotationItem,
    QuotationItemStatus,
    QuotationMessage,
    QuotationStatus,
)
from ...services.storage import store_file
from ...shared.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..orders.repository import OrderRepository
from ..orders.schemas import UserSummary
from ..orders.service import OrderService
from .repository import QuotationRepository
from .schemas import (
    AdminCreateRequest,
    CartItemAdd,
    CartQuantityUpdate,
    CatalogItemOut,
    CustomItemOut,
    ItemIn,
    ItemUpdate,
    ProductSummary,
    QuickCreateRequest,
    QuotationItemResponse,
    QuotationResponse,
    SetQuoteRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_WOOD_TYPE = "Por definir"
DEFAULT_ORDER_DETAILS = "Sin notas del administrador"
DECISIONS = ("accepted", "rejected")
DECIDABLE_STATUSES = (QuotationStatus.QUOTED.value, QuotationStatus.IN_PROGRESS.value)


@dataclass
class DecisionResult:
    quotation_id: int
    decision: str
    customer_email: str
    total_estimate: float
    order: Optional[Order] = None


def build_item_response(item: QuotationItem) -> QuotationItemResponse:
    spec = item.spec
    if isinstance(spec, CustomItem):
        out = CustomItemOut(
            name=spec.name,
            description=spec.description,
            wood_type=spec.wood_type,
            reference_image=spec.reference_image,
        )
    else:
        out = CatalogItemOut(
            product_id=spec.product_id,
            product=ProductSummary.model_validate(item.product) if item.product else None,
        )
    return QuotationItemResponse(
        id=item.id,
        item=out,
        quantity=item.quantity,
        color=item.color or "",
        size=item.size or "",
        price=item.price or 0,
        admin_notes=item.admin_notes or "",
        item_status=item.item_status,
    )


def build_quotation_response(quotation: Quotation) -> QuotationResponse:
    return QuotationResponse(
        id=quotation.id,
        user_id=quotation.user_id,
        user=UserSummary.model_validate(quotation.user) if quotation.user else None,
        status=quotation.status,
        items=[build_item_response(i) for i in quotation.items],
        total_estimate=quotation.total_estimate or 0,
        admin_notes=quotation.admin_notes,
        created_at=quotation.created_at,
        updated_at=quotation.updated_at,
    )


def _quantity(value: Optional[int], default: int = 1) -> int:
    if value is None:
        return default
    if value < 1:
        raise ValidationError("quantity must be at least 1")
    return value


class QuotationService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = QuotationRepository()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get(self, quotation_id: int) -> Quotation:
        quotation = self.repo.get_quotation(self.db, quotation_id)
        if not quotation:
            raise NotFoundError("Quotation not found")
        return quotation

    def _get_owned(self, quotation_id: int, user: User) -> Quotation:
        quotation = self._get(quotation_id)
        if quotation.user_id != user.id:
            raise ForbiddenError()
        return quotation

    @staticmethod
    def _find_item(quotation: Quotation, item_id: int, message: str = "Item not found") -> QuotationItem:
        item = next((i for i in quotation.items if i.id == item_id), None)
        if item is None:
            raise NotFoundError(message)
        return item

    def get_quotation(self, quotation_id: int, user: User) -> Quotation:
        quotation = self._get(quotation_id)
        ensure_owner_or_permission(user, quotation.user_id, "quotations", "view")
        return quotation

    def list_mine(self, user: User) -> list[Quotation]:
        return self.repo.list_user_quotations(self.db, user.id)

    def list_all(self, status: Optional[str], page: int, limit: int) -> tuple[list[Quotation], int]:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        return self.repo.list_quotations(self.db, status, page, limit)

    # ------------------------------------------------------------------
    # Item construction
    # ------------------------------------------------------------------

    def _catalog_item(self, product_id: Optional[int], quantity, color, size) -> QuotationItem:
        if not product_id:
            raise ValidationError("Valid productId is required")
        if not self.repo.get_product(self.db, product_id):
            raise ValidationError(f"Product {product_id} does not exist")
        item = QuotationItem(
            quantity=_quantity(quantity),
            color=color or "",
            size=size or "",
            price=0,
            admin_notes="",
            item_status=QuotationItemStatus.NORMAL.value,
        )
        item.spec = CatalogItem(product_id=product_id)
        return item

    @staticmethod
    def _custom_item(name, description, wood_type, reference_image, quantity, color, size) -> QuotationItem:
        if not name or not name.strip() or not description or not description.strip():
            raise ValidationError("name and description are required for custom products")
        item = QuotationItem(
            quantity=_quantity(quantity),
            color=color or "",
            size=size or "",
            price=0,
            admin_notes="",
            item_status=QuotationItemStatus.PENDING_QUOTE.value,
        )
        item.spec = CustomItem(
            name=name.strip(),
            description=description.strip(),
            wood_type=wood_type or DEFAULT_WOOD_TYPE,
            reference_image=reference_image,
        )
        return item

    def _item_from_request(self, data: ItemIn) -> QuotationItem:
        if data.is_custom:
            details = data.custom_details
            if details is None:
                raise ValidationError("customDetails.name and description are required for custom products")
            return self._custom_item(
                details.name,
                details.description,
                details.wood_type,
                details.reference_image,
                data.quantity,
                data.color,
                data.size,
            )
        return self._catalog_item(data.product_id, data.quantity, data.color, data.size)

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def get_or_create_cart(self, user: User) -> Quotation:
        cart = self.repo.get_cart(self.db, user.id)
        if cart:
            return cart

        cart = Quotation(user_id=user.id, status=QuotationStatus.CART.value, total_estimate=0)
        self.db.add(cart)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created the cart first
            self.db.rollback()
            cart = self.repo.get_cart(self.db, user.id)
            if cart is None:
                raise ConflictError("Active cart already exists") from None
            return cart

        logger.info(f"🛒 Cart {cart.id} created for user {user.id}")
        return self.repo.get_quotation(self.db, cart.id)

    def add_to_cart(self, user: User, data: CartItemAdd) -> Quotation:
        """Add a catalog product; same product, color and size accumulate quantity"""
        if not data.product_id:
            raise ValidationError("Valid productId is required")
        if not data.color:
            raise ValidationError("color is required")

        cart = self.get_or_create_cart(user)
        size = data.size or ""
        existing = next(
            (
                i
                for i in cart.items
                if i.spec == CatalogItem(product_id=data.product_id) and i.color == data.color and i.size == size
            ),
            None,
        )
        if existing:
            existing.quantity += _quantity(data.quantity)
        else:
            cart.items.append(self._catalog_item(data.product_id, data.quantity, data.color, size))
        return self.repo.save(self.db, cart)

    def add_custom_to_cart(
        self,
        user: User,
        name: Optional[str],
        description: Optional[str],
        color: Optional[str],
        quantity: Optional[int] = None,
        size: Optional[str] = None,
        wood_type: Optional[str] = None,
        image: Optional[tuple[bytes, Optional[str], Optional[str]]] = None,
    ) -> Quotation:
        if not name or not description:
            raise ValidationError("name and description required")
        if not color:
            raise ValidationError("color is required")

        reference_image = None
        if image is not None:
            contents, filename, content_type = image
            reference_image = store_file(contents, "quotations/references", filename, content_type)

        cart = self.get_or_create_cart(user)
        cart.items.append(
            self._custom_item(name, description, wood_type, reference_image, quantity, color, size)
        )
        return self.repo.save(self.db, cart)

    def update_cart_quantity(self, user: User, data: CartQuantityUpdate) -> Quotation:
        if not data.item_id or not data.quantity or data.quantity < 1:
            raise ValidationError("Valid itemId and quantity are required")

        cart = self.repo.get_cart(self.db, user.id)
        if not cart:
            raise NotFoundError("Cart not found")
        item = self._find_item(cart, data.item_id, "Item not found in cart")
        item.quantity = data.quantity
        return self.repo.save(self.db, cart)

    def remove_cart_item(self, user: User, item_id: int) -> Quotation:
        cart = self.repo.get_cart(self.db, user.id)
        if not cart:
            raise NotFoundError("Cart not found")
        cart.items.remove(self._find_item(cart, item_id, "Item not found in cart"))
        return self.repo.save(self.db, cart)

    def request_from_cart(self, user: User) -> Quotation:
        cart = self.repo.get_cart(self.db, user.id)
        if not cart or not cart.items:
            raise ValidationError("Cart is empty")
        cart.status = QuotationStatus.REQUESTED.value
        logger.info(f"Quotation {cart.id} requested by user {user.id}")
        return self.repo.save(self.db, cart)

    # ------------------------------------------------------------------
    # Direct creation
    # ------------------------------------------------------------------

    def quick_create(self, user: User, data: QuickCreateRequest) -> Quotation:
        if not data.items:
            raise ValidationError("Items array is required")
        quotation = Quotation(
            user_id=user.id,
            status=QuotationStatus.REQUESTED.value,
            admin_notes=data.admin_notes or "",
            total_estimate=0,
            items=[self._item_from_request(i) for i in data.items],
        )
        self.db.add(quotation)
        self.db.commit()
        return self.repo.get_quotation(self.db, quotation.id)

    def admin_create(self, data: AdminCreateRequest) -> Quotation:
        if not data.user_id:
            raise ValidationError("userId is required")
        if not data.items:
            raise ValidationError("Items array is required")
        if not self.repo.get_user(self.db, data.user_id):
            raise NotFoundError("User not found")

        status = data.status or QuotationStatus.REQUESTED
        if status == QuotationStatus.CART:
            raise ValidationError("Admins cannot create carts")

        quotation = Quotation(
            user_id=data.user_id,
            status=status.value,
            admin_notes=data.admin_notes or "",
            total_estimate=0,
            items=[self._item_from_request(i) for i in data.items],
        )
        self.db.add(quotation)
        self.db.commit()
        logger.info(f"Quotation {quotation.id} created by an admin for user {data.user_id}")
        return self.repo.get_quotation(self.db, quotation.id)

    # ------------------------------------------------------------------
    # Items of an existing quotation
    # ------------------------------------------------------------------

    def add_item(self, quotation_id: int, user: User, data: ItemIn) -> Quotation:
        quotation = self._get_owned(quotation_id, user)
        if quotation.status != QuotationStatus.CART.value:
            raise ValidationError("Items can only be added while the quotation is a cart")
        quotation.items.append(self._item_from_request(data))
        return self.repo.save(self.db, quotation)

    def update_item(self, quotation_id: int, item_id: int, user: User, data: ItemUpdate) -> Quotation:
        quotation = self._get_owned(quotation_id, user)
        item = self._find_item(quotation, item_id)

        if data.quantity is not None:
            item.quantity = _quantity(data.quantity)
        if data.color is not None:
            item.color = data.color
        if data.size is not None:
            item.size = data.size
        if data.price is not None:
            item.price = data.price
        if data.admin_notes is not None:
            item.admin_notes = data.admin_notes
        return self.repo.save(self.db, quotation)

    def remove_item(self, quotation_id: int, item_id: int, user: User) -> Quotation:
        quotation = self._get_owned(quotation_id, user)
        quotation.items.remove(self._find_item(quotation, item_id))
        return self.repo.save(self.db, quotation)

    def submit(self, quotation_id: int, user: User) -> Quotation:
        quotation = self._get_owned(quotation_id, user)
        if not quotation.items:
            raise ValidationError("Cannot submit empty quotation")
        if quotation.status not in (QuotationStatus.CART.value, QuotationStatus.REQUESTED.value):
            raise ValidationError(f"Cannot submit a quotation in status {quotation.status}")
        quotation.status = QuotationStatus.REQUESTED.value
        return self.repo.save(self.db, quotation)

    # ------------------------------------------------------------------
    # Workshop side
    # ------------------------------------------------------------------

    def set_quote(self, quotation_id: int, data: SetQuoteRequest) -> Quotation:
        """Price the items and mark the quotation as quoted"""
        quotation = self._get(quotation_id)
        items_by_id = {i.id: i for i in quotation.items}

        for update in data.items:
            item = items_by_id.get(update.item_id)
            if item is None:
                continue
            if update.price is not None:
                if update.price < 0 or not math.isfinite(update.price):
                    raise ValidationError("price must be a non-negative number")
                item.price = update.price
            if update.admin_notes is not None:
                item.admin_notes = update.admin_notes
            if isinstance(item.spec, CustomItem) and item.item_status == QuotationItemStatus.PENDING_QUOTE.value:
                item.item_status = QuotationItemStatus.QUOTED.value

        if data.total_estimate is not None:
            quotation.total_estimate = data.total_estimate
        else:
            quotation.total_estimate = sum((i.price or 0) * i.quantity for i in quotation.items)
        if data.admin_notes is not None:
            quotation.admin_notes = data.admin_notes

        quotation.status = QuotationStatus.QUOTED.value
        logger.info(f"💬 Quotation {quotation.id} quoted at {quotation.total_estimate}")
        return self.repo.save(self.db, quotation)

    def set_status(self, quotation_id: int, status: QuotationStatus) -> Quotation:
        if status == QuotationStatus.CART:
            raise ValidationError("A quotation cannot be turned back into a cart")
        quotation = self._get(quotation_id)
        quotation.status = status.value
        return self.repo.save(self.db, quotation)

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def _order_lines(self, quotation: Quotation) -> list[OrderItem]:
        default_service = self.repo.get_service(self.db, QUOTATION_DEFAULT_SERVICE_ID)
        if default_service is None:
            logger.warning(
                f"⚠️ Default quotation service {QUOTATION_DEFAULT_SERVICE_ID} not found; "
                "custom lines will have no service reference"
            )

        lines = []
        for item in quotation.items:
            line = OrderItem(
                details=item.admin_notes or DEFAULT_ORDER_DETAILS,
                quantity=item.quantity,
                value=(item.price or 0) * item.quantity,
            )
            spec = item.spec
            if isinstance(spec, CatalogItem):
                line.kind = ItemKind.PRODUCT.value
                line.product_id = spec.product_id
            else:
                line.kind = ItemKind.SERVICE.value
                line.service_id = default_service.id if default_service else None
                line.image_url = spec.reference_image
            lines.append(line)
        return lines

    def decide(self, quotation_id: int, user: User, decision: Optional[str]) -> DecisionResult:
        """
        Apply the owner's decision and delete the quotation with its messages.

        Acceptance creates a pending order with no payments (the deposit is
        registered later, not assumed at acceptance). It is skipped when an order
        carrying this quotation_id was started within DUPLICATE_ORDER_WINDOW_MINUTES;
        that only guards against double submits, other orders of the customer
        never block it.
        """
        if decision not in DECISIONS:
            raise ValidationError("decision must be accepted|rejected")

        quotation = self._get(quotation_id)
        if quotation.user_id != user.id:
            raise ForbiddenError()
        if quotation.status not in DECIDABLE_STATUSES:
            raise ValidationError(f"Cannot decide on a quotation in status {quotation.status}")

        result = DecisionResult(
            quotation_id=quotation.id,
            decision=decision,
            customer_email=quotation.user.email if quotation.user else user.email,
            total_estimate=quotation.total_estimate or 0,
        )

        if decision == "accepted":
            since = datetime.utcnow() - timedelta(minutes=DUPLICATE_ORDER_WINDOW_MINUTES)
            recent = OrderRepository.find_recent_quotation_order(self.db, quotation.id, since)
            if recent is not None:
                logger.warning(
                    f"⚠️ Quotation {quotation.id} already produced order {recent.id} "
                    f"within {DUPLICATE_ORDER_WINDOW_MINUTES} min; not creating another"
                )
            else:
                result.order = OrderService(self.db).create_order(
                    user_id=quotation.user_id,
                    items=self._order_lines(quotation),
                    quotation_id=quotation.id,
                    commit=False,
                )

        self.db.delete(quotation)
        self.db.commit()
        if result.order is not None:
            self.db.refresh(result.order)

        logger.info(
            f"Quotation {result.quotation_id} {decision} by user {user.id}"
            + (f", order {result.order.id} created" if result.order else "")
        )
        return result

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def list_messages(self, quotation_id: int, user: User) -> list[QuotationMessage]:
        quotation = self._get(quotation_id)
        ensure_owner_or_permission(user, quotation.user_id, "quotations", "view")
        return self.repo.list_messages(self.db, quotation.id)

    def post_message(self, quotation_id: int, user: User, message: Optional[str]) -> QuotationMessage:
        if not message or not message.strip():
            raise ValidationError("message is required")
        quotation = self._get(quotation_id)
        ensure_owner_or_permission(user, quotation.user_id, "quotations", "update")

        entry = QuotationMessage(quotation_id=quotation.id, sender_id=user.id, message=message.strip())
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry
