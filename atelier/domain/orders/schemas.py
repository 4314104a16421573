"""Order domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ...models_order import ItemKind, OrderStatus
from ...shared.schemas import CamelModel


class OrderItemIn(CamelModel):
    """A line item as sent by checkout"""

    kind: Optional[ItemKind] = None  # Inferred from productId when missing
    product_id: Optional[int] = None
    service_id: Optional[int] = None
    image_url: Optional[str] = None
    details: Optional[str] = None
    quantity: Optional[float] = None
    value: Optional[float] = None


class InitialPaymentIn(CamelModel):
    amount: float = 0
    method: Optional[str] = None  # cash / transfer (or offline_cash / offline_transfer)


class AdminCheckoutRequest(CamelModel):
    """Order created by an admin on behalf of a customer"""

    user_id: Optional[int] = Field(default=None, alias="user")
    items: list[OrderItemIn] = []
    address: Optional[str] = None
    started_at: Optional[datetime] = None
    initial_payment: Optional[InitialPaymentIn] = None


class SelfCheckoutRequest(CamelModel):
    items: list[OrderItemIn] = []
    address: Optional[str] = None
    quotation_id: Optional[int] = None


class OrderUpdate(CamelModel):
    address: Optional[str] = None
    status: Optional[OrderStatus] = None
    delivered_at: Optional[datetime] = None


class ReviewCreate(CamelModel):
    rating: float
    comment: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, v):
        if v is None:
            return v
        return v.strip() or None


class UserSummary(CamelModel):
    id: int
    name: str
    email: str


class OrderItemResponse(CamelModel):
    id: int
    kind: str
    product_id: Optional[int] = None
    service_id: Optional[int] = None
    image_url: Optional[str] = None
    details: Optional[str] = None
    quantity: int
    value: Optional[float] = None


class PaymentResponse(CamelModel):
    id: int
    order_id: int
    amount: float
    paid_at: datetime
    method: str
    status: str
    receipt_url: Optional[str] = None
    ocr_text: Optional[str] = None


class AttachmentResponse(CamelModel):
    id: int
    url: str
    type: str
    uploaded_by: int
    uploaded_at: datetime
    item_id: Optional[int] = None


class ReviewResponse(CamelModel):
    id: int
    order_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class OrderResponse(CamelModel):
    """Order with its lines, payments and computed totals"""

    id: int
    user_id: int
    user: Optional[UserSummary] = None
    quotation_id: Optional[int] = None
    status: str
    address: Optional[str] = None
    started_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    production_started_at: Optional[datetime] = None
    initial_payment_amount: float = 0
    initial_payment_method: Optional[str] = None
    items: list[OrderItemResponse] = []
    payments: list[PaymentResponse] = []
    attachments: list[AttachmentResponse] = []
    reviews: list[ReviewResponse] = []
    created_at: Optional[datetime] = None

    total: float = 0
    paid: float = 0
    remaining: float = 0
    needs_deposit: bool = False
    deposit_percentage: float = 0
    can_start_production: bool = False
    payment_status: Optional[str] = None


class OrderSummary(CamelModel):
    """Row of the customer's "my orders" list"""

    id: int
    name: str
    status: str
    total: float
    paid: float
    remaining: float
    days_left: Optional[int] = None
    needs_deposit: bool
    deposit_percentage: float
    initial_payment_amount: float
    started_at: Optional[datetime] = None
