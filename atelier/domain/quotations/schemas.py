"""Quotation domain schemas"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import Field

from ...models_quotation import QuotationStatus
from ...shared.schemas import CamelModel
from ..orders.schemas import UserSummary


# ============================================================================
# REQUESTS
# ============================================================================


class CustomDetailsIn(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    wood_type: Optional[str] = None
    reference_image: Optional[str] = None


class ItemIn(CamelModel):
    """Catalog item (productId) or, with isCustom, a made-to-measure piece"""

    product_id: Optional[int] = None
    is_custom: bool = False
    custom_details: Optional[CustomDetailsIn] = None
    quantity: Optional[int] = None
    color: Optional[str] = None
    size: Optional[str] = None


class CartItemAdd(CamelModel):
    product_id: Optional[int] = None
    quantity: Optional[int] = None
    color: Optional[str] = None
    size: Optional[str] = None


class CartQuantityUpdate(CamelModel):
    item_id: Optional[int] = None
    quantity: Optional[int] = None


class ItemUpdate(CamelModel):
    quantity: Optional[int] = None
    color: Optional[str] = None
    size: Optional[str] = None
    price: Optional[float] = None
    admin_notes: Optional[str] = None


class QuickCreateRequest(CamelModel):
    items: list[ItemIn] = []
    admin_notes: Optional[str] = None


class AdminCreateRequest(QuickCreateRequest):
    user_id: Optional[int] = None
    status: Optional[QuotationStatus] = None


class ItemPrice(CamelModel):
    item_id: int
    price: Optional[float] = None
    admin_notes: Optional[str] = None


class SetQuoteRequest(CamelModel):
    items: list[ItemPrice] = []
    total_estimate: Optional[float] = None
    admin_notes: Optional[str] = None


class StatusUpdate(CamelModel):
    status: QuotationStatus


class DecisionRequest(CamelModel):
    decision: Optional[str] = None  # accepted | rejected


class MessageCreate(CamelModel):
    message: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================


class ProductSummary(CamelModel):
    id: int
    name: str
    image_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None


class CatalogItemOut(CamelModel):
    kind: Literal["catalog"] = "catalog"
    product_id: int
    product: Optional[ProductSummary] = None


class CustomItemOut(CamelModel):
    kind: Literal["custom"] = "custom"
    name: str
    description: str
    wood_type: Optional[str] = None
    reference_image: Optional[str] = None


class QuotationItemResponse(CamelModel):
    id: int
    item: Union[CatalogItemOut, CustomItemOut] = Field(discriminator="kind")
    quantity: int
    color: str
    size: str
    price: float
    admin_notes: str
    item_status: str


class QuotationResponse(CamelModel):
    id: int
    user_id: int
    user: Optional[UserSummary] = None
    status: str
    items: list[QuotationItemResponse] = []
    total_estimate: float
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageResponse(CamelModel):
    id: int
    quotation_id: int
    sender_id: int
    message: str
    sent_at: Optional[datetime] = None


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    pages: int
