"""
Quotation Models - shopping carts that become priced proposals
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class QuotationStatus(str, enum.Enum):
    CART = "cart"
    REQUESTED = "requested"
    IN_PROGRESS = "in_progress"
    QUOTED = "quoted"
    CLOSED = "closed"


class QuotationItemStatus(str, enum.Enum):
    NORMAL = "normal"
    PENDING_QUOTE = "pending_quote"
    QUOTED = "quoted"
    CONFIRMED = "confirmed"


class QuotationItemKind(str, enum.Enum):
    CATALOG = "catalog"
    CUSTOM = "custom"


@dataclass(frozen=True)
class CatalogItem:
    product_id: int


@dataclass(frozen=True)
class CustomItem:
    name: str
    description: str
    wood_type: Optional[str] = None
    reference_image: Optional[str] = None


ItemSpec = Union[CatalogItem, CustomItem]


class Quotation(Base):
    __tablename__ = "quotations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # cart → requested → quoted → (decision) ; in_progress is an admin marker
    status = Column(String(50), default=QuotationStatus.CART.value, nullable=False)
    total_estimate = Column(Float, default=0, nullable=False)
    admin_notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        # One active cart per user
        Index(
            "uq_quotations_user_cart",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'cart'"),
            postgresql_where=text("status = 'cart'"),
        ),
        Index("ix_quotations_status_created", "status", "created_at"),
    )

    user = relationship("User")
    items = relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.id",
    )
    messages = relationship(
        "QuotationMessage",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationMessage.id",
    )

    def touch(self):
        """Mark the quotation row dirty so item changes go through the version check"""
        self.updated_at = datetime.utcnow()


class QuotationItem(Base):
    __tablename__ = "quotation_items"

    id = Column(Integer, primary_key=True, index=True)
    quotation_id = Column(
        Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(String(20), nullable=False)  # catalog, custom

    # catalog
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)

    # custom
    custom_name = Column(String(255), nullable=True)
    custom_description = Column(Text, nullable=True)
    wood_type = Column(String(100), nullable=True)
    reference_image = Column(String(500), nullable=True)

    quantity = Column(Integer, default=1, nullable=False)
    color = Column(String(100), default="", nullable=False)
    size = Column(String(100), default="", nullable=False)
    price = Column(Float, default=0, nullable=False)  # Unit price set by the admin
    admin_notes = Column(Text, default="", nullable=False)
    item_status = Column(String(50), default=QuotationItemStatus.NORMAL.value, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(kind = 'catalog' AND product_id IS NOT NULL) "
            "OR (kind = 'custom' AND custom_name IS NOT NULL AND custom_description IS NOT NULL)",
            name="ck_quotation_items_variant",
        ),
        CheckConstraint("quantity >= 1", name="ck_quotation_items_quantity"),
    )

    quotation = relationship("Quotation", back_populates="items")
    product = relationship("Product")

    @property
    def spec(self) -> ItemSpec:
        if self.kind == QuotationItemKind.CUSTOM.value:
            return CustomItem(
                name=self.custom_name,
                description=self.custom_description,
                wood_type=self.wood_type,
                reference_image=self.reference_image,
            )
        return CatalogItem(product_id=self.product_id)

    @spec.setter
    def spec(self, value: ItemSpec):
        if isinstance(value, CustomItem):
            self.kind = QuotationItemKind.CUSTOM.value
            self.product_id = None
            self.custom_name = value.name
            self.custom_description = value.description
            self.wood_type = value.wood_type
            self.reference_image = value.reference_image
        else:
            self.kind = QuotationItemKind.CATALOG.value
            self.product_id = value.product_id
            self.custom_name = None
            self.custom_description = None
            self.wood_type = None
            self.reference_image = None


class QuotationMessage(Base):
    """Chat message between the customer and the workshop about a quotation"""

    __tablename__ = "quotation_messages"

    id = Column(Integer, primary_key=True, index=True)
    quotation_id = Column(
        Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=False)
    sent_at = Column(DateTime, server_default=func.now())

    quotation = relationship("Quotation", back_populates="messages")
