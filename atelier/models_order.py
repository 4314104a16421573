"""
Order Models - made-to-order purchases, their installment payments,
file attachments and customer reviews
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL_DEPOSIT = "partial_deposit"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ItemKind(str, enum.Enum):
    PRODUCT = "product"
    SERVICE = "service"


# Only these payment statuses (lowercased) count toward the paid amount
APPROVED_PAYMENT_STATUSES = frozenset({"aprobado", "confirmado"})
PENDING_PAYMENT_STATUS = "pendiente"
APPROVED_PAYMENT_STATUS = "aprobado"

INITIAL_PAYMENT_METHODS = ("offline_cash", "offline_transfer")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    quotation_id = Column(Integer, nullable=True)  # Quotation this order was accepted from

    # Status workflow driven by payments:
    # pending → partial_deposit → in_progress (≥30% paid) → completed (fully paid)
    status = Column(String(50), default=OrderStatus.PENDING.value, nullable=False)
    address = Column(String(500), nullable=True)

    started_at = Column(DateTime, default=datetime.utcnow, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    production_started_at = Column(DateTime, nullable=True)  # Set once, when the deposit threshold is reached

    # Deposit registered at checkout (also recorded as an approved payment)
    initial_payment_amount = Column(Float, default=0, nullable=False)
    initial_payment_method = Column(String(50), nullable=True)  # offline_cash, offline_transfer
    initial_payment_registered_at = Column(DateTime, nullable=True)
    initial_payment_registered_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Optimistic concurrency token, checked on every UPDATE
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("ix_orders_user_status_started", "user_id", "status", "started_at"),
        Index("ix_orders_status_started", "status", "started_at"),
    )

    user = relationship("User", foreign_keys=[user_id])
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    payments = relationship(
        "Payment", back_populates="order", cascade="all, delete-orphan", order_by="Payment.id"
    )
    attachments = relationship(
        "Attachment", back_populates="order", cascade="all, delete-orphan", order_by="Attachment.id"
    )
    reviews = relationship(
        "Review", back_populates="order", cascade="all, delete-orphan", order_by="Review.id"
    )

    def touch(self):
        """Mark the order row dirty so child mutations go through the version check"""
        self.updated_at = datetime.utcnow()


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), default=ItemKind.SERVICE.value, nullable=False)  # product, service
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    image_url = Column(String(500), nullable=True)
    details = Column(Text, nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    value = Column(Float, nullable=True)  # Line value (already multiplied by quantity)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
    service = relationship("Service")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    paid_at = Column(DateTime, nullable=False)
    method = Column(String(50), nullable=False)
    # Free-form; only aprobado/confirmado count as paid
    status = Column(String(50), nullable=False)
    receipt_url = Column(String(500), nullable=True)
    ocr_text = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    order = relationship("Order", back_populates="payments")


class Attachment(Base):
    __tablename__ = "order_attachments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    type = Column(String(50), default="product_image", nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    item_id = Column(Integer, ForeignKey("order_items.id"), nullable=True)

    order = relationship("Order", back_populates="attachments")


class Review(Base):
    __tablename__ = "order_reviews"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)  # 1-5
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("order_id", "user_id", name="uq_order_reviews_order_user"),)

    order = relationship("Order", back_populates="reviews")
