"""Order repository - Database operations for orders, attachments and reviews"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Product, Service, User
from ...models_order import Attachment, Order, Review


def _with_children(query):
    return query.options(
        selectinload(Order.items),
        selectinload(Order.payments),
        selectinload(Order.user),
    )


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_order(db: Session, order_id: int) -> Optional[Order]:
        return _with_children(db.query(Order)).filter(Order.id == order_id).first()

    @staticmethod
    def list_orders(db: Session) -> list[Order]:
        return _with_children(db.query(Order)).order_by(Order.created_at.desc(), Order.id.desc()).all()

    @staticmethod
    def list_user_orders(db: Session, user_id: int) -> list[Order]:
        return (
            _with_children(db.query(Order))
            .filter(Order.user_id == user_id)
            .order_by(Order.started_at.desc(), Order.id.desc())
            .all()
        )

    @staticmethod
    def find_recent_quotation_order(db: Session, quotation_id: int, since: datetime) -> Optional[Order]:
        """Most recent order created from a quotation at or after since"""
        return (
            db.query(Order)
            .filter(Order.quotation_id == quotation_id, Order.started_at >= since)
            .order_by(Order.started_at.desc())
            .first()
        )

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_products(db: Session, product_ids: set[int]) -> dict[int, Product]:
        if not product_ids:
            return {}
        return {p.id: p for p in db.query(Product).filter(Product.id.in_(product_ids)).all()}

    @staticmethod
    def get_services(db: Session, service_ids: set[int]) -> dict[int, Service]:
        if not service_ids:
            return {}
        return {s.id: s for s in db.query(Service).filter(Service.id.in_(service_ids)).all()}

    @staticmethod
    def add_order(db: Session, order: Order) -> Order:
        """Stage a new order; the caller commits"""
        db.add(order)
        db.flush()
        return order

    @staticmethod
    def save(db: Session, order: Order) -> Order:
        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def get_review(db: Session, order_id: int, user_id: int) -> Optional[Review]:
        return (
            db.query(Review)
            .filter(Review.order_id == order_id, Review.user_id == user_id)
            .first()
        )

    @staticmethod
    def add_attachments(db: Session, order: Order, attachments: list[Attachment]) -> Order:
        order.attachments.extend(attachments)
        order.touch()
        db.commit()
        db.refresh(order)
        return order
