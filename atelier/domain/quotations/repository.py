"""Quotation repository - carts, quotations and their chat messages"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Product, Service, User
from ...models_quotation import Quotation, QuotationItem, QuotationMessage, QuotationStatus


def _with_items(query):
    return query.options(
        selectinload(Quotation.items).selectinload(QuotationItem.product),
        selectinload(Quotation.user),
    )


class QuotationRepository:
    """Repository for quotation database operations"""

    @staticmethod
    def get_quotation(db: Session, quotation_id: int) -> Optional[Quotation]:
        return _with_items(db.query(Quotation)).filter(Quotation.id == quotation_id).first()

    @staticmethod
    def get_cart(db: Session, user_id: int) -> Optional[Quotation]:
        return (
            _with_items(db.query(Quotation))
            .filter(Quotation.user_id == user_id, Quotation.status == QuotationStatus.CART.value)
            .first()
        )

    @staticmethod
    def list_user_quotations(db: Session, user_id: int) -> list[Quotation]:
        return (
            _with_items(db.query(Quotation))
            .filter(Quotation.user_id == user_id)
            .order_by(Quotation.created_at.desc(), Quotation.id.desc())
            .all()
        )

    @staticmethod
    def list_quotations(
        db: Session, status: Optional[str], page: int, limit: int
    ) -> tuple[list[Quotation], int]:
        """One page of quotations (newest first) and the total count"""
        query = db.query(Quotation)
        if status:
            query = query.filter(Quotation.status == status)
        total = query.count()
        quotations = (
            _with_items(query)
            .order_by(Quotation.created_at.desc(), Quotation.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return quotations, total

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_product(db: Session, product_id: int) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def list_messages(db: Session, quotation_id: int) -> list[QuotationMessage]:
        return (
            db.query(QuotationMessage)
            .filter(QuotationMessage.quotation_id == quotation_id)
            .order_by(QuotationMessage.id)
            .all()
        )

    @staticmethod
    def save(db: Session, quotation: Quotation) -> Quotation:
        quotation.touch()
        db.commit()
        db.refresh(quotation)
        return quotation
