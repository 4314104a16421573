"""Payment repository"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models_order import Order, Payment


class PaymentRepository:
    """Payments live inside their order; every write goes through the order row"""

    @staticmethod
    def get_order(db: Session, order_id: int) -> Optional[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items), selectinload(Order.payments))
            .filter(Order.id == order_id)
            .first()
        )

    @staticmethod
    def list_orders(db: Session) -> list[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items), selectinload(Order.payments))
            .order_by(Order.id)
            .all()
        )

    @staticmethod
    def find_payment(order: Order, payment_id: int) -> Optional[Payment]:
        return next((p for p in order.payments if p.id == payment_id), None)

    @staticmethod
    def save(db: Session, order: Order) -> Order:
        order.touch()
        db.commit()
        db.refresh(order)
        return order
