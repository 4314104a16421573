"""Dashboard repository - read-only queries over orders, users and the catalog"""

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import Product, Service, User
from ...models_order import ItemKind, Order, OrderItem


class DashboardRepository:
    """Repository for dashboard aggregation queries"""

    @staticmethod
    def orders_started_between(db: Session, start: datetime, end: datetime) -> list[Order]:
        """Orders with started_at in [start, end), with items and payments loaded"""
        return (
            db.query(Order)
            .options(selectinload(Order.items), selectinload(Order.payments))
            .filter(Order.started_at >= start, Order.started_at < end)
            .order_by(Order.started_at, Order.id)
            .all()
        )

    @staticmethod
    def count_users_created_between(db: Session, start: datetime, end: datetime) -> int:
        return (
            db.query(func.count(User.id))
            .filter(User.created_at >= start, User.created_at < end)
            .scalar()
            or 0
        )

    @staticmethod
    def top_items(db: Session, kind: ItemKind, start: datetime, end: datetime, limit: int) -> list[tuple]:
        """(id, name, quantity) rows for the most ordered products or services"""
        if kind == ItemKind.PRODUCT:
            ref, catalog = OrderItem.product_id, Product
        else:
            ref, catalog = OrderItem.service_id, Service

        quantity = func.sum(func.coalesce(OrderItem.quantity, 1)).label("quantity")
        return (
            db.query(ref.label("id"), catalog.name, quantity)
            .join(Order, Order.id == OrderItem.order_id)
            .outerjoin(catalog, catalog.id == ref)
            .filter(
                Order.started_at >= start,
                Order.started_at < end,
                OrderItem.kind == kind.value,
                ref.isnot(None),
            )
            .group_by(ref, catalog.name)
            .order_by(quantity.desc())
            .limit(limit)
            .all()
        )
