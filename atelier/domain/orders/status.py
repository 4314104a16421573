"""
Order status engine.

Status follows the paid share of the order total:
    paid >= total            -> completed   (a zero total counts as settled)
    paid >= 30% of total     -> in_progress (production starts, timestamp set once)
    0 < paid                 -> partial_deposit
    nothing paid             -> pending
"""

import logging
from datetime import datetime
from typing import Optional

from ...config import DEPOSIT_THRESHOLD
from ...models_order import Order, OrderStatus
from .totals import compute_totals

logger = logging.getLogger(__name__)


def derive_status(total: float, paid: float, payments_recorded: bool = True) -> OrderStatus:
    """
    Derive the payment-driven status.

    payments_recorded=False is used at checkout when no initial payment was
    registered: the order stays pending whatever its total.
    """
    if not payments_recorded:
        return OrderStatus.PENDING
    if paid >= total:
        return OrderStatus.COMPLETED
    if paid >= total * DEPOSIT_THRESHOLD:
        return OrderStatus.IN_PROGRESS
    if paid > 0:
        return OrderStatus.PARTIAL_DEPOSIT
    return OrderStatus.PENDING


def apply_payment_status(order: Order, now: Optional[datetime] = None) -> OrderStatus:
    """Recompute order.status from its payments; cancelled orders are left alone"""
    if order.status == OrderStatus.CANCELLED.value:
        return OrderStatus.CANCELLED

    totals = compute_totals(order)
    status = derive_status(totals.total, totals.paid)

    if status == OrderStatus.IN_PROGRESS and order.production_started_at is None:
        order.production_started_at = now or datetime.utcnow()

    if order.status != status.value:
        logger.info(
            f"Order {order.id} status {order.status} -> {status.value} "
            f"(paid {totals.paid} of {totals.total})"
        )
        order.status = status.value
    return status
