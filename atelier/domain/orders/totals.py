"""Order money calculations: total, paid-to-date and remaining balance"""

from dataclasses import dataclass
from numbers import Real

from ...models_order import APPROVED_PAYMENT_STATUSES


@dataclass(frozen=True)
class Totals:
    total: float
    paid: float
    remaining: float  # Negative when overpaid


def _amount(value) -> float:
    # bool is a Real subclass but never a meaningful amount
    if isinstance(value, Real) and not isinstance(value, bool):
        return float(value)
    return 0.0


def is_approved(payment) -> bool:
    return str(getattr(payment, "status", None) or "").lower() in APPROVED_PAYMENT_STATUSES


def compute_totals(order) -> Totals:
    total = sum(_amount(getattr(item, "value", None)) for item in (order.items or []))
    paid = sum(_amount(getattr(p, "amount", None)) for p in (order.payments or []) if is_approved(p))
    return Totals(total=total, paid=paid, remaining=total - paid)


def running_balances(order) -> list[tuple[object, float]]:
    """Pair each payment with the remaining balance right after it, in payment order"""
    total = compute_totals(order).total
    accumulated = 0.0
    rows = []
    for payment in order.payments or []:
        if is_approved(payment):
            accumulated += _amount(payment.amount)
        rows.append((payment, total - accumulated))
    return rows
