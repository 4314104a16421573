from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from atelier.domain.orders.status import apply_payment_status, derive_status
from atelier.domain.orders.totals import compute_totals, running_balances
from atelier.models_order import OrderStatus

STATUS_RANK = [
    OrderStatus.PENDING,
    OrderStatus.PARTIAL_DEPOSIT,
    OrderStatus.IN_PROGRESS,
    OrderStatus.COMPLETED,
]


def make_order(values, payments, status=OrderStatus.PENDING.value, production_started_at=None):
    return SimpleNamespace(
        id=1,
        status=status,
        production_started_at=production_started_at,
        items=[SimpleNamespace(value=v) for v in values],
        payments=[SimpleNamespace(amount=a, status=s) for a, s in payments],
    )


class TestComputeTotals:
    def test_only_approved_payments_count(self):
        order = make_order(
            [100, 50],
            [(30, "aprobado"), (20, "CONFIRMADO"), (40, "pendiente"), (10, "rechazado")],
        )
        totals = compute_totals(order)
        assert totals.total == 150
        assert totals.paid == 50
        assert totals.remaining == 100

    def test_missing_values_are_zero(self):
        order = make_order([None, "abc", 80], [(None, "aprobado"), (20, None)])
        totals = compute_totals(order)
        assert totals.total == 80
        assert totals.paid == 0

    def test_remaining_can_be_negative(self):
        order = make_order([100], [(130, "aprobado")])
        assert compute_totals(order).remaining == -30

    def test_running_balances_skip_unapproved_payments(self):
        order = make_order([300], [(100, "aprobado"), (50, "pendiente"), (50, "confirmado")])
        assert [remaining for _, remaining in running_balances(order)] == [200, 200, 150]


class TestDeriveStatus:
    @pytest.mark.parametrize(
        "paid, expected",
        [
            (0, OrderStatus.PENDING),
            (1, OrderStatus.PARTIAL_DEPOSIT),
            (29.99, OrderStatus.PARTIAL_DEPOSIT),
            (30, OrderStatus.IN_PROGRESS),
            (99, OrderStatus.IN_PROGRESS),
            (100, OrderStatus.COMPLETED),
            (120, OrderStatus.COMPLETED),
        ],
    )
    def test_thresholds(self, paid, expected):
        assert derive_status(100, paid) == expected

    def test_zero_total_is_completed(self):
        assert derive_status(0, 0) == OrderStatus.COMPLETED

    def test_checkout_without_payment_stays_pending(self):
        assert derive_status(0, 0, payments_recorded=False) == OrderStatus.PENDING
        assert derive_status(500, 0, payments_recorded=False) == OrderStatus.PENDING

    @pytest.mark.parametrize("total", [1, 10, 100, 333.33, 2500])
    def test_monotonic_in_paid(self, total):
        ranks = [STATUS_RANK.index(derive_status(total, total * step / 20)) for step in range(0, 25)]
        assert ranks == sorted(ranks)


class TestApplyPaymentStatus:
    def test_production_start_is_set_once(self):
        first = datetime(2026, 1, 10, 9, 0)
        order = make_order([100], [(40, "aprobado")])

        assert apply_payment_status(order, first) == OrderStatus.IN_PROGRESS
        assert order.production_started_at == first

        order.payments.append(SimpleNamespace(amount=60, status="aprobado"))
        apply_payment_status(order, first + timedelta(days=3))
        assert order.status == OrderStatus.COMPLETED.value
        assert order.production_started_at == first

    def test_production_start_survives_payment_removal(self):
        started = datetime(2026, 1, 10, 9, 0)
        order = make_order([100], [(10, "aprobado")], production_started_at=started)

        apply_payment_status(order, datetime(2026, 2, 1))
        assert order.status == OrderStatus.PARTIAL_DEPOSIT.value
        assert order.production_started_at == started

    def test_cancelled_orders_are_left_alone(self):
        order = make_order([100], [(100, "aprobado")], status=OrderStatus.CANCELLED.value)
        assert apply_payment_status(order) == OrderStatus.CANCELLED
        assert order.status == OrderStatus.CANCELLED.value
        assert order.production_started_at is None
