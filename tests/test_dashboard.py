from datetime import date, datetime

import pytest

from atelier.domain.dashboard.service import DashboardService, clamp_limit, period_ranges
from atelier.models_order import Order, OrderItem, Payment


def add_order(db, user_id, started_at, lines, payments=()):
    """lines: (kind, catalog_id, quantity, value); payments: (amount, status)"""
    order = Order(
        user_id=user_id,
        started_at=started_at,
        items=[
            OrderItem(
                kind=kind,
                product_id=ref if kind == "product" else None,
                service_id=ref if kind == "service" else None,
                quantity=quantity,
                value=value,
            )
            for kind, ref, quantity, value in lines
        ],
        payments=[Payment(amount=a, paid_at=started_at, method="transferencia", status=s) for a, s in payments],
    )
    db.add(order)
    db.commit()
    return order


@pytest.fixture
def january_sale(db, customer, catalog):
    add_order(
        db,
        customer["id"],
        datetime(2026, 1, 15, 10, 0),
        [("product", catalog["chair_id"], 1, 150)],
        [(150, "aprobado")],
    )


class TestRangeReport:
    def test_settled_order_in_range(self, client, admin, january_sale):
        resp = client.get("/api/dashboard", params={"from": "2026-01-01", "to": "2026-01-31"}, headers=admin["headers"])
        assert resp.status_code == 200
        body = resp.json()

        assert body["ok"] is True
        assert body["mode"] == "range"
        assert body["range"] == {"from": "2026-01-01T00:00:00", "to": "2026-01-31T00:00:00"}
        assert body["summary"]["totalSales"] == 1
        assert body["summary"]["totalRevenue"] == 150
        assert body["series"]["monthly"] == [{"period": "2026-01", "revenue": 150, "sales": 1}]
        assert body["series"]["quarterly"] == [{"period": "2026-Q1", "revenue": 150, "sales": 1}]
        assert body["series"]["semiannual"] == [{"period": "2026-S1", "revenue": 150, "sales": 1}]
        assert body["topItems"]["products"][0]["name"] == "Silla"
        assert body["topItems"]["products"][0]["quantity"] == 1
        assert body["topItems"]["services"] == []

    def test_start_and_end_date_aliases(self, client, admin, january_sale):
        body = client.get(
            "/api/dashboard", params={"startDate": "2026-02-01", "endDate": "2026-03-31"}, headers=admin["headers"]
        ).json()
        assert body["summary"]["totalSales"] == 0
        assert [m["period"] for m in body["series"]["monthly"]] == ["2026-02", "2026-03"]

    def test_end_day_is_inclusive(self, db, customer, catalog, january_sale):
        add_order(db, customer["id"], datetime(2026, 1, 31, 23, 59), [("product", catalog["chair_id"], 1, 10)], [(10, "aprobado")])
        add_order(db, customer["id"], datetime(2026, 2, 1, 0, 0), [("product", catalog["chair_id"], 1, 10)], [(10, "aprobado")])

        report = DashboardService(db).compute_range(date(2026, 1, 1), date(2026, 1, 31))
        assert report.summary.total_sales == 2
        assert report.summary.total_revenue == 160

    def test_partial_payments_count_as_revenue_not_sales(self, db, customer, catalog, january_sale):
        add_order(
            db,
            customer["id"],
            datetime(2026, 1, 20),
            [("service", catalog["repair_id"], 1, 500)],
            [(100, "confirmado"), (50, "pendiente")],
        )

        report = DashboardService(db).compute_range(date(2026, 1, 1), date(2026, 1, 31))
        assert report.summary.total_sales == 1
        assert report.summary.total_revenue == 250

    def test_from_after_to(self, client, admin):
        resp = client.get("/api/dashboard", params={"from": "2026-02-01", "to": "2026-01-01"}, headers=admin["headers"])
        assert resp.status_code == 400

    def test_invalid_dates_fall_back_to_defaults(self, db):
        body = DashboardService(db).report(raw_from="garbage", raw_to="2026-01-31", now=datetime(2026, 2, 10))
        assert body["range"] == {"from": "2025-03-01T00:00:00", "to": "2026-01-31T00:00:00"}
        assert len(body["series"]["monthly"]) == 11

    def test_default_range_counts_new_users(self, client, admin, customer):
        body = client.get("/api/dashboard", headers=admin["headers"]).json()
        assert body["mode"] == "range"
        assert len(body["series"]["monthly"]) == 12
        assert body["summary"]["totalUsers"] == 2

    def test_requires_permission(self, client, customer):
        assert client.get("/api/dashboard", headers=customer["headers"]).status_code == 403


class TestSeries:
    def test_rebucketing_matches_monthly_totals(self, db, customer, catalog):
        for month in range(1, 13):
            value = 100 * month
            paid = value if month % 2 else value / 2
            add_order(
                db,
                customer["id"],
                datetime(2025, month, 3),
                [("product", catalog["chair_id"], 1, value)],
                [(paid, "aprobado")],
            )

        series = DashboardService(db).compute_range(date(2025, 1, 1), date(2025, 12, 31)).series
        monthly = {b.period: b for b in series.monthly}

        for quarter in series.quarterly:
            q = int(quarter.period[-1])
            months = [monthly[f"2025-{m:02d}"] for m in range(3 * q - 2, 3 * q + 1)]
            assert quarter.revenue == sum(b.revenue for b in months)
            assert quarter.sales == sum(b.sales for b in months)

        assert [s.period for s in series.semiannual] == ["2025-S1", "2025-S2"]
        for bucket_list in (series.quarterly, series.semiannual):
            assert sum(b.revenue for b in bucket_list) == sum(b.revenue for b in series.monthly)
            assert sum(b.sales for b in bucket_list) == sum(b.sales for b in series.monthly) == 6

    def test_top_items_ranked_by_quantity(self, db, customer, catalog):
        add_order(db, customer["id"], datetime(2026, 1, 5), [("product", catalog["chair_id"], 2, 200)])
        add_order(
            db,
            customer["id"],
            datetime(2026, 1, 6),
            [("product", catalog["table_id"], 5, 1250), ("service", catalog["repair_id"], 1, 80)],
        )

        top = DashboardService(db).compute_range(date(2026, 1, 1), date(2026, 1, 31), limit=1).top_items
        assert [(t.name, t.quantity) for t in top.products] == [("Mesa", 5)]
        assert [(t.name, t.quantity) for t in top.services] == [("Restauración", 1)]


class TestPeriodMode:
    @pytest.mark.parametrize(
        "period, today, previous, current",
        [
            ("month", date(2026, 2, 10), (date(2026, 1, 1), date(2026, 1, 31)), (date(2026, 2, 1), date(2026, 2, 10))),
            ("month", date(2026, 1, 5), (date(2025, 12, 1), date(2025, 12, 31)), (date(2026, 1, 1), date(2026, 1, 5))),
            ("quarter", date(2026, 5, 20), (date(2026, 1, 1), date(2026, 3, 31)), (date(2026, 4, 1), date(2026, 5, 20))),
            ("semester", date(2026, 8, 1), (date(2026, 1, 1), date(2026, 6, 30)), (date(2026, 7, 1), date(2026, 8, 1))),
            ("year", date(2026, 3, 3), (date(2025, 1, 1), date(2025, 12, 31)), (date(2026, 1, 1), date(2026, 3, 3))),
        ],
    )
    def test_period_ranges(self, period, today, previous, current):
        assert period_ranges(period, today) == (previous, current)

    def test_previous_and_current_blocks(self, db, january_sale):
        body = DashboardService(db).report(period="month", now=datetime(2026, 2, 10, 15, 0))
        assert body["mode"] == "period"
        assert body["period"] == "month"
        assert body["previous"]["summary"]["totalSales"] == 1
        assert body["previous"]["range"]["from"] == "2026-01-01T00:00:00"
        assert body["current"]["summary"]["totalSales"] == 0

    def test_compare_false_omits_current(self, db, january_sale):
        body = DashboardService(db).report(period="month", compare=False, now=datetime(2026, 2, 10))
        assert "previous" in body
        assert "current" not in body

    def test_explicit_range_wins(self, db, january_sale):
        body = DashboardService(db).report(raw_from="2026-01-01", period="year", now=datetime(2026, 2, 10))
        assert body["mode"] == "range"
        assert body["summary"]["totalSales"] == 1

    def test_endpoint_period_mode(self, client, admin):
        body = client.get("/api/dashboard", params={"period": "quarter", "compare": "true"}, headers=admin["headers"]).json()
        assert body["mode"] == "period"
        assert body["previous"]["summary"] is not None
        assert body["current"]["summary"] is not None

    def test_unknown_period(self, client, admin):
        assert client.get("/api/dashboard", params={"period": "week"}, headers=admin["headers"]).status_code == 400


@pytest.mark.parametrize("raw, expected", [(None, 10), ("abc", 10), ("0", 10), ("3", 3), ("100", 50), ("-5", 1)])
def test_limit_is_clamped(raw, expected):
    assert clamp_limit(raw) == expected
