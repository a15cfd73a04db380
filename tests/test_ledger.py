from datetime import date

import pytest

from finsight.currency import ExchangeRates
from finsight.ledger import (
    aggregate,
    cash_flow_series,
    combined_pnl,
    monthly_breakdown,
)
from finsight.models import ContractorTimesheet, PayrollRecord, Transaction


def tx(tid, day, kind, amount, category="general", status="posted") -> Transaction:
    return Transaction(
        id=tid,
        date=date.fromisoformat(day),
        type=kind,
        category=category,
        amount=amount,
        status=status,
    )


SAMPLE = [
    tx("t3", "2025-01-20", "expense", 400.0, "software"),
    tx("t1", "2025-01-05", "revenue", 1000.0, "consulting"),
    tx("t2", "2025-01-05", "expense", 250.0, "rent"),
    tx("t4", "2025-02-02", "revenue", 500.0, "training"),
    tx("t5", "2025-01-10", "revenue", 9999.0, "consulting", status="draft"),
]


def test_aggregate_posted_only() -> None:
    summary = aggregate(SAMPLE)
    assert summary.revenue == 1500.0
    assert summary.expenses == 650.0
    assert summary.profit == 850.0
    assert summary.margin == pytest.approx(850.0 / 1500.0 * 100)


def test_aggregate_window_is_inclusive() -> None:
    summary = aggregate(SAMPLE, "2025-01-05", date(2025, 1, 20))
    assert summary.revenue == 1000.0
    assert summary.expenses == 650.0


def test_category_maps_keep_first_seen_order() -> None:
    summary = aggregate(SAMPLE)
    assert list(summary.expenses_by_category) == ["software", "rent"]
    assert list(summary.revenue_by_category) == ["consulting", "training"]
    assert summary.revenue_by_category["consulting"] == 1000.0


def test_aggregate_is_order_independent() -> None:
    assert aggregate(SAMPLE).profit == aggregate(list(reversed(SAMPLE))).profit


def test_empty_window_gives_zero_margin() -> None:
    summary = aggregate(SAMPLE, "2030-01-01", "2030-12-31")
    assert summary.revenue == 0.0
    assert summary.margin == 0.0


def test_cash_flow_series_groups_by_day() -> None:
    df = cash_flow_series(SAMPLE)
    assert list(df.columns) == ["date", "revenue", "expenses", "profit"]
    assert list(df["date"]) == ["2025-01-05", "2025-01-20", "2025-02-02"]
    first = df.iloc[0]
    assert first["revenue"] == 1000.0
    assert first["expenses"] == 250.0
    assert first["profit"] == 750.0


def test_cash_flow_series_empty() -> None:
    df = cash_flow_series([])
    assert df.empty
    assert list(df.columns) == ["date", "revenue", "expenses", "profit"]


def test_monthly_breakdown() -> None:
    df = monthly_breakdown(SAMPLE)
    assert list(df["month"]) == ["2025-01", "2025-02"]
    jan = df[df["month"] == "2025-01"].iloc[0]
    assert jan["profit"] == 350.0
    assert jan["margin"] == pytest.approx(35.0)


def test_combined_pnl_adds_contractors_and_payroll() -> None:
    sheet = ContractorTimesheet(
        id="ts1",
        assignment_id="a1",
        contractor_id="c1",
        customer_id="k1",
        month="2025-01",
        standard_days_worked=10,
        overtime_days=0,
        overtime_hours=0,
        internal_day_rate=300,
        external_day_rate=500,
        internal_cost_usd=3000.0,
        external_revenue=5000.0,
        profit=2000.0,
    )
    payroll = [
        PayrollRecord(id="p1", team_member_name="Ann", month="2025-01", net_amount=1000.0,
                      currency="EUR"),
        PayrollRecord(id="p2", team_member_name="Bo", month="2025-03", net_amount=800.0),
    ]
    rates = ExchangeRates.with_overrides({"EUR": 1.10})

    pnl = combined_pnl(SAMPLE, [sheet], payroll, "2025-01-01", "2025-01-31", rates)

    assert pnl.transactions.revenue == 1000.0
    assert pnl.contractor_revenue == 5000.0
    assert pnl.contractor_cost == 3000.0
    assert pnl.payroll_cost == pytest.approx(1100.0)
    assert pnl.revenue == 6000.0
    assert pnl.expenses == pytest.approx(650.0 + 3000.0 + 1100.0)
    assert pnl.profit == pytest.approx(6000.0 - 4750.0)
