from datetime import date

import pytest

from finsight.cashflow import build_cash_flow_statement
from finsight.distribution import compute_waterfall
from finsight.ledger import combined_pnl
from finsight.models import Organization, Partner, Transaction
from finsight.periods import Period
from finsight.pipeline import funnel_metrics
from finsight.views import (
    STATEMENT_COLUMNS,
    aging_view,
    cash_flow_view,
    comparison_view,
    funnel_view,
    pnl_view,
    records_view,
    waterfall_view,
)

TRANSACTIONS = [
    Transaction(id="t1", date=date(2025, 3, 1), type="revenue", category="consulting",
                amount=10000.0, payment_status="paid"),
    Transaction(id="t2", date=date(2025, 3, 1), type="expense", category="rent",
                amount=4000.0, payment_status="unpaid"),
]
MARCH = Period(start=date(2025, 3, 1), end=date(2025, 3, 31))


def test_pnl_view_levels() -> None:
    pnl = combined_pnl(TRANSACTIONS)

    simplified = pnl_view(pnl, "simplified")
    assert list(simplified.columns) == STATEMENT_COLUMNS
    assert list(simplified["name"]) == ["Revenue", "Expenses", "Net profit", "Margin (%)"]
    assert list(simplified["display_order"]) == [10, 20, 30, 40]

    regular = pnl_view(pnl)
    assert "Contractor cost" in list(regular["name"])
    assert "consulting" not in list(regular["name"])

    detailed = pnl_view(pnl, "detailed")
    rows = dict(zip(detailed["name"], detailed["amount"]))
    assert rows["consulting"] == 10000.0
    assert rows["rent"] == 4000.0
    assert rows["Net profit"] == 6000.0


def test_pnl_view_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        pnl_view(combined_pnl([]), "verbose")


def test_cash_flow_views() -> None:
    statement = build_cash_flow_statement(
        Organization(id="default", bank_balance=500.0),
        MARCH,
        transactions=TRANSACTIONS,
        today=date(2025, 3, 31),
    )
    df = cash_flow_view(statement)
    rows = dict(zip(df["name"], df["amount"]))
    assert rows["Opening balance"] == 500.0
    assert rows["Receipts from customers"] == 10000.0
    assert rows["Closing balance"] == 10500.0

    comparison = comparison_view(statement).set_index("name")
    assert comparison.loc["Profit", "accrual"] == 6000.0
    assert comparison.loc["Profit", "cash"] == 10000.0
    assert comparison.loc["Profit", "difference"] == -4000.0

    aging = aging_view(statement.accounts_payable)
    assert list(aging["bucket"]) == ["0–30", "31–60", "61–90", "91–120", "120+"]
    assert aging["amount"].sum() == 4000.0


def test_waterfall_view() -> None:
    partners = [Partner(id="p1", name="Ann", share_percentage=60.0),
                Partner(id="p2", name="Ben", share_percentage=40.0)]
    plan = compute_waterfall(150000.0, 50000.0, partners, retention_percentage=20)
    df = waterfall_view(plan)
    rows = dict(zip(df["name"], df["amount"]))

    assert rows["Retained (20%)"] == pytest.approx(20000.0)
    assert rows["Ann (60%)"] == pytest.approx(48000.0)
    assert rows["Company pool"] == pytest.approx(20000.0)


def test_funnel_and_records_views() -> None:
    funnel = funnel_view(funnel_metrics([]))
    assert list(funnel["stage"]) == ["Submitted", "In review", "Interviews", "Offers",
                                     "Placed"]
    assert funnel["count"].sum() == 0

    df = records_view([Partner(id="p1", name="Ann", share_percentage=50.0)])
    assert list(df.columns) == ["id", "name", "share_percentage", "status", "email"]
