from datetime import date

import pytest

from finsight.models import Organization, PayrollRecord, Transaction
from finsight.multi_periods import (
    CASH_FLOW_COLUMNS,
    PNL_COLUMNS,
    cash_flow_multi_period,
    pnl_multi_period,
)
from finsight.periods import Period, month_period

TRANSACTIONS = [
    Transaction(id="t1", date=date(2025, 1, 10), type="revenue", category="a",
                amount=1000.0, payment_status="paid"),
    Transaction(id="t2", date=date(2025, 2, 10), type="expense", category="rent",
                amount=300.0, payment_status="paid"),
    Transaction(id="t3", date=date(2025, 3, 10), type="revenue", category="a",
                amount=200.0, payment_status="paid"),
]


def test_closing_balance_chains_into_next_opening_balance() -> None:
    periods = [month_period("2025-03"), month_period("2025-01"), month_period("2025-02")]
    result = cash_flow_multi_period(
        Organization(id="default", bank_balance=100.0),
        periods,
        transactions=TRANSACTIONS,
        today=date(2025, 3, 31),
    )

    df = result.summary
    assert list(df.columns) == CASH_FLOW_COLUMNS
    assert list(df["period_label"]) == ["2025-01", "2025-02", "2025-03"]
    assert list(df["opening_balance"]) == pytest.approx([100.0, 1100.0, 800.0])
    assert list(df["closing_balance"]) == pytest.approx([1100.0, 800.0, 1000.0])
    for previous, current in zip(result.statements, result.statements[1:]):
        assert current.opening_balance == previous.closing_balance


def test_explicit_opening_balance_and_empty_periods() -> None:
    result = cash_flow_multi_period(
        Organization(id="default", bank_balance=100.0),
        [month_period("2025-01")],
        transactions=TRANSACTIONS,
        today=date(2025, 3, 31),
        opening_balance=0.0,
    )
    assert result.statements[0].opening_balance == 0.0

    with pytest.raises(ValueError):
        cash_flow_multi_period(Organization(id="default"), [], transactions=[])


def test_pnl_multi_period() -> None:
    payroll = [PayrollRecord(id="p1", team_member_name="Bo", month="2025-02",
                             net_amount=100.0)]
    periods = [
        Period(start=date(2025, 1, 1), end=date(2025, 1, 31)),
        month_period("2025-02"),
    ]
    df = pnl_multi_period(periods, TRANSACTIONS, payroll=payroll)

    assert list(df.columns) == PNL_COLUMNS
    assert list(df["period_label"]) == ["2025-01-01..2025-01-31", "2025-02"]
    assert list(df["profit"]) == pytest.approx([1000.0, -400.0])
    assert list(df["margin"]) == pytest.approx([100.0, 0.0])
