# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Transaction aggregation for FinSight.

This module turns ledger entries (``models.Transaction``) into P&L figures.

1. P&L summary
   -----------
   ``aggregate()`` filters transactions on status (``posted`` by default)
   and on an inclusive ``[start, end]`` date window, then sums revenue and
   expenses, overall and per category.

   Draft entries never contribute to any total. Category maps keep the
   first-seen order of the input (for display), while every sum is
   accumulated in id order so that results are reproducible regardless of
   how the caller ordered the snapshot.

2. Cash-flow series
   ----------------
   ``cash_flow_series()`` groups posted transactions by exact date and
   returns a DataFrame with one row per day (``date, revenue, expenses,
   profit``), ascending by ISO date string.

3. Monthly breakdown and business P&L
   ----------------------------------
   ``monthly_breakdown()`` produces the same figures per ``YYYY-MM`` month.
   ``combined_pnl()`` adds contractor revenue/cost (from timesheets) and
   payroll cost on top of the transaction P&L, which is the net profit the
   distribution waterfall works from.

Notes
-----
Dates may be given as ``datetime.date`` or ISO ``YYYY-MM-DD`` strings.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union

import pandas as pd

from .currency import ExchangeRates, convert_to_usd
from .models import ContractorTimesheet, PayrollRecord, Transaction
from .ratios import margin_pct

DateLike = Union[date, str, None]

SERIES_COLUMNS = ["date", "revenue", "expenses", "profit"]
MONTHLY_COLUMNS = ["month", "revenue", "expenses", "profit", "margin"]


@dataclass(frozen=True)
class PnLSummary:
    """Profit and loss figures for a set of transactions."""

    revenue: float = 0.0
    expenses: float = 0.0
    profit: float = 0.0
    revenue_by_category: dict[str, float] = field(default_factory=dict)
    expenses_by_category: dict[str, float] = field(default_factory=dict)

    @property
    def margin(self) -> float:
        return margin_pct(self.profit, self.revenue)


@dataclass(frozen=True)
class BusinessPnL:
    """
    Business-wide P&L combining ledger, contractor and payroll figures.

    Attributes
    ----------
    transactions :
        P&L of the posted ledger entries.
    contractor_revenue / contractor_cost :
        External revenue and USD internal cost of the timesheets whose month
        starts inside the window.
    payroll_cost :
        Payroll (converted to USD) for the months starting inside the window.
    """

    transactions: PnLSummary
    contractor_revenue: float = 0.0
    contractor_cost: float = 0.0
    payroll_cost: float = 0.0

    @property
    def revenue(self) -> float:
        return self.transactions.revenue + self.contractor_revenue

    @property
    def expenses(self) -> float:
        return self.transactions.expenses + self.contractor_cost + self.payroll_cost

    @property
    def profit(self) -> float:
        return self.revenue - self.expenses

    @property
    def margin(self) -> float:
        return margin_pct(self.profit, self.revenue)


def _as_date(value: DateLike) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


def in_window(day: Optional[date], start: DateLike = None, end: DateLike = None) -> bool:
    """Inclusive date-window check; open bounds accept everything."""
    if day is None:
        return False
    start_d, end_d = _as_date(start), _as_date(end)
    if start_d is not None and day < start_d:
        return False
    if end_d is not None and day > end_d:
        return False
    return True


def select(
    transactions: Iterable[Transaction],
    start: DateLike = None,
    end: DateLike = None,
    status: Optional[str] = "posted",
) -> list[Transaction]:
    """Return the transactions matching ``status`` inside ``[start, end]``."""
    return [
        t
        for t in transactions
        if (status is None or t.status == status) and in_window(t.date, start, end)
    ]


def aggregate(
    transactions: Iterable[Transaction],
    start: DateLike = None,
    end: DateLike = None,
    status: str = "posted",
) -> PnLSummary:
    """Aggregate transactions into a P&L summary.

    Args:
        transactions: Normalized ledger entries.
        start: Inclusive lower date bound (None = unbounded).
        end: Inclusive upper date bound (None = unbounded).
        status: Only entries with this status are summed.

    Returns:
        A PnLSummary. Unknown transaction types cannot reach this point:
        they are rejected when records are normalized.
    """
    rows = select(transactions, start, end, status)

    # 1) Category keys in first-seen order.
    revenue_by_category: dict[str, float] = {}
    expenses_by_category: dict[str, float] = {}
    for t in rows:
        target = revenue_by_category if t.type == "revenue" else expenses_by_category
        target.setdefault(t.category, 0.0)

    # 2) Sums accumulated in a stable (id) order.
    revenue = 0.0
    expenses = 0.0
    for t in sorted(rows, key=lambda x: x.id):
        if t.type == "revenue":
            revenue += t.amount
            revenue_by_category[t.category] += t.amount
        else:
            expenses += t.amount
            expenses_by_category[t.category] += t.amount

    return PnLSummary(
        revenue=revenue,
        expenses=expenses,
        profit=revenue - expenses,
        revenue_by_category=revenue_by_category,
        expenses_by_category=expenses_by_category,
    )


def _signed_frame(rows: list[Transaction], key: str) -> pd.DataFrame:
    records = []
    for t in sorted(rows, key=lambda x: x.id):
        is_revenue = t.type == "revenue"
        records.append(
            {
                key: t.date.isoformat() if key == "date" else t.date.strftime("%Y-%m"),
                "revenue": t.amount if is_revenue else 0.0,
                "expenses": 0.0 if is_revenue else t.amount,
            }
        )
    return pd.DataFrame(records, columns=[key, "revenue", "expenses"])


def cash_flow_series(
    transactions: Iterable[Transaction],
    start: DateLike = None,
    end: DateLike = None,
) -> pd.DataFrame:
    """
    Daily series of posted revenue, expenses and profit.

    Returns
    -------
    pandas.DataFrame
        Columns ``date, revenue, expenses, profit``; one row per distinct
        transaction date, sorted ascending. Empty input yields an empty frame
        with the same columns.
    """
    frame = _signed_frame(select(transactions, start, end), "date")
    if frame.empty:
        return pd.DataFrame(columns=SERIES_COLUMNS)

    grouped = frame.groupby("date", sort=True)[["revenue", "expenses"]].sum()
    grouped = grouped.reset_index()
    grouped["profit"] = grouped["revenue"] - grouped["expenses"]
    return grouped[SERIES_COLUMNS]


def monthly_breakdown(
    transactions: Iterable[Transaction],
    start: DateLike = None,
    end: DateLike = None,
) -> pd.DataFrame:
    """Posted revenue, expenses, profit and margin per ``YYYY-MM`` month."""
    frame = _signed_frame(select(transactions, start, end), "month")
    if frame.empty:
        return pd.DataFrame(columns=MONTHLY_COLUMNS)

    grouped = frame.groupby("month", sort=True)[["revenue", "expenses"]].sum()
    grouped = grouped.reset_index()
    grouped["profit"] = grouped["revenue"] - grouped["expenses"]
    grouped["margin"] = [
        margin_pct(p, r) for p, r in zip(grouped["profit"], grouped["revenue"])
    ]
    return grouped[MONTHLY_COLUMNS]


def combined_pnl(
    transactions: Iterable[Transaction],
    timesheets: Iterable[ContractorTimesheet] = (),
    payroll: Iterable[PayrollRecord] = (),
    start: DateLike = None,
    end: DateLike = None,
    rates: Optional[ExchangeRates] = None,
) -> BusinessPnL:
    """
    Business P&L over a window: ledger + contractor margin + payroll.

    Timesheets and payroll records are monthly; a month belongs to the window
    when its first day does.
    """
    sheets = sorted(
        (t for t in timesheets if in_window(t.month_start, start, end)),
        key=lambda x: x.id,
    )
    payroll_rows = sorted(
        (p for p in payroll if in_window(p.month_start, start, end)),
        key=lambda x: x.id,
    )
    return BusinessPnL(
        transactions=aggregate(transactions, start, end),
        contractor_revenue=sum(t.external_revenue for t in sheets),
        contractor_cost=sum(t.internal_cost_usd for t in sheets),
        payroll_cost=sum(
            convert_to_usd(p.net_amount, p.currency, rates) for p in payroll_rows
        ),
    )


def category_totals(summary: PnLSummary) -> Mapping[str, Mapping[str, float]]:
    """Category maps keyed by transaction type, for display."""
    return {
        "revenue": summary.revenue_by_category,
        "expense": summary.expenses_by_category,
    }
