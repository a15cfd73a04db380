# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for FinSight.

This module turns the result objects of the calculators into pandas
DataFrames ready for display or CSV export. Nothing here computes a figure;
the views only lay out what the calculators returned.

The P&L view exists at three levels of detail:

- simplified: revenue, expenses, net profit;
- regular:    adds the contractor and payroll lines;
- detailed:   adds one line per revenue and expense category.

Every statement view shares the columns ``display_order, level, name,
amount``.
"""

from collections.abc import Iterable
from dataclasses import asdict, is_dataclass
from typing import Any

import pandas as pd

from .cashflow import AgingBucket, CashEvent, CashFlowStatement
from .distribution import DistributionPlan
from .ledger import BusinessPnL, category_totals
from .pipeline import FunnelMetrics

VIEW_LEVELS = ("simplified", "regular", "detailed")
STATEMENT_COLUMNS = ["display_order", "level", "name", "amount"]


def _statement(rows: list[tuple[int, str, float]]) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=["level", "name", "amount"])
    df.insert(0, "display_order", (df.index + 1) * 10)
    return df[STATEMENT_COLUMNS]


def pnl_view(pnl: BusinessPnL, view: str = "regular") -> pd.DataFrame:
    """
    Lay out a business P&L at the requested level of detail.

    Raises
    ------
    ValueError
        If ``view`` is not one of VIEW_LEVELS.
    """
    if view not in VIEW_LEVELS:
        raise ValueError(
            f"Unknown view: {view!r}. Expected one of: {', '.join(VIEW_LEVELS)}."
        )
    detailed = view == "detailed"
    categories = category_totals(pnl.transactions)

    rows: list[tuple[int, str, float]] = [(0, "Revenue", pnl.revenue)]
    if view != "simplified":
        rows.append((1, "Transaction revenue", pnl.transactions.revenue))
        if detailed:
            rows += [(2, name, amount) for name, amount in categories["revenue"].items()]
        rows.append((1, "Contractor revenue", pnl.contractor_revenue))

    rows.append((0, "Expenses", pnl.expenses))
    if view != "simplified":
        rows.append((1, "Transaction expenses", pnl.transactions.expenses))
        if detailed:
            rows += [(2, name, amount) for name, amount in categories["expense"].items()]
        rows.append((1, "Contractor cost", pnl.contractor_cost))
        rows.append((1, "Payroll", pnl.payroll_cost))

    rows.append((0, "Net profit", pnl.profit))
    rows.append((0, "Margin (%)", pnl.margin))
    return _statement(rows)


def cash_flow_view(statement: CashFlowStatement) -> pd.DataFrame:
    """Cash-flow statement as a single statement table."""
    op = statement.operating
    fin = statement.financing
    rows = [
        (0, "Opening balance", statement.opening_balance),
        (0, "Operating activities", op.net_operating),
        (1, "Receipts from customers", op.receipts_from_customers),
        (1, "Contractor customer receipts", op.contractor_customer_receipts),
        (1, "Contractor payments", -op.contractor_payments),
        (1, "Payroll payments", -op.payroll_payments),
        (1, "Subscription payments", -op.subscription_payments),
        (1, "Other operating payments", -op.other_operating_payments),
        (0, "Financing activities", fin.net_financing),
        (1, "Partner distributions", -fin.partner_distributions),
        (0, "Net cash change", statement.net_cash_change),
        (0, "Closing balance", statement.closing_balance),
    ]
    return _statement(rows)


def comparison_view(statement: CashFlowStatement) -> pd.DataFrame:
    """Accrual (P&L) against cash figures, with their differences."""
    c = statement.comparison
    return pd.DataFrame(
        [
            ("Revenue", c.accrual_revenue, c.cash_revenue, c.revenue_difference),
            ("Expenses", c.accrual_expenses, c.cash_expenses, c.expenses_difference),
            ("Profit", c.accrual_profit, c.cash_profit, c.profit_difference),
        ],
        columns=["name", "accrual", "cash", "difference"],
    )


def aging_view(buckets: Iterable[AgingBucket]) -> pd.DataFrame:
    return pd.DataFrame(
        [(b.label, b.count, b.amount) for b in buckets],
        columns=["bucket", "count", "amount"],
    )


def events_view(events: Iterable[CashEvent]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            (e.expected_date.isoformat(), e.direction, e.source, e.description, e.amount)
            for e in events
        ],
        columns=["expected_date", "direction", "source", "description", "amount"],
    )


def waterfall_view(plan: DistributionPlan) -> pd.DataFrame:
    """Distribution waterfall, from revenue down to each partner's share."""
    rows = [
        (0, "Revenue", plan.total_revenue),
        (0, "Expenses", plan.total_expenses),
        (0, "Net profit", plan.net_profit),
        (1, f"Retained ({plan.retention_percentage:g}%)", plan.retained_amount),
        (1, "Distributable pool", plan.distributable_pool),
    ]
    rows += [
        (2, f"{a.partner_name} ({a.share_percentage:g}%)", a.amount)
        for a in plan.allocations
    ]
    rows.append((0, "Company pool", plan.company_pool_amount))
    return _statement(rows)


def funnel_view(funnel: FunnelMetrics) -> pd.DataFrame:
    rates = funnel.conversion_rates
    return pd.DataFrame(
        [
            ("Submitted", funnel.submitted, None),
            ("In review", funnel.in_review, rates.submit_to_review),
            ("Interviews", funnel.interviews, rates.review_to_interview),
            ("Offers", funnel.offers, rates.interview_to_offer),
            ("Placed", funnel.placed, rates.offer_to_placement),
        ],
        columns=["stage", "count", "conversion_rate"],
    )


def records_view(records: Iterable[Any]) -> pd.DataFrame:
    """Flat table of dataclass records (rollups, attention items, ...)."""
    rows = [asdict(r) if is_dataclass(r) else dict(r) for r in records]
    return pd.DataFrame(rows)
