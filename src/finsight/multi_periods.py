# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Multi-period orchestration for cash-flow statements and P&L tables.

Overview
--------
``cash_flow_multi_period()`` builds one cash-flow statement per period and
chains them: the closing balance of a period is the opening balance of the
next one. Only the first period starts from the organization's bank balance
(or an explicit opening balance). Periods are processed in chronological
order, whatever order they are given in.

``pnl_multi_period()`` computes the business P&L (transactions, contractor
margin and payroll) of every period.

Both functions return long-format DataFrames with a ``period_label`` column,
suitable for the CLI tables and for charts.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Optional

import pandas as pd

from .cashflow import CashFlowStatement, build_cash_flow_statement
from .currency import ExchangeRates
from .ledger import combined_pnl
from .models import (
    ContractorTimesheet,
    Distribution,
    Organization,
    PayrollRecord,
    Subscription,
    Transaction,
)
from .periods import Period
from .ratios import margin_pct

CASH_FLOW_COLUMNS = [
    "period_label",
    "start",
    "end",
    "opening_balance",
    "inflows",
    "outflows",
    "net_financing",
    "net_change",
    "closing_balance",
    "accrual_profit",
    "cash_profit",
]

PNL_COLUMNS = [
    "period_label",
    "revenue",
    "expenses",
    "transaction_profit",
    "contractor_revenue",
    "contractor_cost",
    "payroll_cost",
    "profit",
    "margin",
]


@dataclass(frozen=True)
class CashFlowMultiPeriod:
    """
    Chained cash-flow statements.

    Attributes
    ----------
    statements :
        One statement per period, in chronological order.
    summary :
        One row per period with the columns of ``CASH_FLOW_COLUMNS``.
    """

    statements: list[CashFlowStatement]
    summary: pd.DataFrame


def _label(period: Period) -> str:
    return period.label or f"{period.start.isoformat()}..{period.end.isoformat()}"


def cash_flow_multi_period(
    organization: Organization,
    periods: Iterable[Period],
    *,
    transactions: Iterable[Transaction],
    timesheets: Iterable[ContractorTimesheet] = (),
    payroll: Iterable[PayrollRecord] = (),
    distributions: Iterable[Distribution] = (),
    subscriptions: Iterable[Subscription] = (),
    today: Optional[date] = None,
    opening_balance: Optional[float] = None,
    rates: Optional[ExchangeRates] = None,
    burn_window_months: int = 3,
) -> CashFlowMultiPeriod:
    """
    Build chained cash-flow statements for several periods.

    Raises
    ------
    ValueError
        If no period is given.
    """
    ordered = sorted(periods, key=lambda p: (p.start, p.end))
    if not ordered:
        raise ValueError("At least one period is required.")

    transactions = list(transactions)
    timesheets = list(timesheets)
    payroll = list(payroll)
    distributions = list(distributions)
    subscriptions = list(subscriptions)

    statements: list[CashFlowStatement] = []
    rows = []
    balance = opening_balance
    for period in ordered:
        statement = build_cash_flow_statement(
            organization,
            period,
            transactions=transactions,
            timesheets=timesheets,
            payroll=payroll,
            distributions=distributions,
            subscriptions=subscriptions,
            today=today,
            opening_balance=balance,
            rates=rates,
            burn_window_months=burn_window_months,
        )
        statements.append(statement)
        balance = statement.closing_balance

        rows.append(
            {
                "period_label": _label(period),
                "start": period.start.isoformat(),
                "end": period.end.isoformat(),
                "opening_balance": statement.opening_balance,
                "inflows": statement.operating.inflows,
                "outflows": statement.operating.outflows,
                "net_financing": statement.financing.net_financing,
                "net_change": statement.net_cash_change,
                "closing_balance": statement.closing_balance,
                "accrual_profit": statement.comparison.accrual_profit,
                "cash_profit": statement.comparison.cash_profit,
            }
        )

    return CashFlowMultiPeriod(
        statements=statements,
        summary=pd.DataFrame(rows, columns=CASH_FLOW_COLUMNS),
    )


def pnl_multi_period(
    periods: Iterable[Period],
    transactions: Iterable[Transaction],
    timesheets: Iterable[ContractorTimesheet] = (),
    payroll: Iterable[PayrollRecord] = (),
    rates: Optional[ExchangeRates] = None,
) -> pd.DataFrame:
    """Business P&L per period, one row per period in chronological order."""
    transactions = list(transactions)
    timesheets = list(timesheets)
    payroll = list(payroll)

    rows = []
    for period in sorted(periods, key=lambda p: (p.start, p.end)):
        pnl = combined_pnl(
            transactions, timesheets, payroll, period.start, period.end, rates
        )
        rows.append(
            {
                "period_label": _label(period),
                "revenue": pnl.revenue,
                "expenses": pnl.expenses,
                "transaction_profit": pnl.transactions.profit,
                "contractor_revenue": pnl.contractor_revenue,
                "contractor_cost": pnl.contractor_cost,
                "payroll_cost": pnl.payroll_cost,
                "profit": pnl.profit,
                "margin": margin_pct(pnl.profit, pnl.revenue),
            }
        )
    return pd.DataFrame(rows, columns=PNL_COLUMNS)
