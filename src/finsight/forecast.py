# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Revenue/expense forecast with a deterministic local fallback.

An external generator (any callable taking ``(transactions, months)`` and
returning a mapping with ``baseCase``, ``optimistic``, ``conservative``,
``insights`` and ``recommendations``) may be plugged in. It is best-effort:
when it is absent, raises, or returns something unusable, the forecast is
computed locally from the ledger:

- base figures are the average monthly posted revenue and expenses
  (10,000 / 7,000 when there is no history);
- month ``i`` (0-based) applies a growth factor ``1 + 0.02 * i`` to revenue
  and ``(1 + 0.02 * i) * 0.98`` to expenses;
- the optimistic scenario scales revenue by 1.2 and expenses by 0.9, the
  conservative one revenue by 0.85 and expenses by 1.1.

Figures are rounded to whole dollars (half up).
"""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Optional

from .ledger import aggregate, monthly_breakdown, select
from .models import Transaction
from .periods import _today, add_months, month_key

logger = logging.getLogger(__name__)

DEFAULT_BASE_REVENUE = 10000.0
DEFAULT_BASE_EXPENSES = 7000.0
MONTHLY_GROWTH = 0.02
EXPENSE_DAMPING = 0.98
OPTIMISTIC = (1.2, 0.9)
CONSERVATIVE = (0.85, 1.1)

FALLBACK_INSIGHTS = [
    "Based on historical averages - external analysis unavailable",
    "Revenue shows steady patterns based on available data",
    "Consider reviewing expense categories for optimization",
]
FALLBACK_RECOMMENDATIONS = [
    "Configure a forecast generator for more accurate forecasting",
    "Add more historical data for better predictions",
    "Review spending patterns monthly",
]

ForecastGenerator = Callable[[list[Transaction], int], Mapping[str, Any]]


@dataclass(frozen=True)
class ForecastPoint:
    month: str
    revenue: float
    expenses: float
    profit: float


@dataclass(frozen=True)
class ForecastResult:
    base_case: list[ForecastPoint]
    optimistic: list[ForecastPoint]
    conservative: list[ForecastPoint]
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    source: str = "fallback"
    error: Optional[str] = None


def _round(value: float) -> float:
    return float(math.floor(value + 0.5))


def base_figures(transactions: Iterable[Transaction]) -> tuple[float, float]:
    """Average monthly posted revenue and expenses, with defaults."""
    monthly = monthly_breakdown(transactions)
    if monthly.empty:
        return DEFAULT_BASE_REVENUE, DEFAULT_BASE_EXPENSES
    revenue = float(monthly["revenue"].mean()) or DEFAULT_BASE_REVENUE
    expenses = float(monthly["expenses"].mean()) or DEFAULT_BASE_EXPENSES
    return revenue, expenses


def fallback_forecast(
    transactions: Iterable[Transaction],
    months: int = 6,
    today: Optional[date] = None,
) -> ForecastResult:
    today = today or _today()
    base_revenue, base_expenses = base_figures(transactions)

    base_case, optimistic, conservative = [], [], []
    for i in range(months):
        month = month_key(add_months(today.replace(day=1), i + 1))
        growth = 1 + i * MONTHLY_GROWTH
        revenue = _round(base_revenue * growth)
        expenses = _round(base_expenses * growth * EXPENSE_DAMPING)
        base_case.append(ForecastPoint(month, revenue, expenses, revenue - expenses))

        for target, (rev_factor, exp_factor) in (
            (optimistic, OPTIMISTIC),
            (conservative, CONSERVATIVE),
        ):
            target.append(
                ForecastPoint(
                    month,
                    _round(revenue * rev_factor),
                    _round(expenses * exp_factor),
                    _round(revenue * rev_factor - expenses * exp_factor),
                )
            )

    return ForecastResult(
        base_case=base_case,
        optimistic=optimistic,
        conservative=conservative,
        insights=list(FALLBACK_INSIGHTS),
        recommendations=list(FALLBACK_RECOMMENDATIONS),
    )


def _points(raw: Any) -> list[ForecastPoint]:
    points = []
    for p in raw or []:
        revenue = float(p["revenue"])
        expenses = float(p["expenses"])
        points.append(
            ForecastPoint(
                month=str(p["month"]),
                revenue=revenue,
                expenses=expenses,
                profit=float(p.get("profit", revenue - expenses)),
            )
        )
    return points


def parse_generator_output(payload: Mapping[str, Any]) -> ForecastResult:
    """
    Convert a generator payload into a ForecastResult.

    Raises
    ------
    ValueError
        If the payload does not have the expected shape.
    """
    try:
        return ForecastResult(
            base_case=_points(payload.get("baseCase")),
            optimistic=_points(payload.get("optimistic")),
            conservative=_points(payload.get("conservative")),
            insights=[str(i) for i in payload.get("insights") or []],
            recommendations=[str(r) for r in payload.get("recommendations") or []],
            source="external",
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Malformed forecast payload: {exc}") from exc


def generate_forecast(
    transactions: Iterable[Transaction],
    months: int = 6,
    generator: Optional[ForecastGenerator] = None,
    today: Optional[date] = None,
) -> ForecastResult:
    """
    Forecast the next ``months`` months.

    The external generator is tried first when given; any failure is logged
    and reported in ``ForecastResult.error`` alongside the local fallback.
    """
    if months <= 0:
        raise ValueError(f"months must be positive (got {months}).")
    history = select(transactions)

    if generator is None:
        return fallback_forecast(history, months, today)

    try:
        return parse_generator_output(generator(history, months))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Forecast generator failed, using local fallback: %s", exc)
        result = fallback_forecast(history, months, today)
        return ForecastResult(
            base_case=result.base_case,
            optimistic=result.optimistic,
            conservative=result.conservative,
            insights=result.insights,
            recommendations=result.recommendations,
            source="fallback",
            error=f"Forecast generator failed: {exc}",
        )


def transaction_summary(transactions: Iterable[Transaction]) -> str:
    """Plain-text summary of posted transactions, used as generator context."""
    history = select(transactions)
    if not history:
        return "No historical transaction data available."

    pnl = aggregate(history)
    lines = [
        f"Total Transactions: {len(history)}",
        f"Total Revenue: ${pnl.revenue:,.2f}",
        f"Total Expenses: ${pnl.expenses:,.2f}",
        f"Net Profit: ${pnl.profit:,.2f}",
        "",
        "Monthly Breakdown:",
    ]
    for row in monthly_breakdown(history).itertuples(index=False):
        lines.append(
            f"{row.month}: Revenue ${row.revenue:,.2f}, "
            f"Expenses ${row.expenses:,.2f}, Profit ${row.profit:,.2f}"
        )

    categories: dict[str, float] = {}
    for t in history:
        categories[t.category] = categories.get(t.category, 0.0) + t.amount
    lines += ["", "Category Breakdown:"]
    for category, amount in sorted(categories.items(), key=lambda kv: -kv[1]):
        lines.append(f"{category}: ${amount:,.2f}")
    return "\n".join(lines)
