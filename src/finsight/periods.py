# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for FinSight.

This module defines a Period value object, calendar-month helpers used by the
contractor and cash-flow calculators, and the reporting presets offered by the
CLI (this month, last month, this/last quarter, year to date, last year).
"""

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

import pandas as pd


@dataclass(frozen=True)
class Period:
    """Represents an inclusive reporting period with a human-readable label."""

    start: date
    end: date
    label: str = ""

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(
                f"Period end date cannot be before start date ({self.start} > {self.end})."
            )

    @property
    def days(self) -> int:
        """Number of calendar days in the period, both bounds included."""
        return (self.end - self.start).days + 1

    def contains(self, day: Optional[date]) -> bool:
        return day is not None and self.start <= day <= self.end


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


# ---------------------------------------------------------------------------
# Month helpers
# ---------------------------------------------------------------------------


def month_key(day: date) -> str:
    """Return the 'YYYY-MM' key of a date."""
    return f"{day.year:04d}-{day.month:02d}"


def parse_month(month: str) -> date:
    """Return the first day of a 'YYYY-MM' month key."""
    try:
        parsed = datetime.strptime(month.strip(), "%Y-%m")
    except ValueError as exc:
        raise ValueError(f"Invalid month {month!r} (expected YYYY-MM).") from exc
    return parsed.date()


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    return day.replace(day=monthrange(day.year, day.month)[1])


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, monthrange(year, month)[1]))


def month_period(month: str) -> Period:
    """Full calendar month for a 'YYYY-MM' key."""
    start = parse_month(month)
    return Period(start=start, end=month_end(start), label=month)


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def quarter_period(year: int, quarter: int) -> Period:
    if quarter not in (1, 2, 3, 4):
        raise ValueError(f"Invalid quarter: {quarter!r} (expected 1-4).")
    start = date(year, 3 * (quarter - 1) + 1, 1)
    end = month_end(add_months(start, 2))
    return Period(start=start, end=end, label=f"Q{quarter} {year}")


def overlaps(
    start: date, end: Optional[date], window_start: date, window_end: date
) -> bool:
    """True when [start, end] (open-ended if end is None) meets the window."""
    return start <= window_end and (end is None or end >= window_start)


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


def period_this_month(today: Optional[date] = None) -> Period:
    today = today or _today()
    return Period(start=month_start(today), end=month_end(today), label="This month")


def period_last_month(today: Optional[date] = None) -> Period:
    """Full previous calendar month."""
    today = today or _today()
    start = add_months(month_start(today), -1)
    return Period(start=start, end=month_end(start), label="Last month")


def period_this_quarter(today: Optional[date] = None) -> Period:
    today = today or _today()
    p = quarter_period(today.year, quarter_of(today))
    return Period(start=p.start, end=p.end, label="This quarter")


def period_last_quarter(today: Optional[date] = None) -> Period:
    today = today or _today()
    previous = add_months(month_start(today), -3)
    p = quarter_period(previous.year, quarter_of(previous))
    return Period(start=p.start, end=p.end, label="Last quarter")


def period_ytd(today: Optional[date] = None) -> Period:
    """Year-to-date: 1 January up to today."""
    today = today or _today()
    return Period(start=date(today.year, 1, 1), end=today, label="Year to date")


def period_last_year(today: Optional[date] = None) -> Period:
    today = today or _today()
    year = today.year - 1
    return Period(
        start=date(year, 1, 1), end=date(year, 12, 31), label=f"Last year ({year})"
    )


PRESETS = {
    "this-month": period_this_month,
    "last-month": period_last_month,
    "this-quarter": period_this_quarter,
    "last-quarter": period_last_quarter,
    "ytd": period_ytd,
    "last-year": period_last_year,
}


def determine_period_from_args(args, today: Optional[date] = None) -> Period:
    """
    Determine the reporting period to use based on CLI args.

    Priority (highest to lowest):

        1. args.period (one of PRESETS)
        2. args.from_date / args.to_date (custom period)
        3. this month by default
    """
    today = today or _today()

    # 1) Predefined period wins over everything else
    preset = getattr(args, "period", None)
    if preset:
        try:
            return PRESETS[preset](today)
        except KeyError:
            raise ValueError(f"Unknown period: {preset!r}") from None

    # 2) Custom from/to dates
    from_raw: Optional[str] = getattr(args, "from_date", None)
    to_raw: Optional[str] = getattr(args, "to_date", None)

    if from_raw or to_raw:
        start = date.fromisoformat(from_raw) if from_raw else month_start(today)
        end = date.fromisoformat(to_raw) if to_raw else today

        if end < start:
            raise ValueError("Custom period end date cannot be before start date.")

        return Period(start=start, end=end, label=f"Custom period ({start} → {end})")

    # 3) Default: current month
    return period_this_month(today)


def split_into_months(period: Period) -> list[Period]:
    """
    Split a period into consecutive calendar-month sub-periods.

    The first and last sub-periods are clipped to the period bounds.
    """
    months = pd.period_range(
        pd.Timestamp(period.start), pd.Timestamp(period.end), freq="M"
    )
    result: list[Period] = []
    for m in months:
        start = max(m.start_time.date(), period.start)
        end = min(m.end_time.date(), period.end)
        result.append(Period(start=start, end=end, label=str(m)))
    return result
