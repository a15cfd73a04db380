# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Contractor and timesheet margin calculations for FinSight.

A timesheet inherits its billing terms from a ``ContractorAssignment`` and
carries derived figures that are computed once, at write time:

    total_days_worked     = standard_days + overtime_days
                            + overtime_hours / hours_per_day
    internal_cost         = total_days_worked * internal_day_rate   (original currency)
    internal_day_rate_usd = convert_to_usd(internal_day_rate, internal_currency)
    internal_cost_usd     = total_days_worked * internal_day_rate_usd
    external_revenue      = total_days_worked * external_day_rate   (USD)
    profit                = external_revenue - internal_cost_usd

The derivation is a pure function of its inputs, so recomputing a stored
timesheet always reproduces the same figures. Edits go through
``recompute_timesheet()`` (merge the changes, then derive again), so a
partial update can never leave derived fields stale.

On top of single timesheets the module provides rollups (overall, per
contractor, per customer), a forward revenue projection from active
assignments, the expiring-contract detector and the monthly draft
generation used by the "generate timesheets" bulk action.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Optional

from .currency import ExchangeRates, convert_to_usd, get_exchange_rate
from .errors import BulkResult, NotFoundError, ValidationError
from .models import ContractorAssignment, ContractorTimesheet
from .periods import _today, add_months, month_end, month_key, overlaps, parse_month
from .ratios import margin_pct

DEFAULT_HOURS_PER_DAY = 8.0
DEFAULT_DAYS_PER_MONTH = 20.0

# Fields computed by the derivation; never accepted from callers.
DERIVED_FIELDS = (
    "total_days_worked",
    "internal_cost",
    "internal_cost_usd",
    "internal_day_rate_usd",
    "exchange_rate",
    "external_revenue",
    "profit",
)


@dataclass(frozen=True)
class TimesheetFigures:
    total_days_worked: float
    internal_cost: float
    internal_cost_usd: float
    internal_day_rate_usd: float
    exchange_rate: float
    external_revenue: float
    profit: float


@dataclass(frozen=True)
class ContractorMetrics:
    total_revenue: float
    total_cost: float
    total_profit: float
    profit_margin: float
    active_contractors: int
    active_customers: int
    active_assignments: int


@dataclass(frozen=True)
class ContractorRollup:
    contractor_id: str
    contractor_name: str
    revenue: float
    cost: float
    profit: float
    margin: float
    days_worked: float


@dataclass(frozen=True)
class CustomerRollup:
    customer_id: str
    customer_name: str
    revenue: float
    cost: float
    profit: float
    margin: float
    contractor_count: int


@dataclass(frozen=True)
class MonthProjection:
    month: str
    projected_revenue: float
    projected_cost: float

    @property
    def projected_profit(self) -> float:
        return self.projected_revenue - self.projected_cost


@dataclass(frozen=True)
class ExpiringContract:
    assignment: ContractorAssignment
    days_left: int


# ---------------------------------------------------------------------------
# Single timesheet
# ---------------------------------------------------------------------------


def compute_timesheet_figures(
    standard_days_worked: float,
    overtime_days: float,
    overtime_hours: float,
    internal_day_rate: float,
    external_day_rate: float,
    internal_currency: str = "USD",
    hours_per_day: float = DEFAULT_HOURS_PER_DAY,
    rates: Optional[ExchangeRates] = None,
) -> TimesheetFigures:
    """
    Derive the stored figures of a timesheet from its raw inputs.

    Raises
    ------
    ValidationError
        If a day count, an hour count or a rate is negative.
    UnknownCurrencyError
        If ``internal_currency`` is not in the rate table.
    """
    for name, value in (
        ("standard_days_worked", standard_days_worked),
        ("overtime_days", overtime_days),
        ("overtime_hours", overtime_hours),
        ("internal_day_rate", internal_day_rate),
        ("external_day_rate", external_day_rate),
    ):
        if value < 0:
            raise ValidationError(f"{name} must not be negative (got {value}).")

    hours_per_day = hours_per_day or DEFAULT_HOURS_PER_DAY
    total_days = standard_days_worked + overtime_days + overtime_hours / hours_per_day

    exchange_rate = get_exchange_rate(internal_currency, rates)
    internal_day_rate_usd = convert_to_usd(internal_day_rate, internal_currency, rates)
    internal_cost_usd = total_days * internal_day_rate_usd
    external_revenue = total_days * external_day_rate

    return TimesheetFigures(
        total_days_worked=total_days,
        internal_cost=total_days * internal_day_rate,
        internal_cost_usd=internal_cost_usd,
        internal_day_rate_usd=internal_day_rate_usd,
        exchange_rate=exchange_rate,
        external_revenue=external_revenue,
        profit=external_revenue - internal_cost_usd,
    )


def _figures_of(
    sheet: ContractorTimesheet,
    hours_per_day: float,
    rates: Optional[ExchangeRates],
) -> TimesheetFigures:
    return compute_timesheet_figures(
        sheet.standard_days_worked,
        sheet.overtime_days,
        sheet.overtime_hours,
        sheet.internal_day_rate,
        sheet.external_day_rate,
        sheet.internal_currency,
        hours_per_day,
        rates,
    )


def _check_month(month: Any) -> None:
    if not isinstance(month, str):
        raise ValidationError(f"Invalid month {month!r} (expected YYYY-MM).")
    try:
        parse_month(month)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def find_assignment(
    assignments: Iterable[ContractorAssignment], assignment_id: str
) -> ContractorAssignment:
    for a in assignments:
        if a.id == assignment_id:
            return a
    raise NotFoundError("Assignment", assignment_id)


def build_timesheet(
    assignment: ContractorAssignment,
    month: str,
    standard_days_worked: float,
    overtime_days: float = 0.0,
    overtime_hours: float = 0.0,
    *,
    internal_day_rate: Optional[float] = None,
    external_day_rate: Optional[float] = None,
    timesheet_id: str = "",
    status: str = "draft",
    rates: Optional[ExchangeRates] = None,
) -> ContractorTimesheet:
    """
    Build a new timesheet for an assignment with its derived figures.

    Day rates default to the assignment's; currencies always come from the
    assignment.
    """
    _check_month(month)
    internal_rate = (
        assignment.internal_day_rate if internal_day_rate is None else internal_day_rate
    )
    external_rate = (
        assignment.external_day_rate if external_day_rate is None else external_day_rate
    )
    figures = compute_timesheet_figures(
        standard_days_worked,
        overtime_days,
        overtime_hours,
        internal_rate,
        external_rate,
        assignment.internal_currency,
        assignment.standard_hours_per_day,
        rates,
    )
    return ContractorTimesheet(
        id=timesheet_id,
        assignment_id=assignment.id,
        contractor_id=assignment.contractor_id,
        customer_id=assignment.customer_id,
        contractor_name=assignment.contractor_name,
        customer_name=assignment.customer_name,
        month=month,
        standard_days_worked=standard_days_worked,
        overtime_days=overtime_days,
        overtime_hours=overtime_hours,
        internal_day_rate=internal_rate,
        external_day_rate=external_rate,
        internal_currency=assignment.internal_currency,
        external_currency=assignment.external_currency,
        status=status,
        **vars(figures),
    )


def recompute_timesheet(
    existing: ContractorTimesheet,
    changes: Mapping[str, Any],
    assignment: Optional[ContractorAssignment] = None,
    rates: Optional[ExchangeRates] = None,
) -> ContractorTimesheet:
    """
    Merge ``changes`` into ``existing`` and derive every figure again.

    Fields absent from ``changes`` keep their stored values. Derived fields
    cannot be set directly. ``hours_per_day`` comes from the assignment when
    it is known, else the default of 8.

    Raises
    ------
    ValidationError
        If a derived or unknown field is changed, or ``month`` is not a
        'YYYY-MM' key.
    """
    forbidden = sorted(set(changes) & set(DERIVED_FIELDS))
    if forbidden:
        raise ValidationError(
            f"Derived timesheet fields cannot be edited: {', '.join(forbidden)}."
        )
    unknown = sorted(set(changes) - {f for f in vars(existing)})
    if unknown:
        raise ValidationError(f"Unknown timesheet fields: {', '.join(unknown)}.")
    if "month" in changes:
        _check_month(changes["month"])

    merged = replace(existing, **changes)
    hours_per_day = (
        assignment.standard_hours_per_day if assignment else DEFAULT_HOURS_PER_DAY
    )
    return replace(merged, **vars(_figures_of(merged, hours_per_day, rates)))


# ---------------------------------------------------------------------------
# Rollups
# ---------------------------------------------------------------------------


def filter_timesheets(
    timesheets: Iterable[ContractorTimesheet],
    month: Optional[str] = None,
    quarter: Optional[int] = None,
    year: Optional[int] = None,
) -> list[ContractorTimesheet]:
    """
    Select timesheets by month ('YYYY-MM'), by quarter of a year, or by year.

    The month filter wins over quarter/year; a quarter needs a year.
    """
    sheets = list(timesheets)
    if month:
        return [t for t in sheets if t.month == month]
    if quarter is not None:
        if year is None:
            raise ValidationError("A quarter filter requires a year.")
        if quarter not in (1, 2, 3, 4):
            raise ValidationError(f"Invalid quarter: {quarter!r} (expected 1-4).")
        months = {f"{year:04d}-{m:02d}" for m in range(3 * quarter - 2, 3 * quarter + 1)}
        return [t for t in sheets if t.month in months]
    if year is not None:
        return [t for t in sheets if t.month.startswith(f"{year:04d}-")]
    return sheets


def contractor_metrics(
    timesheets: Iterable[ContractorTimesheet],
    assignments: Iterable[ContractorAssignment] = (),
    month: Optional[str] = None,
    quarter: Optional[int] = None,
    year: Optional[int] = None,
) -> ContractorMetrics:
    """Overall contractor revenue, USD cost, profit and margin."""
    sheets = sorted(filter_timesheets(timesheets, month, quarter, year), key=lambda t: t.id)
    revenue = sum(t.external_revenue for t in sheets)
    cost = sum(t.internal_cost_usd for t in sheets)
    active = [a for a in assignments if a.is_active]
    return ContractorMetrics(
        total_revenue=revenue,
        total_cost=cost,
        total_profit=revenue - cost,
        profit_margin=margin_pct(revenue - cost, revenue),
        active_contractors=len({a.contractor_id for a in active}),
        active_customers=len({a.customer_id for a in active}),
        active_assignments=len(active),
    )


def metrics_by_contractor(
    timesheets: Iterable[ContractorTimesheet], month: Optional[str] = None
) -> list[ContractorRollup]:
    """Per-contractor rollup, summed in timesheet id order."""
    groups: dict[str, list[ContractorTimesheet]] = {}
    for t in sorted(filter_timesheets(timesheets, month), key=lambda x: x.id):
        groups.setdefault(t.contractor_id, []).append(t)

    result = []
    for contractor_id, sheets in groups.items():
        revenue = sum(t.external_revenue for t in sheets)
        profit = sum(t.profit for t in sheets)
        result.append(
            ContractorRollup(
                contractor_id=contractor_id,
                contractor_name=sheets[0].contractor_name,
                revenue=revenue,
                cost=sum(t.internal_cost_usd for t in sheets),
                profit=profit,
                margin=margin_pct(profit, revenue),
                days_worked=sum(t.total_days_worked for t in sheets),
            )
        )
    return result


def metrics_by_customer(
    timesheets: Iterable[ContractorTimesheet], month: Optional[str] = None
) -> list[CustomerRollup]:
    """Per-customer rollup, summed in timesheet id order."""
    groups: dict[str, list[ContractorTimesheet]] = {}
    for t in sorted(filter_timesheets(timesheets, month), key=lambda x: x.id):
        groups.setdefault(t.customer_id, []).append(t)

    result = []
    for customer_id, sheets in groups.items():
        revenue = sum(t.external_revenue for t in sheets)
        profit = sum(t.profit for t in sheets)
        result.append(
            CustomerRollup(
                customer_id=customer_id,
                customer_name=sheets[0].customer_name,
                revenue=revenue,
                cost=sum(t.internal_cost_usd for t in sheets),
                profit=profit,
                margin=margin_pct(profit, revenue),
                contractor_count=len({t.contractor_id for t in sheets}),
            )
        )
    return result


# ---------------------------------------------------------------------------
# Projection and contract tracking
# ---------------------------------------------------------------------------


def _day_rate_usd(
    assignment: ContractorAssignment, rates: Optional[ExchangeRates]
) -> float:
    if assignment.internal_day_rate_usd is not None:
        return assignment.internal_day_rate_usd
    return convert_to_usd(
        assignment.internal_day_rate, assignment.internal_currency, rates
    )


def project_future_revenue(
    assignments: Iterable[ContractorAssignment],
    months: int = 6,
    today: Optional[date] = None,
    rates: Optional[ExchangeRates] = None,
) -> list[MonthProjection]:
    """
    Project revenue and USD cost for each of the next ``months`` months.

    An active assignment counts for a month when its ``[start_date,
    end_date]`` window (open-ended without an end date) overlaps it; it then
    contributes ``standard_days_per_month`` days at its day rates.
    """
    if months < 0:
        raise ValidationError(f"months must not be negative (got {months}).")
    today = today or _today()
    active = [a for a in assignments if a.is_active]

    projections = []
    for i in range(1, months + 1):
        start = add_months(today.replace(day=1), i)
        end = month_end(start)
        revenue = 0.0
        cost = 0.0
        for a in active:
            if not overlaps(a.start_date, a.end_date, start, end):
                continue
            days = a.standard_days_per_month or DEFAULT_DAYS_PER_MONTH
            revenue += days * a.external_day_rate
            cost += days * _day_rate_usd(a, rates)
        projections.append(
            MonthProjection(month=month_key(start), projected_revenue=revenue, projected_cost=cost)
        )
    return projections


def expiring_contracts(
    assignments: Iterable[ContractorAssignment],
    threshold_days: int = 30,
    today: Optional[date] = None,
) -> list[ExpiringContract]:
    """Active assignments ending within ``[today, today + threshold_days]``."""
    today = today or _today()
    result = []
    for a in assignments:
        if not a.is_active or a.end_date is None:
            continue
        days_left = (a.end_date - today).days
        if 0 <= days_left <= threshold_days:
            result.append(ExpiringContract(assignment=a, days_left=days_left))
    result.sort(key=lambda e: e.days_left)
    return result


def generate_timesheets_for_month(
    month: str,
    assignments: Iterable[ContractorAssignment],
    timesheets: Iterable[ContractorTimesheet],
    rates: Optional[ExchangeRates] = None,
) -> BulkResult:
    """
    Draft one timesheet per active assignment overlapping ``month``.

    Assignments that already have a timesheet for the month are skipped.
    Drafts use the assignment's standard days and no overtime. A failure on
    one assignment (e.g. an unknown currency) is recorded in the result and
    does not stop the others.
    """
    start = parse_month(month)
    end = month_end(start)
    already = {t.assignment_id for t in timesheets if t.month == month}

    result = BulkResult()
    for a in assignments:
        if not a.is_active or a.id in already:
            continue
        if not overlaps(a.start_date, a.end_date, start, end):
            continue
        try:
            sheet = build_timesheet(
                a, month, a.standard_days_per_month or DEFAULT_DAYS_PER_MONTH, rates=rates
            )
        except ValidationError as exc:
            result.add_error(a.id, exc)
            continue
        result.created.append(sheet)
    return result
