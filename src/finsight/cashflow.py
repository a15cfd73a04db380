# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Cash-flow statement builder for FinSight.

The statement reconciles two accounting bases over the same period:

1. Accrual basis
   -------------
   Posted transactions dated in the period, plus contractor revenue/cost
   and payroll of the months starting in the period (see
   ``ledger.combined_pnl``). Whether cash moved is irrelevant.

2. Cash basis
   ----------
   The same entities, gated on their payment flags and placed in the period
   by their *payment* date:

   - receipts from customers       : paid revenue transactions
                                     (payment date, else transaction date)
   - contractor customer receipts  : timesheets with ``invoice_status ==
                                     "paid"`` (customer payment date)
   - contractor payments           : timesheets with
                                     ``contractor_payment_status == "paid"``
                                     (contractor payment date)
   - payroll payments              : paid payroll records (paid date, USD)
   - subscription payments         : estimated as monthly cost x
                                     max(1, days / 30) for active
                                     subscriptions
   - other operating payments      : paid expenses outside the payroll,
                                     contractors and software categories,
                                     which are already covered above
   - financing                     : minus completed partner distributions

   ``closing_balance = opening_balance + net_cash_change``. The opening
   balance is the organization's bank balance, unless the caller chains in
   the closing balance of the preceding period (see multi_periods.py).

3. AR/AP aging
   -----------
   Outstanding items are bucketed by ``days_outstanding = today -
   reference_date`` into ``0–30``, ``31–60``, ``61–90``, ``91–120`` and
   ``120+``. Items dated in the future fall in ``0–30``. Bucket amounts use
   remaining balances, so ``sum(bucket.amount) == total``.

   - AR: posted revenue not fully paid (reference: invoice date, else
     transaction date) and approved timesheets not yet paid by the customer
     (reference: invoice date, else first day of the month).
   - AP: posted expenses not paid (reference: transaction date), approved
     timesheets not yet paid to the contractor and pending payroll
     (reference: first day of the month).

4. Metrics
   -------
   cash position, monthly burn rate over a trailing window (0 when inflows
   cover outflows), DSO and runway (``math.inf`` when there is no burn).

The builder is a pure function of its inputs. Marking an item as paid is a
write performed through ``services``; the statement is simply rebuilt from
the updated snapshot.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from .currency import ExchangeRates, convert_to_usd
from .ledger import combined_pnl
from .models import (
    DEFAULT_PAYMENT_TERMS_DAYS,
    ContractorTimesheet,
    Distribution,
    Organization,
    PayrollRecord,
    Subscription,
    Transaction,
)
from .periods import Period, _today, add_months
from .ratios import safe_divide
from .subscriptions import monthly_cost

AGING_BUCKETS: tuple[tuple[str, Optional[int]], ...] = (
    ("0–30", 30),
    ("31–60", 60),
    ("61–90", 90),
    ("91–120", 120),
    ("120+", None),
)

# Paid expenses in these categories are already counted through payroll,
# timesheets and subscriptions.
EXCLUDED_OPERATING_CATEGORIES = frozenset({"payroll", "contractors", "software"})

PAYROLL_DUE_DAY = 28
MAX_UPCOMING_INFLOWS = 10
MAX_UPCOMING_OUTFLOWS_PER_SOURCE = 5
DEFAULT_BURN_WINDOW_MONTHS = 3


# ---------------------------------------------------------------------------
# Result objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OperatingActivities:
    receipts_from_customers: float = 0.0
    contractor_customer_receipts: float = 0.0
    contractor_payments: float = 0.0
    payroll_payments: float = 0.0
    subscription_payments: float = 0.0
    other_operating_payments: float = 0.0

    @property
    def inflows(self) -> float:
        return self.receipts_from_customers + self.contractor_customer_receipts

    @property
    def outflows(self) -> float:
        return (
            self.contractor_payments
            + self.payroll_payments
            + self.subscription_payments
            + self.other_operating_payments
        )

    @property
    def net_operating(self) -> float:
        return self.inflows - self.outflows


@dataclass(frozen=True)
class FinancingActivities:
    partner_distributions: float = 0.0

    @property
    def net_financing(self) -> float:
        return -self.partner_distributions


@dataclass(frozen=True)
class CashFlowComparison:
    accrual_revenue: float
    cash_revenue: float
    accrual_expenses: float
    cash_expenses: float

    @property
    def revenue_difference(self) -> float:
        return self.accrual_revenue - self.cash_revenue

    @property
    def expenses_difference(self) -> float:
        return self.accrual_expenses - self.cash_expenses

    @property
    def accrual_profit(self) -> float:
        return self.accrual_revenue - self.accrual_expenses

    @property
    def cash_profit(self) -> float:
        return self.cash_revenue - self.cash_expenses

    @property
    def profit_difference(self) -> float:
        return self.accrual_profit - self.cash_profit


@dataclass(frozen=True)
class AgingItem:
    id: str
    description: str
    reference_date: date
    amount: float
    remaining_balance: float
    days_outstanding: int
    source: str
    payment_status: str = "unpaid"
    customer_name: str = ""
    invoice_number: Optional[str] = None
    payment_terms_days: int = DEFAULT_PAYMENT_TERMS_DAYS


@dataclass
class AgingBucket:
    label: str
    amount: float = 0.0
    count: int = 0
    items: list[AgingItem] = field(default_factory=list)


@dataclass(frozen=True)
class CashEvent:
    direction: str
    description: str
    expected_date: date
    amount: float
    source: str


@dataclass(frozen=True)
class CashFlowMetrics:
    cash_position: float
    monthly_burn_rate: float
    days_sales_outstanding: float
    cash_runway: float

    @property
    def is_profitable(self) -> bool:
        """True when there is no burn (runway is unbounded)."""
        return math.isinf(self.cash_runway)


@dataclass(frozen=True)
class CashFlowStatement:
    period: Period
    opening_balance: float
    operating: OperatingActivities
    financing: FinancingActivities
    comparison: CashFlowComparison
    accounts_receivable: list[AgingBucket]
    accounts_payable: list[AgingBucket]
    metrics: CashFlowMetrics
    upcoming_inflows: list[CashEvent] = field(default_factory=list)
    upcoming_outflows: list[CashEvent] = field(default_factory=list)

    @property
    def total_inflows(self) -> float:
        return self.operating.inflows

    @property
    def total_outflows(self) -> float:
        return self.operating.outflows + self.financing.partner_distributions

    @property
    def net_cash_change(self) -> float:
        return self.operating.net_operating + self.financing.net_financing

    @property
    def closing_balance(self) -> float:
        return self.opening_balance + self.net_cash_change

    @property
    def total_ar(self) -> float:
        return sum(b.amount for b in self.accounts_receivable)

    @property
    def total_ap(self) -> float:
        return sum(b.amount for b in self.accounts_payable)


# ---------------------------------------------------------------------------
# Cash movements
# ---------------------------------------------------------------------------


def _payroll_usd(record: PayrollRecord, rates: Optional[ExchangeRates]) -> float:
    return convert_to_usd(record.net_amount, record.currency, rates)


def _by_id(items):
    return sorted(items, key=lambda x: x.id)


def cash_activities(
    period: Period,
    transactions: Iterable[Transaction],
    timesheets: Iterable[ContractorTimesheet] = (),
    payroll: Iterable[PayrollRecord] = (),
    distributions: Iterable[Distribution] = (),
    subscriptions: Iterable[Subscription] = (),
    rates: Optional[ExchangeRates] = None,
) -> tuple[OperatingActivities, FinancingActivities]:
    """Cash-basis operating and financing activities for a period."""
    posted = _by_id(t for t in transactions if t.is_posted)
    sheets = _by_id(timesheets)

    receipts = 0.0
    other_payments = 0.0
    for t in posted:
        if not t.is_paid or not period.contains(t.payment_date or t.date):
            continue
        if t.type == "revenue":
            receipts += t.paid_amount
        elif t.category not in EXCLUDED_OPERATING_CATEGORIES:
            other_payments += t.paid_amount

    contractor_receipts = sum(
        ts.customer_amount_paid or ts.external_revenue
        for ts in sheets
        if ts.invoice_status == "paid" and period.contains(ts.customer_payment_date)
    )
    contractor_payments = sum(
        ts.internal_cost_usd
        for ts in sheets
        if ts.contractor_payment_status == "paid"
        and period.contains(ts.contractor_payment_date)
    )
    payroll_payments = sum(
        _payroll_usd(p, rates)
        for p in _by_id(payroll)
        if p.status == "paid" and period.contains(p.paid_date)
    )

    months_in_period = max(1.0, (period.end - period.start).days / 30)
    subscription_payments = sum(
        monthly_cost(s) * months_in_period
        for s in _by_id(subscriptions)
        if s.status == "active"
    )

    distributed = sum(
        d.amount
        for d in _by_id(distributions)
        if d.status == "completed" and period.contains(d.date)
    )

    operating = OperatingActivities(
        receipts_from_customers=receipts,
        contractor_customer_receipts=contractor_receipts,
        contractor_payments=contractor_payments,
        payroll_payments=payroll_payments,
        subscription_payments=subscription_payments,
        other_operating_payments=other_payments,
    )
    return operating, FinancingActivities(partner_distributions=distributed)


# ---------------------------------------------------------------------------
# Aging
# ---------------------------------------------------------------------------


def bucket_label(days_outstanding: int) -> str:
    for label, upper in AGING_BUCKETS:
        if upper is None or days_outstanding <= upper:
            return label
    raise AssertionError("unreachable")


def build_aging_buckets(items: Iterable[AgingItem]) -> list[AgingBucket]:
    """Partition items into the five aging buckets, in display order."""
    buckets = {label: AgingBucket(label=label) for label, _ in AGING_BUCKETS}
    for item in items:
        bucket = buckets[bucket_label(item.days_outstanding)]
        bucket.amount += item.remaining_balance
        bucket.count += 1
        bucket.items.append(item)
    return list(buckets.values())


def receivable_items(
    transactions: Iterable[Transaction],
    timesheets: Iterable[ContractorTimesheet],
    today: date,
) -> list[AgingItem]:
    items = []
    for t in _by_id(transactions):
        if t.type != "revenue" or not t.is_posted or t.is_paid:
            continue
        reference = t.invoice_date or t.date
        items.append(
            AgingItem(
                id=t.id,
                description=t.description,
                reference_date=reference,
                amount=t.amount,
                remaining_balance=t.remaining_balance,
                days_outstanding=(today - reference).days,
                source="transaction",
                payment_status=t.payment_status,
                invoice_number=t.invoice_number,
                payment_terms_days=t.terms_days,
            )
        )
    for ts in _by_id(timesheets):
        if ts.status != "approved" or ts.invoice_status == "paid":
            continue
        reference = ts.invoice_date or ts.month_start
        items.append(
            AgingItem(
                id=ts.id,
                description=f"{ts.contractor_name} - {ts.month}",
                reference_date=reference,
                amount=ts.external_revenue,
                remaining_balance=ts.external_revenue - (ts.customer_amount_paid or 0.0),
                days_outstanding=(today - reference).days,
                source="timesheet",
                payment_status="partial" if ts.invoice_status == "partial" else "unpaid",
                customer_name=ts.customer_name,
                invoice_number=ts.invoice_number,
            )
        )
    return items


def payable_items(
    transactions: Iterable[Transaction],
    timesheets: Iterable[ContractorTimesheet],
    payroll: Iterable[PayrollRecord],
    today: date,
    rates: Optional[ExchangeRates] = None,
) -> list[AgingItem]:
    items = []
    for t in _by_id(transactions):
        if t.type != "expense" or not t.is_posted or t.is_paid:
            continue
        items.append(
            AgingItem(
                id=t.id,
                description=t.description,
                reference_date=t.date,
                amount=t.amount,
                remaining_balance=t.remaining_balance,
                days_outstanding=(today - t.date).days,
                source="transaction",
                payment_status=t.payment_status,
                invoice_number=t.invoice_number,
            )
        )
    for ts in _by_id(timesheets):
        if ts.status != "approved" or ts.contractor_payment_status == "paid":
            continue
        items.append(
            AgingItem(
                id=ts.id,
                description=f"{ts.contractor_name} - {ts.month}",
                reference_date=ts.month_start,
                amount=ts.internal_cost_usd,
                remaining_balance=ts.internal_cost_usd,
                days_outstanding=(today - ts.month_start).days,
                source="timesheet",
            )
        )
    for p in _by_id(payroll):
        if p.status != "pending":
            continue
        amount = _payroll_usd(p, rates)
        items.append(
            AgingItem(
                id=p.id,
                description=f"Payroll: {p.team_member_name} - {p.month}",
                reference_date=p.month_start,
                amount=amount,
                remaining_balance=amount,
                days_outstanding=(today - p.month_start).days,
                source="payroll",
            )
        )
    return items


# ---------------------------------------------------------------------------
# Upcoming events
# ---------------------------------------------------------------------------


def upcoming_events(
    receivables: Iterable[AgingItem],
    payroll: Iterable[PayrollRecord],
    subscriptions: Iterable[Subscription],
    distributions: Iterable[Distribution],
    rates: Optional[ExchangeRates] = None,
) -> tuple[list[CashEvent], list[CashEvent]]:
    """Expected inflows (from AR) and outflows, each sorted by expected date."""
    ar = sorted(receivables, key=lambda i: (i.reference_date, i.id))
    inflows = [
        CashEvent(
            direction="inflow",
            description=item.description,
            expected_date=item.reference_date + timedelta(days=item.payment_terms_days),
            amount=item.remaining_balance,
            source="invoice",
        )
        for item in ar[:MAX_UPCOMING_INFLOWS]
    ]

    limit = MAX_UPCOMING_OUTFLOWS_PER_SOURCE
    pending_payroll = [p for p in _by_id(payroll) if p.status == "pending"]
    active_subs = sorted(
        (s for s in subscriptions if s.status == "active"),
        key=lambda s: (s.next_billing_date, s.id),
    )
    pending_dists = sorted(
        (d for d in distributions if d.status == "pending"), key=lambda d: (d.date, d.id)
    )

    outflows = [
        CashEvent(
            direction="outflow",
            description=f"Payroll: {p.team_member_name}",
            expected_date=p.month_start.replace(day=PAYROLL_DUE_DAY),
            amount=_payroll_usd(p, rates),
            source="payroll",
        )
        for p in sorted(pending_payroll, key=lambda p: (p.month, p.id))[:limit]
    ]
    outflows += [
        CashEvent(
            direction="outflow",
            description=s.vendor,
            expected_date=s.next_billing_date,
            amount=s.cost,
            source="subscription",
        )
        for s in active_subs[:limit]
    ]
    outflows += [
        CashEvent(
            direction="outflow",
            description=f"Distribution: {d.partner_name}",
            expected_date=d.date,
            amount=d.amount,
            source="distribution",
        )
        for d in pending_dists[:limit]
    ]

    inflows.sort(key=lambda e: e.expected_date)
    outflows.sort(key=lambda e: e.expected_date)
    return inflows, outflows


# ---------------------------------------------------------------------------
# Statement
# ---------------------------------------------------------------------------


def monthly_burn_rate(
    today: date,
    window_months: int,
    transactions: Iterable[Transaction],
    timesheets: Iterable[ContractorTimesheet] = (),
    payroll: Iterable[PayrollRecord] = (),
    distributions: Iterable[Distribution] = (),
    subscriptions: Iterable[Subscription] = (),
    rates: Optional[ExchangeRates] = None,
) -> float:
    """
    Average monthly net cash outflow over the trailing window ending today.

    Returns 0.0 when cash inflows cover outflows over the window.
    """
    if window_months <= 0:
        raise ValueError(f"burn window must be positive (got {window_months}).")
    window = Period(start=add_months(today, -window_months), end=today)
    operating, financing = cash_activities(
        window, transactions, timesheets, payroll, distributions, subscriptions, rates
    )
    net_outflow = operating.outflows + financing.partner_distributions - operating.inflows
    return max(0.0, net_outflow / window_months)


def build_cash_flow_statement(
    organization: Organization,
    period: Period,
    *,
    transactions: Iterable[Transaction],
    timesheets: Iterable[ContractorTimesheet] = (),
    payroll: Iterable[PayrollRecord] = (),
    distributions: Iterable[Distribution] = (),
    subscriptions: Iterable[Subscription] = (),
    today: Optional[date] = None,
    opening_balance: Optional[float] = None,
    rates: Optional[ExchangeRates] = None,
    burn_window_months: int = DEFAULT_BURN_WINDOW_MONTHS,
) -> CashFlowStatement:
    """
    Build the cash-flow statement of ``organization`` for ``period``.

    Parameters
    ----------
    organization :
        Provides the bank balance used as opening balance.
    period :
        Inclusive reporting window.
    transactions, timesheets, payroll, distributions, subscriptions :
        Snapshots of the corresponding collections. Draft transactions are
        ignored everywhere.
    today :
        Reference date for aging, burn rate and events (defaults to today).
    opening_balance :
        Explicit opening balance (e.g. the previous period's closing
        balance); overrides the organization's bank balance.
    rates :
        Exchange-rate table for payroll conversion.
    burn_window_months :
        Length of the trailing window used for the burn rate.
    """
    today = today or _today()
    transactions = [t for t in transactions if t.is_posted]
    timesheets = list(timesheets)
    payroll = list(payroll)
    distributions = list(distributions)
    subscriptions = list(subscriptions)

    if opening_balance is None:
        opening_balance = organization.bank_balance or 0.0

    operating, financing = cash_activities(
        period, transactions, timesheets, payroll, distributions, subscriptions, rates
    )

    accrual = combined_pnl(
        transactions, timesheets, payroll, period.start, period.end, rates
    )
    comparison = CashFlowComparison(
        accrual_revenue=accrual.revenue,
        cash_revenue=operating.inflows,
        accrual_expenses=accrual.expenses,
        cash_expenses=operating.outflows + financing.partner_distributions,
    )

    ar_items = receivable_items(transactions, timesheets, today)
    ap_items = payable_items(transactions, timesheets, payroll, today, rates)
    receivable = build_aging_buckets(ar_items)
    payable = build_aging_buckets(ap_items)

    closing = opening_balance + operating.net_operating + financing.net_financing
    burn = monthly_burn_rate(
        today,
        burn_window_months,
        transactions,
        timesheets,
        payroll,
        distributions,
        subscriptions,
        rates,
    )
    total_ar = sum(b.amount for b in receivable)
    metrics = CashFlowMetrics(
        cash_position=closing,
        monthly_burn_rate=burn,
        days_sales_outstanding=safe_divide(total_ar, operating.inflows) * period.days,
        cash_runway=max(0.0, closing / burn) if burn > 0 else math.inf,
    )

    inflows, outflows = upcoming_events(
        ar_items, payroll, subscriptions, distributions, rates
    )

    return CashFlowStatement(
        period=period,
        opening_balance=opening_balance,
        operating=operating,
        financing=financing,
        comparison=comparison,
        accounts_receivable=receivable,
        accounts_payable=payable,
        metrics=metrics,
        upcoming_inflows=inflows,
        upcoming_outflows=outflows,
    )
