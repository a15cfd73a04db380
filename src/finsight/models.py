# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Typed record snapshots and read-time migration for FinSight.

Records live in an external document store (see repository.py) and are
written with camelCase keys. Calculators never read those raw documents:
every document is normalized exactly once, when it enters the process, into
one of the frozen dataclasses below.

Normalization is also where older document shapes are migrated to the
current one, so that no calculator has to carry fallbacks:

- Transaction
    * missing ``paymentStatus``: posted revenue and every expense were
      treated as already paid before payment tracking existed, so they are
      migrated to ``"paid"``; anything else becomes ``"unpaid"``.
    * ``totalPaid`` (newer) wins over ``amountPaid`` (older).
- ContractorTimesheet
    * missing ``internalCostUSD``: the record predates multi-currency
      support and its ``internalCost`` was already in USD.
    * missing ``internalDayRateUSD`` is derived as ``internalCostUSD /
      totalDaysWorked`` when possible, else the raw internal day rate.
    * missing ``invoiceStatus`` / ``contractorPaymentStatus`` become
      ``"not_invoiced"`` / ``"unpaid"``.
- Any record with a missing currency code (``internalCurrency``,
  ``externalCurrency``, ``currency``) predates currency support and is
  migrated to ``"USD"``. Unknown, non-empty codes are kept as-is and rejected
  later by currency.py.

Malformed documents (unparseable dates, negative amounts, unknown enum
values) raise ``ValidationError``.

The module also exposes ``to_document()`` to turn a dataclass back into a
camelCase document for the write path.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any, Callable, Optional

from .errors import ValidationError

TRANSACTION_TYPES = ("revenue", "expense")
TRANSACTION_STATUSES = ("draft", "posted")
PAYMENT_STATUSES = ("paid", "partial", "unpaid")
PAYMENT_TERMS_DAYS: dict[str, int] = {
    "immediate": 0,
    "net_15": 15,
    "net_30": 30,
    "net_45": 45,
    "net_60": 60,
    "net_90": 90,
}
DEFAULT_PAYMENT_TERMS_DAYS = 30

ASSIGNMENT_STATUSES = ("active", "ended", "completed", "cancelled")
TIMESHEET_STATUSES = ("draft", "submitted", "approved")
INVOICE_STATUSES = ("not_invoiced", "invoiced", "partial", "paid")
CONTRACTOR_PAYMENT_STATUSES = ("unpaid", "paid")

BILLING_CYCLES = ("monthly", "annual")
SUBSCRIPTION_STATUSES = ("active", "cancelled", "paused")
PARTNER_STATUSES = ("active", "inactive")
DISTRIBUTION_STATUSES = ("pending", "completed")
PAYROLL_STATUSES = ("pending", "paid")

CANDIDATE_STATUSES = (
    "sourced",
    "submitted_to_client",
    "client_review",
    "interview_scheduled",
    "interview_completed",
    "offer_stage",
    "offer_extended",
    "offer_accepted",
    "placed",
    "rejected",
    "withdrawn",
)
CLOSED_CANDIDATE_STATUSES = ("rejected", "withdrawn", "placed")
JOB_ROLE_STATUSES = ("open", "on_hold", "filled", "cancelled")
DEAL_STAGES = (
    "lead",
    "qualified",
    "proposal",
    "negotiation",
    "closed_won",
    "closed_lost",
)
DEAL_STATUSES = ("open", "won", "lost")


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """A ledger entry (revenue or expense), amounts in USD."""

    id: str
    date: date
    type: str
    category: str
    amount: float
    status: str = "posted"
    payment_status: str = "unpaid"
    description: str = ""
    payment_date: Optional[date] = None
    amount_paid: Optional[float] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    payment_terms: Optional[str] = None

    @property
    def is_posted(self) -> bool:
        return self.status == "posted"

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def paid_amount(self) -> float:
        """Cash actually received/paid for this entry."""
        return self.amount_paid if self.amount_paid else self.amount

    @property
    def remaining_balance(self) -> float:
        return self.amount - (self.amount_paid or 0.0)

    @property
    def terms_days(self) -> int:
        return PAYMENT_TERMS_DAYS.get(
            self.payment_terms or "", DEFAULT_PAYMENT_TERMS_DAYS
        )


@dataclass(frozen=True)
class ContractorAssignment:
    """Billing agreement between a contractor and a customer."""

    id: str
    contractor_id: str
    customer_id: str
    start_date: date
    internal_day_rate: float
    external_day_rate: float
    status: str = "active"
    end_date: Optional[date] = None
    standard_days_per_month: float = 20.0
    standard_hours_per_day: float = 8.0
    internal_currency: str = "USD"
    external_currency: str = "USD"
    internal_day_rate_usd: Optional[float] = None
    contractor_name: str = ""
    customer_name: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class ContractorTimesheet:
    """Monthly timesheet with the figures derived at write time (USD)."""

    id: str
    assignment_id: str
    contractor_id: str
    customer_id: str
    month: str
    standard_days_worked: float
    overtime_days: float
    overtime_hours: float
    internal_day_rate: float
    external_day_rate: float
    internal_currency: str = "USD"
    external_currency: str = "USD"
    total_days_worked: float = 0.0
    internal_cost: float = 0.0
    internal_cost_usd: float = 0.0
    internal_day_rate_usd: float = 0.0
    exchange_rate: float = 1.0
    external_revenue: float = 0.0
    profit: float = 0.0
    status: str = "draft"
    contractor_name: str = ""
    customer_name: str = ""
    invoice_status: str = "not_invoiced"
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    customer_payment_date: Optional[date] = None
    customer_amount_paid: Optional[float] = None
    contractor_payment_status: str = "unpaid"
    contractor_payment_date: Optional[date] = None

    @property
    def month_start(self) -> date:
        year, month = self.month.split("-")
        return date(int(year), int(month), 1)


@dataclass(frozen=True)
class Subscription:
    id: str
    vendor: str
    cost: float
    billing_cycle: str
    next_billing_date: date
    status: str = "active"
    category: str = ""
    savings_opportunity: Optional[float] = None


@dataclass(frozen=True)
class Partner:
    id: str
    name: str
    share_percentage: float
    status: str = "active"
    email: str = ""


@dataclass(frozen=True)
class Organization:
    """Organization-level financial settings."""

    id: str
    bank_balance: Optional[float] = None
    last_bank_balance_update: Optional[date] = None
    retention_percentage: float = 0.0


@dataclass(frozen=True)
class Distribution:
    """Append-only ledger entry recording a partner's share of a distribution."""

    id: str
    partner_id: str
    partner_name: str
    amount: float
    date: date
    status: str = "pending"
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class PayrollRecord:
    id: str
    team_member_name: str
    month: str
    net_amount: float
    currency: str = "USD"
    status: str = "pending"
    paid_date: Optional[date] = None

    @property
    def month_start(self) -> date:
        year, month = self.month.split("-")
        return date(int(year), int(month), 1)


@dataclass(frozen=True)
class CandidateSubmission:
    id: str
    candidate_name: str
    client_name: str
    job_role_id: str
    recruiter_id: str
    status: str
    date_submitted: date
    last_client_update: Optional[date] = None
    interview_date: Optional[date] = None
    offer_status: Optional[str] = None
    placement_date: Optional[date] = None
    placement_fee: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.status not in CLOSED_CANDIDATE_STATUSES


@dataclass(frozen=True)
class JobRole:
    id: str
    title: str
    client_name: str
    status: str = "open"


@dataclass(frozen=True)
class Recruiter:
    id: str
    name: str
    status: str = "active"


@dataclass(frozen=True)
class RecruiterTask:
    id: str
    recruiter_id: str
    task_type: str
    date: date
    status: str = "pending"


@dataclass(frozen=True)
class Deal:
    id: str
    title: str
    stage: str
    value: float
    status: str = "open"
    client_name: str = ""
    probability: Optional[float] = None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first non-empty value among ``keys`` (camelCase first)."""
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return default


def _record_id(record: Mapping[str, Any]) -> str:
    return str(record.get("id") or "")


def _to_date(value: Any, field_name: str, record_id: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # Documents may carry full ISO timestamps; only the day matters.
        return date.fromisoformat(str(value).split("T")[0].strip())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid date in '{field_name}' for record {record_id!r}: {value!r}"
        ) from exc


def _required_date(value: Any, field_name: str, record_id: str) -> date:
    parsed = _to_date(value, field_name, record_id)
    if parsed is None:
        raise ValidationError(
            f"Missing date '{field_name}' for record {record_id!r}."
        )
    return parsed


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _to_float(
    value: Any,
    field_name: str,
    record_id: str,
    default: Optional[float] = 0.0,
    *,
    non_negative: bool = False,
) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Invalid number in '{field_name}' for record {record_id!r}: {value!r}"
        ) from exc
    if non_negative and number < 0:
        raise ValidationError(
            f"'{field_name}' must not be negative for record {record_id!r} "
            f"(got {number})."
        )
    return number


def _choice(
    value: Any, allowed: tuple[str, ...], field_name: str, record_id: str
) -> str:
    text = str(value).strip()
    if text not in allowed:
        raise ValidationError(
            f"Invalid value for '{field_name}' in record {record_id!r}: {text!r}. "
            f"Expected one of: {', '.join(allowed)}."
        )
    return text


def _to_month(value: Any, record_id: str) -> str:
    text = str(value or "").strip()
    try:
        datetime.strptime(text, "%Y-%m")
    except ValueError as exc:
        raise ValidationError(
            f"Invalid month for record {record_id!r}: {text!r} (expected YYYY-MM)."
        ) from exc
    return text


def _currency(value: Any) -> str:
    # Missing codes: legacy records were all USD.
    if value is None or str(value).strip() == "":
        return "USD"
    return str(value).strip().upper()


def _percentage(value: Any, field_name: str, record_id: str) -> float:
    number = _to_float(value, field_name, record_id) or 0.0
    if not 0.0 <= number <= 100.0:
        raise ValidationError(
            f"'{field_name}' must be between 0 and 100 for record {record_id!r} "
            f"(got {number:g})."
        )
    return number


# ---------------------------------------------------------------------------
# Normalization (read-time migration)
# ---------------------------------------------------------------------------


def normalize_transaction(record: Mapping[str, Any]) -> Transaction:
    """Build a Transaction from a stored document, migrating legacy shapes."""
    rid = _record_id(record)
    tx_type = _choice(_get(record, "type"), TRANSACTION_TYPES, "type", rid)
    status = _choice(
        _get(record, "status", default="posted"), TRANSACTION_STATUSES, "status", rid
    )

    raw_payment_status = _get(record, "paymentStatus", "payment_status")
    if raw_payment_status is None:
        legacy_paid = tx_type == "expense" or status == "posted"
        payment_status = "paid" if legacy_paid else "unpaid"
    else:
        payment_status = _choice(
            raw_payment_status, PAYMENT_STATUSES, "paymentStatus", rid
        )

    return Transaction(
        id=rid,
        date=_required_date(_get(record, "date"), "date", rid),
        type=tx_type,
        category=str(_get(record, "category", default="other")),
        amount=_to_float(_get(record, "amount"), "amount", rid, non_negative=True),
        status=status,
        payment_status=payment_status,
        description=str(_get(record, "description", default="")),
        payment_date=_to_date(
            _get(record, "paymentDate", "payment_date"), "paymentDate", rid
        ),
        amount_paid=_to_float(
            _get(record, "totalPaid", "amountPaid", "amount_paid"),
            "amountPaid",
            rid,
            default=None,
            non_negative=True,
        ),
        invoice_number=_get(record, "invoiceNumber", "invoice_number"),
        invoice_date=_to_date(
            _get(record, "invoiceDate", "invoice_date"), "invoiceDate", rid
        ),
        payment_terms=_get(record, "paymentTerms", "payment_terms"),
    )


def normalize_assignment(record: Mapping[str, Any]) -> ContractorAssignment:
    rid = _record_id(record)
    days_per_month = _to_float(
        _get(record, "standardDaysPerMonth", "standard_days_per_month"),
        "standardDaysPerMonth",
        rid,
        default=20.0,
    )
    hours_per_day = _to_float(
        _get(record, "standardHoursPerDay", "standard_hours_per_day"),
        "standardHoursPerDay",
        rid,
        default=8.0,
    )
    return ContractorAssignment(
        id=rid,
        contractor_id=str(_get(record, "contractorId", "contractor_id", default="")),
        customer_id=str(_get(record, "customerId", "customer_id", default="")),
        start_date=_required_date(
            _get(record, "startDate", "start_date"), "startDate", rid
        ),
        end_date=_to_date(_get(record, "endDate", "end_date"), "endDate", rid),
        internal_day_rate=_to_float(
            _get(record, "internalDayRate", "internal_day_rate"),
            "internalDayRate",
            rid,
            non_negative=True,
        ),
        external_day_rate=_to_float(
            _get(record, "externalDayRate", "external_day_rate"),
            "externalDayRate",
            rid,
            non_negative=True,
        ),
        status=_choice(
            _get(record, "status", default="active"),
            ASSIGNMENT_STATUSES,
            "status",
            rid,
        ),
        standard_days_per_month=days_per_month or 20.0,
        standard_hours_per_day=hours_per_day or 8.0,
        internal_currency=_currency(
            _get(record, "internalCurrency", "internal_currency")
        ),
        external_currency=_currency(
            _get(record, "externalCurrency", "external_currency")
        ),
        internal_day_rate_usd=_to_float(
            _get(record, "internalDayRateUSD", "internal_day_rate_usd"),
            "internalDayRateUSD",
            rid,
            default=None,
        ),
        contractor_name=str(_get(record, "contractorName", "contractor_name", default="")),
        customer_name=str(_get(record, "customerName", "customer_name", default="")),
    )


def normalize_timesheet(record: Mapping[str, Any]) -> ContractorTimesheet:
    rid = _record_id(record)

    def num(camel: str, snake: str, default: Optional[float] = 0.0) -> Optional[float]:
        return _to_float(_get(record, camel, snake), camel, rid, default=default)

    internal_cost = num("internalCost", "internal_cost")
    internal_cost_usd = num("internalCostUSD", "internal_cost_usd", default=None)
    if internal_cost_usd is None:
        internal_cost_usd = internal_cost
    total_days = num("totalDaysWorked", "total_days_worked")
    internal_day_rate = num("internalDayRate", "internal_day_rate")
    rate_usd = num("internalDayRateUSD", "internal_day_rate_usd", default=None)
    if rate_usd is None:
        rate_usd = internal_cost_usd / total_days if total_days else internal_day_rate

    return ContractorTimesheet(
        id=rid,
        assignment_id=str(_get(record, "assignmentId", "assignment_id", default="")),
        contractor_id=str(_get(record, "contractorId", "contractor_id", default="")),
        customer_id=str(_get(record, "customerId", "customer_id", default="")),
        month=_to_month(_get(record, "month"), rid),
        standard_days_worked=num("standardDaysWorked", "standard_days_worked"),
        overtime_days=num("overtimeDays", "overtime_days"),
        overtime_hours=num("overtimeHours", "overtime_hours"),
        internal_day_rate=internal_day_rate,
        external_day_rate=num("externalDayRate", "external_day_rate"),
        internal_currency=_currency(
            _get(record, "internalCurrency", "internal_currency")
        ),
        external_currency=_currency(
            _get(record, "externalCurrency", "external_currency")
        ),
        total_days_worked=total_days,
        internal_cost=internal_cost,
        internal_cost_usd=internal_cost_usd,
        internal_day_rate_usd=rate_usd,
        exchange_rate=num("exchangeRate", "exchange_rate", default=1.0),
        external_revenue=num("externalRevenue", "external_revenue"),
        profit=num("profit", "profit"),
        status=_choice(
            _get(record, "status", default="draft"), TIMESHEET_STATUSES, "status", rid
        ),
        contractor_name=str(_get(record, "contractorName", "contractor_name", default="")),
        customer_name=str(_get(record, "customerName", "customer_name", default="")),
        invoice_status=_choice(
            _get(record, "invoiceStatus", "invoice_status", default="not_invoiced"),
            INVOICE_STATUSES,
            "invoiceStatus",
            rid,
        ),
        invoice_number=_get(record, "invoiceNumber", "invoice_number"),
        invoice_date=_to_date(
            _get(record, "invoiceDate", "invoice_date"), "invoiceDate", rid
        ),
        customer_payment_date=_to_date(
            _get(record, "customerPaymentDate", "customer_payment_date"),
            "customerPaymentDate",
            rid,
        ),
        customer_amount_paid=num(
            "customerAmountPaid", "customer_amount_paid", default=None
        ),
        contractor_payment_status=_choice(
            _get(
                record,
                "contractorPaymentStatus",
                "contractor_payment_status",
                default="unpaid",
            ),
            CONTRACTOR_PAYMENT_STATUSES,
            "contractorPaymentStatus",
            rid,
        ),
        contractor_payment_date=_to_date(
            _get(record, "contractorPaymentDate", "contractor_payment_date"),
            "contractorPaymentDate",
            rid,
        ),
    )


def normalize_subscription(record: Mapping[str, Any]) -> Subscription:
    rid = _record_id(record)
    return Subscription(
        id=rid,
        vendor=str(_get(record, "vendor", "name", default="")),
        cost=_to_float(_get(record, "cost"), "cost", rid, non_negative=True),
        billing_cycle=_choice(
            _get(record, "billingCycle", "billing_cycle", default="monthly"),
            BILLING_CYCLES,
            "billingCycle",
            rid,
        ),
        next_billing_date=_required_date(
            _get(record, "nextBillingDate", "next_billing_date"),
            "nextBillingDate",
            rid,
        ),
        status=_choice(
            _get(record, "status", default="active"),
            SUBSCRIPTION_STATUSES,
            "status",
            rid,
        ),
        category=str(_get(record, "category", default="")),
        savings_opportunity=_to_float(
            _get(record, "savingsOpportunity", "savings_opportunity"),
            "savingsOpportunity",
            rid,
            default=None,
        ),
    )


def normalize_partner(record: Mapping[str, Any]) -> Partner:
    rid = _record_id(record)
    return Partner(
        id=rid,
        name=str(_get(record, "name", default="")),
        share_percentage=_percentage(
            _get(record, "sharePercentage", "share_percentage", default=0),
            "sharePercentage",
            rid,
        ),
        status=_choice(
            _get(record, "status", default="active"), PARTNER_STATUSES, "status", rid
        ),
        email=str(_get(record, "email", default="")),
    )


def normalize_organization(record: Mapping[str, Any]) -> Organization:
    rid = _record_id(record)
    return Organization(
        id=rid,
        bank_balance=_to_float(
            _get(record, "bankBalance", "bank_balance"), "bankBalance", rid, default=None
        ),
        last_bank_balance_update=_to_date(
            _get(record, "lastBankBalanceUpdate", "last_bank_balance_update"),
            "lastBankBalanceUpdate",
            rid,
        ),
        retention_percentage=_percentage(
            _get(record, "retentionPercentage", "retention_percentage", default=0),
            "retentionPercentage",
            rid,
        ),
    )


def normalize_distribution(record: Mapping[str, Any]) -> Distribution:
    rid = _record_id(record)
    return Distribution(
        id=rid,
        partner_id=str(_get(record, "partnerId", "partner_id", default="")),
        partner_name=str(_get(record, "partnerName", "partner_name", default="")),
        amount=_to_float(_get(record, "amount"), "amount", rid),
        date=_required_date(_get(record, "date"), "date", rid),
        status=_choice(
            _get(record, "status", default="pending"),
            DISTRIBUTION_STATUSES,
            "status",
            rid,
        ),
        created_at=_to_datetime(_get(record, "createdAt", "created_at")),
    )


def normalize_payroll(record: Mapping[str, Any]) -> PayrollRecord:
    rid = _record_id(record)
    return PayrollRecord(
        id=rid,
        team_member_name=str(
            _get(record, "teamMemberName", "team_member_name", default="")
        ),
        month=_to_month(_get(record, "month"), rid),
        net_amount=_to_float(
            _get(record, "netAmount", "net_amount"), "netAmount", rid, non_negative=True
        ),
        currency=_currency(_get(record, "currency")),
        status=_choice(
            _get(record, "status", default="pending"), PAYROLL_STATUSES, "status", rid
        ),
        paid_date=_to_date(_get(record, "paidDate", "paid_date"), "paidDate", rid),
    )


def normalize_submission(record: Mapping[str, Any]) -> CandidateSubmission:
    rid = _record_id(record)
    return CandidateSubmission(
        id=rid,
        candidate_name=str(_get(record, "candidateName", "candidate_name", default="")),
        client_name=str(_get(record, "clientName", "client_name", default="")),
        job_role_id=str(_get(record, "jobRoleId", "job_role_id", default="")),
        recruiter_id=str(_get(record, "recruiterId", "recruiter_id", default="")),
        status=_choice(_get(record, "status"), CANDIDATE_STATUSES, "status", rid),
        date_submitted=_required_date(
            _get(record, "dateSubmitted", "date_submitted"), "dateSubmitted", rid
        ),
        last_client_update=_to_date(
            _get(record, "lastClientUpdate", "last_client_update"),
            "lastClientUpdate",
            rid,
        ),
        interview_date=_to_date(
            _get(record, "interviewDate", "interview_date"), "interviewDate", rid
        ),
        offer_status=_get(record, "offerStatus", "offer_status"),
        placement_date=_to_date(
            _get(record, "placementDate", "placement_date"), "placementDate", rid
        ),
        placement_fee=_to_float(
            _get(record, "placementFee", "placement_fee"),
            "placementFee",
            rid,
            default=None,
        ),
    )


def normalize_job_role(record: Mapping[str, Any]) -> JobRole:
    rid = _record_id(record)
    return JobRole(
        id=rid,
        title=str(_get(record, "title", default="")),
        client_name=str(_get(record, "clientName", "client_name", default="")),
        status=_choice(
            _get(record, "status", default="open"), JOB_ROLE_STATUSES, "status", rid
        ),
    )


def normalize_recruiter(record: Mapping[str, Any]) -> Recruiter:
    rid = _record_id(record)
    return Recruiter(
        id=rid,
        name=str(_get(record, "name", default="")),
        status=_choice(
            _get(record, "status", default="active"), PARTNER_STATUSES, "status", rid
        ),
    )


def normalize_task(record: Mapping[str, Any]) -> RecruiterTask:
    rid = _record_id(record)
    return RecruiterTask(
        id=rid,
        recruiter_id=str(_get(record, "recruiterId", "recruiter_id", default="")),
        task_type=str(_get(record, "taskType", "task_type", default="other")),
        date=_required_date(_get(record, "date"), "date", rid),
        status=str(_get(record, "status", default="pending")),
    )


def normalize_deal(record: Mapping[str, Any]) -> Deal:
    rid = _record_id(record)
    probability = _get(record, "probability")
    return Deal(
        id=rid,
        title=str(_get(record, "title", default="")),
        stage=_choice(_get(record, "stage"), DEAL_STAGES, "stage", rid),
        value=_to_float(_get(record, "value"), "value", rid, non_negative=True),
        status=_choice(
            _get(record, "status", default="open"), DEAL_STATUSES, "status", rid
        ),
        client_name=str(_get(record, "clientName", "client_name", default="")),
        probability=None
        if probability is None
        else _percentage(probability, "probability", rid),
    )


NORMALIZERS: dict[str, Callable[[Mapping[str, Any]], Any]] = {
    "transactions": normalize_transaction,
    "assignments": normalize_assignment,
    "timesheets": normalize_timesheet,
    "subscriptions": normalize_subscription,
    "partners": normalize_partner,
    "organizations": normalize_organization,
    "distributions": normalize_distribution,
    "payroll": normalize_payroll,
    "submissions": normalize_submission,
    "job_roles": normalize_job_role,
    "recruiters": normalize_recruiter,
    "recruiter_tasks": normalize_task,
    "deals": normalize_deal,
}


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------

_ACRONYMS = {"usd": "USD"}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(_ACRONYMS.get(part, part.capitalize()) for part in rest)


def to_document(obj: Any) -> dict[str, Any]:
    """
    Convert a record dataclass into a camelCase document.

    Dates are written as ISO strings and ``None`` values are dropped, since
    the store rejects undefined fields.
    """
    document: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        document[_camel(f.name)] = value
    return document
