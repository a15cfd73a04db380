# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
High-level services tying the record store to the calculators.

This module sits between:
- the record store in `repository.py`, and
- user-facing layers such as the CLI.

Responsibilities
----------------
1) Snapshots
   - Load documents collection by collection and normalize them once
     (models.py). A malformed document does not abort the load: it is
     reported as a RecordError in ``Snapshot.errors`` and left out.

2) Reporting
   - Business P&L and cash-flow statement for a reporting period.
   - Distribution waterfall preview from the business P&L.

3) Write paths
   - Timesheets: add, edit (merge then recompute), monthly generation.
   - Payments: mark transactions, timesheets and payroll as paid.
   - Partners: add / re-share with the 100% ceiling, profit distribution.
   - Organization: bank balance and retention percentage.

Design notes
------------
- Every write is followed by a best-effort activity-log entry. A failing
  activity log never fails the write: it is logged at WARNING level and the
  returned WriteOutcome is flagged ``degraded``.
- Calculators stay pure; only this module talks to the store.
"""

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from .cashflow import CashFlowStatement, build_cash_flow_statement
from .config import AppConfig, OrganizationSettings
from .contractors import (
    build_timesheet,
    generate_timesheets_for_month,
    recompute_timesheet,
)
from .currency import ExchangeRates
from .distribution import (
    DistributionLedger,
    DistributionPlan,
    compute_waterfall,
    distribute_profit,
    validate_partner_share,
)
from .errors import BulkResult, FinSightError, RecordError, ValidationError
from .io import read_transactions
from .ledger import BusinessPnL, combined_pnl
from .models import (
    NORMALIZERS,
    Organization,
    normalize_assignment,
    normalize_partner,
    normalize_timesheet,
    normalize_transaction,
    to_document,
)
from .periods import Period, _today
from .repository import (
    ACTIVITY_LOG,
    ASSIGNMENTS,
    DISTRIBUTIONS,
    ORGANIZATIONS,
    PARTNERS,
    PAYROLL,
    TIMESHEETS,
    TRANSACTIONS,
    Repository,
)

logger = logging.getLogger(__name__)

# Half a cent: amounts derived from exchange rates are not exact.
PAYMENT_TOLERANCE = 0.005


@dataclass(frozen=True)
class WriteOutcome:
    """
    Result of a write path.

    ``degraded`` is True when the primary write succeeded but a secondary
    write (the activity log) failed.
    """

    record_id: str
    record: Any = None
    degraded: bool = False


@dataclass
class Snapshot:
    """Normalized records of every collection, plus the documents rejected."""

    transactions: list = field(default_factory=list)
    assignments: list = field(default_factory=list)
    timesheets: list = field(default_factory=list)
    subscriptions: list = field(default_factory=list)
    partners: list = field(default_factory=list)
    organizations: list = field(default_factory=list)
    distributions: list = field(default_factory=list)
    payroll: list = field(default_factory=list)
    submissions: list = field(default_factory=list)
    job_roles: list = field(default_factory=list)
    recruiters: list = field(default_factory=list)
    recruiter_tasks: list = field(default_factory=list)
    deals: list = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


def normalize_documents(
    collection: str, documents: Iterable[Mapping[str, Any]]
) -> tuple[list, list[RecordError]]:
    """
    Normalize the documents of one collection.

    Returns the records that passed validation and one RecordError per
    document that did not.
    """
    try:
        normalizer = NORMALIZERS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection!r}") from None

    records, errors = [], []
    for doc in documents:
        try:
            records.append(normalizer(doc))
        except ValidationError as exc:
            errors.append(RecordError(record_id=doc.get("id"), message=str(exc)))
    if errors:
        logger.warning(
            "%d malformed document(s) skipped in %s", len(errors), collection
        )
    return records, errors


def snapshot_from_documents(
    documents: Mapping[str, Iterable[Mapping[str, Any]]],
) -> Snapshot:
    """Build a Snapshot from raw documents keyed by collection name."""
    snapshot = Snapshot()
    for collection, docs in documents.items():
        records, errors = normalize_documents(collection, docs)
        setattr(snapshot, collection, records)
        snapshot.errors.extend(errors)
    return snapshot


def load_snapshot(
    repo: Repository, collections: Optional[Iterable[str]] = None
) -> Snapshot:
    """Load and normalize ``collections`` (all known ones by default)."""
    names = list(collections) if collections is not None else list(NORMALIZERS)
    return snapshot_from_documents({name: repo.list(name) for name in names})


def organization_for(
    snapshot: Snapshot, settings: Optional[OrganizationSettings] = None
) -> Organization:
    """
    Organization record matching ``settings.id``.

    Falls back to the configured defaults when the store has no such record.
    """
    settings = settings or OrganizationSettings()
    for org in snapshot.organizations:
        if org.id == settings.id:
            return org
    return Organization(
        id=settings.id,
        bank_balance=settings.bank_balance,
        retention_percentage=settings.retention_percentage,
    )


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def pnl_for_period(
    snapshot: Snapshot, period: Period, rates: Optional[ExchangeRates] = None
) -> BusinessPnL:
    return combined_pnl(
        snapshot.transactions,
        snapshot.timesheets,
        snapshot.payroll,
        period.start,
        period.end,
        rates,
    )


def cash_flow_for_period(
    snapshot: Snapshot,
    period: Period,
    app_config: Optional[AppConfig] = None,
    *,
    today: Optional[date] = None,
    opening_balance: Optional[float] = None,
) -> CashFlowStatement:
    """
    Cash-flow statement of the configured organization for ``period``.

    Parameters
    ----------
    snapshot:
        Normalized records (see ``load_snapshot``).
    period:
        Inclusive reporting window.
    app_config:
        Provides the organization defaults, the exchange-rate table and the
        burn-rate window. Built-in defaults are used without it.
    today:
        Reference date for aging and the burn rate.
    opening_balance:
        Explicit opening balance, e.g. chained from a previous period.
    """
    settings = app_config.organization if app_config else None
    rates = app_config.rates if app_config else None
    burn_window = app_config.cash_flow.burn_window_months if app_config else 3
    return build_cash_flow_statement(
        organization_for(snapshot, settings),
        period,
        transactions=snapshot.transactions,
        timesheets=snapshot.timesheets,
        payroll=snapshot.payroll,
        distributions=snapshot.distributions,
        subscriptions=snapshot.subscriptions,
        today=today,
        opening_balance=opening_balance,
        rates=rates,
        burn_window_months=burn_window,
    )


def distribution_plan_for_period(
    snapshot: Snapshot,
    period: Period,
    app_config: Optional[AppConfig] = None,
    retention_percentage: Optional[float] = None,
) -> DistributionPlan:
    """
    Preview the waterfall of ``period`` from the business P&L.

    Retention defaults to the organization's retention percentage.
    """
    settings = app_config.organization if app_config else None
    rates = app_config.rates if app_config else None
    pnl = pnl_for_period(snapshot, period, rates)
    if retention_percentage is None:
        retention_percentage = organization_for(snapshot, settings).retention_percentage
    return compute_waterfall(
        pnl.revenue, pnl.expenses, snapshot.partners, retention_percentage
    )


# ---------------------------------------------------------------------------
# Activity log
# ---------------------------------------------------------------------------


def _log_activity(
    repo: Repository,
    module: str,
    action: str,
    entity_type: str,
    entity_id: str,
    description: str,
    details: Optional[Mapping[str, Any]] = None,
) -> bool:
    """Record an activity-log entry. Returns False when the store refused it."""
    entry = {
        "module": module,
        "action": action,
        "entityType": entity_type,
        "entityId": entity_id,
        "description": description,
        "details": dict(details or {}),
        "timestamp": datetime.now().isoformat(timespec="seconds"),
    }
    try:
        repo.create(ACTIVITY_LOG, entry)
    except FinSightError as exc:
        logger.warning("Activity log write failed for %s %s: %s", entity_type, entity_id, exc)
        return False
    return True


def _outcome(record_id: str, record: Any, logged: bool) -> WriteOutcome:
    return WriteOutcome(record_id=record_id, record=record, degraded=not logged)


# ---------------------------------------------------------------------------
# Timesheets
# ---------------------------------------------------------------------------


def add_timesheet(
    repo: Repository,
    assignment_id: str,
    month: str,
    standard_days_worked: float,
    overtime_days: float = 0.0,
    overtime_hours: float = 0.0,
    *,
    internal_day_rate: Optional[float] = None,
    external_day_rate: Optional[float] = None,
    rates: Optional[ExchangeRates] = None,
) -> WriteOutcome:
    """
    Create a timesheet for an assignment and store its derived figures.

    Raises
    ------
    NotFoundError
        If the assignment does not exist.
    ValidationError
        If the inputs are invalid or the assignment already has a timesheet
        for ``month``.
    """
    assignment = normalize_assignment(repo.get(ASSIGNMENTS, assignment_id))
    if repo.list(TIMESHEETS, {"assignmentId": assignment_id, "month": month}):
        raise ValidationError(
            f"A timesheet already exists for assignment {assignment_id!r} in {month}."
        )

    sheet = build_timesheet(
        assignment,
        month,
        standard_days_worked,
        overtime_days,
        overtime_hours,
        internal_day_rate=internal_day_rate,
        external_day_rate=external_day_rate,
        rates=rates,
    )
    record_id = repo.create(TIMESHEETS, to_document(sheet))
    logged = _log_activity(
        repo,
        "contractors",
        "create",
        "timesheet",
        record_id,
        f"Added timesheet for {assignment.contractor_name or assignment.contractor_id}"
        f" ({month})",
        {"totalDaysWorked": sheet.total_days_worked, "profit": sheet.profit},
    )
    return _outcome(record_id, sheet, logged)


def edit_timesheet(
    repo: Repository,
    timesheet_id: str,
    changes: Mapping[str, Any],
    rates: Optional[ExchangeRates] = None,
) -> WriteOutcome:
    """
    Apply ``changes`` (field names of ContractorTimesheet) and recompute.

    Editing with no change yields the same stored figures.

    Raises
    ------
    ValidationError
        If the changes are invalid, or move the timesheet to a month that
        already has a timesheet for the same assignment.
    """
    existing = normalize_timesheet(repo.get(TIMESHEETS, timesheet_id))
    assignment = None
    if existing.assignment_id:
        assignment = normalize_assignment(repo.get(ASSIGNMENTS, existing.assignment_id))

    updated = recompute_timesheet(existing, changes, assignment, rates)
    if updated.month != existing.month and any(
        doc["id"] != timesheet_id
        for doc in repo.list(
            TIMESHEETS, {"assignmentId": updated.assignment_id, "month": updated.month}
        )
    ):
        raise ValidationError(
            f"A timesheet already exists for assignment {updated.assignment_id!r} "
            f"in {updated.month}."
        )
    repo.update(TIMESHEETS, timesheet_id, to_document(updated))
    logged = _log_activity(
        repo,
        "contractors",
        "update",
        "timesheet",
        timesheet_id,
        f"Updated timesheet {updated.month}",
        {"changes": sorted(changes)},
    )
    return _outcome(timesheet_id, updated, logged)


def generate_timesheets(
    repo: Repository, month: str, rates: Optional[ExchangeRates] = None
) -> BulkResult:
    """
    Draft the missing timesheets of ``month`` and store them in one batch.

    Per-assignment failures are returned in ``BulkResult.errors``.
    """
    snapshot = load_snapshot(repo, [ASSIGNMENTS, TIMESHEETS])
    result = generate_timesheets_for_month(
        month, snapshot.assignments, snapshot.timesheets, rates
    )
    if result.created:
        ids = repo.create_many(TIMESHEETS, [to_document(t) for t in result.created])
        logger.info("Generated %d timesheet(s) for %s", len(ids), month)
        result.degraded = not _log_activity(
            repo,
            "contractors",
            "create",
            "timesheet",
            ",".join(ids),
            f"Generated {len(ids)} timesheet(s) for {month}",
        )
    return result


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def _payment_status(paid: float, amount: float) -> str:
    if paid <= 0:
        return "unpaid"
    return "paid" if paid >= amount - PAYMENT_TOLERANCE else "partial"


def _check_payment(amount: Optional[float], remaining: float, what: str) -> float:
    """Validate a payment against the balance left; None pays it in full."""
    if remaining <= PAYMENT_TOLERANCE:
        raise ValidationError(f"{what} has nothing left to pay.")
    if amount is None:
        return remaining
    if amount <= 0:
        raise ValidationError(f"Payment amount must be positive (got {amount:g}).")
    if amount > remaining + PAYMENT_TOLERANCE:
        raise ValidationError(
            f"Payment of {amount:,.2f} exceeds the remaining balance of {remaining:,.2f}."
        )
    return amount


def mark_transaction_paid(
    repo: Repository,
    transaction_id: str,
    amount: Optional[float] = None,
    payment_date: Optional[date] = None,
) -> WriteOutcome:
    """
    Record a payment against a transaction.

    Without ``amount`` the remaining balance is paid. Partial payments
    accumulate in ``totalPaid``.

    Raises
    ------
    ValidationError
        If the transaction is already paid, or the amount is not positive
        or exceeds the remaining balance.
    """
    tx = normalize_transaction(repo.get(TRANSACTIONS, transaction_id))
    if tx.is_paid:
        raise ValidationError(f"Transaction {transaction_id!r} is already paid.")
    amount = _check_payment(amount, tx.remaining_balance, f"Transaction {transaction_id!r}")

    total_paid = (tx.amount_paid or 0.0) + amount
    paid_on = payment_date or _today()
    document = repo.update(
        TRANSACTIONS,
        transaction_id,
        {
            "totalPaid": total_paid,
            "paymentStatus": _payment_status(total_paid, tx.amount),
            "paymentDate": paid_on.isoformat(),
        },
    )
    logged = _log_activity(
        repo,
        "transactions",
        "update",
        "payment",
        transaction_id,
        f"Recorded payment of ${amount:,.2f} for transaction",
        {"amount": amount, "paymentDate": paid_on.isoformat()},
    )
    return _outcome(transaction_id, normalize_transaction(document), logged)


def mark_timesheet_paid(
    repo: Repository,
    timesheet_id: str,
    side: str = "customer",
    amount: Optional[float] = None,
    payment_date: Optional[date] = None,
) -> WriteOutcome:
    """
    Record a payment on a timesheet.

    ``side="customer"`` records money received from the customer (the
    invoice becomes ``partial`` or ``paid``); ``side="contractor"`` settles
    the contractor's cost, which is paid in full in one go.

    Raises
    ------
    ValidationError
        If that side is already paid, the amount is not positive or exceeds
        what is left to pay, or a contractor payment is not the full cost.
    """
    sheet = normalize_timesheet(repo.get(TIMESHEETS, timesheet_id))
    paid_on = (payment_date or _today()).isoformat()
    label = f"Timesheet {timesheet_id!r}"

    if side == "customer":
        if sheet.invoice_status == "paid":
            raise ValidationError(f"{label} is already paid by the customer.")
        already = sheet.customer_amount_paid or 0.0
        amount = _check_payment(amount, sheet.external_revenue - already, label)
        total_paid = already + amount
        patch = {
            "customerAmountPaid": total_paid,
            "customerPaymentDate": paid_on,
            "invoiceStatus": _payment_status(total_paid, sheet.external_revenue),
        }
    elif side == "contractor":
        if sheet.contractor_payment_status == "paid":
            raise ValidationError(f"{label} is already paid to the contractor.")
        cost = sheet.internal_cost_usd
        amount = _check_payment(amount, cost, label)
        if amount < cost - PAYMENT_TOLERANCE:
            raise ValidationError(
                f"Contractor payments settle the full cost of {cost:,.2f} "
                f"(got {amount:,.2f})."
            )
        patch = {"contractorPaymentStatus": "paid", "contractorPaymentDate": paid_on}
    else:
        raise ValidationError(
            f"Invalid payment side: {side!r} (expected 'customer' or 'contractor')."
        )

    document = repo.update(TIMESHEETS, timesheet_id, patch)
    logged = _log_activity(
        repo,
        "contractors",
        "update",
        "payment",
        timesheet_id,
        f"Recorded {side} payment of ${amount:,.2f} for timesheet",
        {"amount": amount, "paymentDate": paid_on, "side": side},
    )
    return _outcome(timesheet_id, normalize_timesheet(document), logged)


def mark_payroll_paid(
    repo: Repository, record_ids: Iterable[str], paid_date: Optional[date] = None
) -> BulkResult:
    """Mark payroll records as paid; unknown ids are reported, not raised."""
    paid_on = (paid_date or _today()).isoformat()
    result = BulkResult()
    for record_id in record_ids:
        try:
            repo.update(PAYROLL, record_id, {"status": "paid", "paidDate": paid_on})
        except FinSightError as exc:
            result.add_error(record_id, exc, kind=type(exc).__name__)
            continue
        result.created.append(record_id)
    return result


# ---------------------------------------------------------------------------
# Partners and distributions
# ---------------------------------------------------------------------------


def add_partner(
    repo: Repository, name: str, share_percentage: float, email: str = ""
) -> WriteOutcome:
    """
    Add an active partner.

    Raises
    ------
    ValidationError
        If the active shares would exceed 100%.
    """
    partners = load_snapshot(repo, [PARTNERS]).partners
    validate_partner_share(partners, share_percentage)
    document = {
        "name": name,
        "sharePercentage": share_percentage,
        "status": "active",
        "email": email,
    }
    record_id = repo.create(PARTNERS, document)
    logged = _log_activity(
        repo,
        "partners",
        "create",
        "partner",
        record_id,
        f"Added partner {name} ({share_percentage:g}%)",
    )
    return _outcome(record_id, normalize_partner({**document, "id": record_id}), logged)


def update_partner_share(
    repo: Repository, partner_id: str, share_percentage: float
) -> WriteOutcome:
    partners = load_snapshot(repo, [PARTNERS]).partners
    validate_partner_share(partners, share_percentage, partner_id=partner_id)
    document = repo.update(PARTNERS, partner_id, {"sharePercentage": share_percentage})
    logged = _log_activity(
        repo,
        "partners",
        "update",
        "partner",
        partner_id,
        f"Updated share to {share_percentage:g}%",
    )
    return _outcome(partner_id, normalize_partner(document), logged)


def record_distribution(
    repo: Repository,
    plan: DistributionPlan,
    on: Optional[date] = None,
    status: str = "pending",
) -> BulkResult:
    """
    Persist one distribution per partner of ``plan`` in a single batch.

    Nothing is stored unless the active partner shares total 100% and match
    the shares the plan was computed from. ``BulkResult.created`` holds the
    Distribution entries written.
    """
    snapshot = load_snapshot(repo, [PARTNERS, DISTRIBUTIONS])
    ledger = DistributionLedger(snapshot.distributions, store=repo)
    entries = distribute_profit(plan, snapshot.partners, ledger, on=on, status=status)
    result = BulkResult(created=entries)
    if not entries:
        logger.info("Nothing to distribute (net profit %.2f)", plan.net_profit)
        return result

    total = sum(e.amount for e in entries)
    logger.info("Recorded %d distribution(s) totalling %.2f", len(entries), total)
    result.degraded = not _log_activity(
        repo,
        "partners",
        "create",
        "distribution",
        ",".join(e.id for e in entries),
        f"Distributed ${total:,.2f} to {len(entries)} partner(s)",
    )
    return result


# ---------------------------------------------------------------------------
# Organization settings
# ---------------------------------------------------------------------------


def _upsert_organization(
    repo: Repository, organization_id: str, patch: Mapping[str, Any]
) -> Organization:
    existing = repo.list(ORGANIZATIONS, {"id": organization_id})
    if existing:
        document = repo.update(ORGANIZATIONS, organization_id, patch)
    else:
        document = {"id": organization_id, **patch}
        repo.create(ORGANIZATIONS, document)
    return NORMALIZERS[ORGANIZATIONS](document)


def update_bank_balance(
    repo: Repository,
    balance: float,
    organization_id: str = "default",
    as_of: Optional[date] = None,
) -> WriteOutcome:
    org = _upsert_organization(
        repo,
        organization_id,
        {
            "bankBalance": float(balance),
            "lastBankBalanceUpdate": (as_of or _today()).isoformat(),
        },
    )
    logged = _log_activity(
        repo,
        "settings",
        "update",
        "organization",
        organization_id,
        f"Bank balance set to ${balance:,.2f}",
    )
    return _outcome(organization_id, org, logged)


def update_retention_percentage(
    repo: Repository, percentage: float, organization_id: str = "default"
) -> WriteOutcome:
    if not 0.0 <= percentage <= 100.0:
        raise ValidationError(
            f"Retention percentage must be between 0 and 100 (got {percentage:g})."
        )
    org = _upsert_organization(
        repo, organization_id, {"retentionPercentage": float(percentage)}
    )
    logged = _log_activity(
        repo,
        "settings",
        "update",
        "organization",
        organization_id,
        f"Retention percentage set to {percentage:g}%",
    )
    return _outcome(organization_id, org, logged)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def import_transactions(repo: Repository, path: str) -> BulkResult:
    """
    Import transactions from a CSV file (see io.py) in a single batch.

    Valid rows are stored together; rejected rows are returned in
    ``BulkResult.errors`` and never stored.
    """
    result = read_transactions(path)
    if result.created:
        ids = repo.create_many(TRANSACTIONS, [to_document(t) for t in result.created])
        logger.info("Imported %d transaction(s) from %s", len(ids), path)
        result.degraded = not _log_activity(
            repo,
            "transactions",
            "import",
            "transaction",
            ",".join(ids),
            f"Imported {len(ids)} transaction(s) from {os.path.basename(path)}",
            {"rejected": len(result.errors)},
        )
    if result.errors:
        logger.warning("%d row(s) rejected while importing %s", len(result.errors), path)
    return result
