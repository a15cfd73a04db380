# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Profit distribution waterfall for FinSight.

For a single period's figures::

    net_profit          = max(0, total_revenue - total_expenses)
    retained_amount     = net_profit * retention_percentage / 100
    distributable_pool  = net_profit - retained_amount
    partner_amount(p)   = distributable_pool * p.share_percentage / 100
    company_pool_amount = net_profit - sum(partner_amount(p))

Only active partners take part. ``compute_waterfall()`` is a preview and
works whatever the shares add up to (whatever is not allocated stays in the
company pool). Recording a distribution is guarded: ``distribute_profit()``
refuses to write anything unless the active shares total exactly 100%.

Recorded distributions go to a ``DistributionLedger``, which is
append-only: entries are never edited or removed, and a batch is appended
entirely or not at all.
"""

import math
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .errors import ValidationError
from .models import DISTRIBUTION_STATUSES, Distribution, Partner, to_document
from .periods import _today

SHARE_TOLERANCE = 1e-9


@dataclass(frozen=True)
class PartnerAllocation:
    partner_id: str
    partner_name: str
    share_percentage: float
    amount: float


@dataclass(frozen=True)
class DistributionPlan:
    total_revenue: float
    total_expenses: float
    retention_percentage: float
    net_profit: float
    retained_amount: float
    distributable_pool: float
    allocations: list[PartnerAllocation] = field(default_factory=list)

    @property
    def total_allocated(self) -> float:
        return sum(a.amount for a in self.allocations)

    @property
    def company_pool_amount(self) -> float:
        return self.net_profit - self.total_allocated


@dataclass(frozen=True)
class PartnerMetrics:
    total_partners: int
    active_partners: int
    total_share_allocated: float
    remaining_share: float
    total_distributed: float
    pending_distributions: float


def _check_percentage(value: float, name: str) -> None:
    if not 0.0 <= value <= 100.0:
        raise ValidationError(f"{name} must be between 0 and 100 (got {value:g}).")


def active_partners(partners: Iterable[Partner]) -> list[Partner]:
    return [p for p in partners if p.status == "active"]


def total_active_share(partners: Iterable[Partner]) -> float:
    return sum(p.share_percentage for p in active_partners(partners))


def compute_waterfall(
    total_revenue: float,
    total_expenses: float,
    partners: Iterable[Partner],
    retention_percentage: float = 0.0,
) -> DistributionPlan:
    """
    Split a period's net profit between retention and active partners.

    A loss never distributes: net profit is floored at zero.

    Raises
    ------
    ValidationError
        If ``retention_percentage`` is outside 0-100.
    """
    _check_percentage(retention_percentage, "Retention percentage")

    net_profit = max(0.0, total_revenue - total_expenses)
    retained = net_profit * retention_percentage / 100
    pool = net_profit - retained

    allocations = [
        PartnerAllocation(
            partner_id=p.id,
            partner_name=p.name,
            share_percentage=p.share_percentage,
            amount=pool * p.share_percentage / 100,
        )
        for p in active_partners(partners)
    ]
    return DistributionPlan(
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        retention_percentage=retention_percentage,
        net_profit=net_profit,
        retained_amount=retained,
        distributable_pool=pool,
        allocations=allocations,
    )


def validate_partner_shares(partners: Iterable[Partner]) -> None:
    """
    Ensure active partners exist and their shares total 100%.

    Raises
    ------
    ValidationError
        Naming the actual total, e.g. "Partner shares must total 100%
        (currently 90%)".
    """
    active = active_partners(partners)
    if not active:
        raise ValidationError("No active partners to distribute to.")
    total = sum(p.share_percentage for p in active)
    if not math.isclose(total, 100.0, abs_tol=SHARE_TOLERANCE):
        raise ValidationError(f"Partner shares must total 100% (currently {total:g}%)")


def validate_partner_share(
    partners: Iterable[Partner],
    share_percentage: float,
    partner_id: Optional[str] = None,
) -> None:
    """
    Check that adding (or re-sharing) a partner keeps active shares <= 100%.

    With ``partner_id`` the partner's current share is replaced instead of
    added to.
    """
    _check_percentage(share_percentage, "Share percentage")
    others = [p for p in active_partners(partners) if p.id != partner_id]
    current = sum(p.share_percentage for p in others)
    if current + share_percentage > 100.0 + SHARE_TOLERANCE:
        if partner_id is None:
            raise ValidationError(
                "Cannot add partner. Total share would exceed 100% "
                f"(currently {current:g}%)"
            )
        raise ValidationError(
            "Cannot update share. Total would exceed 100% "
            f"(others have {current:g}%)"
        )


class DistributionLedger:
    """
    Append-only record of distributions.

    When a ``store`` is given (any object with ``create_many(collection,
    documents)``, see repository.py), batches are persisted there first and
    only kept in memory once the store accepted them.
    """

    collection = "distributions"

    def __init__(self, entries: Iterable[Distribution] = (), store=None) -> None:
        self._entries: list[Distribution] = list(entries)
        self._store = store

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    @property
    def entries(self) -> tuple[Distribution, ...]:
        return tuple(self._entries)

    def append_all(self, entries: Iterable[Distribution]) -> list[Distribution]:
        batch = list(entries)
        known = {e.id for e in self._entries}
        for e in batch:
            if e.status not in DISTRIBUTION_STATUSES:
                raise ValidationError(f"Invalid distribution status: {e.status!r}")
            if e.id in known:
                raise ValidationError(f"Distribution {e.id!r} is already recorded.")
            known.add(e.id)
        if self._store is not None:
            self._store.create_many(self.collection, [to_document(e) for e in batch])
        self._entries.extend(batch)
        return batch

    def for_partner(self, partner_id: str) -> list[Distribution]:
        return [e for e in self._entries if e.partner_id == partner_id]


def _check_plan_matches(plan: DistributionPlan, partners: Iterable[Partner]) -> None:
    current = {p.id: p.share_percentage for p in active_partners(partners)}
    planned = {a.partner_id: a.share_percentage for a in plan.allocations}
    if planned.keys() != current.keys() or any(
        not math.isclose(planned[pid], share, abs_tol=SHARE_TOLERANCE)
        for pid, share in current.items()
    ):
        raise ValidationError(
            "Distribution plan does not match the current partner shares; "
            "recompute the waterfall."
        )


def distribute_profit(
    plan: DistributionPlan,
    partners: Iterable[Partner],
    ledger: DistributionLedger,
    on: Optional[date] = None,
    status: str = "pending",
) -> list[Distribution]:
    """
    Record one distribution entry per active partner of ``plan``.

    Nothing is written unless the active shares total exactly 100% and the
    plan was computed from those same shares. A plan with no profit writes
    nothing.
    """
    partners = list(partners)
    validate_partner_shares(partners)
    _check_plan_matches(plan, partners)
    if plan.net_profit <= 0:
        return []
    on = on or _today()
    created_at = datetime.now()
    entries = [
        Distribution(
            id=uuid.uuid4().hex,
            partner_id=a.partner_id,
            partner_name=a.partner_name,
            amount=a.amount,
            date=on,
            status=status,
            created_at=created_at,
        )
        for a in plan.allocations
        if a.amount > 0
    ]
    return ledger.append_all(entries)


def partner_metrics(
    partners: Iterable[Partner], distributions: Iterable[Distribution] = ()
) -> PartnerMetrics:
    partners = list(partners)
    distributions = list(distributions)
    allocated = total_active_share(partners)
    return PartnerMetrics(
        total_partners=len(partners),
        active_partners=len(active_partners(partners)),
        total_share_allocated=allocated,
        remaining_share=100.0 - allocated,
        total_distributed=sum(d.amount for d in distributions if d.status == "completed"),
        pending_distributions=sum(
            d.amount for d in distributions if d.status == "pending"
        ),
    )
