# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Subscription cost normalization.

Monthly and annual subscriptions are brought to a common basis (per month or
per year) so they can be summed. Only active subscriptions count towards the
totals and the upcoming-bills list; savings opportunities are reported for
every subscription that declares one.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from .models import Subscription
from .periods import _today

UPCOMING_BILLS_DAYS = 7


@dataclass(frozen=True)
class SubscriptionMetrics:
    monthly_total: float
    annual_total: float
    active_count: int
    potential_savings: float
    upcoming_bills: list[Subscription] = field(default_factory=list)


def monthly_cost(sub: Subscription) -> float:
    """Cost of a subscription per month."""
    return sub.cost if sub.billing_cycle == "monthly" else sub.cost / 12


def annual_cost(sub: Subscription) -> float:
    """Cost of a subscription per year."""
    return sub.cost * 12 if sub.billing_cycle == "monthly" else sub.cost


def _active(subscriptions: Iterable[Subscription]) -> list[Subscription]:
    return sorted((s for s in subscriptions if s.status == "active"), key=lambda s: s.id)


def monthly_total(subscriptions: Iterable[Subscription]) -> float:
    return sum(monthly_cost(s) for s in _active(subscriptions))


def annual_total(subscriptions: Iterable[Subscription]) -> float:
    return sum(annual_cost(s) for s in _active(subscriptions))


def upcoming_bills(
    subscriptions: Iterable[Subscription],
    today: Optional[date] = None,
    window_days: int = UPCOMING_BILLS_DAYS,
) -> list[Subscription]:
    """Active subscriptions billed within ``[today, today + window_days]``."""
    today = today or _today()
    horizon = today + timedelta(days=window_days)
    due = [s for s in _active(subscriptions) if today <= s.next_billing_date <= horizon]
    return sorted(due, key=lambda s: s.next_billing_date)


def potential_savings(subscriptions: Iterable[Subscription]) -> float:
    return sum(
        s.savings_opportunity
        for s in subscriptions
        if s.savings_opportunity is not None and s.savings_opportunity > 0
    )


def subscription_metrics(
    subscriptions: Iterable[Subscription],
    today: Optional[date] = None,
    window_days: int = UPCOMING_BILLS_DAYS,
) -> SubscriptionMetrics:
    subs = list(subscriptions)
    return SubscriptionMetrics(
        monthly_total=monthly_total(subs),
        annual_total=annual_total(subs),
        active_count=len(_active(subs)),
        potential_savings=potential_savings(subs),
        upcoming_bills=upcoming_bills(subs, today, window_days),
    )
