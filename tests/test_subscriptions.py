from datetime import date

import pytest

from finsight.models import Subscription
from finsight.subscriptions import (
    annual_cost,
    monthly_cost,
    subscription_metrics,
    upcoming_bills,
)

TODAY = date(2025, 3, 10)


def sub(sid, cost, cycle="monthly", next_bill="2025-03-12", status="active",
        savings=None) -> Subscription:
    return Subscription(
        id=sid,
        vendor=sid.title(),
        cost=cost,
        billing_cycle=cycle,
        next_billing_date=date.fromisoformat(next_bill),
        status=status,
        savings_opportunity=savings,
    )


SUBS = [
    sub("slack", 100.0, savings=20.0),
    sub("github", 1200.0, "annual", next_bill="2025-03-10"),
    sub("figma", 50.0, next_bill="2025-03-18"),
    sub("zoom", 30.0, status="cancelled", next_bill="2025-03-11", savings=30.0),
]


def test_cost_normalization() -> None:
    assert monthly_cost(SUBS[1]) == pytest.approx(100.0)
    assert annual_cost(SUBS[0]) == pytest.approx(1200.0)


def test_metrics_only_count_active_subscriptions() -> None:
    m = subscription_metrics(SUBS, today=TODAY)
    assert m.monthly_total == pytest.approx(250.0)
    assert m.annual_total == pytest.approx(3000.0)
    assert m.active_count == 3
    assert m.potential_savings == pytest.approx(50.0)


def test_upcoming_bills_window_is_inclusive() -> None:
    due = upcoming_bills(SUBS, TODAY, window_days=7)
    assert [s.id for s in due] == ["github", "slack"]

    due = upcoming_bills(SUBS, TODAY, window_days=8)
    assert [s.id for s in due] == ["github", "slack", "figma"]
