from datetime import date

import pytest

from finsight.distribution import (
    DistributionLedger,
    compute_waterfall,
    distribute_profit,
    partner_metrics,
    validate_partner_share,
)
from finsight.errors import ValidationError
from finsight.models import Distribution, Partner

PARTNERS = [
    Partner(id="p1", name="Ann", share_percentage=60.0),
    Partner(id="p2", name="Ben", share_percentage=40.0),
]


def test_waterfall_with_retention() -> None:
    """100k profit, 20% retained, 60/40 split."""
    plan = compute_waterfall(150000.0, 50000.0, PARTNERS, retention_percentage=20)

    assert plan.net_profit == pytest.approx(100000.0)
    assert plan.retained_amount == pytest.approx(20000.0)
    assert plan.distributable_pool == pytest.approx(80000.0)
    assert [a.amount for a in plan.allocations] == pytest.approx([48000.0, 32000.0])
    assert plan.company_pool_amount == pytest.approx(20000.0)
    assert plan.total_allocated + plan.company_pool_amount == pytest.approx(
        plan.net_profit
    )


def test_loss_is_never_distributed() -> None:
    plan = compute_waterfall(1000.0, 5000.0, PARTNERS)
    assert plan.net_profit == 0.0
    assert all(a.amount == 0.0 for a in plan.allocations)


def test_inactive_partners_are_left_out() -> None:
    partners = PARTNERS + [Partner(id="p3", name="Cy", share_percentage=10.0,
                                   status="inactive")]
    plan = compute_waterfall(100.0, 0.0, partners)
    assert [a.partner_id for a in plan.allocations] == ["p1", "p2"]


def test_retention_must_be_a_percentage() -> None:
    with pytest.raises(ValidationError):
        compute_waterfall(100.0, 0.0, PARTNERS, retention_percentage=120)


def test_distribution_refused_when_shares_do_not_total_100() -> None:
    partners = [
        Partner(id="p1", name="Ann", share_percentage=60.0),
        Partner(id="p2", name="Ben", share_percentage=30.0),
    ]
    existing = Distribution(id="old", partner_id="p1", partner_name="Ann",
                            amount=10.0, date=date(2025, 1, 1))
    ledger = DistributionLedger([existing])
    plan = compute_waterfall(1000.0, 0.0, partners)

    with pytest.raises(ValidationError, match="90%"):
        distribute_profit(plan, partners, ledger, on=date(2025, 3, 31))

    assert ledger.entries == (existing,)


def test_distribution_appends_one_entry_per_partner() -> None:
    ledger = DistributionLedger()
    plan = compute_waterfall(1000.0, 0.0, PARTNERS)

    created = distribute_profit(plan, PARTNERS, ledger, on=date(2025, 3, 31))

    assert len(ledger) == 2
    assert [d.amount for d in created] == pytest.approx([600.0, 400.0])
    assert all(d.status == "pending" and d.date == date(2025, 3, 31) for d in created)
    assert ledger.for_partner("p2")[0].partner_name == "Ben"


def test_ledger_rejects_duplicate_ids_atomically() -> None:
    entry = Distribution(id="d1", partner_id="p1", partner_name="Ann", amount=1.0,
                         date=date(2025, 1, 1))
    fresh = Distribution(id="d2", partner_id="p1", partner_name="Ann", amount=2.0,
                         date=date(2025, 1, 1))
    ledger = DistributionLedger([entry])

    with pytest.raises(ValidationError):
        ledger.append_all([fresh, entry])
    assert len(ledger) == 1


class RecordingStore:
    def __init__(self) -> None:
        self.calls = []

    def create_many(self, collection, documents):
        self.calls.append((collection, documents))
        return [d["id"] for d in documents]


def test_ledger_persists_batches_to_store() -> None:
    store = RecordingStore()
    ledger = DistributionLedger(store=store)
    distribute_profit(compute_waterfall(10.0, 0.0, PARTNERS), PARTNERS, ledger,
                      on=date(2025, 1, 31))

    collection, documents = store.calls[0]
    assert collection == "distributions"
    assert [d["partnerId"] for d in documents] == ["p1", "p2"]
    assert documents[0]["date"] == "2025-01-31"


def test_distribution_refuses_a_stale_plan() -> None:
    """A plan computed from 60/30 cannot be recorded once shares are 60/40."""
    old_shares = [
        Partner(id="p1", name="Ann", share_percentage=60.0),
        Partner(id="p2", name="Ben", share_percentage=30.0),
    ]
    stale = compute_waterfall(100000.0, 0.0, old_shares)
    ledger = DistributionLedger()

    with pytest.raises(ValidationError, match="does not match"):
        distribute_profit(stale, PARTNERS, ledger, on=date(2025, 3, 31))
    assert len(ledger) == 0

    other = [Partner(id="p9", name="Zoe", share_percentage=100.0)]
    with pytest.raises(ValidationError, match="does not match"):
        distribute_profit(compute_waterfall(100.0, 0.0, other), PARTNERS, ledger)
    assert len(ledger) == 0


def test_distribution_of_zero_profit_writes_nothing() -> None:
    store = RecordingStore()
    ledger = DistributionLedger(store=store)
    plan = compute_waterfall(1000.0, 5000.0, PARTNERS)

    assert distribute_profit(plan, PARTNERS, ledger, on=date(2025, 3, 31)) == []
    assert len(ledger) == 0
    assert store.calls == []


def test_validate_partner_share() -> None:
    validate_partner_share(PARTNERS, 35.0, partner_id="p2")

    with pytest.raises(ValidationError, match="Cannot add partner"):
        validate_partner_share(PARTNERS, 5.0)
    with pytest.raises(ValidationError, match="Cannot update share"):
        validate_partner_share(PARTNERS, 45.0, partner_id="p2")


def test_partner_metrics() -> None:
    distributions = [
        Distribution(id="d1", partner_id="p1", partner_name="Ann", amount=100.0,
                     date=date(2025, 1, 1), status="completed"),
        Distribution(id="d2", partner_id="p2", partner_name="Ben", amount=40.0,
                     date=date(2025, 1, 1)),
    ]
    partners = PARTNERS[:1]
    m = partner_metrics(partners, distributions)
    assert m.active_partners == 1
    assert m.total_share_allocated == 60.0
    assert m.remaining_share == 40.0
    assert m.total_distributed == 100.0
    assert m.pending_distributions == 40.0
