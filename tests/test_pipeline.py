from datetime import date

import pytest

from finsight.models import CandidateSubmission, Deal, JobRole, Recruiter, RecruiterTask
from finsight.pipeline import (
    attention_items,
    funnel_metrics,
    pipeline_metrics,
    recruiter_metrics,
    recruitment_kpis,
    week_bounds,
)

TODAY = date(2025, 3, 12)  # a Wednesday


def submission(sid, status, submitted, recruiter="rec1", role="r1", **kw):
    return CandidateSubmission(
        id=sid,
        candidate_name=f"Candidate {sid}",
        client_name="Acme",
        job_role_id=role,
        recruiter_id=recruiter,
        status=status,
        date_submitted=date.fromisoformat(submitted),
        **kw,
    )


SUBMISSIONS = [
    submission("s1", "client_review", "2025-03-01", last_client_update=date(2025, 3, 5)),
    submission("s2", "interview_scheduled", "2025-03-10", interview_date=TODAY),
    submission("s3", "offer_extended", "2025-03-11", role="r3", offer_status="pending",
               last_client_update=date(2025, 3, 11)),
    submission("s4", "placed", "2025-01-10", role="r3",
               placement_date=date(2025, 2, 15), placement_fee=5000.0),
    submission("s5", "rejected", "2025-01-10", recruiter="rec2", role="r3"),
]
ROLES = [
    JobRole(id="r1", title="Engineer", client_name="Acme"),
    JobRole(id="r2", title="Designer", client_name="Globex"),
    JobRole(id="r3", title="Analyst", client_name="Acme", status="filled"),
]


def test_week_starts_on_sunday() -> None:
    assert week_bounds(TODAY) == (date(2025, 3, 9), date(2025, 3, 15))
    assert week_bounds(date(2025, 3, 9)) == (date(2025, 3, 9), date(2025, 3, 15))


def test_funnel_metrics() -> None:
    funnel = funnel_metrics(SUBMISSIONS)
    assert (funnel.total, funnel.in_review, funnel.interviews, funnel.offers,
            funnel.placed) == (5, 1, 1, 1, 1)
    assert funnel.conversion_rates.submit_to_review == pytest.approx(20.0)
    assert funnel.conversion_rates.offer_to_placement == pytest.approx(100.0)
    assert funnel.status_counts["rejected"] == 1


def test_empty_funnel_has_zero_rates() -> None:
    funnel = funnel_metrics([])
    assert funnel.conversion_rates.submit_to_review == 0.0
    assert funnel.conversion_rates.review_to_interview == 0.0


def test_attention_items_by_priority() -> None:
    items = attention_items(SUBMISSIONS, ROLES, today=TODAY)
    assert [(i.type, i.related_id, i.priority) for i in items] == [
        ("stale", "s1", "high"),
        ("upcoming_interview", "s2", "high"),
        ("pending_offer", "s3", "medium"),
        ("no_activity", "r2", "low"),
    ]
    assert items[0].description == "Awaiting feedback from Acme for 7 days"


def test_recruitment_kpis() -> None:
    recruiters = [Recruiter(id="rec1", name="Rita"),
                  Recruiter(id="rec2", name="Ray", status="inactive")]
    kpis = recruitment_kpis(SUBMISSIONS, ROLES, recruiters, today=TODAY)
    assert kpis.active_submissions == 3
    assert kpis.interviews_this_week == 1
    assert kpis.pending_offers == 1
    assert kpis.placements_this_quarter == 1
    assert kpis.open_roles == 2
    assert kpis.active_recruiters == 1


def test_recruiter_metrics() -> None:
    tasks = [
        RecruiterTask(id="t1", recruiter_id="rec1", task_type="client_communication",
                      date=date(2025, 3, 10)),
        RecruiterTask(id="t2", recruiter_id="rec1", task_type="client_communication",
                      date=date(2025, 3, 1)),
        RecruiterTask(id="t3", recruiter_id="rec1", task_type="sourcing",
                      date=date(2025, 3, 11)),
    ]
    [rita] = recruiter_metrics([Recruiter(id="rec1", name="Rita")], SUBMISSIONS,
                               tasks, today=TODAY)
    assert rita.total_submissions == 4
    assert rita.this_week_submissions == 2
    assert rita.this_week_interviews == 1
    assert rita.this_week_client_calls == 1
    assert rita.total_placements == 1
    assert rita.total_fees == 5000.0
    assert rita.active_pipeline == 3


def test_pipeline_metrics_weighting() -> None:
    deals = [
        Deal(id="d1", title="A", stage="lead", value=1000.0),
        Deal(id="d2", title="B", stage="proposal", value=2000.0, probability=0.0),
        Deal(id="d3", title="C", stage="closed_won", value=5000.0, status="won"),
        Deal(id="d4", title="D", stage="closed_lost", value=3000.0, status="lost"),
        Deal(id="d5", title="E", stage="negotiation", value=4000.0, probability=75.0),
    ]
    m = pipeline_metrics(deals)
    assert m.total_deals == 5
    assert m.open_deals == 3
    assert m.total_pipeline_value == pytest.approx(7000.0)
    assert m.weighted_pipeline_value == pytest.approx(3500.0)
    assert m.stage_values["closed_won"] == 5000.0
    assert m.win_rate == pytest.approx(50.0)
