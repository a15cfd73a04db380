# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Recruitment funnel and CRM pipeline metrics.

Funnel stages are overlapping groupings of candidate statuses, not a
partition of them:

- in_review  : submitted_to_client + client_review
- interviews : interview_scheduled + interview_completed
- offers     : offer_stage + offer_extended + offer_accepted
- placed     : placed

Conversion rates are ``stage / previous_stage * 100`` and 0 when the
previous stage is empty. Weeks start on Sunday.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from .models import (
    CANDIDATE_STATUSES,
    CLOSED_CANDIDATE_STATUSES,
    DEAL_STAGES,
    CandidateSubmission,
    Deal,
    JobRole,
    Recruiter,
    RecruiterTask,
)
from .periods import _today, quarter_of, quarter_period
from .ratios import conversion_rate, percentage

IN_REVIEW_STATUSES = ("submitted_to_client", "client_review")
INTERVIEW_STATUSES = ("interview_scheduled", "interview_completed")
OFFER_STATUSES = ("offer_stage", "offer_extended", "offer_accepted")

STALE_DAYS = 5
STALE_HIGH_DAYS = 7
INTERVIEW_HORIZON_DAYS = 3
IDLE_ROLE_DAYS = 7
PENDING_OFFER_HIGH_DAYS = 3
DEFAULT_DEAL_PROBABILITY = 50.0

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class ConversionRates:
    submit_to_review: float
    review_to_interview: float
    interview_to_offer: float
    offer_to_placement: float


@dataclass(frozen=True)
class FunnelMetrics:
    total: int
    in_review: int
    interviews: int
    offers: int
    placed: int
    conversion_rates: ConversionRates
    status_counts: dict[str, int] = field(default_factory=dict)

    @property
    def submitted(self) -> int:
        return self.total


@dataclass(frozen=True)
class RecruiterMetrics:
    recruiter_id: str
    recruiter_name: str
    total_submissions: int
    this_week_submissions: int
    this_week_interviews: int
    this_week_client_calls: int
    total_placements: int
    total_fees: float
    active_pipeline: int


@dataclass(frozen=True)
class AttentionItem:
    type: str
    title: str
    description: str
    priority: str
    related_id: Optional[str] = None


@dataclass(frozen=True)
class RecruitmentKPIs:
    active_submissions: int
    interviews_this_week: int
    pending_offers: int
    placements_this_quarter: int
    open_roles: int
    active_recruiters: int


@dataclass(frozen=True)
class PipelineMetrics:
    total_deals: int
    open_deals: int
    total_pipeline_value: float
    weighted_pipeline_value: float
    stage_counts: dict[str, int]
    stage_values: dict[str, float]
    won_deals: int
    lost_deals: int
    win_rate: float


def week_bounds(today: date) -> tuple[date, date]:
    """Sunday-to-Saturday week containing ``today``."""
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def _count(counts: Counter, statuses: Iterable[str]) -> int:
    return sum(counts.get(s, 0) for s in statuses)


# ---------------------------------------------------------------------------
# Recruitment
# ---------------------------------------------------------------------------


def funnel_metrics(submissions: Iterable[CandidateSubmission]) -> FunnelMetrics:
    subs = list(submissions)
    counts = Counter(s.status for s in subs)
    total = len(subs)
    in_review = _count(counts, IN_REVIEW_STATUSES)
    interviews = _count(counts, INTERVIEW_STATUSES)
    offers = _count(counts, OFFER_STATUSES)
    placed = counts.get("placed", 0)
    return FunnelMetrics(
        total=total,
        in_review=in_review,
        interviews=interviews,
        offers=offers,
        placed=placed,
        conversion_rates=ConversionRates(
            submit_to_review=conversion_rate(in_review, total),
            review_to_interview=conversion_rate(interviews, in_review),
            interview_to_offer=conversion_rate(offers, interviews),
            offer_to_placement=conversion_rate(placed, offers),
        ),
        status_counts={s: counts[s] for s in CANDIDATE_STATUSES if counts.get(s)},
    )


def recruiter_metrics(
    recruiters: Iterable[Recruiter],
    submissions: Iterable[CandidateSubmission],
    tasks: Iterable[RecruiterTask] = (),
    today: Optional[date] = None,
) -> list[RecruiterMetrics]:
    week_start, week_end = week_bounds(today or _today())
    subs = list(submissions)
    tasks = list(tasks)

    result = []
    for r in recruiters:
        mine = [s for s in subs if s.recruiter_id == r.id]
        this_week = [s for s in mine if week_start <= s.date_submitted <= week_end]
        week_tasks = [
            t for t in tasks if t.recruiter_id == r.id and week_start <= t.date <= week_end
        ]
        placed = [s for s in mine if s.status == "placed"]
        result.append(
            RecruiterMetrics(
                recruiter_id=r.id,
                recruiter_name=r.name,
                total_submissions=len(mine),
                this_week_submissions=len(this_week),
                this_week_interviews=sum(
                    1 for s in this_week if s.status in INTERVIEW_STATUSES
                ),
                this_week_client_calls=sum(
                    1 for t in week_tasks if t.task_type == "client_communication"
                ),
                total_placements=len(placed),
                total_fees=sum(s.placement_fee or 0.0 for s in placed),
                active_pipeline=sum(1 for s in mine if s.is_open),
            )
        )
    return result


def attention_items(
    submissions: Iterable[CandidateSubmission],
    job_roles: Iterable[JobRole] = (),
    today: Optional[date] = None,
) -> list[AttentionItem]:
    """
    Items needing a recruiter's attention, most urgent first.

    - stale: open submission without client news for 5+ days (high at 7+)
    - upcoming_interview: interview within the next 3 days (high if today)
    - no_activity: open role without a submission in the last 7 days (low)
    - pending_offer: extended offer awaiting decision (high after 3 days)
    """
    today = today or _today()
    subs = list(submissions)
    items: list[AttentionItem] = []

    for s in subs:
        if not s.is_open:
            continue
        idle = (today - (s.last_client_update or s.date_submitted)).days
        if idle >= STALE_DAYS:
            items.append(
                AttentionItem(
                    type="stale",
                    title=f"Stale Candidate: {s.candidate_name}",
                    description=f"Awaiting feedback from {s.client_name} for {idle} days",
                    priority="high" if idle >= STALE_HIGH_DAYS else "medium",
                    related_id=s.id,
                )
            )

    for s in subs:
        if s.status != "interview_scheduled" or s.interview_date is None:
            continue
        days_until = (s.interview_date - today).days
        if 0 <= days_until <= INTERVIEW_HORIZON_DAYS:
            plural = "" if days_until == 1 else "s"
            items.append(
                AttentionItem(
                    type="upcoming_interview",
                    title=f"Upcoming Interview: {s.candidate_name}",
                    description=(
                        f"Interview with {s.client_name} in {days_until} day{plural}"
                    ),
                    priority="high" if days_until == 0 else "medium",
                    related_id=s.id,
                )
            )

    for role in job_roles:
        if role.status != "open":
            continue
        recent = [
            s
            for s in subs
            if s.job_role_id == role.id
            and (today - s.date_submitted).days <= IDLE_ROLE_DAYS
        ]
        if not recent:
            items.append(
                AttentionItem(
                    type="no_activity",
                    title=f"No Recent Activity: {role.title}",
                    description=(
                        f"Role at {role.client_name} has no new submissions this week"
                    ),
                    priority="low",
                    related_id=role.id,
                )
            )

    for s in subs:
        if s.status != "offer_extended" or s.offer_status != "pending":
            continue
        waiting = (today - s.last_client_update).days if s.last_client_update else 0
        items.append(
            AttentionItem(
                type="pending_offer",
                title=f"Pending Offer: {s.candidate_name}",
                description=f"Awaiting decision for {s.client_name} role",
                priority="high" if waiting >= PENDING_OFFER_HIGH_DAYS else "medium",
                related_id=s.id,
            )
        )

    # Stable sort keeps the detection order within a priority.
    return sorted(items, key=lambda i: PRIORITY_ORDER[i.priority])


def recruitment_kpis(
    submissions: Iterable[CandidateSubmission],
    job_roles: Iterable[JobRole] = (),
    recruiters: Iterable[Recruiter] = (),
    today: Optional[date] = None,
) -> RecruitmentKPIs:
    today = today or _today()
    week_start, week_end = week_bounds(today)
    quarter = quarter_period(today.year, quarter_of(today))
    subs = list(submissions)
    return RecruitmentKPIs(
        active_submissions=sum(1 for s in subs if s.status not in CLOSED_CANDIDATE_STATUSES),
        interviews_this_week=sum(
            1
            for s in subs
            if s.interview_date is not None and week_start <= s.interview_date <= week_end
        ),
        pending_offers=sum(1 for s in subs if s.status in ("offer_stage", "offer_extended")),
        placements_this_quarter=sum(
            1 for s in subs if s.status == "placed" and quarter.contains(s.placement_date)
        ),
        open_roles=sum(1 for r in job_roles if r.status == "open"),
        active_recruiters=sum(1 for r in recruiters if r.status == "active"),
    )


# ---------------------------------------------------------------------------
# CRM
# ---------------------------------------------------------------------------


def pipeline_metrics(deals: Iterable[Deal]) -> PipelineMetrics:
    """
    Deal pipeline by stage.

    Stage counts and values cover every deal; pipeline values only cover
    open deals, weighted by their probability (50% when unknown).
    """
    deals = sorted(deals, key=lambda d: d.id)
    stage_counts = {stage: 0 for stage in DEAL_STAGES}
    stage_values = {stage: 0.0 for stage in DEAL_STAGES}
    for d in deals:
        stage_counts[d.stage] += 1
        stage_values[d.stage] += d.value

    open_deals = [d for d in deals if d.status == "open"]
    weighted = sum(
        d.value
        * (DEFAULT_DEAL_PROBABILITY if d.probability is None else d.probability)
        / 100
        for d in open_deals
    )
    won = stage_counts["closed_won"]
    lost = stage_counts["closed_lost"]
    return PipelineMetrics(
        total_deals=len(deals),
        open_deals=len(open_deals),
        total_pipeline_value=sum(d.value for d in open_deals),
        weighted_pipeline_value=weighted,
        stage_counts=stage_counts,
        stage_values=stage_values,
        won_deals=won,
        lost_deals=lost,
        win_rate=percentage(won, won + lost),
    )
