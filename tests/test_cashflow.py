import math
from datetime import date

import pytest

import finsight.cashflow as cashflow
from finsight.models import (
    ContractorTimesheet,
    Distribution,
    Organization,
    PayrollRecord,
    Subscription,
    Transaction,
)
from finsight.periods import Period

TODAY = date(2025, 3, 31)
MARCH = Period(start=date(2025, 3, 1), end=date(2025, 3, 31), label="2025-03")


def tx(tid, day, kind, amount, payment_status="paid", category="general", **kw):
    return Transaction(
        id=tid,
        date=date.fromisoformat(day),
        type=kind,
        category=category,
        amount=amount,
        payment_status=payment_status,
        **kw,
    )


def sheet(tid, month="2025-02", **kw) -> ContractorTimesheet:
    values = dict(
        id=tid,
        assignment_id="a1",
        contractor_id="c1",
        customer_id="k1",
        month=month,
        standard_days_worked=10,
        overtime_days=0,
        overtime_hours=0,
        internal_day_rate=300,
        external_day_rate=500,
        total_days_worked=10,
        internal_cost_usd=3000.0,
        external_revenue=5000.0,
        profit=2000.0,
        status="approved",
        contractor_name="Alice",
    )
    values.update(kw)
    return ContractorTimesheet(**values)


def test_accrual_and_cash_diverge_on_unpaid_expense() -> None:
    """Unpaid expense: P&L profit 6,000, cash profit 10,000, AP 4,000 in 0–30."""
    transactions = [
        tx("r1", "2025-03-01", "revenue", 10000.0),
        tx("e1", "2025-03-01", "expense", 4000.0, payment_status="unpaid"),
    ]
    statement = cashflow.build_cash_flow_statement(
        Organization(id="default", bank_balance=0.0),
        MARCH,
        transactions=transactions,
        today=TODAY,
    )

    assert statement.comparison.accrual_profit == pytest.approx(6000.0)
    assert statement.comparison.cash_profit == pytest.approx(10000.0)
    assert statement.comparison.profit_difference == pytest.approx(-4000.0)

    ap = {b.label: b for b in statement.accounts_payable}
    assert ap["0–30"].amount == pytest.approx(4000.0)
    assert ap["0–30"].count == 1
    assert statement.total_ap == pytest.approx(4000.0)
    assert statement.total_ar == 0.0
    assert statement.closing_balance == pytest.approx(10000.0)


def test_cash_placed_by_payment_date() -> None:
    transactions = [
        tx("r1", "2025-02-10", "revenue", 1000.0, payment_date=date(2025, 3, 5)),
        tx("r2", "2025-03-10", "revenue", 500.0, payment_date=date(2025, 4, 2)),
        tx("r3", "2025-03-12", "revenue", 700.0, status="draft"),
    ]
    operating, _ = cashflow.cash_activities(MARCH, transactions)
    assert operating.receipts_from_customers == pytest.approx(1000.0)


def test_excluded_categories_are_not_double_counted() -> None:
    transactions = [
        tx("e1", "2025-03-02", "expense", 100.0, category="software"),
        tx("e2", "2025-03-02", "expense", 200.0, category="payroll"),
        tx("e3", "2025-03-02", "expense", 300.0, category="rent"),
    ]
    operating, _ = cashflow.cash_activities(MARCH, transactions)
    assert operating.other_operating_payments == pytest.approx(300.0)


def test_contractor_payroll_subscription_and_financing_flows() -> None:
    timesheets = [
        sheet("s1", invoice_status="paid", customer_payment_date=date(2025, 3, 15),
              contractor_payment_status="paid",
              contractor_payment_date=date(2025, 3, 20)),
        sheet("s2", invoice_status="invoiced"),
    ]
    payroll = [
        PayrollRecord(id="p1", team_member_name="Bo", month="2025-03",
                      net_amount=2000.0, status="paid", paid_date=date(2025, 3, 28)),
    ]
    subscriptions = [
        Subscription(id="sub", vendor="Slack", cost=120.0, billing_cycle="annual",
                     next_billing_date=date(2025, 6, 1)),
    ]
    distributions = [
        Distribution(id="d1", partner_id="p", partner_name="Ann", amount=1500.0,
                     date=date(2025, 3, 30), status="completed"),
        Distribution(id="d2", partner_id="p", partner_name="Ann", amount=900.0,
                     date=date(2025, 3, 30), status="pending"),
    ]
    operating, financing = cashflow.cash_activities(
        MARCH, [], timesheets, payroll, distributions, subscriptions
    )

    assert operating.contractor_customer_receipts == pytest.approx(5000.0)
    assert operating.contractor_payments == pytest.approx(3000.0)
    assert operating.payroll_payments == pytest.approx(2000.0)
    assert operating.subscription_payments == pytest.approx(10.0)
    assert financing.partner_distributions == pytest.approx(1500.0)
    assert financing.net_financing == pytest.approx(-1500.0)


def test_aging_partitions_outstanding_items() -> None:
    transactions = [
        tx("r1", "2025-03-20", "revenue", 100.0, payment_status="unpaid"),
        tx("r2", "2025-01-15", "revenue", 200.0, payment_status="partial",
           amount_paid=50.0),
        tx("r3", "2024-10-01", "revenue", 300.0, payment_status="unpaid"),
        tx("r4", "2025-05-01", "revenue", 400.0, payment_status="unpaid"),
        tx("r5", "2025-01-01", "revenue", 999.0),
    ]
    timesheets = [sheet("s1", month="2024-12"), sheet("s2", status="draft")]
    items = cashflow.receivable_items(transactions, timesheets, TODAY)
    buckets = cashflow.build_aging_buckets(items)

    by_label = {b.label: b for b in buckets}
    assert [b.label for b in buckets] == ["0–30", "31–60", "61–90", "91–120", "120+"]
    # Future-dated invoices are not yet due.
    assert by_label["0–30"].amount == pytest.approx(500.0)
    assert by_label["61–90"].amount == pytest.approx(150.0)
    assert by_label["91–120"].amount == pytest.approx(5000.0)
    assert by_label["120+"].amount == pytest.approx(300.0)
    assert sum(b.amount for b in buckets) == pytest.approx(
        sum(i.remaining_balance for i in items)
    )
    assert sum(b.count for b in buckets) == len(items) == 5


def test_bucket_boundaries() -> None:
    assert cashflow.bucket_label(-3) == "0–30"
    assert cashflow.bucket_label(30) == "0–30"
    assert cashflow.bucket_label(31) == "31–60"
    assert cashflow.bucket_label(120) == "91–120"
    assert cashflow.bucket_label(121) == "120+"


def test_payables_include_timesheets_and_pending_payroll() -> None:
    payroll = [
        PayrollRecord(id="p1", team_member_name="Bo", month="2025-03", net_amount=1000.0,
                      currency="EUR"),
        PayrollRecord(id="p2", team_member_name="Cy", month="2025-03", net_amount=1.0,
                      status="paid"),
    ]
    items = cashflow.payable_items([], [sheet("s1")], payroll, TODAY)
    assert [(i.source, i.id) for i in items] == [("timesheet", "s1"), ("payroll", "p1")]
    assert items[1].amount == pytest.approx(1080.0)


def test_runway_is_infinite_without_burn() -> None:
    statement = cashflow.build_cash_flow_statement(
        Organization(id="default", bank_balance=5000.0),
        MARCH,
        transactions=[tx("r1", "2025-03-01", "revenue", 1000.0)],
        today=TODAY,
    )
    assert statement.metrics.monthly_burn_rate == 0.0
    assert math.isinf(statement.metrics.cash_runway)
    assert statement.metrics.is_profitable
    assert statement.metrics.cash_position == pytest.approx(6000.0)


def test_burn_rate_and_runway() -> None:
    transactions = [tx("e1", "2025-03-15", "expense", 3000.0, category="rent")]
    statement = cashflow.build_cash_flow_statement(
        Organization(id="default", bank_balance=10000.0),
        MARCH,
        transactions=transactions,
        today=TODAY,
        burn_window_months=3,
    )
    assert statement.metrics.monthly_burn_rate == pytest.approx(1000.0)
    assert statement.closing_balance == pytest.approx(7000.0)
    assert statement.metrics.cash_runway == pytest.approx(7.0)
    assert not statement.metrics.is_profitable


def test_burn_window_must_be_positive() -> None:
    with pytest.raises(ValueError):
        cashflow.monthly_burn_rate(TODAY, 0, [])


def test_explicit_opening_balance_overrides_bank_balance() -> None:
    statement = cashflow.build_cash_flow_statement(
        Organization(id="default", bank_balance=10000.0),
        MARCH,
        transactions=[],
        today=TODAY,
        opening_balance=250.0,
    )
    assert statement.opening_balance == 250.0
    assert statement.closing_balance == 250.0


def test_upcoming_events() -> None:
    receivables = cashflow.receivable_items(
        [tx("r1", "2025-03-01", "revenue", 800.0, payment_status="unpaid",
            payment_terms="net_15")],
        [],
        TODAY,
    )
    payroll = [PayrollRecord(id="p1", team_member_name="Bo", month="2025-04",
                             net_amount=2000.0)]
    subs = [Subscription(id="s", vendor="Zoom", cost=30.0, billing_cycle="monthly",
                         next_billing_date=date(2025, 4, 3))]
    inflows, outflows = cashflow.upcoming_events(receivables, payroll, subs, [])

    assert [(e.expected_date, e.amount) for e in inflows] == [(date(2025, 3, 16), 800.0)]
    assert [(e.source, e.expected_date) for e in outflows] == [
        ("subscription", date(2025, 4, 3)),
        ("payroll", date(2025, 4, 28)),
    ]
