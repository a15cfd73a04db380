from datetime import date

import pytest

from finsight.errors import ValidationError
from finsight.models import (
    NORMALIZERS,
    normalize_assignment,
    normalize_deal,
    normalize_partner,
    normalize_payroll,
    normalize_timesheet,
    normalize_transaction,
    to_document,
)


def test_transaction_from_camel_case_document() -> None:
    tx = normalize_transaction(
        {
            "id": "t1",
            "date": "2025-01-10T09:30:00Z",
            "type": "revenue",
            "category": "consulting",
            "amount": "1200.50",
            "paymentStatus": "partial",
            "totalPaid": 200,
            "amountPaid": 50,
            "paymentTerms": "net_45",
        }
    )
    assert tx.date == date(2025, 1, 10)
    assert tx.amount == pytest.approx(1200.50)
    assert tx.amount_paid == 200
    assert tx.remaining_balance == pytest.approx(1000.50)
    assert tx.terms_days == 45
    assert tx.is_posted


def test_missing_payment_status_migration() -> None:
    """Posted revenue and every expense predate payment tracking: they are paid."""
    base = {"id": "t", "date": "2025-01-01", "category": "x", "amount": 10}

    assert normalize_transaction({**base, "type": "expense", "status": "draft"}).is_paid
    assert normalize_transaction({**base, "type": "revenue"}).is_paid
    draft_revenue = normalize_transaction({**base, "type": "revenue", "status": "draft"})
    assert draft_revenue.payment_status == "unpaid"


def test_unknown_payment_terms_default_to_thirty_days() -> None:
    tx = normalize_transaction(
        {"id": "t", "date": "2025-01-01", "type": "revenue", "amount": 1,
         "paymentTerms": "whenever"}
    )
    assert tx.terms_days == 30


@pytest.mark.parametrize(
    "patch",
    [
        {"date": "2025-13-45"},
        {"date": ""},
        {"amount": -5},
        {"amount": "ten"},
        {"type": "transfer"},
        {"status": "archived"},
    ],
)
def test_malformed_transactions_are_rejected(patch) -> None:
    record = {"id": "bad", "date": "2025-01-01", "type": "revenue", "amount": 1}
    record.update(patch)
    with pytest.raises(ValidationError):
        normalize_transaction(record)


def test_timesheet_legacy_usd_migration() -> None:
    sheet = normalize_timesheet(
        {
            "id": "ts1",
            "assignmentId": "a1",
            "month": "2024-11",
            "standardDaysWorked": 10,
            "totalDaysWorked": 10,
            "internalDayRate": 400,
            "internalCost": 4000,
            "externalRevenue": 6000,
            "profit": 2000,
        }
    )
    assert sheet.internal_cost_usd == 4000
    assert sheet.internal_day_rate_usd == 400
    assert sheet.internal_currency == "USD"
    assert sheet.invoice_status == "not_invoiced"
    assert sheet.contractor_payment_status == "unpaid"
    assert sheet.month_start == date(2024, 11, 1)


def test_timesheet_rejects_bad_month() -> None:
    with pytest.raises(ValidationError):
        normalize_timesheet({"id": "ts", "month": "November"})


def test_assignment_defaults_and_currency_case() -> None:
    a = normalize_assignment(
        {
            "id": "a1",
            "contractorId": "c1",
            "customerId": "k1",
            "startDate": "2025-01-01",
            "internalDayRate": 500,
            "externalDayRate": 800,
            "internalCurrency": "eur",
        }
    )
    assert a.internal_currency == "EUR"
    assert a.external_currency == "USD"
    assert a.standard_days_per_month == 20.0
    assert a.standard_hours_per_day == 8.0
    assert a.is_active


def test_partner_share_must_be_a_percentage() -> None:
    with pytest.raises(ValidationError):
        normalize_partner({"id": "p", "name": "Ann", "sharePercentage": 120})
    with pytest.raises(ValidationError):
        normalize_partner({"id": "p", "name": "Ann", "sharePercentage": "half"})
    blank = normalize_partner({"id": "p", "name": "Ann", "sharePercentage": ""})
    assert blank.share_percentage == 0.0
    assert normalize_partner({"id": "p", "name": "Ann"}).share_percentage == 0.0


def test_payroll_and_deal_defaults() -> None:
    pay = normalize_payroll(
        {"id": "p1", "teamMemberName": "Bo", "month": "2025-02", "netAmount": 3000}
    )
    assert pay.currency == "USD"
    assert pay.status == "pending"

    deal = normalize_deal({"id": "d1", "title": "X", "stage": "lead", "value": 100})
    assert deal.probability is None
    zero = normalize_deal(
        {"id": "d2", "title": "Y", "stage": "lead", "value": 100, "probability": 0}
    )
    assert zero.probability == 0


def test_normalizers_cover_every_collection() -> None:
    assert set(NORMALIZERS) >= {
        "transactions",
        "timesheets",
        "assignments",
        "subscriptions",
        "partners",
        "distributions",
        "payroll",
    }


def test_to_document_writes_camel_case() -> None:
    tx = normalize_transaction(
        {"id": "t1", "date": "2025-01-10", "type": "expense", "amount": 10,
         "payment_status": "unpaid"}
    )
    doc = to_document(tx)
    assert doc["date"] == "2025-01-10"
    assert doc["paymentStatus"] == "unpaid"
    assert "paymentDate" not in doc
    assert normalize_transaction(doc) == tx


def test_to_document_keeps_usd_acronym() -> None:
    sheet = normalize_timesheet(
        {"id": "ts", "month": "2025-01", "internalCostUSD": 10, "totalDaysWorked": 1}
    )
    doc = to_document(sheet)
    assert doc["internalCostUSD"] == 10
    assert doc["internalDayRateUSD"] == 10
