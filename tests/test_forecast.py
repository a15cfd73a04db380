from datetime import date

import pytest

from finsight.forecast import (
    FALLBACK_INSIGHTS,
    base_figures,
    fallback_forecast,
    generate_forecast,
    parse_generator_output,
    transaction_summary,
)
from finsight.models import Transaction

TODAY = date(2025, 3, 15)


def tx(tid, day, kind, amount, category="general", status="posted") -> Transaction:
    return Transaction(id=tid, date=date.fromisoformat(day), type=kind,
                       category=category, amount=amount, status=status)


HISTORY = [
    tx("t1", "2025-01-05", "revenue", 2000.0, "consulting"),
    tx("t2", "2025-01-09", "expense", 1000.0, "rent"),
    tx("t3", "2025-02-03", "revenue", 4000.0, "consulting"),
    tx("t4", "2025-02-04", "expense", 0.0, "rent"),
    tx("t5", "2025-02-04", "revenue", 50000.0, status="draft"),
]


def test_fallback_without_history_uses_defaults() -> None:
    result = fallback_forecast([], months=2, today=TODAY)

    assert [p.month for p in result.base_case] == ["2025-04", "2025-05"]
    first, second = result.base_case
    assert (first.revenue, first.expenses, first.profit) == (10000.0, 6860.0, 3140.0)
    assert (second.revenue, second.expenses) == (10200.0, 6997.0)
    assert result.optimistic[0].revenue == 12000.0
    assert result.optimistic[0].expenses == 6174.0
    assert result.conservative[0].revenue == 8500.0
    assert result.source == "fallback"
    assert result.error is None
    assert result.insights == FALLBACK_INSIGHTS


def test_base_figures_are_monthly_averages_of_posted_entries() -> None:
    assert base_figures(HISTORY) == (3000.0, 500.0)


def test_generator_output_is_used() -> None:
    def generator(transactions, months):
        assert len(transactions) == 4
        return {
            "baseCase": [{"month": "2025-04", "revenue": 100, "expenses": 40}],
            "optimistic": [],
            "conservative": [],
            "insights": ["steady"],
            "recommendations": [],
        }

    result = generate_forecast(HISTORY, months=1, generator=generator, today=TODAY)
    assert result.source == "external"
    assert result.base_case[0].profit == 60.0
    assert result.insights == ["steady"]


def test_failing_generator_falls_back_with_error() -> None:
    def generator(transactions, months):
        raise RuntimeError("quota exceeded")

    result = generate_forecast(HISTORY, months=3, generator=generator, today=TODAY)
    assert result.source == "fallback"
    assert "quota exceeded" in result.error
    assert len(result.base_case) == 3
    assert result.base_case[0].revenue == 3000.0


def test_malformed_payload() -> None:
    with pytest.raises(ValueError, match="Malformed"):
        parse_generator_output({"baseCase": [{"month": "2025-04"}]})

    result = generate_forecast(
        HISTORY, months=1, generator=lambda t, m: {"baseCase": 42}, today=TODAY
    )
    assert result.source == "fallback"
    assert result.error


def test_months_must_be_positive() -> None:
    with pytest.raises(ValueError):
        generate_forecast(HISTORY, months=0)


def test_transaction_summary() -> None:
    summary = transaction_summary(HISTORY)
    assert "Total Transactions: 4" in summary
    assert "Net Profit: $5,000.00" in summary
    assert "2025-01: Revenue $2,000.00" in summary
    assert transaction_summary([]) == "No historical transaction data available."
