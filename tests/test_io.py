from pathlib import Path

import pytest

from finsight.io import read_transactions


def write_csv(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "transactions.csv"
    path.write_text(content, encoding="utf-8")
    return path


def test_typed_format(tmp_path: Path) -> None:
    path = write_csv(
        tmp_path,
        "id,date,type,category,amount,status,payment_status,payment_terms\n"
        "t1,2025-01-05,revenue,consulting,1000,posted,unpaid,net_15\n"
        "t2,2025-01-06,expense,rent,250,draft,,\n",
    )
    result = read_transactions(path)

    assert result.ok
    t1, t2 = result.created
    assert (t1.id, t1.type, t1.amount, t1.payment_status) == ("t1", "revenue", 1000.0, "unpaid")
    assert t1.terms_days == 15
    assert t2.status == "draft"
    # Expenses without a payment status predate payment tracking.
    assert t2.payment_status == "paid"


def test_signed_format_and_case_insensitive_columns(tmp_path: Path) -> None:
    path = write_csv(
        tmp_path,
        "DATE,Category,AMOUNT,Label,Extra\n"
        "2025-02-01,sales,500,Invoice 7,x\n"
        "2025-02-02,hosting,-120.5,Cloud,y\n",
    )
    result = read_transactions(path)

    sale, cost = result.created
    assert (sale.type, sale.amount, sale.description) == ("revenue", 500.0, "Invoice 7")
    assert (cost.type, cost.amount) == ("expense", 120.5)


def test_invalid_rows_are_reported_not_raised(tmp_path: Path) -> None:
    path = write_csv(
        tmp_path,
        "id,date,type,category,amount\n"
        "ok,2025-01-01,revenue,a,10\n"
        "bad-type,2025-01-01,gift,a,10\n"
        ",2025-01-01,expense,a,-3\n",
    )
    result = read_transactions(path)

    assert [t.id for t in result.created] == ["ok"]
    assert [e.record_id for e in result.errors] == ["bad-type", "row 3"]


def test_invalid_structure(tmp_path: Path) -> None:
    path = write_csv(tmp_path, "when,what\n2025-01-01,10\n")
    with pytest.raises(ValueError, match="Invalid transactions structure"):
        read_transactions(path)
