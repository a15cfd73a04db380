# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for FinSight.

This module reads ledger transactions from a CSV file and turns every row into
a ``models.Transaction`` through the same normalization used for stored
documents.

Expected input formats
----------------------

Two input formats are supported (column names are case-insensitive):

1) Typed format
   ------------
       date, type, category, amount[, description, ...]

   - ``date``:     date of the entry (YYYY-MM-DD)
   - ``type``:     ``revenue`` or ``expense``
   - ``category``: free-text category (e.g. ``consulting``, ``software``)
   - ``amount``:   non-negative amount in USD

2) Signed amount format
   --------------------
       date, category, amount[, description, ...]

   - ``amount`` is signed: positive rows are revenue, negative rows are
     expenses (stored with the absolute amount).

Optional columns
----------------
``id``, ``status`` (draft/posted, default posted), ``description``
(``label`` is accepted as an alias), ``payment_status``, ``payment_date``,
``amount_paid``, ``invoice_number``, ``invoice_date``, ``payment_terms``.
Any other column is ignored.

Errors
------
A CSV whose structure matches neither format raises ``ValueError``. Rows that
fail validation do not stop the import: each is reported as a RecordError in
the returned BulkResult (``record_id`` is the ``id`` column when present,
else ``row <n>`` with 1-based data row numbers).
"""

import os
from typing import Union

import pandas as pd

from .errors import BulkResult, ValidationError
from .models import normalize_transaction

OPTIONAL_COLUMNS = (
    "id",
    "status",
    "description",
    "payment_status",
    "payment_date",
    "amount_paid",
    "invoice_number",
    "invoice_date",
    "payment_terms",
)


def _signed_to_typed(row: dict) -> dict:
    amount_raw = row.get("amount", "")
    try:
        amount = float(amount_raw)
    except (TypeError, ValueError):
        # Let normalization report the invalid number.
        row["type"] = "revenue"
        return row
    row["type"] = "revenue" if amount >= 0 else "expense"
    row["amount"] = abs(amount)
    return row


def read_transactions(path: Union[str, "os.PathLike[str]"]) -> BulkResult:
    """
    Read ledger transactions from a CSV file.

    Parameters
    ----------
    path:
        Path to the CSV file.

    Returns
    -------
    BulkResult
        ``created`` holds the Transaction objects of the valid rows, in file
        order; ``errors`` one RecordError per rejected row.

    Raises
    ------
    ValueError
        If the CSV does not contain one of the supported column sets.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)

    # Normalize column names to lowercase (to make the check case-insensitive)
    df.columns = [c.lower().strip() for c in df.columns]
    cols = set(df.columns)

    if "label" in cols and "description" not in cols:
        df = df.rename(columns={"label": "description"})
        cols = set(df.columns)

    required_typed = {"date", "type", "category", "amount"}
    required_signed = {"date", "category", "amount"}

    if required_typed.issubset(cols):
        signed = False
    elif required_signed.issubset(cols):
        signed = True
    else:
        raise ValueError(
            "Invalid transactions structure. Expected either:\n"
            "  - date, type, category, amount\n"
            "  - date, category, amount (signed)\n"
            "(column names are case-insensitive; 'label' is accepted as an alias "
            "for 'description')."
        )

    keep = [c for c in ("date", "type", "category", "amount", *OPTIONAL_COLUMNS) if c in cols]
    result = BulkResult()
    for n, row in enumerate(df[keep].to_dict(orient="records"), start=1):
        row = {k: v.strip() for k, v in row.items()}
        if signed:
            row = _signed_to_typed(row)
        record_id = row.get("id") or f"row {n}"
        try:
            result.created.append(normalize_transaction(row))
        except ValidationError as exc:
            result.add_error(record_id, exc)
    return result
