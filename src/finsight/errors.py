# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Error taxonomy for FinSight.

All errors raised on purpose by the package derive from ``FinSightError``.
Validation problems also derive from ``ValueError`` and lookup problems from
``LookupError`` so that callers written against the built-in exceptions keep
working.

- ValidationError      : input violates a domain rule (negative amount,
                         partner shares not totalling 100%, percentage out of
                         range, malformed record).
- UnknownCurrencyError : currency code missing from the exchange-rate table.
- NotFoundError        : a referenced record (assignment, timesheet, ...)
                         does not exist.
- ExternalServiceError : the record store or the forecast generator failed.
"""

from dataclasses import dataclass, field
from typing import Optional


class FinSightError(Exception):
    """Base class for all FinSight errors."""


class ValidationError(FinSightError, ValueError):
    """Raised when user input or a stored record fails a domain rule."""


class UnknownCurrencyError(ValidationError):
    """Raised when a currency code is not present in the exchange-rate table."""

    def __init__(self, currency_code: str) -> None:
        super().__init__(f"Unknown currency code: {currency_code!r}")
        self.currency_code = currency_code


class NotFoundError(FinSightError, LookupError):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} not found: {record_id!r}")
        self.kind = kind
        self.record_id = record_id


class ExternalServiceError(FinSightError):
    """Raised when a collaborator (record store, forecast generator) fails."""


@dataclass(frozen=True)
class RecordError:
    """
    Failure of a single record inside a bulk operation.

    Bulk operations (timesheet generation, CSV import) continue past a failing
    record and report one RecordError per failure instead of aborting.
    """

    record_id: Optional[str]
    message: str
    kind: str = "validation"


@dataclass
class BulkResult:
    """
    Outcome of a bulk operation: records created plus per-record failures.

    ``degraded`` is True when the records were stored but the activity-log
    entry for the batch could not be written.
    """

    created: list = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(
        self, record_id: Optional[str], exc: Exception, kind: str = "validation"
    ) -> None:
        self.errors.append(RecordError(record_id=record_id, message=str(exc), kind=kind))
