# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Currency conversion helpers for FinSight.

Every amount that mixes currencies (contractor costs, payroll, projected
costs) is converted to USD through an ``ExchangeRates`` table before being
summed. A rate is expressed as "USD per one unit of the currency", so that:

    amount_usd = amount * rate

USD is always the identity rate. Unknown currency codes raise
``UnknownCurrencyError`` instead of silently falling back to USD: a silent
fallback would under- or over-state costs in mixed-currency books.

The default table mirrors the static rates used when no live rates are
configured. Applications override it from the ``[currency.rates]`` section
of the configuration file (see config.py).
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

from .errors import UnknownCurrencyError, ValidationError

BASE_CURRENCY = "USD"

DEFAULT_RATES: dict[str, float] = {
    "USD": 1.0,
    "INR": 0.012,
    "EUR": 1.08,
    "GBP": 1.27,
    "CAD": 0.74,
    "AUD": 0.65,
    "SGD": 0.74,
}


def _normalize_code(currency_code: str) -> str:
    return str(currency_code).strip().upper()


@dataclass(frozen=True)
class ExchangeRates:
    """
    Immutable exchange-rate table (USD per unit of currency).

    Attributes
    ----------
    rates:
        Mapping of upper-case ISO currency codes to their USD rate.
        The base currency (USD) is always present with a rate of 1.0.
    """

    rates: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_RATES))

    def __post_init__(self) -> None:
        normalized: dict[str, float] = {}
        for code, rate in self.rates.items():
            try:
                value = float(rate)
            except (TypeError, ValueError) as exc:
                raise ValidationError(
                    f"Invalid exchange rate for {code!r}: {rate!r}"
                ) from exc
            if value <= 0:
                raise ValidationError(
                    f"Exchange rate for {code!r} must be positive, got {value}."
                )
            normalized[_normalize_code(code)] = value
        normalized[BASE_CURRENCY] = 1.0
        object.__setattr__(self, "rates", normalized)

    @classmethod
    def with_overrides(cls, overrides: Mapping[str, float]) -> "ExchangeRates":
        """Return the default table updated with the given rates."""
        merged = dict(DEFAULT_RATES)
        merged.update({_normalize_code(k): v for k, v in overrides.items()})
        return cls(merged)

    def rate(self, currency_code: str) -> float:
        code = _normalize_code(currency_code)
        try:
            return self.rates[code]
        except KeyError:
            raise UnknownCurrencyError(currency_code) from None

    def supported(self) -> list[str]:
        return sorted(self.rates)


DEFAULT_EXCHANGE_RATES = ExchangeRates()


def get_exchange_rate(
    currency_code: str, rates: Optional[ExchangeRates] = None
) -> float:
    """
    Return the USD rate of a currency.

    Raises:
        UnknownCurrencyError: if the code is not in the rate table.
    """
    table = rates or DEFAULT_EXCHANGE_RATES
    return table.rate(currency_code)


def convert_to_usd(
    amount: float, currency_code: str, rates: Optional[ExchangeRates] = None
) -> float:
    """Convert an amount expressed in ``currency_code`` to USD."""
    if _normalize_code(currency_code) == BASE_CURRENCY:
        return float(amount)
    return float(amount) * get_exchange_rate(currency_code, rates)


def convert_from_usd(
    amount_usd: float, currency_code: str, rates: Optional[ExchangeRates] = None
) -> float:
    """Convert a USD amount into ``currency_code``."""
    if _normalize_code(currency_code) == BASE_CURRENCY:
        return float(amount_usd)
    return float(amount_usd) / get_exchange_rate(currency_code, rates)
