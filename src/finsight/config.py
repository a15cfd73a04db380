# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for FinSight.

This module is responsible for:
- loading the application configuration from a TOML file,
- validating its values (percentages, exchange rates, window lengths),
- exposing typed dataclasses used by the rest of the application.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .currency import ExchangeRates
from .repository import DatabaseConfig

DEFAULT_CONFIG_FILE = "finsight_config.toml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class OrganizationSettings:
    """Organization defaults used when the store holds no organization record."""

    id: str = "default"
    bank_balance: Optional[float] = None
    retention_percentage: float = 0.0


@dataclass(frozen=True)
class CashFlowSettings:
    """
    Tunables of the cash-flow and contractor calculators.

    Attributes
    ----------
    burn_window_months:
        Trailing window (in months) used to average the burn rate.
    upcoming_bills_days:
        Horizon of the subscription "upcoming bills" list.
    expiring_contract_days:
        Horizon of the expiring-contract detector.
    forecast_months:
        Default number of months forecast and projected.
    """

    burn_window_months: int = 3
    upcoming_bills_days: int = 7
    expiring_contract_days: int = 30
    forecast_months: int = 6


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for FinSight.

    This aggregates:
    - the organization defaults (bank balance, retention),
    - the exchange-rate table,
    - the database configuration (where records are stored),
    - the cash-flow tunables,
    - the logging level.
    """

    organization: OrganizationSettings
    rates: ExchangeRates
    database: DatabaseConfig
    cash_flow: CashFlowSettings = field(default_factory=CashFlowSettings)
    log_level: str = "WARNING"


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Config section [{name}] must be a table.")
    return section


def _number(
    section: Mapping[str, Any], key: str, name: str, default: Optional[float]
) -> Optional[float]:
    raw = section.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for '{name}.{key}' in the configuration. "
            "Expected a number."
        ) from exc


def _positive_int(section: Mapping[str, Any], key: str, default: int) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for 'cash_flow.{key}' in the configuration. "
            "Expected an integer."
        ) from exc
    if value <= 0:
        raise ValueError(f"'cash_flow.{key}' must be positive (got {value}).")
    return value


def _parse_organization(raw: Mapping[str, Any]) -> OrganizationSettings:
    section = _section(raw, "organization")
    retention = _number(section, "retention_percentage", "organization", 0.0) or 0.0
    if not 0.0 <= retention <= 100.0:
        raise ValueError(
            "'organization.retention_percentage' must be between 0 and 100 "
            f"(got {retention:g})."
        )
    return OrganizationSettings(
        id=str(section.get("id") or "default"),
        bank_balance=_number(section, "bank_balance", "organization", None),
        retention_percentage=retention,
    )


def _parse_rates(raw: Mapping[str, Any]) -> ExchangeRates:
    currency_section = _section(raw, "currency")
    rates_section = currency_section.get("rates") or {}
    if not isinstance(rates_section, Mapping):
        raise ValueError("Config section [currency.rates] must be a table.")
    # ExchangeRates validates the values themselves.
    return ExchangeRates.with_overrides(rates_section)


def _parse_cash_flow(raw: Mapping[str, Any]) -> CashFlowSettings:
    section = _section(raw, "cash_flow")
    defaults = CashFlowSettings()
    return CashFlowSettings(
        burn_window_months=_positive_int(
            section, "burn_window_months", defaults.burn_window_months
        ),
        upcoming_bills_days=_positive_int(
            section, "upcoming_bills_days", defaults.upcoming_bills_days
        ),
        expiring_contract_days=_positive_int(
            section, "expiring_contract_days", defaults.expiring_contract_days
        ),
        forecast_months=_positive_int(
            section, "forecast_months", defaults.forecast_months
        ),
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the FinSight application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [organization]
        id, bank_balance, retention_percentage (0-100). Used when the store
        holds no organization record yet.

    [currency.rates]
        USD rate per currency code, overriding the built-in table
        (e.g. EUR = 1.08).

    [database]
        Database engine ("sqlite") and the SQLite file path.

    [cash_flow]
        burn_window_months, upcoming_bills_days, expiring_contract_days,
        forecast_months.

    [logging]
        level (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Notes
    -----
    All file paths in the TOML are resolved relative to the directory of the
    TOML file itself.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # Database section
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/db/finsight.sqlite"
    db_path = (base_dir / str(db_path_raw)).resolve()

    # Logging section
    logging_section = _section(raw, "logging")
    log_level = str(logging_section.get("level") or "WARNING").upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(
            f"Invalid value for 'logging.level': {log_level!r}. "
            f"Expected one of: {', '.join(LOG_LEVELS)}."
        )

    return AppConfig(
        organization=_parse_organization(raw),
        rates=_parse_rates(raw),
        database=DatabaseConfig(engine=db_engine, path=db_path),
        cash_flow=_parse_cash_flow(raw),
        log_level=log_level,
    )
