from pathlib import Path

import pytest

from finsight.config import load_app_config
from finsight.errors import ValidationError


def write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "finsight_config.toml"
    path.write_text(body, encoding="utf-8")
    return path


def test_full_config(tmp_path: Path) -> None:
    path = write_config(
        tmp_path,
        """
[organization]
id = "acme"
bank_balance = 25000
retention_percentage = 20

[currency.rates]
EUR = 1.10
gbp = 1.30

[database]
engine = "sqlite"
path = "data/finsight.sqlite"

[cash_flow]
burn_window_months = 6

[logging]
level = "info"
""",
    )
    cfg = load_app_config(str(path))

    assert cfg.organization.id == "acme"
    assert cfg.organization.bank_balance == 25000.0
    assert cfg.organization.retention_percentage == 20.0
    assert cfg.rates.rate("EUR") == 1.10
    assert cfg.rates.rate("GBP") == 1.30
    assert cfg.rates.rate("INR") == 0.012
    assert cfg.database.path == (tmp_path / "data" / "finsight.sqlite").resolve()
    assert cfg.cash_flow.burn_window_months == 6
    assert cfg.cash_flow.upcoming_bills_days == 7
    assert cfg.log_level == "INFO"


def test_minimal_config_uses_defaults(tmp_path: Path) -> None:
    cfg = load_app_config(str(write_config(tmp_path, "")))

    assert cfg.organization.id == "default"
    assert cfg.organization.bank_balance is None
    assert cfg.organization.retention_percentage == 0.0
    assert cfg.database.engine == "sqlite"
    assert cfg.database.path.name == "finsight.sqlite"
    assert cfg.log_level == "WARNING"


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_app_config(str(tmp_path / "nope.toml"))


@pytest.mark.parametrize(
    "body",
    [
        "[organization]\nretention_percentage = 120\n",
        "[organization]\nbank_balance = 'lots'\n",
        "[cash_flow]\nburn_window_months = 0\n",
        "[logging]\nlevel = 'LOUD'\n",
        "this is not toml = = =",
    ],
)
def test_invalid_values(tmp_path: Path, body: str) -> None:
    with pytest.raises(ValueError):
        load_app_config(str(write_config(tmp_path, body)))


def test_invalid_exchange_rate(tmp_path: Path) -> None:
    path = write_config(tmp_path, "[currency.rates]\nEUR = -1\n")
    with pytest.raises(ValidationError):
        load_app_config(str(path))
