from pathlib import Path
from unittest.mock import patch

import pytest

from wallet_tracker.main import main


@pytest.fixture
def cli(isolated_config_environment: dict[str, Path]):
    """Run the CLI against the isolated test config, without reconfiguring logging."""

    def _run(*argv: str) -> int:
        with patch("wallet_tracker.main.setup_logging"):
            return main(list(argv))

    return _run


def test_no_command_prints_help(cli, capsys):
    assert cli() == 0
    assert "wallet-tracker" in capsys.readouterr().out


def test_buy_flow(cli, capsys, isolated_config_environment):
    assert cli("asset", "add", "voo", "--type", "ETF", "--budget", "5000") == 0
    assert cli("target", "add-et", "VOO", "4") == 0
    assert cli("target", "add-pt", "VOO", "10", "100") == 0
    assert cli("txn", "buy", "VOO", "10", "1000", "--date", "2024-01-10") == 0
    _ = capsys.readouterr()

    assert cli("report", "wallets", "VOO") == 0
    out: str = capsys.readouterr().out
    assert "100.00000" in out
    assert "11.0000" in out

    assert (isolated_config_environment["temp_dir"] / "wallets.db").exists()


def test_rejected_action_exits_with_error(cli, capsys):
    assert cli("txn", "buy", "NOPE", "10", "1000") == 1
    assert "Asset not found: NOPE" in capsys.readouterr().err


def test_duplicate_asset(cli, capsys):
    assert cli("asset", "add", "VOO") == 0
    assert cli("asset", "add", "VOO") == 1
    assert "already exists" in capsys.readouterr().err


def test_invalid_config_override(cli, capsys):
    assert cli("--page-size", "lots", "asset", "list") == 1
    assert "Error loading configuration" in capsys.readouterr().err


def test_bad_argument_value_exits(cli):
    with pytest.raises(SystemExit):
        _ = cli("txn", "split", "VOO", "two-for-one")
