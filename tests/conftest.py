from collections.abc import Callable, Iterator
from datetime import date
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
import yaml

from wallet_tracker.config import AppConfig, ConfigLoader
from wallet_tracker.db import Database
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import Asset, ProfitTarget, WalletType
from wallet_tracker.repositories.asset_repository import AssetRepository
from wallet_tracker.repositories.price_repository import PriceRepository
from wallet_tracker.repositories.target_repository import (
    EntryTargetRepository,
    ProfitTargetRepository,
)
from wallet_tracker.repositories.transaction_repository import TransactionRepository
from wallet_tracker.repositories.wallet_repository import WalletRepository
from wallet_tracker.services.ledger_service import LedgerService
from wallet_tracker.services.portfolio_service import PortfolioService
from wallet_tracker.targets import add_entry_target, add_profit_target

REAL_CONFIG_DIR: Path = Path(__file__).parent.parent / "config"

# Small pages so every repository test walks the next-token loop
TEST_PAGE_SIZE: int = 2


@pytest.fixture
def isolated_config_environment(tmp_path: Path) -> Iterator[dict[str, Path]]:
    """
    Create a completely isolated test environment with copied config files.
    Use this when you need to modify config files for specific tests.
    Yields: {"config_dir": test_config_dir, "temp_dir": tmp_path}
    """
    test_config_dir: Path = tmp_path / "config"
    test_config_dir.mkdir()

    for config_file in REAL_CONFIG_DIR.glob("config*.yaml"):
        with open(config_file, "r") as src_file:
            content: dict[str, Any] = yaml.safe_load(src_file) or {}

        # Keep every file the app writes inside the temp directory
        if "db_path" in content:
            content["db_path"] = str(tmp_path / "wallets.db")
        if "log_file_path" in content:
            content["log_file_path"] = str(tmp_path / "logs/test.log")

        with open(test_config_dir / config_file.name, "w") as dest_file:
            yaml.dump(content, dest_file)

    log_config: Path = REAL_CONFIG_DIR / "logging_config.yaml"
    if log_config.exists():
        with open(log_config, "r") as src_file:
            content = yaml.safe_load(src_file) or {}
        with open(test_config_dir / log_config.name, "w") as dest_file:
            yaml.dump(content, dest_file)

    with patch(
        "wallet_tracker.config.ConfigLoader._find_config_directory",
        return_value=test_config_dir,
    ):
        yield {"config_dir": test_config_dir, "temp_dir": tmp_path}


@pytest.fixture
def app_config(isolated_config_environment: dict[str, Path]) -> AppConfig:
    """AppConfig loaded through the normal ConfigLoader path from the copied test files."""
    return ConfigLoader.load_app_config("test")


@pytest.fixture
def config_with_cli_overrides(
    isolated_config_environment: dict[str, Path],
) -> Callable[..., AppConfig]:
    """Fixture for testing CLI argument overrides."""

    def _config_with_overrides(overrides: dict[str, Any]) -> AppConfig:
        return ConfigLoader.load_app_config("test", overrides)

    return _config_with_overrides


@pytest.fixture
def test_db(tmp_path: Path) -> Iterator[Database]:
    """A fresh file-backed database with all tables."""
    with Database(tmp_path / "test_wallets.db") as db:
        db.create_tables_if_not_exists()
        yield db


@pytest.fixture
def asset_repo(test_db: Database) -> AssetRepository:
    return AssetRepository(test_db, page_size=TEST_PAGE_SIZE)


@pytest.fixture
def entry_target_repo(test_db: Database) -> EntryTargetRepository:
    return EntryTargetRepository(test_db, page_size=TEST_PAGE_SIZE)


@pytest.fixture
def profit_target_repo(test_db: Database) -> ProfitTargetRepository:
    return ProfitTargetRepository(test_db, page_size=TEST_PAGE_SIZE)


@pytest.fixture
def wallet_repo(test_db: Database) -> WalletRepository:
    return WalletRepository(test_db, page_size=TEST_PAGE_SIZE)


@pytest.fixture
def transaction_repo(test_db: Database) -> TransactionRepository:
    return TransactionRepository(test_db, page_size=TEST_PAGE_SIZE)


@pytest.fixture
def price_repo(test_db: Database) -> PriceRepository:
    return PriceRepository(test_db)


@pytest.fixture
def ledger_service(
    test_db: Database,
    asset_repo: AssetRepository,
    entry_target_repo: EntryTargetRepository,
    profit_target_repo: ProfitTargetRepository,
    wallet_repo: WalletRepository,
    transaction_repo: TransactionRepository,
) -> LedgerService:
    return LedgerService(
        test_db, asset_repo, entry_target_repo, profit_target_repo, wallet_repo, transaction_repo
    )


@pytest.fixture
def portfolio_service(ledger_service: LedgerService) -> PortfolioService:
    return PortfolioService(ledger_service)


@pytest.fixture
def ledger() -> Ledger:
    return Ledger()


@pytest.fixture
def asset(ledger: Ledger) -> Asset:
    """VOO with no commission, a 4% entry target and a single 100% swing profit target."""
    asset: Asset = ledger.add_asset(Asset(symbol="VOO", budget=5000.0))
    _ = add_entry_target(ledger, asset.id, 4.0)
    return asset


@pytest.fixture
def swing_target(ledger: Ledger, asset: Asset) -> ProfitTarget:
    return add_profit_target(ledger, asset.id, 10.0, 100.0)


@pytest.fixture
def split_targets(ledger: Ledger, asset: Asset) -> tuple[ProfitTarget, ProfitTarget]:
    """A 60% swing target at +8% and a 40% hold target at +50%."""
    swing: ProfitTarget = add_profit_target(ledger, asset.id, 8.0, 60.0, name="swing")
    hold: ProfitTarget = add_profit_target(
        ledger, asset.id, 50.0, 40.0, name="hold", wallet_type=WalletType.HOLD
    )
    return swing, hold


@pytest.fixture
def mock_ticker() -> Callable[..., MagicMock]:
    """Build a MagicMock shaped like yfinance.Ticker from a price and daily closes."""

    def _make(last_price: float | None, closes: dict[date, float] | None = None) -> MagicMock:
        ticker: MagicMock = MagicMock()
        ticker.fast_info.last_price = last_price
        closes = closes or {}
        index = pd.DatetimeIndex(
            [pd.Timestamp(d) for d in closes], name="Date"
        ).tz_localize("America/New_York")
        ticker.history.return_value = pd.DataFrame(
            {"Open": list(closes.values()), "Close": list(closes.values())}, index=index
        )
        return ticker

    return _make
