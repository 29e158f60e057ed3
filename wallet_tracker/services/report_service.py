import logging
from datetime import date

from wallet_tracker import reports
from wallet_tracker.dip_analysis import DipAnalysisOptions, DipAnalysisResult, analyze_dip_recovery
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import (
    Asset,
    DashboardRow,
    GroupSummary,
    PriceSnapshot,
    ProfitLossSummary,
    WalletRow,
)
from wallet_tracker.repositories.price_repository import PriceRepository
from wallet_tracker.services.ledger_service import LedgerService
from wallet_tracker.services.portfolio_service import require_asset
from wallet_tracker.services.price_service import PriceService

logger: logging.Logger = logging.getLogger(__name__)


class ReportService:
    """Builds report rows from the stored ledger and the latest price snapshots."""

    def __init__(
        self,
        ledger_service: LedgerService,
        price_repo: PriceRepository,
        price_service: PriceService,
        history_limit: int | None = None,
    ):
        self.ledger_service: LedgerService = ledger_service
        self.price_repo: PriceRepository = price_repo
        self.price_service: PriceService = price_service
        self.history_limit: int | None = history_limit

    def _prices(self, ledger: Ledger) -> dict[str, PriceSnapshot]:
        symbols: list[str] = [a.symbol for a in ledger.assets.values()]
        return self.price_repo.get_snapshots(symbols, self.history_limit)

    def dashboard(self, today: date | None = None) -> list[DashboardRow]:
        ledger: Ledger = self.ledger_service.load()
        return reports.dashboard_rows(ledger, self._prices(ledger), today or date.today())

    def wallets(self, symbol: str) -> tuple[Asset, float | None, list[WalletRow]]:
        """Active wallets of one asset with the price they were evaluated at."""
        ledger: Ledger = self.ledger_service.load()
        asset: Asset = require_asset(ledger, symbol)
        price, _ = reports.current_price_for(asset, self._prices(ledger))
        return asset, price, reports.wallet_rows(ledger, asset.id, price)

    def profit_loss(self, symbol: str | None = None) -> ProfitLossSummary:
        ledger: Ledger = self.ledger_service.load()
        asset_ids: list[str] | None = None
        if symbol:
            asset_ids = [require_asset(ledger, symbol).id]
        return reports.profit_loss_summary(ledger, self._prices(ledger), asset_ids)

    def groups(self, group_by: str = "asset_type") -> list[GroupSummary]:
        ledger: Ledger = self.ledger_service.load()
        return reports.grouped_summary(ledger, self._prices(ledger), group_by)

    def analyze_dips(self, symbol: str, options: DipAnalysisOptions) -> DipAnalysisResult:
        """Dip/recovery analysis over freshly fetched daily closes."""
        months: int = options.lookback_months or 12
        closes = self.price_service.get_price_history(symbol.upper(), months)
        result: DipAnalysisResult = analyze_dip_recovery(closes, symbol.upper(), options)
        logger.info(
            f"Analyzed {symbol.upper()}: {len(result.dip_events)} dips over {result.total_days} days"
        )
        return result
