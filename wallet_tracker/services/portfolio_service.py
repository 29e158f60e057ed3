import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from wallet_tracker import accounting, splits, targets
from wallet_tracker.accounting import calculate_tp
from wallet_tracker.exceptions import NotFoundError, ValidationError
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import (
    Asset,
    AssetStatus,
    AssetType,
    EntryTarget,
    ProfitTarget,
    Transaction,
    TxnAction,
    Wallet,
    WalletType,
)
from wallet_tracker.services.ledger_service import LedgerService

logger: logging.Logger = logging.getLogger(__name__)

ASSET_FIELDS: frozenset[str] = frozenset(
    {"name", "asset_type", "region", "test_price", "commission", "status", "budget", "htp"}
)


def require_asset(ledger: Ledger, symbol: str) -> Asset:
    asset: Asset | None = ledger.find_asset(symbol)
    if asset is None:
        raise NotFoundError("Asset", symbol.upper())
    return asset


class PortfolioService:
    """Service for asset, target and transaction changes. Each call is one load/mutate/save."""

    def __init__(self, ledger_service: LedgerService):
        self.ledger_service: LedgerService = ledger_service

    # Assets

    def add_asset(
        self,
        symbol: str,
        asset_type: AssetType = AssetType.STOCK,
        name: str | None = None,
        region: str | None = None,
        commission: float = 0.0,
        budget: float | None = None,
        htp: float | None = None,
        test_price: float | None = None,
    ) -> Asset:
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValidationError("Symbol is required", field="symbol")
        if commission < 0 or commission >= 100:
            raise ValidationError("Commission must be between 0 and 100", field="commission")

        with self.ledger_service.session() as ledger:
            if ledger.find_asset(symbol):
                raise ValidationError(f"Asset {symbol} already exists", field="symbol")
            asset: Asset = ledger.add_asset(
                Asset(
                    symbol=symbol,
                    asset_type=asset_type,
                    name=name,
                    region=region,
                    commission=commission,
                    budget=budget,
                    htp=htp,
                    test_price=test_price,
                )
            )
        logger.info(f"Added asset {symbol} ({asset_type})")
        return asset

    def update_asset(self, symbol: str, changes: Mapping[str, Any]) -> Asset:
        """
        Change asset fields. A commission change re-prices the asset's wallet targets.

        A test price of 0 clears it.
        """
        unknown: set[str] = set(changes) - ASSET_FIELDS
        if unknown:
            raise ValidationError(f"Unknown asset fields: {', '.join(sorted(unknown))}")

        with self.ledger_service.session() as ledger:
            asset: Asset = require_asset(ledger, symbol)
            for key, value in changes.items():
                if key == "commission" and (value < 0 or value >= 100):
                    raise ValidationError("Commission must be between 0 and 100", field=key)
                if key == "test_price" and not value:
                    value = None
                setattr(asset, key, value)
            ledger.touch(asset)

            if "commission" in changes:
                for wallet in ledger.wallets_for(asset.id):
                    if wallet.tp_percent is None:
                        continue
                    wallet.tp_value = calculate_tp(
                        wallet.buy_price, wallet.tp_percent, asset.commission
                    )
                    ledger.touch(wallet)
        logger.info(f"Updated asset {asset.symbol}: {', '.join(sorted(changes))}")
        return asset

    def list_assets(self, include_archived: bool = False) -> list[Asset]:
        ledger: Ledger = self.ledger_service.load()
        return sorted(
            (
                a
                for a in ledger.assets.values()
                if include_archived or a.status != AssetStatus.ARCHIVED
            ),
            key=lambda a: a.symbol,
        )

    # Targets

    def add_entry_target(
        self, symbol: str, target_percent: float, sort_order: int | None = None, name: str | None = None
    ) -> EntryTarget:
        with self.ledger_service.session() as ledger:
            asset: Asset = require_asset(ledger, symbol)
            return targets.add_entry_target(ledger, asset.id, target_percent, sort_order, name)

    def delete_entry_target(self, target_id: str) -> None:
        with self.ledger_service.session() as ledger:
            targets.delete_entry_target(ledger, target_id)

    def add_profit_target(
        self,
        symbol: str,
        target_percent: float,
        allocation_percent: float,
        sort_order: int | None = None,
        name: str | None = None,
        wallet_type: WalletType = WalletType.SWING,
    ) -> ProfitTarget:
        with self.ledger_service.session() as ledger:
            asset: Asset = require_asset(ledger, symbol)
            return targets.add_profit_target(
                ledger, asset.id, target_percent, allocation_percent, sort_order, name, wallet_type
            )

    def update_profit_target(self, target_id: str, **changes: Any) -> ProfitTarget:
        with self.ledger_service.session() as ledger:
            return targets.update_profit_target(ledger, target_id, **changes)

    def delete_profit_target(self, target_id: str) -> None:
        with self.ledger_service.session() as ledger:
            targets.delete_profit_target(ledger, target_id)

    def list_targets(
        self, symbol: str
    ) -> tuple[list[EntryTarget], list[ProfitTarget], str | None]:
        """Entry and profit targets of an asset, plus a warning when allocations do not add up."""
        ledger: Ledger = self.ledger_service.load()
        asset: Asset = require_asset(ledger, symbol)
        return (
            ledger.entry_targets_for(asset.id),
            ledger.profit_targets_for(asset.id),
            targets.allocation_warning(ledger, asset.id),
        )

    # Transactions

    def buy(
        self,
        symbol: str,
        txn_date: date,
        price: float,
        investment: float,
        allocations: Mapping[str, float] | None = None,
        signal: str | None = None,
    ) -> Transaction:
        with self.ledger_service.session() as ledger:
            asset: Asset = require_asset(ledger, symbol)
            return accounting.record_buy(
                ledger, asset.id, txn_date, price, investment, allocations, signal
            )

    def sell(
        self,
        wallet_id: str,
        txn_date: date,
        price: float,
        quantity: float | None = None,
        signal: str | None = None,
    ) -> Transaction:
        """Sell from a wallet; without a quantity the whole remaining position is sold."""
        with self.ledger_service.session() as ledger:
            if quantity is None:
                wallet: Wallet = ledger.get_wallet_by_id(wallet_id)
                # Remaining shares are in post-split units; a back-dated sell is not
                quantity = wallet.remaining_shares / splits.cumulative_split_factor(
                    ledger.splits_for(wallet.asset_id), txn_date
                )
            return accounting.record_sell(ledger, wallet_id, txn_date, price, quantity, signal)

    def record_cash(
        self,
        symbol: str,
        action: TxnAction,
        txn_date: date,
        amount: float,
        signal: str | None = None,
    ) -> Transaction:
        with self.ledger_service.session() as ledger:
            asset: Asset = require_asset(ledger, symbol)
            return accounting.record_cash(ledger, asset.id, action, txn_date, amount, signal)

    def split(
        self, symbol: str, split_date: date, ratio: float, pre_split_price: float | None = None
    ) -> Transaction:
        with self.ledger_service.session() as ledger:
            asset: Asset = require_asset(ledger, symbol)
            return splits.record_split(ledger, asset.id, split_date, ratio, pre_split_price)

    def delete_transaction(self, txn_id: str) -> None:
        with self.ledger_service.session() as ledger:
            accounting.delete_transaction(ledger, txn_id)

    def list_transactions(self, symbol: str, action: TxnAction | None = None) -> list[Transaction]:
        ledger: Ledger = self.ledger_service.load()
        asset: Asset = require_asset(ledger, symbol)
        return ledger.transactions_for(asset.id, action)

    def list_wallets(self, symbol: str, include_archived: bool = False) -> list[Wallet]:
        ledger: Ledger = self.ledger_service.load()
        asset: Asset = require_asset(ledger, symbol)
        return ledger.wallets_for(asset.id, include_archived)
