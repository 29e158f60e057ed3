"""
In-memory ledger of assets, targets, wallets and transactions.

The ledger is the single source of truth for the accounting functions. Every
mutation is recorded in a ChangeSet so a service can persist exactly what
changed and then clear it.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from wallet_tracker.exceptions import IntegrityError, NotFoundError
from wallet_tracker.models import (
    Asset,
    EntryTarget,
    ProfitTarget,
    Transaction,
    TxnAction,
    Wallet,
    WalletKey,
)

logger: logging.Logger = logging.getLogger(__name__)

Entity = Asset | EntryTarget | ProfitTarget | Wallet | Transaction


@dataclass
class ChangeSet:
    """Entities touched since the last persist, keyed by (type, id)."""

    upserted: dict[tuple[type, str], Entity] = field(default_factory=dict)
    deleted: dict[tuple[type, str], Entity] = field(default_factory=dict)

    def upsert(self, entity: Entity) -> None:
        key: tuple[type, str] = (type(entity), entity.id)
        _ = self.deleted.pop(key, None)
        self.upserted[key] = entity

    def delete(self, entity: Entity) -> None:
        key: tuple[type, str] = (type(entity), entity.id)
        _ = self.upserted.pop(key, None)
        self.deleted[key] = entity

    def clear(self) -> None:
        self.upserted.clear()
        self.deleted.clear()

    def __bool__(self) -> bool:
        return bool(self.upserted or self.deleted)


class Ledger:
    def __init__(self) -> None:
        self.assets: dict[str, Asset] = {}
        self.entry_targets: dict[str, EntryTarget] = {}
        self.profit_targets: dict[str, ProfitTarget] = {}
        self.wallets: dict[WalletKey, Wallet] = {}
        self.transactions: dict[str, Transaction] = {}
        self.changes: ChangeSet = ChangeSet()

    # Assets

    def add_asset(self, asset: Asset) -> Asset:
        self.assets[asset.id] = asset
        self.changes.upsert(asset)
        return asset

    def get_asset(self, asset_id: str) -> Asset:
        asset: Asset | None = self.assets.get(asset_id)
        if asset is None:
            raise NotFoundError("Asset", asset_id)
        return asset

    def find_asset(self, symbol: str) -> Asset | None:
        wanted: str = symbol.strip().upper()
        for asset in self.assets.values():
            if asset.symbol.upper() == wanted:
                return asset
        return None

    def touch(self, entity: Entity) -> None:
        """Mark an entity modified in place."""
        self.changes.upsert(entity)

    # Targets

    def add_entry_target(self, target: EntryTarget) -> EntryTarget:
        self.entry_targets[target.id] = target
        self.changes.upsert(target)
        return target

    def remove_entry_target(self, target: EntryTarget) -> None:
        _ = self.entry_targets.pop(target.id, None)
        self.changes.delete(target)

    def get_entry_target(self, target_id: str) -> EntryTarget:
        target: EntryTarget | None = self.entry_targets.get(target_id)
        if target is None:
            raise NotFoundError("Entry target", target_id)
        return target

    def entry_targets_for(self, asset_id: str) -> list[EntryTarget]:
        return sorted(
            (t for t in self.entry_targets.values() if t.asset_id == asset_id),
            key=lambda t: t.sort_order,
        )

    def add_profit_target(self, target: ProfitTarget) -> ProfitTarget:
        self.profit_targets[target.id] = target
        self.changes.upsert(target)
        return target

    def remove_profit_target(self, target: ProfitTarget) -> None:
        _ = self.profit_targets.pop(target.id, None)
        self.changes.delete(target)

    def get_profit_target(self, target_id: str) -> ProfitTarget:
        target: ProfitTarget | None = self.profit_targets.get(target_id)
        if target is None:
            raise NotFoundError("Profit target", target_id)
        return target

    def profit_targets_for(self, asset_id: str) -> list[ProfitTarget]:
        return sorted(
            (t for t in self.profit_targets.values() if t.asset_id == asset_id),
            key=lambda t: t.sort_order,
        )

    # Wallets

    def get_wallet(self, key: WalletKey) -> Wallet | None:
        return self.wallets.get(key)

    def get_wallet_by_id(self, wallet_id: str) -> Wallet:
        for wallet in self.wallets.values():
            if wallet.id == wallet_id:
                return wallet
        raise NotFoundError("Wallet", wallet_id)

    def put_wallet(self, wallet: Wallet) -> Wallet:
        existing: Wallet | None = self.wallets.get(wallet.key)
        if existing is not None and existing.id != wallet.id:
            raise IntegrityError(f"A wallet already exists for {wallet.key}")
        self.wallets[wallet.key] = wallet
        self.changes.upsert(wallet)
        return wallet

    def remove_wallet(self, wallet: Wallet) -> None:
        _ = self.wallets.pop(wallet.key, None)
        self.changes.delete(wallet)

    def rekey_wallet(self, wallet: Wallet, old_key: WalletKey) -> None:
        """Move a wallet whose buy price changed in place to its new key."""
        if self.wallets.get(old_key) is wallet:
            del self.wallets[old_key]
        _ = self.put_wallet(wallet)

    def wallets_for(
        self, asset_id: str, include_archived: bool = True
    ) -> list[Wallet]:
        return sorted(
            (
                w
                for w in self.wallets.values()
                if w.asset_id == asset_id and (include_archived or not w.archived)
            ),
            key=lambda w: (w.buy_price, w.profit_target_id),
        )

    # Transactions

    def next_seq(self, asset_id: str, txn_date: date) -> int:
        same_day: list[int] = [
            t.seq
            for t in self.transactions.values()
            if t.asset_id == asset_id and t.txn_date == txn_date
        ]
        return max(same_day, default=0) + 1

    def add_transaction(self, txn: Transaction) -> Transaction:
        if txn.seq <= 0:
            txn.seq = self.next_seq(txn.asset_id, txn.txn_date)
        self.transactions[txn.id] = txn
        self.changes.upsert(txn)
        return txn

    def remove_transaction(self, txn: Transaction) -> None:
        _ = self.transactions.pop(txn.id, None)
        self.changes.delete(txn)

    def get_transaction(self, txn_id: str) -> Transaction:
        txn: Transaction | None = self.transactions.get(txn_id)
        if txn is None:
            raise NotFoundError("Transaction", txn_id)
        return txn

    def transactions_for(
        self, asset_id: str, action: TxnAction | None = None
    ) -> list[Transaction]:
        """Transactions of an asset in ledger order: by date, then by entry order on that date."""
        return sorted(
            (
                t
                for t in self.transactions.values()
                if t.asset_id == asset_id and (action is None or t.action == action)
            ),
            key=lambda t: (t.txn_date, t.seq),
        )

    def splits_for(self, asset_id: str) -> list[Transaction]:
        return self.transactions_for(asset_id, TxnAction.SPLIT)
