"""
Loads the Ledger from the repositories and writes its change set back.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from wallet_tracker.db import Database
from wallet_tracker.ledger import Entity, Ledger
from wallet_tracker.models import Asset, EntryTarget, ProfitTarget, Transaction, Wallet
from wallet_tracker.repositories.asset_repository import AssetRepository
from wallet_tracker.repositories.base_repository import BaseRepository
from wallet_tracker.repositories.target_repository import (
    EntryTargetRepository,
    ProfitTargetRepository,
)
from wallet_tracker.repositories.transaction_repository import TransactionRepository
from wallet_tracker.repositories.wallet_repository import WalletRepository

logger: logging.Logger = logging.getLogger(__name__)


class LedgerService:
    def __init__(
        self,
        db: Database,
        asset_repo: AssetRepository,
        entry_target_repo: EntryTargetRepository,
        profit_target_repo: ProfitTargetRepository,
        wallet_repo: WalletRepository,
        transaction_repo: TransactionRepository,
    ):
        self.db: Database = db
        self.asset_repo: AssetRepository = asset_repo
        self.entry_target_repo: EntryTargetRepository = entry_target_repo
        self.profit_target_repo: ProfitTargetRepository = profit_target_repo
        self.wallet_repo: WalletRepository = wallet_repo
        self.transaction_repo: TransactionRepository = transaction_repo

    def _repo_for(self, entity: Entity) -> BaseRepository:
        repos: dict[type, BaseRepository] = {
            Asset: self.asset_repo,
            EntryTarget: self.entry_target_repo,
            ProfitTarget: self.profit_target_repo,
            Wallet: self.wallet_repo,
            Transaction: self.transaction_repo,
        }
        return repos[type(entity)]

    def load(self) -> Ledger:
        """Read every stored entity into a fresh Ledger with an empty change set."""
        ledger: Ledger = Ledger()
        for asset in self.asset_repo.list_all():
            ledger.assets[asset.id] = asset
        for entry_target in self.entry_target_repo.list_all():
            ledger.entry_targets[entry_target.id] = entry_target
        for profit_target in self.profit_target_repo.list_all():
            ledger.profit_targets[profit_target.id] = profit_target
        for wallet in self.wallet_repo.list_all():
            ledger.wallets[wallet.key] = wallet
        for txn in self.transaction_repo.list_all():
            ledger.transactions[txn.id] = txn
        logger.debug(
            f"Loaded ledger: {len(ledger.assets)} assets, {len(ledger.wallets)} wallets, "
            f"{len(ledger.transactions)} transactions"
        )
        return ledger

    def save(self, ledger: Ledger) -> None:
        """Persist the ledger's change set in one database transaction, deletes first."""
        if not ledger.changes:
            return
        deleted: list[Entity] = list(ledger.changes.deleted.values())
        upserted: list[Entity] = list(ledger.changes.upserted.values())
        wallets: list[Wallet] = [e for e in upserted if isinstance(e, Wallet)]

        with self.db.batch():
            for entity in deleted:
                self._repo_for(entity).delete(entity.id)
            self.wallet_repo.replace_all(wallets)
            for entity in upserted:
                if not isinstance(entity, Wallet):
                    self._repo_for(entity).upsert(entity)

        logger.info(f"Saved {len(upserted)} changed and {len(deleted)} deleted records")
        ledger.changes.clear()

    @contextmanager
    def session(self) -> Iterator[Ledger]:
        """
        Load the ledger, hand it out for mutation and save it afterwards.

        Nothing is written when the block raises.
        """
        ledger: Ledger = self.load()
        yield ledger
        self.save(ledger)
