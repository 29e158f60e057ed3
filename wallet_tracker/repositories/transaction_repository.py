import logging
from sqlite3 import Row
from typing import Any

from wallet_tracker.models import Allocation, Transaction
from wallet_tracker.pagination import Page
from wallet_tracker.repositories.base_repository import BaseRepository
from wallet_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class TransactionRepository(BaseRepository[Transaction]):
    """Transactions with their buy allocation rows."""

    table = "transactions"
    model = Transaction
    entity_name = "Transaction"
    excluded_fields = frozenset({"allocations"})

    def _allocations_for(self, txn_ids: list[str]) -> dict[str, list[Allocation]]:
        if not txn_ids:
            return {}
        placeholders: str = ",".join("?" for _ in txn_ids)
        rows: list[Row] = self.db.query_all(
            f"SELECT * FROM transaction_allocations WHERE transaction_id IN ({placeholders})",
            txn_ids,
        )
        by_txn: dict[str, list[Allocation]] = {}
        for row in rows:
            allocation: Allocation = ModelFactory.create_from_row(Allocation, row)
            by_txn.setdefault(row["transaction_id"], []).append(allocation)
        return by_txn

    def list_page(
        self,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        next_token: str | None = None,
    ) -> Page[Transaction]:
        page: Page[Transaction] = super().list_page(filters, limit, next_token)
        allocations: dict[str, list[Allocation]] = self._allocations_for(
            [t.id for t in page.items]
        )
        for txn in page.items:
            txn.allocations = allocations.get(txn.id, [])
        return page

    def get_by_id(self, item_id: str) -> Transaction | None:
        txn: Transaction | None = super().get_by_id(item_id)
        if txn is not None:
            txn.allocations = self._allocations_for([txn.id]).get(txn.id, [])
        return txn

    def get_for_asset(self, asset_id: str) -> list[Transaction]:
        return sorted(self.list_all({"asset_id": asset_id}), key=lambda t: (t.txn_date, t.seq))

    def _write_allocations(self, txn: Transaction) -> None:
        _ = self.db.execute(
            "DELETE FROM transaction_allocations WHERE transaction_id = :id", {"id": txn.id}
        )
        _ = self.db.executemany(
            """
            INSERT INTO transaction_allocations
                (transaction_id, profit_target_id, percent, shares, investment)
            VALUES (:transaction_id, :profit_target_id, :percent, :shares, :investment)
            """,
            [
                {
                    "transaction_id": txn.id,
                    "profit_target_id": a.profit_target_id,
                    "percent": a.percent,
                    "shares": a.shares,
                    "investment": a.investment,
                }
                for a in txn.allocations
            ],
        )

    def insert(self, item: Transaction) -> str:
        with self.db.batch():
            txn_id: str = super().insert(item)
            self._write_allocations(item)
        return txn_id

    def update(self, item: Transaction) -> None:
        with self.db.batch():
            super().update(item)
            self._write_allocations(item)

    def upsert(self, item: Transaction) -> None:
        with self.db.batch():
            super().upsert(item)
            self._write_allocations(item)

    def delete(self, item_id: str) -> None:
        with self.db.batch():
            _ = self.db.execute(
                "DELETE FROM transaction_allocations WHERE transaction_id = :id", {"id": item_id}
            )
            super().delete(item_id)
