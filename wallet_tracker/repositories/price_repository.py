import logging
from datetime import datetime
from sqlite3 import Row

from wallet_tracker.db import Database
from wallet_tracker.models import HistoricalClose, PriceSnapshot
from wallet_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class PriceRepository:
    """Latest price and daily close history per symbol."""

    def __init__(self, db: Database):
        self.db: Database = db

    def save_snapshot(self, snapshot: PriceSnapshot) -> None:
        with self.db.batch():
            _ = self.db.execute(
                """
                INSERT INTO price_snapshots (symbol, current_price, fetched_datetime)
                VALUES (:symbol, :current_price, :fetched_datetime)
                ON CONFLICT(symbol) DO UPDATE SET
                    current_price = excluded.current_price,
                    fetched_datetime = excluded.fetched_datetime
                """,
                {
                    "symbol": snapshot.symbol,
                    "current_price": snapshot.current_price,
                    "fetched_datetime": (snapshot.fetched_datetime or datetime.now()).isoformat(
                        sep=" ", timespec="seconds"
                    ),
                },
            )
            _ = self.db.executemany(
                """
                INSERT INTO historical_closes (symbol, close_date, close)
                VALUES (:symbol, :close_date, :close)
                ON CONFLICT(symbol, close_date) DO UPDATE SET close = excluded.close
                """,
                [
                    {
                        "symbol": snapshot.symbol,
                        "close_date": c.close_date.isoformat(),
                        "close": c.close,
                    }
                    for c in snapshot.historical_closes
                ],
            )
        logger.info(
            f"Stored price for {snapshot.symbol}: {snapshot.current_price} "
            f"with {len(snapshot.historical_closes)} closes"
        )

    def get_closes(self, symbol: str, limit: int | None = None) -> list[HistoricalClose]:
        """Closes for a symbol, newest first."""
        query: str = (
            "SELECT close_date, close FROM historical_closes WHERE symbol = :symbol "
            "ORDER BY close_date DESC"
        )
        params: dict[str, object] = {"symbol": symbol}
        if limit is not None:
            query += " LIMIT :limit"
            params["limit"] = limit
        rows: list[Row] = self.db.query_all(query, params)
        return ModelFactory.create_list_from_rows(HistoricalClose, rows)

    def get_snapshot(self, symbol: str, history_limit: int | None = None) -> PriceSnapshot | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM price_snapshots WHERE symbol = :symbol", {"symbol": symbol}
        )
        if not row:
            return None
        snapshot: PriceSnapshot = ModelFactory.create_from_row(PriceSnapshot, row)
        snapshot.historical_closes = self.get_closes(symbol, history_limit)
        return snapshot

    def get_snapshots(
        self, symbols: list[str], history_limit: int | None = None
    ) -> dict[str, PriceSnapshot]:
        snapshots: dict[str, PriceSnapshot] = {}
        for symbol in symbols:
            snapshot: PriceSnapshot | None = self.get_snapshot(symbol, history_limit)
            if snapshot is not None:
                snapshots[symbol] = snapshot
        return snapshots
