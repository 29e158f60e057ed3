import logging
import sqlite3
import traceback
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Self


class Database:
    # INFO: Example usage:
    # with Database("wallets.db") as db:
    #   db.execute("INSERT INTO assets (id, symbol) VALUES (:id, :symbol)", {"id": "a1", "symbol": "VOO"})
    #   No need to call db.commit(), it will auto-commit if no exception occurs
    #   raise ValueError("Something went wrong!")  # <- Rolls back instead of committing
    def __init__(self, db_path: Path | str) -> None:
        self.conn: sqlite3.Connection = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row  # Allows dict-style access
        self.cursor: sqlite3.Cursor = self.conn.cursor()
        self.logger: logging.Logger = logging.getLogger("db")
        self._in_batch: bool = False

    def execute(
        self,
        query: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> sqlite3.Cursor:
        """
        Executes a single SQL query.
        Supports both positional (?) and named (:param) placeholders.
        Each statement is its own transaction unless running inside batch().
        """
        if params is None:
            params = ()

        self.logger.debug(f"Preparing SQL execution:\n{query}")
        self.logger.debug(f"Parameters: {params}")

        # Confirm positional and named-placeholders are not being inter-mixed
        if "?" in query and isinstance(params, Mapping):
            raise ValueError("Positional placeholders (?) used with named parameters.")
        if ":" in query and isinstance(params, (list, tuple)):
            raise ValueError("Named placeholders (:) used with positional parameters.")

        if self._in_batch:
            return self.cursor.execute(query, params)

        try:
            _ = self.conn.execute("BEGIN")
            result: sqlite3.Cursor = self.cursor.execute(query, params)
            self.commit()
            self.logger.debug(f"Query executed successfully. Rows affected: {self.cursor.rowcount}")
            return result
        except sqlite3.Error:
            self.conn.rollback()
            self.logger.error("Database error during execute:")
            self.logger.error(traceback.format_exc())
            raise

    def executemany(
        self,
        query: str,
        param_list: Sequence[Sequence[Any]] | Sequence[Mapping[str, Any]],
    ) -> sqlite3.Cursor:
        """
        Executes a SQL query for multiple sets of parameters.
        Supports both positional (?) and named (:param) styles.
        """
        self.logger.debug(f"Preparing bulk execution of SQL:\n{query}")
        self.logger.debug(f"Number of entries: {len(param_list)}")

        if not param_list:
            self.logger.debug("executemany called with an empty parameter list.")
            return self.cursor

        first_params = param_list[0]
        if "?" in query and isinstance(first_params, Mapping):
            raise ValueError("Positional placeholders (?) used with named parameters in executemany.")
        if ":" in query and not isinstance(first_params, Mapping):
            raise ValueError("Named placeholders (:) used with positional parameters in executemany.")

        if self._in_batch:
            return self.cursor.executemany(query, param_list)

        try:
            _ = self.conn.execute("BEGIN")
            result = self.cursor.executemany(query, param_list)
            self.conn.commit()
            self.logger.debug(f"Bulk statement affected {self.cursor.rowcount} records.")
            return result
        except sqlite3.Error:
            self.conn.rollback()
            self.logger.error("Database error during executemany:")
            self.logger.error(traceback.format_exc())
            raise

    @contextmanager
    def batch(self) -> Iterator[Self]:
        """
        Run several statements as one transaction.
        Commits when the block exits cleanly, rolls back on any exception.
        """
        if self._in_batch:
            yield self
            return
        _ = self.conn.execute("BEGIN")
        self._in_batch = True
        try:
            yield self
        except Exception:
            self._in_batch = False
            self.rollback()
            raise
        self._in_batch = False
        self.commit()

    def commit(self) -> None:
        """Commits active transaction to DB, saving changes."""
        try:
            self.conn.commit()
            self.logger.debug("Database changes committed.")
        except sqlite3.DatabaseError as e:
            self.logger.error(f"Error committing changes: {e}")
            raise

    def rollback(self) -> None:
        """Rolls back active transaction to DB, not saving changes (used if error)."""
        try:
            self.conn.rollback()
            self.logger.warning("Database changes rolled back.")
        except sqlite3.DatabaseError as e:
            self.logger.error(f"Error rolling back changes: {e}")
            raise

    def fetchall(self) -> list[sqlite3.Row]:
        """Returns all data from the latest DB query."""
        return self.cursor.fetchall()

    def fetchone(self) -> sqlite3.Row | None:
        """Returns the first row of data from the latest DB query."""
        return self.cursor.fetchone()

    def query_one(
        self, query: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> sqlite3.Row | None:
        """Executes a SELECT query and returns a single result."""
        _ = self.execute(query, params)
        return self.fetchone()

    def query_all(
        self, query: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> list[sqlite3.Row]:
        """Executes a SELECT query and returns all results."""
        _ = self.execute(query, params)
        return self.fetchall()

    def close(self) -> None:
        """Closes active DB connection."""
        self.conn.close()

    def __enter__(self) -> Self:
        """Runs when entering the with block."""
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        """Runs when leaving the with block. If error, rollback; otherwise commit. Then close."""
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()

    def create_tables_if_not_exists(self) -> None:
        # Tracked assets with their cash position
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS assets (
            id TEXT PRIMARY KEY,
            symbol TEXT NOT NULL UNIQUE,
            asset_type TEXT NOT NULL DEFAULT 'Stock',
            name TEXT,
            region TEXT,
            test_price REAL,
            commission REAL NOT NULL DEFAULT 0.0,  -- percent of each sale
            status TEXT NOT NULL DEFAULT 'active',
            budget REAL,
            htp REAL,
            total_out_of_pocket REAL NOT NULL DEFAULT 0.0,
            cash_balance REAL NOT NULL DEFAULT 0.0
        );
        """)
        # Buy triggers: percent drop
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS entry_targets (
            id TEXT PRIMARY KEY,
            asset_id TEXT NOT NULL,
            target_percent REAL NOT NULL,
            sort_order INTEGER NOT NULL,
            name TEXT,
            FOREIGN KEY(asset_id) REFERENCES assets(id)
        );
        """)
        # Sell triggers and how each buy is split between them
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS profit_targets (
            id TEXT PRIMARY KEY,
            asset_id TEXT NOT NULL,
            target_percent REAL NOT NULL,
            allocation_percent REAL NOT NULL,
            sort_order INTEGER NOT NULL,
            name TEXT,
            wallet_type TEXT NOT NULL DEFAULT 'Swing',
            FOREIGN KEY(asset_id) REFERENCES assets(id)
        );
        """)
        # One lot bucket per asset, profit target and buy price
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS wallets (
            id TEXT PRIMARY KEY,
            asset_id TEXT NOT NULL,
            profit_target_id TEXT NOT NULL,
            buy_price REAL NOT NULL,
            created_date TEXT NOT NULL,
            wallet_type TEXT NOT NULL DEFAULT 'Swing',
            total_shares_qty REAL NOT NULL DEFAULT 0.0,
            total_investment REAL NOT NULL DEFAULT 0.0,
            shares_sold REAL NOT NULL DEFAULT 0.0,
            remaining_shares REAL NOT NULL DEFAULT 0.0,
            realized_pl REAL NOT NULL DEFAULT 0.0,
            realized_pl_percent REAL,
            sell_txn_count INTEGER NOT NULL DEFAULT 0,
            tp_value REAL,
            tp_percent REAL,
            archived INTEGER NOT NULL DEFAULT 0,
            UNIQUE(asset_id, profit_target_id, buy_price),
            FOREIGN KEY(asset_id) REFERENCES assets(id)
        );
        """)
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT PRIMARY KEY,
            asset_id TEXT NOT NULL,
            txn_date TEXT NOT NULL,
            seq INTEGER NOT NULL,
            action TEXT NOT NULL,  -- 'Buy', 'Sell', 'Dividend', 'SLP', 'Split'
            signal TEXT,
            price REAL,
            quantity REAL,
            investment REAL,
            amount REAL,
            split_ratio REAL,      -- e.g. 2.0 for a two-for-one split
            txn_type TEXT,
            completed_wallet_id TEXT,
            txn_profit REAL,
            txn_profit_percent REAL,
            FOREIGN KEY(asset_id) REFERENCES assets(id)
        );
        """)
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS transaction_allocations (
            transaction_id TEXT NOT NULL,
            profit_target_id TEXT NOT NULL,
            percent REAL NOT NULL,
            shares REAL NOT NULL,
            investment REAL NOT NULL,
            PRIMARY KEY(transaction_id, profit_target_id),
            FOREIGN KEY(transaction_id) REFERENCES transactions(id)
        );
        """)
        # Latest fetched price per symbol
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS price_snapshots (
            symbol TEXT PRIMARY KEY,
            current_price REAL,
            fetched_datetime TEXT
        );
        """)
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS historical_closes (
            symbol TEXT NOT NULL,
            close_date TEXT NOT NULL,
            close REAL NOT NULL,
            PRIMARY KEY(symbol, close_date)
        );
        """)
        # Useful indexes
        _ = self.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_asset ON transactions(asset_id, txn_date, seq);"
        )
        _ = self.execute("CREATE INDEX IF NOT EXISTS idx_wallets_asset ON wallets(asset_id);")
