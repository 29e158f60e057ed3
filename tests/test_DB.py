import sqlite3
from unittest.mock import patch

import pytest

from wallet_tracker.db import Database


def _insert_asset(db: Database, asset_id: str, symbol: str) -> None:
    _ = db.execute("INSERT INTO assets (id, symbol) VALUES (?, ?)", (asset_id, symbol))


def test_create_tables(test_db: Database):
    """Test tables are created correctly."""
    tables = test_db.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    table_names = [table[0] for table in tables]

    for expected in (
        "assets",
        "entry_targets",
        "profit_targets",
        "wallets",
        "transactions",
        "transaction_allocations",
        "price_snapshots",
        "historical_closes",
    ):
        assert expected in table_names


def test_create_tables_is_idempotent(test_db: Database):
    test_db.create_tables_if_not_exists()
    _insert_asset(test_db, "a1", "VOO")
    test_db.create_tables_if_not_exists()
    assert test_db.query_one("SELECT symbol FROM assets WHERE id = ?", ("a1",))["symbol"] == "VOO"


def test_execute_with_named_params(test_db: Database):
    _ = test_db.execute(
        "INSERT INTO assets (id, symbol, budget) VALUES (:id, :symbol, :budget)",
        {"id": "a1", "symbol": "QQQ", "budget": 2500.0},
    )

    result = test_db.execute("SELECT * FROM assets WHERE symbol = :symbol", {"symbol": "QQQ"}).fetchone()

    assert result is not None
    assert result["budget"] == 2500.0
    assert result["status"] == "active"
    assert result["commission"] == 0.0


def test_execute_error_handling(test_db: Database):
    with pytest.raises(sqlite3.Error):
        _ = test_db.execute("SELECT * FROM non_existent_table")


def test_execute_mixed_params_error(test_db: Database):
    """Test that mixing parameter styles raises an error."""
    with pytest.raises(ValueError, match="Positional placeholders"):
        _ = test_db.execute(
            "INSERT INTO assets (id, symbol) VALUES (?, ?)", {"id": "a1", "symbol": "VOO"}
        )

    with pytest.raises(ValueError, match="Named placeholders"):
        _ = test_db.execute("INSERT INTO assets (id, symbol) VALUES (:id, :symbol)", ["a1", "VOO"])


def test_executemany(test_db: Database):
    _ = test_db.executemany(
        "INSERT INTO assets (id, symbol) VALUES (?, ?)",
        [("a1", "VOO"), ("a2", "QQQ"), ("a3", "BTC-USD")],
    )

    results = test_db.query_all("SELECT symbol FROM assets ORDER BY symbol")
    assert [row["symbol"] for row in results] == ["BTC-USD", "QQQ", "VOO"]


def test_executemany_empty_list_is_noop(test_db: Database):
    _ = test_db.executemany("INSERT INTO assets (id, symbol) VALUES (?, ?)", [])
    assert test_db.query_all("SELECT * FROM assets") == []


def test_executemany_mixed_params_error(test_db: Database):
    with pytest.raises(ValueError, match="Positional placeholders"):
        _ = test_db.executemany(
            "INSERT INTO assets (id, symbol) VALUES (?, ?)", [{"id": "a1", "symbol": "VOO"}]
        )

    with pytest.raises(ValueError, match="Named placeholders"):
        _ = test_db.executemany(
            "INSERT INTO assets (id, symbol) VALUES (:id, :symbol)", [["a1", "VOO"]]
        )


def test_unique_symbol(test_db: Database):
    _insert_asset(test_db, "a1", "VOO")
    with pytest.raises(sqlite3.IntegrityError):
        _insert_asset(test_db, "a2", "VOO")


def test_unique_wallet_key(test_db: Database):
    """A wallet is unique per asset, profit target and buy price."""
    query: str = (
        "INSERT INTO wallets (id, asset_id, profit_target_id, buy_price, created_date) "
        "VALUES (?, ?, ?, ?, ?)"
    )
    _ = test_db.execute(query, ("w1", "a1", "pt1", 10.0, "2024-01-10"))
    _ = test_db.execute(query, ("w2", "a1", "pt2", 10.0, "2024-01-10"))
    with pytest.raises(sqlite3.IntegrityError):
        _ = test_db.execute(query, ("w3", "a1", "pt1", 10.0, "2024-02-01"))


class TestBatch:
    def test_commits_on_success(self, test_db: Database):
        with test_db.batch():
            _insert_asset(test_db, "a1", "VOO")
            _insert_asset(test_db, "a2", "QQQ")

        assert len(test_db.query_all("SELECT * FROM assets")) == 2

    def test_rolls_back_every_statement_on_error(self, test_db: Database):
        with pytest.raises(sqlite3.IntegrityError):
            with test_db.batch():
                _insert_asset(test_db, "a1", "VOO")
                _insert_asset(test_db, "a2", "VOO")

        assert test_db.query_all("SELECT * FROM assets") == []

    def test_nested_batch_joins_outer(self, test_db: Database):
        with pytest.raises(RuntimeError):
            with test_db.batch():
                _insert_asset(test_db, "a1", "VOO")
                with test_db.batch():
                    _insert_asset(test_db, "a2", "QQQ")
                raise RuntimeError("abort")

        assert test_db.query_all("SELECT * FROM assets") == []


def test_context_manager_commits(tmp_path):
    db_path = tmp_path / "ctx.db"
    with Database(db_path) as db:
        db.create_tables_if_not_exists()
        _insert_asset(db, "a1", "NVDA")

    with Database(db_path) as db:
        assert db.query_one("SELECT * FROM assets WHERE symbol = ?", ("NVDA",)) is not None


@patch("logging.Logger.error")
def test_error_logging(mock_error_log, test_db: Database):
    """Test that database errors are properly logged."""
    with pytest.raises(sqlite3.Error):
        test_db.execute("SELECT * FROM nonexistent_table")

    mock_error_log.assert_called()
    assert "Database error" in mock_error_log.call_args_list[0][0][0]


def test_allocation_join(test_db: Database):
    _insert_asset(test_db, "a1", "VOO")
    _ = test_db.execute(
        "INSERT INTO transactions (id, asset_id, txn_date, seq, action, price, investment) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        ("t1", "a1", "2024-01-10", 0, "Buy", 10.0, 1000.0),
    )
    _ = test_db.executemany(
        "INSERT INTO transaction_allocations (transaction_id, profit_target_id, percent, shares, investment) "
        "VALUES (?, ?, ?, ?, ?)",
        [("t1", "pt1", 60.0, 60.0, 600.0), ("t1", "pt2", 40.0, 40.0, 400.0)],
    )

    results = test_db.query_all(
        """
        SELECT t.action, a.profit_target_id, a.shares
        FROM transactions t
        JOIN transaction_allocations a ON a.transaction_id = t.id
        WHERE t.asset_id = ?
        ORDER BY a.profit_target_id
        """,
        ("a1",),
    )

    assert [(r["profit_target_id"], r["shares"]) for r in results] == [("pt1", 60.0), ("pt2", 40.0)]


@pytest.mark.parametrize(
    "table_name,expected_columns",
    [
        ("assets", ["id", "symbol", "asset_type", "commission", "status", "budget", "htp"]),
        ("profit_targets", ["id", "asset_id", "target_percent", "allocation_percent", "wallet_type"]),
        (
            "wallets",
            ["id", "profit_target_id", "buy_price", "remaining_shares", "tp_value", "archived"],
        ),
        ("transactions", ["id", "txn_date", "seq", "action", "split_ratio", "completed_wallet_id"]),
        ("historical_closes", ["symbol", "close_date", "close"]),
    ],
)
def test_table_schema(test_db: Database, table_name, expected_columns):
    """Test that table schemas match expected structure."""
    columns = test_db.query_all(f"PRAGMA table_info({table_name})")
    column_names = [col["name"] for col in columns]

    for expected_col in expected_columns:
        assert expected_col in column_names, f"Column {expected_col} not found in {table_name}"
