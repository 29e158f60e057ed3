import logging
from dataclasses import fields
from sqlite3 import Cursor, Row
from typing import Any, ClassVar, Generic, TypeVar

from wallet_tracker.db import Database
from wallet_tracker.exceptions import NotFoundError
from wallet_tracker.pagination import DEFAULT_MAX_PAGE_ITERATIONS, Page, collect_pages
from wallet_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    List/get/insert/update/delete for one table keyed by a text id.

    Subclasses set `table`, `model` and, when some model fields are not
    columns, `excluded_fields`.
    """

    table: ClassVar[str]
    model: ClassVar[type]
    entity_name: ClassVar[str] = "Record"
    excluded_fields: ClassVar[frozenset[str]] = frozenset()
    default_order: ClassVar[str] = "rowid"

    def __init__(
        self,
        db: Database,
        page_size: int = 100,
        max_page_iterations: int = DEFAULT_MAX_PAGE_ITERATIONS,
    ):
        self.db: Database = db
        self.page_size: int = page_size
        self.max_page_iterations: int = max_page_iterations

    @classmethod
    def columns(cls) -> list[str]:
        return [f.name for f in fields(cls.model) if f.name not in cls.excluded_fields]

    def _row_params(self, item: T) -> dict[str, Any]:
        return ModelFactory.to_row(item, exclude=set(self.excluded_fields))

    def _from_row(self, row: Row) -> T:
        return ModelFactory.create_from_row(self.model, row)

    def list_page(
        self,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        next_token: str | None = None,
    ) -> Page[T]:
        """
        One page of rows matching every `column = value` filter.

        The token is the rowid of the last row returned; rows come back in
        insertion order so a token stays valid while rows are appended.
        """
        limit = limit or self.page_size
        clauses: list[str] = []
        params: dict[str, Any] = {}
        allowed: list[str] = self.columns()
        for column, value in (filters or {}).items():
            if column not in allowed:
                raise ValueError(f"Cannot filter {self.table} by unknown column '{column}'")
            clauses.append(f"{column} = :{column}")
            params[column] = value
        if next_token is not None:
            clauses.append("rowid > :after_rowid")
            params["after_rowid"] = int(next_token)
        params["page_limit"] = limit + 1

        where: str = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows: list[Row] = self.db.query_all(
            f"SELECT rowid AS row_key, * FROM {self.table} {where} ORDER BY rowid LIMIT :page_limit",
            params,
        )
        has_more: bool = len(rows) > limit
        rows = rows[:limit]
        items: list[T] = [self._from_row(row) for row in rows]
        token: str | None = str(rows[-1]["row_key"]) if has_more and rows else None
        return Page(items=items, next_token=token)

    def list_all(self, filters: dict[str, Any] | None = None) -> list[T]:
        return collect_pages(
            lambda token: self.list_page(filters, self.page_size, token),
            self.max_page_iterations,
            self.table,
        )

    def get_by_id(self, item_id: str) -> T | None:
        row: Row | None = self.db.query_one(
            f"SELECT * FROM {self.table} WHERE id = :id", {"id": item_id}
        )
        if not row:
            return None
        return self._from_row(row)

    def require(self, item_id: str) -> T:
        item: T | None = self.get_by_id(item_id)
        if item is None:
            raise NotFoundError(self.entity_name, item_id)
        return item

    def insert(self, item: T) -> str:
        columns: list[str] = self.columns()
        _ = self.db.execute(
            f"INSERT INTO {self.table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + c for c in columns)})",
            self._row_params(item),
        )
        logger.debug(f"Inserted {self.entity_name.lower()} {item.id}")  # type: ignore[attr-defined]
        return item.id  # type: ignore[attr-defined]

    def update(self, item: T) -> None:
        assignments: str = ", ".join(f"{c} = :{c}" for c in self.columns() if c != "id")
        cursor: Cursor = self.db.execute(
            f"UPDATE {self.table} SET {assignments} WHERE id = :id", self._row_params(item)
        )
        if cursor.rowcount == 0:
            raise NotFoundError(self.entity_name, item.id)  # type: ignore[attr-defined]

    def upsert(self, item: T) -> None:
        columns: list[str] = self.columns()
        assignments: str = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")
        _ = self.db.execute(
            f"INSERT INTO {self.table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + c for c in columns)}) "
            f"ON CONFLICT(id) DO UPDATE SET {assignments}",
            self._row_params(item),
        )

    def delete(self, item_id: str) -> None:
        _ = self.db.execute(f"DELETE FROM {self.table} WHERE id = :id", {"id": item_id})
