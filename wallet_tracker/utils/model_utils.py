from dataclasses import fields
from datetime import date, datetime
from enum import Enum
from sqlite3 import Row
from typing import Any, TypeVar, get_type_hints

from wallet_tracker.utils.type_utils import convert_type

# Generic type for any model class
T = TypeVar("T")


class ModelFactory:
    """Factory class to create domain models from database rows"""

    @staticmethod
    def create_from_row(model_class: type[T], row: Row) -> T:
        """Create a model instance from a database row, coercing columns to the field types"""
        # Copy the row to avoid modifying the original
        processed_data: dict[str, Any] = dict(row)
        type_hints: dict[str, Any] = get_type_hints(model_class)
        field_names: set[str] = {f.name for f in fields(model_class)}  # type: ignore[arg-type]

        init_args: dict[str, Any] = {}
        for key, value in processed_data.items():
            # Ignore bookkeeping columns such as rowid
            if key not in field_names:
                continue
            expected_type = type_hints.get(key, Any)
            init_args[key] = value if expected_type is Any else convert_type(value, expected_type)
        return model_class(**init_args)

    @staticmethod
    def create_list_from_rows(model_class: type[T], rows: list[Row]) -> list[T]:
        """Create a list of model instances from database rows"""
        return [ModelFactory.create_from_row(model_class, row) for row in rows]

    @staticmethod
    def to_row(model: Any, exclude: set[str] | None = None) -> dict[str, Any]:
        """Flatten a model into named SQL parameters (dates as ISO text, enums as values)"""
        exclude = exclude or set()
        row: dict[str, Any] = {}
        for f in fields(model):
            if f.name in exclude:
                continue
            value: Any = getattr(model, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat(sep=" ", timespec="seconds")
            elif isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, bool):
                value = int(value)
            row[f.name] = value
        return row
