from datetime import date, datetime
from enum import Enum
from typing import Any, Union, get_origin, get_args
from pathlib import Path
import types


def convert_type(value: Any, expected_type: type | types.UnionType) -> Any:
    """Convert a value to the expected type with fallback handling and clear errors."""

    if value is None:
        return None

    origin = get_origin(expected_type)

    # Handle Union or `|` (e.g., int | None)
    if origin is Union or origin is types.UnionType:
        for subtype in get_args(expected_type):
            try:
                return convert_type(value, subtype)
            except Exception:
                continue
        raise ValueError(f"Cannot convert {value!r} to any of {get_args(expected_type)}")

    # Handle Path conversion
    if expected_type is Path:
        return Path(value).expanduser()

    # Handle bool conversion, SQLite stores booleans as 0/1
    if expected_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            lowered: str = value.strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
        raise ValueError(f"Cannot convert {value!r} to bool")

    # Dates are stored as ISO strings
    if expected_type is datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        raise ValueError(f"Cannot convert {value!r} to datetime")
    if expected_type is date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return date.fromisoformat(value)
        raise ValueError(f"Cannot convert {value!r} to date")

    if isinstance(expected_type, type) and issubclass(expected_type, Enum):
        try:
            return expected_type(value)
        except ValueError as e:
            raise ValueError(
                f"{value!r} is not one of {[m.value for m in expected_type]}"
            ) from e

    # Default fallback: attempt direct type cast
    if isinstance(expected_type, type):
        try:
            return expected_type(value)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Invalid value: expected {expected_type.__name__}, "
                f"got {value!r} ({type(value).__name__})"
            ) from e

    raise TypeError(f"Expected a callable type, got {expected_type!r}")
