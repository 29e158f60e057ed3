"""Utilities for working with argument parsers."""

import argparse
from dataclasses import fields
from datetime import date
from typing import Any, ClassVar, get_origin, get_type_hints

from wallet_tracker.config import AppConfig


def add_config_options(
    parser: argparse.ArgumentParser, config_class: type[AppConfig] = AppConfig
) -> None:
    """
    Dynamically add configuration options to a parser based on a dataclass.

    Args:
        parser: The argument parser to add options to
        config_class: The dataclass to extract fields from (default: AppConfig)
    """
    type_hints: dict[str, Any] = get_type_hints(config_class)
    for field in fields(config_class):
        # Skip private fields and ClassVars
        if field.name.startswith("_") or get_origin(field.type) is ClassVar:
            continue

        arg_name: str = f"--{field.name.replace('_', '-')}"  # eg. db_path -> --db-path
        arg_type: Any = type_hints.get(field.name, str)
        help_text: str = f"Override {field.name} configuration value"

        if arg_type is bool:
            _ = parser.add_argument(arg_name, action="store_true", default=None, help=help_text)
            continue

        # Accept all as strings, ConfigLoader converts them later
        _ = parser.add_argument(
            arg_name,
            type=str,
            default=None,  # So we know if user passed it
            metavar=getattr(arg_type, "__name__", "str").upper(),
            help=help_text,
        )


def parse_date(value: str) -> date:
    """argparse type for YYYY-MM-DD dates."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_allocations(value: str) -> dict[str, float]:
    """
    argparse type for buy allocations, e.g. "pt1=60,pt2=40".

    Keys are profit target ids, values are percents.
    """
    allocations: dict[str, float] = {}
    for part in value.split(","):
        if not part.strip():
            continue
        target_id, sep, percent = part.partition("=")
        if not sep or not target_id.strip():
            raise argparse.ArgumentTypeError(
                f"Invalid allocation '{part}', expected TARGET_ID=PERCENT"
            )
        try:
            allocations[target_id.strip()] = float(percent)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid allocation percent '{percent}'")
    return allocations


def parse_ratio(value: str) -> float:
    """argparse type for split ratios: "2:1", "1:10" or a plain number."""
    try:
        if ":" in value:
            new, old = value.split(":", 1)
            return float(new) / float(old)
        return float(value)
    except (ValueError, ZeroDivisionError):
        raise argparse.ArgumentTypeError(f"Invalid split ratio '{value}', expected e.g. 2:1")
