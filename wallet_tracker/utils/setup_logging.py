from logging import Logger
import logging.config
from pathlib import Path
import sys
from typing import Any

import yaml

PACKAGE_LOGGER: str = "wallet_tracker"


def _apply_log_file(config: dict[str, Any], log_file_path: Path) -> None:
    """Point every file handler in a dictConfig at the configured log file."""
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "filename" in handler:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            handler["filename"] = str(log_file_path)


def setup_logging(config_path: Path, log_level: str, log_file_path: Path | None = None) -> None:
    try:
        with open(file=config_path, mode="r") as f:
            config: dict[str, Any] = yaml.safe_load(f)

        if log_file_path is not None:
            _apply_log_file(config, log_file_path)

        logging.config.dictConfig(config)

        # Override the package level from AppConfig
        override_level_str: str = log_level.upper()
        override_level: int | None = logging.getLevelNamesMapping().get(override_level_str)

        if override_level is None:
            logging.warning(
                f"Invalid log level '{log_level}' from AppConfig. Using default levels from YAML."
            )
            return

        package_logger: Logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.setLevel(override_level)
        logging.getLogger(__name__).debug(
            f"Package logger '{PACKAGE_LOGGER}' level overridden to {override_level_str}"
        )

    except FileNotFoundError:
        print(f"Error: Logging config file not found at {config_path}", file=sys.stderr)
        # Fallback: basic console logger so later errors are still seen
        logging.basicConfig(level=logging.INFO)
        logging.error(f"Failed to load logging config from {config_path}")
    except (yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
        print(f"Error: Invalid logging config in {config_path}: {e}", file=sys.stderr)
        logging.basicConfig(level=logging.INFO)
        logging.error(f"Invalid logging config in {config_path}: {e}")
