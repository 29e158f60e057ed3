"""
Wallet Tracker CLI

A command-line interface for tracking positions as per-price wallets,
recording buys, sells, dividends and splits, and reporting on profit targets,
P/L and dip recovery.
"""

import argparse
import importlib
import logging
import pkgutil
import sys
from pathlib import Path
from typing import Any

import wallet_tracker.commands
from wallet_tracker.commands.base import Command, CommandRegistry
from wallet_tracker.config import AppConfig, ConfigLoader, get_env
from wallet_tracker.container import ServiceContainer
from wallet_tracker.db import Database
from wallet_tracker.exceptions import describe_error
from wallet_tracker.utils.parser_utils import add_config_options
from wallet_tracker.utils.setup_logging import setup_logging

logger = logging.getLogger(__name__)


def load_commands() -> None:
    """
    Dynamically import all command modules to register commands.

    This function finds and imports all modules in the commands package
    to ensure all command classes are registered with the CommandRegistry.
    """
    for _, name, _ in pkgutil.iter_modules(wallet_tracker.commands.__path__):
        if name != "base":
            importlib.import_module(f"wallet_tracker.commands.{name}")

    logger.debug(f"Loaded {len(CommandRegistry.get_commands())} commands")


def create_parser(env: str) -> argparse.ArgumentParser:
    """Create the argument parser with all commands and options."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="wallet-tracker",
        description="Wallet Tracker CLI",
        epilog="Use 'wallet-tracker COMMAND --help' for more information on a command.",
    )

    global_group = parser.add_argument_group("Global Options")

    # For development/testing only
    if env == "test" or env == "dev":
        _ = global_group.add_argument(
            "--env",
            help="Environment to use (dev, test, prod). Default: prod",
            choices=["dev", "test", "prod"],
        )

    # Configuration options apply to all commands
    add_config_options(global_group)

    _ = global_group.add_argument(
        "--config-file", help="Path to specific configuration file to use", type=str
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for _, command_class in sorted(CommandRegistry.get_commands().items()):
        command_class.setup_parser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the wallet-tracker CLI application.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    load_commands()

    env = get_env()

    parser: argparse.ArgumentParser = create_parser(env)
    args: argparse.Namespace = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Handle environment override from CLI (development only)
    if (env == "dev" or env == "test") and getattr(args, "env", None):
        env = args.env

    overrides: dict[str, Any] = ConfigLoader.args_to_overrides(args)
    config_file: Path | None = Path(args.config_file) if args.config_file else None

    try:
        config: AppConfig = ConfigLoader.load_app_config(
            overrides=overrides, env=env, config_file=config_file
        )
    except (ValueError, TypeError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_config_path, config.log_level, config.log_file_path)

    try:
        config.db_path.parent.mkdir(parents=True, exist_ok=True)
        with Database(config.db_path) as db:
            db.create_tables_if_not_exists()

            container: ServiceContainer = ServiceContainer(config, db)

            command_classes: dict[str, type[Command]] = CommandRegistry.get_commands()
            if args.command not in command_classes:
                logger.error(f"Unknown command: {args.command}")
                print(f"Error: Unknown command: {args.command}", file=sys.stderr)
                return 1

            command: Command = command_classes[args.command](config, db, container)
            return command.execute(args)
    except Exception as e:
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        print(f"Error: {describe_error(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
