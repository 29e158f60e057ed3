"""Base command class and related structures."""

import argparse
import logging
import sqlite3
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable

from wallet_tracker.config import AppConfig
from wallet_tracker.container import ServiceContainer
from wallet_tracker.db import Database
from wallet_tracker.exceptions import (
    IntegrityError,
    NotFoundError,
    ValidationError,
    WalletTrackerError,
    describe_error,
)

logger = logging.getLogger(__name__)


class Command(ABC):
    """
    Base class for all CLI commands.

    Commands with several actions (e.g. `txn buy`, `txn sell`) register one
    handler per action in `actions` and dispatch through `run_action`.
    """

    name: str  # Command name used in CLI
    help: str  # Help text shown in CLI

    def __init__(self, config: AppConfig, db: Database, container: ServiceContainer):
        """
        Initialise command with configuration, database connection, and service container.

        Args:
            config: AppConfig object
            db: Database object
            container: ServiceContainer object
        """
        self.config: AppConfig = config
        self.db: Database = db
        self.container: ServiceContainer = container

    @classmethod
    @abstractmethod
    def setup_parser(cls, subparser) -> None:
        """
        Configure the argument parser for this command.

        Args:
            subparser: The subparser to configure
        """
        pass

    @abstractmethod
    def execute(self, args: argparse.Namespace) -> int:
        """
        Execute the command with the given arguments.

        Args:
            args: Command line arguments from argparse

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        pass

    def run_action(
        self, args: argparse.Namespace, actions: dict[str, Callable[[argparse.Namespace], None]]
    ) -> int:
        """Run the handler for `args.action`, turning user-facing errors into exit code 1."""
        action: str | None = getattr(args, "action", None)
        if action not in actions:
            print(f"Error: choose one of: {', '.join(actions)}", file=sys.stderr)
            return 1
        try:
            actions[action](args)
            return 0
        except (WalletTrackerError, sqlite3.Error) as e:
            return self.fail(e, f"{self.name} {action}")

    def fail(self, error: Exception, what: str) -> int:
        message: str = describe_error(error)
        if isinstance(error, (ValidationError, IntegrityError, NotFoundError)):
            logger.warning(f"Rejected {what}: {message}")
        else:
            logger.error(f"Failed {what}: {message}", exc_info=True)
        print(f"Error: {message}", file=sys.stderr)
        return 1


class CommandRegistry:
    """Registry of available commands."""

    _commands: dict[str, type[Command]] = {}

    @classmethod
    def register(cls, command_class: type[Command]) -> type[Command]:
        """
        Register a command class with the registry.

        Args:
            command_class: Command class to register

        Returns:
            The registered command class (for decorator use)
        """
        cls._commands[command_class.name] = command_class
        return command_class

    @classmethod
    def get_commands(cls) -> dict[str, type[Command]]:
        """
        Get all registered commands.

        Returns:
            Dictionary mapping command names to command classes
        """
        return cls._commands.copy()
