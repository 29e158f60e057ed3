"""Refresh command implementation."""

import argparse
import logging
import sys
if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

from wallet_tracker.commands.base import Command, CommandRegistry
from wallet_tracker.models import Asset
from wallet_tracker.services.portfolio_service import PortfolioService
from wallet_tracker.services.price_service import PriceService

logger = logging.getLogger(__name__)


@CommandRegistry.register
class RefreshCommand(Command):
    """Command to refresh market data."""

    name: str = "refresh"
    help: str = "Refresh market data"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        """Configure the argument parser for the refresh command."""
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        actions = parser.add_subparsers(dest="action", help="Type of data to refresh")
        prices: argparse.ArgumentParser = actions.add_parser(
            "prices", help="Fetch current prices and recent closes"
        )
        _ = prices.add_argument(
            "symbols", nargs="*", help="Only these symbols (default: every tracked asset)"
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        """Execute the refresh command."""
        return self.run_action(args, {"prices": self._prices})

    def _prices(self, args: argparse.Namespace) -> None:
        symbols: list[str] = [s.upper() for s in args.symbols]
        if not symbols:
            assets: list[Asset] = self.container.get_service(PortfolioService).list_assets()
            symbols = [a.symbol for a in assets]
        if not symbols:
            print("No assets to refresh.")
            return

        print(f"Refreshing prices for {len(symbols)} symbols...")
        refreshed, failures = self.container.get_service(PriceService).refresh(symbols)
        for snapshot in refreshed:
            print(f"  {snapshot.symbol}: {snapshot.current_price:.4f}")
        for symbol, reason in failures.items():
            print(f"  {symbol}: failed ({reason})")
        print(f"Refreshed {len(refreshed)} of {len(symbols)} symbols.")
