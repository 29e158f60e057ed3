"""Report command implementation."""

import argparse
import logging
import sys
if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

from wallet_tracker.commands.base import Command, CommandRegistry
from wallet_tracker.display import (
    display_dashboard,
    display_groups,
    display_profit_loss,
    display_wallet_rows,
)
from wallet_tracker.services.report_service import ReportService
from wallet_tracker.utils.parser_utils import parse_date

logger = logging.getLogger(__name__)


@CommandRegistry.register
class ReportCommand(Command):
    """Command to generate reports."""

    name: str = "report"
    help: str = "Generate reports"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        """Configure the argument parser for the report command."""
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        actions = parser.add_subparsers(dest="action", help="Type of report to generate")

        dashboard: argparse.ArgumentParser = actions.add_parser(
            "dashboard", help="Buy/sell signals for every active asset"
        )
        _ = dashboard.add_argument("--as-of", type=parse_date, help="Date to count days from")

        wallets: argparse.ArgumentParser = actions.add_parser(
            "wallets", help="Active wallets of an asset"
        )
        _ = wallets.add_argument("symbol")

        pl: argparse.ArgumentParser = actions.add_parser("pl", help="Profit and loss")
        _ = pl.add_argument("--symbol", help="Only this asset")

        groups: argparse.ArgumentParser = actions.add_parser(
            "groups", help="Exposure per asset type or region"
        )
        _ = groups.add_argument(
            "--by", choices=["asset_type", "region"], default="asset_type", dest="group_by"
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        """Execute the report command."""
        return self.run_action(
            args,
            {
                "dashboard": self._dashboard,
                "wallets": self._wallets,
                "pl": self._profit_loss,
                "groups": self._groups,
            },
        )

    def _service(self) -> ReportService:
        return self.container.get_service(ReportService)

    def _dashboard(self, args: argparse.Namespace) -> None:
        display_dashboard(self._service().dashboard(args.as_of))

    def _wallets(self, args: argparse.Namespace) -> None:
        asset, price, rows = self._service().wallets(args.symbol)
        display_wallet_rows(asset, price, rows)

    def _profit_loss(self, args: argparse.Namespace) -> None:
        display_profit_loss(self._service().profit_loss(args.symbol))

    def _groups(self, args: argparse.Namespace) -> None:
        display_groups(self._service().groups(args.group_by))
