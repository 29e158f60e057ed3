"""Asset command implementation."""

import argparse
import logging
import sys
from typing import Any
if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

from wallet_tracker.commands.base import Command, CommandRegistry
from wallet_tracker.display import display_assets
from wallet_tracker.models import Asset, AssetStatus, AssetType
from wallet_tracker.services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)

UPDATABLE: tuple[str, ...] = (
    "name",
    "asset_type",
    "region",
    "test_price",
    "commission",
    "status",
    "budget",
    "htp",
)


def _add_asset_options(parser: argparse.ArgumentParser) -> None:
    _ = parser.add_argument("--name", help="Display name")
    _ = parser.add_argument(
        "--type", dest="asset_type", type=AssetType, choices=list(AssetType), help="Asset type"
    )
    _ = parser.add_argument("--region", help="Region used for grouping, e.g. US")
    _ = parser.add_argument("--commission", type=float, help="Commission percent on sales")
    _ = parser.add_argument("--budget", type=float, help="Annual budget")
    _ = parser.add_argument("--htp", type=float, help="Hold take-profit percent")
    _ = parser.add_argument(
        "--test-price", type=float, help="Price used instead of the fetched one (0 clears)"
    )


@CommandRegistry.register
class AssetCommand(Command):
    """Command to add, update and list tracked assets."""

    name: str = "asset"
    help: str = "Manage tracked assets"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        actions = parser.add_subparsers(dest="action", help="Asset action")

        add: argparse.ArgumentParser = actions.add_parser("add", help="Track a new asset")
        _ = add.add_argument("symbol", help="Ticker symbol, e.g. VOO")
        _add_asset_options(add)

        update: argparse.ArgumentParser = actions.add_parser("update", help="Change an asset")
        _ = update.add_argument("symbol", help="Ticker symbol")
        _add_asset_options(update)
        _ = update.add_argument(
            "--status", type=AssetStatus, choices=list(AssetStatus), help="Asset status"
        )

        list_parser: argparse.ArgumentParser = actions.add_parser("list", help="List assets")
        _ = list_parser.add_argument(
            "--all", action="store_true", help="Include archived assets"
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        return self.run_action(
            args, {"add": self._add, "update": self._update, "list": self._list}
        )

    def _service(self) -> PortfolioService:
        return self.container.get_service(PortfolioService)

    def _add(self, args: argparse.Namespace) -> None:
        asset: Asset = self._service().add_asset(
            args.symbol,
            asset_type=args.asset_type or AssetType.STOCK,
            name=args.name,
            region=args.region,
            commission=args.commission or 0.0,
            budget=args.budget,
            htp=args.htp,
            test_price=args.test_price,
        )
        print(f"Added {asset.symbol} ({asset.asset_type}) with id {asset.id}")

    def _update(self, args: argparse.Namespace) -> None:
        changes: dict[str, Any] = {
            key: getattr(args, key) for key in UPDATABLE if getattr(args, key, None) is not None
        }
        if not changes:
            print("Nothing to update.")
            return
        asset: Asset = self._service().update_asset(args.symbol, changes)
        print(f"Updated {asset.symbol}: {', '.join(sorted(changes))}")

    def _list(self, args: argparse.Namespace) -> None:
        display_assets(self._service().list_assets(include_archived=args.all))
