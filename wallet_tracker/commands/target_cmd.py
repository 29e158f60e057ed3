"""Target command implementation."""

import argparse
import logging
import sys
from typing import Any
if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

from wallet_tracker.commands.base import Command, CommandRegistry
from wallet_tracker.display import display_targets
from wallet_tracker.models import EntryTarget, ProfitTarget, WalletType
from wallet_tracker.services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)


@CommandRegistry.register
class TargetCommand(Command):
    """Command to manage entry (buy) and profit (sell) targets."""

    name: str = "target"
    help: str = "Manage entry and profit targets"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        actions = parser.add_subparsers(dest="action", help="Target action")

        add_et: argparse.ArgumentParser = actions.add_parser("add-et", help="Add an entry target")
        _ = add_et.add_argument("symbol")
        _ = add_et.add_argument("percent", type=float, help="Drop percent, e.g. 4 for -4%%")
        _ = add_et.add_argument("--order", type=int, help="Sort order (default: last)")
        _ = add_et.add_argument("--name")

        add_pt: argparse.ArgumentParser = actions.add_parser("add-pt", help="Add a profit target")
        _ = add_pt.add_argument("symbol")
        _ = add_pt.add_argument("percent", type=float, help="Gain percent to sell at")
        _ = add_pt.add_argument("allocation", type=float, help="Percent of each buy")
        _ = add_pt.add_argument("--order", type=int, help="Sort order (default: last)")
        _ = add_pt.add_argument("--name")
        _ = add_pt.add_argument(
            "--wallet-type", type=WalletType, choices=list(WalletType), default=WalletType.SWING
        )

        update_pt: argparse.ArgumentParser = actions.add_parser(
            "update-pt", help="Change a profit target"
        )
        _ = update_pt.add_argument("target_id")
        _ = update_pt.add_argument("--percent", type=float, dest="target_percent")
        _ = update_pt.add_argument("--allocation", type=float, dest="allocation_percent")
        _ = update_pt.add_argument("--order", type=int, dest="sort_order")
        _ = update_pt.add_argument("--name")
        _ = update_pt.add_argument("--wallet-type", type=WalletType, choices=list(WalletType))

        delete_et: argparse.ArgumentParser = actions.add_parser(
            "delete-et", help="Delete an entry target"
        )
        _ = delete_et.add_argument("target_id")

        delete_pt: argparse.ArgumentParser = actions.add_parser(
            "delete-pt", help="Delete a profit target and share out its allocation"
        )
        _ = delete_pt.add_argument("target_id")

        list_parser: argparse.ArgumentParser = actions.add_parser(
            "list", help="List the targets of an asset"
        )
        _ = list_parser.add_argument("symbol")

    @override
    def execute(self, args: argparse.Namespace) -> int:
        return self.run_action(
            args,
            {
                "add-et": self._add_entry,
                "add-pt": self._add_profit,
                "update-pt": self._update_profit,
                "delete-et": self._delete_entry,
                "delete-pt": self._delete_profit,
                "list": self._list,
            },
        )

    def _service(self) -> PortfolioService:
        return self.container.get_service(PortfolioService)

    def _add_entry(self, args: argparse.Namespace) -> None:
        target: EntryTarget = self._service().add_entry_target(
            args.symbol, args.percent, args.order, args.name
        )
        print(f"Added entry target -{target.target_percent:g}% with id {target.id}")

    def _add_profit(self, args: argparse.Namespace) -> None:
        target: ProfitTarget = self._service().add_profit_target(
            args.symbol, args.percent, args.allocation, args.order, args.name, args.wallet_type
        )
        print(
            f"Added {target.wallet_type} profit target +{target.target_percent:g}% "
            f"({target.allocation_percent:g}% of each buy) with id {target.id}"
        )

    def _update_profit(self, args: argparse.Namespace) -> None:
        changes: dict[str, Any] = {
            key: getattr(args, key)
            for key in ("target_percent", "allocation_percent", "sort_order", "name", "wallet_type")
            if getattr(args, key) is not None
        }
        target: ProfitTarget = self._service().update_profit_target(args.target_id, **changes)
        print(f"Updated profit target {target.id}")

    def _delete_entry(self, args: argparse.Namespace) -> None:
        self._service().delete_entry_target(args.target_id)
        print(f"Deleted entry target {args.target_id}")

    def _delete_profit(self, args: argparse.Namespace) -> None:
        self._service().delete_profit_target(args.target_id)
        print(f"Deleted profit target {args.target_id}")

    def _list(self, args: argparse.Namespace) -> None:
        entry_targets, profit_targets, warning = self._service().list_targets(args.symbol)
        display_targets(entry_targets, profit_targets, warning)
