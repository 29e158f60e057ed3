"""Transaction command implementation."""

import argparse
import logging
from datetime import date
import sys
if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

from wallet_tracker.commands.base import Command, CommandRegistry
from wallet_tracker.display import display_transactions
from wallet_tracker.models import Transaction, TxnAction
from wallet_tracker.services.portfolio_service import PortfolioService
from wallet_tracker.utils.parser_utils import parse_allocations, parse_date, parse_ratio

logger = logging.getLogger(__name__)


def _add_date(parser: argparse.ArgumentParser) -> None:
    _ = parser.add_argument(
        "--date",
        dest="txn_date",
        type=parse_date,
        default=None,
        help="Transaction date YYYY-MM-DD (default: today)",
    )


@CommandRegistry.register
class TxnCommand(Command):
    """Command to record, delete and list transactions."""

    name: str = "txn"
    help: str = "Record and manage transactions"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        actions = parser.add_subparsers(dest="action", help="Transaction action")

        buy: argparse.ArgumentParser = actions.add_parser("buy", help="Record a buy")
        _ = buy.add_argument("symbol")
        _ = buy.add_argument("price", type=float)
        _ = buy.add_argument("investment", type=float, help="Amount invested")
        _ = buy.add_argument(
            "--alloc",
            type=parse_allocations,
            help="Per profit target percents, e.g. pt1=60,pt2=40 (default: target allocations)",
        )
        _ = buy.add_argument("--signal")
        _add_date(buy)

        sell: argparse.ArgumentParser = actions.add_parser("sell", help="Sell from a wallet")
        _ = sell.add_argument("wallet_id")
        _ = sell.add_argument("price", type=float)
        _ = sell.add_argument(
            "--quantity", type=float, help="Shares to sell (default: all remaining)"
        )
        _ = sell.add_argument("--signal")
        _add_date(sell)

        for action, label in (("dividend", "a dividend"), ("slp", "a stock lending payment")):
            cash: argparse.ArgumentParser = actions.add_parser(action, help=f"Record {label}")
            _ = cash.add_argument("symbol")
            _ = cash.add_argument("amount", type=float)
            _add_date(cash)

        split: argparse.ArgumentParser = actions.add_parser("split", help="Record a stock split")
        _ = split.add_argument("symbol")
        _ = split.add_argument("ratio", type=parse_ratio, help="e.g. 2:1 or 1:10")
        _ = split.add_argument("--pre-split-price", type=float)
        _add_date(split)

        delete: argparse.ArgumentParser = actions.add_parser(
            "delete", help="Delete a transaction and reverse its effect"
        )
        _ = delete.add_argument("txn_id")

        list_parser: argparse.ArgumentParser = actions.add_parser(
            "list", help="List the transactions of an asset"
        )
        _ = list_parser.add_argument("symbol")
        _ = list_parser.add_argument(
            "--action", dest="filter_action", type=TxnAction, choices=list(TxnAction)
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        return self.run_action(
            args,
            {
                "buy": self._buy,
                "sell": self._sell,
                "dividend": self._cash,
                "slp": self._cash,
                "split": self._split,
                "delete": self._delete,
                "list": self._list,
            },
        )

    def _service(self) -> PortfolioService:
        return self.container.get_service(PortfolioService)

    def _buy(self, args: argparse.Namespace) -> None:
        txn: Transaction = self._service().buy(
            args.symbol,
            args.txn_date or date.today(),
            args.price,
            args.investment,
            args.alloc,
            args.signal,
        )
        print(f"Recorded buy {txn.id}: {txn.quantity:.5f} shares @ {args.price:.2f}")

    def _sell(self, args: argparse.Namespace) -> None:
        txn: Transaction = self._service().sell(
            args.wallet_id, args.txn_date or date.today(), args.price, args.quantity, args.signal
        )
        print(
            f"Recorded {txn.txn_type} sell {txn.id}: {txn.quantity:.5f} shares, "
            f"profit {txn.txn_profit:.2f}"
        )

    def _cash(self, args: argparse.Namespace) -> None:
        action: TxnAction = TxnAction.DIVIDEND if args.action == "dividend" else TxnAction.SLP
        txn: Transaction = self._service().record_cash(
            args.symbol, action, args.txn_date or date.today(), args.amount
        )
        print(f"Recorded {action} {txn.id}: {args.amount:.2f}")

    def _split(self, args: argparse.Namespace) -> None:
        txn: Transaction = self._service().split(
            args.symbol, args.txn_date or date.today(), args.ratio, args.pre_split_price
        )
        print(f"Recorded {args.ratio:g}:1 split {txn.id} on {txn.txn_date}")

    def _delete(self, args: argparse.Namespace) -> None:
        self._service().delete_transaction(args.txn_id)
        print(f"Deleted transaction {args.txn_id}")

    def _list(self, args: argparse.Namespace) -> None:
        transactions: list[Transaction] = self._service().list_transactions(
            args.symbol, args.filter_action
        )
        display_transactions(args.symbol.upper(), transactions)
