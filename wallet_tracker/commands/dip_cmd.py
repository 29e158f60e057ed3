"""Dip analysis command implementation."""

import argparse
import logging
import sys
if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

from wallet_tracker.commands.base import Command, CommandRegistry
from wallet_tracker.dip_analysis import DipAnalysisOptions
from wallet_tracker.display import display_dip_analysis
from wallet_tracker.exceptions import ValidationError, WalletTrackerError
from wallet_tracker.services.report_service import ReportService

logger = logging.getLogger(__name__)


@CommandRegistry.register
class DipCommand(Command):
    """Command to analyse how a symbol's dips have recovered."""

    name: str = "dip"
    help: str = "Analyse dip/recovery cycles of a symbol"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _ = parser.add_argument("symbol")
        _ = parser.add_argument("--months", type=int, help="Lookback in months")
        _ = parser.add_argument("--min-drop", type=float, default=0.3, help="Smallest drop %%")
        _ = parser.add_argument("--max-drop", type=float, default=10.0, help="Largest drop %%")
        _ = parser.add_argument(
            "--recovery", type=float, default=100.0, help="Percent of the high that counts as recovered"
        )
        _ = parser.add_argument(
            "--investment", type=float, help="Simulate buying this amount in each dip"
        )
        _ = parser.add_argument("--buy-threshold", type=float, help="Buy drop %% for the simulation")

    @override
    def execute(self, args: argparse.Namespace) -> int:
        options: DipAnalysisOptions = DipAnalysisOptions(
            min_drop_threshold=args.min_drop,
            max_drop_threshold=args.max_drop,
            recovery_threshold=args.recovery,
            investment_per_trade=args.investment,
            buy_threshold_percent=args.buy_threshold,
            lookback_months=args.months or self.config.dip_lookback_months,
        )
        try:
            if options.min_drop_threshold > options.max_drop_threshold:
                raise ValidationError("--min-drop cannot exceed --max-drop", field="min_drop")
            print(f"Analysing {args.symbol.upper()} over {options.lookback_months} months...")
            result = self.container.get_service(ReportService).analyze_dips(args.symbol, options)
        except WalletTrackerError as e:
            return self.fail(e, f"dip analysis for {args.symbol}")

        display_dip_analysis(result)
        return 0
