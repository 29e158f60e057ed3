"""
Dip/recovery cycle analysis over a daily close series.

Scans the series for drops below the running high and the point where the
price gets back to it, summarises the drops, suggests a buy threshold and
optionally simulates buying each dip and selling at recovery.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

import pandas as pd

from wallet_tracker.models import HistoricalClose

logger: logging.Logger = logging.getLogger(__name__)

INSUFFICIENT_DATA: str = "Insufficient data for recommendation"

# (label, lower bound inclusive, upper bound exclusive)
FREQUENCY_BUCKETS: list[tuple[str, float, float]] = [
    ("0-0.5%", 0.0, 0.5),
    ("0.5-1%", 0.5, 1.0),
    ("1-1.5%", 1.0, 1.5),
    ("1.5-2%", 1.5, 2.0),
    ("2-3%", 2.0, 3.0),
    ("3-5%", 3.0, 5.0),
    ("5-10%", 5.0, 10.0),
    ("10%+", 10.0, math.inf),
]


@dataclass
class DipAnalysisOptions:
    min_drop_threshold: float = 0.3
    max_drop_threshold: float = 10.0
    recovery_threshold: float = 100.0  # Percent of the previous high that counts as recovered
    investment_per_trade: float | None = None
    buy_threshold_percent: float | None = None  # Defaults to the suggested threshold
    lookback_months: int | None = None


@dataclass
class DipEvent:
    start_date: date
    start_price: float
    lowest_date: date
    lowest_price: float
    drop_percent: float
    recovery_date: date | None = None
    recovery_price: float | None = None
    recovery_days: int | None = None
    recovered: bool = False
    # Filled in by the trade simulation
    buy_price: float | None = None
    sell_price: float | None = None
    shares_bought: float | None = None
    investment_used: float | None = None
    proceeds: float | None = None
    profit: float | None = None
    profit_percent: float | None = None


@dataclass
class DipStatistics:
    total_dips: int = 0
    recovered_count: int = 0
    recovery_rate: float = 0.0
    average_drop: float = 0.0
    median_drop: float = 0.0
    min_drop: float = 0.0
    max_drop: float = 0.0
    std_deviation: float = 0.0
    average_recovery_days: float = 0.0
    median_recovery_days: float = 0.0


@dataclass
class FrequencyBucket:
    range_label: str
    min_percent: float
    max_percent: float
    count: int = 0


@dataclass
class Recommendation:
    suggested_buy_threshold: float = 0.0
    suggested_sell_strategy: str = INSUFFICIENT_DATA
    expected_recovery_days: int = 0


@dataclass
class RoicSimulation:
    total_investment_used: float
    total_cash_returned: float
    total_profit: float
    total_profit_percent: float
    roic_percent: float
    trade_count: int
    successful_trades: int
    success_rate: float
    average_profit_per_trade: float
    largest_gain: float
    largest_loss: float


@dataclass
class DipAnalysisResult:
    symbol: str
    period_start: date | None = None
    period_end: date | None = None
    total_days: int = 0
    dip_events: list[DipEvent] = field(default_factory=list)
    statistics: DipStatistics = field(default_factory=DipStatistics)
    frequency_distribution: list[FrequencyBucket] = field(default_factory=list)
    recommendation: Recommendation = field(default_factory=Recommendation)
    roic_simulation: RoicSimulation | None = None

    @property
    def recovered_dips(self) -> list[DipEvent]:
        return [d for d in self.dip_events if d.recovered]


def closes_to_series(closes: Sequence[HistoricalClose]) -> pd.Series:
    """Date-indexed close series, oldest first."""
    if not closes:
        return pd.Series(dtype=float)
    series: pd.Series = pd.Series(
        [c.close for c in closes],
        index=pd.DatetimeIndex([pd.Timestamp(c.close_date) for c in closes]),
        dtype=float,
    )
    return series.sort_index()


def _days_between(start: pd.Timestamp, end: pd.Timestamp) -> int:
    return math.ceil(abs((end - start).total_seconds()) / 86400)


def analyze_dip_recovery(
    closes: pd.Series | Sequence[HistoricalClose],
    symbol: str,
    options: DipAnalysisOptions | None = None,
) -> DipAnalysisResult:
    """
    Find dip/recovery cycles in `closes`.

    A dip opens when a close falls below the running high, follows the lowest
    close, and recovers at the first close that is back at the running high
    and at or above the high times the recovery threshold. Only dips whose deepest drop lies within the min/max
    thresholds are kept; a dip still open at the end is kept as unrecovered.
    """
    options = options or DipAnalysisOptions()
    series: pd.Series = closes if isinstance(closes, pd.Series) else closes_to_series(closes)
    series = series.dropna().sort_index()

    if options.lookback_months and len(series) > 0:
        cutoff: pd.Timestamp = series.index[-1] - pd.DateOffset(months=options.lookback_months)
        series = series[series.index >= cutoff]

    if len(series) < 2:
        logger.info(f"Not enough price history to analyse dips for {symbol}")
        return DipAnalysisResult(symbol=symbol)

    dips: list[DipEvent] = []
    high: float = float(series.iloc[0])
    high_date: pd.Timestamp = series.index[0]
    open_dip: DipEvent | None = None
    open_start: pd.Timestamp | None = None

    for when, value in series.iloc[1:].items():
        price: float = float(value)
        if price < high:
            drop: float = (high - price) / high * 100
            if open_dip is None:
                open_dip = DipEvent(
                    start_date=high_date.date(),
                    start_price=high,
                    lowest_date=when.date(),
                    lowest_price=price,
                    drop_percent=drop,
                )
                open_start = high_date
            elif price < open_dip.lowest_price:
                open_dip.lowest_date = when.date()
                open_dip.lowest_price = price
                open_dip.drop_percent = drop
            continue

        # Recovery is only checked once the close is back at the running high
        if open_dip is not None and price >= high * options.recovery_threshold / 100:
            open_dip.recovery_date = when.date()
            open_dip.recovery_price = price
            open_dip.recovery_days = _days_between(open_start, when)
            open_dip.recovered = True
            if _in_range(open_dip, options):
                dips.append(open_dip)
            open_dip = None

        if price > high:
            high = price
            high_date = when

    if open_dip is not None and open_dip.drop_percent and _in_range(open_dip, options):
        dips.append(open_dip)

    statistics: DipStatistics = _statistics(dips)
    recommendation: Recommendation = _recommend(statistics)
    result: DipAnalysisResult = DipAnalysisResult(
        symbol=symbol,
        period_start=series.index[0].date(),
        period_end=series.index[-1].date(),
        total_days=len(series),
        dip_events=dips,
        statistics=statistics,
        frequency_distribution=_frequency(dips),
        recommendation=recommendation,
    )

    if options.investment_per_trade and options.investment_per_trade > 0:
        result.roic_simulation = simulate_roic(
            dips,
            options.investment_per_trade,
            options.buy_threshold_percent or recommendation.suggested_buy_threshold,
        )

    logger.info(
        f"{symbol}: {statistics.total_dips} dips, {statistics.recovered_count} recovered "
        f"over {result.total_days} closes"
    )
    return result


def _in_range(dip: DipEvent, options: DipAnalysisOptions) -> bool:
    return options.min_drop_threshold <= dip.drop_percent <= options.max_drop_threshold


def _statistics(dips: list[DipEvent]) -> DipStatistics:
    if not dips:
        return DipStatistics()

    drops: pd.Series = pd.Series([d.drop_percent for d in dips], dtype=float)
    days: pd.Series = pd.Series(
        [d.recovery_days for d in dips if d.recovered and d.recovery_days is not None],
        dtype=float,
    )
    sorted_drops: pd.Series = drops.sort_values(ignore_index=True)
    sorted_days: pd.Series = days.sort_values(ignore_index=True)
    recovered: int = sum(1 for d in dips if d.recovered)

    # Median is the upper middle element, not the mean of the two middle ones
    return DipStatistics(
        total_dips=len(dips),
        recovered_count=recovered,
        recovery_rate=recovered / len(dips) * 100,
        average_drop=float(drops.mean()),
        median_drop=float(sorted_drops.iloc[len(sorted_drops) // 2]),
        min_drop=float(drops.min()),
        max_drop=float(drops.max()),
        std_deviation=float(drops.std(ddof=0)),
        average_recovery_days=float(days.mean()) if len(days) else 0.0,
        median_recovery_days=float(sorted_days.iloc[len(sorted_days) // 2]) if len(days) else 0.0,
    )


def _frequency(dips: list[DipEvent]) -> list[FrequencyBucket]:
    buckets: list[FrequencyBucket] = [
        FrequencyBucket(label, low, high) for label, low, high in FREQUENCY_BUCKETS
    ]
    for dip in dips:
        for bucket in buckets:
            if bucket.min_percent <= dip.drop_percent < bucket.max_percent:
                bucket.count += 1
                break
    return buckets


def _recommend(statistics: DipStatistics) -> Recommendation:
    if statistics.recovery_rate > 90:
        strategy: str = "High recovery rate - sell at previous high or slightly above"
    elif statistics.recovery_rate < 70:
        strategy = "Lower recovery rate - consider tighter stop-loss or longer hold"
    else:
        strategy = "Sell when price recovers to previous high"
    return Recommendation(
        suggested_buy_threshold=round(statistics.median_drop * 0.9, 2),
        suggested_sell_strategy=strategy,
        expected_recovery_days=round(statistics.median_recovery_days),
    )


def simulate_roic(
    dips: list[DipEvent], investment_per_trade: float, buy_threshold_percent: float | None
) -> RoicSimulation:
    """
    Buy a fixed amount in every recovered dip and sell it all at the recovery price.

    The buy fills at the threshold below the dip's starting high, or at the
    dip's lowest close if that is cheaper. Trade fields are written back onto
    each dip.
    """
    invested: float = 0.0
    returned: float = 0.0
    profits: list[float] = []

    for dip in dips:
        if not dip.recovered or dip.recovery_price is None:
            continue
        if buy_threshold_percent is not None:
            buy_price: float = min(
                dip.start_price * (1 - buy_threshold_percent / 100), dip.lowest_price
            )
        else:
            buy_price = dip.lowest_price
        shares: float = investment_per_trade / buy_price
        proceeds: float = shares * dip.recovery_price
        profit: float = proceeds - investment_per_trade

        dip.buy_price = buy_price
        dip.sell_price = dip.recovery_price
        dip.shares_bought = shares
        dip.investment_used = investment_per_trade
        dip.proceeds = proceeds
        dip.profit = profit
        dip.profit_percent = profit / investment_per_trade * 100

        invested += investment_per_trade
        returned += proceeds
        profits.append(profit)

    total_profit: float = returned - invested
    trades: int = len(profits)
    winners: int = sum(1 for p in profits if p > 0)
    return RoicSimulation(
        total_investment_used=invested,
        total_cash_returned=returned,
        total_profit=total_profit,
        total_profit_percent=total_profit / invested * 100 if invested > 0 else 0.0,
        roic_percent=(returned - invested) / invested * 100 if invested > 0 else 0.0,
        trade_count=trades,
        successful_trades=winners,
        success_rate=winners / trades * 100 if trades else 0.0,
        average_profit_per_trade=total_profit / trades if trades else 0.0,
        largest_gain=max(profits) if profits else 0.0,
        largest_loss=min(profits) if profits else 0.0,
    )
