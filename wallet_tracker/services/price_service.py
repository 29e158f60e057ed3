import logging
import random
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import TypeVar

import pandas as pd
import yfinance as yf

from wallet_tracker.exceptions import PriceFeedError
from wallet_tracker.models import HistoricalClose, PriceSnapshot
from wallet_tracker.repositories.price_repository import PriceRepository

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_rate_limited(error: Exception) -> bool:
    error_message: str = str(error).lower()
    return "rate limit" in error_message or "too many requests" in error_message


def history_to_closes(history: pd.DataFrame) -> pd.Series:
    """Close column of a yfinance history frame, indexed by plain (tz-naive) dates."""
    if history.empty or "Close" not in history.columns:
        return pd.Series(dtype=float)
    closes: pd.Series = history["Close"].dropna().astype(float)
    index: pd.DatetimeIndex = pd.DatetimeIndex(closes.index)
    if index.tz is not None:
        # Keep the exchange's calendar date
        index = index.tz_localize(None)
    closes.index = index.normalize()
    return closes.sort_index()


class PriceService:
    """Fetches prices and daily closes from yfinance and stores them as snapshots."""

    def __init__(
        self, price_repo: PriceRepository, max_retries: int = 3, history_days: int = 10
    ):
        self.price_repo: PriceRepository = price_repo
        self.max_retries: int = max_retries
        self.history_days: int = history_days

    def _call_with_retry(self, symbol: str, what: str, call: Callable[[], T]) -> T:
        """
        Run a yfinance call, backing off exponentially (with jitter) while rate limited.

        Raises:
            PriceFeedError: retries exhausted, or any other failure
        """
        retry_count: int = 0
        while True:
            try:
                return call()
            except Exception as e:
                if not _is_rate_limited(e):
                    logger.error(f"Failed to fetch {what} for {symbol}: {e}")
                    raise PriceFeedError(f"Failed to fetch {what} for {symbol}: {e}") from e

                retry_count += 1
                if retry_count > self.max_retries:
                    logger.error(f"Max retries exceeded fetching {what} for {symbol}. Giving up.")
                    raise PriceFeedError(
                        f"Rate limit exceeded fetching {what} for {symbol}"
                    ) from e

                wait_time: float = min(60, (2**retry_count) + (random.randint(0, 1000) / 1000))
                logger.warning(
                    f"Rate limited fetching {what} for {symbol}. Retrying in {wait_time:.2f} seconds "
                    f"(attempt {retry_count}/{self.max_retries})"
                )
                time.sleep(wait_time)

    def fetch_snapshot(self, symbol: str) -> PriceSnapshot:
        """Current price plus the most recent `history_days` daily closes."""
        ticker: yf.Ticker = yf.Ticker(symbol)

        price: float | None = self._call_with_retry(
            symbol, "price", lambda: ticker.fast_info.last_price
        )
        if price is None or price <= 0:
            raise PriceFeedError(f"No current price available for {symbol}")

        # Calendar window wide enough to cover weekends and holidays
        start: date = date.today() - timedelta(days=self.history_days * 2 + 7)
        history: pd.DataFrame = self._call_with_retry(
            symbol, "history", lambda: ticker.history(start=start.isoformat(), interval="1d")
        )
        closes: pd.Series = history_to_closes(history).tail(self.history_days)

        snapshot: PriceSnapshot = PriceSnapshot(
            symbol=symbol,
            current_price=float(price),
            historical_closes=[
                HistoricalClose(close_date=ts.date(), close=float(value))
                for ts, value in closes.items()
            ],
            fetched_datetime=datetime.now().replace(microsecond=0),
        )
        logger.debug(f"Fetched {symbol}: price={price}, closes={len(snapshot.historical_closes)}")
        return snapshot

    def refresh(self, symbols: list[str]) -> tuple[list[PriceSnapshot], dict[str, str]]:
        """
        Fetch and store snapshots for each symbol.

        A failing symbol does not stop the others; failures are returned by symbol.
        """
        refreshed: list[PriceSnapshot] = []
        failures: dict[str, str] = {}
        for symbol in symbols:
            try:
                snapshot: PriceSnapshot = self.fetch_snapshot(symbol)
            except PriceFeedError as e:
                failures[symbol] = str(e)
                continue
            self.price_repo.save_snapshot(snapshot)
            refreshed.append(snapshot)
        logger.info(f"Refreshed {len(refreshed)} of {len(symbols)} symbols")
        return refreshed, failures

    def get_price_history(self, symbol: str, months: int) -> pd.Series:
        """Daily closes over the last `months` months, oldest first."""
        start: pd.Timestamp = pd.Timestamp.today().normalize() - pd.DateOffset(months=months)
        ticker: yf.Ticker = yf.Ticker(symbol)
        history: pd.DataFrame = self._call_with_retry(
            symbol,
            "history",
            lambda: ticker.history(start=start.strftime("%Y-%m-%d"), interval="1d"),
        )
        closes: pd.Series = history_to_closes(history)
        if closes.empty:
            raise PriceFeedError(f"No price history available for {symbol}")
        logger.debug(f"Loaded {len(closes)} closes for {symbol} since {start.date()}")
        return closes
