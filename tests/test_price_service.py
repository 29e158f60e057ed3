from collections.abc import Callable
from datetime import date, timedelta
from unittest.mock import MagicMock, PropertyMock, patch

import pandas as pd
import pytest

from wallet_tracker.exceptions import PriceFeedError
from wallet_tracker.models import PriceSnapshot
from wallet_tracker.repositories.price_repository import PriceRepository
from wallet_tracker.services.price_service import PriceService, history_to_closes

TICKER_PATH: str = "wallet_tracker.services.price_service.yf.Ticker"
SLEEP_PATH: str = "wallet_tracker.services.price_service.time.sleep"


def _closes(count: int, start: date = date(2024, 3, 1)) -> dict[date, float]:
    return {start + timedelta(days=i): 100.0 + i for i in range(count)}


class TestHistoryToCloses:
    def test_tz_aware_index_keeps_exchange_date(self, mock_ticker: Callable[..., MagicMock]):
        history: pd.DataFrame = mock_ticker(1.0, _closes(3)).history()

        closes: pd.Series = history_to_closes(history)

        assert closes.index.tz is None
        assert [ts.date() for ts in closes.index] == list(_closes(3))
        assert list(closes) == [100.0, 101.0, 102.0]

    def test_sorted_oldest_first(self):
        index = pd.DatetimeIndex([pd.Timestamp("2024-03-02"), pd.Timestamp("2024-03-01")])
        history = pd.DataFrame({"Close": [2.0, 1.0]}, index=index)
        assert list(history_to_closes(history)) == [1.0, 2.0]

    def test_empty_or_missing_close(self):
        assert history_to_closes(pd.DataFrame()).empty
        assert history_to_closes(pd.DataFrame({"Open": [1.0]})).empty


class TestFetchSnapshot:
    def test_keeps_latest_history_days(
        self, price_repo: PriceRepository, mock_ticker: Callable[..., MagicMock]
    ):
        service = PriceService(price_repo, history_days=10)
        with patch(TICKER_PATH, return_value=mock_ticker(420.0, _closes(15))) as mock_cls:
            snapshot: PriceSnapshot = service.fetch_snapshot("VOO")

        mock_cls.assert_called_once_with("VOO")
        assert snapshot.current_price == 420.0
        assert len(snapshot.historical_closes) == 10
        assert snapshot.historical_closes[-1].close_date == date(2024, 3, 15)
        assert snapshot.historical_closes[0].close == 105.0
        assert snapshot.fetched_datetime is not None

    @pytest.mark.parametrize("price", [None, 0.0])
    def test_missing_price(
        self, price, price_repo: PriceRepository, mock_ticker: Callable[..., MagicMock]
    ):
        service = PriceService(price_repo)
        with patch(TICKER_PATH, return_value=mock_ticker(price)):
            with pytest.raises(PriceFeedError, match="No current price"):
                _ = service.fetch_snapshot("VOO")


class TestRetry:
    def test_rate_limit_is_retried(
        self, price_repo: PriceRepository, mock_ticker: Callable[..., MagicMock]
    ):
        ticker: MagicMock = mock_ticker(420.0, _closes(3))
        history: pd.DataFrame = ticker.history.return_value
        ticker.history.side_effect = [Exception("Too Many Requests. Rate limited."), history]
        service = PriceService(price_repo, max_retries=3)

        with patch(TICKER_PATH, return_value=ticker), patch(SLEEP_PATH) as mock_sleep:
            snapshot: PriceSnapshot = service.fetch_snapshot("VOO")

        assert len(snapshot.historical_closes) == 3
        mock_sleep.assert_called_once()
        # First backoff is 2 seconds plus up to one second of jitter
        assert 2 <= mock_sleep.call_args[0][0] <= 3

    def test_gives_up_after_max_retries(
        self, price_repo: PriceRepository, mock_ticker: Callable[..., MagicMock]
    ):
        ticker: MagicMock = mock_ticker(420.0)
        type(ticker.fast_info).last_price = PropertyMock(side_effect=Exception("rate limit"))
        service = PriceService(price_repo, max_retries=2)

        with patch(TICKER_PATH, return_value=ticker), patch(SLEEP_PATH) as mock_sleep:
            with pytest.raises(PriceFeedError, match="Rate limit exceeded"):
                _ = service.fetch_snapshot("VOO")

        assert mock_sleep.call_count == 2

    def test_other_errors_are_not_retried(
        self, price_repo: PriceRepository, mock_ticker: Callable[..., MagicMock]
    ):
        ticker: MagicMock = mock_ticker(420.0)
        ticker.history.side_effect = KeyError("Close")
        service = PriceService(price_repo)

        with patch(TICKER_PATH, return_value=ticker), patch(SLEEP_PATH) as mock_sleep:
            with pytest.raises(PriceFeedError, match="Failed to fetch history for VOO"):
                _ = service.fetch_snapshot("VOO")

        mock_sleep.assert_not_called()


class TestRefresh:
    def test_failures_do_not_stop_other_symbols(
        self, price_repo: PriceRepository, mock_ticker: Callable[..., MagicMock]
    ):
        tickers: dict[str, MagicMock] = {
            "VOO": mock_ticker(420.0, _closes(2)),
            "GONE": mock_ticker(None),
        }
        service = PriceService(price_repo)

        with patch(TICKER_PATH, side_effect=lambda symbol: tickers[symbol]):
            refreshed, failures = service.refresh(["GONE", "VOO"])

        assert [s.symbol for s in refreshed] == ["VOO"]
        assert list(failures) == ["GONE"]
        stored: PriceSnapshot | None = price_repo.get_snapshot("VOO")
        assert stored is not None
        assert stored.current_price == 420.0
        assert len(stored.historical_closes) == 2
        assert price_repo.get_snapshot("GONE") is None


class TestPriceHistory:
    def test_returns_series(self, price_repo: PriceRepository, mock_ticker: Callable[..., MagicMock]):
        service = PriceService(price_repo)
        with patch(TICKER_PATH, return_value=mock_ticker(1.0, _closes(30))):
            closes: pd.Series = service.get_price_history("VOO", 12)
        assert len(closes) == 30
        assert closes.iloc[0] == 100.0

    def test_empty_history(self, price_repo: PriceRepository, mock_ticker: Callable[..., MagicMock]):
        service = PriceService(price_repo)
        with patch(TICKER_PATH, return_value=mock_ticker(1.0)):
            with pytest.raises(PriceFeedError, match="No price history"):
                _ = service.get_price_history("VOO", 12)
