"""
데이터 제공자 / 정규화 / 캐시 테스트.
"""
from datetime import date

import pandas as pd
import pytest

from signal_backtest.core.data_provider import OHLCV_COLUMNS, clean_ohlcv
from signal_backtest.data.market_data import MarketDataManager
from signal_backtest.data.sample_data import SampleDataProvider, generate_sample_data
from signal_backtest.data.yahoo_provider import YahooFinanceDataProvider

from conftest import StubProvider, make_frame

START = date(2024, 1, 1)
END = date(2024, 3, 31)


class TestCleanOhlcv:
    """clean_ohlcv() 테스트"""

    def test_drops_invalid_rows_and_sorts(self):
        raw = pd.DataFrame({
            "date": ["2024-01-03", "2024-01-02", "not-a-date", "2024-01-04", "2024-01-05"],
            "open": [10.0, 9.0, 9.5, "x", 0.0],
            "high": [11.0, 10.0, 10.0, 11.0, 1.0],
            "low": [9.0, 8.0, 9.0, 9.0, 0.5],
            "close": [10.5, 9.5, 9.8, 10.0, 0.8],
            "volume": [100, 200, 300, 400, 500],
            "extra": [1, 2, 3, 4, 5],
        })

        df = clean_ohlcv(raw)

        assert list(df.columns) == OHLCV_COLUMNS
        assert df["date"].tolist() == [date(2024, 1, 2), date(2024, 1, 3)]
        assert df["open"].tolist() == [9.0, 10.0]

    def test_duplicate_dates_keep_last(self):
        raw = pd.DataFrame({
            "date": ["2024-01-02", "2024-01-02"],
            "open": [1.0, 2.0], "high": [1.0, 2.0], "low": [1.0, 2.0],
            "close": [1.0, 2.0], "volume": [1, 2],
        })

        df = clean_ohlcv(raw)
        assert len(df) == 1
        assert df["close"].iloc[0] == 2.0

    def test_empty(self):
        assert clean_ohlcv(pd.DataFrame()).empty


class TestMarketDataManager:
    """MarketDataManager 테스트"""

    def test_falls_back_to_next_provider(self):
        primary = StubProvider(failures={"AAA": "connection refused"})
        secondary = StubProvider(frames={"AAA": make_frame(10)})
        manager = MarketDataManager([primary, secondary])

        df = manager.get_ohlcv("AAA", START, END)

        assert len(df) == 10
        assert primary.calls == ["AAA"]
        assert secondary.calls == ["AAA"]

    def test_empty_result_falls_back(self):
        primary = StubProvider()
        secondary = StubProvider(frames={"AAA": make_frame(5)})

        df = MarketDataManager([primary, secondary]).get_ohlcv("AAA", START, END)
        assert len(df) == 5

    def test_all_fail_lists_every_reason(self):
        manager = MarketDataManager([
            StubProvider(failures={"AAA": "db down"}),
            StubProvider(),
        ])

        with pytest.raises(ValueError) as exc_info:
            manager.get_ohlcv("AAA", START, END)

        message = str(exc_info.value)
        assert "db down" in message
        assert "데이터 없음" in message

    def test_cache(self):
        provider = StubProvider(frames={"AAA": make_frame(5)})
        manager = MarketDataManager(provider)

        first = manager.get_ohlcv("AAA", START, END)
        first.loc[0, "close"] = -1.0   # 반환본을 바꿔도 캐시는 그대로
        second = manager.get_ohlcv("AAA", START, END)

        assert provider.calls == ["AAA"]
        assert second["close"].iloc[0] == 100.5

        manager.get_ohlcv("AAA", START, END, use_cache=False)
        manager.clear_cache()
        manager.get_ohlcv("AAA", START, END)
        assert provider.calls == ["AAA", "AAA", "AAA"]

    def test_requires_provider(self):
        with pytest.raises(ValueError):
            MarketDataManager([])

    def test_tickers_union(self):
        manager = MarketDataManager([
            StubProvider(frames={"B": None, "A": None}),
            StubProvider(frames={"C": None, "A": None}),
        ])
        assert manager.get_tickers() == ["A", "B", "C"]


class TestSampleData:
    """샘플 데이터 생성 테스트"""

    def test_deterministic_per_ticker(self):
        first = generate_sample_data("AAA", START, END)
        second = generate_sample_data("AAA", START, END)
        other = generate_sample_data("BBB", START, END)

        pd.testing.assert_frame_equal(first, second)
        assert not first["close"].equals(other["close"])

    def test_business_days_and_valid_prices(self):
        df = generate_sample_data("AAA", START, END)

        assert all(d.weekday() < 5 for d in df["date"])
        assert (df["high"] >= df[["open", "close"]].max(axis=1) - 0.01).all()
        assert (df["low"] > 0).all()
        assert clean_ohlcv(df).shape[0] == len(df)

    def test_provider_rejects_empty_period(self):
        provider = SampleDataProvider()
        # 2024-01-06 ~ 07 은 주말
        with pytest.raises(ValueError):
            provider.get_ohlcv("AAA", date(2024, 1, 6), date(2024, 1, 7))


class TestYahooFinanceDataProvider:
    """YahooFinanceDataProvider 테스트 (네트워크 호출은 _download 대체)"""

    @pytest.mark.parametrize("ticker, expected", [
        ("2330", "2330.TW"),
        ("2330.TWO", "2330.TWO"),
        ("^TWII", "^TWII"),
    ])
    def test_symbol_suffix(self, ticker, expected):
        assert YahooFinanceDataProvider(".TW").to_yahoo_symbol(ticker) == expected

    def test_no_suffix(self):
        assert YahooFinanceDataProvider().to_yahoo_symbol("AAPL") == "AAPL"

    def test_retries_then_value_error(self, monkeypatch):
        provider = YahooFinanceDataProvider(".TW", max_retries=3, retry_delay=0)
        attempts = []

        def failing(symbol, start_date, end_date):
            attempts.append(symbol)
            raise ConnectionError("network down")

        monkeypatch.setattr(provider, "_download", failing)

        with pytest.raises(ValueError, match="network down"):
            provider.get_ohlcv("2330", START, END)
        assert attempts == ["2330.TW"] * 3

    def test_recovers_after_retry(self, monkeypatch):
        provider = YahooFinanceDataProvider(max_retries=2, retry_delay=0)
        responses = [ConnectionError("flaky"), make_frame(5)]

        def flaky(symbol, start_date, end_date):
            response = responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response

        monkeypatch.setattr(provider, "_download", flaky)

        df = provider.get_ohlcv("AAPL", START, END)
        assert len(df) == 5

    def test_empty_download_is_error(self, monkeypatch):
        provider = YahooFinanceDataProvider(retry_delay=0)
        monkeypatch.setattr(provider, "_download", lambda *args: pd.DataFrame())

        with pytest.raises(ValueError, match="데이터 없음"):
            provider.get_ohlcv("AAPL", START, END)


class _FakeQueryResult:
    def __init__(self, rows):
        self.result_rows = rows


class _FakeClickHouseClient:
    """query() 호출을 기록하고 미리 정한 행을 돌려주는 클라이언트."""

    def __init__(self, rows):
        self.rows = rows
        self.queries = []
        self.closed = False

    def query(self, query, parameters=None):
        self.queries.append((query, parameters))
        return _FakeQueryResult(self.rows)

    def close(self):
        self.closed = True


class TestClickHouseDataProvider:
    """ClickHouseDataProvider 테스트 (클라이언트 주입)"""

    def test_get_ohlcv(self):
        from signal_backtest.data.clickhouse_provider import ClickHouseDataProvider

        client = _FakeClickHouseClient([
            (date(2024, 1, 3), 10.0, 11.0, 9.0, 10.5, 1000),
            (date(2024, 1, 2), 9.0, 10.0, 8.0, 9.5, 2000),
        ])
        provider = ClickHouseDataProvider(client=client)

        df = provider.get_ohlcv("2330", START, END)

        assert df["date"].tolist() == [date(2024, 1, 2), date(2024, 1, 3)]
        query, parameters = client.queries[0]
        assert "adjusted_close as close" in query
        assert parameters == {"ticker": "2330", "start_date": START, "end_date": END}

    def test_raw_close_column(self):
        from signal_backtest.data.clickhouse_provider import ClickHouseDataProvider

        client = _FakeClickHouseClient([(date(2024, 1, 2), 9.0, 10.0, 8.0, 9.5, 2000)])
        ClickHouseDataProvider(use_adjusted_close=False, client=client).get_ohlcv("2330", START, END)

        assert "adjusted_close" not in client.queries[0][0]

    def test_empty_is_error(self):
        from signal_backtest.data.clickhouse_provider import ClickHouseDataProvider

        provider = ClickHouseDataProvider(client=_FakeClickHouseClient([]))
        with pytest.raises(ValueError, match="ClickHouse"):
            provider.get_ohlcv("2330", START, END)

    def test_tickers_and_close(self):
        from signal_backtest.data.clickhouse_provider import ClickHouseDataProvider

        client = _FakeClickHouseClient([("2317",), ("2330",)])
        provider = ClickHouseDataProvider(client=client)

        assert provider.get_tickers() == ["2317", "2330"]
        provider.close()
        assert client.closed
