"""
공용 테스트 픽스처 / 데이터 빌더.
"""
from datetime import date, timedelta

import pandas as pd
import pytest

from signal_backtest.core.data_provider import Bar, DataProvider
from signal_backtest.core.trading_strategy import (
    Signal,
    SignalType,
    StrategyParams,
    TradingStrategy,
)
from signal_backtest.data.portfolio import Position


def make_bar(day: date = date(2024, 1, 10), **overrides) -> Bar:
    """지표가 모두 '중립'인 Bar. 필요한 필드만 덮어쓴다."""
    values = {
        "date": day,
        "open": 100.0,
        "high": 101.0,
        "low": 99.0,
        "close": 100.0,
        "volume": 1000.0,
    }
    values.update(overrides)
    return Bar(**values)


def make_position(**overrides) -> Position:
    values = {
        "ticker": "AAA",
        "entry_date": date(2024, 1, 1),
        "entry_price": 100.0,
        "quantity": 10,
        "invest_amount": 1001.425,
        "confidence": 0.8,
        "high_price_since_entry": 100.0,
        "trailing_stop_price": 95.0,
    }
    values.update(overrides)
    return Position(**values)


def make_frame(
    n: int = 50,
    start: date = date(2024, 1, 1),
    base: float = 100.0,
    step: float = 1.0,
    volume: float = 10_000.0,
) -> pd.DataFrame:
    """연속 달력일 OHLCV. open_i = base + i*step, close = open + 0.5."""
    rows = []
    for i in range(n):
        open_price = base + i * step
        rows.append({
            "date": start + timedelta(days=i),
            "open": open_price,
            "high": open_price + 1.0,
            "low": open_price - 1.0,
            "close": open_price + 0.5,
            "volume": volume,
        })
    return pd.DataFrame(rows)


class ScriptedStrategy(TradingStrategy):
    """지정한 날짜에만 매수/매도 시그널을 내는 테스트용 전략."""

    def __init__(self, buy_dates=(), sell_dates=(), size: float = 0.2, params=None):
        super().__init__(name="scripted", params=params or StrategyParams())
        self.buy_dates = set(buy_dates)
        self.sell_dates = set(sell_dates)
        self.size = size

    def should_buy(self, current, previous, ticker=""):
        if current.date in self.buy_dates:
            return Signal(SignalType.BUY, ticker=ticker, price=current.close, confidence=0.9, reason="scripted buy")
        return Signal(SignalType.HOLD, ticker=ticker)

    def should_sell(self, current, position, holding_days):
        if current.date in self.sell_dates:
            return Signal(SignalType.SELL, ticker=position.ticker, price=current.close, reason="scripted sell")
        return Signal(SignalType.HOLD, ticker=position.ticker)

    def calculate_position_size(self, confidence, current_exposure):
        return self.size


class StubProvider(DataProvider):
    """종목별 DataFrame을 돌려주는 제공자. failures에 있는 종목은 예외."""

    def __init__(self, frames=None, failures=None):
        self.frames = dict(frames or {})
        self.failures = dict(failures or {})
        self.calls = []

    def get_ohlcv(self, ticker, start_date, end_date):
        self.calls.append(ticker)
        if ticker in self.failures:
            raise ValueError(self.failures[ticker])
        df = self.frames.get(ticker)
        if df is None:
            return pd.DataFrame()
        return df.copy()

    def get_tickers(self):
        return sorted(self.frames)


@pytest.fixture
def params() -> StrategyParams:
    return StrategyParams()


@pytest.fixture
def frame() -> pd.DataFrame:
    return make_frame()
