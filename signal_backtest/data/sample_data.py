"""
샘플 주가 데이터 생성 모듈.

[ 역할 ]
    네트워크/DB 없이 백테스트를 돌려볼 수 있도록 랜덤워크 일봉을 생성.
    종목 코드로 시드를 정하므로 같은 종목/기간이면 항상 같은 데이터.

[ 호출하는 곳 ]
    - run_backtest.py (--source sample)
"""

import zlib
from datetime import date

import numpy as np
import pandas as pd

from signal_backtest.core.data_provider import DataProvider


def generate_sample_data(
    ticker: str,
    start_date: date,
    end_date: date,
    initial_price: float = 100.0,
    volatility: float = 0.02,
) -> pd.DataFrame:
    """백테스트용 샘플 주가 데이터 생성 (영업일 기준)."""
    rng = np.random.default_rng(zlib.crc32(ticker.encode("utf-8")))

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)

    returns = rng.normal(0.0002, volatility, n)
    closes = initial_price * np.cumprod(1 + returns)
    opens = closes * (1 + rng.normal(0, 0.005, n))
    highs = np.maximum(opens, closes) * (1 + np.abs(rng.normal(0, 0.01, n)))
    lows = np.minimum(opens, closes) * (1 - np.abs(rng.normal(0, 0.01, n)))
    volumes = rng.lognormal(12, 0.6, n).astype(int)

    return pd.DataFrame({
        "date": [d.date() for d in dates],
        "open": np.round(opens, 2),
        "high": np.round(highs, 2),
        "low": np.round(lows, 2),
        "close": np.round(closes, 2),
        "volume": volumes,
    })


class SampleDataProvider(DataProvider):
    """generate_sample_data()를 DataProvider 인터페이스로 감싼 제공자."""

    def __init__(self, tickers: list[str] | None = None, initial_price: float = 100.0):
        self._tickers = list(tickers or [])
        self.initial_price = initial_price

    def get_ohlcv(self, ticker: str, start_date: date, end_date: date) -> pd.DataFrame:
        df = generate_sample_data(ticker, start_date, end_date, initial_price=self.initial_price)
        if df.empty:
            raise ValueError(f"{ticker}: {start_date} ~ {end_date} 기간에 영업일 없음")
        return df

    def get_tickers(self) -> list[str]:
        return list(self._tickers)
