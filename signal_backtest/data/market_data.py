"""
시장 데이터 관리 모듈.

[ 역할 ]
    여러 DataProvider를 우선순위대로 묶고 캐싱 레이어를 제공.
    첫 번째로 비어 있지 않은 데이터를 돌려준 제공자가 채택된다.
    동일 데이터 반복 조회 시 캐시에서 즉시 반환.

[ 의존성 ]
    - core/data_provider.py::DataProvider (데이터 소스 추상화)

[ 호출하는 곳 ]
    - backtest/runner.py::run_backtest()에서 종목별 데이터 조회
    - run_backtest.py에서 제공자 체인 구성
"""

import logging
from datetime import date
from typing import Sequence

import pandas as pd

from signal_backtest.core.data_provider import DataProvider

logger = logging.getLogger("signal_backtest.data")


class MarketDataManager(DataProvider):
    """DataProvider 체인 위에 캐싱 레이어를 추가한 매니저.

    사용 예:
        manager = MarketDataManager([ClickHouseDataProvider(), YahooFinanceDataProvider(".TW")])
        df = manager.get_ohlcv("2330", start, end)
    """

    def __init__(self, providers: DataProvider | Sequence[DataProvider]):
        if isinstance(providers, DataProvider):
            providers = [providers]
        if not providers:
            raise ValueError("데이터 제공자가 하나 이상 필요합니다.")
        self.providers: list[DataProvider] = list(providers)
        self._cache: dict[str, pd.DataFrame] = {}  # "ticker_start_end" → DataFrame

    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
        use_cache: bool = True,
    ) -> pd.DataFrame:
        """시장 데이터 조회 (캐싱 + 제공자 순차 시도).

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]

        Raises:
            ValueError: 모든 제공자가 실패 (제공자별 실패 사유 포함)
        """
        cache_key = f"{ticker}_{start_date}_{end_date}"

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key].copy()

        errors: list[str] = []
        for provider in self.providers:
            name = type(provider).__name__
            try:
                df = provider.get_ohlcv(ticker, start_date, end_date)
            except Exception as e:
                logger.warning(f"[{ticker}] {name} 실패: {e}")
                errors.append(f"{name}: {e}")
                continue

            if df is None or df.empty:
                errors.append(f"{name}: 데이터 없음")
                continue

            if use_cache:
                self._cache[cache_key] = df
            return df.copy()

        raise ValueError(f"{ticker} 데이터 조회 실패 ({'; '.join(errors)})")

    def get_tickers(self) -> list[str]:
        """모든 제공자의 종목 목록 합집합 (처음 등장한 순서 유지)."""
        seen: dict[str, None] = {}
        for provider in self.providers:
            for ticker in provider.get_tickers():
                seen.setdefault(ticker, None)
        return list(seen)

    def clear_cache(self) -> None:
        """캐시 초기화."""
        self._cache.clear()
