"""
Yahoo Finance 기반 DataProvider 구현.

[ 역할 ]
    yfinance로 일봉을 내려받아 백테스트용 OHLCV DataFrame으로 정규화.
    종목 코드에 시장 접미사(예: ".TW", ".KS")를 붙여 조회할 수 있다.

[ 실패 처리 ]
    네트워크 오류는 max_retries회 재시도 후 ValueError로 변환.
    데이터가 비어 있어도 ValueError (runner.py에서 종목별 실패로 기록).

[ 호출하는 곳 ]
    - run_backtest.py (--source yahoo)
    - data/market_data.py::MarketDataManager의 제공자 체인
"""

import logging
import time
from datetime import date, timedelta

import pandas as pd
import yfinance as yf

from signal_backtest.core.data_provider import DataProvider, clean_ohlcv

logger = logging.getLogger("signal_backtest.data")


class YahooFinanceDataProvider(DataProvider):
    """Yahoo Finance 데이터 제공자.

    사용 예:
        provider = YahooFinanceDataProvider(symbol_suffix=".TW")
        df = provider.get_ohlcv("2330", date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(
        self,
        symbol_suffix: str = "",
        max_retries: int = 3,
        retry_delay: float = 5.0,
        tickers: list[str] | None = None,
    ):
        """
        Args:
            symbol_suffix: 조회 시 종목 코드 뒤에 붙일 시장 접미사
            max_retries: 최대 시도 횟수
            retry_delay: 재시도 간 대기 시간 (초)
            tickers: get_tickers()가 반환할 종목 목록 (Yahoo는 종목 목록 API가 없음)
        """
        self.symbol_suffix = symbol_suffix
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._tickers = list(tickers or [])

    def to_yahoo_symbol(self, ticker: str) -> str:
        """접미사가 없으면 붙인다. 지수(^GSPC)나 이미 붙은 코드는 그대로."""
        if not self.symbol_suffix or ticker.startswith("^") or "." in ticker:
            return ticker
        return f"{ticker}{self.symbol_suffix}"

    def _download(self, symbol: str, start_date: date, end_date: date) -> pd.DataFrame:
        df = yf.Ticker(symbol).history(
            start=start_date,
            end=end_date + timedelta(days=1),  # end_date 포함
            auto_adjust=False,
            actions=False,
        )
        if df.empty:
            return df

        return df.reset_index().rename(columns={
            "Date": "date",
            "Open": "open",
            "High": "high",
            "Low": "low",
            "Close": "close",
            "Volume": "volume",
        })

    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회.

        Raises:
            ValueError: 재시도 후에도 조회 실패 또는 유효한 행이 없음
        """
        symbol = self.to_yahoo_symbol(ticker)
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info(f"{symbol} 조회 {start_date} ~ {end_date} (시도 {attempt}/{self.max_retries})")
                raw = self._download(symbol, start_date, end_date)
                break
            except Exception as e:
                last_error = e
                logger.error(f"{symbol} 조회 오류 (시도 {attempt}/{self.max_retries}): {e}")
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay)
        else:
            raise ValueError(f"{symbol} 조회 실패: {last_error}") from last_error

        df = clean_ohlcv(raw)
        dropped = len(raw) - len(df)
        if dropped > 0:
            logger.warning(f"{symbol}: 유효하지 않은 행 {dropped}개 제외")
        if df.empty:
            raise ValueError(f"{symbol}: 기간 내 유효한 데이터 없음")

        logger.info(f"{symbol}: {len(df)}행 조회 완료")
        return df

    def get_tickers(self) -> list[str]:
        return list(self._tickers)
