"""
주가 데이터 제공 추상 클래스 및 일봉(Bar) 정의.

[ 역할 ]
    OHLCV(시가/고가/저가/종가/거래량) 데이터를 제공하는 인터페이스.
    데이터 소스(Yahoo, ClickHouse, 샘플 등)에 독립적으로 백테스트에 데이터 공급.

[ 구현체 ]
    - data/yahoo_provider.py::YahooFinanceDataProvider
    - data/clickhouse_provider.py::ClickHouseDataProvider

[ Bar ]
    엔진 내부에서 사용하는 하루치 일봉 + 파생 지표.
    파생 지표는 워밍업 기간 동안 None. None은 "아직 계산 불가"를 뜻하며
    절대 0으로 취급하지 않는다.

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager가 이 인터페이스를 통해 데이터 조회
    - backtest/engine.py가 지표 계산이 끝난 DataFrame을 Bar 리스트로 변환
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import date
from typing import Any

import pandas as pd

# get_ohlcv()가 반환하는 DataFrame의 필수 컬럼
OHLCV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


@dataclass
class Bar:
    """단일 종목의 하루치 일봉. 지표 필드는 계산 가능해지기 전까지 None."""
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float

    rsi: float | None = None
    macd: float | None = None
    macd_signal: float | None = None
    macd_histogram: float | None = None
    ma5: float | None = None
    ma20: float | None = None
    ma60: float | None = None
    volume_ma20: float | None = None
    volume_ratio: float | None = None
    atr: float | None = None
    price_momentum: float | None = None

    # 점화식 누적값 (RSI 와일더 평활 / MACD EMA)
    avg_gain: float | None = None
    avg_loss: float | None = None
    ema_fast: float | None = None
    ema_slow: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Bar":
        """DataFrame 한 행(dict)에서 Bar 생성. NaN은 None으로 변환."""
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in row:
                continue
            value = row[f.name]
            if f.name == "date":
                values["date"] = pd.Timestamp(value).date()
            elif value is None or (isinstance(value, float) and math.isnan(value)):
                values[f.name] = None
            else:
                values[f.name] = float(value)
        return cls(**values)


def bars_from_frame(df: pd.DataFrame) -> list[Bar]:
    """지표 계산이 끝난 DataFrame을 Bar 리스트로 변환."""
    return [Bar.from_row(row) for row in df.to_dict("records")]


class DataProvider(ABC):
    """주가 데이터 제공 추상 클래스.

    모든 데이터 제공자 구현체는 이 클래스를 상속받아 아래 메서드를 구현해야 한다.
    """

    @abstractmethod
    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회.

        Args:
            ticker: 종목 코드
            start_date: 시작일
            end_date: 종료일

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]
            날짜 오름차순 정렬, 파싱 불가능한 행은 제외된 상태.
        """
        ...

    @abstractmethod
    def get_tickers(self) -> list[str]:
        """조회 가능한 종목 코드 목록."""
        ...


def clean_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """OHLCV DataFrame 정규화.

    숫자로 변환할 수 없거나 가격이 0 이하인 행은 조용히 제외하고,
    날짜를 datetime.date로 바꾼 뒤 오름차순 정렬한다.
    """
    if df is None or df.empty:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    df = df[OHLCV_COLUMNS].copy()
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    for col in ("open", "high", "low", "close", "volume"):
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df = df.dropna(subset=OHLCV_COLUMNS)
    df = df[(df["open"] > 0) & (df["high"] > 0) & (df["low"] > 0) & (df["close"] > 0)]
    df = df[df["volume"] >= 0]

    df["date"] = df["date"].dt.date
    df = df.drop_duplicates(subset="date", keep="last")
    return df.sort_values("date").reset_index(drop=True)
