"""
ClickHouse 기반 DataProvider 구현.

[ 역할 ]
    ClickHouse의 stock_ohlcv 테이블에 저장된 일봉을 조회하여 백테스트에 제공.
    get_tickers()로 조회 가능한 종목 전체 목록도 제공.

[ 테이블 ]
    stock_ohlcv(ticker, date, open, high, low, close, adjusted_close, volume)

[ 호출하는 곳 ]
    - run_backtest.py (--source clickhouse 옵션 사용 시)
    - data/market_data.py::MarketDataManager의 제공자 체인
"""

import logging
from datetime import date

import clickhouse_connect
import pandas as pd
from clickhouse_connect.driver import Client

from signal_backtest.core.data_provider import OHLCV_COLUMNS, DataProvider, clean_ohlcv

logger = logging.getLogger("signal_backtest.data")


class ClickHouseDataProvider(DataProvider):
    """ClickHouse 기반 데이터 제공자.

    사용 예:
        provider = ClickHouseDataProvider('localhost', 8123, 'default', password='password')
        df = provider.get_ohlcv('2330.TW', date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8123,
        database: str = "default",
        user: str = "default",
        password: str = "password",
        use_adjusted_close: bool = True,
        client: Client | None = None,
    ):
        """
        Args:
            host: ClickHouse 호스트
            port: HTTP 포트 (기본값: 8123)
            database: 데이터베이스 이름
            user: 사용자 이름
            password: 비밀번호
            use_adjusted_close: True이면 adjusted_close를 사용, False이면 close 사용
            client: 이미 생성된 클라이언트 (주입 시 접속 정보는 무시)
        """
        if client is None:
            client = clickhouse_connect.get_client(
                host=host,
                port=port,
                database=database,
                username=user,
                password=password,
            )
        self.client = client
        self.use_adjusted_close = use_adjusted_close

    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회.

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]
            - close 컬럼은 use_adjusted_close 옵션에 따라 adjusted_close 또는 close

        Raises:
            ValueError: 기간 내 유효한 데이터 없음
        """
        close_column = "adjusted_close" if self.use_adjusted_close else "close"

        query = f"""
            SELECT
                date,
                open,
                high,
                low,
                {close_column} as close,
                volume
            FROM stock_ohlcv
            WHERE ticker = %(ticker)s
              AND date >= %(start_date)s
              AND date <= %(end_date)s
            ORDER BY date ASC
        """

        result = self.client.query(
            query,
            parameters={
                "ticker": ticker,
                "start_date": start_date,
                "end_date": end_date,
            }
        )

        df = clean_ohlcv(pd.DataFrame(result.result_rows, columns=OHLCV_COLUMNS))
        if df.empty:
            raise ValueError(f"{ticker}: ClickHouse에 기간 내 데이터 없음")

        logger.info(f"{ticker}: ClickHouse에서 {len(df)}행 조회")
        return df

    def get_tickers(self) -> list[str]:
        """조회 가능한 종목 코드 목록 (알파벳 순)."""
        query = "SELECT DISTINCT ticker FROM stock_ohlcv ORDER BY ticker"
        result = self.client.query(query)
        return [row[0] for row in result.result_rows]

    def close(self):
        """ClickHouse 연결 종료."""
        self.client.close()
