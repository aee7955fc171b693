"""
백테스트 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml의 전략/종목 사용, 샘플 데이터)
    python run_backtest.py

    # 파라미터 오버라이드
    python run_backtest.py -p rsi_oversold=30 -p enable_ma60=true

    # Yahoo Finance 데이터 사용 (config.yaml의 data_source.symbol_suffix 적용)
    python run_backtest.py --source yahoo --symbols 2330 2317 --start 2023-01-01 --end 2023-12-31

    # ClickHouse 데이터 사용 (실패 시 Yahoo로 대체)
    python run_backtest.py --source clickhouse

    # 최근 거래 10건 출력
    python run_backtest.py --trades 10

    # 등록된 전략 목록 확인
    python run_backtest.py --list
"""

import argparse
import logging
from pathlib import Path

from signal_backtest.backtest.runner import BacktestDataError, BacktestResult, run_backtest
from signal_backtest.core.data_provider import DataProvider
from signal_backtest.data.clickhouse_provider import ClickHouseDataProvider
from signal_backtest.data.market_data import MarketDataManager
from signal_backtest.data.sample_data import SampleDataProvider
from signal_backtest.data.yahoo_provider import YahooFinanceDataProvider
from signal_backtest.strategies import list_strategies
from signal_backtest.utils.config import Config
from signal_backtest.utils.logger import setup_logger

DEFAULT_TICKERS = ["2330", "2317", "2454"]


def parse_param(param_str: str) -> tuple[str, object]:
    """'key=value' 문자열을 파싱하여 (key, value) 반환. 숫자면 자동 변환."""
    key, _, value = param_str.partition("=")
    key = key.strip()
    value = value.strip()

    # 숫자 자동 변환
    try:
        if "." in value:
            return key, float(value)
        return key, int(value)
    except ValueError:
        # bool 변환
        if value.lower() in ("true", "yes"):
            return key, True
        if value.lower() in ("false", "no"):
            return key, False
        return key, value


def build_provider(config: Config, source: str) -> DataProvider:
    """데이터 소스 이름으로 제공자 구성."""
    yahoo = YahooFinanceDataProvider(
        symbol_suffix=config.data_source.symbol_suffix,
        max_retries=config.data_source.max_retries,
        retry_delay=config.data_source.retry_delay,
        tickers=config.strategy.tickers,
    )

    if source == "sample":
        return SampleDataProvider(tickers=config.strategy.tickers)
    if source == "yahoo":
        return MarketDataManager(yahoo)
    if source == "clickhouse":
        db = config.database
        clickhouse = ClickHouseDataProvider(
            host=db.host,
            port=db.port,
            database=db.database,
            user=db.user,
            password=db.password,
            use_adjusted_close=db.use_adjusted_close,
        )
        return MarketDataManager([clickhouse, yahoo])
    raise ValueError(f"알 수 없는 데이터 소스: {source}")


def print_result(result: BacktestResult, strategy_name: str, trade_count: int) -> None:
    """백테스트 결과 출력."""
    print(f"\n[전략: {strategy_name}]  {result.start_date} ~ {result.end_date}")
    print(result.summary())

    print(f"\n사용 종목: {', '.join(result.symbols)}")
    if result.failed_symbols:
        print("제외 종목:")
        for symbol, reason in result.failed_symbols.items():
            print(f"  - {symbol}: {reason}")

    if result.symbol_performance:
        print("\n종목별 성과:")
        for perf in result.symbol_performance:
            print(
                f"  {perf['symbol']:>8}  거래 {perf['trades']:>3}회  "
                f"승률 {perf['win_rate']:>7.2%}  손익 {perf['total_profit']:>12,.0f}  "
                f"수익률 {perf['return_rate']:>7.2%}"
            )

    completed = result.completed_trades
    if completed and trade_count > 0:
        print(f"\n최근 매도 거래 (최대 {trade_count}건):")
        for t in completed[-trade_count:]:
            profit_str = f"+{t.profit:,.0f}" if t.profit > 0 else f"{t.profit:,.0f}"
            print(
                f"  [{t.date}] {t.ticker} {t.quantity}주 @ {t.price:,.2f} -> {profit_str} "
                f"({t.holding_days}일, {t.reason})"
            )

    if result.unexecuted_orders:
        print("\n미체결 주문:")
        for order in result.unexecuted_orders:
            info = order.to_dict()
            print(f"  {info['action']} {info['ticker']} 시그널일 {info['signal_date']}")


def main():
    parser = argparse.ArgumentParser(description="RSI/MACD 신호 백테스트 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--strategy", type=str, default=None, help="전략 이름 (config.yaml 대신 지정)")
    parser.add_argument("-p", "--param", action="append", default=[], help="파라미터 오버라이드 (예: -p rsi_oversold=30)")
    parser.add_argument("--source", type=str, default="sample", choices=["sample", "yahoo", "clickhouse"], help="데이터 소스")
    parser.add_argument("--symbols", nargs="+", default=None, help="종목 코드 (config.yaml 대신 지정)")
    parser.add_argument("--start", type=str, default=None, help="시작일 YYYY-MM-DD")
    parser.add_argument("--end", type=str, default=None, help="종료일 YYYY-MM-DD")
    parser.add_argument("--trades", type=int, default=5, help="출력할 최근 거래 수")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    parser.add_argument("-v", "--verbose", action="store_true", help="체결 내역까지 콘솔에 출력 (DEBUG)")
    args = parser.parse_args()

    # 전략 목록 출력
    if args.list:
        print("등록된 전략:")
        for name in list_strategies():
            print(f"  - {name}")
        return

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    setup_logger(
        level="DEBUG" if args.verbose else config.log_level,
        log_dir=config.log_dir,
        console_level="DEBUG" if args.verbose else "WARNING",
    )
    logger = logging.getLogger("signal_backtest.cli")

    if args.symbols:
        config.strategy.tickers = args.symbols
    if not config.strategy.tickers:
        config.strategy.tickers = list(DEFAULT_TICKERS)
    if args.start:
        config.backtest.start_date = args.start
    if args.end:
        config.backtest.end_date = args.end

    # CLI 파라미터 오버라이드
    for p in args.param:
        key, value = parse_param(p)
        config.strategy.params[key] = value

    strategy_name = args.strategy or config.strategy.name
    params = config.strategy_params()

    print(f"\n전략: {strategy_name}, 데이터 소스: {args.source}")
    if args.param:
        print(f"파라미터 오버라이드: {dict(parse_param(p) for p in args.param)}")

    try:
        result = run_backtest(
            symbols=config.strategy.tickers,
            start_date=config.backtest.start,
            end_date=config.backtest.end,
            initial_capital=config.backtest.initial_cash,
            params=params,
            provider=build_provider(config, args.source),
            strategy_name=strategy_name,
            buy_cost_rate=config.backtest.buy_cost_rate,
            sell_cost_rate=config.backtest.sell_cost_rate,
            min_order_amount=config.backtest.min_order_amount,
        )
    except BacktestDataError as e:
        logger.error(str(e))
        print("\n오류: 백테스트할 데이터가 없습니다.")
        for symbol, reason in e.failures.items():
            print(f"  - {symbol}: {reason}")
        return

    print_result(result, strategy_name, args.trades)


if __name__ == "__main__":
    main()
