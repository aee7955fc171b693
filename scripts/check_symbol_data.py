#!/usr/bin/env python3
"""
백테스트 전 종목 데이터 사전 점검 스크립트.

요청한 종목마다 데이터 소스에서 기간 데이터를 조회하여
행 수, 실제 기간, 지표 워밍업(macd_slow + macd_signal) 충족 여부를 출력한다.

사용법:
    python scripts/check_symbol_data.py --source yahoo --symbols 2330 2317
    python scripts/check_symbol_data.py --source clickhouse --start 2023-01-01 --end 2023-12-31
"""
import argparse
import sys
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from run_backtest import DEFAULT_TICKERS, build_provider
from signal_backtest.utils.config import Config
from signal_backtest.utils.logger import setup_logger


def main():
    parser = argparse.ArgumentParser(description="종목 데이터 사전 점검")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--source", type=str, default="yahoo", choices=["sample", "yahoo", "clickhouse"])
    parser.add_argument("--symbols", nargs="+", default=None, help="종목 코드")
    parser.add_argument("--start", type=str, default=None, help="시작일 YYYY-MM-DD")
    parser.add_argument("--end", type=str, default=None, help="종료일 YYYY-MM-DD")
    args = parser.parse_args()

    config_path = Path(args.config)
    config = Config.from_yaml(config_path) if config_path.exists() else Config()
    setup_logger(level=config.log_level, log_dir=config.log_dir, console=False)

    if args.start:
        config.backtest.start_date = args.start
    if args.end:
        config.backtest.end_date = args.end
    symbols = args.symbols or config.strategy.tickers or DEFAULT_TICKERS

    start, end = config.backtest.start, config.backtest.end
    warmup = config.strategy_params().warmup_bars
    provider = build_provider(config, args.source)

    print(f"점검 기간: {start} ~ {end} (워밍업 {warmup}봉)")
    print("-" * 70)

    failed = 0
    for symbol in symbols:
        try:
            df = provider.get_ohlcv(symbol, start, end)
        except Exception as e:
            failed += 1
            print(f"  [FAIL] {symbol:>10}: {e}")
            continue

        status = "OK" if len(df) > warmup else "SHORT"
        print(
            f"  [{status:>5}] {symbol:>10}: {len(df):>5}행  "
            f"{df['date'].iloc[0]} ~ {df['date'].iloc[-1]}  "
            f"종가 {df['close'].min():,.2f} ~ {df['close'].max():,.2f}"
        )

    print("-" * 70)
    print(f"총 {len(symbols)}종목 중 실패 {failed}종목")
    sys.exit(1 if failed == len(symbols) else 0)


if __name__ == "__main__":
    main()
