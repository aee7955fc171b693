"""
=============================================================================
일봉 RSI/MACD 신호 백테스트 시스템 (Signal Backtest)
=============================================================================

[ 시스템 전체 구조 ]

    run_backtest.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         │
         ├── data/                  ← 데이터 소스 (Yahoo / ClickHouse / 샘플) + 캐시 체인
         │
         └── backtest/runner.py     ← 종목 데이터 조회 + 엔진 실행 + 결과 조립
               │
               └── backtest/engine.py   ← T+1 시뮬레이션 루프
                     │
                     ├── indicators/technical.py         ← RSI, MACD, MA, ATR, 모멘텀
                     ├── strategies/rsi_macd_strategy.py ← 진입/청산 판단
                     │     └── strategies/confidence.py  ← 신뢰도 점수
                     ├── risk/position_sizing.py         ← 노출도 / 투자 비중
                     ├── backtest/orders.py              ← 대기 주문
                     ├── data/portfolio.py               ← 포지션/거래기록/자산곡선
                     └── backtest/metrics.py             ← 성과 지표 계산


[ 핵심 추상 클래스 (core/) - 모든 구현체의 부모 ]

    core/data_provider.py    → data/yahoo_provider.py, data/clickhouse_provider.py,
                               data/sample_data.py, data/market_data.py

    core/trading_strategy.py → strategies/rsi_macd_strategy.py (RSI + MACD 신뢰도 전략)


[ 데이터 흐름 ]

    1. config.yaml에서 전략 파라미터 로드 → StrategyParams (불변)
    2. DataProvider가 종목별 OHLCV 데이터 제공 (실패 종목은 제외 후 보고)
    3. 종목별로 지표를 한 번 계산하여 Bar 리스트로 변환
    4. 거래일마다 시그널 판단 → 다음 거래일 시가에 체결
    5. metrics.py가 거래 결과와 자산곡선으로 성과 지표 계산
"""
