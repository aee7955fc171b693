"""
백테스트 실행 진입 함수 모듈.

[ 역할 ]
    종목 목록 → 데이터 조회 → 엔진 실행 → BacktestResult 조립.
    일부 종목의 조회 실패는 경고 로그 후 결과에 기록하고 나머지로 진행.
    모든 종목이 실패하면 BacktestDataError.

[ 실행 흐름 ]
    run_backtest()
        ├── 종목 중복 제거 (요청 순서 유지)
        ├── provider.get_ohlcv()로 종목별 조회 (실패 → failures)
        ├── create_strategy(strategy_name, params)
        ├── BacktestEngine.run_backtest()
        └── BacktestResult (성과 / 거래통계 / 거래내역 / 자산곡선 / 종목별 성과)

[ 호출하는 곳 ]
    - run_backtest.py (CLI)
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

import pandas as pd

from signal_backtest.backtest.engine import BacktestEngine
from signal_backtest.backtest.metrics import BacktestMetrics, calculate_symbol_performance
from signal_backtest.backtest.orders import PendingBuyOrder, PendingSellOrder
from signal_backtest.core.data_provider import DataProvider
from signal_backtest.core.trading_strategy import StrategyParams
from signal_backtest.data.portfolio import EquityPoint, TradeRecord
from signal_backtest.strategies import create_strategy

logger = logging.getLogger("signal_backtest.backtest")


class BacktestDataError(RuntimeError):
    """백테스트할 데이터가 하나도 없을 때 발생. failures에 종목별 실패 사유."""

    def __init__(self, failures: dict[str, str]):
        self.failures = dict(failures)
        detail = ", ".join(f"{symbol}: {reason}" for symbol, reason in self.failures.items())
        super().__init__(f"사용 가능한 종목 데이터가 없습니다 ({detail or '요청 종목 없음'})")


@dataclass
class BacktestResult:
    """run_backtest()의 반환값."""
    start_date: date
    end_date: date
    params: StrategyParams
    metrics: BacktestMetrics
    trades: list[TradeRecord] = field(default_factory=list)        # 매수+매도 전체
    equity_curve: list[EquityPoint] = field(default_factory=list)
    symbol_performance: list[dict[str, Any]] = field(default_factory=list)
    symbols: list[str] = field(default_factory=list)                 # 실제 사용된 종목
    failed_symbols: dict[str, str] = field(default_factory=dict)     # 종목 → 실패 사유
    unexecuted_orders: list[PendingBuyOrder | PendingSellOrder] = field(default_factory=list)

    @property
    def completed_trades(self) -> list[TradeRecord]:
        """청산 완료 거래 (매도 기록)."""
        return [t for t in self.trades if t.is_sell]

    @property
    def performance(self) -> dict[str, float]:
        m = self.metrics
        return {
            "initial_capital": m.initial_capital,
            "final_capital": m.final_capital,
            "total_return": m.total_return,
            "annualized_return": m.annualized_return,
            "total_profit": m.total_profit,
            "max_drawdown": m.max_drawdown,
            "sharpe_ratio": m.sharpe_ratio,
        }

    @property
    def trade_statistics(self) -> dict[str, float]:
        m = self.metrics
        return {
            "total_trades": m.total_trades,
            "winning_trades": m.winning_trades,
            "losing_trades": m.losing_trades,
            "win_rate": m.win_rate,
            "avg_win": m.avg_win,
            "avg_loss": m.avg_loss,
            "max_win": m.max_win,
            "max_loss": m.max_loss,
            "avg_holding_days": m.avg_holding_days,
            "profit_factor": m.profit_factor,
            "max_consecutive_wins": m.max_consecutive_wins,
            "max_consecutive_losses": m.max_consecutive_losses,
        }

    def summary(self) -> str:
        return self.metrics.summary()

    def generate_report(self) -> dict[str, Any]:
        """백테스트 리포트 생성 (JSON 직렬화 전 단계의 dict)."""
        return {
            "period": {"start_date": self.start_date, "end_date": self.end_date},
            "performance": self.performance,
            "trades": self.trade_statistics,
            "detailed_trades": [t.to_dict() for t in self.completed_trades],
            "equity_curve": [
                {"date": p.date, "value": p.value, "cash": p.cash, "positions": p.positions}
                for p in self.equity_curve
            ],
            "stock_performance": self.symbol_performance,
            "symbols": self.symbols,
            "failed_symbols": self.failed_symbols,
            "unexecuted_orders": [o.to_dict() for o in self.unexecuted_orders],
        }


def _unique(symbols: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(s.strip() for s in symbols if s and s.strip()))


def load_symbol_data(
    provider: DataProvider,
    symbols: Sequence[str],
    start_date: date,
    end_date: date,
) -> tuple[dict[str, pd.DataFrame], dict[str, str]]:
    """종목별 데이터 조회. (성공 데이터, 실패 사유) 반환."""
    data: dict[str, pd.DataFrame] = {}
    failures: dict[str, str] = {}

    for symbol in symbols:
        try:
            df = provider.get_ohlcv(symbol, start_date, end_date)
        except Exception as e:
            logger.warning(f"[{symbol}] 데이터 조회 실패, 제외: {e}")
            failures[symbol] = str(e)
            continue

        if df is None or df.empty:
            logger.warning(f"[{symbol}] 기간 내 데이터 없음, 제외")
            failures[symbol] = "데이터 없음"
            continue

        data[symbol] = df
        logger.info(f"[{symbol}] {len(df)}일 데이터 로드")

    return data, failures


def run_backtest(
    symbols: Sequence[str],
    start_date: date,
    end_date: date,
    initial_capital: float,
    params: StrategyParams | dict[str, Any] | None,
    provider: DataProvider,
    strategy_name: str = "rsi_macd",
    buy_cost_rate: float = 0.001425,
    sell_cost_rate: float = 0.004425,
    min_order_amount: float = 10_000,
) -> BacktestResult:
    """백테스트 실행.

    Args:
        symbols: 종목 코드 목록 (중복은 처음 등장 순서로 제거, 이 순서가 처리 순서)
        start_date: 시작일
        end_date: 종료일
        initial_capital: 초기 자금
        params: 전략 파라미터
        provider: 데이터 제공자

    Raises:
        BacktestDataError: 데이터를 얻은 종목이 하나도 없음
    """
    if not isinstance(params, StrategyParams):
        params = StrategyParams.from_dict(params)

    requested = _unique(symbols)
    data, failures = load_symbol_data(provider, requested, start_date, end_date)
    if not data:
        raise BacktestDataError(failures)
    if failures:
        logger.warning(f"{len(failures)}개 종목 제외: {', '.join(failures)}")

    strategy = create_strategy(strategy_name, params)
    engine = BacktestEngine(
        strategy,
        initial_cash=initial_capital,
        buy_cost_rate=buy_cost_rate,
        sell_cost_rate=sell_cost_rate,
        min_order_amount=min_order_amount,
    )
    metrics = engine.run_backtest(data, start_date, end_date)
    used = list(engine.bars.keys())

    return BacktestResult(
        start_date=start_date,
        end_date=end_date,
        params=params,
        metrics=metrics,
        trades=list(engine.portfolio.trade_history),
        equity_curve=list(engine.portfolio.equity_curve),
        symbol_performance=calculate_symbol_performance(engine.portfolio.trade_history, used),
        symbols=used,
        failed_symbols=failures,
        unexecuted_orders=list(engine.unexecuted_orders),
    )
