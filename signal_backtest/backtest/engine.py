"""
백테스팅 엔진 모듈.

[ 역할 ]
    과거 데이터에 전략을 적용하여 가상 매매를 시뮬레이션하고 성과를 측정.
    시스템의 핵심 실행 루프를 담당. 시그널은 당일 종가로 판단하고
    체결은 다음 거래일 시가로 한다 (T+1).

[ 실행 흐름 ]
    run_backtest() 호출 시:
        1. prepare_data(): 종목별 지표 계산 → Bar 리스트 변환
        2. 모든 종목의 거래일 합집합 추출 (요청 기간 내)
        3. 각 거래일에 대해 종목 순서대로 _process_symbol() 호출
           → 만기 매도 대기 주문 체결 → 만기 매수 대기 주문 체결
           → 보유 중이면 strategy.should_sell(), 미보유면 strategy.should_buy()
           → 시그널이면 다음 거래일을 목표로 대기 주문 등록
        4. 당일 종가 기준 자산 기록 (equity_curve). 당일 봉이 없는 보유 종목은 마지막 종가
        5. 종료 시 미체결 주문 보고 + metrics.calculate_metrics()

[ 건너뛰는 경우 ]
    당일 봉 없음 / 봉 인덱스 < macd_slow + macd_signal / RSI·MACD·시그널선 결측

[ 의존성 ]
    - core/trading_strategy.py::TradingStrategy (전략 인터페이스)
    - data/portfolio.py::Portfolio (포지션/거래기록 관리)
    - risk/position_sizing.py::calculate_current_exposure() (노출도)
    - backtest/orders.py (T+1 대기 주문)
    - backtest/metrics.py::calculate_metrics() (성과 계산)

[ 호출하는 곳 ]
    - backtest/runner.py::run_backtest()
"""

import logging
from datetime import date
from typing import Any

import pandas as pd

from signal_backtest.backtest.metrics import BacktestMetrics, calculate_metrics
from signal_backtest.backtest.orders import PendingBuyOrder, PendingSellOrder, next_trading_day
from signal_backtest.core.data_provider import Bar, bars_from_frame
from signal_backtest.core.trading_strategy import TradingStrategy
from signal_backtest.data.portfolio import Portfolio
from signal_backtest.indicators.technical import calculate_indicators
from signal_backtest.risk.position_sizing import calculate_current_exposure

logger = logging.getLogger("signal_backtest.backtest")

PendingOrder = PendingBuyOrder | PendingSellOrder


class BacktestEngine:
    """백테스팅 엔진. run_backtest()로 시뮬레이션 실행."""

    def __init__(
        self,
        strategy: TradingStrategy,
        initial_cash: float = 1_000_000,
        buy_cost_rate: float = 0.001425,    # 매수 수수료율
        sell_cost_rate: float = 0.004425,   # 매도 수수료 + 거래세
        min_order_amount: float = 10_000,   # 이 금액 이하 매수는 하지 않음
    ):
        self.strategy = strategy
        self.params = strategy.params
        self.initial_cash = initial_cash
        self.buy_cost_rate = buy_cost_rate
        self.sell_cost_rate = sell_cost_rate
        self.min_order_amount = min_order_amount

        # 백테스트 실행 후 채워지는 결과
        self.portfolio: Portfolio | None = None
        self.bars: dict[str, list[Bar]] = {}
        self.trading_dates: list[date] = []
        self.pending_buys: dict[str, PendingBuyOrder] = {}
        self.pending_sells: dict[str, PendingSellOrder] = {}
        self.unexecuted_orders: list[PendingOrder] = []
        self.metrics: BacktestMetrics | None = None

        self._bars_by_date: dict[str, dict[date, Bar]] = {}
        self._index_by_date: dict[str, dict[date, int]] = {}
        self._last_close: dict[str, float] = {}   # 종목별 마지막 종가 (휴장 종목 평가용)

    def prepare_data(self, data: dict[str, pd.DataFrame]) -> dict[str, list[Bar]]:
        """종목별 지표 계산 후 Bar 리스트로 변환. 종목 순서는 data의 순서."""
        self.bars = {}
        self._bars_by_date = {}
        self._index_by_date = {}

        for ticker, df in data.items():
            if df is None or df.empty:
                logger.warning(f"[{ticker}] 데이터 없음, 제외")
                continue
            frame = df.copy()
            frame["date"] = pd.to_datetime(frame["date"]).dt.date
            frame = frame.sort_values("date").reset_index(drop=True)

            bars = bars_from_frame(calculate_indicators(frame, self.params))
            self.bars[ticker] = bars
            self._bars_by_date[ticker] = {bar.date: bar for bar in bars}
            self._index_by_date[ticker] = {bar.date: i for i, bar in enumerate(bars)}
            logger.debug(f"[{ticker}] {len(bars)}개 봉 준비 완료")

        return self.bars

    def run_backtest(
        self,
        data: dict[str, pd.DataFrame],
        start_date: date,
        end_date: date,
    ) -> BacktestMetrics:
        """백테스트 실행.

        Args:
            data: {ticker: OHLCV DataFrame} 형태의 데이터 (순서가 종목 처리 순서)
            start_date: 시작일
            end_date: 종료일

        Returns:
            BacktestMetrics: 성과 지표
        """
        self.portfolio = Portfolio(self.initial_cash, self.buy_cost_rate, self.sell_cost_rate)
        self.pending_buys = {}
        self.pending_sells = {}
        self.unexecuted_orders = []
        self._last_close = {}

        self.prepare_data(data)

        # 전체 거래일 추출
        all_dates: set[date] = set()
        for bars in self.bars.values():
            all_dates.update(bar.date for bar in bars if start_date <= bar.date <= end_date)
        self.trading_dates = sorted(all_dates)

        if not self.trading_dates:
            logger.warning("거래일이 없습니다.")
            self.metrics = calculate_metrics([], [], self.initial_cash, start_date, end_date)
            return self.metrics

        logger.info(
            f"백테스트 시작: {self.trading_dates[0]} ~ {self.trading_dates[-1]} "
            f"({len(self.trading_dates)}일, {len(self.bars)}종목)"
        )

        for current_date in self.trading_dates:
            for ticker in self.bars:
                self._process_symbol(ticker, current_date)

            # 당일 봉이 없는 보유 종목은 마지막 종가로 평가
            for ticker, by_date in self._bars_by_date.items():
                if current_date in by_date:
                    self._last_close[ticker] = by_date[current_date].close
            self.portfolio.record_equity(current_date, self._last_close)

        self._collect_unexecuted_orders()

        self.metrics = calculate_metrics(
            trade_history=self.portfolio.trade_history,
            equity_curve=self.portfolio.equity_curve,
            initial_cash=self.initial_cash,
            start_date=start_date,
            end_date=end_date,
        )
        logger.info(
            f"백테스트 완료. 거래 {self.metrics.total_trades}건, "
            f"총 수익률: {self.metrics.total_return:.2%}"
        )
        return self.metrics

    def _process_symbol(self, ticker: str, current_date: date) -> None:
        """종목 하루 처리. 매도 체결 → 매수 체결 → 청산 판단 → 진입 판단."""
        bar = self._bars_by_date[ticker].get(current_date)
        if bar is None:
            return

        index = self._index_by_date[ticker][current_date]
        if index < self.params.warmup_bars:
            return
        if bar.rsi is None or bar.macd is None or bar.macd_signal is None:
            return

        previous = self.bars[ticker][index - 1] if index > 0 else None

        sell_order = self.pending_sells.get(ticker)
        if sell_order is not None and sell_order.is_due(current_date):
            self._execute_sell(sell_order, bar)

        buy_order = self.pending_buys.get(ticker)
        if buy_order is not None and buy_order.is_due(current_date):
            self._execute_buy(buy_order, bar)

        position = self.portfolio.get_position(ticker)
        if position is not None:
            if ticker not in self.pending_sells:
                holding_days = position.holding_days(current_date)
                signal = self.strategy.should_sell(bar, position, holding_days)
                if signal.is_sell:
                    target = next_trading_day(self.trading_dates, current_date)
                    self.pending_sells[ticker] = PendingSellOrder.from_signal(
                        position, current_date, target, signal.reason, signal.metadata
                    )
                    logger.debug(
                        f"[{current_date}] 매도 대기: {ticker} → {target} ({signal.reason})"
                    )
        elif ticker not in self.pending_buys:
            signal = self.strategy.should_buy(bar, previous, ticker)
            if signal.is_buy:
                target = next_trading_day(self.trading_dates, current_date)
                self.pending_buys[ticker] = PendingBuyOrder(
                    ticker=ticker,
                    signal_date=current_date,
                    target_execution_date=target,
                    confidence=signal.confidence,
                    reason=signal.reason,
                    signal_price=signal.price,
                )
                logger.debug(
                    f"[{current_date}] 매수 대기: {ticker} → {target} "
                    f"(신뢰도 {signal.confidence:.1%})"
                )

    def _execute_sell(self, order: PendingSellOrder, bar: Bar) -> None:
        """매도 체결. 당일 시가 × 수량 × (1 - 매도비용)."""
        del self.pending_sells[order.ticker]
        trade = self.portfolio.close_position(
            snapshot=order.position,
            price=bar.open,
            execution_date=bar.date,
            signal_date=order.signal_date,
            reason=order.reason,
        )
        logger.debug(
            f"[{bar.date}] 매도: {trade.ticker} {trade.quantity}주 @ {trade.price:,.2f} "
            f"손익 {trade.profit:,.0f} ({trade.reason})"
        )

    def _execute_buy(self, order: PendingBuyOrder, bar: Bar) -> None:
        """매수 체결. 체결 여부와 관계없이 대기 주문은 삭제 (재시도 없음)."""
        del self.pending_buys[order.ticker]
        portfolio = self.portfolio

        exposure = calculate_current_exposure(
            portfolio.positions, portfolio.cash, self._bars_by_date, bar.date
        )
        size = self.strategy.calculate_position_size(order.confidence, exposure)
        invest_budget = min(portfolio.cash * size, portfolio.cash * self.params.max_position_size)

        if invest_budget <= self.min_order_amount:
            logger.debug(
                f"[{bar.date}] 매수 생략: {order.ticker} 투자금 {invest_budget:,.0f} "
                f"<= 최소 {self.min_order_amount:,.0f}"
            )
            return

        position = portfolio.open_position(
            ticker=order.ticker,
            price=bar.open,
            invest_budget=invest_budget,
            execution_date=bar.date,
            confidence=order.confidence,
            signal_date=order.signal_date,
            reason=order.reason,
            trailing_stop_percent=self.params.trailing_stop_percent,
            atr=bar.atr,
            atr_multiplier=self.params.atr_multiplier,
        )
        if position is None:
            logger.debug(f"[{bar.date}] 매수 불가: {order.ticker} 수량 0 또는 현금 부족")
            return

        logger.debug(
            f"[{bar.date}] 매수: {order.ticker} {position.quantity}주 @ {bar.open:,.2f} "
            f"(투자 {position.invest_amount:,.0f}, 비중 {size:.1%}, 노출도 {exposure:.1%})"
        )

    def _collect_unexecuted_orders(self) -> None:
        """종료 시점까지 체결되지 않은 대기 주문을 기록."""
        self.unexecuted_orders = [*self.pending_buys.values(), *self.pending_sells.values()]
        for order in self.unexecuted_orders:
            action = "매수" if isinstance(order, PendingBuyOrder) else "매도"
            target = order.target_execution_date or "미정"
            logger.warning(
                f"미체결 {action} 주문: {order.ticker} 시그널일 {order.signal_date}, "
                f"목표 체결일 {target} (기간 내 다음 거래일 없음)"
            )

    def generate_report(self) -> dict[str, Any]:
        """백테스트 리포트 생성."""
        if self.metrics is None or self.portfolio is None:
            return {"error": "백테스트를 먼저 실행하세요."}

        return {
            "metrics": self.metrics.to_dict(),
            "portfolio_summary": self.portfolio.get_summary(),
            "trade_count": len(self.portfolio.trade_history),
            "trades": [t.to_dict() for t in self.portfolio.trade_history],
            "unexecuted_orders": [o.to_dict() for o in self.unexecuted_orders],
        }
