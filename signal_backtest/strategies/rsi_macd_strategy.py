"""
RSI + MACD 신뢰도 전략 구현.

[ 역할 ]
    core/trading_strategy.py::TradingStrategy의 구현체.
    "RSI 과매도 구간에서 반등 + MACD 골든크로스 + 거래량 동반 양봉이면 매수,
     추적 손절 / ATR 손절 / 익절 / 손절 / 기술적 청산 조건 중 하나라도 충족하면 매도"

[ 진입 흐름 ]  should_buy()
    데이터 확인 (RSI, MACD, 시그널선 필수)
        ├── RSI > rsi_oversold              → 거절
        ├── MACD <= 시그널선                 → 거절
        ├── RSI가 전일보다 높지 않음          → 거절
        ├── 거래량 비율 < volume_threshold    → 거절
        ├── 종가 <= 시가 (음봉)               → 거절
        ├── (엄격 모드) 가격 모멘텀 < 0        → 거절
        └── 신뢰도 < confidence_threshold     → 거절, 아니면 BUY

[ 청산 흐름 ]  should_sell()  (먼저 충족된 조건 하나로 청산)
    1. 진입 후 최고 종가 갱신
    2. 추적 손절: 최고 수익률 >= trailing_activate_percent 이면
                  최고가 × (1 - trailing_stop_percent) 이하로 하락 시 청산
    3. ATR 손절: 종가 <= 진입가 - ATR × atr_multiplier
    4. 익절:     수익률 >= stop_profit
    5. 보호 기간 (보유일수 <= min_holding_days): 수익률 <= -1.5 × stop_loss 일 때만 청산
    6. 보호 기간 이후: 손절 (수익률 <= -stop_loss), RSI > 70,
                       MACD < 시그널 & 히스토그램 < 0, 보유 30일 초과

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine._process_symbol()
"""

import logging
from typing import Any

from signal_backtest.core.data_provider import Bar
from signal_backtest.core.trading_strategy import (
    Signal,
    SignalType,
    StrategyParams,
    TradingStrategy,
)
from signal_backtest.data.portfolio import Position
from signal_backtest.risk.position_sizing import calculate_position_size
from signal_backtest.strategies import register
from signal_backtest.strategies.confidence import calculate_confidence

logger = logging.getLogger("signal_backtest.strategy")

OVERBOUGHT_RSI = 70.0
MAX_HOLDING_DAYS = 30
CATASTROPHIC_LOSS_MULTIPLIER = 1.5


@register("rsi_macd")
class RsiMacdStrategy(TradingStrategy):
    """RSI + MACD 신뢰도 전략 구현체."""

    def __init__(self, params: StrategyParams | dict[str, Any] | None = None):
        if not isinstance(params, StrategyParams):
            params = StrategyParams.from_dict(params)
        super().__init__(name="rsi_macd", params=params)

    def _hold(self, ticker: str, price: float, reason: str) -> Signal:
        return Signal(signal_type=SignalType.HOLD, ticker=ticker, price=price, reason=reason)

    def should_buy(
        self,
        current: Bar,
        previous: Bar | None,
        ticker: str = "",
    ) -> Signal:
        """진입 조건 판단. 거절 시 HOLD + 거절 사유."""
        p = self.params
        price = current.close

        if current.rsi is None or current.macd is None or current.macd_signal is None:
            return self._hold(ticker, price, "데이터 부족")

        rsi = current.rsi
        volume_ratio = current.volume_ratio if current.volume_ratio is not None else 0.0

        if rsi > p.rsi_oversold:
            return self._hold(ticker, price, f"RSI 조건 미충족 ({rsi:.2f} > {p.rsi_oversold})")

        if current.macd <= current.macd_signal:
            return self._hold(ticker, price, "MACD 골든크로스 아님")

        if previous is None or previous.rsi is None or rsi <= previous.rsi:
            return self._hold(ticker, price, "RSI 반등 없음")

        if volume_ratio < p.volume_threshold:
            return self._hold(
                ticker, price, f"거래량 부족 ({volume_ratio:.2f} < {p.volume_threshold})"
            )

        if current.close <= current.open:
            return self._hold(ticker, price, "음봉")

        if (
            p.strict_hierarchy
            and p.enable_price_momentum
            and current.price_momentum is not None
            and current.price_momentum < 0
        ):
            return self._hold(ticker, price, f"가격 모멘텀 음수 ({current.price_momentum:.2%})")

        confidence = calculate_confidence(current, p, previous)
        if confidence < p.confidence_threshold:
            return self._hold(
                ticker, price, f"신뢰도 부족: {confidence:.1%} < {p.confidence_threshold:.1%}"
            )

        mode = "계층형" if p.strict_hierarchy else "표준"
        logger.debug(f"[{ticker}] {current.date} {mode} 매수 시그널, 신뢰도 {confidence:.1%}")
        return Signal(
            signal_type=SignalType.BUY,
            ticker=ticker,
            price=price,
            confidence=confidence,
            reason=f"{mode} 매수 시그널, 신뢰도: {confidence:.1%}",
        )

    def should_sell(
        self,
        current: Bar,
        position: Position,
        holding_days: int,
    ) -> Signal:
        """청산 조건 판단.

        position.high_price_since_entry / trailing_stop_price를 갱신한다.
        청산 시 metadata["profit_rate"]에 시그널일 종가 기준 수익률을 담는다.
        """
        p = self.params
        ticker = position.ticker
        price = current.close
        profit_rate = position.profit_rate(price)

        position.high_price_since_entry = max(position.high_price_since_entry, price)

        reason = ""
        if p.enable_trailing_stop:
            peak_profit = position.profit_rate(position.high_price_since_entry)
            if peak_profit >= p.trailing_activate_percent:
                position.trailing_stop_price = (
                    position.high_price_since_entry * (1 - p.trailing_stop_percent)
                )
                if price <= position.trailing_stop_price:
                    reason = f"추적 손절 (최고 수익 {peak_profit:.2%})"

        if not reason and p.enable_atr_stop and position.atr_stop_price is not None:
            if price <= position.atr_stop_price:
                reason = "ATR 손절"

        if not reason and profit_rate >= p.stop_profit:
            reason = "익절"

        if not reason:
            if holding_days <= p.min_holding_days:
                # 보호 기간에는 큰 손실만 청산
                if profit_rate <= -p.stop_loss * CATASTROPHIC_LOSS_MULTIPLIER:
                    reason = "보호 기간 내 큰 손실"
            else:
                reason = self._technical_exit_reason(current, profit_rate, holding_days)

        if not reason:
            return self._hold(ticker, price, "")

        logger.debug(f"[{ticker}] {current.date} 매도 시그널: {reason} ({profit_rate:.2%})")
        return Signal(
            signal_type=SignalType.SELL,
            ticker=ticker,
            price=price,
            reason=reason,
            metadata={"profit_rate": profit_rate},
        )

    def _technical_exit_reason(self, current: Bar, profit_rate: float, holding_days: int) -> str:
        if profit_rate <= -self.params.stop_loss:
            return "손절"
        if current.rsi is not None and current.rsi > OVERBOUGHT_RSI:
            return "RSI 과매수"
        if (
            current.macd is not None
            and current.macd_signal is not None
            and current.macd_histogram is not None
            and current.macd < current.macd_signal
            and current.macd_histogram < 0
        ):
            return "MACD 데드크로스"
        if holding_days > MAX_HOLDING_DAYS:
            return f"보유 {MAX_HOLDING_DAYS}일 초과"
        return ""

    def calculate_position_size(self, confidence: float, current_exposure: float) -> float:
        return calculate_position_size(confidence, current_exposure, self.params)
