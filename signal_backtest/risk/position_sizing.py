"""
포지션 크기 / 노출도 계산 모듈.

[ 역할 ]
    - calculate_current_exposure(): 보유 평가액 / (현금 + 보유 평가액)
    - calculate_position_size(): 신뢰도와 현재 노출도로 가용 현금 대비 투자 비중 결정

[ 동적 비중 (dynamic_position_size) ]
    기본 비중 15% × 신뢰도 배수 (>0.8: 1.5, >0.65: 1.0, 그 외: 0.7)
    노출도 > max_total_exposure → × 0.5
    노출도 > 0.6               → × 0.75   (위 조건과 중복 적용하지 않음)
    최종 비중은 max_position_size 이하로 제한

[ 고정 비중 ]
    신뢰도 >0.8: 22.5%, >0.65: 15%, 그 외: 10.5%

[ 호출하는 곳 ]
    - backtest/engine.py에서 대기 매수 주문 체결 직전
      (strategy.calculate_position_size() 경유)
"""

import logging
from datetime import date
from typing import Mapping

from signal_backtest.core.data_provider import Bar
from signal_backtest.core.trading_strategy import StrategyParams
from signal_backtest.data.portfolio import Position

logger = logging.getLogger("signal_backtest.risk")

BASE_POSITION = 0.15
HIGH_EXPOSURE = 0.6


def calculate_current_exposure(
    positions: Mapping[str, Position],
    cash: float,
    bars_by_date: Mapping[str, Mapping[date, Bar]],
    current_date: date,
) -> float:
    """현재 총 노출도 (0~1).

    당일 시세가 없는 보유 종목은 평가액 0으로 취급한다 (오류 아님).
    """
    position_value = 0.0
    for ticker, position in positions.items():
        bar = bars_by_date.get(ticker, {}).get(current_date)
        if bar is not None:
            position_value += bar.close * position.quantity

    total_capital = cash + position_value
    if total_capital <= 0:
        return 0.0

    exposure = position_value / total_capital
    logger.debug(
        f"노출도: 보유 {position_value:,.0f} / 총자본 {total_capital:,.0f} = {exposure:.1%}"
    )
    return exposure


def calculate_position_size(
    confidence: float,
    current_exposure: float,
    params: StrategyParams,
) -> float:
    """신뢰도/노출도 기반 투자 비중 (가용 현금 대비)."""
    if not params.dynamic_position_size:
        if confidence > 0.8:
            return 0.225
        if confidence > 0.65:
            return 0.15
        return 0.105

    if confidence > 0.8:
        multiplier = 1.5
    elif confidence > 0.65:
        multiplier = 1.0
    else:
        multiplier = 0.7

    size = BASE_POSITION * multiplier

    # 노출도 리스크 조정: 먼저 해당하는 구간 하나만 적용
    if current_exposure > params.max_total_exposure:
        size *= 0.5
    elif current_exposure > HIGH_EXPOSURE:
        size *= 0.75

    final_size = min(size, params.max_position_size)
    logger.debug(
        f"투자 비중: 신뢰도 {confidence:.1%}, 노출도 {current_exposure:.1%} → {final_size:.1%}"
    )
    return final_size
