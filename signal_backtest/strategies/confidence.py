"""
매수 신뢰도 계산 모듈.

[ 역할 ]
    하루치 지표 상태를 0 ~ 0.95 사이의 신뢰도 점수로 변환.
    순수 함수이며 같은 입력에는 항상 같은 값을 반환한다.

[ 채점 항목 ]  (엄격 모드 = use_python_logic)
    기본 점수       엄격 0.30 / 완화 0.45
    RSI 과매도 깊이  엄격: <20 +0.35, <25 +0.30, <30 +0.25, <35 +0.15, 그 외 -0.10
                    완화: <25 +0.25, <35 +0.20, <45 +0.15
    RSI 반등 폭      >3 +0.15, >1 +0.10, 그 외 상승 +0.05
    MACD 골든크로스  엄격: 신규 교차+히스토그램 양수 +0.25, 신규 교차 +0.20,
                          히스토그램 양수 +0.15, 유지 +0.10
                    완화: +0.15
    거래량           엄격: >1.5배 +0.15, >기준 +0.10, 부족 -0.05
                    완화: >기준 +0.10
    이동평균 배열    엄격: 완전 정배열(MA60) +0.15, 종가>MA5>MA20 +0.12,
                          종가>MA20 +0.08, 역배열 -0.05
                    완화: 종가>MA20 +0.08
    가격 모멘텀      >기준 +0.10, >0 +0.05, <-기준 -0.05 (enable_price_momentum)

[ 결측 지표 ]
    값이 None인 지표는 해당 조건을 만족하지 않은 것으로 본다 (0으로 대체하지 않음).

[ 호출하는 곳 ]
    - strategies/rsi_macd_strategy.py::RsiMacdStrategy.should_buy()
"""

import logging

from signal_backtest.core.data_provider import Bar
from signal_backtest.core.trading_strategy import StrategyParams

logger = logging.getLogger("signal_backtest.strategy")

MAX_CONFIDENCE = 0.95


def _above(*values: float | None) -> bool:
    """values[0] > values[1] > ... 여부. 하나라도 None이면 False."""
    if any(v is None for v in values):
        return False
    return all(a > b for a, b in zip(values, values[1:]))


def _rsi_depth_score(rsi: float, strict: bool) -> float:
    if strict:
        if rsi < 20:
            return 0.35   # 극단적 과매도
        if rsi < 25:
            return 0.30
        if rsi < 30:
            return 0.25
        if rsi < 35:
            return 0.15
        return -0.10
    if rsi < 25:
        return 0.25
    if rsi < 35:
        return 0.20
    if rsi < 45:
        return 0.15
    return 0.0


def _rsi_rebound_score(rsi: float, previous: Bar | None) -> float:
    if previous is None or previous.rsi is None or rsi <= previous.rsi:
        return 0.0
    improvement = rsi - previous.rsi
    if improvement > 3:
        return 0.15
    if improvement > 1:
        return 0.10
    return 0.05


def is_new_golden_cross(current: Bar, previous: Bar | None) -> bool:
    """이번 봉에서 MACD가 시그널선을 처음 상향 돌파했는지."""
    if not _above(current.macd, current.macd_signal):
        return False
    if previous is None or previous.macd is None or previous.macd_signal is None:
        return False
    return previous.macd <= previous.macd_signal


def _macd_score(current: Bar, previous: Bar | None, strict: bool) -> float:
    if not _above(current.macd, current.macd_signal):
        return 0.0
    if not strict:
        return 0.15

    new_cross = is_new_golden_cross(current, previous)
    positive_histogram = current.macd_histogram is not None and current.macd_histogram > 0
    if new_cross and positive_histogram:
        return 0.25
    if new_cross:
        return 0.20
    if positive_histogram:
        return 0.15
    return 0.10


def _volume_score(volume_ratio: float | None, threshold: float, strict: bool) -> float:
    ratio = volume_ratio if volume_ratio is not None else 0.0
    if strict:
        if ratio > threshold * 1.5:
            return 0.15
        if ratio > threshold:
            return 0.10
        return -0.05
    return 0.10 if ratio > threshold else 0.0


def _trend_score(current: Bar, params: StrategyParams, strict: bool) -> float:
    if not strict:
        return 0.08 if _above(current.close, current.ma20) else 0.0

    if params.enable_ma60 and _above(current.close, current.ma5, current.ma20, current.ma60):
        return 0.15
    if _above(current.close, current.ma5, current.ma20):
        return 0.12
    if _above(current.close, current.ma20):
        return 0.08
    return -0.05


def _momentum_score(momentum: float | None, params: StrategyParams) -> float:
    if not params.enable_price_momentum or momentum is None:
        return 0.0
    threshold = params.price_momentum_threshold
    if momentum > threshold:
        return 0.10
    if momentum > 0:
        return 0.05
    if momentum < -threshold:
        return -0.05
    return 0.0


def calculate_confidence(
    current: Bar,
    params: StrategyParams,
    previous: Bar | None = None,
) -> float:
    """진입 신뢰도 계산.

    Args:
        current: 당일 Bar (지표 포함)
        params: 전략 파라미터
        previous: 전일 Bar (없으면 반등/신규 교차 가점 없음)

    Returns:
        0.0 ~ 0.95 사이 신뢰도
    """
    strict = params.use_python_logic
    confidence = 0.30 if strict else 0.45

    if current.rsi is not None:
        confidence += _rsi_depth_score(current.rsi, strict)
        confidence += _rsi_rebound_score(current.rsi, previous)
    confidence += _macd_score(current, previous, strict)
    confidence += _volume_score(current.volume_ratio, params.volume_threshold, strict)
    confidence += _trend_score(current, params, strict)
    confidence += _momentum_score(current.price_momentum, params)

    final = max(0.0, min(confidence, MAX_CONFIDENCE))
    logger.debug(f"신뢰도 {final:.1%} (원점수 {confidence:.2f}, RSI {current.rsi})")
    return final
