"""
매매 전략 추상 클래스 및 전략 파라미터 정의.

[ 역할 ]
    매매 로직의 인터페이스를 정의.
    지표가 계산된 일봉(Bar)과 포지션 정보를 받아 진입/청산 시그널을 생성.

[ 구현체 ]
    - strategies/rsi_macd_strategy.py::RsiMacdStrategy (RSI + MACD 신뢰도 전략)

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine._process_symbol()에서
      매일 should_buy() / should_sell()을 호출하여 T+1 대기 주문 생성
    - 대기 매수 주문 체결 시 calculate_position_size()로 투자 비중 결정

[ 데이터 흐름 ]
    Bar(지표 포함) + 이전 Bar → should_buy() → Signal(BUY, confidence)
    Bar + Position + 보유일수 → should_sell() → Signal(SELL, reason)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from signal_backtest.core.data_provider import Bar
from signal_backtest.data.portfolio import Position


class SignalType(Enum):
    """전략이 반환하는 시그널 종류."""
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass
class Signal:
    """should_buy()/should_sell()의 반환값. 엔진에 전달되어 대기 주문으로 변환됨."""
    signal_type: SignalType
    ticker: str = ""
    price: float = 0.0       # 시그널 발생일 종가
    confidence: float = 0.0  # 매수 신뢰도 (매수 시에만)
    reason: str = ""         # 시그널 발생 사유 (HOLD는 거절 사유, 청산 없음이면 빈 문자열)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_buy(self) -> bool:
        return self.signal_type == SignalType.BUY

    @property
    def is_sell(self) -> bool:
        return self.signal_type == SignalType.SELL


@dataclass(frozen=True)
class StrategyParams:
    """백테스트 1회 실행 동안 변하지 않는 전략 파라미터.

    기본값은 기존 화면의 기본 설정값과 동일하다.
    비율 값은 모두 소수 (0.06 = 6%).
    """
    # 지표 기간
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    atr_period: int = 14
    atr_multiplier: float = 2.0
    price_momentum_period: int = 5

    # 임계값
    rsi_oversold: float = 35.0
    volume_threshold: float = 1.5
    price_momentum_threshold: float = 0.03
    confidence_threshold: float = 0.6

    # 리스크 한도
    stop_loss: float = 0.06
    stop_profit: float = 0.12
    max_position_size: float = 0.25
    max_total_exposure: float = 0.75
    min_holding_days: int = 5

    # 기능 토글
    enable_trailing_stop: bool = True
    enable_atr_stop: bool = True
    enable_price_momentum: bool = True
    enable_ma60: bool = False
    use_python_logic: bool = True       # 엄격한 신뢰도 채점
    hierarchical_decision: bool = True  # 엄격 모드에서 모멘텀 거부 조건까지 적용
    dynamic_position_size: bool = True

    # 추적 손절
    trailing_stop_percent: float = 0.05
    trailing_activate_percent: float = 0.03

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None = None) -> "StrategyParams":
        """딕셔너리에서 생성. 알 수 없는 키는 무시하고 타입은 기본값 기준으로 맞춘다."""
        data = data or {}
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            default = f.default
            value = data[f.name]
            if isinstance(default, bool):
                if isinstance(value, str):
                    value = value.strip().lower() in ("true", "yes", "1", "on")
                values[f.name] = bool(value)
            elif isinstance(default, int):
                values[f.name] = int(value)
            else:
                values[f.name] = float(value)
        return cls(**values)

    @property
    def strict_hierarchy(self) -> bool:
        """계층형 엄격 진입 판단 여부."""
        return self.use_python_logic and self.hierarchical_decision

    @property
    def warmup_bars(self) -> int:
        """MACD 시그널선이 안정되기까지 필요한 최소 봉 인덱스."""
        return self.macd_slow + self.macd_signal


class TradingStrategy(ABC):
    """매매 전략 추상 클래스.

    새 전략을 만들려면 이 클래스를 상속받아 3개 메서드를 구현하면 된다:
    - should_buy(): 진입 조건 판단 (신뢰도 포함)
    - should_sell(): 청산 조건 판단
    - calculate_position_size(): 투자 비중 결정
    """

    def __init__(self, name: str, params: StrategyParams | None = None):
        self.name = name
        self.params = params or StrategyParams()

    @abstractmethod
    def should_buy(
        self,
        current: Bar,
        previous: Bar | None,
        ticker: str = "",
    ) -> Signal:
        """진입 조건 판단.

        Returns:
            Signal: 통과 시 BUY(신뢰도 포함), 아니면 HOLD(거절 사유)
        """
        ...

    @abstractmethod
    def should_sell(
        self,
        current: Bar,
        position: Position,
        holding_days: int,
    ) -> Signal:
        """청산 조건 판단. position의 최고가/추적 손절가를 갱신할 수 있다.

        Returns:
            Signal: 청산 시 SELL(사유), 아니면 HOLD(빈 사유)
        """
        ...

    @abstractmethod
    def calculate_position_size(
        self,
        confidence: float,
        current_exposure: float,
    ) -> float:
        """투자 비중(가용 현금 대비 0~1) 계산."""
        ...
