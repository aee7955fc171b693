"""
T+1 대기 주문 모듈.

[ 역할 ]
    시그널 발생일(T)에 생성되어 다음 거래일(T+1) 시가에 체결되는 주문을 표현.
    종목당 방향별로 대기 주문은 최대 1개.

[ 주문 생명주기 ]
    미보유 ─(매수 시그널)→ 매수 대기 ─(체결)→ 보유 ─(매도 시그널)→ 매도 대기 ─(체결)→ 미보유

[ 다음 거래일 ]
    전 종목 거래일 합집합에서 시그널일 직후의 날짜.
    휴장일(모든 종목 데이터 없음)은 자연스럽게 건너뛴다.
    없으면 None (백테스트 종료 시 미체결 주문으로 보고).
"""

import copy
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

from signal_backtest.data.portfolio import Position


def next_trading_day(trading_dates: Sequence[date], current_date: date) -> date | None:
    """정렬된 거래일 목록에서 current_date 직후 거래일. 없으면 None."""
    i = bisect_right(trading_dates, current_date)
    if i < len(trading_dates):
        return trading_dates[i]
    return None


@dataclass
class PendingBuyOrder:
    ticker: str
    signal_date: date
    target_execution_date: date | None
    confidence: float
    reason: str = ""
    signal_price: float = 0.0   # 시그널일 종가 (참고용)

    def is_due(self, current_date: date) -> bool:
        return self.target_execution_date is not None and self.target_execution_date <= current_date

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": "BUY",
            "ticker": self.ticker,
            "signal_date": self.signal_date,
            "target_execution_date": self.target_execution_date,
            "confidence": self.confidence,
            "reason": self.reason,
        }


@dataclass
class PendingSellOrder:
    """매도 대기 주문. position은 시그널 시점의 복사본이다."""
    ticker: str
    signal_date: date
    target_execution_date: date | None
    position: Position
    reason: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_signal(
        cls,
        position: Position,
        signal_date: date,
        target_execution_date: date | None,
        reason: str,
        metadata: dict[str, Any] | None = None,
    ) -> "PendingSellOrder":
        # 라이브 포지션은 다음 날까지 계속 갱신되므로 시그널 시점 상태를 고정
        return cls(
            ticker=position.ticker,
            signal_date=signal_date,
            target_execution_date=target_execution_date,
            position=copy.copy(position),
            reason=reason,
            metadata=dict(metadata or {}),
        )

    def is_due(self, current_date: date) -> bool:
        return self.target_execution_date is not None and self.target_execution_date <= current_date

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": "SELL",
            "ticker": self.ticker,
            "signal_date": self.signal_date,
            "target_execution_date": self.target_execution_date,
            "quantity": self.position.quantity,
            "reason": self.reason,
        }
