"""
포트폴리오 관리 모듈.

[ 역할 ]
    현금, 보유 종목(Position), 거래 기록(TradeRecord), 일별 자산(EquityPoint)을
    통합 관리. 백테스트 엔진이 T+1 체결 시 이 클래스를 통해 상태를 갱신.

[ 주요 클래스 ]
    Position    - 종목별 진입 정보 + 추적 손절/ATR 손절 상태
    TradeRecord - 개별 체결 내역 (매수/매도, 비용 차감 후 손익 포함)
    EquityPoint - 일별 총자산 = 현금 + 보유 평가액
    Portfolio   - 전체 포트폴리오 (현금 + 포지션 + 거래내역 + 자산곡선)

[ 거래 비용 ]
    매수: 체결금액 × (1 + buy_cost_rate)        기본 0.1425% 수수료
    매도: 체결금액 × (1 - sell_cost_rate)       기본 0.1425% 수수료 + 0.3% 거래세

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine에서 open_position()/close_position() 호출
    - backtest/metrics.py에서 portfolio.trade_history / equity_curve로 성과 계산
"""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any


BUY = "BUY"
SELL = "SELL"


@dataclass
class Position:
    """보유 포지션. 엔진이 종목별로 소유하며 매도 체결 시 삭제된다."""
    ticker: str
    entry_date: date
    entry_price: float            # T+1 시가
    quantity: int
    invest_amount: float          # 수수료 포함 실제 투입 금액
    confidence: float = 0.0
    buy_signal_date: date | None = None
    high_price_since_entry: float = 0.0   # 진입 후 최고 종가 (감소하지 않음)
    trailing_stop_price: float = 0.0
    atr_stop_price: float | None = None
    entry_atr: float | None = None

    def holding_days(self, current_date: date) -> int:
        """진입일부터 달력 기준 보유일수."""
        return (current_date - self.entry_date).days

    def profit_rate(self, price: float) -> float:
        """진입가 대비 수익률 (비용 미반영)."""
        return (price - self.entry_price) / self.entry_price


@dataclass(frozen=True)
class TradeRecord:
    """개별 체결 기록. metrics.py에서 승률/수익 계산에 사용됨."""
    ticker: str
    action: str           # "BUY" or "SELL"
    date: date            # 실제 체결일
    price: float          # 체결가 (체결일 시가)
    quantity: int
    amount: float         # 비용 반영 금액 (매수: 지출, 매도: 수령)
    profit: float = 0.0        # 실현 손익 (매도 시에만)
    profit_rate: float = 0.0   # 투입금 대비 손익률 (매도 시에만, 소수)
    holding_days: int = 0
    confidence: float = 0.0
    reason: str = ""
    entry_price: float | None = None
    entry_date: date | None = None
    invest_amount: float = 0.0
    # T+1 지연 때문에 시그널일과 실제 체결일을 분리 기록
    buy_signal_date: date | None = None
    sell_signal_date: date | None = None
    actual_buy_date: date | None = None
    actual_sell_date: date | None = None

    @property
    def is_sell(self) -> bool:
        return self.action == SELL

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리 변환."""
        return asdict(self)


@dataclass(frozen=True)
class EquityPoint:
    """일별 자산 기록. value == cash + positions."""
    date: date
    value: float
    cash: float
    positions: float


class Portfolio:
    """포트폴리오 관리 클래스.

    BacktestEngine이 소유하며, 체결 결과를 반영.
    trade_history / equity_curve는 백테스트 종료 후 metrics 계산에 사용됨.
    """

    def __init__(
        self,
        initial_cash: float,
        buy_cost_rate: float = 0.001425,
        sell_cost_rate: float = 0.004425,
    ):
        self.initial_cash = initial_cash
        self.cash = initial_cash                      # 가용 현금
        self.buy_cost_rate = buy_cost_rate
        self.sell_cost_rate = sell_cost_rate
        self.positions: dict[str, Position] = {}      # ticker → Position
        self.trade_history: list[TradeRecord] = []    # 전체 체결 내역
        self.equity_curve: list[EquityPoint] = []

    @property
    def buy_multiplier(self) -> float:
        return 1 + self.buy_cost_rate

    @property
    def sell_multiplier(self) -> float:
        return 1 - self.sell_cost_rate

    def has_position(self, ticker: str) -> bool:
        return ticker in self.positions

    def get_position(self, ticker: str) -> Position | None:
        """종목 포지션 조회. 없으면 None."""
        return self.positions.get(ticker)

    def get_holding_tickers(self) -> list[str]:
        """보유 종목 코드 목록 (진입 순서)."""
        return list(self.positions.keys())

    def open_position(
        self,
        ticker: str,
        price: float,
        invest_budget: float,
        execution_date: date,
        confidence: float = 0.0,
        signal_date: date | None = None,
        reason: str = "",
        trailing_stop_percent: float = 0.0,
        atr: float | None = None,
        atr_multiplier: float = 0.0,
    ) -> Position | None:
        """매수 체결.

        수량 = floor(투자예산 / (시가 × 매수비용배수)).
        수량이 0이거나 실제 비용이 현금을 넘으면 체결하지 않고 None 반환 (부분 체결 없음).
        """
        quantity = int(invest_budget // (price * self.buy_multiplier))
        if quantity <= 0:
            return None

        cost = price * quantity * self.buy_multiplier
        if cost > self.cash:
            return None

        position = Position(
            ticker=ticker,
            entry_date=execution_date,
            entry_price=price,
            quantity=quantity,
            invest_amount=cost,
            confidence=confidence,
            buy_signal_date=signal_date,
            high_price_since_entry=price,
            trailing_stop_price=price * (1 - trailing_stop_percent),
            atr_stop_price=price - atr_multiplier * atr if atr is not None else None,
            entry_atr=atr,
        )
        self.positions[ticker] = position
        self.cash -= cost

        self.trade_history.append(TradeRecord(
            ticker=ticker,
            action=BUY,
            date=execution_date,
            price=price,
            quantity=quantity,
            amount=cost,
            confidence=confidence,
            reason=reason,
            entry_price=price,
            entry_date=execution_date,
            invest_amount=cost,
            buy_signal_date=signal_date,
            actual_buy_date=execution_date,
        ))
        return position

    def close_position(
        self,
        snapshot: Position,
        price: float,
        execution_date: date,
        signal_date: date | None = None,
        reason: str = "",
    ) -> TradeRecord:
        """매도 체결. 시그널 시점에 복사해 둔 포지션 스냅샷 기준으로 손익 계산.

        사유 뒤에 비용 반영 실현 수익률을 덧붙인다.
        """
        amount = price * snapshot.quantity * self.sell_multiplier
        profit = amount - snapshot.invest_amount
        profit_rate = profit / snapshot.invest_amount if snapshot.invest_amount > 0 else 0.0
        holding_days = snapshot.holding_days(execution_date)
        if reason:
            reason = f"{reason}, 실현 수익률: {profit_rate:+.2%}"

        trade = TradeRecord(
            ticker=snapshot.ticker,
            action=SELL,
            date=execution_date,
            price=price,
            quantity=snapshot.quantity,
            amount=amount,
            profit=profit,
            profit_rate=profit_rate,
            holding_days=holding_days,
            confidence=snapshot.confidence,
            reason=reason,
            entry_price=snapshot.entry_price,
            entry_date=snapshot.entry_date,
            invest_amount=snapshot.invest_amount,
            buy_signal_date=snapshot.buy_signal_date,
            sell_signal_date=signal_date,
            actual_buy_date=snapshot.entry_date,
            actual_sell_date=execution_date,
        )
        self.trade_history.append(trade)
        self.cash += amount
        self.positions.pop(snapshot.ticker, None)
        return trade

    def position_value(self, prices: dict[str, float]) -> float:
        """보유 평가액. prices에 없는 종목 (아직 시세를 본 적 없음)은 0으로 계산."""
        total = 0.0
        for ticker, position in self.positions.items():
            if ticker in prices:
                total += prices[ticker] * position.quantity
        return total

    def record_equity(self, current_date: date, prices: dict[str, float]) -> EquityPoint:
        """종목별 최근 종가 기준 평가 후 자산곡선에 추가."""
        positions_value = self.position_value(prices)
        point = EquityPoint(
            date=current_date,
            value=self.cash + positions_value,
            cash=self.cash,
            positions=positions_value,
        )
        self.equity_curve.append(point)
        return point

    @property
    def final_value(self) -> float:
        if not self.equity_curve:
            return self.initial_cash
        return self.equity_curve[-1].value

    def get_summary(self) -> dict[str, Any]:
        """포트폴리오 요약."""
        return {
            "initial_cash": self.initial_cash,
            "current_cash": self.cash,
            "final_value": self.final_value,
            "num_holdings": len(self.positions),
            "num_trades": len(self.trade_history),
        }
