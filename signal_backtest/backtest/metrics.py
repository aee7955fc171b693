"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    백테스트 결과(거래기록 + 자산곡선)를 받아 성과 지표를 계산.
    calculate_metrics() / calculate_symbol_performance()가 핵심.
    모든 비율은 소수 (0.05 = 5%).

[ 계산하는 지표 ]
    - 총 수익률 / 연환산 수익률 (요청 기간의 달력 일수 기준)
    - 샤프 비율 (위험 대비 수익)
    - MDD (최대 낙폭)
    - 승률, 평균/최대 수익률, 평균/최대 손실률, 수익 팩터
    - 평균 보유일수, 연속 승/패
    - 종목별 거래 수 / 승률 / 손익 / 투입금 / 수익률

[ 수익 팩터 ]
    총이익 / 총손실. 손실이 0이고 이익이 있으면 999, 둘 다 0이면 0.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest() 완료 시 호출
    - backtest/runner.py에서 종목별 성과 계산

[ 입력 데이터 ]
    - trade_history: data/portfolio.py::Portfolio.trade_history (매도 거래만 분석)
    - equity_curve: 엔진이 매일 기록한 EquityPoint 리스트
"""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Sequence

import numpy as np

from signal_backtest.data.portfolio import EquityPoint, TradeRecord

PROFIT_FACTOR_NO_LOSS = 999.0
DAYS_PER_YEAR = 365.25
TRADING_DAYS_PER_YEAR = 252
RISK_FREE_RATE = 0.03


@dataclass
class BacktestMetrics:
    """백테스트 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    initial_capital: float = 0.0
    final_capital: float = 0.0
    total_profit: float = 0.0         # 최종 자산 - 초기 자금
    total_return: float = 0.0         # 총 수익률
    annualized_return: float = 0.0    # 연환산 수익률
    sharpe_ratio: float = 0.0         # 샤프 비율 (높을수록 좋음, 1 이상 양호)
    max_drawdown: float = 0.0         # 최대 낙폭 MDD
    total_trades: int = 0             # 매도 거래 횟수
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0              # 수익 거래 평균 수익률
    avg_loss: float = 0.0             # 손실 거래 평균 수익률 (음수 또는 0)
    max_win: float = 0.0
    max_loss: float = 0.0
    profit_factor: float = 0.0        # 총이익 / 총손실 (1 이상이면 수익)
    avg_holding_days: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리 변환."""
        return asdict(self)

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            "백테스트 성과 리포트",
            "=" * 50,
            f"초기 자금:       {self.initial_capital:>14,.0f}",
            f"최종 자산:       {self.final_capital:>14,.0f}",
            f"총 수익률:       {self.total_return:>14.2%}",
            f"연환산 수익률:    {self.annualized_return:>14.2%}",
            f"샤프 비율:       {self.sharpe_ratio:>14.2f}",
            f"최대 낙폭(MDD):  {self.max_drawdown:>14.2%}",
            "-" * 50,
            f"총 거래 횟수:    {self.total_trades:>14d}",
            f"승률:            {self.win_rate:>14.2%}",
            f"수익 거래:       {self.winning_trades:>14d}",
            f"손실 거래:       {self.losing_trades:>14d}",
            f"평균 수익률:     {self.avg_win:>14.2%}",
            f"평균 손실률:     {self.avg_loss:>14.2%}",
            f"최대 수익률:     {self.max_win:>14.2%}",
            f"최대 손실률:     {self.max_loss:>14.2%}",
            f"수익 팩터:       {self.profit_factor:>14.2f}",
            f"평균 보유일수:   {self.avg_holding_days:>14.1f}",
            "-" * 50,
            f"최대 연속 수익:  {self.max_consecutive_wins:>14d}",
            f"최대 연속 손실:  {self.max_consecutive_losses:>14d}",
            "=" * 50,
        ]
        return "\n".join(lines)


def calculate_profit_factor(sell_trades: Sequence[TradeRecord]) -> float:
    """총이익 / 총손실 (금액 기준)."""
    gains = sum(abs(t.profit) for t in sell_trades if t.profit > 0)
    losses = sum(abs(t.profit) for t in sell_trades if t.profit <= 0)
    if losses > 0:
        return gains / losses
    return PROFIT_FACTOR_NO_LOSS if gains > 0 else 0.0


def calculate_annualized_return(
    final_value: float,
    initial_cash: float,
    start_date: date,
    end_date: date,
) -> float:
    """(최종/초기)^(365.25/기간일수) - 1. 기간이 0일 이하이면 0."""
    days = (end_date - start_date).days
    if days <= 0 or initial_cash <= 0 or final_value <= 0:
        return 0.0
    return (final_value / initial_cash) ** (DAYS_PER_YEAR / days) - 1


def calculate_max_drawdown(values: Sequence[float]) -> float:
    """고점 대비 최대 하락률."""
    if not values:
        return 0.0
    peak = values[0]
    max_dd = 0.0
    for value in values:
        if value > peak:
            peak = value
        if peak > 0:
            max_dd = max(max_dd, (peak - value) / peak)
    return max_dd


def calculate_sharpe_ratio(values: Sequence[float]) -> float:
    """일별 수익률 기준 연환산 샤프 비율."""
    # 샤프 = (평균 초과수익 / 표준편차) * sqrt(252)
    daily_returns = []
    for i in range(1, len(values)):
        if values[i - 1] > 0:
            daily_returns.append((values[i] - values[i - 1]) / values[i - 1])

    if not daily_returns:
        return 0.0

    excess_returns = np.array(daily_returns) - RISK_FREE_RATE / TRADING_DAYS_PER_YEAR
    std = np.std(excess_returns)
    if std <= 0:
        return 0.0
    return float(np.mean(excess_returns) / std * np.sqrt(TRADING_DAYS_PER_YEAR))


def calculate_metrics(
    trade_history: Sequence[TradeRecord],
    equity_curve: Sequence[EquityPoint],
    initial_cash: float,
    start_date: date,
    end_date: date,
) -> BacktestMetrics:
    """성과 지표 계산. engine.py에서 백테스트 완료 후 호출됨.

    Args:
        trade_history: Portfolio.trade_history (매수+매도 전체)
        equity_curve: 일별 자산 기록
        initial_cash: 초기 자금
        start_date: 요청 시작일
        end_date: 요청 종료일
    """
    values = [point.value for point in equity_curve]
    final_value = values[-1] if values else initial_cash

    metrics = BacktestMetrics(initial_capital=initial_cash, final_capital=final_value)
    metrics.total_profit = final_value - initial_cash
    if initial_cash > 0:
        metrics.total_return = (final_value - initial_cash) / initial_cash
    metrics.annualized_return = calculate_annualized_return(
        final_value, initial_cash, start_date, end_date
    )
    metrics.sharpe_ratio = calculate_sharpe_ratio(values)
    metrics.max_drawdown = calculate_max_drawdown(values)

    # ─── 거래 기반 지표 (매도 거래만 분석) ─────────────────────────────────
    # 매수는 비용 발생일 뿐, 수익 실현은 매도 시에만 발생
    sell_trades = [t for t in trade_history if t.is_sell]
    metrics.total_trades = len(sell_trades)
    if not sell_trades:
        return metrics

    winners = [t.profit_rate for t in sell_trades if t.profit > 0]
    losers = [t.profit_rate for t in sell_trades if t.profit <= 0]

    metrics.winning_trades = len(winners)
    metrics.losing_trades = len(losers)
    metrics.win_rate = len(winners) / len(sell_trades)

    if winners:
        metrics.avg_win = sum(winners) / len(winners)
        metrics.max_win = max(winners)
    if losers:
        metrics.avg_loss = sum(losers) / len(losers)
        metrics.max_loss = min(losers)

    metrics.profit_factor = calculate_profit_factor(sell_trades)
    metrics.avg_holding_days = sum(t.holding_days for t in sell_trades) / len(sell_trades)

    # 연속 승패
    consecutive_wins = 0
    consecutive_losses = 0
    for t in sell_trades:
        if t.profit > 0:
            consecutive_wins += 1
            consecutive_losses = 0
            metrics.max_consecutive_wins = max(metrics.max_consecutive_wins, consecutive_wins)
        else:
            consecutive_losses += 1
            consecutive_wins = 0
            metrics.max_consecutive_losses = max(metrics.max_consecutive_losses, consecutive_losses)

    return metrics


def calculate_symbol_performance(
    trade_history: Sequence[TradeRecord],
    symbols: Sequence[str],
) -> list[dict[str, Any]]:
    """종목별 성과 (매도 거래 기준). symbols 순서를 유지."""
    performance = []
    for symbol in symbols:
        trades = [t for t in trade_history if t.is_sell and t.ticker == symbol]
        wins = [t for t in trades if t.profit > 0]
        total_profit = sum(t.profit for t in trades)
        total_investment = sum(t.invest_amount for t in trades)
        performance.append({
            "symbol": symbol,
            "trades": len(trades),
            "win_rate": len(wins) / len(trades) if trades else 0.0,
            "total_profit": total_profit,
            "total_investment": total_investment,
            "return_rate": total_profit / total_investment if total_investment > 0 else 0.0,
        })
    return performance
