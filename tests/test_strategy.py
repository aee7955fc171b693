"""
RSI + MACD 전략 진입/청산 판단 테스트.
"""
from datetime import date, timedelta

import pytest

from signal_backtest.core.trading_strategy import SignalType, StrategyParams
from signal_backtest.strategies import create_strategy, list_strategies
from signal_backtest.strategies.rsi_macd_strategy import RsiMacdStrategy

from conftest import make_bar, make_position


def _entry_bars(**overrides):
    """모든 진입 조건을 통과하는 (전일, 당일) Bar."""
    previous = make_bar(date(2024, 1, 9), rsi=25.0)
    values = dict(
        open=100.0,
        close=105.0,
        rsi=30.0,
        macd=0.5,
        macd_signal=0.3,
        macd_histogram=0.2,
        volume_ratio=2.0,
        price_momentum=0.02,
        ma5=104.0,
        ma20=100.0,
    )
    values.update(overrides)
    return previous, make_bar(date(2024, 1, 10), **values)


def _day(n: int) -> date:
    return date(2024, 1, 1) + timedelta(days=n)


class TestRegistry:
    """전략 레지스트리 테스트"""

    def test_registered(self):
        assert "rsi_macd" in list_strategies()

    def test_create_with_dict(self):
        strategy = create_strategy("rsi_macd", {"rsi_oversold": 30, "unknown_key": 1})
        assert isinstance(strategy, RsiMacdStrategy)
        assert strategy.params.rsi_oversold == 30.0

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="알 수 없는 전략"):
            create_strategy("nope")


class TestShouldBuy:
    """should_buy() 테스트"""

    def test_all_conditions_pass(self):
        strategy = RsiMacdStrategy()
        previous, current = _entry_bars()

        signal = strategy.should_buy(current, previous, "AAA")

        assert signal.signal_type == SignalType.BUY
        assert signal.confidence == pytest.approx(0.95)
        assert signal.price == 105.0
        assert "신뢰도" in signal.reason

    def test_insufficient_data(self):
        strategy = RsiMacdStrategy()
        previous, current = _entry_bars(macd_signal=None)

        signal = strategy.should_buy(current, previous)
        assert signal.signal_type == SignalType.HOLD
        assert signal.reason == "데이터 부족"

    @pytest.mark.parametrize("overrides, expected", [
        ({"rsi": 40.0}, "RSI 조건"),
        ({"macd": 0.3}, "MACD"),
        ({"rsi": 20.0}, "RSI 반등"),
        ({"volume_ratio": 1.0}, "거래량"),
        ({"volume_ratio": None}, "거래량"),
        ({"close": 100.0}, "음봉"),
        ({"price_momentum": -0.01}, "모멘텀"),
    ])
    def test_rejections(self, overrides, expected):
        strategy = RsiMacdStrategy()
        previous, current = _entry_bars(**overrides)

        signal = strategy.should_buy(current, previous)

        assert signal.signal_type == SignalType.HOLD
        assert expected in signal.reason

    def test_no_previous_bar(self):
        strategy = RsiMacdStrategy()
        _, current = _entry_bars()

        signal = strategy.should_buy(current, None)
        assert "RSI 반등" in signal.reason

    def test_lenient_mode_ignores_momentum(self):
        strategy = RsiMacdStrategy(StrategyParams(hierarchical_decision=False))
        previous, current = _entry_bars(price_momentum=-0.01)

        assert strategy.should_buy(current, previous).is_buy

    def test_confidence_threshold(self):
        strategy = RsiMacdStrategy(StrategyParams(confidence_threshold=0.99))
        previous, current = _entry_bars()

        signal = strategy.should_buy(current, previous)
        assert signal.signal_type == SignalType.HOLD
        assert "신뢰도 부족" in signal.reason


class TestShouldSell:
    """should_sell() 테스트"""

    def test_minimum_holding_protection(self):
        """보호 기간에는 -1.5 × 손절률 이하일 때만 청산"""
        strategy = RsiMacdStrategy(StrategyParams(stop_loss=0.06, min_holding_days=5))

        position = make_position()
        mild = make_bar(_day(3), close=100.0 * (1 - 0.06 * 1.2))
        assert not strategy.should_sell(mild, position, 3).is_sell

        position = make_position()
        severe = make_bar(_day(3), close=100.0 * (1 - 0.06 * 1.6))
        signal = strategy.should_sell(severe, position, 3)
        assert signal.is_sell
        assert "보호 기간" in signal.reason

    def test_stop_loss_after_protection(self):
        strategy = RsiMacdStrategy()
        signal = strategy.should_sell(make_bar(_day(10), close=93.0), make_position(), 10)

        assert signal.is_sell
        assert signal.reason == "손절"
        assert signal.metadata["profit_rate"] == pytest.approx(-0.07)

    def test_trailing_stop(self):
        strategy = RsiMacdStrategy()
        position = make_position(high_price_since_entry=110.0)

        signal = strategy.should_sell(make_bar(_day(2), close=104.0), position, 2)

        assert signal.is_sell
        assert "추적 손절" in signal.reason
        assert position.trailing_stop_price == pytest.approx(110.0 * 0.95)

    def test_trailing_not_activated_below_threshold(self):
        strategy = RsiMacdStrategy()
        position = make_position(high_price_since_entry=102.0)

        assert not strategy.should_sell(make_bar(_day(2), close=96.0), position, 2).is_sell
        assert position.trailing_stop_price == 95.0

    def test_atr_stop(self):
        strategy = RsiMacdStrategy()
        position = make_position(atr_stop_price=97.0)

        signal = strategy.should_sell(make_bar(_day(1), close=96.5), position, 1)
        assert signal.reason == "ATR 손절"

    def test_atr_stop_disabled(self):
        strategy = RsiMacdStrategy(StrategyParams(enable_atr_stop=False))
        position = make_position(atr_stop_price=97.0)

        assert not strategy.should_sell(make_bar(_day(1), close=96.5), position, 1).is_sell

    def test_take_profit_inside_protection(self):
        strategy = RsiMacdStrategy()
        signal = strategy.should_sell(make_bar(_day(1), close=113.0), make_position(), 1)

        assert signal.reason == "익절"

    def test_technical_exits_wait_for_protection(self):
        strategy = RsiMacdStrategy()
        bar = make_bar(_day(3), close=101.0, rsi=75.0)

        assert not strategy.should_sell(bar, make_position(), 3).is_sell
        assert strategy.should_sell(bar, make_position(), 6).reason == "RSI 과매수"

    def test_macd_dead_cross(self):
        strategy = RsiMacdStrategy()
        bar = make_bar(_day(10), close=101.0, rsi=50.0, macd=-0.2, macd_signal=0.1, macd_histogram=-0.3)

        assert strategy.should_sell(bar, make_position(), 10).reason == "MACD 데드크로스"

    def test_max_holding(self):
        strategy = RsiMacdStrategy()
        bar = make_bar(_day(31), close=101.0, rsi=50.0)

        assert not strategy.should_sell(bar, make_position(), 30).is_sell
        assert "30일" in strategy.should_sell(bar, make_position(), 31).reason

    def test_high_price_never_decreases(self):
        strategy = RsiMacdStrategy()
        position = make_position()

        strategy.should_sell(make_bar(_day(1), close=102.0), position, 1)
        strategy.should_sell(make_bar(_day(2), close=101.0), position, 2)

        assert position.high_price_since_entry == 102.0

    def test_no_exit_has_empty_reason(self):
        strategy = RsiMacdStrategy()
        signal = strategy.should_sell(make_bar(_day(10), close=101.0, rsi=50.0), make_position(), 10)

        assert signal.signal_type == SignalType.HOLD
        assert signal.reason == ""
