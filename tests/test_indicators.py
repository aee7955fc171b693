"""
기술적 지표 계산 테스트.
"""
from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from signal_backtest.core.data_provider import bars_from_frame
from signal_backtest.core.trading_strategy import StrategyParams
from signal_backtest.indicators.technical import (
    calculate_atr,
    calculate_indicators,
    calculate_macd,
    calculate_rsi,
)

from conftest import make_frame


def _random_walk(n: int = 200, seed: int = 7) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    closes = 100 * np.cumprod(1 + rng.normal(0, 0.03, n))
    return pd.DataFrame({
        "date": [date(2024, 1, 1) + timedelta(days=i) for i in range(n)],
        "open": closes * 0.995,
        "high": closes * 1.01,
        "low": closes * 0.98,
        "close": closes,
        "volume": rng.integers(1_000, 10_000, n).astype(float),
    })


class TestRsi:
    """calculate_rsi() 테스트"""

    def test_constant_gain_seed_is_100(self):
        """15개 봉이 매일 1씩 상승하면 14번째 인덱스 RSI는 100"""
        close = pd.Series([100.0 + i for i in range(15)])
        result = calculate_rsi(close, 14)

        assert result["rsi"].iloc[14] == 100.0
        assert result["avg_loss"].iloc[14] == 0.0
        assert result["avg_gain"].iloc[14] == pytest.approx(1.0)
        assert result["rsi"].iloc[:14].isna().all()

    def test_bounds(self):
        """RSI는 항상 0 ~ 100"""
        df = _random_walk()
        rsi = calculate_rsi(df["close"], 14)["rsi"].dropna()

        assert len(rsi) == len(df) - 14
        assert (rsi >= 0).all()
        assert (rsi <= 100).all()

    def test_wilder_smoothing(self):
        """시드 이후 avg = prev * (1 - 1/p) + x / p"""
        close = pd.Series([10.0, 11.0, 10.5, 11.5, 11.0, 12.0])
        result = calculate_rsi(close, 3)

        # 변화량: +1, -0.5, +1, -0.5, +1
        seed_gain = (1.0 + 0 + 1.0) / 3
        seed_loss = 0.5 / 3
        assert result["avg_gain"].iloc[3] == pytest.approx(seed_gain)
        assert result["avg_loss"].iloc[3] == pytest.approx(seed_loss)
        assert result["avg_loss"].iloc[4] == pytest.approx(seed_loss * 2 / 3 + 0.5 / 3)
        assert result["avg_gain"].iloc[4] == pytest.approx(seed_gain * 2 / 3)

    def test_too_short(self):
        """기간보다 짧으면 전부 결측"""
        result = calculate_rsi(pd.Series([1.0, 2.0, 3.0]), 14)
        assert result["rsi"].isna().all()


class TestMacd:
    """calculate_macd() 테스트"""

    def test_histogram_identity(self):
        """히스토그램 == MACD - 시그널"""
        df = _random_walk()
        result = calculate_macd(df["close"], 12, 26, 9)
        valid = result.dropna(subset=["macd"])

        assert np.allclose(valid["macd_histogram"], valid["macd"] - valid["macd_signal"])

    def test_first_valid_index(self):
        """MACD는 slow-1 인덱스부터 유효, 시그널선은 첫 MACD 값으로 시드"""
        df = _random_walk(60)
        result = calculate_macd(df["close"], 12, 26, 9)

        assert result["macd"].iloc[:25].isna().all()
        assert not np.isnan(result["macd"].iloc[25])
        assert result["macd_signal"].iloc[25] == result["macd"].iloc[25]
        assert result["macd_histogram"].iloc[25] == 0.0

    def test_ema_seeded_at_first_close(self):
        close = pd.Series([10.0, 20.0])
        result = calculate_macd(close, 3, 5, 2)

        assert result["ema_fast"].iloc[0] == 10.0
        assert result["ema_fast"].iloc[1] == pytest.approx(10.0 + (20.0 - 10.0) * 0.5)
        assert result["ema_slow"].iloc[1] == pytest.approx(10.0 + (20.0 - 10.0) / 3)


class TestIndicatorFrame:
    """calculate_indicators() 테스트"""

    def test_moving_averages_need_full_window(self):
        df = make_frame(30)
        result = calculate_indicators(df, StrategyParams())

        assert np.isnan(result["ma5"].iloc[3])
        assert result["ma5"].iloc[4] == pytest.approx(df["close"].iloc[:5].mean())
        assert np.isnan(result["ma20"].iloc[18])
        assert result["ma20"].iloc[19] == pytest.approx(df["close"].iloc[:20].mean())

    def test_ma60_only_when_enabled(self):
        df = make_frame(70)
        off = calculate_indicators(df, StrategyParams())
        on = calculate_indicators(df, StrategyParams(enable_ma60=True))

        assert "ma60" not in off.columns
        assert on["ma60"].iloc[59] == pytest.approx(df["close"].iloc[:60].mean())
        assert bars_from_frame(off)[65].ma60 is None

    def test_volume_ratio(self):
        df = make_frame(25, volume=500.0)
        df.loc[22, "volume"] = 1000.0
        result = calculate_indicators(df, StrategyParams())

        assert np.isnan(result["volume_ratio"].iloc[18])
        assert result["volume_ratio"].iloc[19] == pytest.approx(1.0)
        expected = 1000.0 / ((19 * 500.0 + 1000.0) / 20)
        assert result["volume_ratio"].iloc[22] == pytest.approx(expected)

    def test_atr_starts_at_period(self):
        df = make_frame(30)
        atr = calculate_atr(df, 14)

        assert atr.iloc[:14].isna().all()
        # 고가-저가 2.0, 전일 종가 대비 갭은 더 작음
        assert atr.iloc[14] == pytest.approx(2.0)

    def test_price_momentum(self):
        df = make_frame(10)
        result = calculate_indicators(df, StrategyParams(price_momentum_period=5))

        assert np.isnan(result["price_momentum"].iloc[4])
        expected = (df["close"].iloc[5] - df["close"].iloc[0]) / df["close"].iloc[0]
        assert result["price_momentum"].iloc[5] == pytest.approx(expected)

    def test_optional_indicators_disabled(self):
        df = make_frame(30)
        result = calculate_indicators(
            df, StrategyParams(enable_atr_stop=False, enable_price_momentum=False)
        )
        bar = bars_from_frame(result)[-1]

        assert bar.atr is None
        assert bar.price_momentum is None

    def test_input_not_mutated(self):
        df = make_frame(40)
        before = df.copy()
        calculate_indicators(df, StrategyParams())

        pd.testing.assert_frame_equal(df, before)

    def test_missing_values_become_none(self):
        bars = bars_from_frame(calculate_indicators(make_frame(40), StrategyParams()))

        assert bars[0].rsi is None
        assert bars[0].macd is None
        assert bars[0].date == date(2024, 1, 1)
        assert bars[39].rsi is not None
        assert bars[39].macd_signal is not None
