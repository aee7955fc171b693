"""
기술적 지표 계산 모듈.

[ 역할 ]
    종목별 OHLCV DataFrame에 RSI, MACD, 이동평균, 거래량 비율, ATR, 가격 모멘텀을 추가.
    각 행의 지표는 자기 자신과 이전 행에만 의존 (미래 데이터 누출 없음).

[ 계산 방식 ]
    - RSI:  rsi_period 번째 변화량까지 단순평균으로 시드 → 이후 와일더 평활
            avg = prev * (1 - 1/p) + x / p
            avg_loss == 0 이면 RSI = 100
    - MACD: 첫 종가로 EMA 시드, ema = (close - prev) * k + prev, k = 2/(p+1)
            macd_slow - 1 번째 행부터 MACD 유효, 시그널선은 첫 MACD 값으로 시드
    - MA5 / MA20 / MA60(enable_ma60): 구간이 다 찬 뒤부터 단순 이동평균
    - 거래량 비율: volume / 20일 평균 거래량
    - ATR(enable_atr_stop): True Range의 atr_period 단순 평균
    - 가격 모멘텀(enable_price_momentum): (close - close[n-p]) / close[n-p]

[ 결측 표현 ]
    계산 불가 구간은 NaN. core/data_provider.py::Bar로 변환될 때 None이 된다.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.prepare_data()에서 종목별로 1회 호출
"""

import logging

import numpy as np
import pandas as pd

from signal_backtest.core.trading_strategy import StrategyParams

logger = logging.getLogger("signal_backtest.indicators")


def calculate_rsi(close: pd.Series, period: int) -> pd.DataFrame:
    """와일더 평활 RSI.

    Returns:
        DataFrame with columns: [avg_gain, avg_loss, rsi]
    """
    values = close.to_numpy(dtype=float)
    n = len(values)
    avg_gain = np.full(n, np.nan)
    avg_loss = np.full(n, np.nan)
    rsi = np.full(n, np.nan)

    if period <= 0 or n <= period:
        return pd.DataFrame({"avg_gain": avg_gain, "avg_loss": avg_loss, "rsi": rsi}, index=close.index)

    delta = np.diff(values, prepend=np.nan)
    gains = np.where(delta > 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)
    alpha = 1.0 / period

    for i in range(period, n):
        if i == period:
            # 시드: 처음 period개 변화량의 단순 평균
            avg_gain[i] = gains[1:period + 1].mean()
            avg_loss[i] = losses[1:period + 1].mean()
        else:
            avg_gain[i] = (1 - alpha) * avg_gain[i - 1] + alpha * gains[i]
            avg_loss[i] = (1 - alpha) * avg_loss[i - 1] + alpha * losses[i]

        if avg_loss[i] == 0:
            value = 100.0
        else:
            rs = avg_gain[i] / avg_loss[i]
            value = 100.0 - 100.0 / (1.0 + rs)

        if np.isnan(value) or value < 0 or value > 100:
            fallback = rsi[i - 1] if not np.isnan(rsi[i - 1]) else 50.0
            logger.warning(f"RSI 이상값 {value} (index {i}) → {fallback}로 대체")
            value = fallback
        rsi[i] = value

    return pd.DataFrame({"avg_gain": avg_gain, "avg_loss": avg_loss, "rsi": rsi}, index=close.index)


def calculate_macd(close: pd.Series, fast: int, slow: int, signal: int) -> pd.DataFrame:
    """MACD 선, 시그널선, 히스토그램.

    Returns:
        DataFrame with columns: [ema_fast, ema_slow, macd, macd_signal, macd_histogram]
    """
    values = close.to_numpy(dtype=float)
    n = len(values)
    ema_fast = np.full(n, np.nan)
    ema_slow = np.full(n, np.nan)
    macd = np.full(n, np.nan)
    macd_signal = np.full(n, np.nan)

    k_fast = 2.0 / (fast + 1)
    k_slow = 2.0 / (slow + 1)
    k_signal = 2.0 / (signal + 1)
    first_valid = slow - 1

    for i in range(n):
        if i == 0:
            ema_fast[i] = values[i]
            ema_slow[i] = values[i]
        else:
            ema_fast[i] = (values[i] - ema_fast[i - 1]) * k_fast + ema_fast[i - 1]
            ema_slow[i] = (values[i] - ema_slow[i - 1]) * k_slow + ema_slow[i - 1]

        if i < first_valid:
            continue

        macd[i] = ema_fast[i] - ema_slow[i]
        if i == first_valid:
            macd_signal[i] = macd[i]
        else:
            macd_signal[i] = (macd[i] - macd_signal[i - 1]) * k_signal + macd_signal[i - 1]

    return pd.DataFrame(
        {
            "ema_fast": ema_fast,
            "ema_slow": ema_slow,
            "macd": macd,
            "macd_signal": macd_signal,
            "macd_histogram": macd - macd_signal,
        },
        index=close.index,
    )


def calculate_atr(df: pd.DataFrame, period: int) -> pd.Series:
    """Average True Range (True Range의 단순 이동평균).

    첫 행은 전일 종가가 없어 True Range가 없으므로 ATR은 period 번째 행부터 유효.
    """
    high = df["high"].astype(float)
    low = df["low"].astype(float)
    prev_close = df["close"].astype(float).shift(1)
    true_range = np.maximum(
        high - low,
        np.maximum((high - prev_close).abs(), (low - prev_close).abs()),
    )
    return true_range.rolling(window=period, min_periods=period).mean()


def calculate_indicators(df: pd.DataFrame, params: StrategyParams) -> pd.DataFrame:
    """OHLCV DataFrame에 모든 기술적 지표 컬럼을 추가한 사본을 반환.

    Args:
        df: 날짜 오름차순 OHLCV DataFrame (columns: date, open, high, low, close, volume)
        params: 전략 파라미터 (지표 기간 / 토글)

    Returns:
        지표 컬럼이 추가된 새 DataFrame. 원본은 변경하지 않는다.
    """
    result = df.copy().reset_index(drop=True)
    if result.empty:
        return result

    close = result["close"].astype(float)
    volume = result["volume"].astype(float)

    rsi = calculate_rsi(close, params.rsi_period)
    for col in rsi.columns:
        result[col] = rsi[col]

    macd = calculate_macd(close, params.macd_fast, params.macd_slow, params.macd_signal)
    for col in macd.columns:
        result[col] = macd[col]

    result["ma5"] = close.rolling(window=5, min_periods=5).mean()
    result["ma20"] = close.rolling(window=20, min_periods=20).mean()
    if params.enable_ma60:
        result["ma60"] = close.rolling(window=60, min_periods=60).mean()

    volume_ma20 = volume.rolling(window=20, min_periods=20).mean()
    result["volume_ma20"] = volume_ma20
    result["volume_ratio"] = volume / volume_ma20.where(volume_ma20 != 0, 1.0)

    if params.enable_atr_stop:
        result["atr"] = calculate_atr(result, params.atr_period)

    if params.enable_price_momentum:
        past = close.shift(params.price_momentum_period)
        result["price_momentum"] = (close - past) / past

    logger.debug(
        f"지표 계산 완료: {len(result)}행, 유효 구간은 {params.warmup_bars}번째 행부터"
    )
    return result
