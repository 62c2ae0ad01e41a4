"""Technical indicators over close/volume arrays and OHLC bars.

Every indicator validates its input and raises ``IndicatorError`` when the
history is too short or contains missing values.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import NamedTuple

import numpy as np

from portfoliolab.core.utils.errors import IndicatorError


class Bar(NamedTuple):
    """OHLC bar; ``high``/``low`` fall back to ``close`` when unknown."""

    close: float
    high: float
    low: float


def _validate(values: Sequence[float], min_length: int, name: str) -> np.ndarray:
    """Convert to a float array and check length and missing values."""
    array = np.asarray(values, dtype=float)
    if array.shape[0] == 0:
        raise IndicatorError(f"{name} must be a non-empty array.")
    if array.shape[0] < min_length:
        raise IndicatorError(
            f"{name} requires at least {min_length} elements, got {array.shape[0]}."
        )
    if np.isnan(array).any():
        raise IndicatorError(f"{name} contains missing values.")
    return array


def _validate_bars(bars: Sequence[Bar], min_length: int, name: str) -> np.ndarray:
    """Convert bars to an ``(n, 3)`` array of close/high/low."""
    if len(bars) < min_length or not bars:
        raise IndicatorError(f"{name} requires at least {min_length} bars, got {len(bars)}.")
    array = np.asarray([(bar.close, bar.high, bar.low) for bar in bars], dtype=float)
    if np.isnan(array).any():
        raise IndicatorError(f"{name} contains missing values.")
    return array


def sma(values: Sequence[float], period: int) -> float:
    """Simple moving average of the last ``period`` values."""
    array = _validate(values, period, "SMA input")
    return float(array[-period:].mean())


def ema(prices: Sequence[float], period: int, warmup_multiplier: int = 5) -> float | None:
    """
    Exponential moving average seeded with an SMA over a warm-up window.

    Returns ``None`` when fewer than ``period * warmup_multiplier + 1`` prices
    are available.
    """
    array = _validate(prices, 1, "EMA input")
    warmup = period * warmup_multiplier
    if array.shape[0] < warmup + 1:
        return None

    window = array[-warmup:]
    value = float(window[:period].mean())
    k = 2.0 / (period + 1)
    for price in window[period:]:
        value = float(price) * k + value * (1.0 - k)
    return value


def ema_array(prices: Sequence[float], period: int) -> np.ndarray:
    """Full EMA path seeded with the first price."""
    array = _validate(prices, period + 1, "EMA_Array input")
    k = 2.0 / (period + 1)
    result = np.empty_like(array)
    result[0] = array[0]
    for i in range(1, array.shape[0]):
        result[i] = array[i] * k + result[i - 1] * (1.0 - k)
    return result


def rsi(prices: Sequence[float], period: int = 14) -> float:
    """Relative Strength Index over the last ``period`` changes (50 when flat)."""
    array = _validate(prices, period + 1, "RSI input")
    changes = np.diff(array[-(period + 1) :])
    avg_gain = float(changes[changes > 0].sum()) / period
    avg_loss = float(-changes[changes < 0].sum()) / period
    if avg_gain == 0 and avg_loss == 0:
        return 50.0
    rs = avg_gain / (avg_loss or 1e-10)
    return 100.0 - 100.0 / (1.0 + rs)


def _true_ranges(array: np.ndarray) -> np.ndarray:
    """True range for each bar after the first."""
    close, high, low = array[:, 0], array[:, 1], array[:, 2]
    previous_close = close[:-1]
    return np.maximum.reduce(
        [
            high[1:] - low[1:],
            np.abs(high[1:] - previous_close),
            np.abs(low[1:] - previous_close),
        ]
    )


def atr(bars: Sequence[Bar], period: int = 14) -> float:
    """Average True Range over the last ``period`` bars."""
    array = _validate_bars(bars, period + 1, "ATR input")
    return float(_true_ranges(array)[-period:].mean())


def atr_percent(bars: Sequence[Bar], period: int = 14) -> float:
    """ATR as a percentage of the last close."""
    value = atr(bars, period)
    last_close = bars[-1].close
    if last_close == 0:
        raise IndicatorError("ATR percent undefined for a zero close.")
    return value / last_close * 100.0


def adx(bars: Sequence[Bar], period: int = 14) -> float:
    """Directional movement index over the last ``period`` bars."""
    array = _validate_bars(bars, period + 1, "ADX input")
    window = array[-period:]
    high, low = window[:, 1], window[:, 2]
    high_diff = np.diff(high)
    low_diff = -np.diff(low)
    plus_dm = float(np.where((high_diff > low_diff) & (high_diff > 0), high_diff, 0.0).sum())
    minus_dm = float(np.where((low_diff > high_diff) & (low_diff > 0), low_diff, 0.0).sum())

    avg_tr = float(_true_ranges(window).sum()) / period
    plus_di = 0.0 if avg_tr == 0 else plus_dm / avg_tr * 100.0
    minus_di = 0.0 if avg_tr == 0 else minus_dm / avg_tr * 100.0
    total = plus_di + minus_di
    return 0.0 if total == 0 else abs(plus_di - minus_di) / total * 100.0


def roc(prices: Sequence[float], period: int) -> float:
    """Rate of change (%) over ``period`` observations."""
    array = _validate(prices, period + 1, "ROC input")
    past = array[-1 - period]
    if past == 0:
        raise IndicatorError("ROC undefined for a zero base price.")
    return (float(array[-1]) / float(past) - 1.0) * 100.0


def volatility(prices: Sequence[float], period: int = 252) -> float:
    """Annualized volatility (%) of the last ``period`` log returns."""
    array = _validate(prices, period + 1, "Volatility input")
    window = array[-(period + 1) :]
    if (window <= 0).any():
        raise IndicatorError("Volatility requires positive prices.")
    returns = np.diff(np.log(window))
    return float(math.sqrt(returns.var() * 252) * 100.0)


def max_drawdown(prices: Sequence[float], period: int = 252) -> float:
    """Maximum peak-to-trough decline (%) over the last ``period`` prices."""
    array = _validate(prices, 1, "MaxDrawdown input")
    window = array[-min(period, array.shape[0]) :]
    running_peak = np.maximum.accumulate(window)
    drawdowns = (running_peak - window) / running_peak * 100.0
    return float(drawdowns.max())


def days_above_ema(prices: Sequence[float], ema_period: int, lookback: int = 200) -> float:
    """Share (%) of the last ``lookback`` closes above their EMA."""
    if lookback < 1:
        raise IndicatorError("DaysAboveEMA lookback must be >= 1.")
    array = _validate(prices, ema_period + lookback, "DaysAboveEMA input")
    path = ema_array(array, ema_period)
    above = array[-lookback:] > path[-lookback:]
    return float(above.sum()) / lookback * 100.0


def volume_ratio(volumes: Sequence[float], short_period: int = 20, long_period: int = 60) -> float:
    """Short over long average volume."""
    _validate(volumes, long_period, "VolumeRatio input")
    long_avg = sma(volumes, long_period)
    if long_avg == 0:
        raise IndicatorError("VolumeRatio undefined for zero long-window volume.")
    return sma(volumes, short_period) / long_avg
