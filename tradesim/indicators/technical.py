"""
Technical Indicators.

SMA, EMA, RSI, MACD, Bollinger Bands, ATR, VWAP and StochRSI.

Every function returns a series of the same length as its input, aligned
by index. Positions without enough history hold NaN, the "no value"
marker; short input yields an all-NaN result instead of an error.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
import pandas as pd


PriceInput = Union[pd.Series, np.ndarray, Sequence[float]]


@dataclass
class MACDResult:
    """MACD line, signal line and histogram."""
    macd: pd.Series
    signal: pd.Series
    histogram: pd.Series


@dataclass
class BollingerBands:
    """Upper, middle and lower bands."""
    upper: pd.Series
    middle: pd.Series
    lower: pd.Series


def _as_series(data: PriceInput) -> pd.Series:
    if isinstance(data, pd.Series):
        return data.astype(float)
    return pd.Series(np.asarray(data, dtype=float))


def is_missing(value) -> bool:
    """True for the "no value" marker (None or NaN)."""
    return value is None or (isinstance(value, float) and math.isnan(value))


def last_value(series: pd.Series) -> float:
    """Last element of an indicator series, NaN when empty."""
    if len(series) == 0:
        return float('nan')
    return float(series.iloc[-1])


def calculate_sma(data: PriceInput, period: int) -> pd.Series:
    """
    Simple Moving Average.

    Args:
        data: Price series
        period: Window length

    Returns:
        Mean of the trailing `period` values; NaN before index period-1
    """
    series = _as_series(data)
    if period < 1:
        return pd.Series(np.nan, index=series.index)
    return series.rolling(window=period, min_periods=period).mean()


def calculate_ema(data: PriceInput, period: int) -> pd.Series:
    """
    Exponential Moving Average seeded with the SMA of the first window.

    Args:
        data: Price series
        period: EMA period

    Returns:
        EMA series; NaN before index period-1
    """
    series = _as_series(data)
    values = series.to_numpy()
    result = np.full(len(values), np.nan)

    if period < 1 or len(values) < period:
        return pd.Series(result, index=series.index)

    k = 2.0 / (period + 1)
    ema = values[:period].mean()
    result[period - 1] = ema
    for i in range(period, len(values)):
        ema = values[i] * k + ema * (1 - k)
        result[i] = ema

    return pd.Series(result, index=series.index)


def calculate_rsi(data: PriceInput, period: int = 14) -> pd.Series:
    """
    Relative Strength Index with Wilder smoothing.

    The first `period` positions are NaN. When the average loss is zero
    the RSI is defined as 100.

    Args:
        data: Close series
        period: Smoothing period

    Returns:
        RSI series in [0, 100]
    """
    series = _as_series(data)
    values = series.to_numpy()
    result = np.full(len(values), np.nan)

    if period < 1 or len(values) <= period:
        return pd.Series(result, index=series.index)

    changes = np.diff(values)
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)

    avg_gain = gains[:period].mean()
    avg_loss = losses[:period].mean()
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(changes)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result[i + 1] = _rsi_value(avg_gain, avg_loss)

    return pd.Series(result, index=series.index)


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def calculate_macd(
    data: PriceInput,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDResult:
    """
    Moving Average Convergence Divergence.

    The signal line is an EMA over the defined MACD values only, then
    realigned onto the input index.
    """
    series = _as_series(data)
    macd_line = calculate_ema(series, fast) - calculate_ema(series, slow)

    valid = macd_line.dropna()
    signal_line = pd.Series(np.nan, index=series.index)
    if len(valid) > 0:
        signal_values = calculate_ema(valid.to_numpy(), signal)
        signal_line.loc[valid.index] = signal_values.to_numpy()

    histogram = macd_line - signal_line

    return MACDResult(macd=macd_line, signal=signal_line, histogram=histogram)


def calculate_bollinger_bands(
    data: PriceInput,
    period: int = 20,
    mult: float = 2.0,
) -> BollingerBands:
    """
    Bollinger Bands using the population standard deviation of the
    trailing window.
    """
    series = _as_series(data)
    middle = calculate_sma(series, period)

    if period < 1:
        std = pd.Series(np.nan, index=series.index)
    else:
        std = series.rolling(window=period, min_periods=period).std(ddof=0)

    return BollingerBands(
        upper=middle + mult * std,
        middle=middle,
        lower=middle - mult * std,
    )


def calculate_atr(
    high: PriceInput,
    low: PriceInput,
    close: PriceInput,
    period: int = 14,
) -> pd.Series:
    """
    Average True Range as the SMA of the true range.

    The first bar's true range is its high-low span.
    """
    high = _as_series(high)
    low = _as_series(low)
    close = _as_series(close)

    prev_close = close.shift(1)
    tr1 = high - low
    tr2 = (high - prev_close).abs()
    tr3 = (low - prev_close).abs()

    # First bar has no previous close, so tr2/tr3 are NaN and skipped
    tr = pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)

    return calculate_sma(tr, period)


def calculate_vwap(
    high: PriceInput,
    low: PriceInput,
    close: PriceInput,
    volume: PriceInput,
) -> pd.Series:
    """
    Cumulative Volume Weighted Average Price over typical price.

    Falls back to the typical price while cumulative volume is zero.
    """
    high = _as_series(high)
    low = _as_series(low)
    close = _as_series(close)
    volume = _as_series(volume)

    typical = (high + low + close) / 3
    cum_vol = volume.cumsum()
    cum_tp = (typical * volume).cumsum()

    vwap = cum_tp / cum_vol.where(cum_vol > 0)
    return vwap.fillna(typical)


def calculate_stoch_rsi(
    data: PriceInput,
    rsi_period: int = 14,
    stoch_period: int = 14,
) -> pd.Series:
    """
    Stochastic RSI in [0, 100].

    NaN until a full window of defined RSI values exists; 50 when the RSI
    window is flat.
    """
    rsi = calculate_rsi(data, rsi_period)
    if stoch_period < 1:
        return pd.Series(np.nan, index=rsi.index)

    rsi_min = rsi.rolling(window=stoch_period, min_periods=stoch_period).min()
    rsi_max = rsi.rolling(window=stoch_period, min_periods=stoch_period).max()
    span = rsi_max - rsi_min

    stoch = (rsi - rsi_min) / span.where(span > 0) * 100
    flat = span.notna() & (span == 0)
    stoch[flat] = 50.0

    return stoch
