"""Indicator library - pure functions over price series."""

from tradesim.indicators.technical import (
    MACDResult,
    BollingerBands,
    is_missing,
    last_value,
    calculate_sma,
    calculate_ema,
    calculate_rsi,
    calculate_macd,
    calculate_bollinger_bands,
    calculate_atr,
    calculate_vwap,
    calculate_stoch_rsi,
)

__all__ = [
    'MACDResult', 'BollingerBands', 'is_missing', 'last_value',
    'calculate_sma', 'calculate_ema', 'calculate_rsi', 'calculate_macd',
    'calculate_bollinger_bands', 'calculate_atr', 'calculate_vwap',
    'calculate_stoch_rsi',
]
