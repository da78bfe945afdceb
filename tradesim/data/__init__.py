"""Data module - historical data sources."""

from tradesim.data.history_source import (
    DataSourceError,
    SymbolInfo,
    HistoryResult,
    SymbolMatch,
    HistoricalDataSource,
    YahooHistorySource,
    InMemoryHistorySource,
    frame_to_bars,
    normalize_symbol,
)

__all__ = [
    'DataSourceError', 'SymbolInfo', 'HistoryResult', 'SymbolMatch',
    'HistoricalDataSource', 'YahooHistorySource', 'InMemoryHistorySource',
    'frame_to_bars', 'normalize_symbol',
]
