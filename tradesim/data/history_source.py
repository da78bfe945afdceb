"""
Historical Data Sources.

Async interface returning ordered OHLCV bars plus instrument metadata,
with a Yahoo Finance implementation and an in-memory one for offline use.
"""

import asyncio
import logging
import re
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pandas as pd
import yfinance as yf

from tradesim.market.models import Bar


logger = logging.getLogger(__name__)


VALID_RANGES = ('1mo', '3mo', '6mo', '1y', '2y', '5y', 'ytd', 'max')
VALID_INTERVALS = ('1d', '1wk', '1mo')
SEARCH_LIMIT = 8


class DataSourceError(Exception):
    """Raised when historical data cannot be retrieved."""
    pass


@dataclass
class SymbolInfo:
    """Metadata accompanying a history response."""
    symbol: str
    currency: Optional[str] = None
    exchange: Optional[str] = None
    instrument_type: Optional[str] = None
    regular_market_price: Optional[float] = None
    previous_close: Optional[float] = None


@dataclass
class HistoryResult:
    """Ordered bars for one symbol/range/interval."""
    info: SymbolInfo
    bars: List[Bar]
    range: str = '1y'
    interval: str = '1d'


@dataclass(frozen=True)
class SymbolMatch:
    """One symbol search hit."""
    symbol: str
    name: str
    exchange: str
    type: str


def normalize_symbol(symbol: str) -> str:
    """Upper-case and strip to [A-Z0-9.-^], max 10 characters."""
    return re.sub(r'[^A-Z0-9.\-^]', '', (symbol or '').upper())[:10]


def normalize_range(range_: str) -> str:
    return range_ if range_ in VALID_RANGES else '1y'


def normalize_interval(interval: str) -> str:
    return interval if interval in VALID_INTERVALS else '1d'


class HistoricalDataSource(ABC):
    """Provider of historical bars and symbol search."""

    @abstractmethod
    async def fetch_history(
        self,
        symbol: str,
        range_: str = '1y',
        interval: str = '1d',
    ) -> HistoryResult:
        """Fetch ordered bars; raises DataSourceError on failure."""

    @abstractmethod
    async def search(self, query: str) -> List[SymbolMatch]:
        """Find symbols matching `query`."""


class YahooHistorySource(HistoricalDataSource):
    """
    Yahoo Finance source via yfinance.

    yfinance is blocking, so calls run in a worker thread.
    """

    async def fetch_history(
        self,
        symbol: str,
        range_: str = '1y',
        interval: str = '1d',
    ) -> HistoryResult:
        symbol = normalize_symbol(symbol)
        range_ = normalize_range(range_)
        interval = normalize_interval(interval)
        if not symbol:
            raise DataSourceError("Symbol is required")

        try:
            df, meta = await asyncio.to_thread(self._download, symbol, range_, interval)
        except DataSourceError:
            raise
        except Exception as e:
            raise DataSourceError(f"Failed to fetch data from Yahoo Finance: {e}") from e

        bars = frame_to_bars(df)
        info = SymbolInfo(
            symbol=meta.get('symbol', symbol),
            currency=meta.get('currency'),
            exchange=meta.get('exchangeName'),
            instrument_type=meta.get('instrumentType'),
            regular_market_price=meta.get('regularMarketPrice'),
            previous_close=meta.get('previousClose', meta.get('chartPreviousClose')),
        )
        logger.info(f"Loaded {len(bars)} bars for {symbol} ({range_}, {interval})")
        return HistoryResult(info=info, bars=bars, range=range_, interval=interval)

    @staticmethod
    def _download(symbol: str, range_: str, interval: str):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            ticker = yf.Ticker(symbol)
            df = ticker.history(period=range_, interval=interval, auto_adjust=False)
            meta = ticker.history_metadata or {}

        if df is None or df.empty:
            raise DataSourceError(f"No data found for symbol {symbol}")

        return df, meta

    async def search(self, query: str) -> List[SymbolMatch]:
        query = (query or '')[:30]
        if not query:
            return []

        try:
            quotes = await asyncio.to_thread(self._search, query)
        except Exception as e:
            logger.warning(f"Symbol search failed for '{query}': {e}")
            return []

        matches = []
        for q in quotes:
            if q.get('quoteType') not in ('EQUITY', 'ETF'):
                continue
            matches.append(SymbolMatch(
                symbol=q.get('symbol', ''),
                name=q.get('shortname') or q.get('longname') or q.get('symbol', ''),
                exchange=q.get('exchange', ''),
                type=q.get('quoteType', ''),
            ))
        return matches[:SEARCH_LIMIT]

    @staticmethod
    def _search(query: str) -> List[dict]:
        return yf.Search(query, max_results=SEARCH_LIMIT, news_count=0).quotes


def frame_to_bars(df: pd.DataFrame) -> List[Bar]:
    """
    Convert a yfinance OHLCV frame to bars.

    Rows missing open or close are skipped; prices are rounded to cents.
    """
    bars = []
    for ts, row in df.iterrows():
        open_, close = row.get('Open'), row.get('Close')
        if pd.isna(open_) or pd.isna(close):
            continue

        high = row.get('High', close)
        low = row.get('Low', close)
        volume = row.get('Volume', 0)
        stamp = pd.Timestamp(ts)

        bars.append(Bar(
            time=int(stamp.timestamp()),
            date=stamp.strftime('%Y-%m-%d'),
            open=round(float(open_), 2),
            high=round(float(high if not pd.isna(high) else close), 2),
            low=round(float(low if not pd.isna(low) else close), 2),
            close=round(float(close), 2),
            volume=0 if pd.isna(volume) else int(volume),
        ))
    return bars


class InMemoryHistorySource(HistoricalDataSource):
    """Serves pre-built bars; useful for tests and offline runs."""

    def __init__(
        self,
        series: Optional[Dict[str, Sequence[Bar]]] = None,
        matches: Optional[Sequence[SymbolMatch]] = None,
    ):
        self.series: Dict[str, List[Bar]] = {
            normalize_symbol(k): list(v) for k, v in (series or {}).items()
        }
        self.matches = list(matches or [])
        self.requests: List[str] = []

    async def fetch_history(
        self,
        symbol: str,
        range_: str = '1y',
        interval: str = '1d',
    ) -> HistoryResult:
        symbol = normalize_symbol(symbol)
        self.requests.append(symbol)
        if symbol not in self.series:
            raise DataSourceError(f"No data found for symbol {symbol}")

        bars = self.series[symbol]
        previous = bars[-2].close if len(bars) > 1 else None
        info = SymbolInfo(
            symbol=symbol,
            regular_market_price=bars[-1].close if bars else None,
            previous_close=previous,
        )
        return HistoryResult(
            info=info,
            bars=list(bars),
            range=normalize_range(range_),
            interval=normalize_interval(interval),
        )

    async def search(self, query: str) -> List[SymbolMatch]:
        if not query:
            return []
        q = query.upper()
        hits = [m for m in self.matches if q in m.symbol.upper() or q in m.name.upper()]
        return hits[:SEARCH_LIMIT]
