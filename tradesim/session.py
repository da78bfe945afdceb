"""
Sessions.

Wire a market (synthetic simulator or historical replay) to the decision
engine, the AI and user ledgers, and for replay a buy-and-hold benchmark.
"""

import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from config.settings import Settings
from tradesim.data.history_source import HistoricalDataSource, HistoryResult
from tradesim.engine.decision_engine import DecisionEngine
from tradesim.logging_module import TradeJournal
from tradesim.market.replay import ReplayDriver
from tradesim.market.scheduler import TickScheduler
from tradesim.market.signals import MarketSignal
from tradesim.market.simulator import MarketSimulator
from tradesim.portfolio.benchmark import BuyAndHoldBenchmark
from tradesim.portfolio.ledger import PortfolioLedger, TradeRecord


logger = logging.getLogger(__name__)


class _Session:
    """Shared ledger wiring and manual trading for both market flavours."""

    market = None
    engine: DecisionEngine

    def _init_ledgers(self, settings: Settings):
        p = settings.portfolio
        self.ai_ledger = PortfolioLedger("AI", p.starting_cash, p.annualization_factor)
        self.user_ledger = PortfolioLedger("User", p.starting_cash, p.annualization_factor)

    def _attach_journal(self):
        if self.journal is None:
            return
        self.engine.on(MarketSignal.TRADE, self.journal.log_execution)
        self.engine.on(MarketSignal.ANALYSIS, self.journal.log_analysis)

    def _update_metrics(self):
        prices = self.market.prices()
        self.ai_ledger.update_metrics(prices)
        self.user_ledger.update_metrics(prices)

    def user_buy(self, symbol: str, quantity: int) -> Optional[TradeRecord]:
        """Buy for the user at the current quote price."""
        quote = self.market.quote(symbol)
        if quote is None:
            return None
        trade = self.user_ledger.buy(symbol, quantity, quote.price, self.market.day, self.market.tick)
        if trade is not None:
            logger.info(f"USER | BUY {trade.quantity} {symbol} @ ${trade.price:.2f}")
            if self.journal is not None:
                self.journal.log_trade(trade, "User")
        return trade

    def user_sell(self, symbol: str, quantity: int) -> Optional[TradeRecord]:
        """Sell for the user at the current quote price."""
        quote = self.market.quote(symbol)
        if quote is None:
            return None
        trade = self.user_ledger.sell(symbol, quantity, quote.price, self.market.day, self.market.tick)
        if trade is not None:
            logger.info(f"USER | SELL {trade.quantity} {symbol} @ ${trade.price:.2f} | P&L ${trade.pnl:.2f}")
            if self.journal is not None:
                self.journal.log_trade(trade, "User")
        return trade

    def performance(self) -> Dict[str, Any]:
        """AI versus user performance at current prices."""
        prices = self.market.prices()
        ai = self.ai_ledger.stats(prices)
        user = self.user_ledger.stats(prices)
        return {
            'tick': self.market.tick,
            'day': self.market.day,
            'ai': ai,
            'user': user,
            'ai_lead_pct': ai.total_return_pct - user.total_return_pct,
        }

    def summary(self) -> Dict[str, Any]:
        """JSON-serialisable performance summary."""
        perf = self.performance()
        return {
            key: asdict(value) if hasattr(value, '__dataclass_fields__') else value
            for key, value in perf.items()
        }


class SimulationSession(_Session):
    """
    Synthetic market with the AI engine and a manual user ledger.

    Each tick runs an engine evaluation; each day close updates both
    ledgers' metrics.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        scheduler: Optional[TickScheduler] = None,
        journal: Optional[TradeJournal] = None,
    ):
        self.settings = settings or Settings()
        self.journal = journal
        self._init_ledgers(self.settings)

        self.market = MarketSimulator(self.settings.simulation, scheduler=scheduler)
        self.engine = DecisionEngine(self.settings.engine, self.ai_ledger)
        self.engine.attach(self.market)
        self.market.on(MarketSignal.DAY_CLOSE, self._on_day_close)
        self._attach_journal()

    def _on_day_close(self, payload):
        self._update_metrics()

    def run_days(self, days: int):
        logger.info(f"Simulating {days} days ({self.market.scenario.label})")
        return self.market.run_days(days)

    def run_ticks(self, count: int):
        return self.market.run_ticks(count)

    def reset(self):
        self.engine.reset()
        self.user_ledger.reset()
        self.market.reset()


class ReplaySession(_Session):
    """
    Historical replay with the AI engine, a user ledger and a buy-and-hold
    benchmark.

    Each revealed bar runs an engine evaluation, then updates both
    ledgers' metrics and the benchmark.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        source: Optional[HistoricalDataSource] = None,
        scheduler: Optional[TickScheduler] = None,
        journal: Optional[TradeJournal] = None,
    ):
        self.settings = settings or Settings()
        self.journal = journal
        self._init_ledgers(self.settings)
        self.benchmark = BuyAndHoldBenchmark(self.settings.portfolio.starting_cash)

        self.market = ReplayDriver(source, self.settings.replay, scheduler)
        self.engine = DecisionEngine(self.settings.replay_engine, self.ai_ledger)
        self.engine.attach(self.market)
        self.market.on(MarketSignal.LOADED, self._on_loaded)
        self.market.on(MarketSignal.DAY_CLOSE, self._on_bar_close)
        self._attach_journal()

    def _reset_actors(self):
        self.engine.reset()
        self.user_ledger.reset()
        self.benchmark.reset()

    def _on_loaded(self, payload):
        # New series: start every actor fresh before the first bar is revealed
        self._reset_actors()

    def _on_bar_close(self, payload):
        self._update_metrics()
        quote = self.market.quote()
        if quote is not None:
            self.benchmark.update(quote.close)

    async def load(self, symbol: str, range_: Optional[str] = None) -> Optional[HistoryResult]:
        return await self.market.load(symbol, range_)

    def run_to_end(self) -> int:
        return self.market.run_to_end()

    def reset(self):
        self._reset_actors()
        self.market.reset()

    def performance(self) -> Dict[str, Any]:
        perf = super().performance()
        perf.update({
            'symbol': self.market.symbol,
            'start_date': self.market.start_date,
            'end_date': self.market.current_date,
            'progress': self.market.progress,
            'benchmark_value': self.benchmark.value,
            'benchmark_return_pct': self.benchmark.return_pct,
            'benchmark_max_drawdown_pct': self.benchmark.max_drawdown_pct,
            'ai_alpha_pct': perf['ai'].total_return_pct - self.benchmark.return_pct,
        })
        return perf
