"""
Decision Engine.

Every N ticks: score the portfolio position, generate candidate moves
from the selected strategies for every instrument, project each with a
Monte Carlo lookahead, score and rank them, and execute the best one if
it clears the conviction threshold. Each cycle produces an AnalysisTrace.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

import numpy as np

from config.settings import EngineSettings, PortfolioSettings
from tradesim.engine.lookahead import LookaheadEngine
from tradesim.engine.moves import (
    Action,
    AnalysisTrace,
    CandidateMove,
    OutlookLabel,
    TradeExecution,
    hold_move,
)
from tradesim.engine.strategies import (
    STRATEGIES,
    PriceHistory,
    compute_indicators,
    resolve_strategies,
)
from tradesim.market.models import MarketSnapshot, TickInfo
from tradesim.market.signals import MarketSignal, SignalBus
from tradesim.portfolio.ledger import PortfolioLedger, TradeRecord


logger = logging.getLogger(__name__)


DIVERSIFICATION_RANGE = (2, 5)
DIVERSIFICATION_BONUS = 5
THINKING_TREE_SIZE = 12


class DecisionEngine:
    """
    Rule-based trading agent with chess-style evaluation.

    Signals: trade (TradeExecution), analysis (AnalysisTrace).
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        ledger: Optional[PortfolioLedger] = None,
        portfolio_settings: Optional[PortfolioSettings] = None,
    ):
        self.settings = settings or EngineSettings.synthetic()
        if ledger is None:
            ps = portfolio_settings or PortfolioSettings()
            ledger = PortfolioLedger("AI", ps.starting_cash, ps.annualization_factor)
        self.ledger = ledger
        self.signals = SignalBus()

        self.strategy = self.settings.strategy
        self.confidence = 0.0
        self.current_analysis: Optional[AnalysisTrace] = None
        self._history: Deque[AnalysisTrace] = deque(maxlen=self.settings.history_limit)
        self._last_eval_tick = 0
        self._detach: Optional[Callable[[], None]] = None

        self._rng = np.random.default_rng(self.settings.seed)
        self.lookahead = LookaheadEngine(
            depth=self.settings.lookahead_depth,
            n_paths=self.settings.lookahead_paths,
            label_threshold=self.settings.lookahead_label_threshold,
            rng=self._rng,
        )

    # =========================================================================
    # WIRING
    # =========================================================================

    def on(self, signal: MarketSignal, listener):
        return self.signals.on(signal, listener)

    def attach(self, market) -> None:
        """Evaluate on every tick signal of `market` (simulator or replay driver)."""
        self.detach()

        def _on_tick(info: TickInfo):
            self.evaluate(market.snapshot(self.settings.candle_window))

        self._detach = market.on(MarketSignal.TICK, _on_tick)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def set_strategy(self, mode: str):
        """Switch strategy mode ('auto' or a single strategy name)."""
        resolve_strategies(mode)  # raises ValueError on unknown names
        self.strategy = mode
        logger.info(f"Strategy set to {self.strategy_label}")

    @property
    def strategy_label(self) -> str:
        return "AUTO" if self.strategy == "auto" else self.strategy.upper()

    @property
    def history(self) -> List[AnalysisTrace]:
        """Past traces, most recent first."""
        return list(self._history)

    def reset(self):
        self._history.clear()
        self.current_analysis = None
        self.confidence = 0.0
        self._last_eval_tick = 0
        self.ledger.reset()

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def evaluate(self, snapshot: MarketSnapshot) -> Optional[AnalysisTrace]:
        """Run one evaluation cycle if the cadence allows it."""
        if snapshot.tick - self._last_eval_tick < self.settings.evaluation_frequency:
            return None
        self._last_eval_tick = snapshot.tick

        prices = snapshot.prices
        position_score = self.position_score(prices)

        candidates: List[CandidateMove] = []
        node_count = 0
        for move in self.generate_moves(snapshot):
            move.score = self.score_move(move, prices)
            candidates.append(move)
            node_count += len(move.lookahead) or 1

        # Stable sort keeps generation order among equal scores
        candidates.sort(key=lambda m: m.score, reverse=True)
        best = candidates[0] if candidates else None

        trade = None
        if best is not None and best.score > self.settings.conviction_threshold:
            chosen = best
            self.confidence = min(99.0, max(10.0, best.score * 20))
            reasoning = self._reasoning(best, prices)
            trade = self._execute(best, snapshot)
        else:
            best_score = best.score if best is not None else 0.0
            chosen = hold_move()
            self.confidence = min(20.0, max(5.0, best_score * 10))
            reasoning = ("All evaluated positions show insufficient edge. "
                         "Holding current positions. " + self._hold_reason(prices))
            logger.debug(f"HOLD | tick {snapshot.tick} | best score {best_score:.2f}")

        trace = AnalysisTrace(
            tick=snapshot.tick,
            day=snapshot.day,
            position_score=position_score,
            candidates=candidates,
            chosen=chosen,
            confidence=self.confidence,
            reasoning=reasoning,
            strategy=self.strategy,
            depth=self.settings.lookahead_depth,
            node_count=node_count,
            trade=trade,
        )
        self.current_analysis = trace
        self._history.appendleft(trace)

        self.signals.emit(MarketSignal.ANALYSIS, trace)
        return trace

    def position_score(self, prices: Mapping[str, float]) -> int:
        """
        Portfolio health in centipawn-like units.

        1% return = +10; bonus for holding 2-5 names; penalty of 2 per
        percentage point of max drawdown.
        """
        ledger = self.ledger
        ret_pct = ledger.total_return_pct(prices)
        score = ret_pct * 10

        low, high = DIVERSIFICATION_RANGE
        if low <= len(ledger.holdings) <= high:
            score += DIVERSIFICATION_BONUS

        score -= ledger.max_drawdown_pct * 2
        return int(round(score))

    def generate_moves(self, snapshot: MarketSnapshot) -> List[CandidateMove]:
        """
        Candidate moves across all instruments, with lookahead attached.

        Ordered by strategy, then by instrument.
        """
        contexts = []
        for symbol in snapshot.symbols:
            quote = snapshot.quote(symbol)
            bars = snapshot.candles.get(symbol, ())
            if quote is None or len(bars) < self.settings.min_candles:
                continue
            closes = tuple(bar.close for bar in bars)
            history = PriceHistory(symbol=symbol, price=quote.price, closes=closes)
            contexts.append((history, compute_indicators(closes)))

        moves = []
        cash = self.ledger.cash
        for kind in resolve_strategies(self.strategy):
            strategy_fn = STRATEGIES[kind]
            for history, indicators in contexts:
                holding = self.ledger.holding(history.symbol)
                for move in strategy_fn(history, indicators, holding, cash,
                                        self.settings.max_risk_fraction):
                    move.lookahead = self.lookahead.project(move, history.closes)
                    moves.append(move)
        return moves

    def score_move(self, move: CandidateMove, prices: Mapping[str, float]) -> float:
        """Edge and lookahead score with oversize and concentration penalties."""
        s = self.settings
        weight = s.strategy_weights.get(move.strategy, 1.0)

        score = move.edge * s.edge_weight * weight
        score += move.avg_lookahead_return * s.lookahead_weight

        if move.action == Action.BUY:
            cost = move.quantity * move.price
            if cost > self.ledger.cash * s.oversize_fraction:
                score *= s.oversize_penalty

            holding = self.ledger.holdings.get(move.symbol)
            held = holding.quantity if holding is not None else 0
            total = self.ledger.total_value(prices)
            if total > 0 and (held + move.quantity) * move.price / total > s.concentration_limit:
                score *= s.concentration_penalty

        return max(0.0, score)

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def _execute(self, move: CandidateMove, snapshot: MarketSnapshot) -> Optional[TradeRecord]:
        if move.action == Action.BUY:
            trade = self.ledger.buy(move.symbol, move.quantity, move.price, snapshot.day, snapshot.tick)
        elif move.action == Action.SELL:
            trade = self.ledger.sell(move.symbol, move.quantity, move.price, snapshot.day, snapshot.tick)
        else:
            return None

        if trade is None:
            logger.debug(f"Move not executable: {move}")
            return None

        logger.info(
            f"TRADE | {move.strategy} | {trade.side.value} {trade.quantity} {trade.symbol} "
            f"@ ${trade.price:.2f} | score {move.score:.2f} | conf {self.confidence:.0f}"
        )
        self.signals.emit(MarketSignal.TRADE, TradeExecution(
            trade=trade,
            strategy=move.strategy,
            reason=move.reason,
            confidence=self.confidence,
        ))
        return trade

    def _reasoning(self, move: CandidateMove, prices: Mapping[str, float]) -> str:
        value = self.ledger.total_value(prices)
        parts = [
            f"[{move.strategy.upper()}] {move.action.value} {move.quantity} {move.symbol} @ ${move.price:.2f}",
            f"Signal: {move.reason}",
            f"Edge score: {move.edge:.2f} | Overall: {move.score:.2f}",
        ]

        if move.lookahead:
            n = len(move.lookahead)
            bullish = move.count_label(OutlookLabel.BULLISH)
            bearish = move.count_label(OutlookLabel.BEARISH)
            parts.append(
                f"Lookahead (depth {self.settings.lookahead_depth}): "
                f"{bullish}/{n} bullish, {bearish}/{n} bearish"
            )

        parts.append(f"Portfolio: ${value:.2f} | Cash: ${self.ledger.cash:.2f}")
        return "\n".join(parts)

    def _hold_reason(self, prices: Mapping[str, float]) -> str:
        count = len(self.ledger.holdings)
        if count == 0:
            return "Waiting for better entry signals. Cash deployed: 0%."
        value = self.ledger.total_value(prices)
        invested = (value - self.ledger.cash) / value * 100 if value > 0 else 0.0
        return f"Currently {invested:.0f}% invested across {count} positions."

    def thinking_tree(self) -> Optional[Dict[str, Any]]:
        """Summary of the latest analysis with the top candidates."""
        a = self.current_analysis
        if a is None:
            return None
        return {
            'position_score': a.position_score,
            'candidates': a.candidates[:THINKING_TREE_SIZE],
            'chosen': a.chosen,
            'reasoning': a.reasoning,
            'confidence': a.confidence,
            'node_count': a.node_count,
            'depth': a.depth,
            'strategy': "AUTO" if a.strategy == "auto" else a.strategy.upper(),
            'timestamp': a.timestamp,
        }
