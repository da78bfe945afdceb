"""
Tests for strategies, lookahead and the decision engine.
"""

from types import MappingProxyType

import pytest
import numpy as np

import sys
from pathlib import Path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import EngineSettings, SimulationSettings
from tradesim.engine.decision_engine import DecisionEngine
from tradesim.engine.lookahead import LookaheadEngine, return_statistics
from tradesim.engine.moves import Action, CandidateMove, LookaheadSample, OutlookLabel
from tradesim.engine.strategies import (
    StrategyKind,
    PriceHistory,
    breakout,
    compute_indicators,
    max_affordable_shares,
    mean_reversion,
    momentum,
    resolve_strategies,
    scalping,
    value,
)
from tradesim.indicators.technical import is_missing
from tradesim.market.models import Bar, MarketSnapshot, Quote
from tradesim.market.signals import MarketSignal
from tradesim.market.simulator import MarketSimulator
from tradesim.portfolio.ledger import Holding, PortfolioLedger


# Fixtures / helpers
FLAT = [100.0] * 22
DIP = [100.0] * 20 + [99.9, 99.8]


def make_quote(symbol, price):
    return Quote(
        symbol=symbol, name=symbol, sector="Test",
        price=price, open=price, high=price, low=price, close=price,
        volume=0, bid=price, ask=price, prev_close=price, base_price=price,
    )


def make_snapshot(tick, series, day=0):
    """Snapshot from {symbol: closes}; the live price is the last close."""
    quotes = {}
    candles = {}
    for symbol, closes in series.items():
        quotes[symbol] = make_quote(symbol, closes[-1])
        candles[symbol] = tuple(
            Bar(time=i, open=c, high=c, low=c, close=c, volume=0)
            for i, c in enumerate(closes)
        )
    return MarketSnapshot(
        tick=tick,
        day=day,
        quotes=MappingProxyType(quotes),
        candles=MappingProxyType(candles),
    )


@pytest.fixture
def settings():
    return EngineSettings(seed=11)


@pytest.fixture
def engine(settings):
    return DecisionEngine(settings)


class TestStrategies:

    def history(self, closes):
        return PriceHistory(symbol="AAA", price=closes[-1], closes=tuple(closes))

    def test_resolve_auto_order(self):
        assert resolve_strategies("auto") == [
            StrategyKind.MOMENTUM,
            StrategyKind.MEAN_REVERSION,
            StrategyKind.BREAKOUT,
            StrategyKind.VALUE,
            StrategyKind.SCALPING,
        ]
        assert resolve_strategies("value") == [StrategyKind.VALUE]
        with pytest.raises(ValueError):
            resolve_strategies("yolo")

    def test_max_affordable_shares(self):
        assert max_affordable_shares(10000, 100, 0.25) == 25
        assert max_affordable_shares(0, 100, 0.25) == 0
        assert max_affordable_shares(10000, 0, 0.25) == 0

    def test_indicators_shrink_for_short_history(self):
        ind = compute_indicators([10.0, 11.0, 12.0, 13.0, 14.0])

        assert ind.rsi == 100.0
        assert ind.sma20 == pytest.approx(12.0)
        assert ind.sma50 == pytest.approx(12.0)
        assert not is_missing(ind.bb_lower)

    def test_indicators_empty(self):
        ind = compute_indicators([])
        assert is_missing(ind.rsi)
        assert is_missing(ind.sma50)

    def test_momentum_buy_and_sell(self):
        closes = [100, 101, 100.5, 101.5, 101, 102, 101.5, 102.5, 102, 103.5]
        h = self.history(closes)
        ind = compute_indicators(closes)

        buys = momentum(h, ind, None, 10000)
        assert len(buys) == 1
        assert buys[0].action == Action.BUY
        assert buys[0].edge == pytest.approx(0.035)

        falling = list(reversed(closes))
        h = self.history(falling)
        ind = compute_indicators(falling)
        sells = momentum(h, ind, Holding("AAA", 10, 100.0), 10000)
        assert [m.action for m in sells] == [Action.SELL]
        assert sells[0].quantity == 5

    def test_mean_reversion_oversold(self):
        h = self.history(DIP)
        moves = mean_reversion(h, compute_indicators(DIP), None, 10000)

        assert moves[0].action == Action.BUY
        assert moves[0].edge == pytest.approx(1.0)
        assert any("Bollinger" in m.reason for m in moves)

    def test_breakout_needs_ten_bars(self):
        closes = [100.0] * 9 + [110.0]
        assert breakout(self.history(closes[:5]), compute_indicators(closes[:5]), None, 10000) == []

        moves = breakout(self.history(closes), compute_indicators(closes), None, 10000)
        assert moves[0].action == Action.BUY
        assert moves[0].edge == pytest.approx(0.1)

    def test_breakout_sells_whole_holding(self):
        closes = [100.0] * 9 + [90.0]
        moves = breakout(self.history(closes), compute_indicators(closes), Holding("AAA", 7, 95.0), 10000)

        assert moves[0].action == Action.SELL
        assert moves[0].quantity == 7

    def test_value(self):
        closes = [100.0] * 30 + [90.0]
        moves = value(self.history(closes), compute_indicators(closes), None, 10000)

        assert moves[0].action == Action.BUY
        assert moves[0].strategy == "value"

    def test_scalping(self):
        moves = scalping(self.history([103, 102, 101]), compute_indicators([103, 102, 101]), None, 10000)
        assert moves[0].action == Action.BUY
        assert moves[0].edge == pytest.approx(0.3)

        held = Holding("AAA", 10, 100.0)
        moves = scalping(self.history([101, 102, 103]), compute_indicators([101, 102, 103]), held, 10000)
        assert moves[0].action == Action.SELL
        assert 0 < moves[0].quantity < 10

    def test_no_sell_without_holding(self):
        closes = [100.0] * 30 + [120.0]
        ind = compute_indicators(closes)
        h = self.history(closes)

        for fn in (mean_reversion, value, scalping):
            assert all(m.action != Action.SELL for m in fn(h, ind, None, 10000))


class TestLookahead:

    def test_return_statistics(self):
        assert return_statistics([100.0]) == (0.0, 0.02)
        mean, std = return_statistics([100.0, 110.0, 99.0])

        assert mean == pytest.approx((0.1 - 0.1) / 2)
        assert std == pytest.approx(0.1)

    def test_project_shape_and_labels(self):
        la = LookaheadEngine(depth=3, n_paths=5, rng=np.random.default_rng(1))
        move = CandidateMove(Action.BUY, "AAA", 10, 100.0, "momentum", "")

        samples = la.project(move, [100.0, 101.0, 102.0, 101.5])

        assert len(samples) == 5
        for s in samples:
            raw = (s.scenario_price - 100.0) / 100.0
            assert s.expected_return == pytest.approx(raw)
            if raw > 0.02:
                assert s.label == OutlookLabel.BULLISH
            elif raw < -0.02:
                assert s.label == OutlookLabel.BEARISH
            else:
                assert s.label == OutlookLabel.NEUTRAL

    def test_sell_return_is_negated(self):
        closes = [100.0, 103.0, 99.0, 104.0]
        buy = CandidateMove(Action.BUY, "AAA", 1, 100.0, "x", "")
        sell = CandidateMove(Action.SELL, "AAA", 1, 100.0, "x", "")

        up = LookaheadEngine(rng=np.random.default_rng(5)).project(buy, closes)
        down = LookaheadEngine(rng=np.random.default_rng(5)).project(sell, closes)

        for b, s in zip(up, down):
            assert s.expected_return == pytest.approx(-b.expected_return)
            assert s.label == b.label

    def test_hold_has_no_lookahead(self):
        move = CandidateMove(Action.HOLD, "-", 0, 0.0, "hold", "")
        assert LookaheadEngine().project(move, [1.0, 2.0]) == ()


class TestScoring:

    def test_position_score(self, engine):
        assert engine.position_score({}) == 0

        engine.ledger.buy("AAA", 10, 100.0)
        engine.ledger.buy("BBB", 10, 100.0)
        # +2% return and diversified across two names
        assert engine.position_score({"AAA": 110.0, "BBB": 110.0}) == 25

    def test_position_score_drawdown_penalty(self, engine):
        engine.ledger.buy("AAA", 100, 100.0)
        engine.ledger.update_metrics({"AAA": 100.0})
        engine.ledger.update_metrics({"AAA": 90.0})

        # -10% return, 10% drawdown
        assert engine.position_score({"AAA": 90.0}) == -100 - 20

    def test_base_score(self, engine):
        move = CandidateMove(Action.BUY, "AAA", 10, 100.0, "value", "", edge=1.0)
        assert engine.score_move(move, {"AAA": 100.0}) == pytest.approx(5.0)

    def test_strategy_weight_and_lookahead(self, engine):
        samples = (LookaheadSample(101.0, 0.01, OutlookLabel.NEUTRAL),) * 5
        move = CandidateMove(Action.SELL, "AAA", 10, 100.0, "breakout", "", edge=0.5, lookahead=samples)

        assert engine.score_move(move, {}) == pytest.approx(0.5 * 5 * 1.3 + 0.1)

    def test_oversize_and_concentration_penalties(self, engine):
        move = CandidateMove(Action.BUY, "AAA", 60, 100.0, "value", "", edge=1.0)
        assert engine.score_move(move, {"AAA": 100.0}) == pytest.approx(5.0 * 0.5 * 0.3)

    def test_concentration_counts_existing_holding(self, engine):
        engine.ledger.buy("AAA", 25, 100.0)
        move = CandidateMove(Action.BUY, "AAA", 10, 100.0, "value", "", edge=1.0)

        assert engine.score_move(move, {"AAA": 100.0}) == pytest.approx(5.0 * 0.3)

    def test_score_floored_at_zero(self, engine):
        samples = (LookaheadSample(50.0, -0.5, OutlookLabel.BEARISH),) * 5
        move = CandidateMove(Action.BUY, "AAA", 1, 100.0, "value", "", edge=0.1, lookahead=samples)

        assert engine.score_move(move, {"AAA": 100.0}) == 0.0


class TestEvaluation:

    def test_evaluation_frequency(self, engine):
        assert engine.evaluate(make_snapshot(5, {"AAA": FLAT})) is None
        assert engine.evaluate(make_snapshot(8, {"AAA": FLAT})) is not None
        assert engine.evaluate(make_snapshot(12, {"AAA": FLAT})) is None
        assert engine.evaluate(make_snapshot(16, {"AAA": FLAT})) is not None
        assert len(engine.history) == 2

    def test_hold_when_no_candidates(self, engine):
        analyses = []
        engine.on(MarketSignal.ANALYSIS, analyses.append)

        trace = engine.evaluate(make_snapshot(8, {"AAA": FLAT}))

        assert trace.is_hold
        assert trace.candidates == []
        assert trace.confidence == 5.0
        assert trace.node_count == 0
        assert "insufficient edge" in trace.reasoning
        assert engine.ledger.trades == []
        assert analyses == [trace]

    def test_skips_instruments_with_short_history(self, engine):
        trace = engine.evaluate(make_snapshot(8, {"AAA": [100.0, 99.0, 98.0]}))

        assert trace.candidates == []

    def test_executes_best_move(self, engine):
        trades = []
        engine.on(MarketSignal.TRADE, trades.append)

        trace = engine.evaluate(make_snapshot(8, {"AAA": DIP}, day=3))

        best = trace.candidates[0]
        assert trace.chosen is best
        assert best.strategy == "mean_reversion"
        assert best.action == Action.BUY
        assert trace.confidence == 99.0
        assert trace.trade is not None
        assert trace.trade.day == 3
        assert trace.trade.tick == 8
        assert engine.ledger.holdings["AAA"].quantity == trace.trade.quantity
        assert engine.ledger.cash == pytest.approx(10000 - trace.trade.quantity * 99.8)
        assert len(trades) == 1
        assert trades[0].strategy == "mean_reversion"
        assert trades[0].trade is trace.trade
        assert trace.node_count == 5 * len(trace.candidates)

    def test_candidates_sorted_descending(self, engine):
        trace = engine.evaluate(make_snapshot(8, {"AAA": DIP, "BBB": [100.0] * 9 + [110.0]}))
        scores = [c.score for c in trace.candidates]

        assert scores == sorted(scores, reverse=True)

    def test_never_selects_at_or_below_threshold(self):
        engine = DecisionEngine(EngineSettings(seed=1, conviction_threshold=1e9))

        trace = engine.evaluate(make_snapshot(8, {"AAA": DIP}))

        assert trace.candidates
        assert trace.is_hold
        assert trace.trade is None
        assert 5.0 <= trace.confidence <= 20.0
        assert engine.ledger.trades == []

    def test_equal_scores_keep_instrument_order(self):
        engine = DecisionEngine(EngineSettings(seed=1, lookahead_weight=0.0))

        trace = engine.evaluate(make_snapshot(8, {"AAA": DIP, "BBB": DIP}))

        first, second = trace.candidates[:2]
        assert first.score == second.score
        assert (first.symbol, second.symbol) == ("AAA", "BBB")
        assert trace.chosen.symbol == "AAA"

    def test_history_is_capped_and_most_recent_first(self):
        engine = DecisionEngine(EngineSettings(seed=1, evaluation_frequency=1, history_limit=50))
        for tick in range(1, 61):
            engine.evaluate(make_snapshot(tick, {"AAA": FLAT}))

        assert len(engine.history) == 50
        assert engine.history[0].tick == 60
        assert engine.history[-1].tick == 11
        assert engine.current_analysis is engine.history[0]

    def test_single_strategy_mode(self, engine):
        engine.set_strategy("scalping")
        trace = engine.evaluate(make_snapshot(8, {"AAA": DIP}))

        assert {c.strategy for c in trace.candidates} == {"scalping"}
        assert engine.thinking_tree()['strategy'] == "SCALPING"

    def test_set_strategy_rejects_unknown(self, engine):
        with pytest.raises(ValueError):
            engine.set_strategy("martingale")
        assert engine.strategy == "auto"

    def test_thinking_tree(self, engine):
        assert engine.thinking_tree() is None
        engine.evaluate(make_snapshot(8, {"AAA": DIP, "BBB": DIP, "CCC": DIP, "DDD": DIP}))
        tree = engine.thinking_tree()

        assert tree['strategy'] == "AUTO"
        assert len(tree['candidates']) <= 12
        assert tree['depth'] == 3

    def test_reset(self, engine):
        engine.evaluate(make_snapshot(8, {"AAA": DIP}))
        engine.reset()

        assert engine.history == []
        assert engine.current_analysis is None
        assert engine.confidence == 0.0
        assert engine.ledger.trades == []
        # Cadence restarts from tick zero
        assert engine.evaluate(make_snapshot(8, {"AAA": FLAT})) is not None


class TestAttachedToMarket:

    def test_trades_only_above_threshold(self):
        market = MarketSimulator(SimulationSettings(seed=21, scenario="bear"))
        engine = DecisionEngine(EngineSettings(seed=21))
        engine.attach(market)
        traces = []
        engine.on(MarketSignal.ANALYSIS, traces.append)

        market.run_days(15)

        assert len(traces) == 15 * market.ticks_per_day // 8
        for trace in traces:
            if not trace.is_hold:
                assert trace.chosen.score > engine.settings.conviction_threshold
        assert engine.ledger.cash >= 0
        assert all(h.quantity > 0 for h in engine.ledger.holdings.values())

    def test_detach(self):
        market = MarketSimulator(SimulationSettings(seed=2))
        engine = DecisionEngine(EngineSettings(seed=2))
        engine.attach(market)
        engine.detach()

        market.run_ticks(40)
        assert engine.history == []
