"""Engine module - move generation, lookahead and decision making."""

from tradesim.engine.moves import (
    Action,
    OutlookLabel,
    LookaheadSample,
    CandidateMove,
    TradeExecution,
    AnalysisTrace,
    hold_move,
)
from tradesim.engine.strategies import (
    StrategyKind,
    PriceHistory,
    IndicatorSnapshot,
    STRATEGIES,
    compute_indicators,
    resolve_strategies,
)
from tradesim.engine.lookahead import LookaheadEngine, return_statistics
from tradesim.engine.decision_engine import DecisionEngine

__all__ = [
    'Action', 'OutlookLabel', 'LookaheadSample', 'CandidateMove',
    'TradeExecution', 'AnalysisTrace', 'hold_move',
    'StrategyKind', 'PriceHistory', 'IndicatorSnapshot', 'STRATEGIES',
    'compute_indicators', 'resolve_strategies',
    'LookaheadEngine', 'return_statistics',
    'DecisionEngine',
]
