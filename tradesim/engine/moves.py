"""
Decision engine data types.

Candidate moves live for one evaluation cycle; analysis traces are kept
in a bounded rolling history.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from tradesim.portfolio.ledger import TradeRecord


class Action(Enum):
    """Move action."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class OutlookLabel(Enum):
    """Direction of one lookahead path."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class LookaheadSample:
    """One simulated price path outcome."""
    scenario_price: float
    expected_return: float       # Signed in the move's favour
    label: OutlookLabel


@dataclass
class CandidateMove:
    """A proposed trade and its score."""
    action: Action
    symbol: str
    quantity: int
    price: float
    strategy: str
    reason: str
    edge: float = 0.0
    score: float = 0.0
    lookahead: Tuple[LookaheadSample, ...] = ()

    @property
    def avg_lookahead_return(self) -> float:
        if not self.lookahead:
            return 0.0
        return sum(s.expected_return for s in self.lookahead) / len(self.lookahead)

    def count_label(self, label: OutlookLabel) -> int:
        return sum(1 for s in self.lookahead if s.label == label)

    def __repr__(self):
        return (f"Move({self.action.value} {self.quantity} {self.symbol} @ ${self.price:.2f}, "
                f"{self.strategy}, score={self.score:.2f})")


def hold_move(reason: str = "No high-conviction trades") -> CandidateMove:
    return CandidateMove(
        action=Action.HOLD,
        symbol='-',
        quantity=0,
        price=0.0,
        strategy='hold',
        reason=reason,
    )


@dataclass(frozen=True)
class TradeExecution:
    """Payload of the engine's trade signal."""
    trade: TradeRecord
    strategy: str
    reason: str
    confidence: float


@dataclass
class AnalysisTrace:
    """Explainable record of one evaluation cycle."""
    tick: int
    day: int
    position_score: int
    candidates: List[CandidateMove]
    chosen: CandidateMove
    confidence: float
    reasoning: str
    strategy: str
    depth: int
    node_count: int
    trade: Optional[TradeRecord] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_hold(self) -> bool:
        return self.chosen.action == Action.HOLD
