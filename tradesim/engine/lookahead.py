"""
Monte Carlo Lookahead.

Projects a handful of short price paths from the historical mean return
and volatility of recent closes, and reports each path's return in the
direction of the proposed move.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from tradesim.engine.moves import Action, CandidateMove, LookaheadSample, OutlookLabel


DEFAULT_VOLATILITY = 0.02


def return_statistics(closes: Sequence[float]) -> Tuple[float, float]:
    """
    Mean and population stdev of simple returns.

    Falls back to (0, DEFAULT_VOLATILITY) when fewer than two closes exist.
    """
    prices = np.asarray(closes, dtype=float)
    if len(prices) < 2:
        return 0.0, DEFAULT_VOLATILITY

    prev = prices[:-1]
    with np.errstate(divide='ignore', invalid='ignore'):
        returns = np.where(prev != 0, np.diff(prices) / prev, 0.0)

    return float(returns.mean()), float(returns.std())


class LookaheadEngine:
    """
    Bounded stochastic projection of candidate moves.

    Each path compounds (mean return + uniform shock) for `depth` steps;
    shocks span +/- 2x historical volatility.
    """

    def __init__(
        self,
        depth: int = 3,
        n_paths: int = 5,
        label_threshold: float = 0.02,
        rng: Optional[np.random.Generator] = None,
    ):
        self.depth = depth
        self.n_paths = n_paths
        self.label_threshold = label_threshold
        self.rng = rng if rng is not None else np.random.default_rng()

    def project(self, move: CandidateMove, closes: Sequence[float]) -> Tuple[LookaheadSample, ...]:
        """Simulate `n_paths` outcomes for `move`."""
        if move.action == Action.HOLD or move.price <= 0:
            return ()

        avg_return, volatility = return_statistics(closes)

        shocks = (self.rng.random((self.n_paths, self.depth)) - 0.5) * 2 * volatility * 2
        growth = np.prod(1 + avg_return + shocks, axis=1)
        final_prices = move.price * growth

        samples = []
        for final_price in final_prices:
            raw = (final_price - move.price) / move.price
            samples.append(LookaheadSample(
                scenario_price=float(final_price),
                expected_return=float(raw if move.action == Action.BUY else -raw),
                label=self._label(raw),
            ))
        return tuple(samples)

    def _label(self, raw_return: float) -> OutlookLabel:
        if raw_return > self.label_threshold:
            return OutlookLabel.BULLISH
        if raw_return < -self.label_threshold:
            return OutlookLabel.BEARISH
        return OutlookLabel.NEUTRAL
