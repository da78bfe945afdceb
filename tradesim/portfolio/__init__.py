"""Portfolio module - ledgers and benchmarks."""

from tradesim.portfolio.ledger import (
    Side,
    Holding,
    TradeRecord,
    PortfolioStats,
    PortfolioLedger,
)
from tradesim.portfolio.benchmark import BuyAndHoldBenchmark

__all__ = [
    'Side', 'Holding', 'TradeRecord', 'PortfolioStats', 'PortfolioLedger',
    'BuyAndHoldBenchmark',
]
