"""
Logging & Audit Module

- System log (console + file)
- Trade journal (CSV): executed trades and engine decisions
- Session summary (JSON)
"""

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from config.settings import PathSettings
from tradesim.engine.moves import AnalysisTrace, TradeExecution
from tradesim.portfolio.ledger import TradeRecord


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(paths: PathSettings, verbose: bool = False) -> logging.Logger:
    """
    Configure the package logger.

    Console shows INFO (DEBUG when verbose); the system log file gets everything.
    """
    paths.system_log.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("tradesim")
    logger.setLevel(logging.DEBUG)
    logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    file_handler = logging.FileHandler(paths.system_log)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt=DATE_FORMAT,
    ))

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger


class TradeJournal:
    """
    CSV audit trail of trades and decisions.

    One row per executed trade (TRADE) and per engine decision (DECISION).
    """

    HEADERS = [
        "timestamp",
        "action",      # TRADE, DECISION
        "actor",
        "day",
        "tick",
        "symbol",
        "side",
        "quantity",
        "price",
        "notional",
        "pnl",
        "strategy",
        "score",
        "confidence",
        "reason",
    ]

    def __init__(self, log_path: Path):
        self.log_path = Path(log_path)
        self._ensure_headers()

    def _ensure_headers(self) -> None:
        """Ensure CSV has headers."""
        if not self.log_path.exists():
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, 'w', newline='') as f:
                writer = csv.writer(f)
                writer.writerow(self.HEADERS)

    def log_trade(
        self,
        trade: TradeRecord,
        actor: str,
        strategy: str = "",
        reason: str = "",
        confidence: Optional[float] = None,
    ) -> None:
        """Log an executed trade."""
        self._write_row({
            "timestamp": trade.timestamp.isoformat(),
            "action": "TRADE",
            "actor": actor,
            "day": trade.day,
            "tick": trade.tick,
            "symbol": trade.symbol,
            "side": trade.side.value,
            "quantity": trade.quantity,
            "price": f"{trade.price:.2f}",
            "notional": f"{trade.notional:.2f}",
            "pnl": f"{trade.pnl:.2f}" if trade.pnl is not None else "",
            "strategy": strategy,
            "score": "",
            "confidence": f"{confidence:.0f}" if confidence is not None else "",
            "reason": reason,
        })

    def log_execution(self, execution: TradeExecution, actor: str = "AI") -> None:
        """Log a trade executed by the decision engine."""
        self.log_trade(
            execution.trade,
            actor,
            strategy=execution.strategy,
            reason=execution.reason,
            confidence=execution.confidence,
        )

    def log_analysis(self, trace: AnalysisTrace, actor: str = "AI") -> None:
        """Log an engine decision (trade or HOLD)."""
        chosen = trace.chosen
        self._write_row({
            "timestamp": trace.timestamp.isoformat(),
            "action": "DECISION",
            "actor": actor,
            "day": trace.day,
            "tick": trace.tick,
            "symbol": chosen.symbol,
            "side": chosen.action.value,
            "quantity": chosen.quantity,
            "price": f"{chosen.price:.2f}",
            "notional": "",
            "pnl": "",
            "strategy": chosen.strategy,
            "score": f"{chosen.score:.4f}",
            "confidence": f"{trace.confidence:.0f}",
            "reason": chosen.reason,
        })

    def _write_row(self, row: Dict) -> None:
        """Write a row to CSV."""
        with open(self.log_path, 'a', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=self.HEADERS)
            writer.writerow(row)


class SummaryLogger:
    """
    JSON logger for end-of-run performance summaries.
    """

    def __init__(self, results_dir: Path):
        self.results_dir = Path(results_dir)
        self.results_dir.mkdir(parents=True, exist_ok=True)

    def save_summary(self, name: str, summary: Dict[str, Any]) -> Path:
        """Save summary to a timestamped JSON file."""
        stamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        filepath = self.results_dir / f"{name}_{stamp}.json"

        with open(filepath, 'w') as f:
            json.dump(summary, f, indent=2, default=str)

        return filepath
