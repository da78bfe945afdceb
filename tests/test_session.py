"""
Tests for sessions, the trade journal and logging setup.
"""

import asyncio
import csv
import json
import logging
import subprocess

import pytest
import pandas as pd

import sys
from pathlib import Path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import MarketMode, Settings
from tradesim.data.history_source import InMemoryHistorySource
from tradesim.logging_module import SummaryLogger, TradeJournal, setup_logging
from tradesim.market.models import Bar
from tradesim.market.replay import ReplayState
from tradesim.session import ReplaySession, SimulationSession


def make_bars(closes):
    dates = pd.date_range(start='2023-06-01', periods=len(closes), freq='D')
    return [
        Bar(time=i, date=d.strftime('%Y-%m-%d'), open=c, high=c * 1.01,
            low=c * 0.99, close=c, volume=500_000)
        for i, (d, c) in enumerate(zip(dates, closes))
    ]


@pytest.fixture
def settings(tmp_path):
    settings = Settings()
    settings.simulation.seed = 17
    settings.engine.seed = 17
    settings.replay_engine.seed = 17
    settings.paths.logs_dir = str(tmp_path / "logs")
    settings.paths.results_dir = str(tmp_path / "results")
    return settings


@pytest.fixture
def source():
    closes = [50.0, 49.0, 48.5, 49.5, 51.0, 50.0, 48.0, 47.0, 46.5, 48.0,
              50.5, 52.0, 53.5, 52.0, 51.0, 53.0, 55.0, 56.5, 55.0, 57.0]
    return InMemoryHistorySource({"TEST": make_bars(closes)})


class TestSimulationSession:

    def test_day_close_updates_both_ledgers(self, settings):
        session = SimulationSession(settings)
        session.run_days(3)

        # Days 0 and 1 have closed; day 2 is still open
        assert len(session.ai_ledger.period_returns) == 2
        assert len(session.user_ledger.period_returns) == 2
        assert len(session.engine.history) == 3 * 78 // 8

    def test_user_trades_at_quote_price(self, settings):
        session = SimulationSession(settings)
        session.run_ticks(10)
        price = session.market.quote("NOVA").price

        buy = session.user_buy("NOVA", 5)

        assert buy.price == price
        assert buy.tick == session.market.tick
        assert session.user_ledger.holdings["NOVA"].quantity == 5

        sell = session.user_sell("NOVA", 5)
        assert sell.pnl == pytest.approx(0.0)
        assert session.user_buy("XXXX", 5) is None
        assert session.user_sell("NOVA", 5) is None

    def test_performance(self, settings):
        session = SimulationSession(settings)
        session.run_days(2)
        perf = session.performance()

        assert perf['ai'].name == "AI"
        assert perf['user'].name == "User"
        assert perf['user'].total_return_pct == 0.0
        assert perf['ai_lead_pct'] == pytest.approx(perf['ai'].total_return_pct)
        json.dumps(session.summary(), default=str)

    def test_reset(self, settings):
        session = SimulationSession(settings)
        session.run_days(2)
        session.user_buy("STBL", 3)
        session.reset()

        assert session.market.tick == 0
        assert session.engine.history == []
        assert session.ai_ledger.trades == []
        assert session.user_ledger.holdings == {}

    def test_journal_records_decisions(self, settings, tmp_path):
        journal = TradeJournal(tmp_path / "journal.csv")
        session = SimulationSession(settings, journal=journal)
        session.run_days(2)
        session.user_buy("AERO", 1)

        with open(tmp_path / "journal.csv", newline='') as f:
            rows = list(csv.DictReader(f))

        decisions = [r for r in rows if r['action'] == "DECISION"]
        trades = [r for r in rows if r['action'] == "TRADE"]
        assert len(decisions) == len(session.engine.history)
        assert trades[-1]['actor'] == "User"
        assert trades[-1]['symbol'] == "AERO"
        ai_trades = [r for r in trades if r['actor'] == "AI"]
        assert len(ai_trades) == len(session.ai_ledger.trades)


class TestReplaySession:

    def test_load_and_run(self, settings, source):
        session = ReplaySession(settings, source=source)

        assert asyncio.run(session.load("TEST")) is not None
        assert session.benchmark.invested
        assert session.benchmark.shares == 200

        session.run_to_end()

        assert session.market.state == ReplayState.COMPLETE
        assert len(session.ai_ledger.period_returns) == 20
        perf = session.performance()
        assert perf['benchmark_return_pct'] == pytest.approx((57.0 - 50.0) / 50.0 * 100)
        assert perf['ai_alpha_pct'] == pytest.approx(
            perf['ai'].total_return_pct - perf['benchmark_return_pct']
        )
        assert perf['end_date'] == '2023-06-20'
        assert perf['progress'] == 1.0

    def test_replay_engine_settings(self, settings, source):
        session = ReplaySession(settings, source=source)

        assert session.engine.settings.conviction_threshold == 0.5
        assert session.engine.settings.evaluation_frequency == 2

    def test_reload_resets_actors(self, settings, source):
        session = ReplaySession(settings, source=source)
        asyncio.run(session.load("TEST"))
        session.run_to_end()
        session.user_buy("TEST", 10)

        asyncio.run(session.load("TEST"))

        assert session.user_ledger.trades == []
        assert session.engine.history == []
        assert len(session.ai_ledger.period_returns) == 1
        assert session.benchmark.start_price == 50.0

    def test_failed_load_keeps_state(self, settings, source):
        session = ReplaySession(settings, source=source)
        asyncio.run(session.load("TEST"))
        session.user_buy("TEST", 10)

        assert asyncio.run(session.load("MISSING")) is None
        assert session.market.state == ReplayState.ERROR
        assert len(session.user_ledger.trades) == 1

    def test_reset(self, settings, source):
        session = ReplaySession(settings, source=source)
        asyncio.run(session.load("TEST"))
        session.run_to_end()
        session.reset()

        assert session.market.state == ReplayState.READY
        assert len(session.market.revealed) == 1
        assert session.benchmark.shares == 200
        assert session.benchmark.return_pct == 0.0
        assert len(session.ai_ledger.period_returns) == 1


class TestLogging:

    def test_setup_logging(self, settings):
        logger = setup_logging(settings.paths, verbose=True)
        try:
            logging.getLogger("tradesim.test").info("hello")
            for handler in logger.handlers:
                handler.flush()

            assert len(logger.handlers) == 2
            assert "hello" in settings.paths.system_log.read_text()
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers = []

    def test_journal_headers_written_once(self, tmp_path):
        path = tmp_path / "trades.csv"
        TradeJournal(path)
        TradeJournal(path)

        with open(path, newline='') as f:
            rows = list(csv.reader(f))

        assert rows == [TradeJournal.HEADERS]

    def test_summary_logger(self, tmp_path):
        filepath = SummaryLogger(tmp_path / "results").save_summary("run", {"value": 1.5})

        assert json.loads(filepath.read_text()) == {"value": 1.5}


class TestEntryPoints:

    @pytest.mark.parametrize("module", [
        "main", "tradesim.session", "tradesim.data", "tradesim.market.replay",
    ])
    def test_imports_in_fresh_interpreter(self, module):
        result = subprocess.run(
            [sys.executable, "-c", f"import {module}"],
            cwd=str(project_root), capture_output=True, text=True,
        )

        assert result.returncode == 0, result.stderr

    def test_run_follows_configured_mode(self, settings, monkeypatch):
        import main

        calls = []

        def fake_simulation(self, days, save_results=True):
            calls.append(("synthetic", days))
            return {'day': days}

        def fake_replay(self, symbol, range_=None, save_results=True):
            calls.append(("replay", symbol))
            return {'symbol': symbol}

        monkeypatch.setattr(main.TradingSimulator, "run_simulation", fake_simulation)
        monkeypatch.setattr(main.TradingSimulator, "run_replay", fake_replay)
        system = main.TradingSimulator(settings, journal=False)

        system.run(5)
        settings.mode = MarketMode.REPLAY
        system.run(5)

        assert calls == [("synthetic", 5), ("replay", "AAPL")]
