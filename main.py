"""
Trading Simulator - Main Entry Point

Synthetic market simulation and historical replay with a rule-based
decision engine trading against them.

Usage:
    python main.py run --mode synthetic --days 20
    python main.py simulate --days 20 --scenario bull --strategy auto
    python main.py replay --symbol AAPL --range 1y
    python main.py search --query apple
    python main.py config --write config.yaml
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from config.settings import DEFAULT_CONFIG_YAML, MarketMode, Settings, StrategyMode
from config.universe import SCENARIOS
from tradesim.data.history_source import (
    HistoricalDataSource,
    SymbolMatch,
    VALID_RANGES,
    YahooHistorySource,
)
from tradesim.logging_module import SummaryLogger, TradeJournal, setup_logging
from tradesim.portfolio.ledger import PortfolioStats
from tradesim.session import ReplaySession, SimulationSession


logger = logging.getLogger("tradesim.main")


class TradingSimulator:
    """
    Main orchestrator for the trading simulator.

    Provides unified interface for:
    - Synthetic market simulation
    - Historical replay
    - Symbol search
    """

    def __init__(self, settings: Optional[Settings] = None, journal: bool = True):
        """Initialize the simulator."""
        self.settings = settings or Settings()
        self.settings.paths.create_directories()

        self.journal = TradeJournal(self.settings.paths.trade_journal) if journal else None
        self._source: Optional[HistoricalDataSource] = None

    @property
    def source(self) -> HistoricalDataSource:
        """Get or create the historical data source."""
        if self._source is None:
            self._source = YahooHistorySource()
        return self._source

    def run_simulation(self, days: int, save_results: bool = True) -> Dict[str, Any]:
        """
        Run the synthetic market for `days` trading days.

        Returns:
            Performance dictionary (see SimulationSession.performance)
        """
        session = SimulationSession(self.settings, journal=self.journal)
        session.run_days(days)

        perf = session.performance()
        logger.info(
            f"Simulation finished: day {perf['day']}, tick {perf['tick']}, "
            f"{perf['ai'].trade_count} AI trades"
        )

        if save_results:
            filepath = SummaryLogger(self.settings.paths.results_dir).save_summary(
                "simulation", session.summary()
            )
            logger.info(f"Results saved to {filepath}")
        return perf

    def run_replay(
        self,
        symbol: str,
        range_: Optional[str] = None,
        save_results: bool = True,
    ) -> Dict[str, Any]:
        """
        Replay `symbol` history bar by bar to completion.

        Returns:
            Performance dictionary, empty if the history could not be loaded
        """
        session = ReplaySession(self.settings, source=self.source, journal=self.journal)

        result = asyncio.run(session.load(symbol, range_))
        if result is None:
            logger.error(f"Could not load {symbol}: {session.market.error}")
            return {}

        session.run_to_end()
        perf = session.performance()

        if save_results:
            filepath = SummaryLogger(self.settings.paths.results_dir).save_summary(
                f"replay_{session.market.symbol}", session.summary()
            )
            logger.info(f"Results saved to {filepath}")
        return perf

    def run(self, days: int = 20, save_results: bool = True) -> Dict[str, Any]:
        """Run the market selected by `settings.mode`."""
        if self.settings.mode == MarketMode.REPLAY:
            return self.run_replay(self.settings.replay.default_symbol, save_results=save_results)
        return self.run_simulation(days, save_results=save_results)

    def search_symbols(self, query: str) -> List[SymbolMatch]:
        return asyncio.run(self.source.search(query))


def print_stats(label: str, stats: PortfolioStats):
    print(f"\n{label}:")
    print(f"  Total Value: ${stats.total_value:,.2f}")
    print(f"  Total Return: {stats.total_return_pct:+.2f}%")
    print(f"  Realized P&L: ${stats.realized_pnl:,.2f}")
    print(f"  Unrealized P&L: ${stats.unrealized_pnl:,.2f}")
    print(f"  Sharpe Ratio: {stats.sharpe:.2f}")
    print(f"  Max Drawdown: {stats.max_drawdown:.2%}")
    print(f"  Win Rate: {stats.win_rate:.1%}")
    print(f"  Trades: {stats.trade_count}")
    if stats.holdings:
        held = ", ".join(f"{h.quantity} {s}" for s, h in stats.holdings.items())
        print(f"  Holdings: {held}")


def print_simulation(settings: Settings, result: Dict[str, Any]):
    print("\n" + "="*60)
    print(f"SIMULATION RESULTS ({settings.simulation.scenario.upper()})")
    print("="*60)
    print(f"Days: {result['day']} | Ticks: {result['tick']}")
    print_stats("AI", result['ai'])


def print_replay(result: Dict[str, Any]):
    print("\n" + "="*60)
    print(f"REPLAY RESULTS: {result['symbol']} ({result['start_date']} to {result['end_date']})")
    print("="*60)
    print_stats("AI", result['ai'])
    print("\nBuy & Hold:")
    print(f"  Value: ${result['benchmark_value']:,.2f}")
    print(f"  Return: {result['benchmark_return_pct']:+.2f}%")
    print(f"  Max Drawdown: {result['benchmark_max_drawdown_pct']:.2f}%")
    print(f"\nAI vs Buy & Hold: {result['ai_alpha_pct']:+.2f}%")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Trading simulator with a rule-based decision engine'
    )
    parser.add_argument('--config', type=str, default=None, help='YAML settings file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug output on console')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Run command
    run_parser = subparsers.add_parser('run', help='Run the market selected by the configured mode')
    run_parser.add_argument('--mode', type=str, default=None,
                            choices=[m.value for m in MarketMode], help='Override the configured mode')
    run_parser.add_argument('--days', type=int, default=20, help='Trading days (synthetic mode)')

    # Simulate command
    sim_parser = subparsers.add_parser('simulate', help='Run the synthetic market')
    sim_parser.add_argument('--days', type=int, default=20, help='Trading days to simulate')
    sim_parser.add_argument('--scenario', type=str, default=None,
                            choices=sorted(SCENARIOS), help='Market scenario')
    sim_parser.add_argument('--strategy', type=str, default=None,
                            choices=[m.value for m in StrategyMode], help='Engine strategy')
    sim_parser.add_argument('--seed', type=int, default=None, help='Random seed')

    # Replay command
    replay_parser = subparsers.add_parser('replay', help='Replay historical data')
    replay_parser.add_argument('--symbol', type=str, default=None, help='Ticker symbol')
    replay_parser.add_argument('--range', type=str, default=None,
                               choices=VALID_RANGES, help='History range')
    replay_parser.add_argument('--strategy', type=str, default=None,
                               choices=[m.value for m in StrategyMode], help='Engine strategy')
    replay_parser.add_argument('--seed', type=int, default=None, help='Random seed')

    # Search command
    search_parser = subparsers.add_parser('search', help='Search ticker symbols')
    search_parser.add_argument('--query', type=str, required=True, help='Search text')

    # Config command
    config_parser = subparsers.add_parser('config', help='Show or write configuration')
    config_parser.add_argument('--write', type=str, default=None, help='Write settings to YAML')
    config_parser.add_argument('--template', action='store_true', help='Print the YAML template')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    settings = Settings.from_yaml(args.config) if args.config else Settings()

    if getattr(args, 'mode', None):
        settings.mode = MarketMode(args.mode)
    if getattr(args, 'scenario', None):
        settings.simulation.scenario = args.scenario
    if getattr(args, 'strategy', None):
        settings.engine.strategy = args.strategy
        settings.replay_engine.strategy = args.strategy
    if getattr(args, 'seed', None) is not None:
        settings.simulation.seed = args.seed
        settings.engine.seed = args.seed
        settings.replay_engine.seed = args.seed

    valid, errors = settings.validate()
    if not valid:
        for error in errors:
            print(f"Config error: {error}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings.paths, verbose=args.verbose)

    try:
        if args.command == 'run':
            system = TradingSimulator(settings)
            result = system.run(args.days)

            if not result:
                sys.exit(1)
            if settings.mode == MarketMode.REPLAY:
                print_replay(result)
            else:
                print_simulation(settings, result)

        elif args.command == 'simulate':
            system = TradingSimulator(settings)
            result = system.run_simulation(args.days)
            print_simulation(settings, result)

        elif args.command == 'replay':
            system = TradingSimulator(settings)
            symbol = args.symbol or settings.replay.default_symbol
            result = system.run_replay(symbol, args.range)

            if not result:
                sys.exit(1)
            print_replay(result)

        elif args.command == 'search':
            system = TradingSimulator(settings, journal=False)
            matches = system.search_symbols(args.query)

            if not matches:
                print("No matches.")
            for m in matches:
                print(f"{m.symbol:<10} {m.name:<40} {m.exchange:<8} {m.type}")

        elif args.command == 'config':
            if args.template:
                print(DEFAULT_CONFIG_YAML)
            elif args.write:
                settings.to_yaml(args.write)
                print(f"Settings written to {args.write}")
            else:
                print(settings.get_summary())

    except KeyboardInterrupt:
        print("\nInterrupted.")
    except Exception as e:
        logger.error(f"Error: {e}")
        raise


if __name__ == '__main__':
    main()
