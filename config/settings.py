"""
Settings and Configuration for the Trading Simulator.

Centralized configuration management using dataclasses and YAML support.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Tuple, Optional, Dict, Any
from enum import Enum
from pathlib import Path
import yaml

from config.universe import SCENARIOS


class StrategyMode(Enum):
    """Strategy selection for the decision engine."""
    AUTO = "auto"
    MOMENTUM = "momentum"
    MEAN_REVERSION = "mean_reversion"
    BREAKOUT = "breakout"
    VALUE = "value"
    SCALPING = "scalping"


class MarketMode(Enum):
    """Which market drives the session."""
    SYNTHETIC = "synthetic"
    REPLAY = "replay"


@dataclass
class SimulationSettings:
    """Synthetic market parameters."""

    # Clock
    ticks_per_day: int = 78              # ~6.5 trading hours
    base_interval: float = 0.385         # Seconds per tick at 1x
    min_interval: float = 0.010          # Scheduler floor

    # Events
    event_probability: float = 0.003     # Per tick, before scenario scaling
    event_log_limit: int = 100

    # Microstructure
    volume_min: int = 5000
    volume_max: int = 55000
    spread_fraction: float = 0.001       # Max bid/ask offset from price
    gap_bias: float = 0.48               # < 0.5 skews overnight gaps upward
    gap_scale: float = 0.5
    reversion_coeff: float = 0.0001      # Pull toward base price
    event_drift_scale: float = 0.01
    price_floor: float = 0.01

    scenario: str = "normal"
    seed: Optional[int] = None


@dataclass
class ReplaySettings:
    """Historical replay parameters."""

    base_interval: float = 0.8           # Seconds per bar at 1x
    min_interval: float = 0.010
    default_symbol: str = "AAPL"
    default_range: str = "1y"
    interval: str = "1d"
    quote_spread: float = 0.001          # Synthetic bid/ask offset from close


@dataclass
class EngineSettings:
    """Decision engine parameters."""

    # Cadence
    evaluation_frequency: int = 8        # Evaluate every N ticks
    strategy: str = "auto"

    # Conviction
    conviction_threshold: float = 0.1    # Minimum score to execute

    # Sizing
    max_risk_fraction: float = 0.25      # Max share of cash per trade

    # Lookahead
    lookahead_depth: int = 3
    lookahead_paths: int = 5
    lookahead_label_threshold: float = 0.02
    lookahead_weight: float = 10.0

    # Scoring
    edge_weight: float = 5.0
    oversize_fraction: float = 0.5
    oversize_penalty: float = 0.5
    concentration_limit: float = 0.3
    concentration_penalty: float = 0.3
    strategy_weights: Dict[str, float] = field(default_factory=lambda: {
        "momentum": 1.2,
        "mean_reversion": 1.1,
        "breakout": 1.3,
        "value": 1.0,
        "scalping": 0.8,
    })

    # History
    candle_window: int = 50
    min_candles: int = 5
    history_limit: int = 50
    seed: Optional[int] = None

    @classmethod
    def synthetic(cls) -> 'EngineSettings':
        """Defaults for the tick-driven synthetic market."""
        return cls()

    @classmethod
    def replay(cls) -> 'EngineSettings':
        """Defaults for historical replay (one bar per tick)."""
        return cls(
            evaluation_frequency=2,
            conviction_threshold=0.5,
            max_risk_fraction=0.30,
        )


@dataclass
class PortfolioSettings:
    """Ledger parameters."""

    starting_cash: float = 10000.0
    annualization_factor: int = 252


@dataclass
class PathSettings:
    """File paths configuration."""

    logs_dir: str = "logs"
    results_dir: str = "results"

    @property
    def system_log(self) -> Path:
        return Path(self.logs_dir) / "tradesim.log"

    @property
    def trade_journal(self) -> Path:
        return Path(self.results_dir) / "trades.csv"

    def create_directories(self):
        """Create all required directories."""
        for path in [self.logs_dir, self.results_dir]:
            Path(path).mkdir(parents=True, exist_ok=True)


@dataclass
class Settings:
    """Main settings container."""

    # Sub-settings
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    replay: ReplaySettings = field(default_factory=ReplaySettings)
    engine: EngineSettings = field(default_factory=EngineSettings.synthetic)
    replay_engine: EngineSettings = field(default_factory=EngineSettings.replay)
    portfolio: PortfolioSettings = field(default_factory=PortfolioSettings)
    paths: PathSettings = field(default_factory=PathSettings)

    mode: MarketMode = MarketMode.SYNTHETIC

    @classmethod
    def from_yaml(cls, path: str) -> 'Settings':
        """Load settings from YAML file."""
        with open(path, 'r') as f:
            config = yaml.safe_load(f) or {}

        engine = EngineSettings.synthetic()
        for key, value in config.get('engine', {}).items():
            setattr(engine, key, value)
        replay_engine = EngineSettings.replay()
        for key, value in config.get('replay_engine', {}).items():
            setattr(replay_engine, key, value)

        return cls(
            simulation=SimulationSettings(**config.get('simulation', {})),
            replay=ReplaySettings(**config.get('replay', {})),
            engine=engine,
            replay_engine=replay_engine,
            portfolio=PortfolioSettings(**config.get('portfolio', {})),
            paths=PathSettings(**config.get('paths', {})),
            mode=MarketMode(config.get('mode', 'synthetic')),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form suitable for YAML."""
        return {
            'simulation': asdict(self.simulation),
            'replay': asdict(self.replay),
            'engine': asdict(self.engine),
            'replay_engine': asdict(self.replay_engine),
            'portfolio': asdict(self.portfolio),
            'paths': asdict(self.paths),
            'mode': self.mode.value,
        }

    def to_yaml(self, path: str):
        """Save settings to YAML file."""
        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self) -> Tuple[bool, List[str]]:
        """Validate settings configuration."""
        errors = []

        # Simulation validation
        if self.simulation.ticks_per_day < 1:
            errors.append("ticks_per_day must be at least 1")

        if self.simulation.base_interval <= 0:
            errors.append("simulation base_interval must be positive")

        if not 0 <= self.simulation.event_probability <= 1:
            errors.append("event_probability must be between 0 and 1")

        if self.simulation.volume_min > self.simulation.volume_max:
            errors.append("volume_min must be <= volume_max")

        if self.simulation.scenario not in SCENARIOS:
            errors.append(f"unknown scenario '{self.simulation.scenario}'")

        # Engine validation
        valid_modes = {m.value for m in StrategyMode}
        for label, engine in (("engine", self.engine), ("replay_engine", self.replay_engine)):
            if engine.evaluation_frequency < 1:
                errors.append(f"{label}.evaluation_frequency must be at least 1")

            if engine.max_risk_fraction <= 0 or engine.max_risk_fraction > 1:
                errors.append(f"{label}.max_risk_fraction should be between 0 and 100%")

            if engine.conviction_threshold < 0:
                errors.append(f"{label}.conviction_threshold must be >= 0")

            if engine.lookahead_paths < 1 or engine.lookahead_depth < 1:
                errors.append(f"{label} lookahead paths and depth must be at least 1")

            if engine.strategy not in valid_modes:
                errors.append(f"{label}.strategy must be one of {sorted(valid_modes)}")

        # Portfolio validation
        if self.portfolio.starting_cash <= 0:
            errors.append("starting_cash must be positive")

        return len(errors) == 0, errors

    def get_summary(self) -> str:
        """Get settings summary string."""
        return f"""
Trading Simulator Settings Summary
==================================
Mode: {self.mode.value}

Simulation:
  Scenario: {self.simulation.scenario}
  Ticks/Day: {self.simulation.ticks_per_day}
  Tick Interval: {self.simulation.base_interval:.3f}s
  Event Probability: {self.simulation.event_probability:.2%}/tick

Decision Engine:
  Strategy: {self.engine.strategy}
  Evaluate Every: {self.engine.evaluation_frequency} ticks
  Conviction Threshold: {self.engine.conviction_threshold}
  Max Risk/Trade: {self.engine.max_risk_fraction:.0%}
  Lookahead: {self.engine.lookahead_paths} paths x {self.engine.lookahead_depth} steps

Replay Engine:
  Evaluate Every: {self.replay_engine.evaluation_frequency} bars
  Conviction Threshold: {self.replay_engine.conviction_threshold}
  Max Risk/Trade: {self.replay_engine.max_risk_fraction:.0%}

Portfolio:
  Starting Cash: ${self.portfolio.starting_cash:,.0f}
"""


# Default configuration template
DEFAULT_CONFIG_YAML = """
# Trading Simulator Configuration

simulation:
  ticks_per_day: 78
  base_interval: 0.385
  event_probability: 0.003
  scenario: normal

replay:
  base_interval: 0.8
  default_symbol: AAPL
  default_range: 1y
  interval: 1d

engine:
  evaluation_frequency: 8
  conviction_threshold: 0.1
  max_risk_fraction: 0.25
  strategy: auto

replay_engine:
  evaluation_frequency: 2
  conviction_threshold: 0.5
  max_risk_fraction: 0.30
  strategy: auto

portfolio:
  starting_cash: 10000
  annualization_factor: 252

mode: synthetic
"""
