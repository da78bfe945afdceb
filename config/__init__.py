"""Configuration module."""

from config.settings import (
    Settings,
    SimulationSettings,
    ReplaySettings,
    EngineSettings,
    PortfolioSettings,
    PathSettings,
    StrategyMode,
    MarketMode,
)
from config.universe import (
    CompanyProfile,
    EventTemplate,
    Scenario,
    COMPANIES,
    MARKET_EVENTS,
    SCENARIOS,
    get_scenario,
)

__all__ = [
    'Settings', 'SimulationSettings', 'ReplaySettings', 'EngineSettings',
    'PortfolioSettings', 'PathSettings', 'StrategyMode', 'MarketMode',
    'CompanyProfile', 'EventTemplate', 'Scenario',
    'COMPANIES', 'MARKET_EVENTS', 'SCENARIOS', 'get_scenario',
]
