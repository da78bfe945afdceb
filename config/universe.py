"""
Synthetic market universe.

Canonical instrument profiles, market event templates and scenario
multipliers used by the market simulator.
"""

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class CompanyProfile:
    """Static description of a simulated instrument."""
    symbol: str
    name: str
    sector: str
    base_price: float
    volatility: float      # Per-tick noise scale
    trend: float           # Per-tick drift
    color: str = "#00d4ff"


@dataclass(frozen=True)
class EventTemplate:
    """Template for a randomly spawned market event."""
    event_type: str
    text: str                               # '{symbol}' is substituted
    price_effect: Tuple[float, float]       # Total effect range (fraction)
    vol_effect: float                       # Volatility multiplier while active
    duration: Tuple[int, int]               # Ticks

    def describe(self, symbol: str) -> str:
        return self.text.replace("{symbol}", symbol)


@dataclass(frozen=True)
class Scenario:
    """Market-wide multiplier set."""
    name: str
    label: str
    trend_mult: float = 1.0
    vol_mult: float = 1.0
    event_freq: float = 1.0


# =============================================================================
# INSTRUMENTS
# =============================================================================

COMPANIES: Tuple[CompanyProfile, ...] = (
    CompanyProfile("NOVA", "Nova Technologies", "Tech Growth", 185.0, 0.025, 0.0004, "#00d4ff"),
    CompanyProfile("STBL", "Stable Energy Corp", "Dividend", 72.0, 0.008, 0.0001, "#4caf50"),
    CompanyProfile("QBIT", "Qbit Quantum", "Speculative Tech", 42.0, 0.04, 0.0006, "#e040fb"),
    CompanyProfile("RXMD", "RxMed Pharma", "Healthcare", 128.0, 0.018, 0.0002, "#ff9800"),
    CompanyProfile("MFIN", "MetaFinance", "Fintech", 95.0, 0.022, 0.0003, "#00e676"),
    CompanyProfile("PNYX", "Pynx Minerals", "Penny / Mining", 8.5, 0.055, -0.0001, "#ff5252"),
    CompanyProfile("AERO", "AeroDefense Sys", "Defense", 210.0, 0.012, 0.00015, "#7c8aff"),
    CompanyProfile("GLBX", "Globex Logistics", "Industrial", 55.0, 0.015, 0.00012, "#ffab40"),
)


# =============================================================================
# EVENT TEMPLATES
# =============================================================================

MARKET_EVENTS: Tuple[EventTemplate, ...] = (
    EventTemplate("earnings_beat", "{symbol} smashes earnings, EPS +22% vs expectations",
                  (0.03, 0.08), 1.8, (5, 15)),
    EventTemplate("earnings_miss", "{symbol} misses earnings badly, revenue down 15%",
                  (-0.08, -0.03), 2.0, (5, 15)),
    EventTemplate("fda_approval", "{symbol} receives FDA approval for key drug",
                  (0.05, 0.15), 2.5, (3, 10)),
    EventTemplate("scandal", "CEO of {symbol} under investigation, shares plummet",
                  (-0.15, -0.06), 3.0, (8, 20)),
    EventTemplate("partnership", "{symbol} announces major partnership deal",
                  (0.02, 0.06), 1.5, (3, 8)),
    EventTemplate("sector_rally", "Sector-wide rally lifts {symbol} and peers",
                  (0.01, 0.04), 1.3, (5, 12)),
    EventTemplate("market_crash", "Flash crash: broad market selloff hits {symbol}",
                  (-0.10, -0.04), 3.5, (10, 25)),
    EventTemplate("buyback", "{symbol} announces $2B share buyback program",
                  (0.02, 0.05), 1.2, (5, 10)),
    EventTemplate("downgrade", "Analyst downgrades {symbol} to Sell, price target cut 30%",
                  (-0.06, -0.02), 1.8, (4, 10)),
    EventTemplate("upgrade", "Goldman upgrades {symbol} to Strong Buy",
                  (0.02, 0.06), 1.5, (4, 10)),
    EventTemplate("fed_rate", "Fed holds rates steady, market reacts",
                  (-0.02, 0.03), 1.8, (8, 20)),
    EventTemplate("war_tension", "Geopolitical tensions escalate, defense stocks surge",
                  (-0.03, 0.05), 2.0, (10, 20)),
)


# =============================================================================
# SCENARIOS
# =============================================================================

SCENARIOS: Dict[str, Scenario] = {
    "normal": Scenario("normal", "Normal Market", 1.0, 1.0, 1.0),
    "bull": Scenario("bull", "Bull Market", 3.0, 0.7, 0.8),
    "bear": Scenario("bear", "Bear Market", -2.0, 1.5, 1.3),
    "sideways": Scenario("sideways", "Sideways", 0.1, 0.5, 0.6),
    "crash": Scenario("crash", "Market Crash", -5.0, 3.0, 2.5),
}


def get_scenario(name: str) -> Scenario:
    """Look up a scenario by name, falling back to the normal market."""
    return SCENARIOS.get(name, SCENARIOS["normal"])
