"""
Trading simulator: synthetic market, historical replay and a rule-based
decision engine.
"""

__version__ = "1.0.0"
