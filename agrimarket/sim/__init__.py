"""Demo trading activity for the market pages."""

from .simulator import TradingSimulator

__all__ = ["TradingSimulator"]
