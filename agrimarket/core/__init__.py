"""
Core trading components.

This module contains the order and book data structures, the
in-memory store and the matching engine for crop instruments.
"""

from .order import Order, LastTrade
from .order_types import OrderSide, OrderStatus, MatchingStrategy
from .order_book import OrderBook, PriceLevel, DepthView, LevelView
from .store import MarketStore
from .matching_engine import MatchingEngine
from .errors import (
    MarketError,
    ValidationError,
    NotFoundError,
    InvalidStateError,
    UpstreamError,
)

__all__ = [
    "Order",
    "LastTrade",
    "OrderSide",
    "OrderStatus",
    "MatchingStrategy",
    "OrderBook",
    "PriceLevel",
    "DepthView",
    "LevelView",
    "MarketStore",
    "MatchingEngine",
    "MarketError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "UpstreamError",
]
