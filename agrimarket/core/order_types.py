"""
Enums for order sides, statuses and matching strategies.

Values match the strings used on the wire by the market pages.
"""

from enum import Enum

from .errors import ValidationError


class OrderSide(Enum):
    """
    Order sides.

    - BUY: rests on the bid side, matches against asks
    - SELL: rests on the ask side, matches against bids
    """
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class OrderStatus(Enum):
    """
    Order lifecycle.

    - PENDING: submitted and resting as book liquidity
    - FILLED: fully matched at submission (terminal)
    - CANCELLED: withdrawn while pending (terminal)
    """
    PENDING = "pending"
    FILLED = "filled"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.FILLED, OrderStatus.CANCELLED)


class MatchingStrategy(Enum):
    """
    How an incoming order is crossed against the opposing side.

    - BEST_LEVEL: only the single best opposing level is considered
    - SWEEP: all crossing levels are walked, all-or-nothing
    """
    BEST_LEVEL = "best_level"
    SWEEP = "sweep"


def validate_order_side(side: str) -> OrderSide:
    """
    Validate and convert a string side to OrderSide.

    Args:
        side: "buy" or "sell", any case

    Returns:
        OrderSide enum value

    Raises:
        ValidationError: If side is not a known value
    """
    if isinstance(side, OrderSide):
        return side
    try:
        return OrderSide(str(side).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid order side: {side}. Must be one of: {[s.value for s in OrderSide]}")


def validate_matching_strategy(strategy: str) -> MatchingStrategy:
    """Validate and convert a string to MatchingStrategy."""
    try:
        return MatchingStrategy(str(strategy).strip().lower())
    except ValueError:
        raise ValueError(f"Invalid matching strategy: {strategy}. Must be one of: {[s.value for s in MatchingStrategy]}")
