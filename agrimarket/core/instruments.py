"""
Crop instruments and demo liquidity.

Reference prices are per quintal, in rupees, and drive both the demo
seeding of fresh books and the trading simulator.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Tuple

REFERENCE_PRICES: Dict[str, Decimal] = {
    "wheat": Decimal('2150'),
    "rice": Decimal('3200'),
    "cotton": Decimal('6800'),
    "sugarcane": Decimal('380'),
}

# Template around wheat's reference price: (price, quantity, order count)
_TEMPLATE_REFERENCE = REFERENCE_PRICES["wheat"]
_TEMPLATE_BIDS: List[Tuple[Decimal, Decimal, int]] = [
    (Decimal('2100'), Decimal('100'), 5),
    (Decimal('2095'), Decimal('150'), 8),
    (Decimal('2090'), Decimal('200'), 12),
]
_TEMPLATE_ASKS: List[Tuple[Decimal, Decimal, int]] = [
    (Decimal('2160'), Decimal('120'), 6),
    (Decimal('2165'), Decimal('180'), 9),
    (Decimal('2170'), Decimal('250'), 15),
]
_TEMPLATE_LAST_TRADE = (Decimal('2150'), Decimal('50'))


def reference_price(symbol: str) -> Decimal:
    """
    Reference price for a crop.

    Unknown crops use the wheat template price, the same level their
    seeded books are built around, so simulated orders for them trade
    against that depth rather than far below it.
    """
    return REFERENCE_PRICES.get(symbol, _TEMPLATE_REFERENCE)


def _scale(price: Decimal, reference: Decimal) -> Decimal:
    if reference == _TEMPLATE_REFERENCE:
        return price
    return (price * reference / _TEMPLATE_REFERENCE).quantize(Decimal('1'), rounding=ROUND_HALF_UP)


def seed_levels(symbol: str) -> Dict[str, object]:
    """
    Demo liquidity for a fresh book.

    Returns:
        Dict with "bids" and "asks" lists of (price, quantity, count)
        and "last_trade" as (price, quantity)
    """
    reference = reference_price(symbol)
    last_price, last_quantity = _TEMPLATE_LAST_TRADE
    return {
        "bids": [(_scale(p, reference), q, c) for p, q, c in _TEMPLATE_BIDS],
        "asks": [(_scale(p, reference), q, c) for p, q, c in _TEMPLATE_ASKS],
        "last_trade": (_scale(last_price, reference), last_quantity),
    }
