"""
Random order generator for demonstrating the market.

Each simulated order picks a crop, a side, a quantity between 10 and
109 quintals and a limit price within 5% of the crop's reference price.
"""

import random
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence
import logging

from ..core.errors import ValidationError
from ..core.instruments import REFERENCE_PRICES, reference_price
from ..core.matching_engine import MatchingEngine
from ..core.order import Order, new_order_id
from ..core.order_types import OrderSide

logger = logging.getLogger(__name__)

SIMULATOR_TRADER = "simulator"
MIN_QUANTITY = 10
MAX_QUANTITY = 109
PRICE_BAND = 0.05


class TradingSimulator:
    """Submits random orders to the engine."""

    def __init__(self, engine: MatchingEngine, crops: Optional[Sequence[str]] = None,
                 rng: Optional[random.Random] = None):
        """
        Args:
            engine: Engine receiving the orders
            crops: Crops to pick from; defaults to every crop with a reference price
            rng: Random source, seeded in tests
        """
        self.engine = engine
        if crops is None:
            crops = list(REFERENCE_PRICES.keys())
        self.crops: List[str] = [c.strip().lower() for c in crops if c.strip()]
        if not self.crops:
            raise ValueError("At least one crop is required")
        self.rng = rng or random.Random()

    def generate_order(self, crop: Optional[str] = None) -> Order:
        """Build a random pending order without submitting it."""
        symbol = (crop or self.rng.choice(self.crops)).strip().lower()
        if not symbol:
            raise ValidationError("Crop symbol cannot be empty")

        side = OrderSide.BUY if self.rng.random() > 0.5 else OrderSide.SELL
        quantity = self.rng.randint(MIN_QUANTITY, MAX_QUANTITY)
        factor = Decimal(str(1 - PRICE_BAND + self.rng.random() * 2 * PRICE_BAND))
        price = (reference_price(symbol) * factor).quantize(Decimal('1'), rounding=ROUND_HALF_UP)

        return Order(
            order_id=new_order_id("sim"),
            symbol=symbol,
            side=side,
            quantity=Decimal(quantity),
            price=price,
            trader=SIMULATOR_TRADER,
        )

    def simulate_order(self, crop: Optional[str] = None) -> Order:
        """
        Generate one random order and submit it.

        Args:
            crop: Force the crop instead of picking one at random

        Returns:
            The submitted order
        """
        order = self.generate_order(crop)
        self.engine.submit(order)
        logger.info(f"Simulated {order.side.value} order {order.order_id} on {order.symbol}: {order.status.value}")
        return order
