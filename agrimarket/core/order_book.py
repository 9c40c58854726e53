"""
Order book with aggregated price levels.

Each side keeps one PriceLevel per distinct price plus a sorted price
index, so the best level on either side is found without scanning.
Bids are reported best (highest) first, asks best (lowest) first.
"""

import bisect
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Tuple, Optional, Any
import logging

from .order import LastTrade, to_number, utc_now
from .order_types import OrderSide

logger = logging.getLogger(__name__)


class PriceLevel:
    """
    Aggregated resting liquidity at one price.

    `order_count` counts contributions and can include seeded
    liquidity that has no order record behind it. `order_ids` lists
    the order records that rested here and have not been cancelled.
    """

    def __init__(self, price: Decimal, quantity: Decimal = Decimal('0'), order_count: int = 0):
        self.price = price
        self.quantity = quantity
        self.order_count = order_count
        self.order_ids: List[str] = []

    def add(self, quantity: Decimal, order_id: Optional[str] = None, count: int = 1) -> None:
        self.quantity += quantity
        self.order_count += count
        if order_id:
            self.order_ids.append(order_id)

    def take(self, quantity: Decimal) -> Decimal:
        """
        Remove up to `quantity` from the level.

        Returns:
            Quantity actually removed
        """
        taken = min(quantity, self.quantity)
        self.quantity -= taken
        return taken

    def is_empty(self) -> bool:
        return self.quantity <= 0

    def to_view(self) -> "LevelView":
        return LevelView(price=self.price, quantity=self.quantity, count=self.order_count)

    def __repr__(self) -> str:
        return f"PriceLevel(price={self.price}, quantity={self.quantity}, count={self.order_count})"


@dataclass(frozen=True)
class LevelView:
    """Read-only copy of a price level."""

    price: Decimal
    quantity: Decimal
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": to_number(self.price),
            "quantity": to_number(self.quantity),
            "count": self.count,
        }


@dataclass(frozen=True)
class DepthView:
    """Read-only snapshot of a book."""

    symbol: str
    bids: Tuple[LevelView, ...]
    asks: Tuple[LevelView, ...]
    last_trade: Optional[LastTrade]
    volume_24h: Decimal
    high_24h: Decimal
    low_24h: Decimal

    def to_dict(self) -> Dict[str, Any]:
        """Market depth in the wire format used by the market pages."""
        return {
            "crop": self.symbol,
            "buyOrders": [level.to_dict() for level in self.bids],
            "sellOrders": [level.to_dict() for level in self.asks],
            "lastTrade": self.last_trade.to_dict() if self.last_trade else None,
            "volume24h": to_number(self.volume_24h),
            "high24h": to_number(self.high_24h),
            "low24h": to_number(self.low_24h),
        }


class OrderBook:
    """
    Resting liquidity and market statistics for one crop.

    The book only changes through the matching engine. Views handed
    out by `depth_view` are copies.
    """

    def __init__(self, symbol: str):
        """
        Initialize an empty book.

        Args:
            symbol: Crop symbol (e.g., "wheat")
        """
        self.symbol = symbol

        # price -> PriceLevel
        self.bids: Dict[Decimal, PriceLevel] = {}
        self.asks: Dict[Decimal, PriceLevel] = {}

        # Ascending price indexes; best bid is last, best ask is first
        self.bid_prices: List[Decimal] = []
        self.ask_prices: List[Decimal] = []

        self.last_trade: Optional[LastTrade] = None
        self.volume_24h = Decimal('0')
        self.high_24h = Decimal('0')
        self.low_24h = Decimal('0')

        logger.info(f"Initialized order book for {symbol}")

    def _side(self, side: OrderSide) -> Tuple[Dict[Decimal, PriceLevel], List[Decimal]]:
        if side == OrderSide.BUY:
            return self.bids, self.bid_prices
        return self.asks, self.ask_prices

    def levels(self, side: OrderSide) -> List[PriceLevel]:
        """Levels on one side, best price first."""
        levels, prices = self._side(side)
        ordered = reversed(prices) if side == OrderSide.BUY else prices
        return [levels[price] for price in ordered]

    def best_level(self, side: OrderSide) -> Optional[PriceLevel]:
        levels, prices = self._side(side)
        if not prices:
            return None
        return levels[prices[-1] if side == OrderSide.BUY else prices[0]]

    def get_level(self, side: OrderSide, price: Decimal) -> Optional[PriceLevel]:
        levels, _ = self._side(side)
        return levels.get(price)

    def crossing_levels(self, side: OrderSide, limit_price: Decimal) -> List[PriceLevel]:
        """
        Opposing levels an incoming order at `limit_price` can trade with.

        Args:
            side: Side of the incoming order
            limit_price: Its limit price

        Returns:
            Crossing levels, best price first
        """
        if side == OrderSide.BUY:
            return [level for level in self.levels(OrderSide.SELL) if level.price <= limit_price]
        return [level for level in self.levels(OrderSide.BUY) if level.price >= limit_price]

    def add_liquidity(self, side: OrderSide, price: Decimal, quantity: Decimal,
                      order_id: Optional[str] = None, count: int = 1) -> PriceLevel:
        """
        Rest quantity on a side, merging into an existing level at `price`.

        Returns:
            The level the quantity was added to
        """
        levels, prices = self._side(side)
        level = levels.get(price)
        if level is None:
            level = PriceLevel(price)
            levels[price] = level
            bisect.insort(prices, price)
            logger.debug(f"New {side.value} level {price} on {self.symbol}")
        level.add(quantity, order_id, count)
        return level

    def remove_quantity(self, side: OrderSide, price: Decimal, quantity: Decimal) -> Decimal:
        """
        Take quantity from the level at `price`, dropping it once empty.

        Returns:
            Quantity actually removed
        """
        levels, prices = self._side(side)
        level = levels.get(price)
        if level is None:
            return Decimal('0')
        taken = level.take(quantity)
        if level.is_empty():
            del levels[price]
            prices.remove(price)
            logger.debug(f"Removed empty {side.value} level {price} on {self.symbol}")
        return taken

    def release_order(self, side: OrderSide, price: Decimal, order_id: str, quantity: Decimal) -> Decimal:
        """
        Withdraw a resting order's contribution from its level.

        The level may already have been partly or fully consumed by
        fills, so at most what the level still holds is released.

        Returns:
            Quantity released
        """
        level = self.get_level(side, price)
        if level is None or order_id not in level.order_ids:
            return Decimal('0')
        level.order_ids.remove(order_id)
        level.order_count = max(level.order_count - 1, 0)
        return self.remove_quantity(side, price, quantity)

    def record_trade(self, price: Decimal, quantity: Decimal, when: Optional[datetime] = None) -> LastTrade:
        """Update last trade and rolling 24h statistics for one fill."""
        self.last_trade = LastTrade(price=price, quantity=quantity, timestamp=when or utc_now())
        self.volume_24h += quantity
        self.high_24h = max(self.high_24h, price)
        self.low_24h = price if self.low_24h == 0 else min(self.low_24h, price)
        return self.last_trade

    def seed(self, bids: List[Tuple[Decimal, Decimal, int]], asks: List[Tuple[Decimal, Decimal, int]],
             last_trade: Optional[Tuple[Decimal, Decimal]] = None) -> None:
        """
        Load demo liquidity into the book.

        The opening last trade does not count toward 24h statistics.
        """
        for price, quantity, count in bids:
            self.add_liquidity(OrderSide.BUY, price, quantity, count=count)
        for price, quantity, count in asks:
            self.add_liquidity(OrderSide.SELL, price, quantity, count=count)
        if last_trade:
            price, quantity = last_trade
            self.last_trade = LastTrade(price=price, quantity=quantity, timestamp=utc_now())
        logger.info(f"Seeded {self.symbol} with {len(bids)} bid and {len(asks)} ask levels")

    def depth_view(self) -> DepthView:
        """Immutable snapshot of levels and statistics."""
        return DepthView(
            symbol=self.symbol,
            bids=tuple(level.to_view() for level in self.levels(OrderSide.BUY)),
            asks=tuple(level.to_view() for level in self.levels(OrderSide.SELL)),
            last_trade=self.last_trade,
            volume_24h=self.volume_24h,
            high_24h=self.high_24h,
            low_24h=self.low_24h,
        )

    def get_bbo(self) -> Tuple[Optional[Decimal], Optional[Decimal]]:
        """
        Get Best Bid and Offer (BBO).

        Returns:
            Tuple of (best_bid, best_ask) prices
        """
        best_bid = self.best_level(OrderSide.BUY)
        best_ask = self.best_level(OrderSide.SELL)
        return (best_bid.price if best_bid else None,
                best_ask.price if best_ask else None)

    def get_statistics(self) -> Dict[str, Any]:
        """Get order book statistics."""
        best_bid, best_ask = self.get_bbo()
        spread = best_ask - best_bid if best_bid is not None and best_ask is not None else None

        return {
            "crop": self.symbol,
            "best_bid": to_number(best_bid) if best_bid is not None else None,
            "best_ask": to_number(best_ask) if best_ask is not None else None,
            "spread": to_number(spread) if spread is not None else None,
            "total_bid_quantity": to_number(sum((l.quantity for l in self.bids.values()), Decimal('0'))),
            "total_ask_quantity": to_number(sum((l.quantity for l in self.asks.values()), Decimal('0'))),
            "bid_levels": len(self.bids),
            "ask_levels": len(self.asks),
            "volume_24h": to_number(self.volume_24h),
            "last_trade_price": to_number(self.last_trade.price) if self.last_trade else None,
        }
