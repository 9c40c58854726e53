"""
Matching engine for crop instruments.

The engine is the only component that mutates a book. An incoming
limit order either fills in full against resting liquidity at the
resting price or rests, at its full quantity, on its own side.
"""

import logging
import threading
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Callable, Any, Union
from datetime import datetime, timezone

from .errors import NotFoundError, InvalidStateError, ValidationError
from .order import Order, LastTrade, format_timestamp, to_number, utc_now
from .order_book import OrderBook, DepthView, PriceLevel
from .order_types import OrderSide, OrderStatus, MatchingStrategy
from .store import MarketStore
from ..utils.logger import log_order_audit
from ..utils.performance import PerformanceMonitor, measure_latency

logger = logging.getLogger(__name__)

DEFAULT_TRADES_LIMIT = 50
PRICE_QUANTUM = Decimal('0.01')


class MatchingEngine:
    """
    Limit-order matcher over a MarketStore.

    Features:
    - Best-level matching (no time priority within a level)
    - Optional all-or-nothing sweeping across crossing levels
    - Order ledger queries: status, listing, recent fills
    - Cancellation that releases resting liquidity
    - Callbacks for fills and depth updates
    """

    def __init__(
        self,
        store: Optional[MarketStore] = None,
        strategy: MatchingStrategy = MatchingStrategy.BEST_LEVEL,
        auto_create_books: bool = True,
        audit_logger: Optional[logging.Logger] = None,
        performance_monitor: Optional[PerformanceMonitor] = None,
    ):
        """
        Initialize the matching engine.

        Args:
            store: Book and order storage; a fresh empty store by default
            strategy: How incoming orders cross the opposing side
            auto_create_books: Create books on depth queries for unknown crops
            audit_logger: Optional audit trail for order events
            performance_monitor: Optional latency and counter sink
        """
        self.store = store if store is not None else MarketStore()
        self.strategy = strategy
        self.auto_create_books = auto_create_books
        self.audit_logger = audit_logger
        self.performance_monitor = performance_monitor

        # Callbacks for real-time data
        self.fill_callbacks: List[Callable[[Order], None]] = []
        self.market_data_callbacks: List[Callable[[Dict[str, Any]], None]] = []

        # Statistics span all crops, so they have their own lock
        self._stats_lock = threading.Lock()
        self.total_orders_processed = 0
        self.total_fills = 0
        self.total_filled_quantity = Decimal('0')
        self.start_time = datetime.now(timezone.utc)

        logger.info(f"Matching engine initialized (strategy={strategy.value})")

    def get_or_initialize(self, symbol: str) -> OrderBook:
        """Get the book for a crop, creating it on first access."""
        return self.store.get_or_initialize(symbol.strip().lower())

    def place_order(
        self,
        symbol: str,
        side: Union[OrderSide, str],
        quantity: Union[Decimal, int, float, str],
        price: Union[Decimal, int, float, str],
        trader: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Order:
        """
        Build an order from raw fields and submit it.

        Raises:
            ValidationError: If any field is missing or malformed
        """
        kwargs: Dict[str, Any] = dict(
            symbol=symbol,
            side=side,
            quantity=quantity,
            price=price,
            trader=trader or "anonymous",
        )
        if order_id:
            kwargs["order_id"] = order_id
        return self.submit(Order(**kwargs))

    def submit(self, order: Order) -> Order:
        """
        Submit an order to its crop's book.

        Args:
            order: A pending order

        Returns:
            The same order, filled or pending

        Raises:
            ValidationError: If the order is malformed, not pending, or
                its id is already in use. The book is left untouched.
        """
        order.validate()
        if not order.is_pending:
            raise ValidationError(f"Only pending orders can be submitted, got: {order.status.value}")
        if self.store.has_order(order.order_id):
            raise ValidationError(f"Duplicate order id: {order.order_id}")

        if self.performance_monitor is not None:
            with measure_latency(self.performance_monitor, "submit"):
                self._submit(order)
            self.performance_monitor.increment_counter("orders_submitted")
            if order.is_filled:
                self.performance_monitor.increment_counter("orders_filled")
        else:
            self._submit(order)

        self._audit("SUBMIT", order)
        self._audit("FILL" if order.is_filled else "REST", order)
        if order.is_filled:
            self._notify_fill(order)
        self._notify_market_data(order.symbol)

        logger.info(
            f"Processed order {order.order_id}: {order.side.value} {order.quantity} "
            f"{order.symbol} @ {order.price} -> {order.status.value}"
        )
        return order

    def _submit(self, order: Order) -> None:
        with self.store.symbol_lock(order.symbol):
            book = self.store.get_or_initialize(order.symbol)
            self.store.add_order(order)

            if self.strategy == MatchingStrategy.SWEEP:
                filled = self._match_sweep(order, book)
            else:
                filled = self._match_best_level(order, book)

            if not filled:
                book.add_liquidity(order.side, order.price, order.quantity, order.order_id)

            with self._stats_lock:
                self.total_orders_processed += 1

    def _match_best_level(self, order: Order, book: OrderBook) -> bool:
        """
        Fill against the single best opposing level, or not at all.

        Returns:
            True if the order filled
        """
        crossing = book.crossing_levels(order.side, order.price)
        if not crossing:
            return False

        level = crossing[0]
        if level.quantity < order.quantity:
            logger.debug(
                f"Best level {level.price} holds {level.quantity} < {order.quantity}; "
                f"order {order.order_id} rests"
            )
            return False

        now = utc_now()
        self._execute(book, order.side.opposite, level, order.quantity, now)
        order.mark_filled(level.price, now)
        return True

    def _match_sweep(self, order: Order, book: OrderBook) -> bool:
        """
        Walk all crossing levels best-first, only if together they cover
        the whole order. Executes at the volume-weighted price.

        Returns:
            True if the order filled
        """
        crossing = book.crossing_levels(order.side, order.price)
        available = sum((level.quantity for level in crossing), Decimal('0'))
        if available < order.quantity:
            return False

        now = utc_now()
        remaining = order.quantity
        notional = Decimal('0')
        for level in crossing:
            if remaining <= 0:
                break
            quantity = min(remaining, level.quantity)
            price = level.price
            self._execute(book, order.side.opposite, level, quantity, now)
            notional += price * quantity
            remaining -= quantity

        average = (notional / order.quantity).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)
        order.mark_filled(average, now)
        return True

    def _execute(self, book: OrderBook, resting_side: OrderSide, level: PriceLevel,
                 quantity: Decimal, when: datetime) -> LastTrade:
        price = level.price
        book.remove_quantity(resting_side, price, quantity)
        trade = book.record_trade(price, quantity, when)
        with self._stats_lock:
            self.total_fills += 1
            self.total_filled_quantity += quantity
        return trade

    def cancel_order(self, order_id: str) -> Order:
        """
        Cancel a pending order.

        A cancelled order's quantity is withdrawn from its level, as far
        as fills have not already consumed it. Cancelling an already
        cancelled order returns it unchanged.

        Raises:
            NotFoundError: If the id is unknown
            InvalidStateError: If the order is filled
        """
        order = self.store.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")

        with self.store.symbol_lock(order.symbol):
            if order.status == OrderStatus.FILLED:
                raise InvalidStateError("Cannot cancel filled order")
            if order.status == OrderStatus.CANCELLED:
                return order

            book = self.store.get_book(order.symbol)
            released = Decimal('0')
            if book is not None:
                released = book.release_order(order.side, order.price, order.order_id, order.quantity)
            order.mark_cancelled()

        if self.performance_monitor is not None:
            self.performance_monitor.increment_counter("orders_cancelled")
        self._audit("CANCEL", order)
        self._notify_market_data(order.symbol)
        logger.info(f"Cancelled order {order_id}, released {released} from book")
        return order

    def order_status(self, order_id: str) -> Order:
        """
        Get an order record by id.

        Raises:
            NotFoundError: If the id is unknown
        """
        order = self.store.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")
        return order

    def list_orders(self, symbol: Optional[str] = None) -> List[Order]:
        """All submitted orders, optionally for one crop, in submission order."""
        orders = self.store.orders()
        if symbol:
            symbol = symbol.strip().lower()
            orders = [order for order in orders if order.symbol == symbol]
        return orders

    def recent_trades(self, symbol: Optional[str] = None, limit: int = DEFAULT_TRADES_LIMIT) -> List[Order]:
        """
        Most recent filled orders, newest first.

        The crop filter applies before the limit, so a busy crop cannot
        crowd another crop's fills out of its own listing. The market
        pages previously cut the newest fills across all crops first and
        filtered afterwards, which could return fewer than `limit`.
        """
        filled = [order for order in self.list_orders(symbol) if order.is_filled]
        # Reversed input keeps later submissions first on equal timestamps
        filled = sorted(reversed(filled), key=lambda o: o.filled_at or o.timestamp, reverse=True)
        return filled[:max(limit, 0)]

    def depth_view(self, symbol: str) -> DepthView:
        """
        Snapshot of a crop's book.

        Raises:
            NotFoundError: If the book does not exist and books are not
                created on demand
        """
        symbol = symbol.strip().lower()
        if not symbol:
            raise ValidationError("Crop parameter is required for market depth")
        if self.auto_create_books:
            book = self.store.get_or_initialize(symbol)
        else:
            book = self.store.get_book(symbol)
            if book is None:
                raise NotFoundError(f"Market not found: {symbol}")
        with self.store.symbol_lock(symbol):
            return book.depth_view()

    def get_order_book(self, symbol: str) -> Optional[OrderBook]:
        return self.store.get_book(symbol.strip().lower())

    def reset(self) -> None:
        """Clear all books, orders and counters."""
        self.store.clear()
        with self._stats_lock:
            self.total_orders_processed = 0
            self.total_fills = 0
            self.total_filled_quantity = Decimal('0')
            self.start_time = datetime.now(timezone.utc)

    def add_fill_callback(self, callback: Callable[[Order], None]) -> None:
        """Add callback for filled orders."""
        self.fill_callbacks.append(callback)

    def add_market_data_callback(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Add callback for depth updates."""
        self.market_data_callbacks.append(callback)

    def _notify_fill(self, order: Order) -> None:
        for callback in self.fill_callbacks:
            try:
                callback(order)
            except Exception as e:
                logger.error(f"Error in fill callback: {str(e)}")

    def _notify_market_data(self, symbol: str) -> None:
        if not self.market_data_callbacks:
            return
        book = self.store.get_book(symbol)
        if book is None:
            return

        with self.store.symbol_lock(symbol):
            depth = book.depth_view()
        market_data = {
            "type": "depth",
            "timestamp": format_timestamp(utc_now()),
            "crop": symbol,
            "marketDepth": depth.to_dict(),
        }

        for callback in self.market_data_callbacks:
            try:
                callback(market_data)
            except Exception as e:
                logger.error(f"Error in market data callback: {str(e)}")

    def _audit(self, action: str, order: Order) -> None:
        if self.audit_logger is not None:
            log_order_audit(self.audit_logger, action, order.to_dict())

    def get_statistics(self) -> Dict[str, Any]:
        """Get engine statistics."""
        with self._stats_lock:
            uptime = datetime.now(timezone.utc) - self.start_time
            processed = self.total_orders_processed
            fills = self.total_fills
            filled_quantity = self.total_filled_quantity

        return {
            "uptime_seconds": uptime.total_seconds(),
            "strategy": self.strategy.value,
            "total_orders_processed": processed,
            "total_fills": fills,
            "total_filled_quantity": to_number(filled_quantity),
            "active_crops": self.store.symbols(),
            "orders_per_second": processed / max(uptime.total_seconds(), 1),
        }

    def get_symbol_statistics(self, symbol: str) -> Optional[Dict[str, Any]]:
        """Get statistics for a specific crop."""
        book = self.get_order_book(symbol)
        if book is None:
            return None
        with self.store.symbol_lock(book.symbol):
            return book.get_statistics()
