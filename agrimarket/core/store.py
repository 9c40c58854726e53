"""
In-memory store for books and order records.

The store replaces process-wide module state: one instance is created
at startup, handed to the matching engine, and cleared between tests.
"""

import threading
from typing import Dict, List, Optional, Iterator
import logging

from .errors import ValidationError
from .instruments import seed_levels
from .order import Order
from .order_book import OrderBook

logger = logging.getLogger(__name__)


class MarketStore:
    """
    Holds one OrderBook per crop and the ledger of submitted orders.

    Each crop gets its own lock; callers hold it across a whole
    read-decide-mutate step. The order ledger has a separate lock.
    """

    def __init__(self, seed_depth: bool = False):
        """
        Initialize an empty store.

        Args:
            seed_depth: Load demo liquidity into books on first access
        """
        self.seed_depth = seed_depth
        self.books: Dict[str, OrderBook] = {}
        self._orders: List[Order] = []
        self._order_index: Dict[str, Order] = {}

        self._books_lock = threading.Lock()
        self._orders_lock = threading.Lock()
        self._symbol_locks: Dict[str, threading.Lock] = {}

    def symbol_lock(self, symbol: str) -> threading.Lock:
        """Lock serializing every mutation of one crop's book."""
        with self._books_lock:
            lock = self._symbol_locks.get(symbol)
            if lock is None:
                lock = threading.Lock()
                self._symbol_locks[symbol] = lock
            return lock

    def get_or_initialize(self, symbol: str) -> OrderBook:
        """
        Get the book for a crop, creating it on first access.

        Args:
            symbol: Crop symbol

        Returns:
            The OrderBook for `symbol`
        """
        with self._books_lock:
            book = self.books.get(symbol)
            if book is None:
                book = OrderBook(symbol)
                if self.seed_depth:
                    seed = seed_levels(symbol)
                    book.seed(seed["bids"], seed["asks"], seed["last_trade"])
                self.books[symbol] = book
            return book

    def get_book(self, symbol: str) -> Optional[OrderBook]:
        with self._books_lock:
            return self.books.get(symbol)

    def symbols(self) -> List[str]:
        with self._books_lock:
            return list(self.books.keys())

    def add_order(self, order: Order) -> None:
        with self._orders_lock:
            if order.order_id in self._order_index:
                raise ValidationError(f"Duplicate order id: {order.order_id}")
            self._orders.append(order)
            self._order_index[order.order_id] = order

    def has_order(self, order_id: str) -> bool:
        with self._orders_lock:
            return order_id in self._order_index

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._orders_lock:
            return self._order_index.get(order_id)

    def orders(self) -> List[Order]:
        """All order records in insertion order."""
        with self._orders_lock:
            return list(self._orders)

    def __iter__(self) -> Iterator[Order]:
        return iter(self.orders())

    def __len__(self) -> int:
        with self._orders_lock:
            return len(self._orders)

    def clear(self) -> None:
        """Drop all books and orders."""
        with self._books_lock:
            self.books.clear()
            self._symbol_locks.clear()
        with self._orders_lock:
            self._orders.clear()
            self._order_index.clear()
        logger.info("Market store cleared")
