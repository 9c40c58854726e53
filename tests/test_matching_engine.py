"""
Tests for the core matching engine.

This module tests order submission, fills against the best opposing
level, resting liquidity, book invariants and the sweep strategy.
"""

import logging
import random
import threading
import unittest
from decimal import Decimal

from agrimarket.core.errors import ValidationError
from agrimarket.core.matching_engine import MatchingEngine
from agrimarket.core.order import Order
from agrimarket.core.order_types import OrderSide, OrderStatus, MatchingStrategy
from agrimarket.core.store import MarketStore
from agrimarket.utils.performance import PerformanceMonitor


def level_tuples(levels):
    return [(level.price, level.quantity, level.count) for level in levels]


class TestMatchingEngine(unittest.TestCase):
    """Test cases for the matching engine."""

    def setUp(self):
        """Set up an engine over an empty store."""
        self.engine = MatchingEngine(store=MarketStore())

    def tearDown(self):
        self.engine.reset()

    def test_buy_order_rests_on_empty_book(self):
        """A buy with nothing to cross rests as a new bid level."""
        order = self.engine.place_order("wheat", "buy", 100, 2150)

        self.assertEqual(order.status, OrderStatus.PENDING)
        depth = self.engine.depth_view("wheat")
        self.assertEqual(level_tuples(depth.bids), [(Decimal('2150'), Decimal('100'), 1)])
        self.assertEqual(depth.asks, ())
        self.assertIsNone(depth.last_trade)

    def test_buy_fills_at_resting_ask_price(self):
        """A crossing buy fills in full at the ask level's price."""
        self.engine.place_order("wheat", "sell", 120, 2160)

        order = self.engine.place_order("wheat", "buy", 50, 2165)

        self.assertEqual(order.status, OrderStatus.FILLED)
        self.assertEqual(order.execution_price, Decimal('2160'))
        self.assertEqual(order.price, Decimal('2165'))
        self.assertEqual(order.quantity, Decimal('50'))

        depth = self.engine.depth_view("wheat")
        self.assertEqual(level_tuples(depth.asks), [(Decimal('2160'), Decimal('70'), 1)])
        self.assertEqual(depth.bids, ())
        self.assertEqual(depth.last_trade.price, Decimal('2160'))
        self.assertEqual(depth.last_trade.quantity, Decimal('50'))
        self.assertEqual(depth.volume_24h, Decimal('50'))

    def test_insufficient_best_level_rests_whole_order(self):
        """No partial execution: 30 available against 50 wanted rests all 50."""
        self.engine.place_order("wheat", "sell", 30, 2160)

        order = self.engine.place_order("wheat", "buy", 50, 2165)

        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.quantity, Decimal('50'))
        depth = self.engine.depth_view("wheat")
        self.assertEqual(level_tuples(depth.bids), [(Decimal('2165'), Decimal('50'), 1)])
        self.assertEqual(level_tuples(depth.asks), [(Decimal('2160'), Decimal('30'), 1)])
        self.assertEqual(depth.volume_24h, Decimal('0'))

    def test_only_best_level_is_considered(self):
        """Crossing levels beyond the best are not swept."""
        self.engine.place_order("wheat", "sell", 30, 2160)
        self.engine.place_order("wheat", "sell", 40, 2165)

        order = self.engine.place_order("wheat", "buy", 50, 2170)

        self.assertEqual(order.status, OrderStatus.PENDING)
        depth = self.engine.depth_view("wheat")
        self.assertEqual(
            level_tuples(depth.asks),
            [(Decimal('2160'), Decimal('30'), 1), (Decimal('2165'), Decimal('40'), 1)]
        )

    def test_sell_fills_at_resting_bid_price(self):
        """A crossing sell gets the higher bid price."""
        self.engine.place_order("wheat", "buy", 100, 2100)

        order = self.engine.place_order("wheat", "sell", 40, 2090)

        self.assertEqual(order.status, OrderStatus.FILLED)
        self.assertEqual(order.execution_price, Decimal('2100'))
        depth = self.engine.depth_view("wheat")
        self.assertEqual(level_tuples(depth.bids), [(Decimal('2100'), Decimal('60'), 1)])

    def test_exhausted_level_is_removed(self):
        """A level that reaches zero disappears from its side."""
        self.engine.place_order("wheat", "sell", 50, 2160)

        self.engine.place_order("wheat", "buy", 50, 2170)

        depth = self.engine.depth_view("wheat")
        self.assertEqual(depth.asks, ())
        self.assertEqual(depth.bids, ())

    def test_same_price_orders_merge_into_one_level(self):
        """Orders at an existing price aggregate quantity and count."""
        self.engine.place_order("wheat", "buy", 100, 2150)
        self.engine.place_order("wheat", "buy", 40, 2150)

        depth = self.engine.depth_view("wheat")
        self.assertEqual(level_tuples(depth.bids), [(Decimal('2150'), Decimal('140'), 2)])

    def test_level_ordering_invariant(self):
        """Bids stay strictly descending and asks strictly ascending."""
        rng = random.Random(1234)
        for _ in range(300):
            side = rng.choice(["buy", "sell"])
            price = rng.randint(2080, 2180)
            quantity = rng.randint(1, 120)
            self.engine.place_order("wheat", side, quantity, price)

            depth = self.engine.depth_view("wheat")
            bid_prices = [level.price for level in depth.bids]
            ask_prices = [level.price for level in depth.asks]
            self.assertEqual(bid_prices, sorted(set(bid_prices), reverse=True))
            self.assertEqual(ask_prices, sorted(set(ask_prices)))
            self.assertTrue(all(level.quantity > 0 for level in depth.bids + depth.asks))

    def test_full_fill_touches_only_matched_level(self):
        """Conservation: only the matched level shrinks, by exactly the order quantity."""
        for price, quantity in [(2160, 120), (2165, 180), (2170, 250)]:
            self.engine.place_order("wheat", "sell", quantity, price)
        self.engine.place_order("wheat", "buy", 100, 2100)
        before = self.engine.depth_view("wheat")

        self.engine.place_order("wheat", "buy", 45, 2175)

        after = self.engine.depth_view("wheat")
        self.assertEqual(after.bids, before.bids)
        self.assertEqual(after.asks[0].quantity, before.asks[0].quantity - 45)
        self.assertEqual(after.asks[1:], before.asks[1:])

    def test_rolling_statistics(self):
        """High and low track fills; low starts from the first fill."""
        self.engine.place_order("wheat", "sell", 100, 2160)
        self.engine.place_order("wheat", "buy", 100, 2150)

        self.engine.place_order("wheat", "buy", 10, 2160)
        self.engine.place_order("wheat", "sell", 20, 2150)

        depth = self.engine.depth_view("wheat")
        self.assertEqual(depth.high_24h, Decimal('2160'))
        self.assertEqual(depth.low_24h, Decimal('2150'))
        self.assertEqual(depth.volume_24h, Decimal('30'))
        self.assertEqual(depth.last_trade.price, Decimal('2150'))
        self.assertEqual(depth.last_trade.quantity, Decimal('20'))

    def test_negative_quantity_rejected_without_mutation(self):
        """Malformed orders raise before any book exists."""
        with self.assertRaises(ValidationError):
            self.engine.place_order("wheat", "buy", -5, 2150)

        self.assertIsNone(self.engine.get_order_book("wheat"))
        self.assertEqual(self.engine.list_orders(), [])

    def test_mutated_order_rejected_on_submit(self):
        """submit re-validates orders changed after construction."""
        self.engine.place_order("wheat", "sell", 10, 2160)
        order = Order(symbol="wheat", side=OrderSide.BUY, quantity=Decimal('5'), price=Decimal('2170'))
        order.quantity = Decimal('-5')
        before = self.engine.depth_view("wheat")

        with self.assertRaises(ValidationError):
            self.engine.submit(order)

        self.assertEqual(self.engine.depth_view("wheat"), before)
        self.assertEqual(len(self.engine.list_orders()), 1)

    def test_invalid_side_and_price_rejected(self):
        with self.assertRaises(ValidationError):
            self.engine.place_order("wheat", "hold", 10, 2150)
        with self.assertRaises(ValidationError):
            self.engine.place_order("wheat", "buy", 10, 0)
        with self.assertRaises(ValidationError):
            self.engine.place_order("", "buy", 10, 2150)

    def test_duplicate_order_id_rejected(self):
        self.engine.place_order("wheat", "buy", 10, 2150, order_id="order_1")

        with self.assertRaises(ValidationError):
            self.engine.place_order("wheat", "buy", 10, 2150, order_id="order_1")

        depth = self.engine.depth_view("wheat")
        self.assertEqual(level_tuples(depth.bids), [(Decimal('2150'), Decimal('10'), 1)])

    def test_only_pending_orders_can_be_submitted(self):
        order = Order(symbol="wheat", side=OrderSide.BUY, quantity=Decimal('5'), price=Decimal('2150'))
        order.mark_cancelled()

        with self.assertRaises(ValidationError):
            self.engine.submit(order)

        self.assertIsNone(self.engine.get_order_book("wheat"))

    def test_symbols_are_independent(self):
        """Orders on one crop never touch another crop's book."""
        self.engine.place_order("wheat", "sell", 50, 2160)
        order = self.engine.place_order("rice", "buy", 50, 3300)

        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(len(self.engine.depth_view("wheat").asks), 1)
        self.assertEqual(level_tuples(self.engine.depth_view("rice").bids), [(Decimal('3300'), Decimal('50'), 1)])

    def test_symbol_is_case_insensitive(self):
        self.engine.place_order("Wheat", "buy", 10, 2150)

        self.assertEqual(self.engine.list_orders("WHEAT")[0].symbol, "wheat")
        self.assertEqual(len(self.engine.depth_view(" wheat ").bids), 1)

    def test_seeded_book_matches_demo_liquidity(self):
        """A seeded wheat book reproduces the demo depth and fills against it."""
        engine = MatchingEngine(store=MarketStore(seed_depth=True))

        depth = engine.depth_view("wheat")
        self.assertEqual([l.price for l in depth.bids], [Decimal('2100'), Decimal('2095'), Decimal('2090')])
        self.assertEqual([l.price for l in depth.asks], [Decimal('2160'), Decimal('2165'), Decimal('2170')])
        self.assertEqual(depth.last_trade.price, Decimal('2150'))
        self.assertEqual(depth.volume_24h, Decimal('0'))
        self.assertEqual(depth.high_24h, Decimal('0'))

        order = engine.place_order("wheat", "buy", 50, 2165)
        self.assertEqual(order.status, OrderStatus.FILLED)
        self.assertEqual(order.execution_price, Decimal('2160'))
        self.assertEqual(level_tuples(engine.depth_view("wheat").asks)[0], (Decimal('2160'), Decimal('70'), 6))

    def test_seeded_book_scales_to_crop_price(self):
        engine = MatchingEngine(store=MarketStore(seed_depth=True))

        depth = engine.depth_view("sugarcane")

        self.assertEqual(depth.bids[0].price, Decimal('371'))
        self.assertEqual(depth.asks[0].price, Decimal('382'))

    def test_fill_and_market_data_callbacks(self):
        fills = []
        updates = []
        self.engine.add_fill_callback(fills.append)
        self.engine.add_market_data_callback(updates.append)

        self.engine.place_order("wheat", "sell", 50, 2160)
        filled = self.engine.place_order("wheat", "buy", 50, 2160)

        self.assertEqual(fills, [filled])
        self.assertEqual(len(updates), 2)
        self.assertEqual(updates[-1]["crop"], "wheat")
        self.assertEqual(updates[-1]["marketDepth"]["volume24h"], 50)

    def test_failing_callback_does_not_break_submit(self):
        def broken(order):
            raise RuntimeError("listener down")

        self.engine.add_fill_callback(broken)
        self.engine.place_order("wheat", "sell", 50, 2160)

        order = self.engine.place_order("wheat", "buy", 50, 2160)

        self.assertEqual(order.status, OrderStatus.FILLED)

    def test_audit_trail(self):
        audit_logger = logging.getLogger("test.audit")
        engine = MatchingEngine(audit_logger=audit_logger)

        with self.assertLogs("test.audit", level="INFO") as captured:
            engine.place_order("wheat", "buy", 10, 2150, trader="ramesh")

        self.assertEqual(len(captured.records), 2)
        self.assertIn("ORDER_SUBMIT", captured.output[0])
        self.assertIn("ORDER_REST", captured.output[1])
        self.assertIn("TRADER:ramesh", captured.output[1])

    def test_performance_counters(self):
        monitor = PerformanceMonitor()
        engine = MatchingEngine(performance_monitor=monitor)

        engine.place_order("wheat", "sell", 10, 2160)
        engine.place_order("wheat", "buy", 10, 2160)

        self.assertEqual(monitor.get_counter("orders_submitted"), 2)
        self.assertEqual(monitor.get_counter("orders_filled"), 1)
        self.assertEqual(monitor.get_metric_stats("submit_latency_ms")["count"], 2)

    def test_statistics(self):
        """Engine statistics count orders, fills and filled quantity."""
        self.engine.place_order("wheat", "buy", 10, 2150)
        self.engine.place_order("wheat", "sell", 10, 2150)

        stats = self.engine.get_statistics()
        self.assertEqual(stats['total_orders_processed'], 2)
        self.assertEqual(stats['total_fills'], 1)
        self.assertEqual(stats['total_filled_quantity'], 10)
        self.assertEqual(stats['active_crops'], ["wheat"])

        crop_stats = self.engine.get_symbol_statistics("wheat")
        self.assertEqual(crop_stats["volume_24h"], 10)
        self.assertIsNone(self.engine.get_symbol_statistics("cotton"))


class TestSweepStrategy(unittest.TestCase):
    """Test cases for all-or-nothing sweeping across crossing levels."""

    def setUp(self):
        self.engine = MatchingEngine(strategy=MatchingStrategy.SWEEP)
        self.engine.place_order("wheat", "sell", 30, 2160)
        self.engine.place_order("wheat", "sell", 40, 2165)
        self.engine.place_order("wheat", "sell", 100, 2180)

    def test_sweep_fills_across_levels_at_average_price(self):
        order = self.engine.place_order("wheat", "buy", 50, 2170)

        self.assertEqual(order.status, OrderStatus.FILLED)
        self.assertEqual(order.execution_price, Decimal('2162.00'))
        depth = self.engine.depth_view("wheat")
        self.assertEqual(
            level_tuples(depth.asks),
            [(Decimal('2165'), Decimal('20'), 1), (Decimal('2180'), Decimal('100'), 1)]
        )
        self.assertEqual(depth.last_trade.price, Decimal('2165'))
        self.assertEqual(depth.last_trade.quantity, Decimal('20'))
        self.assertEqual(depth.volume_24h, Decimal('50'))
        self.assertEqual(depth.low_24h, Decimal('2160'))
        self.assertEqual(depth.high_24h, Decimal('2165'))

    def test_sweep_rests_when_crossing_liquidity_is_short(self):
        """Levels beyond the limit price do not count toward coverage."""
        order = self.engine.place_order("wheat", "buy", 100, 2170)

        self.assertEqual(order.status, OrderStatus.PENDING)
        depth = self.engine.depth_view("wheat")
        self.assertEqual(len(depth.asks), 3)
        self.assertEqual(level_tuples(depth.bids), [(Decimal('2170'), Decimal('100'), 1)])


class TestConcurrentSubmission(unittest.TestCase):
    """Test cases for submits racing on the same and different crops."""

    THREADS = 8
    ORDERS_PER_THREAD = 250

    def setUp(self):
        self.engine = MatchingEngine()

    def _submit_random(self, seed, crops):
        rng = random.Random(seed)
        for _ in range(self.ORDERS_PER_THREAD):
            self.engine.place_order(
                rng.choice(crops),
                rng.choice(["buy", "sell"]),
                rng.randint(1, 60),
                rng.randint(2120, 2180),
            )

    def _run_threads(self, crops):
        threads = [
            threading.Thread(target=self._submit_random, args=(seed, crops))
            for seed in range(self.THREADS)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    def test_single_crop_conservation_and_ordering(self):
        """Every filled quantity leaves the book twice: once resting, once incoming."""
        self._run_threads(["wheat"])

        orders = self.engine.list_orders("wheat")
        submitted = sum((o.quantity for o in orders), Decimal('0'))
        filled = sum((o.quantity for o in orders if o.is_filled), Decimal('0'))

        depth = self.engine.depth_view("wheat")
        resting = sum((level.quantity for level in depth.bids + depth.asks), Decimal('0'))
        self.assertEqual(len(orders), self.THREADS * self.ORDERS_PER_THREAD)
        self.assertEqual(resting + 2 * filled, submitted)
        self.assertEqual(depth.volume_24h, filled)

        bid_prices = [level.price for level in depth.bids]
        ask_prices = [level.price for level in depth.asks]
        self.assertEqual(bid_prices, sorted(set(bid_prices), reverse=True))
        self.assertEqual(ask_prices, sorted(set(ask_prices)))
        self.assertTrue(all(level.quantity > 0 for level in depth.bids + depth.asks))

    def test_engine_counters_across_crops(self):
        self._run_threads(["wheat", "rice", "cotton", "sugarcane"])

        orders = self.engine.list_orders()
        fills = [o for o in orders if o.is_filled]
        stats = self.engine.get_statistics()

        self.assertEqual(stats["total_orders_processed"], self.THREADS * self.ORDERS_PER_THREAD)
        self.assertEqual(stats["total_fills"], len(fills))
        self.assertEqual(self.engine.total_filled_quantity, sum((o.quantity for o in fills), Decimal('0')))


if __name__ == '__main__':
    unittest.main()
