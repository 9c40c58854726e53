"""
Tests for environment-driven settings and logging setup.
"""

import logging
import os
import tempfile
import unittest
from decimal import Decimal
from unittest import mock

from agrimarket.config.settings import Settings, get_settings, reload_settings
from agrimarket.core.order_types import MatchingStrategy, validate_matching_strategy
from agrimarket.utils.logger import create_audit_logger, log_order_audit


class TestSettings(unittest.TestCase):

    def tearDown(self):
        reload_settings()

    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings()
            settings.validate()

        self.assertEqual(settings.rest_port, 5000)
        self.assertEqual(settings.websocket_port, 8765)
        self.assertEqual(settings.matching_strategy, MatchingStrategy.BEST_LEVEL)
        self.assertTrue(settings.seed_market_depth)
        self.assertTrue(settings.auto_create_books)
        self.assertEqual(settings.recent_trades_limit, 50)
        self.assertEqual(settings.min_quantity, Decimal('0.01'))
        self.assertEqual(settings.simulated_crops, ["wheat", "rice", "cotton", "sugarcane"])

    def test_environment_overrides(self):
        env = {
            "REST_PORT": "8080",
            "MATCHING_STRATEGY": "Sweep",
            "SEED_MARKET_DEPTH": "false",
            "SIMULATED_CROPS": "Wheat, jowar",
            "CORS_ORIGINS": "http://localhost:3000,http://example.org",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings()

        self.assertEqual(settings.rest_port, 8080)
        self.assertEqual(settings.matching_strategy, MatchingStrategy.SWEEP)
        self.assertFalse(settings.seed_market_depth)
        self.assertEqual(settings.simulated_crops, ["wheat", "jowar"])
        self.assertEqual(len(settings.cors_origins), 2)
        self.assertEqual(settings.to_dict()["matching_strategy"], "sweep")

    def test_invalid_values_reported_together(self):
        env = {"REST_PORT": "abc", "MATCHING_STRATEGY": "fifo", "MAX_PRICE": "0"}
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings()

        with self.assertRaises(ValueError) as ctx:
            settings.validate()

        message = str(ctx.exception)
        self.assertIn("REST_PORT", message)
        self.assertIn("MATCHING_STRATEGY", message)
        self.assertIn("Max price", message)

    def test_strategy_parsing(self):
        self.assertEqual(validate_matching_strategy(" SWEEP "), MatchingStrategy.SWEEP)
        with self.assertRaises(ValueError):
            validate_matching_strategy("pro_rata")

    def test_reload_settings(self):
        with mock.patch.dict(os.environ, {"RECENT_TRADES_LIMIT": "7"}):
            settings = reload_settings()
            self.assertIs(get_settings(), settings)
            self.assertEqual(settings.recent_trades_limit, 7)


class TestAuditLogger(unittest.TestCase):

    def test_audit_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "audit", "audit.log")
            audit_logger = create_audit_logger(path, name="test.audit.file")
            try:
                log_order_audit(audit_logger, "CANCEL", {"id": "order_1", "crop": "wheat", "type": "buy"})
                for handler in audit_logger.handlers:
                    handler.flush()

                with open(path) as f:
                    line = f.read()
            finally:
                for handler in list(audit_logger.handlers):
                    handler.close()
                    audit_logger.removeHandler(handler)

        self.assertFalse(audit_logger.propagate)
        self.assertIn("ORDER_CANCEL|ID:order_1|CROP:wheat|SIDE:buy|QTY:N/A", line)

    def test_audit_logger_without_file(self):
        audit_logger = create_audit_logger(None, name="test.audit.none")

        self.assertEqual(audit_logger.handlers, [])
        self.assertEqual(audit_logger.level, logging.INFO)


if __name__ == '__main__':
    unittest.main()
