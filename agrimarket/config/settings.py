"""
Configuration settings for the trading engine.

This module provides centralized configuration management
with environment variable support and validation.
"""

import os
from typing import Optional, Dict, Any, List
from decimal import Decimal, InvalidOperation

from ..core.order_types import MatchingStrategy, validate_matching_strategy


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings:
    """
    Configuration settings for the trading engine.

    Supports environment variables and provides sensible defaults.
    Malformed values are collected and reported by `validate`.
    """

    def __init__(self):
        """Initialize settings from environment variables."""
        self._errors: List[str] = []

        # Server configuration
        self.rest_host = os.getenv("REST_HOST", "0.0.0.0")
        self.rest_port = self._int("REST_PORT", "5000")
        self.websocket_host = os.getenv("WEBSOCKET_HOST", "localhost")
        self.websocket_port = self._int("WEBSOCKET_PORT", "8765")

        # Logging configuration
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_file = os.getenv("LOG_FILE", "logs/trading_engine.log") or None
        self.audit_log_file = os.getenv("AUDIT_LOG_FILE", "logs/audit.log") or None

        # Order validation
        self.min_quantity = self._decimal("MIN_QUANTITY", "0.01")
        self.max_quantity = self._decimal("MAX_QUANTITY", "1000000")
        self.min_price = self._decimal("MIN_PRICE", "0.01")
        self.max_price = self._decimal("MAX_PRICE", "10000000")

        # Matching behaviour
        raw_strategy = os.getenv("MATCHING_STRATEGY", MatchingStrategy.BEST_LEVEL.value)
        try:
            self.matching_strategy = validate_matching_strategy(raw_strategy)
        except ValueError as e:
            self._errors.append(f"MATCHING_STRATEGY: {e}")
            self.matching_strategy = MatchingStrategy.BEST_LEVEL
        self.seed_market_depth = _env_bool("SEED_MARKET_DEPTH", "true")
        self.auto_create_books = _env_bool("AUTO_CREATE_BOOKS", "true")
        self.recent_trades_limit = self._int("RECENT_TRADES_LIMIT", "50")
        self.simulated_crops = [c.lower() for c in _env_list("SIMULATED_CROPS", "wheat,rice,cotton,sugarcane")]

        # WebSocket configuration
        self.websocket_ping_interval = self._int("WEBSOCKET_PING_INTERVAL", "20")
        self.websocket_ping_timeout = self._int("WEBSOCKET_PING_TIMEOUT", "10")

        # Performance monitoring
        self.enable_performance_monitoring = _env_bool("ENABLE_PERFORMANCE_MONITORING", "true")

        # Security
        self.enable_cors = _env_bool("ENABLE_CORS", "true")
        self.cors_origins = _env_list("CORS_ORIGINS", "*")

        # Debug mode
        self.debug = _env_bool("DEBUG", "false")

    def _int(self, name: str, default: str) -> int:
        raw = os.getenv(name, default)
        try:
            return int(raw)
        except ValueError:
            self._errors.append(f"{name} must be an integer: {raw}")
            return int(default)

    def _decimal(self, name: str, default: str) -> Decimal:
        raw = os.getenv(name, default)
        try:
            return Decimal(raw)
        except InvalidOperation:
            self._errors.append(f"{name} must be a number: {raw}")
            return Decimal(default)

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return {
            "rest_host": self.rest_host,
            "rest_port": self.rest_port,
            "websocket_host": self.websocket_host,
            "websocket_port": self.websocket_port,
            "log_level": self.log_level,
            "log_file": self.log_file,
            "audit_log_file": self.audit_log_file,
            "min_quantity": str(self.min_quantity),
            "max_quantity": str(self.max_quantity),
            "min_price": str(self.min_price),
            "max_price": str(self.max_price),
            "matching_strategy": self.matching_strategy.value,
            "seed_market_depth": self.seed_market_depth,
            "auto_create_books": self.auto_create_books,
            "recent_trades_limit": self.recent_trades_limit,
            "simulated_crops": self.simulated_crops,
            "websocket_ping_interval": self.websocket_ping_interval,
            "websocket_ping_timeout": self.websocket_ping_timeout,
            "enable_performance_monitoring": self.enable_performance_monitoring,
            "enable_cors": self.enable_cors,
            "cors_origins": self.cors_origins,
            "debug": self.debug,
        }

    def validate(self) -> None:
        """Validate configuration settings."""
        errors = list(self._errors)

        if not (1 <= self.rest_port <= 65535):
            errors.append(f"Invalid REST port: {self.rest_port}")

        if not (1 <= self.websocket_port <= 65535):
            errors.append(f"Invalid WebSocket port: {self.websocket_port}")

        if self.min_quantity <= 0:
            errors.append(f"Min quantity must be positive: {self.min_quantity}")

        if self.max_quantity <= self.min_quantity:
            errors.append(f"Max quantity must be greater than min quantity: {self.max_quantity} <= {self.min_quantity}")

        if self.min_price <= 0:
            errors.append(f"Min price must be positive: {self.min_price}")

        if self.max_price <= self.min_price:
            errors.append(f"Max price must be greater than min price: {self.max_price} <= {self.min_price}")

        if self.recent_trades_limit <= 0:
            errors.append(f"Recent trades limit must be positive: {self.recent_trades_limit}")

        if not self.simulated_crops:
            errors.append("At least one simulated crop is required")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.validate()
    return _settings


def reload_settings() -> Settings:
    """
    Reload settings from environment variables.

    Returns:
        New settings instance
    """
    global _settings
    _settings = Settings()
    _settings.validate()
    return _settings
