"""
Configuration module for the trading engine.

This module provides environment-driven settings for the
crop market trading engine.
"""

from .settings import Settings, get_settings, reload_settings

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
]
