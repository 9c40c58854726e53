"""
API layer for the crop trading engine.

This module provides the REST trading endpoint and the WebSocket
market feed.
"""

from .rest_api import create_app, build_engine
from .websocket_api import WebSocketServer
from .requests import parse_trading_request

__all__ = [
    "create_app",
    "build_engine",
    "WebSocketServer",
    "parse_trading_request",
]
