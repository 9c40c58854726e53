"""
WebSocket API for real-time market depth and fills.

Clients subscribe per crop and receive a depth snapshot after every
order or cancellation on that crop, plus each filled order.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Set, Dict, Any, Optional

import websockets

from ..core.errors import MarketError
from ..core.matching_engine import MatchingEngine
from ..core.order import Order, format_timestamp
from .validators import validate_crop

logger = logging.getLogger(__name__)


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


class WebSocketServer:
    """
    WebSocket server streaming market data for subscribed crops.

    Engine callbacks may fire on any thread (the REST server runs in
    its own), so broadcasts are handed to the server's event loop.
    """

    def __init__(self, matching_engine: MatchingEngine, host: str = 'localhost', port: int = 8765,
                 ping_interval: int = 20, ping_timeout: int = 10):
        """
        Initialize WebSocket server.

        Args:
            matching_engine: Matching engine instance
            host: Host to bind to
            port: Port to bind to
            ping_interval: Seconds between keepalive pings
            ping_timeout: Seconds to wait for a pong
        """
        self.matching_engine = matching_engine
        self.host = host
        self.port = port
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.loop: Optional[asyncio.AbstractEventLoop] = None

        # Client management
        self.clients: Set[Any] = set()
        self.subscriptions: Dict[Any, Set[str]] = {}

        self.matching_engine.add_fill_callback(self._on_fill)
        self.matching_engine.add_market_data_callback(self._on_market_data)

        logger.info(f"WebSocket server initialized on {host}:{port}")

    async def start(self) -> None:
        """Start the WebSocket server and run until cancelled."""
        self.loop = asyncio.get_running_loop()
        logger.info(f"Starting WebSocket server on {self.host}:{self.port}")

        async with websockets.serve(
            self._handle_client,
            self.host,
            self.port,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
            close_timeout=10
        ):
            await asyncio.Future()  # Run forever

    async def _handle_client(self, websocket, path: Optional[str] = None) -> None:
        """
        Handle one client connection.

        Args:
            websocket: WebSocket connection
            path: Request path (older websockets releases pass it)
        """
        client_address = websocket.remote_address
        logger.info(f"Client connected: {client_address}")

        self.register(websocket)

        try:
            await self._send_message(websocket, {
                'type': 'connection',
                'status': 'connected',
                'timestamp': _now(),
                'message': 'Connected to crop market feed'
            })

            async for message in websocket:
                await self.handle_message(websocket, message)

        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Client disconnected: {client_address}")
        finally:
            self.unregister(websocket)

    def register(self, websocket) -> None:
        self.clients.add(websocket)
        self.subscriptions[websocket] = set()

    def unregister(self, websocket) -> None:
        self.clients.discard(websocket)
        self.subscriptions.pop(websocket, None)

    async def handle_message(self, websocket, message: str) -> None:
        """
        Handle a message from a client.

        Args:
            websocket: WebSocket connection
            message: JSON text with a ``type`` field
        """
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            await self._send_error(websocket, "Invalid JSON format")
            return

        if not isinstance(data, dict):
            await self._send_error(websocket, "Message must be a JSON object")
            return

        message_type = str(data.get('type', '')).lower()
        try:
            if message_type == 'subscribe':
                await self._handle_subscribe(websocket, data)
            elif message_type == 'unsubscribe':
                await self._handle_unsubscribe(websocket, data)
            elif message_type == 'ping':
                await self._send_message(websocket, {'type': 'pong', 'timestamp': _now()})
            elif message_type == 'get_depth':
                await self._handle_get_depth(websocket, data)
            else:
                await self._send_error(websocket, f"Unknown message type: {message_type}")
        except MarketError as e:
            await self._send_error(websocket, e.message)

    async def _handle_subscribe(self, websocket, data: Dict[str, Any]) -> None:
        is_valid, error, crop = validate_crop(data.get('crop'))
        if not is_valid:
            await self._send_error(websocket, error)
            return

        self.subscriptions.setdefault(websocket, set()).add(crop)

        await self._send_message(websocket, {
            'type': 'subscription',
            'status': 'subscribed',
            'crop': crop,
            'timestamp': _now()
        })
        await self._send_depth(websocket, crop)

        logger.info(f"Client subscribed to {crop}")

    async def _handle_unsubscribe(self, websocket, data: Dict[str, Any]) -> None:
        crop = str(data.get('crop') or '').strip().lower()
        subscribed = self.subscriptions.setdefault(websocket, set())

        if crop:
            subscribed.discard(crop)
            await self._send_message(websocket, {
                'type': 'subscription',
                'status': 'unsubscribed',
                'crop': crop,
                'timestamp': _now()
            })
        else:
            subscribed.clear()
            await self._send_message(websocket, {
                'type': 'subscription',
                'status': 'unsubscribed_all',
                'timestamp': _now()
            })

        logger.info(f"Client unsubscribed from {crop or 'all'}")

    async def _handle_get_depth(self, websocket, data: Dict[str, Any]) -> None:
        is_valid, error, crop = validate_crop(data.get('crop'))
        if not is_valid:
            await self._send_error(websocket, error)
            return
        await self._send_depth(websocket, crop)

    async def _send_depth(self, websocket, crop: str) -> None:
        depth = self.matching_engine.depth_view(crop)
        await self._send_message(websocket, {
            'type': 'depth',
            'crop': crop,
            'marketDepth': depth.to_dict(),
            'timestamp': _now()
        })

    async def _send_message(self, websocket, message: Dict[str, Any]) -> None:
        try:
            await websocket.send(json.dumps(message))
        except websockets.exceptions.ConnectionClosed:
            logger.debug("Client connection closed while sending message")

    async def _send_error(self, websocket, error_message: str) -> None:
        await self._send_message(websocket, {
            'type': 'error',
            'message': error_message,
            'timestamp': _now()
        })

    def _schedule(self, crop: str, message: Dict[str, Any]) -> None:
        if self.loop is None or self.loop.is_closed() or not self.clients:
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(crop, message), self.loop)

    def _on_fill(self, order: Order) -> None:
        self._schedule(order.symbol, {
            'type': 'trade',
            'crop': order.symbol,
            'order': order.to_dict(),
            'timestamp': _now()
        })

    def _on_market_data(self, market_data: Dict[str, Any]) -> None:
        crop = market_data.get('crop')
        if crop:
            self._schedule(crop, market_data)

    async def broadcast(self, crop: str, message: Dict[str, Any]) -> int:
        """
        Send a message to every client subscribed to `crop`.

        Returns:
            Number of clients addressed
        """
        targets = [ws for ws in list(self.clients) if crop in self.subscriptions.get(ws, set())]
        if targets:
            await asyncio.gather(*(self._send_message(ws, message) for ws in targets), return_exceptions=True)
        return len(targets)

    def get_client_count(self) -> int:
        return len(self.clients)

    def get_subscription_count(self) -> Dict[str, int]:
        """Get subscription counts by crop."""
        counts: Dict[str, int] = {}
        for subscriptions in self.subscriptions.values():
            for crop in subscriptions:
                counts[crop] = counts.get(crop, 0) + 1
        return counts
