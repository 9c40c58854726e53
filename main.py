#!/usr/bin/env python3
"""
Main entry point for the crop trading engine.

This script starts both the REST API and WebSocket servers
around one shared matching engine.
"""

import asyncio
import signal
import sys
import threading
import time

from agrimarket.api.rest_api import build_engine, create_app
from agrimarket.api.websocket_api import WebSocketServer
from agrimarket.utils.logger import setup_logging, get_logger
from agrimarket.config.settings import get_settings

logger = get_logger(__name__)


class TradingServer:
    """
    Runs the REST API in a daemon thread and the WebSocket feed on the
    main thread's event loop.
    """

    def __init__(self):
        """Initialize the server."""
        self.settings = get_settings()

        setup_logging(
            level=self.settings.log_level,
            log_file=self.settings.log_file
        )

        self.matching_engine = build_engine(self.settings)
        self.rest_app = create_app(engine=self.matching_engine, settings=self.settings)
        self.websocket_server = WebSocketServer(
            self.matching_engine,
            host=self.settings.websocket_host,
            port=self.settings.websocket_port,
            ping_interval=self.settings.websocket_ping_interval,
            ping_timeout=self.settings.websocket_ping_timeout,
        )
        self.rest_thread = None

        logger.info("Trading server initialized")

    def start(self) -> None:
        """Start both REST and WebSocket servers."""
        logger.info("Starting trading server...")
        self._start_rest_server()
        self._start_websocket_server()

    def _start_rest_server(self) -> None:
        """Start REST API server in a separate thread."""
        def run_rest_server():
            logger.info(f"Starting REST API server on {self.settings.rest_host}:{self.settings.rest_port}")
            self.rest_app.run(
                host=self.settings.rest_host,
                port=self.settings.rest_port,
                debug=self.settings.debug,
                use_reloader=False,
                threaded=True
            )

        self.rest_thread = threading.Thread(target=run_rest_server, name="rest-api", daemon=True)
        self.rest_thread.start()

        # Give the server time to bind
        time.sleep(1)

    def _start_websocket_server(self) -> None:
        logger.info(f"Starting WebSocket server on {self.settings.websocket_host}:{self.settings.websocket_port}")
        asyncio.run(self.websocket_server.start())

    def stop(self) -> None:
        """Stop the server; the REST thread is a daemon and exits with the process."""
        logger.info("Stopping trading server...")
        logger.info(f"Final statistics: {self.matching_engine.get_statistics()}")


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def main():
    """Main entry point."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    server = None
    try:
        server = TradingServer()
        server.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Received shutdown request")
    except Exception as e:
        logger.error(f"Fatal error: {str(e)}")
        sys.exit(1)
    finally:
        if server is not None:
            server.stop()


if __name__ == "__main__":
    main()
