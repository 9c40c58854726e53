"""
REST API for the crop trading engine.

The trading endpoint keeps the query/action shape the market pages
already use: GET selects a view with ``type``, POST dispatches on
``action``. Engine errors map to their HTTP status with a JSON
``{"error": message}`` body.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, request, jsonify
from flask_cors import CORS

from ..config.settings import Settings, get_settings
from ..core.errors import MarketError
from ..core.matching_engine import MatchingEngine
from ..core.order import format_timestamp
from ..core.store import MarketStore
from ..sim.simulator import TradingSimulator
from ..utils.logger import create_audit_logger
from ..utils.performance import get_performance_monitor
from .requests import (
    CancelOrderRequest,
    OrderStatusRequest,
    PlaceOrderRequest,
    SimulateTradingRequest,
    parse_trading_request,
)
from .validators import validate_crop

logger = logging.getLogger(__name__)

TRADING_ROUTES = ('/trading', '/api/market/trading')


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def build_engine(settings: Settings) -> MatchingEngine:
    """
    Create a matching engine wired to the configured store, audit log
    and performance monitor.
    """
    monitor = get_performance_monitor() if settings.enable_performance_monitoring else None
    return MatchingEngine(
        store=MarketStore(seed_depth=settings.seed_market_depth),
        strategy=settings.matching_strategy,
        auto_create_books=settings.auto_create_books,
        audit_logger=create_audit_logger(settings.audit_log_file),
        performance_monitor=monitor,
    )


def create_app(engine: Optional[MatchingEngine] = None, settings: Optional[Settings] = None,
               simulator: Optional[TradingSimulator] = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        engine: Engine to serve; built from settings when omitted
        settings: Settings; the global settings when omitted
        simulator: Demo order generator; built over `engine` when omitted

    Returns:
        Configured Flask application
    """
    settings = settings or get_settings()
    engine = engine or build_engine(settings)
    simulator = simulator or TradingSimulator(engine, crops=settings.simulated_crops)

    app = Flask(__name__)
    if settings.enable_cors:
        CORS(app, origins=settings.cors_origins)

    app.extensions['matching_engine'] = engine
    app.extensions['trading_simulator'] = simulator

    register_routes(app, engine, simulator, settings)

    logger.info("REST API initialized")
    return app


def _error(message: str, status: int):
    return jsonify({'error': message}), status


def register_routes(app: Flask, engine: MatchingEngine, simulator: TradingSimulator, settings: Settings) -> None:
    """Register all API routes."""

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'timestamp': _now(),
            'version': '1.0.0'
        })

    def trading_get():
        """
        Read views of the market.

        Query parameters:
        - type: orders, depth or trades
        - crop: crop symbol (required for depth)
        """
        view = request.args.get('type')
        crop = (request.args.get('crop') or '').strip().lower() or None

        try:
            if view == 'orders':
                orders = engine.list_orders(crop)
                return jsonify({
                    'orders': [order.to_dict() for order in orders],
                    'total': len(orders),
                    'timestamp': _now()
                })

            if view == 'depth':
                if not crop:
                    return _error('Crop parameter is required for market depth', 400)
                is_valid, error, crop = validate_crop(crop)
                if not is_valid:
                    return _error(error, 400)
                return jsonify({
                    'marketDepth': engine.depth_view(crop).to_dict(),
                    'timestamp': _now()
                })

            if view == 'trades':
                trades = engine.recent_trades(crop, limit=settings.recent_trades_limit)
                return jsonify({
                    'trades': [order.to_dict() for order in trades],
                    'timestamp': _now()
                })

            return jsonify({
                'message': 'Trading API endpoints',
                'endpoints': {
                    'orders': '/api/market/trading?type=orders',
                    'depth': '/api/market/trading?type=depth&crop=wheat',
                    'trades': '/api/market/trading?type=trades'
                },
                'timestamp': _now()
            })

        except MarketError as e:
            return _error(e.message, e.http_status)
        except Exception:
            logger.exception("Trading API error")
            return _error('Failed to fetch trading data', 500)

    def trading_post():
        """
        Order actions.

        Request body:
        {
            "action": "place_order",
            "orderData": {"crop": "wheat", "type": "buy", "quantity": 100, "price": 2150}
        }
        """
        body = request.get_json(silent=True)
        if body is None:
            return _error('Request body must be JSON', 400)

        try:
            command = parse_trading_request(body, settings)

            if isinstance(command, PlaceOrderRequest):
                order = engine.place_order(
                    symbol=command.crop,
                    side=command.side,
                    quantity=command.quantity,
                    price=command.price,
                    trader=command.trader,
                )
                return jsonify({
                    'message': 'Order placed successfully',
                    'order': order.to_dict(),
                    'timestamp': _now()
                })

            if isinstance(command, CancelOrderRequest):
                order = engine.cancel_order(command.order_id)
                return jsonify({
                    'message': 'Order cancelled successfully',
                    'order': order.to_dict(),
                    'timestamp': _now()
                })

            if isinstance(command, OrderStatusRequest):
                order = engine.order_status(command.order_id)
                return jsonify({
                    'order': order.to_dict(),
                    'timestamp': _now()
                })

            if isinstance(command, SimulateTradingRequest):
                order = simulator.simulate_order(command.crop)
                return jsonify({
                    'message': 'Trading simulation completed',
                    'order': order.to_dict(),
                    'timestamp': _now()
                })

            return _error('Invalid action', 400)

        except MarketError as e:
            return _error(e.message, e.http_status)
        except Exception:
            logger.exception("Trading API POST error")
            return _error('Failed to process trading request', 500)

    for index, rule in enumerate(TRADING_ROUTES):
        app.add_url_rule(rule, view_func=trading_get, methods=['GET'], endpoint=f'trading_get_{index}')
        app.add_url_rule(rule, view_func=trading_post, methods=['POST'], endpoint=f'trading_post_{index}')

    @app.route('/statistics', methods=['GET'])
    def get_statistics():
        """Engine statistics, with performance data when monitoring is on."""
        stats = engine.get_statistics()
        if engine.performance_monitor is not None:
            stats['performance'] = engine.performance_monitor.get_summary()
        return jsonify(stats), 200

    @app.route('/statistics/<crop>', methods=['GET'])
    def get_crop_statistics(crop: str):
        """Statistics for one crop's book."""
        is_valid, error, crop = validate_crop(crop)
        if not is_valid:
            return _error(error, 400)

        stats = engine.get_symbol_statistics(crop)
        if not stats:
            return _error('Crop not found', 404)

        return jsonify(stats), 200

    @app.errorhandler(404)
    def not_found(error):
        return _error('Endpoint not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _error('Method not allowed', 405)

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {str(error)}")
        return _error('Internal server error', 500)


def run_server(host: str = '0.0.0.0', port: int = 5000, debug: bool = False) -> None:
    """
    Run the REST API server on its own engine.

    Args:
        host: Host to bind to
        port: Port to bind to
        debug: Enable debug mode
    """
    app = create_app()
    logger.info(f"Starting REST API server on {host}:{port}")
    app.run(host=host, port=port, debug=debug)


if __name__ == '__main__':
    run_server(debug=True)
