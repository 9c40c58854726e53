"""
Typed request models for the trading endpoint.

A POST body names an `action` and carries `orderData`; each action
parses into its own frozen dataclass before it reaches the engine.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from ..config.settings import Settings
from ..core.errors import ValidationError
from ..core.order_types import OrderSide
from .validators import (
    validate_crop,
    validate_order_id,
    validate_order_side,
    validate_price,
    validate_quantity,
    sanitize_string,
)


@dataclass(frozen=True)
class PlaceOrderRequest:
    crop: str
    side: OrderSide
    quantity: Decimal
    price: Decimal
    trader: str = "anonymous"


@dataclass(frozen=True)
class CancelOrderRequest:
    order_id: str


@dataclass(frozen=True)
class OrderStatusRequest:
    order_id: str


@dataclass(frozen=True)
class SimulateTradingRequest:
    crop: Optional[str] = None


TradingRequest = Union[PlaceOrderRequest, CancelOrderRequest, OrderStatusRequest, SimulateTradingRequest]


def _check(result):
    is_valid, error, value = result
    if not is_valid:
        raise ValidationError(error)
    return value


def _order_data(body: Dict[str, Any], missing_message: str) -> Dict[str, Any]:
    order_data = body.get("orderData")
    if not order_data:
        raise ValidationError(missing_message)
    if not isinstance(order_data, dict):
        raise ValidationError("orderData must be an object")
    return order_data


def parse_place_order(body: Dict[str, Any], settings: Optional[Settings] = None) -> PlaceOrderRequest:
    order_data = _order_data(body, "Order data is required")
    # The market pages send the side as "type"
    side = order_data.get("type", order_data.get("side"))
    trader = order_data.get("trader")
    return PlaceOrderRequest(
        crop=_check(validate_crop(order_data.get("crop"))),
        side=_check(validate_order_side(side)),
        quantity=_check(validate_quantity(order_data.get("quantity"), settings)),
        price=_check(validate_price(order_data.get("price"), settings)),
        trader=sanitize_string(trader) if trader else "anonymous",
    )


def _parse_order_id(body: Dict[str, Any]) -> str:
    order_data = _order_data(body, "Order id is required")
    return _check(validate_order_id(order_data.get("id")))


def parse_simulate_trading(body: Dict[str, Any]) -> SimulateTradingRequest:
    crop = body.get("crop")
    if crop is None or crop == "":
        return SimulateTradingRequest()
    return SimulateTradingRequest(crop=_check(validate_crop(crop)))


_PARSERS = {
    "cancel_order": lambda body: CancelOrderRequest(order_id=_parse_order_id(body)),
    "get_order_status": lambda body: OrderStatusRequest(order_id=_parse_order_id(body)),
    "simulate_trading": parse_simulate_trading,
}


def parse_trading_request(body: Any, settings: Optional[Settings] = None) -> TradingRequest:
    """
    Parse a POST body into a typed request.

    Args:
        body: Decoded JSON body
        settings: Quantity and price bounds; the global settings when omitted

    Raises:
        ValidationError: If the body, action or its data is malformed
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    action = body.get("action")
    if action == "place_order":
        return parse_place_order(body, settings)

    parser = _PARSERS.get(action) if isinstance(action, str) else None
    if parser is None:
        raise ValidationError("Invalid action")

    return parser(body)
