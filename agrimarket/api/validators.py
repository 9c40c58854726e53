"""
Input validation utilities for the API layer.

Validators return ``(is_valid, error_message, parsed_value)`` tuples so
callers can report the first problem without raising.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

from ..config.settings import Settings, get_settings
from ..core.order_types import OrderSide

# Crop symbols: lowercase words, e.g. wheat, basmati-rice, green_gram
CROP_PATTERN = re.compile(r'^[a-z][a-z0-9_-]{0,31}$')

MAX_ORDER_ID_LENGTH = 64
MAX_TRADER_LENGTH = 64


def validate_crop(crop: Any) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate a crop symbol.

    Args:
        crop: Crop symbol to validate

    Returns:
        Tuple of (is_valid, error_message, normalized_crop)
    """
    if not crop:
        return False, "Crop is required", None

    if not isinstance(crop, str):
        return False, "Crop must be a string", None

    normalized = crop.strip().lower()
    if not CROP_PATTERN.match(normalized):
        return False, f"Invalid crop symbol: {crop}", None

    return True, None, normalized


def _parse_positive(value: Any, name: str, minimum: Decimal, maximum: Decimal) -> Tuple[bool, Optional[str], Optional[Decimal]]:
    if value is None or value == "":
        return False, f"{name.capitalize()} is required", None

    if isinstance(value, bool):
        return False, f"Invalid {name} format: {value}", None

    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return False, f"Invalid {name} format: {value}", None

    if not parsed.is_finite():
        return False, f"Invalid {name} format: {value}", None

    if parsed <= 0:
        return False, f"{name.capitalize()} must be positive", None

    if parsed < minimum:
        return False, f"{name.capitalize()} too small. Minimum: {minimum}", None

    if parsed > maximum:
        return False, f"{name.capitalize()} too large. Maximum: {maximum}", None

    return True, None, parsed


def validate_quantity(quantity: Any, settings: Optional[Settings] = None) -> Tuple[bool, Optional[str], Optional[Decimal]]:
    """
    Validate order quantity against the configured bounds.

    Args:
        quantity: Raw quantity
        settings: Bounds source; the global settings when omitted

    Returns:
        Tuple of (is_valid, error_message, parsed_quantity)
    """
    settings = settings or get_settings()
    return _parse_positive(quantity, "quantity", settings.min_quantity, settings.max_quantity)


def validate_price(price: Any, settings: Optional[Settings] = None) -> Tuple[bool, Optional[str], Optional[Decimal]]:
    """
    Validate a limit price against the configured bounds.

    Returns:
        Tuple of (is_valid, error_message, parsed_price)
    """
    settings = settings or get_settings()
    return _parse_positive(price, "price", settings.min_price, settings.max_price)


def validate_order_side(side: Any) -> Tuple[bool, Optional[str], Optional[OrderSide]]:
    """
    Validate order side.

    Returns:
        Tuple of (is_valid, error_message, parsed_side)
    """
    if not side:
        return False, "Order type is required (buy or sell)", None

    if not isinstance(side, str):
        return False, "Order type must be a string", None

    try:
        parsed = OrderSide(side.strip().lower())
    except ValueError:
        valid_sides = [s.value for s in OrderSide]
        return False, f"Invalid order type: {side}. Must be one of: {valid_sides}", None

    return True, None, parsed


def validate_order_id(order_id: Any) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate an order id.

    Returns:
        Tuple of (is_valid, error_message, order_id)
    """
    if not order_id or not isinstance(order_id, str):
        return False, "Order id must be a non-empty string", None

    order_id = order_id.strip()
    if not order_id or len(order_id) > MAX_ORDER_ID_LENGTH:
        return False, f"Invalid order id: {order_id}", None

    return True, None, order_id


def sanitize_string(value: Any, max_length: int = MAX_TRADER_LENGTH) -> str:
    """
    Sanitize free-text input such as trader names.

    Args:
        value: Value to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if not isinstance(value, str):
        value = str(value)

    sanitized = re.sub(r'[<>"\']', '', value)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized.strip()
