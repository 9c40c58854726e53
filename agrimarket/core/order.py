"""
Order and last-trade data structures.

Monetary values and quantities use Decimal for exact arithmetic and
are rendered as JSON numbers for the market pages.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, Union

from .errors import ValidationError
from .order_types import OrderSide, OrderStatus, validate_order_side


def new_order_id(prefix: str = "order") -> str:
    """Generate a unique order id such as ``order_3f2a9c...``."""
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Union[Decimal, int, float, str], name: str) -> Decimal:
    """
    Convert a number-like value to Decimal.

    Raises:
        ValidationError: If the value is missing or not numeric
    """
    if isinstance(value, Decimal):
        result = value
    elif value is None or isinstance(value, bool):
        raise ValidationError(f"Invalid {name}: {value}")
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"Invalid {name} format: {value}")
    if not result.is_finite():
        raise ValidationError(f"Invalid {name}: {value}")
    return result


def to_number(value: Decimal) -> Union[int, float]:
    """Render a Decimal as a JSON number (int when integral)."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def format_timestamp(ts: datetime) -> str:
    """ISO-8601 in UTC with a trailing Z."""
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class Order:
    """
    A limit order for one crop instrument.

    The order is created pending. It is either filled in full at
    submission or rests as book liquidity at its full quantity, so
    `quantity` never changes after creation.
    """

    symbol: str = ""
    side: OrderSide = OrderSide.BUY
    quantity: Decimal = Decimal('0')
    price: Decimal = Decimal('0')
    trader: str = "anonymous"
    order_id: str = field(default_factory=new_order_id)
    timestamp: datetime = field(default_factory=utc_now)
    status: OrderStatus = OrderStatus.PENDING

    # Set when the order fills
    execution_price: Optional[Decimal] = None
    filled_at: Optional[datetime] = None

    def __post_init__(self):
        """Normalize field types and validate."""
        self.symbol = (self.symbol or "").strip().lower()
        self.side = validate_order_side(self.side)
        self.quantity = to_decimal(self.quantity, "quantity")
        self.price = to_decimal(self.price, "price")
        self.validate()

    def validate(self) -> None:
        """
        Validate order parameters.

        Raises:
            ValidationError: If a parameter is missing or non-positive
        """
        if not self.symbol:
            raise ValidationError("Crop symbol cannot be empty")

        if not isinstance(self.side, OrderSide):
            raise ValidationError(f"Invalid order side: {self.side}")

        if self.quantity <= 0:
            raise ValidationError(f"Quantity must be positive, got: {self.quantity}")

        if self.price <= 0:
            raise ValidationError(f"Price must be positive, got: {self.price}")

        if not self.order_id:
            raise ValidationError("Order id cannot be empty")

    @property
    def is_filled(self) -> bool:
        return self.status == OrderStatus.FILLED

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING

    @property
    def display_price(self) -> Decimal:
        """Execution price once filled, otherwise the limit price."""
        if self.execution_price is not None:
            return self.execution_price
        return self.price

    def mark_filled(self, execution_price: Decimal, when: Optional[datetime] = None) -> None:
        self.status = OrderStatus.FILLED
        self.execution_price = execution_price
        self.filled_at = when or utc_now()

    def mark_cancelled(self) -> None:
        self.status = OrderStatus.CANCELLED

    def to_dict(self) -> Dict[str, Any]:
        """Convert order to the wire format used by the market pages."""
        return {
            "id": self.order_id,
            "crop": self.symbol,
            "type": self.side.value,
            "quantity": to_number(self.quantity),
            "price": to_number(self.display_price),
            "limitPrice": to_number(self.price),
            "status": self.status.value,
            "timestamp": format_timestamp(self.timestamp),
            "trader": self.trader,
        }


@dataclass(frozen=True)
class LastTrade:
    """The most recent fill on a book."""

    price: Decimal
    quantity: Decimal
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": to_number(self.price),
            "quantity": to_number(self.quantity),
            "timestamp": format_timestamp(self.timestamp),
        }
