"""
Errors raised by the price resolution engine and its record stores.
"""
from decimal import Decimal
from typing import Optional


class PricingError(Exception):
    """Base class for every resolution failure."""


class NotFound(PricingError):
    """SKU is missing from the catalog or inactive."""

    def __init__(self, sku_id: str, reason: str = "not found"):
        self.sku_id = sku_id
        self.reason = reason
        super().__init__(f"SKU {sku_id} {reason}")


class InvalidMargin(PricingError):
    """Target margin of 100% or more."""

    def __init__(self, margin_percent: Decimal):
        self.margin_percent = margin_percent
        super().__init__(f"Target margin {margin_percent}% must be below 100%")


class InvalidPriceResult(PricingError):
    """A computed or stored price came out negative."""

    def __init__(self, price: Decimal, method: str):
        self.price = price
        self.method = method
        super().__init__(f"Pricing method '{method}' produced negative price {price}")


class UpstreamUnavailable(PricingError):
    """A record store read timed out or failed."""

    def __init__(self, operation: str, detail: Optional[str] = None):
        self.operation = operation
        self.detail = detail
        message = f"Record store read '{operation}' failed"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class RecordValidationError(ValueError):
    """A backend row could not be converted into a typed record."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"{table}: {message}")
