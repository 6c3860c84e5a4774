"""
ReMarket - Custom Exceptions
=============================
Business-level exceptions that can be caught and converted to HTTP responses.

Every error carries a closed ErrorKind (for client branching) and a separate
human-readable message.
"""

import enum
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class ErrorKind(str, enum.Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    MISSING_ADDRESS = "MISSING_ADDRESS"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    SELF_PURCHASE = "SELF_PURCHASE"
    ALREADY_SOLD = "ALREADY_SOLD"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    STORAGE_FAILURE = "STORAGE_FAILURE"


class MarketError(Exception):
    """Base exception for all business logic errors."""
    kind = ErrorKind.VALIDATION_ERROR
    status_code = 400

    def __init__(self, message: str = "Something went wrong.", details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class UnauthorizedError(MarketError):
    """Raised when the request carries no valid session."""
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401

    def __init__(self):
        super().__init__("Unauthorized")


class ValidationError(MarketError):
    """Raised for missing or malformed input fields."""
    pass


class NotFoundError(MarketError):
    """Raised when a resource doesn't exist or isn't visible to the actor."""
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class MissingAddressError(MarketError):
    """Raised when no complete shipping name/address/phone can be resolved."""
    kind = ErrorKind.MISSING_ADDRESS

    def __init__(self, missing_fields: list):
        self.missing_fields = list(missing_fields)
        super().__init__(
            "Shipping information is incomplete.",
            details="Missing: " + ", ".join(self.missing_fields),
        )


class InsufficientStockError(MarketError):
    """Raised when requested quantity exceeds available stock."""
    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, product_name: str, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Not enough stock for {product_name} (Available: {available}, Requested: {requested})"
        )


class SelfPurchaseError(MarketError):
    kind = ErrorKind.SELF_PURCHASE

    def __init__(self):
        super().__init__("Cannot buy your own product")


class AlreadySoldError(MarketError):
    kind = ErrorKind.ALREADY_SOLD

    def __init__(self, message: str = "Product is marked as sold"):
        super().__init__(message)


class InvalidTransitionError(MarketError):
    """Raised for shipping status changes the order state machine forbids."""
    kind = ErrorKind.INVALID_TRANSITION
    status_code = 409


class StorageFailureError(MarketError):
    """Raised when a transaction cannot be committed (lock timeout, DB error)."""
    kind = ErrorKind.STORAGE_FAILURE
    status_code = 503

    def __init__(self, message: str = "Operation failed, please try again"):
        super().__init__(message)


def error_payload(error: MarketError) -> dict:
    """
    JSON body for an error response.

    `error` stays the literal MISSING_ADDRESS code for that kind because the
    browser client redirects to settings on it; clients branch on `code`.
    """
    payload = {
        "error": error.kind.value if error.kind == ErrorKind.MISSING_ADDRESS else error.message,
        "code": error.kind.value,
        "message": error.message,
    }
    if error.details:
        payload["details"] = error.details
    return payload


async def market_error_handler(request: Request, exc: MarketError):
    """Render a MarketError raised anywhere in a route as JSON."""
    return JSONResponse(error_payload(exc), status_code=exc.status_code)
