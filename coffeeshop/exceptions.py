"""
Error taxonomy for the storefront core.

Repositories and remote clients raise these; cart, checkout and
subscription operations catch them and report a success flag instead.
"""
from typing import Optional


class ShopError(Exception):
    """Base exception for all storefront errors."""

    code: str = "shop_error"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "An unspecified storefront error occurred."
        super().__init__(message)


class NotFound(ShopError):
    """Referenced product or inventory record is missing."""

    code: str = "not_found"


class InsufficientStock(ShopError):
    """Requested quantity exceeds the computed availability."""

    code: str = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int) -> None:
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested {requested} of product '{product_id}' but only {available} available"
        )


class NetworkFailure(ShopError):
    """A remote call was rejected or timed out."""

    code: str = "network_failure"


class InvariantViolation(ShopError):
    """A write would leave stock counters negative or over-reserved."""

    code: str = "invariant_violation"


class AuthenticationError(ShopError):
    """OTP verification failed or no user is signed in."""

    code: str = "authentication_error"
