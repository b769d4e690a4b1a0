# storefront/core/errors.py
"""
Error taxonomy for the storefront.

Every error is an HTTPException subclass, so services raise them directly
and FastAPI renders them as ``{"detail": ...}`` with the right status.
Anything that is not one of these is logged and turned into an opaque 500
by the handler registered in ``storefront.main``.
"""

from fastapi import HTTPException, status


class StorefrontError(HTTPException):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
        )


class ValidationError(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class EmptyCart(ValidationError):
    default_detail = "Cart is empty"


class InsufficientStock(StorefrontError):
    """Requested quantity exceeds the live stock of a product."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, product_name: str, available: int):
        self.product_name = product_name
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}"
        )


class InvalidState(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid state transition"


class CheckoutCancelled(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Checkout cancelled before stock was reserved"


class Unauthenticated(StorefrontError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required"


class Forbidden(StorefrontError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Conflict(StorefrontError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists"


class GatewayError(StorefrontError):
    """
    Payment provider unreachable or rejected the request.

    The detail shown to clients never contains the provider's response.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Payment provider error"


class GatewayTimeout(GatewayError):
    default_detail = "Payment provider did not respond in time"
