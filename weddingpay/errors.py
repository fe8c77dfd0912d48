"""
Exception taxonomy for the checkout and reconciliation pipeline.

Every error carries the HTTP status and the stable ``error`` code the API
returns, so route handlers can simply let them propagate to the handlers
registered in ``weddingpay.middleware.errors``.
"""
from typing import Any, Dict, Iterable, Optional


class WeddingPayError(Exception):
    """Base exception for all pipeline errors."""

    status_code = 500
    error = "internal_error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(WeddingPayError):
    """Raised when request data is missing or malformed (400)."""
    status_code = 400
    error = "validation_error"


class ProductsNotFound(WeddingPayError):
    status_code = 404
    error = "products_not_found"

    def __init__(self, missing_ids: Iterable[str]):
        self.missing_ids = list(missing_ids)
        super().__init__(
            f"Products not found: {', '.join(self.missing_ids)}",
            details=self.missing_ids,
        )


class ProductsUnavailable(WeddingPayError):
    status_code = 422
    error = "products_unavailable"

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(
            f"Products not available for purchase: {', '.join(self.names)}",
            details=self.names,
        )


class InvalidCoupon(WeddingPayError):
    status_code = 422
    error = "invalid_coupon"


class IdentityConflict(WeddingPayError):
    """Identity fields point at different customers; needs manual review."""
    status_code = 409
    error = "identity_conflict"


class CustomerNotFound(WeddingPayError):
    status_code = 404
    error = "customer_not_found"


class CustomerCreationFailed(WeddingPayError):
    status_code = 500
    error = "customer_creation_failed"


class PaymentGatewayError(WeddingPayError):
    """Raised when the payment gateway rejects a request or cannot be reached."""
    status_code = 402
    error = "payment_gateway_error"

    def __init__(self, message: str, payload: Optional[Any] = None,
                 http_status: Optional[int] = None, timeout: bool = False):
        super().__init__(message, details=payload)
        self.payload = payload
        self.http_status = http_status
        self.timeout = timeout
        if timeout:
            self.status_code = 504


class GatewayConfigurationError(WeddingPayError):
    status_code = 500
    error = "gateway_not_configured"


class Unauthorized(WeddingPayError):
    status_code = 401
    error = "unauthorized"
