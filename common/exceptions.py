"""Domain errors shared by the cart and order services.

Each error carries the HTTP status and machine-readable code that views use
when turning it into a response. Services raise them before persisting
anything, so a caught error never implies a partial write.
"""

from rest_framework import status
from rest_framework.response import Response


class CommerceError(Exception):
    """Base class for cart/order failures surfaced to API clients."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"
    default_detail = "Unable to complete the request."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidInput(CommerceError):
    code = "invalid_input"
    default_detail = "Invalid input."


class NotFound(CommerceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Not found."


class Forbidden(CommerceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "You do not have permission to access this order."


class InsufficientStock(CommerceError):
    code = "insufficient_stock"
    default_detail = "Insufficient stock."


class InactiveProduct(CommerceError):
    code = "inactive_product"
    default_detail = "Product is not currently for sale."


class DuplicateOrder(CommerceError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_order"
    default_detail = "Duplicate order: this payment or cart was already submitted."


class PaymentVerificationFailed(CommerceError):
    code = "payment_verification_failed"
    default_detail = "Payment verification failed."


class InvalidStateTransition(CommerceError):
    code = "invalid_state_transition"
    default_detail = "Order cannot move to the requested status."


def error_response(exc: CommerceError) -> Response:
    """Render a domain error as the standard `{detail, code}` body."""
    return Response({"detail": exc.detail, "code": exc.code}, status=exc.status_code)
