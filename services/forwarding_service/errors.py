"""Typed failures raised by the forwarding service operations."""

from fastapi import status
from libs.common.error_handler import DomainError


class ValidationError(DomainError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class PermissionDenied(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "PERMISSION_DENIED"


class IllegalTransition(DomainError):
    """A state change that the lifecycle table does not allow."""

    status_code = status.HTTP_409_CONFLICT
    code = "ILLEGAL_TRANSITION"


class AlreadyAccepted(DomainError):
    """Another offer on the order won acceptance first. Re-fetch offers."""

    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_ACCEPTED"


class OrderClosed(DomainError):
    """The order is no longer open for bids or price changes."""

    status_code = status.HTTP_409_CONFLICT
    code = "ORDER_CLOSED"


class InvalidLedgerTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_LEDGER_TRANSITION"


class SkippedStep(DomainError):
    """Tracking step out of sequence. ``expected_status`` names the next step."""

    status_code = status.HTTP_409_CONFLICT
    code = "SKIPPED_STEP"


class ExternalPaymentFailure(DomainError):
    """The payment processor failed or timed out. Safe to retry with backoff."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "EXTERNAL_PAYMENT_FAILURE"
    retryable = True


class CheckoutInProgress(DomainError):
    """Another checkout for the order is waiting on the processor."""

    status_code = status.HTTP_409_CONFLICT
    code = "CHECKOUT_IN_PROGRESS"
    retryable = True
