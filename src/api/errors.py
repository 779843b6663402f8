"""API error handling and response helpers."""

from typing import Any, Dict

from fastapi import HTTPException, status


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, code: str, http_status: int = 400):
        """Initialize error."""
        self.message = message
        self.code = code
        self.http_status = http_status
        super().__init__(message)


class AuthenticationError(AppError):
    """No authenticated caller on the request."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, "unauthorized", status.HTTP_401_UNAUTHORIZED)


class ValidationError(AppError):
    """Request input failed validation (e.g. blank tenant id)."""

    def __init__(self, message: str = "Tenant ID is required"):
        super().__init__(message, "invalid_request", status.HTTP_400_BAD_REQUEST)


class TenantNotFoundError(AppError):
    """Tenant does not exist."""

    def __init__(self, message: str = "Tenant not found"):
        super().__init__(message, "tenant_not_found", status.HTTP_404_NOT_FOUND)


class ScheduleNotFoundError(AppError):
    """Billing schedule does not exist or belongs to another tenant."""

    def __init__(self, message: str = "Billing schedule not found"):
        super().__init__(message, "schedule_not_found", status.HTTP_404_NOT_FOUND)


class DuplicatePaymentError(AppError):
    """A payment with this transaction id was already recorded."""

    def __init__(self, message: str = "Payment already recorded"):
        super().__init__(message, "duplicate_payment", status.HTTP_409_CONFLICT)


class UpstreamLoadError(AppError):
    """Loading billing schedules from the store failed."""

    def __init__(self, message: str = "Failed to check billing status"):
        super().__init__(message, "billing_check_failed", status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(error: AppError) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
        }
    }


def raise_app_error(error: AppError) -> None:
    """Raise an HTTPException from an AppError."""
    raise HTTPException(
        status_code=error.http_status,
        detail=error_response(error),
    ) from error
