"""
Exception hierarchy for Storefront Signals.

Read paths raise these so the API layer can render a consistent error body.
Background side effects never let them escape the worker boundary.
"""

from typing import Any, Dict, Optional


class SignalsError(Exception):
    """Base exception for engine errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class IngestionError(SignalsError):
    """Raised when a tracking call is malformed; nothing is recorded."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=400, details=details)


class StoreUnavailableError(SignalsError):
    """
    Raised when a backing store cannot serve a read.

    Only the store name and error type reach the client; the underlying
    error is kept on `.error` for server-side logging.
    """

    def __init__(self, store: str, error: Exception):
        super().__init__(
            message=f"{store} is unavailable",
            status_code=503,
            details={"store": store, "error_type": type(error).__name__},
        )
        self.error = error


class TrackingNotFoundError(SignalsError):
    """Raised when a bulk-send tracking id is unknown or expired."""

    def __init__(self, tracking_id: str):
        super().__init__(
            message=f"No bulk send found for tracking id '{tracking_id}'",
            status_code=404,
            details={"tracking_id": tracking_id},
        )
