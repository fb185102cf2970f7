"""
Relay exceptions.

Each exception maps onto one HTTP status of the relay error taxonomy and
knows how to render itself as a JSON error body. The forwarding pipeline
raises them at the step where a request is rejected and converts them into
responses at its outer boundary.
"""

from typing import Any, Dict, List, Optional


class RelayError(Exception):
    """
    Base exception for relay failures.

    Unexpected internal failures surface with this base type (HTTP 500).
    """

    status_code: int = 500
    default_error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses.

        Returns:
            Dictionary representation of the error
        """
        body: Dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details is not None:
            body["details"] = self.details
        body.update(self.context)
        return body


class InvalidRequestError(RelayError):
    """
    Raised when the inbound request cannot be turned into an outbound call.

    This covers unsupported methods, malformed custom header JSON and
    unreadable request bodies.
    """

    status_code = 400
    default_error_code = "invalid_request"


class TargetRejectedError(InvalidRequestError):
    """Raised when the target URL is missing or fails the safety checks."""

    def __init__(
        self,
        message: str,
        reason: str,
        details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=reason, details=details, context=context)
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["reason"] = self.reason
        return body


class UnauthorizedError(RelayError):
    """Raised when the gateway secret is configured and no channel matched it."""

    status_code = 401
    default_error_code = "unauthorized"

    def __init__(self, message: str, auth_methods: List[str]):
        super().__init__(message, details="A valid API key is required to use this service")
        self.auth_methods = list(auth_methods)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["auth_methods"] = self.auth_methods
        return body


class UpstreamError(RelayError):
    """
    Raised when the outbound call could not be completed.

    Attributes:
        suggestions: Remediation hints for the caller
    """

    status_code = 502
    default_error_code = "upstream_failure"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, details=details, context=context)
        self.suggestions = list(suggestions or [])

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.suggestions:
            body["suggestions"] = self.suggestions
        return body


class UpstreamReadError(UpstreamError):
    """Raised when the upstream answered but its body could not be read."""

    default_error_code = "upstream_read_failed"
