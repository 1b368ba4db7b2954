"""
Shared error handling for the Mehm API Gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str


class GatewayError(Exception):
    """Base exception for gateway failures that map to an HTTP status."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(message=self.message)


class AuthenticationError(GatewayError):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "unauthenticated", code: str = "UNAUTHENTICATED",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details=details)


class UnauthenticatedError(AuthenticationError):
    """No credential was presented."""

    def __init__(self, message: str = "unauthenticated"):
        super().__init__(message, "UNAUTHENTICATED")


class InvalidCredentialFormatError(AuthenticationError):
    """The Authorization header is not of the form ``Bearer <token>``."""

    def __init__(self, message: str = "invalid credential format"):
        super().__init__(message, "INVALID_FORMAT")


class InvalidCredentialsError(AuthenticationError):
    """The bearer token is empty, forged, expired or carries malformed claims."""

    def __init__(self, message: str = "invalid credentials", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INVALID_CREDENTIALS", details)


class AuthorizationError(GatewayError):
    """Authorization-related errors."""

    status_code = 403

    def __init__(self, message: str = "forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__("FORBIDDEN", message, details=details)


class MalformedRequestError(GatewayError):
    """Missing or unparseable path and query parameters."""

    status_code = 400

    def __init__(self, message: str = "malformed request", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_REQUEST", message, details=details)


class ValidationError(GatewayError):
    """Validation-related errors.

    Range violations and query/path shape problems answer 400, body decode
    failures and text length violations answer 422.
    """

    def __init__(self, message: str = "validation failed", status_code: int = 400,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_FAILED", message, status_code=status_code, details=details)


class UpstreamUnreachableError(GatewayError):
    """The backend could not be reached at all."""

    status_code = 502

    def __init__(self, service: str, message: str = "upstream unreachable",
                 details: Optional[Dict[str, Any]] = None):
        self.service = service
        super().__init__("UPSTREAM_UNREACHABLE", f"{service}: {message}", details=details)


class InternalEncodingError(GatewayError):
    """The outbound request could not be built or encoded."""

    status_code = 500

    def __init__(self, message: str = "failed repeating request", details: Optional[Dict[str, Any]] = None):
        super().__init__("INTERNAL_ENCODING_FAILURE", message, details=details)


class ConfigurationError(GatewayError):
    """Required configuration is missing or invalid at startup."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details=details)
