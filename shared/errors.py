"""
Shared error handling for the cache access service.

Cache operations never surface these to HTTP callers: store, serialization
and configuration errors are absorbed at or below the cache layer and turned
into miss/false/empty results. Only request validation errors reach the
exception handlers in base_service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for the cache access service."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ConfigurationError(AccessLayerException):
    """Missing or invalid connection parameters."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class TransientStoreError(AccessLayerException):
    """Network, timeout or protocol error talking to the backing store."""

    def __init__(self, operation: str, message: str = "Store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSIENT_STORE_ERROR", f"{operation}: {message}", details)
        self.operation = operation


class SerializationError(AccessLayerException):
    """Malformed stored bytes or a value that cannot be encoded."""

    def __init__(self, message: str = "Serialization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERIALIZATION_ERROR", message, details)
