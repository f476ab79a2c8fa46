"""
Custom exceptions for the application.

Eligibility outcomes are never exceptions; these are reserved for malformed
input at the boundary and for infrastructure failures.
"""
from typing import Any, Dict, Optional


class GatehouseException(Exception):
    """Base exception for all Gatehouse exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(GatehouseException):
    """Validation error exception."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=422, details=details)


class ExternalServiceError(GatehouseException):
    """External service error exception."""

    def __init__(self, service: str, message: str):
        full_message = f"External service error ({service}): {message}"
        self.service = service
        super().__init__(full_message, status_code=503)


class StoreError(GatehouseException):
    """Backing store operation error exception."""

    def __init__(self, message: str, operation: Optional[str] = None, key: Optional[str] = None):
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key
        super().__init__(message, status_code=500, details=details)
