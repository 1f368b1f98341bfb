"""
Custom exception classes for the investor roster
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException


class VentureLinkBaseException(Exception):
    """Base exception for all VentureLink exceptions"""
    def __init__(self, message: str, code: str = "VENTURELINK_ERROR", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(VentureLinkBaseException):
    """Raised when a form field is rejected before any remote call"""
    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class AuthenticationError(VentureLinkBaseException):
    """Raised when no signed-in identity can be resolved"""
    def __init__(self, message: str = "No authenticated user found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTH_ERROR", details)


class IdentityMismatchError(VentureLinkBaseException):
    """Raised when the signed-in identity no longer owns the loaded roster"""
    def __init__(self, expected_user_id: Optional[str], actual_user_id: Optional[str], details: Optional[Dict[str, Any]] = None):
        message = f"Roster belongs to '{expected_user_id}' but current identity is '{actual_user_id}'"
        super().__init__(message, "IDENTITY_MISMATCH", details)
        self.expected_user_id = expected_user_id
        self.actual_user_id = actual_user_id


class RemoteOperationError(VentureLinkBaseException):
    """Raised when the remote store rejects or cannot complete a call"""
    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "REMOTE_OPERATION_ERROR", details)
        self.operation = operation


class RemoteTimeoutError(RemoteOperationError):
    """Raised when a remote call exceeds its time budget"""
    def __init__(self, operation: str, timeout_seconds: float, details: Optional[Dict[str, Any]] = None):
        message = f"Operation '{operation}' timed out after {timeout_seconds} seconds"
        super().__init__(message, operation, details)
        self.code = "TIMEOUT_ERROR"
        self.timeout_seconds = timeout_seconds


class ResourceNotFoundError(VentureLinkBaseException):
    """Raised when a resource is not found"""
    def __init__(self, resource_type: str, resource_id: str, details: Optional[Dict[str, Any]] = None):
        message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(message, "NOT_FOUND", details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class RosterClosedError(VentureLinkBaseException):
    """Raised when a closed synchronizer is used"""
    def __init__(self, message: str = "Roster synchronizer has been closed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "ROSTER_CLOSED", details)


def create_http_exception(error: VentureLinkBaseException) -> HTTPException:
    """Convert a VentureLinkBaseException to an HTTPException"""
    status_code = 500  # Default to internal server error

    # Map error types to HTTP status codes
    if isinstance(error, ValidationError):
        status_code = 400
    elif isinstance(error, AuthenticationError):
        status_code = 401
    elif isinstance(error, ResourceNotFoundError):
        status_code = 404
    elif isinstance(error, IdentityMismatchError):
        status_code = 409
    elif isinstance(error, RemoteTimeoutError):
        status_code = 504
    elif isinstance(error, RemoteOperationError):
        status_code = 502

    detail: Dict[str, Any] = {
        "code": error.code,
        "message": error.message,
        "details": error.details
    }
    if isinstance(error, ValidationError) and error.field:
        detail["field"] = error.field

    return HTTPException(status_code=status_code, detail=detail)
