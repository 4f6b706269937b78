# schoolconnect/core/exceptions.py
"""Custom exceptions for the SchoolConnect messaging core."""
import enum
from typing import Optional


class ErrorCode(enum.Enum):
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    STALE_AUTHORIZATION = "STALE_AUTHORIZATION"


class SchoolConnectError(Exception):
    """Base exception for the messaging core"""
    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class Forbidden(SchoolConnectError):
    """Actor lacks the role or ownership for the attempted action"""
    code = ErrorCode.FORBIDDEN

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, 403)


class NotFoundError(SchoolConnectError):
    """Resource not found exception"""
    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, id: Optional[object] = None):
        message = f"{resource} not found"
        if id:
            message += f" with id: {id}"
        super().__init__(message, 404)


class InvalidStateError(SchoolConnectError):
    """Transition not valid from the current state"""
    code = ErrorCode.INVALID_STATE

    def __init__(self, message: str):
        super().__init__(message, 409)


class ValidationException(SchoolConnectError):
    """Validation error exception"""
    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str):
        super().__init__(message, 422)


class TransportFailure(SchoolConnectError):
    """A push or live send failed. Never surfaced to the caller."""
    code = ErrorCode.TRANSPORT_FAILURE

    def __init__(self, message: str, error_class: str = "transport_error"):
        self.error_class = error_class
        super().__init__(message, 502)
