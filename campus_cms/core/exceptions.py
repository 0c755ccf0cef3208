"""Application exception hierarchy.

Every error a route can raise deliberately derives from ``AppException`` and
carries the HTTP status it maps to. The handlers registered in
``campus_cms.main`` turn them into the standard failure envelope.
"""

from typing import Any, Dict, List, Optional


class AppException(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        error: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None
    ):
        self.detail = message or self.default_message
        self.error = error
        self.errors = errors
        super().__init__(self.detail)


class InvalidIdError(AppException):
    """Token is malformed or was not issued by this server.

    Reported as a plain 404 so callers learn nothing about the token format.
    """

    status_code = 404
    default_message = "Resource not found"


class NotFoundError(AppException):
    status_code = 404
    default_message = "Resource not found"


class ValidationError(AppException):
    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(AppException):
    status_code = 401
    default_message = "Authentication required"


class PermissionDeniedError(AppException):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class ConflictError(AppException):
    status_code = 409
    default_message = "Resource already exists"


class DependencyInUseError(AppException):
    """Delete refused because other rows still reference the resource."""

    status_code = 400
    default_message = "Resource is in use"
