"""
HRMS error taxonomy.

Every error a route can return is one of these. The Flask error handler
in src/app.py renders them as {"message": ...} with the class's status.
"""


class HRMSError(Exception):
    """Base class for errors rendered straight to the API caller."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(HRMSError):
    """Missing or malformed input."""

    status_code = 400


class NotFoundError(HRMSError):
    status_code = 404


class ConflictError(HRMSError):
    """Duplicate of an existing record (e.g. signup email already registered)."""

    status_code = 400


class AuthenticationError(HRMSError):
    status_code = 401


class AuthorizationError(HRMSError):
    """Caller is known but not allowed to perform the action."""

    status_code = 403


class DependencyError(HRMSError):
    """A backing service (database) failed. Message is safe to show."""

    status_code = 500


class NotificationError(Exception):
    """Email dispatch failed. Logged at the dispatch site, never surfaced."""
