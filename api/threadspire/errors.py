"""Domain exceptions raised by the service layer.

Every exception carries the HTTP status it maps to; ``main.py`` renders them
as RFC 7807 problem documents.
"""

from __future__ import annotations


class ThreadSpireError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    title: str = "Internal error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(ThreadSpireError):
    """Input breaks a content rule (empty title/segment, tag limits, bad sort key)."""

    status_code = 400
    title = "Validation failed"


class PermissionDeniedError(ThreadSpireError):
    """Caller may not mutate the target (not the owner)."""

    status_code = 403
    title = "Permission denied"


class AuthenticationRequiredError(PermissionDeniedError):
    """Operation needs a current user and there is none."""

    status_code = 401
    title = "Authentication required"


class PrivateAccessError(ThreadSpireError):
    """Private content read without the required access."""

    status_code = 403
    title = "Private content"


class NotFoundError(ThreadSpireError):
    status_code = 404
    title = "Not found"


class ConflictError(ThreadSpireError):
    """A write lost an optimistic-concurrency race."""

    status_code = 409
    title = "Conflict"


class PartialFailureError(ThreadSpireError):
    """A multi-step write failed part way; the transaction was rolled back."""

    status_code = 500
    title = "Operation failed"

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"{operation} failed and was rolled back: {detail}")
        self.operation = operation
