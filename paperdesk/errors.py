"""
Error taxonomy for paperdesk.

Every error carries the HTTP status the API layer reports and whether the
caller may retry the same request after re-fetching.
"""

from __future__ import annotations


class PaperDeskError(Exception):
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PaperDeskError):
    """Malformed input: missing field, out-of-range index, bad marks."""

    status_code = 400


class StateError(PaperDeskError):
    """Operation not permitted in the paper's current status."""

    status_code = 409


class NotFoundError(PaperDeskError):
    status_code = 404


class ConflictError(PaperDeskError):
    """Optimistic version check failed; re-fetch and reapply."""

    status_code = 409
    retryable = True


class DependencyError(PaperDeskError):
    """A backing store, queue or blob service could not be reached."""

    status_code = 503
    retryable = True
