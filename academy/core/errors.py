"""Error taxonomy for the progression engine.

Services raise these; the API layer maps each class to one HTTP status in
a single exception handler (see academy.main).  Side-effect failures
(achievements, certificates, webhooks) never surface as these errors:
they are logged at the cascade and swallowed there.
"""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class.  ``status_code`` is the HTTP mapping used by the API."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Forbidden(ProgressionError):
    """The unit is locked for this user."""

    status_code = 403


class NotFound(ProgressionError):
    status_code = 404


class InvalidSubmission(ProgressionError):
    """The validator rejected the response shape."""

    status_code = 422


class Conflict(ProgressionError):
    status_code = 409


class PreconditionFailed(ProgressionError):
    """A prerequisite step (project approval, lesson completion) is missing."""

    status_code = 412


class NotCompleted(PreconditionFailed):
    """Certificate requested for a course the user has not completed."""
