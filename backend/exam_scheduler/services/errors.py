"""
Error taxonomy of the session core.

Routers translate these into HTTP responses; nothing here knows about HTTP.
"""


class SchedulerError(Exception):
    """Base class for every failure the session core reports to its caller."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(SchedulerError):
    """A referenced schedule or exam does not exist. Nothing was written."""


class SessionConflictError(SchedulerError):
    """A client-supplied session id is not the caller's current session.

    The client state is stale (or forged); it should reconcile through
    verify instead of retrying the same request.
    """


class SessionValidationError(SchedulerError):
    """Required input is missing or malformed. Nothing was written."""


class StoreError(SchedulerError):
    """The backing store failed. The unit of work was rolled back."""
