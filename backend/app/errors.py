"""Error taxonomy shared by the services and the HTTP layer.

``ValidationError`` and ``NotFoundError`` are expected, request-scoped failures
whose message is safe to show the caller. ``StorageError`` wraps persistence
failures; its message is logged but never returned to the caller.
"""


class FeedbackError(Exception):
    """Base class for errors raised by the feedback services."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FeedbackError):
    status_code = 400


class NotFoundError(FeedbackError):
    status_code = 404


class StorageError(FeedbackError):
    status_code = 500
