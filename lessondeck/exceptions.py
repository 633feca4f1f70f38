"""Error kinds raised and handled inside the lessondeck client.

None of these are fatal to the process. Each one is caught at the boundary
where it occurs and turned into a workflow transition plus a user-visible
message.
"""

from typing import Optional


class LessonDeckError(Exception):
    """Base exception for all client-side errors"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class TransportUnavailable(LessonDeckError):
    """A send was attempted while the connection is not established"""

    def __init__(self, message: str = "Not connected to server. Make sure the backend is running."):
        super().__init__(message)


class ConnectionLost(LessonDeckError):
    """The reconnect budget is exhausted"""

    def __init__(self, attempts: int):
        super().__init__(f"Connection lost after {attempts} reconnect attempts.")
        self.attempts = attempts


class EmptyResult(LessonDeckError):
    """A payload transformed into zero slides"""

    def __init__(self, message: str, category: Optional[str] = None):
        super().__init__(message)
        self.category = category


class MalformedPayload(LessonDeckError):
    """An inbound message could not be decoded"""

    def __init__(self, raw: str, original_error: Optional[Exception] = None):
        preview = raw if len(raw) <= 120 else raw[:119] + "…"
        super().__init__(f"Malformed payload: {preview}", original_error)
        self.raw = raw


class CategoryValidationError(LessonDeckError):
    """Submit was attempted without a content category"""

    def __init__(self, message: str = "Please choose a content type first."):
        super().__init__(message)


class InsertionFailure(LessonDeckError):
    """The presentation collaborator rejected a step of the insertion sequence"""

    def __init__(self, message: str, inserted: int = 0, original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.inserted = inserted
