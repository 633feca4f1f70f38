"""
LessonDeck - Lesson slide generation client

Requests lesson content from a generation backend over a WebSocket, lets the
user review and edit the resulting slides one by one, and inserts the
confirmed slides into a presentation:
- Reconnecting transport with bounded retries
- Cancellation-safe session correlation
- Category-aware payload → slide transformation
- Single-consumer review workflow
"""

from .config import settings
from .exceptions import CategoryValidationError
from .exceptions import ConnectionLost
from .exceptions import EmptyResult
from .exceptions import InsertionFailure
from .exceptions import LessonDeckError
from .exceptions import MalformedPayload
from .exceptions import TransportUnavailable
from .logger import logger
from .schema import ContentCategory
from .schema import SlideKind
from .schema import SlideRecord
from .schema import TeachingSettings
from .schema import WorkflowState
from .transform import transform_payload

__version__ = "0.1.0"

__all__ = [
    # Core components
    "logger",
    "settings",
    # Schema types
    "ContentCategory",
    "SlideKind",
    "SlideRecord",
    "TeachingSettings",
    "WorkflowState",
    "transform_payload",
    # Errors
    "CategoryValidationError",
    "ConnectionLost",
    "EmptyResult",
    "InsertionFailure",
    "LessonDeckError",
    "MalformedPayload",
    "TransportUnavailable",
]
