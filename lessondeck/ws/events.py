"""Protocol messages and dispatcher events.

Outbound requests are pydantic models serialised with the peer's hyphenated
keys. Inbound messages are loosely shaped JSON objects; :func:`classify`
turns them into a tagged :class:`InboundMessage` following the peer's
informal priority order.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from ..exceptions import MalformedPayload
from ..transform import CONTENT_ARRAY_FIELDS


# ==================== Outbound ====================


class EditDirective(BaseModel):
    """Anchor of an edit request: which slide, what it looks like now, and why it exists."""

    model_config = ConfigDict(populate_by_name=True)

    slide_index: int = Field(..., alias="slideIndex")
    current_slide: dict[str, Any] = Field(..., alias="currentSlide")
    original_request: Optional[str] = Field(None, alias="originalRequest")
    original_type: Optional[str] = Field(None, alias="originalType")


class OutboundRequest(BaseModel):
    """One client → peer request."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="user-id")
    channel_name: str = Field(..., alias="channel-name")
    conversation_id: str = Field(..., alias="conversation-id")
    type: str = Field(..., description="Content category, or 'edit'")
    content: str = Field(..., description="Free-text instruction")
    requirements: dict[str, Any] = Field(default_factory=dict)
    edit: Optional[EditDirective] = None

    def to_wire(self) -> dict[str, Any]:
        message = self.model_dump(mode="json", by_alias=True)
        if self.edit is None:
            message.pop("edit", None)
        return message

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


# ==================== Inbound ====================


class InboundKind(str, Enum):
    """Inbound message kinds, in handling priority order"""

    REQUIREMENTS_NOT_MET = "requirements_not_met"
    PROGRESS = "progress"
    EDIT = "edit"
    PREVIEW = "preview"
    ERROR = "error"
    SUCCESS = "success"
    INFO = "info"
    UNKNOWN = "unknown"


@dataclass
class InboundMessage:
    kind: InboundKind
    payload: dict[str, Any]
    text: str = ""

    @property
    def is_progress(self) -> bool:
        return self.kind == InboundKind.PROGRESS


def _has_content_array(payload: dict[str, Any]) -> bool:
    return any(isinstance(payload.get(name), list) for name in CONTENT_ARRAY_FIELDS)


def classify(payload: dict[str, Any]) -> InboundMessage:
    """Tag an inbound payload with its kind.

    Priority:
        1. ``requirements-not-met`` field
        2. ``type == "progress"``
        3. ``type == "edit"`` with an ``edit`` object
        4. a content array (``slides``, ``words``, ``questions``, ``tasks``, ``data``)
        5. ``error`` or ``message`` field (``type == "success"`` marks a success message)
        6. anything else
    """
    not_met = payload.get("requirements-not-met")
    if not_met:
        return InboundMessage(InboundKind.REQUIREMENTS_NOT_MET, payload, str(not_met))

    message_type = payload.get("type")
    if message_type == "progress":
        status = payload.get("stage") or payload.get("message") or ""
        return InboundMessage(InboundKind.PROGRESS, payload, str(status))

    if message_type == "edit" and isinstance(payload.get("edit"), dict):
        return InboundMessage(InboundKind.EDIT, payload)

    if _has_content_array(payload):
        return InboundMessage(InboundKind.PREVIEW, payload, str(payload.get("title") or ""))

    if payload.get("error"):
        return InboundMessage(InboundKind.ERROR, payload, str(payload["error"]))
    if payload.get("message"):
        kind = InboundKind.SUCCESS if message_type == "success" else InboundKind.INFO
        return InboundMessage(kind, payload, str(payload["message"]))

    return InboundMessage(InboundKind.UNKNOWN, payload)


def parse_inbound(raw: Union[str, bytes]) -> InboundMessage:
    """Decode and classify one raw transport message.

    Raises:
        MalformedPayload: when the text is not a JSON object
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedPayload(text, e) from e
    if not isinstance(payload, dict):
        raise MalformedPayload(text)
    return classify(payload)


# ==================== Dispatcher events ====================


class UserEvents:
    """User intent types"""

    SUBMIT = "user.submit"
    SELECT_CATEGORY = "user.select_category"
    NEXT = "user.next"
    BACK = "user.back"
    REMOVE = "user.remove"
    EDIT = "user.edit"
    EXIT_EDIT = "user.exit_edit"
    INSERT = "user.insert"
    CANCEL = "user.cancel"
    NEW_CONVERSATION = "user.new_conversation"
    SAVE_SETTINGS = "user.save_settings"


class SystemEvents:
    """Timer event types"""

    RECONNECT_DUE = "system.reconnect_due"


def _now() -> str:
    return datetime.now().isoformat()


@dataclass
class ConnectionOpened:
    timestamp: str = field(default_factory=_now)


@dataclass
class ConnectionClosed:
    code: int
    reason: str = ""
    timestamp: str = field(default_factory=_now)


@dataclass
class ConnectionLostEvent:
    attempts: int
    timestamp: str = field(default_factory=_now)


@dataclass
class MessageReceived:
    raw: str
    source: str = "transport"
    timestamp: str = field(default_factory=_now)


@dataclass
class UserIntent:
    event: str
    text: Optional[str] = None
    category: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_now)


@dataclass
class TimerFired:
    name: str = SystemEvents.RECONNECT_DUE
    timestamp: str = field(default_factory=_now)


@dataclass
class InsertionFinished:
    inserted: int
    error: Optional[str] = None
    timestamp: str = field(default_factory=_now)


DispatcherEvent = Union[
    ConnectionOpened,
    ConnectionClosed,
    ConnectionLostEvent,
    MessageReceived,
    UserIntent,
    TimerFired,
    InsertionFinished,
]
