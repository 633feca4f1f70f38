"""Side effects requested by the workflow state machine.

The machine never performs I/O itself. Each transition returns a list of
these effects and the dispatcher carries them out in order.
"""

from dataclasses import dataclass, field
from typing import Union

from ..schema import SlideRecord, TeachingSettings
from ..ws.events import OutboundRequest


class DisplayLevel:
    """Display message levels"""

    INFO = "info"
    NOTICE = "notice"
    VALIDATION = "validation"
    ERROR = "error"
    SUCCESS = "success"


@dataclass
class SendRequest:
    request: OutboundRequest


@dataclass
class InsertSlides:
    slides: list[SlideRecord] = field(default_factory=list)


@dataclass
class CancelGeneration:
    """The in-flight generation request was abandoned."""


@dataclass
class Display:
    level: str
    text: str


@dataclass
class Status:
    """Progress label update; empty text hides the label."""

    text: str


@dataclass
class Render:
    """Preview, cursor or edit target changed."""


@dataclass
class RequestSettings:
    """Block until the teaching settings are confirmed."""


@dataclass
class PersistSettings:
    teaching: TeachingSettings


Effect = Union[
    SendRequest,
    InsertSlides,
    CancelGeneration,
    Display,
    Status,
    Render,
    RequestSettings,
    PersistSettings,
]
