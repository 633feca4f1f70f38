from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class SlideKind(str, Enum):
    """Kinds of slide records shown in the preview"""

    TITLE = "Title"
    VOCABULARY = "Vocabulary"
    GRAMMAR = "Grammar"
    QUIZ = "Quiz"
    HOMEWORK = "Homework"
    CONTENT = "Content"

    @classmethod
    def parse(cls, value: Any) -> "SlideKind":
        """Lenient lookup used for loosely-typed peer payloads."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for kind in cls:
                if kind.value.lower() == value.strip().lower():
                    return kind
        return cls.CONTENT


class ContentCategory(str, Enum):
    """Generation categories a request can ask for"""

    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    QUIZ = "quiz"
    HOMEWORK = "homework"

    @classmethod
    def parse(cls, value: Any) -> Optional["ContentCategory"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


CATEGORY_VALUES = tuple(category.value for category in ContentCategory)
EDIT_REQUEST_TYPE = "edit"


class ConnectionState(str, Enum):
    """Transport connection status"""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class WorkflowState(str, Enum):
    """Review workflow states"""

    IDLE = "idle"
    AWAITING_TYPE = "awaiting_type"
    GENERATING = "generating"
    PREVIEWING = "previewing"
    EDITING = "editing"
    INSERTING = "inserting"
    ERROR = "error"
    SUCCESS = "success"


class SlideRecord(BaseModel):
    """One normalised slide, as shown in the preview and inserted into the deck.

    Field names on the wire follow the peer's schema (``type`` and
    ``content``), so the record can be echoed back unchanged as the anchor of
    an edit request.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: SlideKind = Field(SlideKind.CONTENT, alias="type")
    title: str = ""
    subtitle: str = ""
    body: str = Field("", alias="content")
    example: str = ""

    @property
    def is_title(self) -> bool:
        return self.kind == SlideKind.TITLE

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TeachingSettings(BaseModel):
    """Per-document teaching context sent with every request"""

    model_config = ConfigDict(populate_by_name=True)

    language: str = "English"
    level: str = "B1"
    native_language: str = Field("No", alias="nativeLanguage")
    age_group: str = Field("", alias="ageGroup")
    class_name: Optional[str] = Field(None, alias="className")

    def requirements(self) -> dict[str, Any]:
        """Requirements block of an outbound request"""
        return {
            "language": self.language or None,
            "level": self.level or None,
            "native-language": self.native_language or "No",
            "age-group": self.age_group or None,
            "class-name": self.class_name or None,
        }

    @property
    def badge(self) -> str:
        return f"{self.level} {self.language}"
