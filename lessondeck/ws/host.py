"""Host messaging bridge.

When the review surface runs inside a hosted dialog, progress and results
reach it through the host's parent/child message channel instead of the
WebSocket. This bridge translates host messages into protocol payloads and
hands them to the same admission path as transport messages, so the same
staleness and preview deduplication rules apply.
"""

import json
from typing import Any, Callable, Iterable, Optional

from ..logger import logger
from ..schema import ContentCategory, SlideRecord
from .events import MessageReceived

# Dialog closed by the user, closed programmatically, navigated away
DIALOG_CLOSED_CODES = {12002, 12006, 12003}

_CATEGORY_KEYWORDS = (
    (ContentCategory.VOCABULARY, ("vocab", "word")),
    (ContentCategory.QUIZ, ("quiz", "test")),
    (ContentCategory.GRAMMAR, ("grammar",)),
    (ContentCategory.HOMEWORK, ("homework", "exercise")),
)


def detect_category(text: str) -> Optional[ContentCategory]:
    """Guess a content category from keywords in a free-text request."""
    lower = (text or "").lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return category
    return None


def translate_host_message(message: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Map one host message onto the peer protocol shape.

    Returns:
        Protocol payload, or None for message types the client ignores
    """
    message_type = message.get("type")

    if message_type == "progress":
        return {"type": "progress", "stage": message.get("stage") or "", "percent": message.get("percent")}
    if message_type == "insertProgress":
        current, total = message.get("current"), message.get("total")
        return {"type": "progress", "stage": f"Inserting slide {current} of {total}..."}
    if message_type == "preview":
        slides = message.get("slides")
        return {
            "data": slides if isinstance(slides, list) else [],
            "summary": message.get("summary") or "",
        }
    if message_type == "success":
        return {"type": "success", "message": message.get("message") or "Done."}
    if message_type == "error":
        return {"error": message.get("message") or "Unknown error"}

    logger.debug("Unknown host message type: %s", message_type)
    return None


class HostBridge:
    """Duplex channel to a hosting surface."""

    def __init__(
        self,
        post: Callable[[str], None],
        emit: Callable[[MessageReceived], None],
    ):
        self._post = post
        self._emit = emit
        self.is_open = True

    def receive(self, raw: str) -> bool:
        """Handle one message from the host; returns True when it was forwarded."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to parse host message: {e}")
            return False
        if not isinstance(message, dict):
            logger.error("Host message is not an object: %r", raw)
            return False

        payload = translate_host_message(message)
        if payload is None:
            return False
        self._emit(MessageReceived(json.dumps(payload, ensure_ascii=False), source="host"))
        return True

    def handle_dialog_event(self, code: int) -> None:
        if code in DIALOG_CLOSED_CODES:
            logger.info("Host dialog closed (%s)", code)
            self.is_open = False
        else:
            logger.debug("Unknown dialog event: %s", code)

    def send(self, message: dict[str, Any]) -> bool:
        if not self.is_open:
            return False
        try:
            self._post(json.dumps(message, ensure_ascii=False))
            return True
        except Exception as e:
            logger.error(f"Failed to send message to host: {e}")
            return False

    def send_generate(self, content: str, category: Optional[ContentCategory] = None) -> bool:
        category = category or detect_category(content)
        return self.send(
            {"type": "generate", "content": content, "category": category.value if category else "general"}
        )

    def send_insert(self, slides: Iterable[SlideRecord]) -> bool:
        return self.send({"type": "insert", "slides": [slide.to_wire() for slide in slides]})

    def send_cancel(self) -> bool:
        return self.send({"type": "cancel"})

    def close(self) -> None:
        self.send({"type": "close"})
        self.is_open = False
