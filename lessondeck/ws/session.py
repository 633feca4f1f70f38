"""Session correlation for one conversation with the generation backend."""

import random
import string
import time
from dataclasses import dataclass
from typing import Optional

from ..config import settings as app_settings
from ..logger import logger
from ..schema import EDIT_REQUEST_TYPE, ContentCategory, SlideRecord, TeachingSettings
from ..transform import title_sequence, transform_payload
from .events import EditDirective, InboundKind, InboundMessage, OutboundRequest

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_session_id() -> str:
    """Opaque conversation id: ``conv-<epoch ms>-<9 base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"conv-{int(time.time() * 1000)}-{suffix}"


@dataclass
class Session:
    session_id: Optional[str] = None
    original_request: Optional[str] = None
    original_category: Optional[ContentCategory] = None
    stale_count: int = 0


class SessionCorrelator:
    """Stamp outbound requests and decide which inbound replies are admitted.

    Cancelling a request does not stop the peer from answering it. Each
    ``cancel()`` therefore raises ``stale_count`` by one, and the next
    non-progress reply is swallowed (decrementing the counter) instead of
    being shown. Progress notifications always pass so the user keeps
    seeing feedback.

    Preview messages are additionally deduplicated: a preview whose title
    sequence equals the last accepted one is dropped, because the host
    transport may deliver the same message twice.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        channel_name: Optional[str] = None,
        id_factory=new_session_id,
    ):
        self.user_id = user_id or app_settings.user_id
        self.channel_name = channel_name or app_settings.channel_name
        self._id_factory = id_factory
        self.session = Session()
        self.last_preview_key: Optional[str] = None

    @property
    def stale_count(self) -> int:
        return self.session.stale_count

    def begin_session(self) -> str:
        """Return the active session id, creating one if none is active."""
        if not self.session.session_id:
            self.session.session_id = self._id_factory()
            logger.debug("Started conversation %s", self.session.session_id)
        return self.session.session_id

    def current_session(self) -> Optional[str]:
        return self.session.session_id

    def begin_request(self, text: str, category: ContentCategory) -> str:
        """Record a new generation request and reset preview deduplication."""
        self.last_preview_key = None
        self.session.original_request = text
        self.session.original_category = category
        return self.begin_session()

    def build_request(
        self,
        content: str,
        category: ContentCategory,
        teaching: TeachingSettings,
    ) -> OutboundRequest:
        return OutboundRequest(
            user_id=self.user_id,
            channel_name=self.channel_name,
            conversation_id=self.begin_session(),
            type=category.value,
            content=content,
            requirements=teaching.requirements(),
        )

    def build_edit_request(
        self,
        instruction: str,
        slide_index: int,
        slide: SlideRecord,
        teaching: TeachingSettings,
    ) -> OutboundRequest:
        """Edit request anchored on the slide's current record and the original request."""
        original_category = self.session.original_category
        return OutboundRequest(
            user_id=self.user_id,
            channel_name=self.channel_name,
            conversation_id=self.begin_session(),
            type=EDIT_REQUEST_TYPE,
            content=instruction,
            requirements=teaching.requirements(),
            edit=EditDirective(
                slide_index=slide_index,
                current_slide=slide.to_wire(),
                original_request=self.session.original_request,
                original_type=original_category.value if original_category else None,
            ),
        )

    def cancel(self) -> None:
        """Mark the in-flight request stale and drop the session id."""
        self.session.stale_count += 1
        self.session.session_id = None
        logger.info("Request cancelled; %s stale replies pending", self.session.stale_count)

    def reset(self) -> None:
        """Start a new conversation."""
        self.session = Session()
        self.last_preview_key = None

    def admit(self, message: InboundMessage) -> bool:
        """Decide whether an inbound message reaches the workflow."""
        if message.is_progress:
            return True

        if self.session.stale_count > 0:
            self.session.stale_count -= 1
            logger.debug(
                "Dropped stale %s reply; %s remaining", message.kind.value, self.session.stale_count
            )
            return False

        if message.kind == InboundKind.PREVIEW:
            slides, _ = transform_payload(message.payload, self.session.original_category)
            key = title_sequence(slides)
            if key == self.last_preview_key:
                logger.debug("Duplicate preview message ignored")
                return False
            self.last_preview_key = key

        return True
