"""Review workflow state machine.

Owns the slide list, the review cursor, the edit target and the busy flag for
one review session. It consumes user intents, admitted inbound messages and
collaborator outcomes, and answers each with a list of effects for the
dispatcher to execute. It performs no I/O and never awaits, so every
transition can be unit tested without a socket.

States::

    idle ──submit──▶ generating ──preview──▶ previewing ◀──exit_edit── editing
      ▲                  │ empty/error            │ next on last slide
      │                  ▼                        ▼
      └──next intent── error / success ◀──── inserting
"""

from dataclasses import dataclass
from typing import Any, Optional

from ..exceptions import CategoryValidationError, ConnectionLost, TransportUnavailable
from ..logger import logger
from ..schema import ContentCategory, SlideRecord, TeachingSettings, WorkflowState
from ..transform import PayloadShape, empty_result_message, transform_edited_slide, transform_payload
from ..ws.events import InboundKind, InboundMessage, UserEvents, UserIntent
from ..ws.session import SessionCorrelator
from .effects import (
    CancelGeneration,
    Display,
    DisplayLevel,
    Effect,
    InsertSlides,
    PersistSettings,
    Render,
    RequestSettings,
    SendRequest,
    Status,
)

REVIEW_STATES = (WorkflowState.PREVIEWING, WorkflowState.EDITING)
TERMINAL_STATES = (WorkflowState.ERROR, WorkflowState.SUCCESS)


def _plural(count: int, noun: str = "slide") -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


@dataclass
class ReviewView:
    """Read-only snapshot for renderers."""

    state: WorkflowState
    slides: list[SlideRecord]
    cursor: int
    edit_target: Optional[int]
    processing: bool
    status: str
    category: Optional[ContentCategory]
    preview_title: str

    @property
    def current(self) -> Optional[SlideRecord]:
        if not self.slides:
            return None
        return self.slides[self.cursor]

    @property
    def on_last_slide(self) -> bool:
        return bool(self.slides) and self.cursor == len(self.slides) - 1

    @property
    def next_label(self) -> str:
        """``Next``, or ``Insert N`` on the last slide: reaching the end confirms."""
        return f"Insert {len(self.slides)}" if self.on_last_slide else "Next"


class WorkflowStateMachine:
    """Generate → preview → edit → insert workflow over one ordered slide list."""

    def __init__(
        self,
        correlator: SessionCorrelator,
        teaching: Optional[TeachingSettings] = None,
        *,
        settings_confirmed: bool = True,
        default_category: Optional[ContentCategory] = ContentCategory.VOCABULARY,
    ):
        self.correlator = correlator
        self.teaching = teaching or TeachingSettings()
        self.settings_confirmed = settings_confirmed
        self.default_category = default_category

        self.state = WorkflowState.IDLE
        self.category: Optional[ContentCategory] = default_category
        self.slides: list[SlideRecord] = []
        self.cursor = 0
        self.edit_target: Optional[int] = None
        self.processing = False
        self.status = ""
        self.preview_title = ""
        self.shape: Optional[PayloadShape] = None
        self.history: list[tuple[str, str]] = []

    # ==================== Queries ====================

    @property
    def in_review(self) -> bool:
        return bool(self.slides) and self.state in REVIEW_STATES

    @property
    def is_editing(self) -> bool:
        return self.edit_target is not None

    def view(self) -> ReviewView:
        return ReviewView(
            state=self.state,
            slides=list(self.slides),
            cursor=self.cursor,
            edit_target=self.edit_target,
            processing=self.processing,
            status=self.status,
            category=self.category,
            preview_title=self.preview_title,
        )

    # ==================== User intents ====================

    def handle_intent(self, intent: UserIntent) -> list[Effect]:
        """Route one user intent to its transition."""
        event = intent.event
        logger.debug("Intent %s in state %s", event, self.state.value)

        if self.state in TERMINAL_STATES:
            self.state = WorkflowState.IDLE

        if event == UserEvents.SUBMIT:
            return self.submit(intent.text or "")
        elif event == UserEvents.SELECT_CATEGORY:
            return self.select_category(intent.category)
        elif event == UserEvents.NEXT:
            return self.navigate_next()
        elif event == UserEvents.BACK:
            return self.navigate_back()
        elif event == UserEvents.REMOVE:
            return self.remove_current()
        elif event == UserEvents.EDIT:
            return self.enter_edit()
        elif event == UserEvents.EXIT_EDIT:
            return self.exit_edit()
        elif event == UserEvents.INSERT:
            return self.insert()
        elif event == UserEvents.CANCEL:
            return self.cancel()
        elif event == UserEvents.NEW_CONVERSATION:
            return self.new_conversation()
        elif event == UserEvents.SAVE_SETTINGS:
            return self.save_settings(intent.data)

        logger.warning("Unknown intent: %s", event)
        return []

    def submit(self, text: str) -> list[Effect]:
        content = text.strip()
        if not content:
            return []
        if self.processing:
            logger.debug("Submit ignored while a request is in flight")
            return []
        if not self.settings_confirmed:
            return [RequestSettings()]

        if self.is_editing and self.slides:
            return self._submit_edit(content)

        if self.category is None:
            # An open preview stays reviewable; only the notice is shown
            if not self.in_review:
                self.state = WorkflowState.AWAITING_TYPE
            return [Display(DisplayLevel.VALIDATION, CategoryValidationError().message)]

        effects: list[Effect] = []
        if self.slides:
            effects.extend(self._dismiss_preview(f"{_plural(len(self.slides))} not inserted"))

        self.correlator.begin_request(content, self.category)
        self.history.append(("user", content))
        request = self.correlator.build_request(content, self.category, self.teaching)

        self.processing = True
        self.state = WorkflowState.GENERATING
        self.status = "Generating content..."
        effects.extend([Status(self.status), SendRequest(request)])
        return effects

    def _submit_edit(self, instruction: str) -> list[Effect]:
        index = self.edit_target
        self.history.append(("user", f"Edit slide {index + 1}: {instruction}"))
        request = self.correlator.build_edit_request(instruction, index, self.slides[index], self.teaching)

        # Stays logically in edit mode while the update is in flight
        self.processing = True
        self.state = WorkflowState.GENERATING
        self.status = "Updating slide..."
        return [Status(self.status), SendRequest(request)]

    def select_category(self, value: Any) -> list[Effect]:
        self.category = ContentCategory.parse(value) if value is not None else None
        if self.category is not None and self.state == WorkflowState.AWAITING_TYPE:
            self.state = self._resting_state()
        return [Render()]

    def navigate_next(self) -> list[Effect]:
        if not self.in_review or self.processing:
            return []
        if self.cursor < len(self.slides) - 1:
            self._move_cursor(self.cursor + 1)
            return [Render()]
        return self.insert()

    def navigate_back(self) -> list[Effect]:
        if not self.in_review or self.processing or self.cursor == 0:
            return []
        self._move_cursor(self.cursor - 1)
        return [Render()]

    def remove_current(self) -> list[Effect]:
        """Delete the slide under the cursor; the remainder is re-indexed."""
        if not self.in_review or self.processing:
            return []

        del self.slides[self.cursor]
        if not self.slides:
            return self._dismiss_preview("All slides removed.")

        self._move_cursor(min(self.cursor, len(self.slides) - 1))
        return [Render()]

    def enter_edit(self) -> list[Effect]:
        if not self.in_review or self.processing:
            return []
        self.edit_target = self.cursor
        self.state = WorkflowState.EDITING
        return [Render()]

    def exit_edit(self) -> list[Effect]:
        if not self.is_editing:
            return []
        self.edit_target = None
        if self.state == WorkflowState.EDITING:
            self.state = WorkflowState.PREVIEWING
        return [Render()]

    def insert(self) -> list[Effect]:
        if self.processing:
            return []
        if not self.slides:
            self.state = WorkflowState.ERROR
            return [Display(DisplayLevel.ERROR, "No slides to insert.")]

        snapshot = list(self.slides)
        self._clear_preview()
        self.processing = True
        self.state = WorkflowState.INSERTING
        self.status = "Inserting slides..."
        return [Status(self.status), Render(), InsertSlides(snapshot)]

    def cancel(self) -> list[Effect]:
        if self.state == WorkflowState.GENERATING and self.processing:
            self.correlator.cancel()
            self.processing = False
            self.status = ""
            self.history.append(("ai", "Generation cancelled."))
            self.state = self._resting_state()
            return [CancelGeneration(), Status(""), Display(DisplayLevel.INFO, "Generation cancelled."), Render()]

        if self.in_review:
            return self._dismiss_preview("Preview cancelled.")

        return []

    def new_conversation(self) -> list[Effect]:
        self._clear_preview()
        self.correlator.reset()
        self.category = self.default_category
        self.processing = False
        self.status = ""
        self.history.clear()
        self.state = WorkflowState.IDLE
        return [Status(""), Render()]

    def save_settings(self, data: dict[str, Any]) -> list[Effect]:
        self.teaching = TeachingSettings.model_validate(data or {})
        self.settings_confirmed = True
        return [PersistSettings(self.teaching), Display(DisplayLevel.INFO, f"Settings saved: {self.teaching.badge}")]

    # ==================== Inbound messages ====================

    def handle_message(self, message: InboundMessage) -> list[Effect]:
        """Apply one admitted inbound message, in protocol priority order."""
        kind = message.kind

        if kind == InboundKind.REQUIREMENTS_NOT_MET:
            self.history.append(("ai", message.text))
            return self._settle() + [Display(DisplayLevel.INFO, message.text)]

        if kind == InboundKind.PROGRESS:
            # Label only, never a transition; shown even for a cancelled request
            self.status = message.text
            return [Status(message.text)]

        if kind == InboundKind.EDIT:
            return self._apply_edit(message.payload.get("edit") or {})

        if kind == InboundKind.PREVIEW:
            return self._show_preview(message.payload)

        if kind == InboundKind.ERROR:
            return self._fail(message.text)

        if kind == InboundKind.SUCCESS:
            inserting = self.state == WorkflowState.INSERTING
            effects = self._settle()
            if inserting:
                self.state = WorkflowState.SUCCESS
            return effects + [Display(DisplayLevel.SUCCESS, message.text)]

        if kind == InboundKind.INFO:
            self.history.append(("ai", message.text))
            return self._settle() + [Display(DisplayLevel.INFO, message.text)]

        return self._settle()

    def _show_preview(self, payload: dict[str, Any]) -> list[Effect]:
        category = self.correlator.session.original_category or self.category
        slides, shape = transform_payload(payload, category)
        if not slides:
            self._clear_preview()
            self.processing = False
            self.status = ""
            self.state = WorkflowState.ERROR
            return [Status(""), Display(DisplayLevel.ERROR, empty_result_message(category))]

        self.slides = slides
        self.shape = shape
        self.cursor = 0
        self.edit_target = None
        self.preview_title = str(payload.get("title") or payload.get("summary") or "Generated Content")
        self.processing = False
        self.status = ""
        self.state = WorkflowState.PREVIEWING
        logger.info("Previewing %s", _plural(len(slides)))
        return [Status(""), Render()]

    def _apply_edit(self, edit: dict[str, Any]) -> list[Effect]:
        index = edit.get("slideIndex")
        valid_index = isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(self.slides)
        existing = self.slides[index] if valid_index else None
        record = transform_edited_slide(edit.get("slide"), self.shape, existing) if valid_index else None

        if record is None:
            logger.warning("Edit reply could not be applied: slideIndex=%r", index)
            return self._fail("Failed to apply edit. Please try again.")

        self.slides[index] = record
        self._move_cursor(index)
        self.processing = False
        self.status = ""
        self.state = WorkflowState.EDITING if self.is_editing else WorkflowState.PREVIEWING
        self.history.append(("ai", "Slide updated."))
        return [Status(""), Render(), Display(DisplayLevel.INFO, "Slide updated.")]

    # ==================== Connection and collaborator outcomes ====================

    def transport_unavailable(self) -> list[Effect]:
        return self._fail(TransportUnavailable().message)

    def connection_lost(self, attempts: int) -> list[Effect]:
        return self._fail(ConnectionLost(attempts).message)

    def malformed_payload(self) -> list[Effect]:
        return self._settle()

    def insertion_finished(self, inserted: int, error: Optional[str] = None) -> list[Effect]:
        self.processing = False
        self.status = ""
        if error:
            self.state = WorkflowState.ERROR
            return [Status(""), Display(DisplayLevel.ERROR, f"Failed to insert slides: {error}")]

        self.state = WorkflowState.SUCCESS
        return [Status(""), Display(DisplayLevel.SUCCESS, f"{_plural(inserted)} inserted successfully")]

    # ==================== Helpers ====================

    def _move_cursor(self, index: int) -> None:
        self.cursor = index
        if self.is_editing:
            self.edit_target = index

    def _resting_state(self) -> WorkflowState:
        if self.slides:
            return WorkflowState.EDITING if self.is_editing else WorkflowState.PREVIEWING
        return WorkflowState.IDLE

    def _settle(self) -> list[Effect]:
        """Clear the busy flag and leave any in-flight state."""
        was_busy = self.processing
        self.processing = False
        self.status = ""
        if self.state in (WorkflowState.GENERATING, WorkflowState.INSERTING):
            self.state = self._resting_state()
        return [Status("")] if was_busy else []

    def _fail(self, text: str) -> list[Effect]:
        """Surface an error; an open preview survives, otherwise fold to error."""
        self.processing = False
        self.status = ""
        self.state = self._resting_state() if self.slides else WorkflowState.ERROR
        return [Status(""), Display(DisplayLevel.ERROR, text)]

    def _clear_preview(self) -> None:
        self.slides = []
        self.cursor = 0
        self.edit_target = None
        self.preview_title = ""

    def _dismiss_preview(self, notice: str) -> list[Effect]:
        self._clear_preview()
        self.state = WorkflowState.IDLE
        self.history.append(("ai", notice))
        return [Render(), Display(DisplayLevel.NOTICE, notice)]
