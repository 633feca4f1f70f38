"""Unit tests for WorkflowStateMachine."""

import pytest

from lessondeck.schema import ContentCategory, SlideKind, WorkflowState
from lessondeck.workflow.effects import (
    CancelGeneration,
    Display,
    DisplayLevel,
    InsertSlides,
    PersistSettings,
    Render,
    RequestSettings,
    SendRequest,
    Status,
)
from lessondeck.workflow.machine import WorkflowStateMachine
from lessondeck.ws.events import UserEvents, UserIntent, classify


def intent(event, **kwargs):
    return UserIntent(event, **kwargs)


def of_type(effects, effect_type):
    return [effect for effect in effects if isinstance(effect, effect_type)]


def displays(effects, level=None):
    return [effect.text for effect in of_type(effects, Display) if level is None or effect.level == level]


def preview(machine, payload, text="food words"):
    machine.handle_intent(intent(UserEvents.SUBMIT, text=text))
    return machine.handle_message(classify(payload))


@pytest.mark.unit
class TestGeneration:
    """Submit and preview transitions."""

    def test_submit_sends_request(self, machine):
        effects = machine.handle_intent(intent(UserEvents.SUBMIT, text="  fruit words "))

        assert machine.state == WorkflowState.GENERATING
        assert machine.processing
        assert Status("Generating content...") in effects
        request = of_type(effects, SendRequest)[0].request
        assert request.type == "vocabulary"
        assert request.content == "fruit words"
        assert request.edit is None

    def test_blank_or_busy_submit_is_ignored(self, machine):
        assert machine.handle_intent(intent(UserEvents.SUBMIT, text="   ")) == []

        machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))
        assert machine.handle_intent(intent(UserEvents.SUBMIT, text="colours")) == []

    def test_submit_without_category_awaits_type(self, correlator, teaching):
        machine = WorkflowStateMachine(correlator, teaching, default_category=None)

        effects = machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))

        assert machine.state == WorkflowState.AWAITING_TYPE
        assert displays(effects, DisplayLevel.VALIDATION) == ["Please choose a content type first."]
        assert not of_type(effects, SendRequest)

        machine.handle_intent(intent(UserEvents.SELECT_CATEGORY, category="quiz"))
        assert machine.state == WorkflowState.IDLE
        assert machine.category == ContentCategory.QUIZ

    def test_unconfirmed_settings_block_submit(self, correlator):
        machine = WorkflowStateMachine(correlator, settings_confirmed=False)

        effects = machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))

        assert effects == [RequestSettings()]
        assert machine.state == WorkflowState.IDLE

    def test_preview_replaces_slide_list(self, machine, vocabulary_payload):
        effects = preview(machine, vocabulary_payload)

        assert machine.state == WorkflowState.PREVIEWING
        assert not machine.processing
        assert len(machine.slides) == 3
        assert machine.cursor == 0
        assert machine.preview_title == "Food"
        assert Render() in effects

    def test_progress_only_updates_label(self, machine):
        machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))

        effects = machine.handle_message(classify({"type": "progress", "stage": "Drafting slides"}))

        assert effects == [Status("Drafting slides")]
        assert machine.state == WorkflowState.GENERATING
        assert machine.processing

    def test_empty_result_is_an_error(self, machine):
        machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))

        effects = machine.handle_message(classify({"slides": []}))

        assert machine.state == WorkflowState.ERROR
        assert not machine.processing
        assert displays(effects, DisplayLevel.ERROR) == [
            "No vocabulary content generated. Please try a different request."
        ]

    def test_title_only_result_is_previewed(self, machine):
        preview(machine, {"title": "Food", "words": []})

        assert machine.state == WorkflowState.PREVIEWING
        assert machine.slides[0].kind == SlideKind.TITLE

    def test_requirements_not_met_clears_busy(self, machine):
        machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))

        effects = machine.handle_message(classify({"requirements-not-met": "Which level?"}))

        assert not machine.processing
        assert machine.state == WorkflowState.IDLE
        assert displays(effects, DisplayLevel.INFO) == ["Which level?"]

    def test_unknown_message_clears_busy(self, machine):
        machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))
        machine.handle_message(classify({"foo": "bar"}))

        assert not machine.processing
        assert machine.state == WorkflowState.IDLE

    def test_five_words_preview_six_slides(self, machine):
        words = [{"word": word, "translation": word.upper()} for word in ("one", "two", "three", "four", "five")]

        preview(machine, {"title": "Numbers", "words": words}, "numbers")

        assert len(machine.slides) == 6
        assert machine.slides[0].kind == SlideKind.TITLE
        assert machine.state == WorkflowState.PREVIEWING
        assert machine.cursor == 0

    def test_missing_category_keeps_open_preview(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.SELECT_CATEGORY, category=None))

        effects = machine.handle_intent(intent(UserEvents.SUBMIT, text="colours"))

        assert displays(effects, DisplayLevel.VALIDATION) == ["Please choose a content type first."]
        assert machine.state == WorkflowState.PREVIEWING
        assert len(machine.slides) == 3

        machine.handle_intent(intent(UserEvents.SELECT_CATEGORY, category="vocabulary"))
        machine.handle_intent(intent(UserEvents.NEXT))

        assert machine.state == WorkflowState.PREVIEWING
        assert machine.cursor == 1

    def test_new_submit_dismisses_open_preview(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)

        effects = machine.handle_intent(intent(UserEvents.SUBMIT, text="colours"))

        assert displays(effects, DisplayLevel.NOTICE) == ["3 slides not inserted"]
        assert machine.slides == []
        assert machine.state == WorkflowState.GENERATING


@pytest.mark.unit
class TestReview:
    """Navigation, removal and insertion."""

    def test_navigation_and_insert_label(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)

        machine.handle_intent(intent(UserEvents.BACK))
        assert machine.cursor == 0

        machine.handle_intent(intent(UserEvents.NEXT))
        machine.handle_intent(intent(UserEvents.NEXT))
        assert machine.cursor == 2
        assert machine.view().next_label == "Insert 3"

        machine.handle_intent(intent(UserEvents.BACK))
        assert machine.view().next_label == "Next"

    def test_next_on_last_slide_inserts(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.NEXT))
        machine.handle_intent(intent(UserEvents.NEXT))

        effects = machine.handle_intent(intent(UserEvents.NEXT))

        insert = of_type(effects, InsertSlides)[0]
        assert [slide.title for slide in insert.slides] == ["Food", "apple", "bread"]
        assert machine.state == WorkflowState.INSERTING
        assert machine.slides == []
        assert Status("Inserting slides...") in effects

    def test_remove_reindexes_and_clamps(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.NEXT))
        machine.handle_intent(intent(UserEvents.NEXT))

        machine.handle_intent(intent(UserEvents.REMOVE))

        assert [slide.title for slide in machine.slides] == ["Food", "apple"]
        assert machine.cursor == 1

    def test_removing_last_slide_returns_to_idle(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)

        effects = []
        for _ in range(3):
            effects = machine.handle_intent(intent(UserEvents.REMOVE))

        assert machine.slides == []
        assert machine.state == WorkflowState.IDLE
        assert displays(effects, DisplayLevel.NOTICE) == ["All slides removed."]

    def test_insert_without_slides_never_reaches_collaborator(self, machine):
        effects = machine.handle_intent(intent(UserEvents.INSERT))

        assert machine.state == WorkflowState.ERROR
        assert displays(effects, DisplayLevel.ERROR) == ["No slides to insert."]
        assert not of_type(effects, InsertSlides)

    def test_insertion_outcomes(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.INSERT))

        effects = machine.insertion_finished(3)
        assert machine.state == WorkflowState.SUCCESS
        assert displays(effects, DisplayLevel.SUCCESS) == ["3 slides inserted successfully"]

        effects = machine.insertion_finished(1, "shape rejected")
        assert machine.state == WorkflowState.ERROR
        assert displays(effects, DisplayLevel.ERROR) == ["Failed to insert slides: shape rejected"]

    def test_success_message_finishes_insertion(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.INSERT))

        effects = machine.handle_message(classify({"type": "success", "message": "3 slides inserted"}))

        assert machine.state == WorkflowState.SUCCESS
        assert not machine.processing
        assert displays(effects, DisplayLevel.SUCCESS) == ["3 slides inserted"]

    def test_single_slide_message_is_singular(self, machine):
        assert displays(machine.insertion_finished(1)) == ["1 slide inserted successfully"]

    def test_terminal_states_fold_back_on_next_intent(self, machine):
        machine.insertion_finished(2)
        assert machine.state == WorkflowState.SUCCESS

        machine.handle_intent(intent(UserEvents.SELECT_CATEGORY, category="grammar"))
        assert machine.state == WorkflowState.IDLE

    def test_cursor_stays_in_range(self, machine, quiz_payload):
        machine.category = ContentCategory.QUIZ
        preview(machine, quiz_payload, "past simple quiz")

        sequence = [
            UserEvents.NEXT, UserEvents.EDIT, UserEvents.NEXT, UserEvents.REMOVE,
            UserEvents.BACK, UserEvents.BACK, UserEvents.BACK,
            UserEvents.EXIT_EDIT, UserEvents.NEXT, UserEvents.REMOVE, UserEvents.EDIT,
        ]
        for event in sequence:
            machine.handle_intent(intent(event))
            if machine.slides:
                assert 0 <= machine.cursor < len(machine.slides)
            if machine.edit_target is not None:
                assert machine.edit_target == machine.cursor

        assert len(machine.slides) == 1
        assert machine.edit_target == 0


@pytest.mark.unit
class TestEditing:
    """Edit mode and single-slide replacement."""

    def test_edit_round_trip(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.NEXT))
        machine.handle_intent(intent(UserEvents.EDIT))
        assert machine.state == WorkflowState.EDITING
        assert machine.edit_target == 1

        effects = machine.handle_intent(intent(UserEvents.SUBMIT, text="use a pear instead"))

        request = of_type(effects, SendRequest)[0].request
        assert request.type == "edit"
        assert request.edit.slide_index == 1
        assert request.edit.current_slide["title"] == "apple"
        assert request.edit.original_request == "food words"
        assert Status("Updating slide...") in effects
        assert machine.edit_target == 1

        effects = machine.handle_message(
            classify({"type": "edit", "edit": {"slideIndex": 1, "slide": {"word": "pear", "translation": "pera"}}})
        )

        assert machine.slides[1].title == "pear"
        assert machine.slides[0].title == "Food"
        assert machine.state == WorkflowState.EDITING
        assert machine.cursor == 1
        assert displays(effects, DisplayLevel.INFO) == ["Slide updated."]

        machine.handle_intent(intent(UserEvents.EXIT_EDIT))
        assert machine.state == WorkflowState.PREVIEWING
        assert machine.edit_target is None

    def test_edit_target_follows_navigation(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.EDIT))

        machine.handle_intent(intent(UserEvents.NEXT))

        assert machine.edit_target == 1

    def test_invalid_edit_reply_keeps_slides(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.EDIT))
        machine.handle_intent(intent(UserEvents.SUBMIT, text="shorter"))

        effects = machine.handle_message(classify({"type": "edit", "edit": {"slideIndex": 9, "slide": {}}}))

        assert displays(effects, DisplayLevel.ERROR) == ["Failed to apply edit. Please try again."]
        assert len(machine.slides) == 3
        assert machine.state == WorkflowState.EDITING
        assert not machine.processing


@pytest.mark.unit
class TestCancellation:
    def test_cancel_generation_marks_reply_stale(self, machine, correlator, vocabulary_payload):
        machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))

        effects = machine.handle_intent(intent(UserEvents.CANCEL))

        assert machine.state == WorkflowState.IDLE
        assert not machine.processing
        assert correlator.stale_count == 1
        assert displays(effects) == ["Generation cancelled."]
        assert not correlator.admit(classify(vocabulary_payload))

    def test_progress_still_shown_after_cancel(self, machine, correlator):
        machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))
        effects = machine.handle_intent(intent(UserEvents.CANCEL))
        assert of_type(effects, CancelGeneration)

        message = classify({"type": "progress", "stage": "Finishing"})
        assert correlator.admit(message)
        effects = machine.handle_message(message)

        assert effects == [Status("Finishing")]
        assert machine.state == WorkflowState.IDLE
        assert not machine.processing

    def test_cancel_edit_stays_in_edit_mode(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.EDIT))
        machine.handle_intent(intent(UserEvents.SUBMIT, text="shorter"))

        machine.handle_intent(intent(UserEvents.CANCEL))

        assert machine.state == WorkflowState.EDITING
        assert len(machine.slides) == 3

    def test_cancel_preview(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)

        effects = machine.handle_intent(intent(UserEvents.CANCEL))

        assert machine.state == WorkflowState.IDLE
        assert machine.slides == []
        assert displays(effects) == ["Preview cancelled."]

    def test_new_conversation_resets_everything(self, machine, correlator, vocabulary_payload):
        preview(machine, vocabulary_payload)
        machine.handle_intent(intent(UserEvents.SELECT_CATEGORY, category="quiz"))

        machine.handle_intent(intent(UserEvents.NEW_CONVERSATION))

        assert machine.slides == []
        assert machine.category == ContentCategory.VOCABULARY
        assert correlator.current_session() is None
        assert machine.history == []


@pytest.mark.unit
class TestConnectionOutcomes:
    def test_connection_lost_while_generating(self, machine):
        machine.handle_intent(intent(UserEvents.SUBMIT, text="fruit"))

        effects = machine.connection_lost(3)

        assert machine.state == WorkflowState.ERROR
        assert not machine.processing
        assert displays(effects, DisplayLevel.ERROR) == ["Connection lost after 3 reconnect attempts."]

    def test_transport_unavailable_keeps_preview(self, machine, vocabulary_payload):
        preview(machine, vocabulary_payload)

        effects = machine.transport_unavailable()

        assert machine.state == WorkflowState.PREVIEWING
        assert len(machine.slides) == 3
        assert displays(effects) == ["Not connected to server. Make sure the backend is running."]

    def test_save_settings(self, machine):
        effects = machine.handle_intent(
            intent(UserEvents.SAVE_SETTINGS, data={"language": "Spanish", "level": "A2", "nativeLanguage": "Yes"})
        )

        persisted = of_type(effects, PersistSettings)[0].teaching
        assert persisted.language == "Spanish"
        assert machine.teaching.native_language == "Yes"
        assert machine.settings_confirmed
