"""Unit tests for protocol messages."""

import json

import pytest

from lessondeck.exceptions import MalformedPayload
from lessondeck.ws.events import EditDirective, InboundKind, OutboundRequest, classify, parse_inbound


@pytest.mark.unit
class TestClassify:
    """Inbound priority order."""

    def test_requirements_not_met_wins(self):
        message = classify({"requirements-not-met": "Please give a level.", "type": "progress"})
        assert message.kind == InboundKind.REQUIREMENTS_NOT_MET
        assert message.text == "Please give a level."

    def test_progress_uses_stage_then_message(self):
        assert classify({"type": "progress", "stage": "Drafting"}).text == "Drafting"
        assert classify({"type": "progress", "message": "Working"}).text == "Working"
        assert classify({"type": "progress"}).is_progress

    def test_edit_requires_edit_object(self):
        assert classify({"type": "edit", "edit": {"slideIndex": 0, "slide": {}}}).kind == InboundKind.EDIT
        assert classify({"type": "edit", "message": "hm"}).kind == InboundKind.INFO

    def test_content_array_beats_error(self):
        assert classify({"words": [], "error": "partial"}).kind == InboundKind.PREVIEW

    def test_error_message_and_unknown(self):
        assert classify({"error": "boom"}).kind == InboundKind.ERROR
        assert classify({"message": "hello"}).kind == InboundKind.INFO
        assert classify({"foo": "bar"}).kind == InboundKind.UNKNOWN

    def test_success_message(self):
        message = classify({"type": "success", "message": "Done!"})
        assert message.kind == InboundKind.SUCCESS
        assert message.text == "Done!"
        assert classify({"type": "success"}).kind == InboundKind.UNKNOWN

    def test_parse_inbound_rejects_non_objects(self):
        with pytest.raises(MalformedPayload):
            parse_inbound("{not json")
        with pytest.raises(MalformedPayload):
            parse_inbound("[1, 2]")

    def test_parse_inbound_accepts_bytes(self):
        assert parse_inbound(b'{"error": "x"}').kind == InboundKind.ERROR


@pytest.mark.unit
class TestOutboundRequest:
    """Wire format of client requests."""

    def test_generation_request_has_no_edit_key(self):
        request = OutboundRequest(
            user_id="user-123",
            channel_name="powerpoint-taskpane",
            conversation_id="conv-1",
            type="vocabulary",
            content="fruit",
            requirements={"level": "B1"},
        )

        wire = json.loads(request.to_json())

        assert wire == {
            "user-id": "user-123",
            "channel-name": "powerpoint-taskpane",
            "conversation-id": "conv-1",
            "type": "vocabulary",
            "content": "fruit",
            "requirements": {"level": "B1"},
        }

    def test_edit_request_uses_camel_case_anchor(self):
        request = OutboundRequest(
            user_id="u",
            channel_name="c",
            conversation_id="conv-1",
            type="edit",
            content="simpler",
            edit=EditDirective(
                slide_index=2,
                current_slide={"type": "Quiz", "title": "Question 2"},
                original_request="past simple quiz",
                original_type="quiz",
            ),
        )

        edit = request.to_wire()["edit"]

        assert edit == {
            "slideIndex": 2,
            "currentSlide": {"type": "Quiz", "title": "Question 2"},
            "originalRequest": "past simple quiz",
            "originalType": "quiz",
        }
