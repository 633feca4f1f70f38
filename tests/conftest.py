"""Pytest configuration and shared fixtures."""

import itertools
import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from lessondeck.schema import ContentCategory, TeachingSettings
from lessondeck.workflow.machine import WorkflowStateMachine
from lessondeck.ws.session import SessionCorrelator


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def correlator() -> SessionCorrelator:
    """Correlator with predictable conversation ids (conv-1, conv-2, ...)."""
    counter = itertools.count(1)
    return SessionCorrelator(
        user_id="user-123",
        channel_name="powerpoint-taskpane",
        id_factory=lambda: f"conv-{next(counter)}",
    )


@pytest.fixture
def teaching() -> TeachingSettings:
    return TeachingSettings(language="English", level="B1", native_language="No", age_group="Adults")


@pytest.fixture
def machine(correlator: SessionCorrelator, teaching: TeachingSettings) -> WorkflowStateMachine:
    return WorkflowStateMachine(
        correlator,
        teaching,
        settings_confirmed=True,
        default_category=ContentCategory.VOCABULARY,
    )


@pytest.fixture
def vocabulary_payload() -> dict[str, Any]:
    return {
        "title": "Food",
        "subtitle": "A1 words",
        "words": [
            {"word": "apple", "translation": "manzana", "definition": "A round fruit", "example": "I eat an apple."},
            {"word": "bread", "translation": "pan", "definition": "Baked dough", "example": "Fresh bread."},
        ],
    }


@pytest.fixture
def quiz_payload() -> dict[str, Any]:
    return {
        "title": "Past Simple Check",
        "quiz-type": "Multiple Choice",
        "focus": "Irregular verbs",
        "questions": [
            {"question": "Yesterday I ___ to school.", "options": ["go", "went", "gone"]},
            {
                "slide-questions": [
                    {"question": "She ___ a cake.", "options": ["made", "make"]},
                    {"question": "They ___ home.", "options": ["came", "come"]},
                ]
            },
        ],
    }
