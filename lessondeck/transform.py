"""Content transformation layer.

Maps the payload shapes sent by the generation backend into one ordered list
of :class:`~lessondeck.schema.SlideRecord`. Every function here is pure and
total: missing or malformed fields fall back to empty strings and lists, and
a payload without its expected array yields an empty list rather than an
exception.

Supported shapes::

    vocabulary    {title, subtitle, words: [{word, translation, definition, example}]}
    grammar       {title, subtitle, slides: [{slide-title, content|{explanation, usage, examples}, examples}]}
    quiz          {title, subtitle, quiz-type, focus, questions: [{question, options} | {slide-questions: [...]}]}
    homework      {title, subtitle, homework-type, focus, tasks: [{title, instruction, items}]}
    conversation  {title, subtitle, slides: [{slide-title, content}]}
    generic       [{type, title, subtitle, content|body, example|example-sentence}]
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Iterable

from .schema import ContentCategory, SlideKind, SlideRecord


class PayloadShape(str, Enum):
    """Which transform produced a preview; edits are routed back through it."""

    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    QUIZ = "quiz"
    HOMEWORK = "homework"
    CONVERSATION = "conversation"
    GENERIC = "generic"


CATEGORY_SHAPES = {
    ContentCategory.VOCABULARY: PayloadShape.VOCABULARY,
    ContentCategory.GRAMMAR: PayloadShape.GRAMMAR,
    ContentCategory.QUIZ: PayloadShape.QUIZ,
    ContentCategory.HOMEWORK: PayloadShape.HOMEWORK,
}

CONTENT_ARRAY_FIELDS = ("slides", "words", "questions", "tasks", "data")


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _first(data: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = _text(data.get(key))
        if value:
            return value
    return ""


def _items(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _dicts(value: Any) -> list[dict[str, Any]]:
    return [item for item in _items(value) if isinstance(item, dict)]


def _flatten(value: Any) -> str:
    """Render string or list-of-strings content as text."""
    if isinstance(value, list):
        return "\n".join(line for line in (_flatten(v) for v in value) if line)
    return _text(value)


def _letter(index: int) -> str:
    return chr(ord("A") + index)


def _title_slide(payload: dict[str, Any], default_title: str, body: str = "") -> SlideRecord:
    return SlideRecord(
        kind=SlideKind.TITLE,
        title=_text(payload.get("title")) or default_title,
        subtitle=_text(payload.get("subtitle")),
        body=body,
    )


# ==================== Single-item transforms ====================


def vocabulary_slide(word: dict[str, Any]) -> SlideRecord:
    return SlideRecord(
        kind=SlideKind.VOCABULARY,
        title=_first(word, "word", "title"),
        subtitle=_first(word, "translation", "subtitle"),
        body=_first(word, "definition", "content"),
        example=_first(word, "example", "example-sentence"),
    )


def grammar_slide(section: dict[str, Any]) -> SlideRecord:
    """Build a grammar slide from one rule section.

    The body is the explanation paragraph followed by a bulleted usage list
    when one is present. Examples become ``sentence → translation`` lines.
    """
    content = section.get("content")
    nested = content if isinstance(content, dict) else {}

    explanation = _text(content) if isinstance(content, str) else _text(nested.get("explanation"))
    usage = _items(section.get("usage")) or _items(nested.get("usage"))
    bullets = [f"• {_text(use)}" for use in usage if _text(use)]

    body = explanation.strip()
    if bullets:
        body = f"{body}\n\n" + "\n".join(bullets) if body else "\n".join(bullets)

    examples = _items(section.get("examples")) or _items(nested.get("examples"))
    lines = []
    for example in examples:
        if not isinstance(example, dict):
            continue
        sentence = _text(example.get("sentence"))
        if not sentence:
            continue
        translation = _text(example.get("translation"))
        lines.append(f"{sentence} → {translation}" if translation else sentence)

    return SlideRecord(
        kind=SlideKind.GRAMMAR,
        title=_first(section, "slide-title", "slideTitle", "title") or "Grammar Rule",
        body=body.strip(),
        example="\n".join(lines).strip(),
    )


def quiz_slide(question: dict[str, Any], title: str = "Question") -> SlideRecord:
    """Build a quiz slide from one question or one group of questions."""
    grouped = question.get("slide-questions") or question.get("slideQuestions")
    if isinstance(grouped, list):
        blocks = []
        for number, item in enumerate(_dicts(grouped), start=1):
            lines = [f"{number}. {_text(item.get('question'))}"]
            for index, option in enumerate(_items(item.get("options"))):
                lines.append(f"   {_letter(index)}. {_text(option)}")
            blocks.append("\n".join(lines))
        body = "\n\n".join(blocks)
    else:
        lines = [_text(question.get("question")), ""]
        for index, option in enumerate(_items(question.get("options"))):
            lines.append(f"{_letter(index)}. {_text(option)}")
        body = "\n".join(lines)

    return SlideRecord(
        kind=SlideKind.QUIZ,
        title=_text(question.get("title")) or title,
        body=body.strip(),
    )


def homework_slide(task: dict[str, Any], title: str = "Task") -> SlideRecord:
    instruction = _text(task.get("instruction"))
    lines = [f"{number}. {_text(item)}" for number, item in enumerate(_items(task.get("items")), start=1)]

    body = instruction
    if lines:
        body = f"{instruction}\n\n" + "\n".join(lines) if instruction else "\n".join(lines)

    return SlideRecord(
        kind=SlideKind.HOMEWORK,
        title=_text(task.get("title")) or title,
        subtitle=instruction,
        body=body.strip(),
    )


def conversation_slide(slide: dict[str, Any], title: str = "") -> SlideRecord:
    return SlideRecord(
        kind=SlideKind.CONTENT,
        title=_first(slide, "slide-title", "title") or title,
        subtitle=_text(slide.get("subtitle")),
        body=_flatten(slide.get("content")),
        example=_text(slide.get("example")),
    )


def generic_slide(slide: dict[str, Any]) -> SlideRecord:
    return SlideRecord(
        kind=SlideKind.parse(slide.get("type")),
        title=_text(slide.get("title")),
        subtitle=_text(slide.get("subtitle")),
        body=_first(slide, "content", "body"),
        example=_first(slide, "example", "example-sentence"),
    )


# ==================== Multi-slide transforms ====================


def transform_vocabulary(payload: dict[str, Any]) -> list[SlideRecord]:
    slides = [_title_slide(payload, "Vocabulary")]
    slides.extend(vocabulary_slide(word) for word in _dicts(payload.get("words")))
    return slides


def transform_grammar(payload: dict[str, Any]) -> list[SlideRecord]:
    slides = [_title_slide(payload, "Grammar")]
    slides.extend(grammar_slide(section) for section in _dicts(payload.get("slides")))
    return slides


def transform_quiz(payload: dict[str, Any]) -> list[SlideRecord]:
    """One title slide with quiz metadata, then one slide per question or group.

    Grouped questions are numbered continuously across groups, so a group's
    title shows the range it covers (``Questions 3–5``).
    """
    metadata = "Type: {} | Focus: {}".format(
        _text(payload.get("quiz-type")) or "Multiple Choice",
        _text(payload.get("focus")) or "General",
    )
    slides = [_title_slide(payload, "Quiz", metadata)]

    number = 0
    for question in _dicts(payload.get("questions")):
        grouped = question.get("slide-questions") or question.get("slideQuestions")
        if isinstance(grouped, list):
            first = number + 1
            number += len(_dicts(grouped))
            slides.append(quiz_slide(question, f"Questions {first}–{number}"))
        elif _text(question.get("question")):
            number += 1
            slides.append(quiz_slide(question, f"Question {number}"))
    return slides


def transform_homework(payload: dict[str, Any]) -> list[SlideRecord]:
    metadata = "Type: {} | Focus: {}".format(
        _text(payload.get("homework-type")) or "Exercise",
        _text(payload.get("focus")) or "General",
    )
    slides = [_title_slide(payload, "Homework", metadata)]
    slides.extend(
        homework_slide(task, f"Task {number}")
        for number, task in enumerate(_dicts(payload.get("tasks")), start=1)
    )
    return slides


def transform_conversation(payload: dict[str, Any]) -> list[SlideRecord]:
    """Unified ``{title, subtitle, slides: [{slide-title, content}]}`` schema."""
    slides = []
    if _text(payload.get("title")):
        slides.append(_title_slide(payload, ""))
    slides.extend(conversation_slide(slide) for slide in _dicts(payload.get("slides")))
    return slides


def transform_generic(items: Any) -> list[SlideRecord]:
    """Legacy fallback: loosely-typed slide objects, field for field."""
    return [generic_slide(item) for item in _dicts(items)]


_TRANSFORMS = {
    PayloadShape.VOCABULARY: transform_vocabulary,
    PayloadShape.GRAMMAR: transform_grammar,
    PayloadShape.QUIZ: transform_quiz,
    PayloadShape.HOMEWORK: transform_homework,
    PayloadShape.CONVERSATION: transform_conversation,
}


def _looks_like_grammar(payload: dict[str, Any]) -> bool:
    for section in _dicts(payload.get("slides")):
        if "examples" in section or isinstance(section.get("content"), dict):
            return True
    return False


def detect_shape(
    payload: dict[str, Any], category: ContentCategory | None = None
) -> PayloadShape | None:
    """Decide which transform applies to an inbound payload.

    An explicit category ``type`` wins; otherwise the array field present
    decides. ``None`` means the payload carries no slide content at all.
    """
    if not isinstance(payload, dict):
        return None

    declared = ContentCategory.parse(payload.get("type"))
    if declared is not None:
        return CATEGORY_SHAPES[declared]

    if "words" in payload:
        return PayloadShape.VOCABULARY
    if "questions" in payload:
        return PayloadShape.QUIZ
    if "tasks" in payload:
        return PayloadShape.HOMEWORK
    if "slides" in payload:
        if category == ContentCategory.GRAMMAR and _looks_like_grammar(payload):
            return PayloadShape.GRAMMAR
        return PayloadShape.CONVERSATION
    if "data" in payload:
        return PayloadShape.GENERIC
    return None


def transform_payload(
    payload: dict[str, Any], category: ContentCategory | None = None
) -> tuple[list[SlideRecord], PayloadShape | None]:
    """Transform a full preview payload.

    Returns:
        Tuple of (slides, shape). ``slides`` is empty when nothing usable was
        produced; callers treat that as "no content", not as an error.
    """
    shape = detect_shape(payload, category)
    if shape is None:
        return [], None
    if shape == PayloadShape.GENERIC:
        return transform_generic(payload.get("data")), shape
    return _TRANSFORMS[shape](payload), shape


def transform_edited_slide(
    slide: Any,
    shape: PayloadShape | None,
    existing: SlideRecord | None = None,
) -> SlideRecord | None:
    """Transform the single slide of an edit reply.

    Uses the same single-item transform that produced the preview, so an
    edited slide has exactly the shape of a freshly generated one. Quiz,
    homework and conversation slides keep the existing title when the reply
    does not echo one (``Question 3`` stays ``Question 3``).
    """
    if not isinstance(slide, dict):
        return None

    kept_title = existing.title if existing is not None else ""
    if existing is not None and existing.is_title:
        return _title_slide(slide, kept_title, _flatten(slide.get("content")) or existing.body)
    if shape == PayloadShape.VOCABULARY:
        return vocabulary_slide(slide)
    if shape == PayloadShape.GRAMMAR:
        return grammar_slide(slide)
    if shape == PayloadShape.QUIZ:
        return quiz_slide(slide, kept_title or "Question")
    if shape == PayloadShape.HOMEWORK:
        return homework_slide(slide, kept_title or "Task")
    if shape == PayloadShape.CONVERSATION:
        return conversation_slide(slide, kept_title)
    return generic_slide(slide)


def title_sequence(slides: Iterable[SlideRecord]) -> str:
    """Serialised title sequence, used to recognise a repeated preview."""
    return json.dumps([slide.title for slide in slides], ensure_ascii=False)


def empty_result_message(category: ContentCategory | str | None) -> str:
    parsed = ContentCategory.parse(category) if category else None
    if parsed is None:
        return "No slides generated. Please try a different request."
    return f"No {parsed.value} content generated. Please try a different request."
