"""Insertion of slide records into a presentation.

The presentation itself is an external collaborator reached through four
awaited primitives. :func:`insert_slides` drives them in a fixed order with a
fixed layout, one slide at a time; a failure stops the sequence and leaves
the slides already created in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol, Union

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.text import PP_ALIGN
from pptx.util import Pt

from .exceptions import InsertionFailure
from .logger import logger
from .schema import SlideRecord

BLANK_LAYOUT_INDEX = 6

TITLE_COLOR = "#d13438"
SUBTITLE_COLOR = "#605e5c"
BODY_COLOR = "#323130"
EXAMPLE_COLOR = "#605e5c"


@dataclass(frozen=True)
class Box:
    """Text region geometry in points."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class TextStyle:
    size: int
    color: str
    bold: bool = False
    italic: bool = False
    centered: bool = False


@dataclass(frozen=True)
class RegionSpec:
    text: str
    box: Box
    style: TextStyle


def layout_regions(slide: SlideRecord) -> list[RegionSpec]:
    """Text regions for one record, in insertion order.

    Title slides get a large centered title and optional subtitle only; body
    and example regions are added for every other kind when non-empty.
    """
    is_title = slide.is_title
    regions = [
        RegionSpec(
            slide.title or "",
            Box(50, 180 if is_title else 40, 620, 80 if is_title else 60),
            TextStyle(44 if is_title else 32, TITLE_COLOR, bold=True, centered=is_title),
        )
    ]
    if slide.subtitle:
        regions.append(
            RegionSpec(
                slide.subtitle,
                Box(50, 270 if is_title else 100, 620, 40),
                TextStyle(24 if is_title else 20, SUBTITLE_COLOR, centered=is_title),
            )
        )
    if is_title:
        return regions

    if slide.body:
        regions.append(RegionSpec(slide.body, Box(50, 160, 620, 100), TextStyle(18, BODY_COLOR)))
    if slide.example:
        regions.append(
            RegionSpec(slide.example, Box(50, 280, 620, 60), TextStyle(16, EXAMPLE_COLOR, italic=True))
        )
    return regions


class PresentationCollaborator(Protocol):
    """Async primitives of a host presentation."""

    async def create_blank_container(self) -> Any:
        ...

    async def clear_default_contents(self, handle: Any) -> None:
        ...

    async def add_text_region(self, handle: Any, text: str, box: Box) -> Any:
        ...

    async def style_text(self, region: Any, style: TextStyle) -> None:
        ...


ProgressCallback = Callable[[int, int], None]


async def insert_slides(
    collaborator: PresentationCollaborator,
    slides: Iterable[SlideRecord],
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """Insert each record in order; every step completes before the next starts.

    Args:
        collaborator: Presentation primitives
        slides: Records to insert
        on_progress: Called with ``(index, total)`` (1-based) before each slide

    Returns:
        Number of slides inserted

    Raises:
        InsertionFailure: on the first failing step, carrying the count already inserted
    """
    records = list(slides)
    total = len(records)
    inserted = 0

    for index, slide in enumerate(records, start=1):
        if on_progress:
            on_progress(index, total)
        try:
            handle = await collaborator.create_blank_container()
            await collaborator.clear_default_contents(handle)
            for region in layout_regions(slide):
                shape = await collaborator.add_text_region(handle, region.text, region.box)
                await collaborator.style_text(shape, region.style)
        except Exception as e:
            logger.error(f"Slide {index} of {total} failed to insert: {e}")
            raise InsertionFailure(str(e) or type(e).__name__, inserted, e) from e
        inserted += 1

    logger.info("Inserted %s slide(s)", inserted)
    return inserted


def _rgb(color: str) -> RGBColor:
    return RGBColor.from_string(color.lstrip("#").upper())


class PptxCollaborator:
    """Collaborator backed by a python-pptx ``Presentation`` saved to disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.presentation = Presentation(str(self.path)) if self.path.exists() else Presentation()

    async def create_blank_container(self) -> Any:
        layouts = self.presentation.slide_layouts
        layout = layouts[BLANK_LAYOUT_INDEX] if len(layouts) > BLANK_LAYOUT_INDEX else layouts[-1]
        return self.presentation.slides.add_slide(layout)

    async def clear_default_contents(self, handle: Any) -> None:
        for shape in list(handle.shapes):
            element = shape._element
            element.getparent().remove(element)

    async def add_text_region(self, handle: Any, text: str, box: Box) -> Any:
        shape = handle.shapes.add_textbox(Pt(box.left), Pt(box.top), Pt(box.width), Pt(box.height))
        text_frame = shape.text_frame
        text_frame.word_wrap = True
        lines = text.split("\n")
        text_frame.paragraphs[0].text = lines[0]
        for line in lines[1:]:
            text_frame.add_paragraph().text = line
        return shape

    async def style_text(self, region: Any, style: TextStyle) -> None:
        for paragraph in region.text_frame.paragraphs:
            if style.centered:
                paragraph.alignment = PP_ALIGN.CENTER
            font = paragraph.font
            font.size = Pt(style.size)
            font.bold = style.bold
            font.italic = style.italic
            font.color.rgb = _rgb(style.color)

    def save(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.presentation.save(str(self.path))
        logger.info("Saved presentation to %s", self.path)
        return self.path


@dataclass
class RecordedSlide:
    cleared: bool = False
    regions: list[dict[str, Any]] = field(default_factory=list)


class RecordingCollaborator:
    """In-memory collaborator that logs every primitive call.

    ``fail_on`` names a primitive and ``fail_at`` the 1-based slide on which
    it raises, to exercise partial insertion.
    """

    def __init__(self, fail_on: Optional[str] = None, fail_at: int = 1):
        self.calls: list[tuple[str, Any]] = []
        self.slides: list[RecordedSlide] = []
        self.fail_on = fail_on
        self.fail_at = fail_at

    def _maybe_fail(self, primitive: str) -> None:
        if self.fail_on == primitive and len(self.slides) >= self.fail_at:
            raise RuntimeError(f"{primitive} rejected")

    async def create_blank_container(self) -> RecordedSlide:
        self.calls.append(("create_blank_container", None))
        slide = RecordedSlide()
        self.slides.append(slide)
        self._maybe_fail("create_blank_container")
        return slide

    async def clear_default_contents(self, handle: RecordedSlide) -> None:
        self.calls.append(("clear_default_contents", None))
        self._maybe_fail("clear_default_contents")
        handle.cleared = True

    async def add_text_region(self, handle: RecordedSlide, text: str, box: Box) -> dict[str, Any]:
        self.calls.append(("add_text_region", text))
        self._maybe_fail("add_text_region")
        region = {"text": text, "box": box, "style": None}
        handle.regions.append(region)
        return region

    async def style_text(self, region: dict[str, Any], style: TextStyle) -> None:
        self.calls.append(("style_text", style))
        self._maybe_fail("style_text")
        region["style"] = style
