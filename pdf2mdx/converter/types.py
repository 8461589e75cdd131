"""Shared type definitions for the Markdown converter."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Sequence

__all__ = [
    "ConversionOptions",
    "ConversionResult",
    "ItemKind",
    "MarkdownOptions",
    "Table",
    "TextItem",
    "TextLine",
]


class ItemKind(str, Enum):
    """Kind of positioned item produced by the content-stream interpreter."""

    TEXT = "text"
    IMAGE = "image"
    LINK = "link"


@dataclass(frozen=True, slots=True)
class TextItem:
    """One shown run of text (or an image/link placeholder) in page space.

    ``x``/``y`` are the baseline anchor in PDF user space with the origin at
    the bottom-left corner of the page.  ``width`` is the measured advance
    after the text and graphics matrices were applied; it is ``0.0`` when no
    width information was available for the font.
    """

    text: str
    x: float
    y: float
    width: float
    font_size: float
    font: str = ""
    base_font: str = ""
    bold: bool = False
    italic: bool = False
    monospace: bool = False
    page: int = 1
    kind: ItemKind = ItemKind.TEXT
    url: str | None = None
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.effective_width

    @property
    def effective_width(self) -> float:
        if self.width > 0:
            return self.width
        return 0.5 * self.font_size * len(self.text)

    @property
    def is_text(self) -> bool:
        return self.kind is ItemKind.TEXT


@dataclass(slots=True)
class TextLine:
    """Items sharing a page and baseline band, ordered left to right."""

    items: list[TextItem]
    y: float
    page: int

    def __post_init__(self) -> None:
        self.items.sort(key=lambda item: item.x)

    def text(self) -> str:
        from .text import join_line_items

        return join_line_items(self.items)

    @property
    def x(self) -> float:
        return self.items[0].x if self.items else 0.0

    @property
    def right(self) -> float:
        return max((item.right for item in self.items), default=0.0)

    @property
    def font_size(self) -> float:
        return self.items[0].font_size if self.items else 0.0

    @property
    def font(self) -> str:
        if not self.items:
            return ""
        return self.items[0].base_font or self.items[0].font

    @property
    def is_bold(self) -> bool:
        return bool(self.items) and all(item.bold for item in self.items if item.text.strip())

    @property
    def is_monospace(self) -> bool:
        return bool(self.items) and all(item.monospace for item in self.items if item.text.strip())


@dataclass(slots=True)
class Table:
    """Grid of joined cell strings recovered from aligned text items."""

    columns: list[float]
    rows: list[float]
    cells: list[list[str]]
    item_indices: frozenset[int] = frozenset()
    page: int = 1
    footnotes: list[str] = field(default_factory=list)

    @property
    def top(self) -> float:
        return self.rows[0] if self.rows else 0.0


@dataclass(slots=True)
class MarkdownOptions:
    """Options controlling how reconstructed lines are rendered as Markdown."""

    detect_headers: bool = True
    detect_lists: bool = True
    detect_code: bool = True
    base_font_size: float | None = None
    remove_page_numbers: bool = True
    format_urls: bool = True
    fix_hyphenation: bool = True
    detect_bold: bool = True
    detect_italic: bool = True
    include_images: bool = True
    include_links: bool = True


@dataclass(slots=True)
class ConversionOptions:
    """Options controlling which pages are converted and how."""

    page_numbers: Sequence[int] | None = None
    markdown: MarkdownOptions = field(default_factory=MarkdownOptions)


@dataclass(slots=True)
class ConversionResult:
    """Information about the produced Markdown document."""

    markdown: str
    output_path: Path | None
    page_count: int
    item_count: int
    line_count: int
    table_count: int
    heading_count: int
    log: tuple[str, ...] = ()
    processing_time: float = 0.0
