"""Text utilities used throughout the converter."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Sequence

from .constants import (
    BOLD_PATTERNS,
    ITALIC_PATTERNS,
    JOIN_GAP_RATIO,
    LIGATURE_TRANSLATION,
    MONOSPACE_PATTERNS,
)

if TYPE_CHECKING:
    from .types import TextItem

__all__ = [
    "font_traits",
    "is_monospace_font",
    "is_sub_or_superscript",
    "join_line_items",
    "needs_space",
    "normalise_text_content",
    "strip_subset_prefix",
]

_SUBSET_PREFIX = re.compile(r"^[A-Z]{6}\+")
_NAME_SEPARATORS = str.maketrans("", "", " -_,")


def strip_subset_prefix(name: str) -> str:
    """Remove the ``ABCDEF+`` tag embedded subset fonts carry."""

    name = name.lstrip("/")
    return _SUBSET_PREFIX.sub("", name)


def font_traits(font_name: str | None) -> tuple[bool, bool]:
    """Infer ``(bold, italic)`` from a font name.

    Any name containing ``medium`` counts as bold unless it is a
    ``MediumItalic`` face; true Medium weights are therefore reported as bold.
    """

    if not font_name:
        return False, False
    lowered = strip_subset_prefix(font_name).lower()
    compact = lowered.translate(_NAME_SEPARATORS)
    bold = False
    for pattern in BOLD_PATTERNS:
        if pattern not in compact:
            continue
        if pattern == "medium" and "mediumitalic" in compact:
            continue
        bold = True
        break
    italic = any(pattern in compact for pattern in ITALIC_PATTERNS)
    if not italic:
        italic = lowered.endswith(("-it", ",it", "-ita", ",italic"))
    return bold, italic


def is_monospace_font(font_name: str | None) -> bool:
    if not font_name:
        return False
    compact = strip_subset_prefix(font_name).lower().translate(_NAME_SEPARATORS)
    return any(pattern in compact for pattern in MONOSPACE_PATTERNS)


def normalise_text_content(text: str, *, strip: bool) -> str:
    cleaned = text.replace("\u00ad", "")
    cleaned = cleaned.translate(LIGATURE_TRANSLATION)
    if strip:
        cleaned = cleaned.strip()
    return cleaned


def is_sub_or_superscript(item: "TextItem", reference: "TextItem") -> bool:
    """Return ``True`` when ``item`` is set smaller and off the baseline of ``reference``."""

    if reference.font_size <= 0:
        return False
    ratio = item.font_size / reference.font_size
    return ratio < 0.85 and abs(item.y - reference.y) > 1.0


def needs_space(previous: "TextItem", current: "TextItem", joined: str, text: str) -> bool:
    if joined.endswith(("-", " ")) or text == "-" or text.startswith("-"):
        return False
    if is_sub_or_superscript(current, previous) or is_sub_or_superscript(previous, current):
        return False
    if previous.width > 0 and current.width > 0:
        gap = current.x - (previous.x + previous.width)
        size = max(previous.font_size, current.font_size, 1.0)
        if gap < JOIN_GAP_RATIO * size:
            return False
    return True


def join_line_items(items: Sequence["TextItem"]) -> str:
    """Join the visible text of ``items`` (already sorted by x).

    Adjacent items are separated by one space unless they abut closely enough
    to be glyph-level runs of the same word, a hyphen touches the join, or one
    side is a subscript or superscript.
    """

    joined = ""
    previous: "TextItem | None" = None
    for item in items:
        text = item.text.strip()
        if not text:
            continue
        if previous is None:
            joined = text
        elif needs_space(previous, item, joined, text):
            joined = f"{joined} {text}"
        else:
            joined += text
        previous = item
    return joined
