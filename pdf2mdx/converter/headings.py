"""Body-size estimation and heading tier discovery."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from .constants import (
    DROP_CAP_MAX_CHARS,
    DROP_CAP_MIN_RATIO,
    HEADING_CLUSTER_TOLERANCE,
    HEADING_MAX_TIERS,
    HEADING_MAX_WORDS,
    HEADING_MIN_CHARS,
    HEADING_MIN_RATIO,
)
from .types import TextItem, TextLine

__all__ = [
    "body_font_size",
    "discover_heading_tiers",
    "heading_level",
    "is_drop_cap",
    "is_heading_text",
]

DEFAULT_BODY_SIZE = 12.0


def body_font_size(items: Iterable[TextItem]) -> float:
    """Return the most common text size rounded to 0.1pt (12.0 without text).

    Ties go to the smaller size.
    """

    counts = Counter(round(item.font_size, 1) for item in items if item.is_text and item.font_size > 0)
    if not counts:
        return DEFAULT_BODY_SIZE
    size, _ = min(counts.items(), key=lambda entry: (-entry[1], entry[0]))
    return float(size)


def discover_heading_tiers(lines: Iterable[TextLine], body_size: float) -> list[float]:
    """Cluster large line sizes into at most four descending heading tiers."""

    if body_size <= 0:
        return []
    sizes = sorted(
        (
            line.font_size
            for line in lines
            if line.items
            and line.font_size / body_size >= HEADING_MIN_RATIO
            and not is_drop_cap(line, body_size)
            and is_heading_text(line.text())
        ),
        reverse=True,
    )
    tiers: list[list[float]] = []
    for size in sizes:
        if tiers and tiers[-1][0] - size <= HEADING_CLUSTER_TOLERANCE:
            tiers[-1].append(size)
        else:
            tiers.append([size])
    return [round(sum(tier) / len(tier), 2) for tier in tiers[:HEADING_MAX_TIERS]]


def heading_level(font_size: float, tiers: Sequence[float]) -> int | None:
    """Map ``font_size`` to a heading level (tier *i* is level *i + 1*)."""

    for index, tier in enumerate(tiers):
        if abs(font_size - tier) <= HEADING_CLUSTER_TOLERANCE:
            return index + 1
    return None


def is_heading_text(text: str) -> bool:
    text = text.strip()
    return len(text) >= HEADING_MIN_CHARS and len(text.split()) <= HEADING_MAX_WORDS


def is_drop_cap(line: TextLine, body_size: float) -> bool:
    text = line.text().strip()
    if not text or len(text) > DROP_CAP_MAX_CHARS:
        return False
    return line.font_size >= body_size * DROP_CAP_MIN_RATIO and text[0].isupper()
