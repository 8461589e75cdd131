"""Reading-order line grouping."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping, Sequence

from .columns import reading_segments
from .constants import (
    LARGE_Y_JUMP,
    LINE_BACKTRACK_LIMIT,
    LINE_START_X_TOLERANCE,
    LINE_Y_TOLERANCE,
    PAGE_NUMBER_PATTERN,
)
from .types import TextItem, TextLine

__all__ = [
    "drop_page_numbers",
    "group_into_lines",
    "group_page_lines",
    "group_by_position",
    "group_by_stream",
    "is_page_number_item",
    "stream_order_reliable",
]


def is_page_number_item(item: TextItem) -> bool:
    return bool(PAGE_NUMBER_PATTERN.match(item.text.strip())) and (item.y > 800 or item.y < 100)


def drop_page_numbers(items: Iterable[TextItem]) -> list[TextItem]:
    return [item for item in items if not is_page_number_item(item)]


def stream_order_reliable(items: Sequence[TextItem]) -> bool:
    """Return ``False`` when the stream jumps up and down the page too often.

    Generators that paint text in arbitrary order produce many large Y
    deltas between consecutive items, a good share of them upward.
    """

    jumps = 0
    upward = 0
    for previous, current in zip(items, items[1:]):
        delta = current.y - previous.y
        if abs(delta) > LARGE_Y_JUMP:
            jumps += 1
            if delta > 0:
                upward += 1
    return not (jumps >= 3 and upward / jumps > 0.4)


def group_by_stream(items: Sequence[TextItem]) -> list[TextLine]:
    lines: list[TextLine] = []
    current: list[TextItem] = []
    line_y = 0.0
    for item in items:
        if current:
            same_band = abs(item.y - line_y) <= LINE_Y_TOLERANCE
            restarts = abs(item.x - current[0].x) <= LINE_START_X_TOLERANCE
            backtracks = item.x < current[-1].x - LINE_BACKTRACK_LIMIT
            if same_band and not restarts and not backtracks:
                current.append(item)
                continue
            lines.append(TextLine(items=current, y=line_y, page=current[0].page))
        current = [item]
        line_y = item.y
    if current:
        lines.append(TextLine(items=current, y=line_y, page=current[0].page))
    return lines


def group_by_position(items: Sequence[TextItem]) -> list[TextLine]:
    ordered = sorted(items, key=lambda item: (-item.y, item.x))
    lines: list[TextLine] = []
    current: list[TextItem] = []
    line_y = 0.0
    for item in ordered:
        if current and abs(item.y - line_y) <= LINE_Y_TOLERANCE:
            current.append(item)
            continue
        if current:
            lines.append(TextLine(items=current, y=line_y, page=current[0].page))
        current = [item]
        line_y = item.y
    if current:
        lines.append(TextLine(items=current, y=line_y, page=current[0].page))
    return lines


def group_page_lines(
    items: Sequence[TextItem],
    *,
    page_width: float | None = None,
    remove_page_numbers: bool = True,
) -> list[TextLine]:
    """Group one page's text items into reading-order lines."""

    if remove_page_numbers:
        items = drop_page_numbers(items)
    lines: list[TextLine] = []
    for segment in reading_segments(items, page_width):
        if stream_order_reliable(segment):
            lines.extend(group_by_stream(segment))
        else:
            lines.extend(group_by_position(segment))
    return lines


def group_into_lines(
    items: Iterable[TextItem],
    *,
    page_width: float | Mapping[int, float] | None = None,
    remove_page_numbers: bool = True,
) -> list[TextLine]:
    """Group text items (any number of pages) into lines in reading order.

    Image and link items are ignored.  ``page_width`` may be a single width
    or a mapping of page number to width.
    """

    by_page: dict[int, list[TextItem]] = defaultdict(list)
    for item in items:
        if item.is_text and item.text.strip():
            by_page[item.page].append(item)
    lines: list[TextLine] = []
    for page in sorted(by_page):
        if isinstance(page_width, Mapping):
            width = page_width.get(page)
        else:
            width = page_width
        lines.extend(group_page_lines(by_page[page], page_width=width, remove_page_numbers=remove_page_numbers))
    return lines
