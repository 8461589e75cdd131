"""Multi-column layout detection from a horizontal occupancy profile."""

from __future__ import annotations

from dataclasses import dataclass
from math import ceil
from typing import Sequence

from .constants import (
    COLUMN_BIN_WIDTH,
    COLUMN_EMPTY_RATIO,
    COLUMN_MARGIN_RATIO,
    COLUMN_MAX_GUTTERS,
    COLUMN_MIN_GUTTER,
    COLUMN_MIN_ITEMS,
    COLUMN_MIN_OVERLAP,
    LINE_Y_TOLERANCE,
)
from .types import TextItem

__all__ = [
    "Gutter",
    "column_index",
    "detect_columns",
    "find_gutters",
    "is_column_spanning",
    "reading_segments",
]


@dataclass(frozen=True, slots=True)
class Gutter:
    """An empty vertical band between two text columns."""

    start: float
    end: float

    @property
    def center(self) -> float:
        return (self.start + self.end) / 2.0

    @property
    def width(self) -> float:
        return self.end - self.start


def _page_extent(items: Sequence[TextItem], page_width: float | None) -> float:
    right = max((item.right for item in items), default=0.0)
    if page_width and page_width > 0:
        return max(page_width, right)
    return right


def _occupancy(items: Sequence[TextItem], width: float) -> list[int]:
    bins = [0] * max(int(ceil(width / COLUMN_BIN_WIDTH)), 1)
    last = len(bins) - 1
    for item in items:
        first_bin = min(max(int(item.x // COLUMN_BIN_WIDTH), 0), last)
        last_bin = min(max(int(ceil(item.right / COLUMN_BIN_WIDTH)) - 1, first_bin), last)
        for index in range(first_bin, last_bin + 1):
            bins[index] += 1
    return bins


def _vertical_overlap(left: Sequence[TextItem], right: Sequence[TextItem]) -> float:
    left_top, left_bottom = max(item.y for item in left), min(item.y for item in left)
    right_top, right_bottom = max(item.y for item in right), min(item.y for item in right)
    shared = min(left_top, right_top) - max(left_bottom, right_bottom)
    if shared <= 0:
        return 0.0
    shorter = max(min(left_top - left_bottom, right_top - right_bottom), 1.0)
    return shared / shorter


def find_gutters(items: Sequence[TextItem], page_width: float | None = None) -> list[Gutter]:
    """Return validated gutters ordered left to right (at most three)."""

    if len(items) < 2 * COLUMN_MIN_ITEMS:
        return []
    width = _page_extent(items, page_width)
    if width <= 0:
        return []
    bins = _occupancy(items, width)
    peak = max(bins)
    if peak == 0:
        return []
    limit = COLUMN_EMPTY_RATIO * peak

    candidates: list[Gutter] = []
    run_start: int | None = None
    for index, count in enumerate(bins + [peak]):
        if count <= limit:
            if run_start is None:
                run_start = index
            continue
        if run_start is None:
            continue
        gutter = Gutter(run_start * COLUMN_BIN_WIDTH, index * COLUMN_BIN_WIDTH)
        run_start = None
        if gutter.width < COLUMN_MIN_GUTTER:
            continue
        if not COLUMN_MARGIN_RATIO * width < gutter.center < (1.0 - COLUMN_MARGIN_RATIO) * width:
            continue
        left = [item for item in items if item.x + item.effective_width / 2.0 < gutter.center]
        right = [item for item in items if item.x + item.effective_width / 2.0 >= gutter.center]
        if len(left) < COLUMN_MIN_ITEMS or len(right) < COLUMN_MIN_ITEMS:
            continue
        if _vertical_overlap(left, right) < COLUMN_MIN_OVERLAP:
            continue
        candidates.append(gutter)

    if len(candidates) > COLUMN_MAX_GUTTERS:
        candidates = sorted(candidates, key=lambda gutter: (-gutter.width, gutter.start))[:COLUMN_MAX_GUTTERS]
    return sorted(candidates, key=lambda gutter: gutter.start)


def detect_columns(items: Sequence[TextItem], page_width: float | None = None) -> list[tuple[float, float]]:
    """Return ``(left, right)`` extents of each detected column."""

    width = _page_extent(items, page_width)
    edges = [0.0] + [gutter.center for gutter in find_gutters(items, page_width)] + [width]
    return [(edges[index], edges[index + 1]) for index in range(len(edges) - 1)]


def _overlap(item: TextItem, column: tuple[float, float]) -> float:
    return min(item.right, column[1]) - max(item.x, column[0])


def is_column_spanning(item: TextItem, columns: Sequence[tuple[float, float]]) -> bool:
    """An item is spanning when it overlaps two or more columns significantly."""

    significant = 0
    for column in columns:
        column_width = column[1] - column[0]
        if _overlap(item, column) > min(0.1 * column_width, 20.0):
            significant += 1
    return significant >= 2


def column_index(item: TextItem, columns: Sequence[tuple[float, float]]) -> int:
    center = item.x + item.effective_width / 2.0
    for index, (left, right) in enumerate(columns):
        if left <= center < right:
            return index
    return 0 if center < columns[0][0] else len(columns) - 1


def reading_segments(items: Sequence[TextItem], page_width: float | None = None) -> list[list[TextItem]]:
    """Split one page's items into segments that read top to bottom.

    Column-spanning items form horizontal bands.  Between two bands the
    columns are read left to right; each band is read where its Y falls.
    Items keep their stream order inside a segment.
    """

    columns = detect_columns(items, page_width)
    if len(columns) < 2:
        return [list(items)] if items else []

    spanning = [item for item in items if is_column_spanning(item, columns)]
    band_ys: list[float] = []
    for y in sorted((item.y for item in spanning), reverse=True):
        if not band_ys or band_ys[-1] - y > LINE_Y_TOLERANCE:
            band_ys.append(y)

    def _band_of(item: TextItem) -> int | None:
        for index, band_y in enumerate(band_ys):
            if abs(item.y - band_y) <= LINE_Y_TOLERANCE:
                return index
        return None

    bands: list[list[TextItem]] = [[] for _ in band_ys]
    regions: list[list[list[TextItem]]] = [[[] for _ in columns] for _ in range(len(band_ys) + 1)]
    for item in items:
        band = _band_of(item)
        if band is not None:
            bands[band].append(item)
            continue
        region = sum(1 for band_y in band_ys if band_y > item.y)
        regions[region][column_index(item, columns)].append(item)

    segments: list[list[TextItem]] = []
    for index, region in enumerate(regions):
        segments.extend(column for column in region if column)
        if index < len(bands) and bands[index]:
            segments.append(bands[index])
    return segments
