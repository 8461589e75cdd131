"""Table detection and Markdown rendering.

Tables are found per page in two passes over the positioned items:

1. small-font items (at most 90% of the body size), where data tables
   usually live;
2. body-size items that pass one did not claim, under stricter gates and a
   cross-row alignment check so justified prose is not mistaken for a grid.

All thresholds are heuristics tuned on real documents, not derived bounds.
"""

from __future__ import annotations

from collections import Counter
from itertools import combinations
import re
from statistics import fmean
from typing import Iterable, Sequence

from .text import join_line_items
from .types import Table, TextItem

__all__ = [
    "clean_table_cells",
    "detect_body_tables",
    "detect_tables",
    "extract_tables",
    "has_consistent_columns",
    "has_table_like_content",
    "is_footnote_row",
    "is_key_value_layout",
    "looks_like_number",
    "looks_like_toc",
    "row_alignment_score",
    "row_segments",
    "table_to_markdown",
]

MIN_TABLE_ITEMS = 6
MIN_FONT_SIZE = 6.0
SMALL_FONT_RATIO = 0.90
BODY_FONT_TOLERANCE = 0.15
REGION_GAP = 30.0
REGION_MIN_ITEMS = 4
REGION_PADDING = 5.0
ROW_CLUSTER = 10.0
ROW_MATCH = 15.0
ALIGNMENT_TOLERANCE = 40.0
MAX_COLUMNS = 15
MAX_ROWS = 30
CROSS_ROW_TOLERANCE = 10.0
CROSS_ROW_THRESHOLD = 0.5
SEGMENT_GAP_RATIO = 1.0
PROSE_CELL_SHARE = 0.3
DOMINANT_COLUMN_SHARE = 0.6

_NUMBER_CHARS = frozenset("0123456789.,-+")
_UNIT_VALUE = re.compile(r"^[-+±~≈<>]?[$€£¥]?\d[\d.,]*\s?(?:%|‰|[a-zA-Zµ°]{1,4})?$")
_FOOTNOTE_PAREN = re.compile(r"^\(\d+\)")
_FOOTNOTE_NUMBER = re.compile(r"^\d+\)")
_LEADER_DOTS = re.compile(r"(?:\.\s?){4,}|…{2,}|·{4,}")
_PAGE_CELL = re.compile(r"^\d{1,4}$")


def looks_like_number(text: str) -> bool:
    text = text.strip()
    if not text:
        return False
    return all(char in _NUMBER_CHARS for char in text) and any(char.isdigit() for char in text)


def _looks_like_value(text: str) -> bool:
    text = text.strip()
    return looks_like_number(text) or bool(_UNIT_VALUE.match(text))


def is_footnote_row(text: str) -> bool:
    text = text.strip()
    if _FOOTNOTE_PAREN.match(text) or _FOOTNOTE_NUMBER.match(text):
        return True
    lowered = text.lower()
    return lowered.startswith(("note:", "notes:"))


def _filled(row: Sequence[str]) -> int:
    return sum(1 for cell in row if cell.strip())


def _is_form_cell(text: str) -> bool:
    text = text.strip()
    return (text.endswith(":") and len(text) > 1) or (": " in text and not looks_like_number(text))


# -- Validation ----------------------------------------------------------------


def is_key_value_layout(cells: Sequence[Sequence[str]]) -> bool:
    """Label/value forms: mostly ≤2 filled cells per row with label-like first cells."""

    if not cells:
        return False
    columns = len(cells[0])
    two_or_less = 0
    label_like = 0
    for row in cells:
        if _filled(row) <= 2:
            two_or_less += 1
        first = row[0].strip() if row else ""
        if first.endswith(":") or (
            len(first) > 3 and all(char.isupper() or char.isspace() or char in "()" for char in first)
        ):
            label_like += 1
    total = len(cells)
    return two_or_less / total > 0.7 and label_like / total > 0.5 and columns <= 6


def has_consistent_columns(cells: Sequence[Sequence[str]]) -> bool:
    if len(cells) < 3:
        return True
    counts = [_filled(row) for row in cells]
    frequency = Counter(counts)
    # Ties resolve to the smaller count so the result is order independent.
    most_common = max(sorted(frequency), key=lambda count: frequency[count])
    consistent = sum(1 for count in counts if most_common - 2 <= count <= most_common + 2)
    return consistent / len(cells) > 0.4


def has_table_like_content(cells: Sequence[Sequence[str]]) -> bool:
    """Data tables carry numbers (or unit values); wide grids pass structurally."""

    values = [cell.strip() for row in cells[1:] for cell in row if cell.strip()]
    if not values:
        return False
    numeric = sum(1 for value in values if _looks_like_value(value))
    columns = len(cells[0]) if cells else 0
    return numeric / len(values) > 0.2 or columns >= 5


def looks_like_toc(cells: Sequence[Sequence[str]]) -> bool:
    values = [cell.strip() for row in cells for cell in row if cell.strip()]
    if not values:
        return False
    dotted = sum(1 for value in values if _LEADER_DOTS.search(value))
    pages = sum(1 for value in values if _PAGE_CELL.match(value))
    dot_share = dotted / len(values)
    page_share = pages / len(values)
    return dot_share > 0.15 or (dot_share > 0.05 and page_share > 0.15)


def row_segments(items: Iterable[TextItem]) -> list[float]:
    """Start X of each run of items in one row.

    Items closer than one font size to the run before them (word spacing)
    extend that run; a wider gap starts a new one.
    """

    starts: list[float] = []
    right: float | None = None
    for item in sorted(items, key=lambda item: item.x):
        if right is None or item.x - right > SEGMENT_GAP_RATIO * item.font_size:
            starts.append(item.x)
            right = item.right
        else:
            right = max(right, item.right)
    return starts


def row_alignment_score(rows: Sequence[Sequence[float]], tolerance: float = CROSS_ROW_TOLERANCE) -> float:
    """Mean pairwise share of X positions two rows have in common.

    Grid rows start their cells at the same X positions; lines of justified
    prose form a single run each and score zero.  Each pair is measured
    against the row with more positions so a dense row cannot match a sparse
    one by containment.
    """

    candidates = [row for row in rows if len(row) >= 2]
    if len(candidates) < 2:
        return 0.0
    scores: list[float] = []
    for first, second in combinations(candidates, 2):
        matched = sum(1 for x in first if any(abs(x - other) <= tolerance for other in second))
        scores.append(min(matched, len(second)) / max(len(first), len(second)))
    return fmean(scores)


def _prose_cell_share(grid: Sequence[Sequence[Sequence[TextItem]]]) -> float:
    """Share of filled cells made of several word items and no values."""

    filled = [cell for row in grid for cell in row if cell]
    if not filled:
        return 0.0
    prose = sum(1 for cell in filled if len(cell) >= 2 and not any(_looks_like_value(item.text) for item in cell))
    return prose / len(filled)


# -- Geometry ----------------------------------------------------------------


def _find_regions(items: Sequence[TextItem]) -> list[tuple[float, float]]:
    ys = sorted(item.y for item in items)
    if not ys:
        return []
    regions: list[tuple[float, float]] = []
    start = end = ys[0]
    count = 1
    for y in ys[1:]:
        if y - end > REGION_GAP:
            if count >= REGION_MIN_ITEMS:
                regions.append((start - REGION_PADDING, end + REGION_PADDING))
            start = end = y
            count = 1
        else:
            end = y
            count += 1
    if count >= REGION_MIN_ITEMS:
        regions.append((start - REGION_PADDING, end + REGION_PADDING))
    return regions


def _column_positions(items: Sequence[TextItem]) -> list[float]:
    xs = sorted(item.x for item in items)
    if not xs:
        return []
    average_gap = (xs[-1] - xs[0]) / (len(xs) - 1) if len(xs) > 1 else 60.0
    threshold = min(max(average_gap, 25.0), 50.0)
    columns: list[float] = []
    cluster = [xs[0]]
    for x in xs[1:]:
        if x - fmean(cluster) > threshold:
            columns.append(fmean(cluster))
            cluster = [x]
        else:
            cluster.append(x)
    columns.append(fmean(cluster))
    minimum = max(len(items) // max(len(columns), 1) // 4, 2)
    return [
        column
        for column in columns
        if sum(1 for item in items if abs(item.x - column) < threshold) >= minimum
    ]


def _row_positions(items: Sequence[TextItem]) -> list[float]:
    ys = sorted((item.y for item in items), reverse=True)
    if not ys:
        return []
    rows: list[float] = []
    cluster = [ys[0]]
    for y in ys[1:]:
        if fmean(cluster) - y > ROW_CLUSTER:
            rows.append(fmean(cluster))
            cluster = [y]
        else:
            cluster.append(y)
    rows.append(fmean(cluster))
    return rows


def _column_alignment(items: Sequence[TextItem], columns: Sequence[float]) -> float:
    aligned = sum(1 for item in items if any(abs(item.x - column) < ALIGNMENT_TOLERANCE for column in columns))
    return aligned / len(items)


def _nearest(positions: Sequence[float], value: float, threshold: float) -> int | None:
    best: int | None = None
    best_distance = threshold
    for index, position in enumerate(positions):
        distance = abs(value - position)
        if distance < best_distance:
            best, best_distance = index, distance
    return best


def _column_threshold(columns: Sequence[float]) -> float:
    if len(columns) < 2:
        return 50.0
    smallest = min(abs(right - left) for left, right in zip(columns, columns[1:]))
    return min(max(smallest / 2.0, 25.0), 50.0)


def _first_table_row(cells: Sequence[Sequence[str]]) -> int:
    """Index of the first row past leading form-metadata rows."""

    if not cells:
        return 0
    total = len(cells[0])
    for index, row in enumerate(cells):
        filled = [cell for cell in row if cell.strip()]
        ratio = len(filled) / total
        if any(_is_form_cell(cell) for cell in filled):
            continue
        if sum(1 for cell in filled if looks_like_number(cell)) >= 2:
            return index
        if ratio >= 0.4:
            return index
        if ratio < 0.3:
            continue
        if index + 1 < len(cells):
            following = cells[index + 1]
            dense = _filled(following) / total >= 0.4
            numeric = sum(1 for cell in following if looks_like_number(cell)) >= 2
            if (dense or numeric) and not any(_is_form_cell(cell) for cell in following):
                return index
    return 0


def _build_table(
    candidates: Sequence[tuple[int, TextItem]],
    *,
    strict: bool,
) -> Table | None:
    items = [item for _, item in candidates]
    columns = _column_positions(items)
    if strict:
        if not 3 <= len(columns) <= MAX_COLUMNS:
            return None
    elif not 2 <= len(columns) <= MAX_COLUMNS:
        return None
    rows = _row_positions(items)
    if len(rows) < (3 if strict else 2):
        return None
    if _column_alignment(items, columns) < (0.7 if strict else 0.5):
        return None

    column_threshold = _column_threshold(columns)
    grid: list[list[list[TextItem]]] = [[[] for _ in columns] for _ in rows]
    placed: list[tuple[int, int, int]] = []
    for index, item in candidates:
        column = _nearest(columns, item.x, column_threshold)
        row = _nearest(rows, item.y, ROW_MATCH)
        if column is None or row is None:
            continue
        grid[row][column].append(item)
        placed.append((index, row, column))

    cells = [[join_line_items(sorted(cell, key=lambda item: item.x)) for cell in row] for row in grid]
    first = _first_table_row(cells)
    if first:
        rows = rows[first:]
        cells = cells[first:]
        grid = grid[first:]
        placed = [(index, row - first, column) for index, row, column in placed if row >= first]

    if not _validate(cells, grid, strict=strict):
        return None
    return Table(
        columns=list(columns),
        rows=list(rows),
        cells=cells,
        item_indices=frozenset(index for index, _, _ in placed),
        page=items[0].page,
    )


def _validate(cells: list[list[str]], grid: list[list[list[TextItem]]], *, strict: bool) -> bool:
    row_count = len(cells)
    if row_count == 0 or row_count > MAX_ROWS:
        return False
    if sum(1 for row in cells if row[0].strip()) < row_count / 2:
        return False
    multi = sum(1 for row in cells if _filled(row) >= 2)
    if multi < row_count / (2 if strict else 3):
        return False
    if sum(_filled(row) for row in cells) / row_count < 1.5:
        return False
    if is_key_value_layout(cells) or not has_consistent_columns(cells):
        return False
    if not has_table_like_content(cells) or looks_like_toc(cells):
        return False
    if strict:
        if row_count < 3:
            return False
        per_column = [sum(len(row[column]) for row in grid) for column in range(len(grid[0]))]
        total = sum(per_column)
        if total and max(per_column) / total > DOMINANT_COLUMN_SHARE:
            return False
        if _prose_cell_share(grid) > PROSE_CELL_SHARE:
            return False
        segments = [row_segments(item for cell in row for item in cell) for row in grid]
        if row_alignment_score(segments) < CROSS_ROW_THRESHOLD:
            return False
    return True


# -- Detection entry points ----------------------------------------------------


def _detect(candidates: Sequence[tuple[int, TextItem]], *, strict: bool) -> list[Table]:
    if len(candidates) < MIN_TABLE_ITEMS:
        return []
    tables: list[Table] = []
    claimed: set[int] = set()
    for low, high in _find_regions([item for _, item in candidates]):
        region = [(index, item) for index, item in candidates if low <= item.y <= high and index not in claimed]
        if len(region) < MIN_TABLE_ITEMS:
            continue
        table = _build_table(region, strict=strict)
        if table is not None:
            tables.append(table)
            claimed.update(table.item_indices)
    return tables


def detect_tables(items: Sequence[TextItem], base_font_size: float) -> list[Table]:
    """Small-font pass: items at most 90% of ``base_font_size`` (and ≥6pt)."""

    if len(items) < MIN_TABLE_ITEMS:
        return []
    limit = base_font_size * SMALL_FONT_RATIO
    candidates = [
        (index, item)
        for index, item in enumerate(items)
        if item.is_text and MIN_FONT_SIZE <= item.font_size <= limit
    ]
    return _detect(candidates, strict=False)


def detect_body_tables(
    items: Sequence[TextItem],
    base_font_size: float,
    claimed: Iterable[int] = (),
) -> list[Table]:
    """Body-font pass over items within ±15% of ``base_font_size`` not yet claimed."""

    if base_font_size <= 0:
        return []
    taken = set(claimed)
    candidates = [
        (index, item)
        for index, item in enumerate(items)
        if index not in taken
        and item.is_text
        and abs(item.font_size / base_font_size - 1.0) <= BODY_FONT_TOLERANCE
    ]
    return _detect(candidates, strict=True)


def extract_tables(items: Sequence[TextItem], base_font_size: float) -> list[Table]:
    """Run both passes over one page's items; indices refer to ``items``."""

    tables = detect_tables(items, base_font_size)
    claimed = set().union(*(table.item_indices for table in tables)) if tables else set()
    tables.extend(detect_body_tables(items, base_font_size, claimed))
    return tables


# -- Rendering ---------------------------------------------------------------


def clean_table_cells(cells: Sequence[Sequence[str]]) -> tuple[list[list[str]], list[str]]:
    """Drop empty rows, pull footnote rows out and merge continuation rows."""

    cleaned: list[list[str]] = []
    footnotes: list[str] = []
    for row in cells:
        if not any(cell.strip() for cell in row):
            continue
        first = row[0].strip() if row else ""
        if is_footnote_row(first):
            footnotes.append(" ".join(cell.strip() for cell in row if cell.strip()))
            continue
        if not first and cleaned and any(cell.strip() for cell in row[1:]):
            previous = cleaned[-1]
            for index, cell in enumerate(row):
                text = cell.strip()
                if text and index < len(previous):
                    previous[index] = f"{previous[index]} {text}" if previous[index] else text
            continue
        cleaned.append([cell.strip() for cell in row])
    return cleaned, footnotes


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|")


def table_to_markdown(table: Table) -> str:
    """Render ``table`` as a padded pipe table followed by its footnotes."""

    if not table.cells or not table.cells[0]:
        return ""
    cleaned, footnotes = clean_table_cells(table.cells)
    footnotes = list(table.footnotes) + footnotes
    if not cleaned:
        return ""
    rows = [[_escape_cell(cell) for cell in row] for row in cleaned]
    widths = [max(max(len(row[column]) for row in rows), 3) for column in range(len(rows[0]))]
    lines: list[str] = []
    for index, row in enumerate(rows):
        lines.append("|" + "".join(f" {cell:<{widths[column]}} |" for column, cell in enumerate(row)))
        if index == 0:
            lines.append("|" + "".join(f" {'-' * width} |" for width in widths))
    output = "\n".join(lines) + "\n"
    if footnotes:
        output += "\n" + "\n".join(footnotes) + "\n"
    return output
