"""Structural classification of reconstructed lines and Markdown emission.

Lines arrive in reading order with table items already removed.  The
emitter walks them once, keeping a single open block (paragraph, list item,
heading or code fence) and flushing it whenever a line cannot continue it.
Tables and images are inserted where their top edge falls on the page.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import re
from statistics import median
from typing import Iterable, Mapping, Sequence

from ..core.utils import get_logger
from .constants import (
    ALPHA_PATTERN,
    BULLET_PATTERN,
    CAPTION_PREFIXES,
    DECIMAL_PATTERN,
    END_PUNCTUATION,
    LINE_Y_TOLERANCE,
    ROMAN_PATTERN,
)
from .headings import body_font_size, discover_heading_tiers, heading_level, is_drop_cap, is_heading_text
from .lines import group_page_lines
from .postprocess import postprocess_markdown
from .tables import extract_tables, table_to_markdown
from .text import join_line_items, needs_space
from .types import ItemKind, MarkdownOptions, Table, TextItem, TextLine

__all__ = [
    "MarkdownEmitter",
    "RenderedDocument",
    "build_document",
    "caption_match",
    "items_to_markdown",
    "layout_page",
    "lines_to_markdown",
    "list_marker",
    "merge_drop_caps",
    "render_document",
    "render_inline",
    "typical_line_gap",
]

LOGGER = get_logger("pdf2mdx.converter.markdown")

LINK_TOLERANCE = 2.0
LIST_INDENT_BEFORE = 5.0
LIST_INDENT_AFTER = 50.0
LIST_GAP_RATIO = 7.0
PARAGRAPH_GAP_FACTOR = 1.3
PARAGRAPH_GAP_FLOOR = 1.5
HEADING_MERGE_RATIO = 2.0

_CAPTION = re.compile(
    r"^(?:" + "|".join(re.escape(prefix) for prefix in CAPTION_PREFIXES) + r")(?=[\s\d:.]|$)",
    re.IGNORECASE,
)


def caption_match(text: str) -> bool:
    return bool(_CAPTION.match(text.strip()))


def list_marker(text: str) -> tuple[str, str] | None:
    """Return ``(marker, markdown_prefix)`` when ``text`` opens a list item.

    Bullet glyphs become ``- ``; numbered and lettered markers pass through.
    """

    text = text.lstrip()
    match = BULLET_PATTERN.match(text)
    if match:
        return match.group("marker"), "- "
    for pattern in (DECIMAL_PATTERN, ROMAN_PATTERN, ALPHA_PATTERN):
        match = pattern.match(text)
        if match:
            return match.group("marker"), f"{match.group('marker')} "
    return None


def typical_line_gap(lines: Sequence[TextLine], body_size: float) -> float:
    """Median downward gap between consecutive lines × 1.3, floored at 1.5 × body."""

    floor = PARAGRAPH_GAP_FLOOR * body_size
    gaps = [
        previous.y - current.y
        for previous, current in zip(lines, lines[1:])
        if previous.page == current.page and previous.y - current.y > LINE_Y_TOLERANCE
    ]
    if not gaps:
        return floor
    return max(median(gaps) * PARAGRAPH_GAP_FACTOR, floor)


def _starts_lowercase(line: TextLine) -> bool:
    return line.text().strip()[:1].islower()


def merge_drop_caps(lines: Sequence[TextLine], body_size: float) -> list[TextLine]:
    """Fold drop-cap letters into the paragraph they open and drop their lines.

    The target is the first line on the drop cap's page that starts lowercase
    while the line before it does not, wherever the drop cap's own baseline
    put it in the line order.  Drop caps without a target are discarded.
    """

    caps = [line for line in lines if is_drop_cap(line, body_size)]
    if not caps:
        return list(lines)
    merged = [line for line in lines if not is_drop_cap(line, body_size)]
    for cap in caps:
        letter = cap.text().strip()
        for index, line in enumerate(merged):
            if line.page != cap.page or not _starts_lowercase(line):
                continue
            previous = merged[index - 1] if index else None
            if previous is not None and previous.page == line.page and _starts_lowercase(previous):
                continue
            first, *rest = line.items
            first = replace(first, text=letter + first.text.lstrip())
            merged[index] = replace(line, items=[first, *rest])
            break
    return merged


def _link_target(item: TextItem, links: Sequence[TextItem]) -> str | None:
    for link in links:
        if link.page != item.page:
            continue
        inside_x = link.x - LINK_TOLERANCE <= item.x <= link.x + link.width + LINK_TOLERANCE
        inside_y = link.y - LINK_TOLERANCE <= item.y <= link.y + link.height + LINK_TOLERANCE
        if inside_x and inside_y:
            return link.url
    return None


def render_inline(
    items: Sequence[TextItem],
    options: MarkdownOptions,
    links: Sequence[TextItem] = (),
) -> str:
    """Join ``items`` into one line with emphasis and link markup."""

    groups: list[tuple[tuple[bool, bool, str | None], list[TextItem]]] = []
    for item in items:
        if not item.text.strip():
            continue
        url = _link_target(item, links) if options.include_links and links else None
        style = (item.bold and options.detect_bold, item.italic and options.detect_italic, url)
        if groups and groups[-1][0] == style:
            groups[-1][1].append(item)
        else:
            groups.append((style, [item]))

    rendered = ""
    plain = ""
    previous: TextItem | None = None
    for (bold, italic, url), group in groups:
        text = join_line_items(group)
        if bold and italic:
            text = f"***{text}***"
        elif bold:
            text = f"**{text}**"
        elif italic:
            text = f"*{text}*"
        if url:
            text = f"[{text}]({url})"
        if previous is not None and needs_space(previous, group[0], plain, group[0].text.strip()):
            rendered += " "
            plain += " "
        rendered += text
        plain += join_line_items(group)
        previous = group[-1]
    return rendered


def _without_marker(items: Sequence[TextItem], marker: str) -> list[TextItem]:
    remaining = list(items)
    for index, item in enumerate(remaining):
        text = item.text.strip()
        if not text:
            continue
        if text == marker:
            del remaining[index]
        elif text.startswith(marker):
            remaining[index] = replace(item, text=text[len(marker):].lstrip())
        break
    return remaining


def _join_parts(parts: Sequence[str]) -> str:
    joined = ""
    for part in parts:
        if not joined:
            joined = part
        elif joined.endswith("-"):
            joined += part
        else:
            joined = f"{joined} {part}"
    return joined


@dataclass(slots=True)
class _Block:
    kind: str
    parts: list[str]
    last: TextLine
    prefix: str = ""
    level: int = 0
    x: float = 0.0


@dataclass(slots=True)
class _Insert:
    top: float
    page: int
    markdown: str


@dataclass(slots=True)
class RenderedDocument:
    """Markdown plus the structure it was rendered from."""

    markdown: str
    lines: list[TextLine] = field(default_factory=list)
    tables: list[Table] = field(default_factory=list)
    heading_count: int = 0


class MarkdownEmitter:
    """Single pass block assembler over reading-order lines."""

    def __init__(
        self,
        options: MarkdownOptions,
        *,
        body_size: float,
        tiers: Sequence[float],
        typical_gap: float,
        links: Sequence[TextItem] = (),
    ) -> None:
        self.options = options
        self.body_size = body_size
        self.tiers = list(tiers)
        self.typical_gap = typical_gap
        self.links = list(links)
        self.blocks: list[str] = []
        self._kinds: list[str] = []
        self.heading_count = 0
        self._current: _Block | None = None

    # -- Block bookkeeping ---------------------------------------------------

    def flush(self) -> None:
        block = self._current
        self._current = None
        if block is None:
            return
        self._kinds.append(block.kind)
        if block.kind == "code":
            self.blocks.append("```\n" + "\n".join(block.parts) + "\n```")
        elif block.kind == "heading":
            self.blocks.append(f"{'#' * block.level} {_join_parts(block.parts)}")
            self.heading_count += 1
        elif block.kind == "list":
            self.blocks.append(block.prefix + _join_parts(block.parts))
        else:
            self.blocks.append(_join_parts(block.parts))

    def insert(self, markdown: str) -> None:
        self.flush()
        if markdown.strip():
            self.blocks.append(markdown.rstrip("\n"))
            self._kinds.append("insert")

    def finish(self) -> str:
        """Join the blocks; consecutive list items stay on adjacent lines."""

        self.flush()
        output = ""
        for index, block in enumerate(self.blocks):
            if index:
                tight = self._kinds[index] == "list" and self._kinds[index - 1] == "list"
                output += "\n" if tight else "\n\n"
            output += block
        return output

    # -- Classification ------------------------------------------------------

    def _continues_list(self, block: _Block, line: TextLine) -> bool:
        if line.page != block.last.page:
            return False
        gap = block.last.y - line.y
        within = block.x - LIST_INDENT_BEFORE <= line.x <= block.x + LIST_INDENT_AFTER
        return within and -LINE_Y_TOLERANCE <= gap < LIST_GAP_RATIO * self.body_size

    def _breaks_paragraph(self, block: _Block, line: TextLine) -> bool:
        previous = block.last
        if line.page != previous.page:
            return True
        gap = previous.y - line.y
        if gap < -LINE_Y_TOLERANCE:
            # Upward jump: a column change continues a sentence left unfinished.
            return previous.text().rstrip()[-1:] in END_PUNCTUATION
        return gap > self.typical_gap

    def _start(self, kind: str, text: str, line: TextLine, **extra: object) -> None:
        self.flush()
        self._current = _Block(kind=kind, parts=[text], last=line, **extra)

    def _extend(self, text: str, line: TextLine) -> None:
        if self._current is None:
            self._start("paragraph", text, line)
            return
        self._current.parts.append(text)
        self._current.last = line

    def feed(self, line: TextLine) -> None:
        plain = line.text().strip()
        if not plain:
            return
        current = self._current

        if self.options.detect_code and line.is_monospace:
            if current is not None and current.kind == "code":
                self._extend(plain, line)
            else:
                self._start("code", plain, line)
            return

        caption = caption_match(plain)
        marker = list_marker(plain) if self.options.detect_lists and not caption else None

        if self.options.detect_headers and not caption and marker is None:
            level = heading_level(line.font_size, self.tiers)
            if level is not None and is_heading_text(plain):
                if (
                    current is not None
                    and current.kind == "heading"
                    and current.level == level
                    and current.last.page == line.page
                    and 0 <= current.last.y - line.y < HEADING_MERGE_RATIO * line.font_size
                ):
                    self._extend(plain, line)
                else:
                    self._start("heading", plain, line, level=level)
                return

        if marker is not None:
            symbol, prefix = marker
            text = render_inline(_without_marker(line.items, symbol), self.options, self.links)
            self._start("list", text, line, prefix=prefix, x=line.x)
            return

        text = render_inline(line.items, self.options, self.links)
        if not caption and current is not None:
            if current.kind == "list" and self._continues_list(current, line):
                self._extend(text, line)
                return
            if current.kind == "paragraph" and not self._breaks_paragraph(current, line):
                self._extend(text, line)
                return

        self._start("paragraph", text, line)


def _image_markdown(item: TextItem) -> str:
    return f"![image](p{item.page}-{item.text.lstrip('/')})"


def _page_inserts(
    tables: Iterable[Table],
    images: Iterable[TextItem],
) -> dict[int, list[_Insert]]:
    inserts: dict[int, list[_Insert]] = {}
    for table in tables:
        inserts.setdefault(table.page, []).append(_Insert(table.top, table.page, table_to_markdown(table)))
    for image in images:
        inserts.setdefault(image.page, []).append(_Insert(image.y + image.height, image.page, _image_markdown(image)))
    for entries in inserts.values():
        entries.sort(key=lambda entry: -entry.top)
    return inserts


def render_document(
    lines: Sequence[TextLine],
    options: MarkdownOptions | None = None,
    *,
    tables: Sequence[Table] = (),
    extras: Sequence[TextItem] = (),
    body_size: float | None = None,
) -> RenderedDocument:
    """Render reading-order ``lines`` together with tables, images and links."""

    options = options or MarkdownOptions()
    lines = [line for line in lines if line.items]
    if body_size is None:
        body_size = options.base_font_size or body_font_size(item for line in lines for item in line.items)
    lines = merge_drop_caps(lines, body_size)
    tiers = discover_heading_tiers(lines, body_size) if options.detect_headers else []
    links = [item for item in extras if item.kind is ItemKind.LINK and item.url]
    images = [item for item in extras if item.kind is ItemKind.IMAGE] if options.include_images else []
    emitter = MarkdownEmitter(
        options,
        body_size=body_size,
        tiers=tiers,
        typical_gap=typical_line_gap(lines, body_size),
        links=links,
    )

    inserts = _page_inserts(tables, images)
    pages = sorted({line.page for line in lines} | set(inserts))
    for page in pages:
        pending = inserts.get(page, [])
        for line in (line for line in lines if line.page == page):
            while pending and pending[0].top > line.y + LINE_Y_TOLERANCE:
                emitter.insert(pending.pop(0).markdown)
            emitter.feed(line)
        for entry in pending:
            emitter.insert(entry.markdown)

    LOGGER.debug("Rendered %d lines, %d tables, body size %.1f, tiers %s", len(lines), len(tables), body_size, tiers)
    markdown = postprocess_markdown(emitter.finish(), options)
    return RenderedDocument(
        markdown=markdown,
        lines=list(lines),
        tables=list(tables),
        heading_count=emitter.heading_count,
    )


def lines_to_markdown(lines: Sequence[TextLine], options: MarkdownOptions | None = None) -> str:
    return render_document(lines, options).markdown


def layout_page(
    items: Sequence[TextItem],
    body_size: float,
    *,
    page_width: float | None = None,
    remove_page_numbers: bool = True,
) -> tuple[list[TextLine], list[Table]]:
    """Pull tables out of one page's text items and group the rest into lines."""

    items = [item for item in items if item.is_text and item.text.strip()]
    tables = extract_tables(items, body_size)
    claimed: set[int] = set()
    for table in tables:
        claimed.update(table.item_indices)
    remaining = [item for index, item in enumerate(items) if index not in claimed]
    lines = group_page_lines(remaining, page_width=page_width, remove_page_numbers=remove_page_numbers)
    return lines, tables


def build_document(
    items: Iterable[TextItem],
    options: MarkdownOptions | None = None,
    *,
    page_widths: float | Mapping[int, float] | None = None,
) -> RenderedDocument:
    """Detect tables, group lines and render positioned ``items``."""

    options = options or MarkdownOptions()
    items = list(items)
    text_items = [item for item in items if item.is_text and item.text.strip()]
    body_size = options.base_font_size or body_font_size(text_items)

    lines: list[TextLine] = []
    tables: list[Table] = []
    for page in sorted({item.page for item in text_items}):
        width = page_widths.get(page) if isinstance(page_widths, Mapping) else page_widths
        page_lines, page_tables = layout_page(
            [item for item in text_items if item.page == page],
            body_size,
            page_width=width,
            remove_page_numbers=options.remove_page_numbers,
        )
        lines.extend(page_lines)
        tables.extend(page_tables)

    extras = [item for item in items if not item.is_text]
    return render_document(lines, options, tables=tables, extras=extras, body_size=body_size)


def items_to_markdown(
    items: Iterable[TextItem],
    options: MarkdownOptions | None = None,
    *,
    page_widths: float | Mapping[int, float] | None = None,
) -> str:
    """Convert positioned items (any number of pages) to Markdown."""

    return build_document(items, options, page_widths=page_widths).markdown
