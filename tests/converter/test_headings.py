from __future__ import annotations

import pytest

from pdf2mdx.converter import ItemKind, TextItem, TextLine
from pdf2mdx.converter.headings import (
    body_font_size,
    discover_heading_tiers,
    heading_level,
    is_drop_cap,
    is_heading_text,
)


def _line(text: str, size: float, y: float = 700) -> TextLine:
    return TextLine(items=[TextItem(text=text, x=72, y=y, width=0, font_size=size)], y=y, page=1)


def _items(*sizes: float) -> list[TextItem]:
    return [TextItem(text="word", x=72, y=700, width=20, font_size=size) for size in sizes]


def test_body_font_size_is_most_common() -> None:
    assert body_font_size(_items(10, 10, 10, 12, 24)) == 10
    assert body_font_size(_items(10.04, 9.96, 10.0)) == 10.0


def test_body_font_size_ties_go_to_smaller_size() -> None:
    assert body_font_size(_items(12, 12, 9, 9, 18)) == 9


def test_body_font_size_without_text() -> None:
    image = TextItem(text="Im1", x=0, y=0, width=10, font_size=0, kind=ItemKind.IMAGE)
    assert body_font_size([]) == 12.0
    assert body_font_size([image]) == 12.0


@pytest.mark.parametrize(
    ("size", "level"),
    [(24, 1), (18, 2), (15, 3), (12, None), (24.4, 1), (20, None)],
)
def test_heading_levels_follow_tiers(size: float, level: int | None) -> None:
    assert heading_level(size, [24, 18, 15]) == level


def test_single_tier_is_level_one() -> None:
    assert heading_level(15, [15]) == 1
    assert heading_level(14, [15]) is None


def test_discover_heading_tiers_clusters_sizes() -> None:
    lines = [_line("Title", 24), _line("Section", 18), _line("Other", 18.4), _line("Body", 12)]
    assert discover_heading_tiers(lines, 12) == [24.0, 18.2]


def test_discover_heading_tiers_keeps_four_largest() -> None:
    lines = [_line(f"Level {size}", size) for size in (40, 32, 26, 21, 16)]
    assert discover_heading_tiers(lines, 12) == [40.0, 32.0, 26.0, 21.0]
    assert discover_heading_tiers(lines, 0) == []


def test_heading_text_rules() -> None:
    assert is_heading_text("Results")
    assert not is_heading_text("A.")
    assert not is_heading_text(" ".join(["word"] * 16))


def test_drop_cap_detection() -> None:
    assert is_drop_cap(_line("T", 36), 12)
    assert not is_drop_cap(_line("T", 20), 12)
    assert not is_drop_cap(_line("t", 36), 12)
    assert not is_drop_cap(_line("The", 36), 12)


def test_drop_caps_and_fragments_do_not_form_tiers() -> None:
    lines = [_line("O", 36), _line("Chapter One Begins", 24), _line("§", 30), _line("Body", 12)]

    assert discover_heading_tiers(lines, 12) == [24.0]
