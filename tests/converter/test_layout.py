from __future__ import annotations

from pdf2mdx.converter import TextItem, group_into_lines
from pdf2mdx.converter.columns import detect_columns, find_gutters, is_column_spanning, reading_segments
from pdf2mdx.converter.lines import group_by_position, is_page_number_item, stream_order_reliable
from pdf2mdx.converter.text import font_traits, is_monospace_font, join_line_items, strip_subset_prefix


def _item(text: str, x: float, y: float, width: float = 0.0, size: float = 12.0, **kwargs: object) -> TextItem:
    return TextItem(text=text, x=x, y=y, width=width, font_size=size, **kwargs)  # type: ignore[arg-type]


def _two_columns() -> list[TextItem]:
    items = []
    for row in range(20):
        y = 700 - 14 * row
        items.append(_item(f"left {row}", 50, y, width=200))
        items.append(_item(f"right {row}", 320, y, width=200))
    return items


def test_font_traits_from_names() -> None:
    assert font_traits("ABCDEF+Times-BoldItalic") == (True, True)
    assert font_traits("Helvetica-Oblique") == (False, True)
    assert font_traits("Roboto-Medium") == (True, False)
    assert font_traits("Roboto-MediumItalic") == (False, True)
    assert font_traits("MinionPro-It") == (False, True)
    assert font_traits(None) == (False, False)
    assert is_monospace_font("ABCDEF+SourceCodePro-Regular")
    assert not is_monospace_font("Helvetica")
    assert strip_subset_prefix("/ABCDEF+Arial") == "Arial"


def test_join_line_items_spacing() -> None:
    items = [
        _item("Hello", 72, 700, width=30),
        _item("World", 108, 700, width=32),
        _item("s", 140.5, 700, width=6),
        _item("2", 147, 704, width=4, size=7),
    ]
    assert join_line_items(items) == "Hello Worlds2"
    assert join_line_items([_item("well-", 72, 700, width=30), _item("known", 110, 700, width=30)]) == "well-known"


def test_group_into_lines_by_baseline() -> None:
    items = [
        _item("Hello", 72, 700, width=30),
        _item("World", 108, 701, width=32),
        _item("Next line", 72, 686, width=54),
    ]
    lines = group_into_lines(items)

    assert [line.text() for line in lines] == ["Hello World", "Next line"]
    assert lines[0].y == 700
    assert lines[0].page == 1


def test_group_into_lines_separates_pages_and_drops_page_numbers() -> None:
    items = [
        _item("First page", 72, 700, width=60),
        _item("12", 300, 40, width=12),
        _item("Second page", 72, 700, width=66, page=2),
    ]
    lines = group_into_lines(items)

    assert [(line.page, line.text()) for line in lines] == [(1, "First page"), (2, "Second page")]
    kept = group_into_lines(items, remove_page_numbers=False)
    assert [line.text() for line in kept] == ["First page", "12", "Second page"]
    assert is_page_number_item(items[1])


def test_group_by_stream_splits_restarts_and_backtracks() -> None:
    items = [
        _item("one", 72, 700, width=20),
        _item("two", 72, 700, width=20),
        _item("three", 200, 700, width=30),
        _item("four", 100, 700, width=25),
    ]
    assert [line.text() for line in group_into_lines(items)] == ["one", "two three", "four"]


def test_unreliable_stream_order_falls_back_to_position() -> None:
    items = [
        _item("bottom", 72, 100, width=40),
        _item("top", 72, 700, width=20),
        _item("lower", 72, 200, width=30),
        _item("upper", 72, 600, width=30),
    ]
    assert not stream_order_reliable(items)
    assert [line.text() for line in group_by_position(items)] == ["top", "upper", "lower", "bottom"]
    assert [line.text() for line in group_into_lines(items)] == ["top", "upper", "lower", "bottom"]


def test_two_columns_are_read_left_then_right() -> None:
    items = _two_columns()

    gutters = find_gutters(items, 612)
    assert len(gutters) == 1
    assert 250 <= gutters[0].start < gutters[0].end <= 320
    columns = detect_columns(items, 612)
    assert len(columns) == 2

    lines = group_into_lines(items, page_width=612)
    assert len(lines) == 40
    assert all(line.x == 50 for line in lines[:20])
    assert all(line.x == 320 for line in lines[20:])
    assert lines[0].text() == "left 0"
    assert lines[20].text() == "right 0"


def test_prose_is_a_single_column() -> None:
    items = [_item(f"line {row}", 72, 700 - 14 * row, width=400) for row in range(20)]

    assert find_gutters(items, 612) == []
    assert len(detect_columns(items, 612)) == 1
    assert reading_segments(items, 612) == [items]


def test_spanning_title_forms_a_band() -> None:
    title = _item("A title running across both columns", 50, 760, width=470)
    items = [title] + _two_columns()
    columns = detect_columns(items, 612)

    assert is_column_spanning(title, columns)
    segments = reading_segments(items, 612)
    assert segments[0] == [title]
    assert all(item.x == 50 for item in segments[1])
    assert all(item.x == 320 for item in segments[2])
