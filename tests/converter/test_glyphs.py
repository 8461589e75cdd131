from __future__ import annotations

import pytest

from pdf2mdx.converter.glyphs import glyph_table, glyph_to_unicode


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("/Aacute", "Á"),
        ("eacute", "é"),
        ("bullet", "•"),
        ("uni00E9", "é"),
        ("uni00410042", "AB"),
        ("u1F600", "\U0001F600"),
        ("a.sc", "a"),
        ("f_i", "fi"),
    ],
)
def test_glyph_names_resolve(name: str, expected: str) -> None:
    assert glyph_to_unicode(name) == expected


@pytest.mark.parametrize("name", [None, "", "notaglyph", "uniD800", "uni12", "u12"])
def test_unknown_glyph_names_return_none(name: str | None) -> None:
    assert glyph_to_unicode(name) is None


def test_glyph_table_is_read_only() -> None:
    table = glyph_table()
    assert table["A"] == "A"
    assert glyph_table() is table
    with pytest.raises(TypeError):
        table["A"] = "B"  # type: ignore[index]
