"""Adobe glyph-name to Unicode resolution.

The lookup table is derived once, on first use, from the Adobe Glyph List
bundled with :mod:`pypdf` and exposed read-only afterwards.
"""

from __future__ import annotations

from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from pypdf._codecs import adobe_glyphs

__all__ = ["glyph_table", "glyph_to_unicode"]

_HEX_DIGITS = frozenset("0123456789ABCDEFabcdef")


@lru_cache(maxsize=1)
def glyph_table() -> Mapping[str, str]:
    """Return the process-wide glyph-name table keyed without the leading slash."""

    table = {name.lstrip("/"): value for name, value in adobe_glyphs.items()}
    return MappingProxyType(table)


def _scalar(code: int) -> str | None:
    if 0xD800 <= code <= 0xDFFF or code > 0x10FFFF:
        return None
    return chr(code)


def _parse_uni(hex_part: str) -> str | None:
    # ``uniXXXX`` may chain several four-digit BMP values (``uni00410042``).
    if not hex_part or len(hex_part) % 4 or not set(hex_part) <= _HEX_DIGITS:
        return None
    chars: list[str] = []
    for start in range(0, len(hex_part), 4):
        char = _scalar(int(hex_part[start : start + 4], 16))
        if char is None:
            return None
        chars.append(char)
    return "".join(chars)


def _parse_u(hex_part: str) -> str | None:
    if not 4 <= len(hex_part) <= 6 or not set(hex_part) <= _HEX_DIGITS:
        return None
    return _scalar(int(hex_part, 16))


def glyph_to_unicode(name: str | None) -> str | None:
    """Resolve a glyph name such as ``/Aacute``, ``uni00E9`` or ``u1F600``."""

    if not name:
        return None
    name = name.lstrip("/")
    # Suffixed variants (``a.sc``, ``f_i.alt``) map like their base glyph.
    base = name.split(".", 1)[0] if "." in name[1:] else name
    table = glyph_table()
    for candidate in (name, base):
        value = table.get(candidate)
        if value is not None:
            return value
    if base.startswith("uni"):
        parsed = _parse_uni(base[3:])
        if parsed is not None:
            return parsed
    if base.startswith("u"):
        parsed = _parse_u(base[1:])
        if parsed is not None:
            return parsed
    if "_" in base:
        # Ligature names such as ``f_f_i`` combine their components.
        parts = [glyph_to_unicode(part) for part in base.split("_")]
        if all(parts):
            return "".join(parts)  # type: ignore[arg-type]
    return None
