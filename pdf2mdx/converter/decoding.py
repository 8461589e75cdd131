"""Character decoding as a short-circuiting chain of strategies.

Each strategy takes the raw bytes of a shown string plus a
:class:`DecodeContext` and returns the decoded text, or ``None`` to let the
next strategy try.  The chain always ends with Latin-1, which cannot fail.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass, field
from typing import Callable, Mapping

from .cmap import CMapRegistry, ToUnicodeCMap
from .fonts import ResolvedFont
from .text import normalise_text_content

__all__ = [
    "DECODE_STRATEGIES",
    "DecodeContext",
    "decode_latin1",
    "decode_string",
    "decode_utf16_bom",
    "decode_with_base_font",
    "decode_with_builtin_encoding",
    "decode_with_differences",
    "decode_with_font_object",
    "decode_with_resource_name",
    "decode_with_tounicode_object",
]


@dataclass(frozen=True, slots=True)
class DecodeContext:
    """Inputs a strategy may consult; ``page_cmaps`` is keyed by resource name."""

    font: ResolvedFont | None
    registry: CMapRegistry
    page_cmaps: Mapping[str, ToUnicodeCMap] = field(default_factory=dict)

    @property
    def code_width(self) -> int:
        return self.font.code_width if self.font is not None else 1


Strategy = Callable[[bytes, DecodeContext], "str | None"]


def _apply_cmap(cmap: ToUnicodeCMap | None, data: bytes, context: DecodeContext) -> str | None:
    if cmap is None:
        return None
    text, mapped = cmap.translate(data, context.code_width)
    return text if mapped else None


def decode_with_tounicode_object(data: bytes, context: DecodeContext) -> str | None:
    font = context.font
    if font is None:
        return None
    if font.tounicode_obj is None:
        # Direct (non-indirect) CMap streams have no object number to key on.
        return _apply_cmap(font.cmap, data, context)
    return _apply_cmap(context.registry.by_tounicode(font.tounicode_obj), data, context)


def decode_with_font_object(data: bytes, context: DecodeContext) -> str | None:
    font = context.font
    if font is None:
        return None
    return _apply_cmap(context.registry.by_font_object(font.font_key, font.font_obj), data, context)


def decode_with_base_font(data: bytes, context: DecodeContext) -> str | None:
    font = context.font
    if font is None:
        return None
    return _apply_cmap(context.registry.by_base_font(font.font_key), data, context)


def decode_with_resource_name(data: bytes, context: DecodeContext) -> str | None:
    font = context.font
    if font is None:
        return None
    return _apply_cmap(context.page_cmaps.get(font.resource_name), data, context)


def _byte_from_table(table: tuple[str, ...] | None, byte: int) -> str | None:
    if table is None or byte >= len(table):
        return None
    value = table[byte]
    return None if value == "\x00" else value


def decode_with_differences(data: bytes, context: DecodeContext) -> str | None:
    font = context.font
    if font is None or not font.differences or font.is_cid:
        return None
    chars: list[str] = []
    for byte in data:
        value = font.differences.get(byte)
        if value is None:
            value = _byte_from_table(font.base_encoding, byte)
        chars.append(value if value is not None else chr(byte))
    return "".join(chars)


def decode_with_builtin_encoding(data: bytes, context: DecodeContext) -> str | None:
    font = context.font
    if font is None or font.base_encoding is None:
        return None
    chars: list[str] = []
    for byte in data:
        value = _byte_from_table(font.base_encoding, byte)
        chars.append(value if value is not None else chr(byte))
    return "".join(chars)


def decode_utf16_bom(data: bytes, context: DecodeContext) -> str | None:
    if not data.startswith(codecs.BOM_UTF16_BE):
        return None
    return data[2:].decode("utf-16-be", "replace")


def decode_latin1(data: bytes, context: DecodeContext) -> str | None:
    return data.decode("latin-1")


DECODE_STRATEGIES: tuple[Strategy, ...] = (
    decode_with_tounicode_object,
    decode_with_font_object,
    decode_with_base_font,
    decode_with_resource_name,
    decode_with_differences,
    decode_with_builtin_encoding,
    decode_utf16_bom,
    decode_latin1,
)


def decode_string(data: bytes, context: DecodeContext) -> str:
    """Run ``data`` through :data:`DECODE_STRATEGIES`; the first success wins."""

    for strategy in DECODE_STRATEGIES:
        text = strategy(data, context)
        if text is not None:
            return normalise_text_content(text.replace("\x00", ""), strip=False)
    return ""
