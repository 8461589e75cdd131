"""ToUnicode CMap parsing and raw-byte stream recovery.

Two sources feed the decoder: CMap streams reached through the pypdf object
model, and a fallback scan of the raw document bytes for files (linearized
or otherwise damaged ones) whose ``/ToUnicode`` streams pypdf cannot expose.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from types import MappingProxyType
from typing import Mapping
import zlib

from ..core.parser import search_object_offset
from ..core.utils import get_logger
from .glyphs import glyph_to_unicode
from .text import strip_subset_prefix

__all__ = [
    "CMapRegistry",
    "RawCMapIndex",
    "ToUnicodeCMap",
    "extract_stream_from_raw_pdf",
    "scan_raw_cmaps",
]

LOGGER = get_logger("pdf2mdx.converter.cmap")

_BFCHAR_BLOCK = re.compile(rb"beginbfchar(.*?)endbfchar", re.DOTALL)
_BFRANGE_BLOCK = re.compile(rb"beginbfrange(.*?)endbfrange", re.DOTALL)
_HEX = rb"<([0-9A-Fa-f\s]*)>"
_BFCHAR_ENTRY = re.compile(_HEX + rb"\s*(?:" + _HEX + rb"|/([^\s<>\[\]()/%]+))")
_BFRANGE_ENTRY = re.compile(_HEX + rb"\s*" + _HEX + rb"\s*(?:" + _HEX + rb"|\[(.*?)\])", re.DOTALL)
_HEX_STRING = re.compile(_HEX)
_TOUNICODE_REF = re.compile(rb"/ToUnicode\s+(\d+)\s+(\d+)\s+R")
_FONT_TYPE = re.compile(rb"/Type\s*/Font\b")
_BASE_FONT = re.compile(rb"/BaseFont\s*/([^\s/<>\[\]()%]+)")


def _hex_bytes(token: bytes) -> bytes:
    cleaned = re.sub(rb"\s+", b"", token)
    if len(cleaned) % 2:
        cleaned += b"0"
    return bytes.fromhex(cleaned.decode("ascii"))


def _hex_code(token: bytes) -> tuple[int, int]:
    raw = _hex_bytes(token)
    return int.from_bytes(raw, "big") if raw else 0, max(len(raw), 1)


def _hex_unicode(token: bytes) -> str:
    raw = _hex_bytes(token)
    if len(raw) == 1:
        return chr(raw[0])
    if len(raw) % 2:
        raw = b"\x00" + raw
    return raw.decode("utf-16-be", "replace")


def _is_control(char: str) -> bool:
    code = ord(char)
    return code < 0x20 or 0x7F <= code < 0xA0


@dataclass(frozen=True, slots=True)
class ToUnicodeCMap:
    """CID→Unicode table: exact entries plus ordered ``(start, end, base)`` ranges."""

    mappings: Mapping[int, str]
    ranges: tuple[tuple[int, int, str], ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.mappings, MappingProxyType):
            object.__setattr__(self, "mappings", MappingProxyType(dict(self.mappings)))

    @classmethod
    def parse(cls, content: bytes | str) -> "ToUnicodeCMap | None":
        if isinstance(content, str):
            content = content.encode("latin-1", "ignore")
        mappings: dict[int, str] = {}
        ranges: list[tuple[int, int, str]] = []
        for block in _BFCHAR_BLOCK.findall(content):
            for src, dst, name in _BFCHAR_ENTRY.findall(block):
                code, _ = _hex_code(src)
                if name:
                    value = glyph_to_unicode(name.decode("latin-1"))
                    if value:
                        mappings[code] = value
                    continue
                value = _hex_unicode(dst)
                if value:
                    mappings[code] = value

        for block in _BFRANGE_BLOCK.findall(content):
            for start_tok, end_tok, base_tok, array in _BFRANGE_ENTRY.findall(block):
                start, _ = _hex_code(start_tok)
                end, _ = _hex_code(end_tok)
                if end < start:
                    continue
                if array:
                    for offset, token in enumerate(_HEX_STRING.findall(array)):
                        if start + offset > end:
                            break
                        value = _hex_unicode(token)
                        if value:
                            mappings[start + offset] = value
                    continue
                base = _hex_unicode(base_tok)
                if base:
                    ranges.append((start, end, base))

        if not mappings and not ranges:
            return None
        return cls(mappings=MappingProxyType(mappings), ranges=tuple(ranges))

    def lookup(self, code: int) -> str | None:
        value = self.mappings.get(code)
        if value is not None:
            return value
        for start, end, base in self.ranges:
            if start <= code <= end:
                shifted = ord(base[-1]) + code - start
                if shifted > 0x10FFFF or 0xD800 <= shifted <= 0xDFFF:
                    return None
                return base[:-1] + chr(shifted)
        return None

    def translate(self, data: bytes, code_width: int = 2) -> tuple[str, int]:
        """Decode ``data`` and report how many codes the table actually mapped."""

        code_width = max(code_width, 1)
        chars: list[str] = []
        mapped = 0
        for index in range(0, len(data) - code_width + 1, code_width):
            code = int.from_bytes(data[index : index + code_width], "big")
            value = self.lookup(code)
            if value is not None:
                mapped += 1
                chars.append(value)
                continue
            if code <= 0x10FFFF and not 0xD800 <= code <= 0xDFFF:
                fallback = chr(code)
                if not _is_control(fallback):
                    chars.append(fallback)
        return "".join(chars), mapped

    def decode(self, data: bytes, code_width: int = 2) -> str:
        return self.translate(data, code_width)[0]

    def decode_cids(self, data: bytes) -> str:
        return self.translate(data, 2)[0]

    def code_for(self, text: str) -> int | None:
        """Return the first code mapped to ``text`` (used to find the space glyph)."""

        for code, value in self.mappings.items():
            if value == text:
                return code
        for start, end, base in self.ranges:
            if len(base) == 1 and len(text) == 1:
                delta = ord(text) - ord(base)
                if 0 <= delta <= end - start:
                    return start + delta
        return None


def extract_stream_from_raw_pdf(data: bytes, obj_num: int, generation: int = 0) -> bytes | None:
    """Return the (inflated) body of ``obj_num``'s stream by scanning raw bytes."""

    offset = search_object_offset(data, (obj_num, generation))
    if offset is None:
        return None
    end_obj = data.find(b"endobj", offset)
    stream_at = data.find(b"stream", offset, end_obj if end_obj != -1 else len(data))
    if stream_at == -1:
        return None
    header = data[offset:stream_at]
    start = stream_at + len(b"stream")
    if data[start : start + 2] == b"\r\n":
        start += 2
    elif data[start : start + 1] in (b"\r", b"\n"):
        start += 1
    end = data.find(b"endstream", start)
    if end == -1:
        return None
    body = data[start:end]
    if body.endswith(b"\r\n"):
        body = body[:-2]
    elif body.endswith((b"\n", b"\r")):
        body = body[:-1]
    if b"FlateDecode" not in header:
        return body
    try:
        return zlib.decompress(body)
    except zlib.error:
        inflater = zlib.decompressobj()
        try:
            return inflater.decompress(body)
        except zlib.error:
            LOGGER.debug("Unable to inflate raw stream for object %d", obj_num)
            return body


@dataclass(slots=True)
class RawCMapIndex:
    """CMaps recovered from raw document bytes, by object number and font name."""

    by_object: dict[int, ToUnicodeCMap] = field(default_factory=dict)
    by_font: dict[str, ToUnicodeCMap] = field(default_factory=dict)

    def get(self, font_name: str) -> ToUnicodeCMap | None:
        name = strip_subset_prefix(font_name)
        cmap = self.by_font.get(name)
        if cmap is not None:
            return cmap
        # Resource names such as ``F1`` rarely match; only compare meaningful names.
        stripped = name[1:] if name.startswith("F") else name
        if len(stripped) < 4:
            return None
        for candidate in sorted(self.by_font):
            if stripped in candidate or candidate in stripped:
                return self.by_font[candidate]
        return None

    def __bool__(self) -> bool:
        return bool(self.by_object or self.by_font)


def scan_raw_cmaps(data: bytes) -> RawCMapIndex:
    """Collect every ``/ToUnicode`` stream and the fonts that reference it."""

    index = RawCMapIndex()
    for match in _TOUNICODE_REF.finditer(data):
        obj_num = int(match.group(1))
        if obj_num in index.by_object:
            continue
        stream = extract_stream_from_raw_pdf(data, obj_num, int(match.group(2)))
        if not stream:
            continue
        cmap = ToUnicodeCMap.parse(stream)
        if cmap is not None:
            index.by_object[obj_num] = cmap

    if not index.by_object:
        return index

    for match in _FONT_TYPE.finditer(data):
        dict_start = data.rfind(b"<<", 0, match.start())
        if dict_start == -1:
            continue
        end_obj = data.find(b"endobj", match.end())
        region = data[dict_start : end_obj if end_obj != -1 else match.end() + 4096]
        base_font = _BASE_FONT.search(region)
        reference = _TOUNICODE_REF.search(region)
        if base_font is None or reference is None:
            continue
        cmap = index.by_object.get(int(reference.group(1)))
        if cmap is None:
            continue
        name = strip_subset_prefix(base_font.group(1).decode("latin-1"))
        index.by_font.setdefault(name, cmap)
    return index


class CMapRegistry:
    """Document-wide CMap lookup keyed the ways fonts refer to their CMaps.

    The raw-byte index is only built when a lookup misses, so documents whose
    CMaps are all reachable through the object model never pay for the scan.
    """

    def __init__(self, raw_bytes: bytes | None = None) -> None:
        self._by_tounicode: dict[int, ToUnicodeCMap] = {}
        self._by_font_object: dict[tuple[str, int], ToUnicodeCMap] = {}
        self._by_base_font: dict[str, ToUnicodeCMap] = {}
        self._raw_bytes = raw_bytes
        self._raw_index: RawCMapIndex | None = None

    @property
    def raw_index(self) -> RawCMapIndex:
        if self._raw_index is None:
            if self._raw_bytes:
                self._raw_index = scan_raw_cmaps(self._raw_bytes)
                LOGGER.debug("Recovered %d ToUnicode streams from raw bytes", len(self._raw_index.by_object))
            else:
                self._raw_index = RawCMapIndex()
        return self._raw_index

    def register(
        self,
        cmap: ToUnicodeCMap,
        *,
        tounicode_obj: int | None = None,
        base_font: str | None = None,
        font_obj: int | None = None,
    ) -> None:
        if tounicode_obj is not None:
            self._by_tounicode.setdefault(tounicode_obj, cmap)
        if base_font:
            if font_obj is not None:
                self._by_font_object.setdefault((base_font, font_obj), cmap)
            self._by_base_font.setdefault(base_font, cmap)

    def by_tounicode(self, obj_num: int | None) -> ToUnicodeCMap | None:
        if obj_num is None:
            return None
        return self._by_tounicode.get(obj_num)

    def by_font_object(self, base_font: str | None, obj_num: int | None) -> ToUnicodeCMap | None:
        if not base_font or obj_num is None:
            return None
        return self._by_font_object.get((base_font, obj_num))

    def by_base_font(self, base_font: str | None) -> ToUnicodeCMap | None:
        if not base_font:
            return None
        return self._by_base_font.get(base_font)

    def recover(self, tounicode_obj: int | None, base_font: str | None) -> ToUnicodeCMap | None:
        """Look a CMap up in the raw-byte index for a font whose stream could not be read."""

        index = self.raw_index
        if tounicode_obj is not None:
            cmap = index.by_object.get(tounicode_obj)
            if cmap is not None:
                return cmap
        if base_font:
            return index.get(base_font)
        return None
