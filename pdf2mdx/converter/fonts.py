"""Font resolution: encodings, glyph widths and style traits per resource."""

from __future__ import annotations

from dataclasses import dataclass, field
from statistics import fmean
from types import MappingProxyType
from typing import Any, Mapping

from pypdf._codecs import charset_encoding
from pypdf.generic import ArrayObject, DictionaryObject, IndirectObject, NameObject, StreamObject

from ..core.utils import get_logger
from .cmap import CMapRegistry, ToUnicodeCMap
from .constants import DEFAULT_CID_WIDTH, DEFAULT_GLYPH_WIDTH
from .glyphs import glyph_to_unicode
from .text import font_traits, is_monospace_font, strip_subset_prefix

__all__ = [
    "FontWidthInfo",
    "PageFonts",
    "ResolvedFont",
    "collect_font_dictionaries",
    "parse_cid_widths",
    "parse_differences",
    "resolve_font",
    "resolve_page_fonts",
]

LOGGER = get_logger("pdf2mdx.converter.fonts")

_FIXED_PITCH_FLAG = 1


def _resolve_indirect(obj: object | None) -> Any:
    if isinstance(obj, IndirectObject):
        try:
            return obj.get_object()
        except Exception:
            return None
    return obj


def _object_number(reference: object | None) -> int | None:
    if isinstance(reference, IndirectObject):
        return reference.idnum
    indirect = getattr(reference, "indirect_reference", None)
    if isinstance(indirect, IndirectObject):
        return indirect.idnum
    return None


def _to_float(value: object, default: float = 0.0) -> float:
    value = _resolve_indirect(value)
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _name(value: object) -> str:
    value = _resolve_indirect(value)
    if value is None:
        return ""
    return str(value).lstrip("/")


@dataclass(frozen=True, slots=True)
class FontWidthInfo:
    """Glyph advance widths for one font, in glyph-space units."""

    widths: Mapping[int, float] = field(default_factory=dict)
    default_width: float = DEFAULT_GLYPH_WIDTH
    space_width: float | None = None
    is_cid: bool = False
    unit_scale: float = 0.001

    def width_of(self, code: int) -> float:
        return self.widths.get(code, self.default_width)

    def space_width_per_mille(self) -> float | None:
        """Space-glyph width expressed in thousandths of an em."""

        if self.space_width is None or self.space_width <= 0:
            return None
        return self.space_width * self.unit_scale * 1000.0


@dataclass(frozen=True, slots=True)
class ResolvedFont:
    """Everything the interpreter needs to decode and measure one font resource."""

    resource_name: str
    base_font: str = ""
    font_key: str = ""
    subtype: str = ""
    widths: FontWidthInfo = field(default_factory=FontWidthInfo)
    differences: Mapping[int, str] = field(default_factory=dict)
    base_encoding: tuple[str, ...] | None = None
    cmap: ToUnicodeCMap | None = None
    font_obj: int | None = None
    tounicode_obj: int | None = None
    bold: bool = False
    italic: bool = False
    monospace: bool = False

    @property
    def is_cid(self) -> bool:
        return self.widths.is_cid

    @property
    def code_width(self) -> int:
        return 2 if self.is_cid else 1

    def codes(self, data: bytes) -> list[int]:
        width = self.code_width
        return [int.from_bytes(data[index : index + width], "big") for index in range(0, len(data) - width + 1, width)]


PageFonts = Mapping[str, ResolvedFont]


def collect_font_dictionaries(font_obj: DictionaryObject) -> list[DictionaryObject]:
    dictionaries = [font_obj]
    descendants = _resolve_indirect(font_obj.get(NameObject("/DescendantFonts")))
    if isinstance(descendants, ArrayObject):
        for entry in descendants:
            resolved = _resolve_indirect(entry)
            if isinstance(resolved, DictionaryObject):
                dictionaries.append(resolved)
    return dictionaries


def parse_differences(differences: object) -> dict[int, str]:
    """Map byte codes to Unicode from a ``/Differences`` array."""

    mapping: dict[int, str] = {}
    differences = _resolve_indirect(differences)
    if not isinstance(differences, ArrayObject):
        return mapping
    code: int | None = None
    for entry in differences:
        entry = _resolve_indirect(entry)
        if isinstance(entry, NameObject):
            if code is None:
                continue
            value = glyph_to_unicode(str(entry))
            if value:
                mapping[code] = value
            code += 1
            continue
        try:
            code = int(entry)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            continue
    return mapping


def _base_encoding(encoding: object, base_font: str) -> tuple[str, ...] | None:
    name: str | None = None
    if isinstance(encoding, NameObject):
        name = str(encoding)
    elif isinstance(encoding, DictionaryObject):
        base = _resolve_indirect(encoding.get(NameObject("/BaseEncoding")))
        if isinstance(base, NameObject):
            name = str(base)
    if name is None:
        lowered = base_font.lower()
        if lowered.startswith("symbol"):
            name = "/Symbol"
        elif lowered.startswith("zapfdingbats"):
            name = "/ZapfDingbats"
    if name is None:
        return None
    table = charset_encoding.get(name)
    return tuple(table) if table is not None else None


def _descriptor(font: DictionaryObject) -> DictionaryObject | None:
    descriptor = _resolve_indirect(font.get(NameObject("/FontDescriptor")))
    return descriptor if isinstance(descriptor, DictionaryObject) else None


def _simple_widths(font: DictionaryObject) -> tuple[dict[int, float], float]:
    widths: dict[int, float] = {}
    first_char = int(_to_float(font.get(NameObject("/FirstChar")), 0.0))
    array = _resolve_indirect(font.get(NameObject("/Widths")))
    if isinstance(array, ArrayObject):
        for offset, value in enumerate(array):
            widths[first_char + offset] = _to_float(value)
    descriptor = _descriptor(font)
    missing = _to_float(descriptor.get(NameObject("/MissingWidth")), 0.0) if descriptor is not None else 0.0
    if missing > 0:
        return widths, missing
    non_zero = [value for value in widths.values() if value > 0]
    if non_zero:
        return widths, fmean(non_zero)
    return widths, DEFAULT_GLYPH_WIDTH


def parse_cid_widths(array: object) -> dict[int, float]:
    """Parse a CID font ``/W`` array in both ``c [w1 w2 …]`` and ``c1 c2 w`` forms."""

    widths: dict[int, float] = {}
    array = _resolve_indirect(array)
    if not isinstance(array, ArrayObject):
        return widths
    entries = [_resolve_indirect(entry) for entry in array]
    index = 0
    while index < len(entries):
        first = entries[index]
        following = entries[index + 1] if index + 1 < len(entries) else None
        if isinstance(following, ArrayObject):
            start = int(_to_float(first))
            for offset, value in enumerate(following):
                widths[start + offset] = _to_float(value)
            index += 2
            continue
        if index + 2 < len(entries):
            start = int(_to_float(first))
            end = int(_to_float(following))
            width = _to_float(entries[index + 2])
            # Ranges wider than the CID space are malformed; skip them.
            if 0 <= end - start <= 0xFFFF:
                for code in range(start, end + 1):
                    widths[code] = width
            index += 3
            continue
        break
    return widths


def _width_info(font: DictionaryObject, subtype: str, cmap: ToUnicodeCMap | None) -> FontWidthInfo:
    if subtype == "Type0":
        dictionaries = collect_font_dictionaries(font)
        descendant = dictionaries[1] if len(dictionaries) > 1 else font
        widths = parse_cid_widths(descendant.get(NameObject("/W")))
        default = _to_float(descendant.get(NameObject("/DW")), DEFAULT_CID_WIDTH) or DEFAULT_CID_WIDTH
        space_width = None
        if cmap is not None:
            space_code = cmap.code_for(" ")
            if space_code is not None:
                space_width = widths.get(space_code, default)
        return FontWidthInfo(
            widths=MappingProxyType(widths),
            default_width=default,
            space_width=space_width,
            is_cid=True,
            unit_scale=0.001,
        )

    widths, default = _simple_widths(font)
    unit_scale = 0.001
    if subtype == "Type3":
        matrix = _resolve_indirect(font.get(NameObject("/FontMatrix")))
        if isinstance(matrix, ArrayObject) and matrix:
            unit_scale = abs(_to_float(matrix[0], 0.001)) or 0.001
    space_width = widths.get(32)
    return FontWidthInfo(
        widths=MappingProxyType(widths),
        default_width=default,
        space_width=space_width if space_width else None,
        is_cid=False,
        unit_scale=unit_scale,
    )


def _load_cmap(
    font: DictionaryObject,
    *,
    tounicode_obj: int | None,
    font_key: str,
    registry: CMapRegistry,
) -> ToUnicodeCMap | None:
    reference = font.get(NameObject("/ToUnicode"))
    if reference is None:
        return None
    cached = registry.by_tounicode(tounicode_obj)
    if cached is not None:
        return cached
    stream = _resolve_indirect(reference)
    cmap: ToUnicodeCMap | None = None
    if isinstance(stream, StreamObject):
        try:
            cmap = ToUnicodeCMap.parse(stream.get_data())
        except Exception:
            LOGGER.debug("Unable to read ToUnicode stream for %s", font_key, exc_info=True)
    if cmap is None:
        cmap = registry.recover(tounicode_obj, font_key)
        if cmap is not None:
            LOGGER.debug("Recovered ToUnicode CMap for %s from raw bytes", font_key)
    return cmap


def resolve_font(resource_name: str, reference: object, registry: CMapRegistry) -> ResolvedFont | None:
    """Resolve one ``/Font`` resource entry; ``None`` when it is not a dictionary."""

    font = _resolve_indirect(reference)
    if not isinstance(font, DictionaryObject):
        return None
    font_obj = _object_number(reference)
    subtype = _name(font.get(NameObject("/Subtype")))
    font_key = _name(font.get(NameObject("/BaseFont")))
    if not font_key and subtype == "Type3":
        font_key = _name(font.get(NameObject("/Name")))
    base_font = strip_subset_prefix(font_key)
    tounicode_obj = _object_number(font.get(NameObject("/ToUnicode")))

    cmap = _load_cmap(font, tounicode_obj=tounicode_obj, font_key=font_key, registry=registry)
    if cmap is not None:
        registry.register(cmap, tounicode_obj=tounicode_obj, base_font=font_key, font_obj=font_obj)

    encoding = _resolve_indirect(font.get(NameObject("/Encoding")))
    differences: dict[int, str] = {}
    if isinstance(encoding, DictionaryObject):
        differences = parse_differences(encoding.get(NameObject("/Differences")))

    bold, italic = font_traits(base_font)
    monospace = is_monospace_font(base_font)
    for dictionary in collect_font_dictionaries(font):
        descriptor = _descriptor(dictionary)
        if descriptor is None:
            continue
        flags = int(_to_float(descriptor.get(NameObject("/Flags")), 0.0))
        if flags & _FIXED_PITCH_FLAG:
            monospace = True

    return ResolvedFont(
        resource_name=resource_name,
        base_font=base_font,
        font_key=font_key,
        subtype=subtype,
        widths=_width_info(font, subtype, cmap),
        differences=MappingProxyType(differences),
        base_encoding=None if subtype == "Type0" else _base_encoding(encoding, base_font),
        cmap=cmap,
        font_obj=font_obj,
        tounicode_obj=tounicode_obj,
        bold=bold,
        italic=italic,
        monospace=monospace,
    )


def resolve_page_fonts(resources: object, registry: CMapRegistry) -> PageFonts:
    """Build the read-only resource-name → :class:`ResolvedFont` table for ``resources``."""

    fonts: dict[str, ResolvedFont] = {}
    resources = _resolve_indirect(resources)
    if not isinstance(resources, DictionaryObject):
        return MappingProxyType(fonts)
    font_dict = _resolve_indirect(resources.get(NameObject("/Font")))
    if not isinstance(font_dict, DictionaryObject):
        return MappingProxyType(fonts)
    for key, reference in font_dict.items():
        name = str(key).lstrip("/")
        try:
            resolved = resolve_font(name, reference, registry)
        except Exception:
            LOGGER.debug("Skipping unreadable font resource %s", name, exc_info=True)
            continue
        if resolved is not None:
            fonts[name] = resolved
    return MappingProxyType(fonts)
