"""Content-stream interpretation into positioned :class:`TextItem` objects.

The interpreter is a small virtual machine over two explicit state records:
:class:`GraphicsState` (the CTM and its ``q``/``Q`` stack) and
:class:`TextState` (text/line matrices and text parameters).  Operators are
dispatched through a table keyed by the operator bytes pypdf reports; any
operator missing from the table is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from math import hypot
from typing import Any, Callable, ClassVar, Mapping, Sequence

from pypdf import PageObject, PdfReader
from pypdf.generic import ArrayObject, ContentStream, DictionaryObject, IndirectObject, NameObject, StreamObject

from ..core.utils import get_logger
from .cmap import CMapRegistry, ToUnicodeCMap
from .constants import (
    FORM_RECURSION_LIMIT,
    TEXT_LEADING_FACTOR,
    TJ_SPACE_THRESHOLD_DEFAULT,
    TJ_SPACE_THRESHOLD_MAX,
    TJ_SPACE_THRESHOLD_MIN,
)
from .decoding import DecodeContext, decode_string
from .fonts import PageFonts, ResolvedFont, resolve_page_fonts
from .matrix import IDENTITY_MATRIX, Matrix, apply, as_matrix, multiply, rendered_scale, translate
from .types import ItemKind, TextItem

__all__ = [
    "ContentStreamInterpreter",
    "GraphicsState",
    "TextState",
    "extract_links",
    "interpret_page",
    "parse_operations",
    "tj_space_threshold",
]

LOGGER = get_logger("pdf2mdx.converter.interpreter")

# A TJ displacement this far past the space threshold reads as a tab stop and
# splits the run into separate items.
_TJ_SPLIT_ADJUSTMENT = 2000.0


def _resolve_indirect(obj: object | None) -> Any:
    if isinstance(obj, IndirectObject):
        try:
            return obj.get_object()
        except Exception:
            return None
    return obj


def _string_bytes(operand: object) -> bytes | None:
    if isinstance(operand, (bytes, bytearray)):
        return bytes(operand)
    if isinstance(operand, str):
        original = getattr(operand, "original_bytes", None)
        if isinstance(original, bytes):
            return original
        return operand.encode("latin-1", "ignore")
    return None


def _number(operand: object) -> float:
    return float(operand)  # type: ignore[arg-type]


def tj_space_threshold(font: ResolvedFont | None) -> float:
    """Per-mille displacement beyond which a TJ adjustment reads as a space."""

    if font is None:
        return TJ_SPACE_THRESHOLD_DEFAULT
    space = font.widths.space_width_per_mille()
    if space is None:
        return TJ_SPACE_THRESHOLD_DEFAULT
    return min(max(0.5 * space, TJ_SPACE_THRESHOLD_MIN), TJ_SPACE_THRESHOLD_MAX)


@dataclass(slots=True)
class TextState:
    """Text object state: matrices plus the text parameters ``q``/``Q`` save."""

    text_matrix: Matrix = IDENTITY_MATRIX
    line_matrix: Matrix = IDENTITY_MATRIX
    font: ResolvedFont | None = None
    font_name: str = ""
    font_size: float = 12.0
    char_spacing: float = 0.0
    word_spacing: float = 0.0
    horizontal_scaling: float = 100.0
    leading: float = 0.0
    in_text: bool = False

    def begin(self) -> None:
        self.text_matrix = IDENTITY_MATRIX
        self.line_matrix = IDENTITY_MATRIX
        self.in_text = True

    def parameters(self) -> tuple[Any, ...]:
        return (
            self.font,
            self.font_name,
            self.font_size,
            self.char_spacing,
            self.word_spacing,
            self.horizontal_scaling,
            self.leading,
        )

    def restore(self, parameters: tuple[Any, ...]) -> None:
        (
            self.font,
            self.font_name,
            self.font_size,
            self.char_spacing,
            self.word_spacing,
            self.horizontal_scaling,
            self.leading,
        ) = parameters

    def next_line(self) -> None:
        step = self.leading if self.leading else TEXT_LEADING_FACTOR * self.font_size
        self.line_matrix = translate(self.line_matrix, 0.0, -step)
        self.text_matrix = self.line_matrix


@dataclass(slots=True)
class GraphicsState:
    """Current transformation matrix and the ``q``/``Q`` save stack."""

    ctm: Matrix = IDENTITY_MATRIX
    stack: list[tuple[Matrix, tuple[Any, ...]]] = field(default_factory=list)


@dataclass(slots=True)
class _Frame:
    """Per-stream context: resources in scope and the form recursion chain."""

    fonts: PageFonts
    resources: DictionaryObject | None
    depth: int = 0
    forms: tuple[int, ...] = ()
    inline_images: int = 0


Handler = Callable[["ContentStreamInterpreter", list, GraphicsState, TextState, _Frame], None]


def parse_operations(stream: object, reader: PdfReader | None) -> list[tuple[Any, bytes]]:
    """Tokenize a content stream (or array of streams) into pypdf operations.

    Strings are kept as raw bytes so every decode goes through the font's own
    strategy chain rather than pypdf's PDFDocEncoding guess.
    """

    if stream is None:
        return []
    content = ContentStream(stream, reader, forced_encoding="bytes")
    return list(content.operations)


class ContentStreamInterpreter:
    """Interpret one page's operators into text, image and link items."""

    def __init__(
        self,
        *,
        page_number: int,
        registry: CMapRegistry,
        reader: PdfReader | None = None,
        page_cmaps: Mapping[str, ToUnicodeCMap] | None = None,
        max_depth: int = FORM_RECURSION_LIMIT,
    ) -> None:
        self.page_number = page_number
        self.registry = registry
        self.reader = reader
        self.page_cmaps: Mapping[str, ToUnicodeCMap] = page_cmaps or {}
        self.max_depth = max_depth
        self.items: list[TextItem] = []

    # -- Entry points --------------------------------------------------------

    def run(
        self,
        operations: Sequence[tuple[Any, bytes]],
        fonts: PageFonts,
        *,
        resources: DictionaryObject | None = None,
        ctm: Matrix = IDENTITY_MATRIX,
    ) -> list[TextItem]:
        frame = _Frame(fonts=fonts, resources=resources)
        self._execute(operations, GraphicsState(ctm=ctm), TextState(), frame)
        return self.items

    def _execute(
        self,
        operations: Sequence[tuple[Any, bytes]],
        graphics: GraphicsState,
        text: TextState,
        frame: _Frame,
    ) -> None:
        for operands, operator in operations:
            handler = self._DISPATCH.get(operator)
            if handler is None:
                continue
            try:
                handler(self, operands, graphics, text, frame)
            except (TypeError, ValueError, IndexError, KeyError, ZeroDivisionError, AttributeError):
                LOGGER.debug("Ignoring malformed %r operator on page %d", operator, self.page_number, exc_info=True)

    # -- Graphics state ------------------------------------------------------

    def _op_save(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        graphics.stack.append((graphics.ctm, text.parameters()))

    def _op_restore(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        if not graphics.stack:
            return
        graphics.ctm, parameters = graphics.stack.pop()
        text.restore(parameters)

    def _op_concat(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        matrix = as_matrix(operands)
        if matrix is not None:
            graphics.ctm = multiply(matrix, graphics.ctm)

    # -- Text objects and positioning ----------------------------------------

    def _op_begin_text(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        text.begin()

    def _op_end_text(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        text.text_matrix = IDENTITY_MATRIX
        text.line_matrix = IDENTITY_MATRIX
        text.in_text = False

    def _op_font(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        name = str(operands[0]).lstrip("/")
        text.font_name = name
        text.font = frame.fonts.get(name)
        text.font_size = _number(operands[1])

    def _op_char_spacing(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        text.char_spacing = _number(operands[0])

    def _op_word_spacing(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        text.word_spacing = _number(operands[0])

    def _op_scaling(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        text.horizontal_scaling = _number(operands[0])

    def _op_leading(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        text.leading = _number(operands[0])

    def _op_move(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        tx, ty = _number(operands[0]), _number(operands[1])
        text.line_matrix = translate(text.line_matrix, tx, ty)
        text.text_matrix = text.line_matrix

    def _op_move_set_leading(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        tx, ty = _number(operands[0]), _number(operands[1])
        text.leading = -ty
        text.line_matrix = translate(text.line_matrix, tx, ty)
        text.text_matrix = text.line_matrix

    def _op_set_matrix(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        matrix = as_matrix(operands)
        if matrix is not None:
            text.text_matrix = matrix
            text.line_matrix = matrix

    def _op_next_line(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        text.next_line()

    # -- Text showing --------------------------------------------------------

    def _op_show(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        data = _string_bytes(operands[0])
        if data is not None:
            self._show_run([data], graphics, text)

    def _op_show_array(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        array = _resolve_indirect(operands[0])
        if not isinstance(array, (list, ArrayObject)):
            return
        run: list[bytes | float] = []
        for element in array:
            data = _string_bytes(element)
            if data is not None:
                run.append(data)
                continue
            try:
                run.append(float(element))
            except (TypeError, ValueError):
                continue
        self._show_run(run, graphics, text)

    def _op_next_line_show(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        text.next_line()
        self._op_show(operands, graphics, text, frame)

    def _op_spacing_next_line_show(
        self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame
    ) -> None:
        text.word_spacing = _number(operands[0])
        text.char_spacing = _number(operands[1])
        self._op_next_line_show(operands[2:], graphics, text, frame)

    def _advance(self, data: bytes, text: TextState) -> float:
        """Horizontal displacement of ``data`` in unscaled text space."""

        font = text.font
        scaling = text.horizontal_scaling / 100.0
        if font is None:
            codes: Sequence[int] = list(data)
            widths = None
            single_byte = True
        else:
            codes = font.codes(data)
            widths = font.widths
            single_byte = font.code_width == 1
        total = 0.0
        for code in codes:
            glyph = widths.width_of(code) * widths.unit_scale if widths is not None else 0.5
            advance = glyph * text.font_size + text.char_spacing
            if single_byte and code == 32:
                advance += text.word_spacing
            total += advance * scaling
        return total

    def _show_run(self, run: Sequence[bytes | float], graphics: GraphicsState, text: TextState) -> None:
        context = DecodeContext(font=text.font, registry=self.registry, page_cmaps=self.page_cmaps)
        threshold = tj_space_threshold(text.font)
        scaling = text.horizontal_scaling / 100.0
        pieces: list[str] = []
        start = text.text_matrix
        advance = 0.0
        for element in run:
            if isinstance(element, (bytes, bytearray)):
                pieces.append(decode_string(bytes(element), context))
                step = self._advance(bytes(element), text)
                advance += step
                text.text_matrix = translate(text.text_matrix, step, 0.0)
                continue
            shift = -element / 1000.0 * text.font_size * scaling
            text.text_matrix = translate(text.text_matrix, shift, 0.0)
            if not "".join(pieces).strip():
                # Nothing visible yet: the item starts where the glyphs do.
                pieces = []
                start = text.text_matrix
                advance = 0.0
                continue
            if element < -_TJ_SPLIT_ADJUSTMENT:
                self._emit("".join(pieces), start, advance, graphics, text)
                pieces = []
                start = text.text_matrix
                advance = 0.0
                continue
            if element < -threshold and pieces and not pieces[-1].endswith(" "):
                pieces.append(" ")
            advance += shift
        self._emit("".join(pieces), start, advance, graphics, text)

    def _emit(self, content: str, start: Matrix, advance: float, graphics: GraphicsState, text: TextState) -> None:
        if not content.strip():
            return
        rendering = multiply(start, graphics.ctm)
        x, y = apply(rendering, 0.0, 0.0)
        a, b = rendering[0], rendering[1]
        font = text.font
        self.items.append(
            TextItem(
                text=content,
                x=x,
                y=y,
                width=max(advance, 0.0) * hypot(a, b),
                font_size=text.font_size * rendered_scale(rendering),
                font=text.font_name,
                base_font=font.base_font if font is not None else "",
                bold=font.bold if font is not None else False,
                italic=font.italic if font is not None else False,
                monospace=font.monospace if font is not None else False,
                page=self.page_number,
            )
        )

    # -- XObjects ------------------------------------------------------------

    def _op_do(self, operands: list, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        name = str(operands[0]).lstrip("/")
        if frame.resources is None:
            return
        xobjects = _resolve_indirect(frame.resources.get(NameObject("/XObject")))
        if not isinstance(xobjects, DictionaryObject):
            return
        reference = xobjects.get(NameObject(f"/{name}"))
        xobject = _resolve_indirect(reference)
        if not isinstance(xobject, StreamObject):
            return
        subtype = str(xobject.get(NameObject("/Subtype"), ""))
        if subtype == "/Image":
            self._emit_image(name, graphics)
        elif subtype == "/Form":
            self._run_form(name, reference, xobject, graphics, text, frame)

    def _op_inline_image(self, operands: Any, graphics: GraphicsState, text: TextState, frame: _Frame) -> None:
        frame.inline_images += 1
        self._emit_image(f"inline{frame.inline_images}", graphics)

    def _emit_image(self, name: str, graphics: GraphicsState) -> None:
        a, b, c, d, e, f = graphics.ctm
        width = hypot(a, b)
        height = hypot(c, d)
        # Images drawn with a flipped CTM have their origin at the top edge.
        x = min(e, e + a + c)
        y = min(f, f + b + d)
        self.items.append(
            TextItem(
                text=name,
                x=x,
                y=y,
                width=width,
                font_size=0.0,
                page=self.page_number,
                kind=ItemKind.IMAGE,
                height=height,
            )
        )

    def _run_form(
        self,
        name: str,
        reference: object,
        form: StreamObject,
        graphics: GraphicsState,
        text: TextState,
        frame: _Frame,
    ) -> None:
        if frame.depth + 1 > self.max_depth:
            LOGGER.debug("Form XObject %s exceeds nesting depth %d", name, self.max_depth)
            return
        identity = reference.idnum if isinstance(reference, IndirectObject) else id(form)
        if identity in frame.forms:
            LOGGER.debug("Form XObject %s references itself; skipping", name)
            return
        matrix = as_matrix(_resolve_indirect(form.get(NameObject("/Matrix"))) or ()) or IDENTITY_MATRIX
        resources = _resolve_indirect(form.get(NameObject("/Resources")))
        if isinstance(resources, DictionaryObject):
            fonts = resolve_page_fonts(resources, self.registry)
        else:
            resources, fonts = frame.resources, frame.fonts
        try:
            operations = parse_operations(form, self.reader)
        except Exception as exc:
            LOGGER.warning("Unable to parse Form XObject %s on page %d: %s", name, self.page_number, exc)
            return
        child = _Frame(
            fonts=fonts,
            resources=resources,
            depth=frame.depth + 1,
            forms=frame.forms + (identity,),
        )
        nested_graphics = GraphicsState(ctm=multiply(matrix, graphics.ctm))
        nested_text = replace(text, text_matrix=IDENTITY_MATRIX, line_matrix=IDENTITY_MATRIX, in_text=False)
        self._execute(operations, nested_graphics, nested_text, child)

    _DISPATCH: ClassVar[dict[bytes, Handler]] = {
        b"q": _op_save,
        b"Q": _op_restore,
        b"cm": _op_concat,
        b"BT": _op_begin_text,
        b"ET": _op_end_text,
        b"Tf": _op_font,
        b"Tc": _op_char_spacing,
        b"Tw": _op_word_spacing,
        b"Tz": _op_scaling,
        b"TL": _op_leading,
        b"Td": _op_move,
        b"TD": _op_move_set_leading,
        b"Tm": _op_set_matrix,
        b"T*": _op_next_line,
        b"Tj": _op_show,
        b"TJ": _op_show_array,
        b"'": _op_next_line_show,
        b'"': _op_spacing_next_line_show,
        b"Do": _op_do,
        b"INLINE IMAGE": _op_inline_image,
    }


def extract_links(page: DictionaryObject, page_number: int) -> list[TextItem]:
    """Turn ``/Link`` annotations carrying a URI action into link items."""

    annotations = _resolve_indirect(page.get(NameObject("/Annots")))
    if not isinstance(annotations, ArrayObject):
        return []
    links: list[TextItem] = []
    for entry in annotations:
        annot = _resolve_indirect(entry)
        if not isinstance(annot, DictionaryObject):
            continue
        if str(annot.get(NameObject("/Subtype"))) != "/Link":
            continue
        action = _resolve_indirect(annot.get(NameObject("/A")))
        if not isinstance(action, DictionaryObject) or str(action.get(NameObject("/S"))) != "/URI":
            continue
        uri = _resolve_indirect(action.get(NameObject("/URI")))
        rect = _resolve_indirect(annot.get(NameObject("/Rect")))
        if uri is None or not isinstance(rect, ArrayObject) or len(rect) < 4:
            continue
        try:
            left, bottom, right, top = (float(_resolve_indirect(rect[i])) for i in range(4))
        except (TypeError, ValueError):
            continue
        if isinstance(uri, bytes):
            uri = uri.decode("latin-1")
        links.append(
            TextItem(
                text="",
                x=min(left, right),
                y=min(bottom, top),
                width=abs(right - left),
                font_size=0.0,
                page=page_number,
                kind=ItemKind.LINK,
                url=str(uri),
                height=abs(top - bottom),
            )
        )
    return links


def interpret_page(
    page: PageObject,
    *,
    page_number: int,
    registry: CMapRegistry,
    reader: PdfReader | None = None,
    contents: object | None = None,
    max_depth: int = FORM_RECURSION_LIMIT,
) -> list[TextItem]:
    """Interpret ``page`` and return its items in stream order, links last.

    A content stream that fails to tokenize yields the items produced so far
    (links and nothing else, at page level) instead of raising.
    """

    resources = _resolve_indirect(page.get(NameObject("/Resources")))
    if not isinstance(resources, DictionaryObject):
        resources = None
    fonts = resolve_page_fonts(resources, registry)
    page_cmaps = {name: font.cmap for name, font in fonts.items() if font.cmap is not None}
    interpreter = ContentStreamInterpreter(
        page_number=page_number,
        registry=registry,
        reader=reader,
        page_cmaps=page_cmaps,
        max_depth=max_depth,
    )
    if contents is None:
        contents = page.get(NameObject("/Contents"))
    try:
        operations = parse_operations(contents, reader)
    except Exception as exc:
        LOGGER.warning("Unable to parse content stream of page %d: %s", page_number, exc)
        operations = []
    items = interpreter.run(operations, fonts, resources=resources)
    return items + extract_links(page, page_number)
