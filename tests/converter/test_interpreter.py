from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from pypdf import PdfReader, PdfWriter
from pypdf.generic import ArrayObject, DecodedStreamObject, DictionaryObject, NameObject, NumberObject, StreamObject

from pdf2mdx.converter import ItemKind, TextItem, extract_text_items
from pdf2mdx.converter.cmap import CMapRegistry
from pdf2mdx.converter.fonts import FontWidthInfo, ResolvedFont
from pdf2mdx.converter.interpreter import ContentStreamInterpreter, interpret_page, parse_operations


def _run(content: bytes, fonts: dict[str, ResolvedFont] | None = None) -> list[TextItem]:
    stream = DecodedStreamObject()
    stream.set_data(content)
    interpreter = ContentStreamInterpreter(page_number=1, registry=CMapRegistry())
    return interpreter.run(parse_operations(stream, None), fonts or {})


def _form(stream_factory: Callable[..., StreamObject], data: bytes) -> StreamObject:
    return stream_factory(
        data,
        {
            "/Type": NameObject("/XObject"),
            "/Subtype": NameObject("/Form"),
            "/BBox": ArrayObject([NumberObject(0), NumberObject(0), NumberObject(200), NumberObject(200)]),
        },
    )


def test_tj_position_and_width() -> None:
    items = _run(b"BT /F1 12 Tf 72 700 Td (Hello) Tj ET")

    assert len(items) == 1
    item = items[0]
    assert item.text == "Hello"
    assert (item.x, item.y) == (72, 700)
    assert item.width == pytest.approx(30.0)
    assert item.font_size == 12
    assert item.font == "F1"
    assert item.kind is ItemKind.TEXT


def test_tj_array_inserts_space_for_large_adjustments() -> None:
    items = _run(b"BT /F1 10 Tf 0 0 Td [(A) -300 (B) -20 (C)] TJ ET")

    assert [item.text for item in items] == ["A BC"]
    assert items[0].width == pytest.approx(5 + 3 + 5 + 0.2 + 5)


def test_tj_array_splits_on_tab_sized_adjustments() -> None:
    items = _run(b"BT /F1 10 Tf 0 0 Td [(Left) -3000 (Right)] TJ ET")

    assert [item.text for item in items] == ["Left", "Right"]
    assert items[1].x == pytest.approx(20 + 30)


def test_tj_array_leading_adjustment_moves_anchor() -> None:
    items = _run(b"BT /F1 12 Tf 100 700 Td [-5000 (Col2)] TJ ET")

    assert [item.text for item in items] == ["Col2"]
    assert items[0].x == pytest.approx(160)
    assert items[0].width == pytest.approx(24)

    padded = _run(b"BT /F1 10 Tf 0 0 Td [( ) -1000 (X)] TJ ET")
    assert padded[0].text == "X"
    assert padded[0].x == pytest.approx(5 + 10)
    assert padded[0].width == pytest.approx(5)


def test_space_threshold_follows_font_space_width() -> None:
    font = ResolvedFont(resource_name="F1", widths=FontWidthInfo(space_width=250))

    assert _run(b"BT /F1 10 Tf [(A) -130 (B)] TJ ET", {"F1": font})[0].text == "A B"
    assert _run(b"BT /F1 10 Tf [(A) -100 (B)] TJ ET", {"F1": font})[0].text == "AB"


def test_next_line_uses_leading_or_font_size() -> None:
    with_leading = _run(b"BT /F1 10 Tf 14 TL 72 700 Td (One) Tj T* (Two) Tj ET")
    without = _run(b"BT /F1 10 Tf 72 700 Td (One) Tj T* (Two) Tj ET")

    assert [item.y for item in with_leading] == [700, 686]
    assert [item.y for item in without] == [700, pytest.approx(688)]


def test_td_sets_leading_for_quote_operator() -> None:
    items = _run(b"BT /F1 10 Tf 72 700 Td (One) Tj 0 -20 TD (Two) Tj (Three) ' ET")

    assert [(item.text, item.y) for item in items] == [("One", 700), ("Two", 680), ("Three", 660)]


def test_cm_scales_position_size_and_width() -> None:
    items = _run(b"q 2 0 0 2 0 0 cm BT /F1 10 Tf 10 20 Td (Hi) Tj ET Q")

    item = items[0]
    assert (item.x, item.y) == (20, 40)
    assert item.font_size == 20
    assert item.width == pytest.approx(20.0)


def test_restore_returns_text_parameters() -> None:
    items = _run(b"BT /F1 10 Tf ET q BT /F1 20 Tf ET Q BT 0 0 Td (x) Tj ET")

    assert items[0].font_size == 10


def test_spacing_operators_affect_width() -> None:
    font = ResolvedFont(resource_name="F1", widths=FontWidthInfo(widths={65: 600}))

    plain = _run(b"BT /F1 10 Tf (AB) Tj ET", {"F1": font})[0]
    spaced = _run(b"BT /F1 10 Tf 1 Tc (AB) Tj ET", {"F1": font})[0]
    words = _run(b"BT /F1 10 Tf 2 Tw (A B) Tj ET", {"F1": font})[0]
    squeezed = _run(b"BT /F1 10 Tf 50 Tz (AB) Tj ET", {"F1": font})[0]

    assert plain.width == pytest.approx(11.0)
    assert spaced.width == pytest.approx(13.0)
    assert words.width == pytest.approx(6 + 5 + 2 + 5)
    assert squeezed.width == pytest.approx(5.5)


def test_unknown_and_malformed_operators_are_ignored() -> None:
    items = _run(b"BT /F1 Tf 1 0 0 RG 5 5 Td (x) Tj ET")

    assert [item.text for item in items] == ["x"]
    assert items[0].font_size == 12


def test_font_traits_flow_into_items() -> None:
    font = ResolvedFont(resource_name="F2", base_font="Courier-Bold", bold=True, monospace=True)
    item = _run(b"BT /F2 9 Tf (code) Tj ET", {"F2": font})[0]

    assert item.bold and item.monospace and not item.italic
    assert item.base_font == "Courier-Bold"


def test_form_xobjects_inherit_ctm(
    pdf_factory: Callable[..., Path],
    stream_factory: Callable[..., StreamObject],
) -> None:
    form = _form(stream_factory, b"BT /F1 12 Tf 0 0 Td (Inside) Tj ET")
    path = pdf_factory("form.pdf", "q 1 0 0 1 100 200 cm /Fm0 Do Q", xobjects={"/Fm0": form})

    items = extract_text_items(path)

    assert [(item.text, item.x, item.y) for item in items] == [("Inside", 100, 200)]


def test_form_recursion_limit(
    pdf_factory: Callable[..., Path],
    stream_factory: Callable[..., StreamObject],
) -> None:
    form = _form(stream_factory, b"BT /F1 12 Tf 0 0 Td (Inside) Tj ET")
    path = pdf_factory("limited.pdf", "/Fm0 Do", xobjects={"/Fm0": form})
    page = PdfReader(str(path)).pages[0]

    assert interpret_page(page, page_number=1, registry=CMapRegistry(), max_depth=0) == []
    assert len(interpret_page(page, page_number=1, registry=CMapRegistry())) == 1


def test_self_referencing_form_is_drawn_once(tmp_path: Path) -> None:
    writer = PdfWriter()
    page = writer.add_blank_page(width=612, height=792)
    font = writer._add_object(
        DictionaryObject(
            {
                NameObject("/Type"): NameObject("/Font"),
                NameObject("/Subtype"): NameObject("/Type1"),
                NameObject("/BaseFont"): NameObject("/Helvetica"),
            }
        )
    )
    form = StreamObject()
    form._data = b"BT /F1 12 Tf 1 0 0 1 10 10 Tm (Loop) Tj ET /Fm0 Do"
    form[NameObject("/Type")] = NameObject("/XObject")
    form[NameObject("/Subtype")] = NameObject("/Form")
    form[NameObject("/BBox")] = ArrayObject([NumberObject(0), NumberObject(0), NumberObject(100), NumberObject(100)])
    form[NameObject("/Length")] = NumberObject(len(form._data))
    form_ref = writer._add_object(form)
    form[NameObject("/Resources")] = DictionaryObject(
        {
            NameObject("/Font"): DictionaryObject({NameObject("/F1"): font}),
            NameObject("/XObject"): DictionaryObject({NameObject("/Fm0"): form_ref}),
        }
    )
    content = StreamObject()
    content._data = b"/Fm0 Do"
    content[NameObject("/Length")] = NumberObject(len(content._data))
    page[NameObject("/Resources")] = DictionaryObject(
        {NameObject("/XObject"): DictionaryObject({NameObject("/Fm0"): form_ref})}
    )
    page[NameObject("/Contents")] = writer._add_object(content)
    path = tmp_path / "loop.pdf"
    with path.open("wb") as handle:
        writer.write(handle)

    items = extract_text_items(path)

    assert [item.text for item in items] == ["Loop"]


def test_images_and_links_become_items(
    pdf_factory: Callable[..., Path],
    stream_factory: Callable[..., StreamObject],
    text_content: Callable[..., str],
) -> None:
    image = stream_factory(
        b"\x00",
        {
            "/Type": NameObject("/XObject"),
            "/Subtype": NameObject("/Image"),
            "/Width": NumberObject(1),
            "/Height": NumberObject(1),
            "/ColorSpace": NameObject("/DeviceGray"),
            "/BitsPerComponent": NumberObject(8),
        },
    )
    content = "\n".join([text_content((72, 700, "Example")), "q 200 0 0 100 72 400 cm /Im1 Do Q"])
    path = pdf_factory(
        "media.pdf",
        content,
        xobjects={"/Im1": image},
        links={0: [((70, 695, 150, 712), "https://example.com")]},
    )

    items = extract_text_items(path)
    kinds = [item.kind for item in items]

    assert kinds == [ItemKind.TEXT, ItemKind.IMAGE, ItemKind.LINK]
    picture = items[1]
    assert picture.text == "Im1"
    assert (picture.x, picture.y, picture.width, picture.height) == (72, 400, 200, 100)
    link = items[2]
    assert link.url == "https://example.com"
    assert (link.x, link.y, link.width, link.height) == (70, 695, 80, 17)
