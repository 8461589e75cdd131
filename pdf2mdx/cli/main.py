"""
Command-line interface for the PDF to Markdown converter.
"""

from collections import Counter
from dataclasses import asdict
import json
import sys

import click
from rich.console import Console
from rich.table import Table

from pdf2mdx.converter import MarkdownOptions, extract_text_items
from pdf2mdx.converter.headings import body_font_size
from pdf2mdx.core import PDFParser, ValidationError, ensure_markdown_output, ensure_pdf_exists
from pdf2mdx.core.utils import update_dict
from pdf2mdx.exceptions import Pdf2MdxError
from pdf2mdx.tools import load_builtin_plugins, registry
from pdf2mdx.tools.common import ConversionContext

console = Console()

_HANDLED_ERRORS = (Pdf2MdxError, ValidationError, OSError)


def parse_page_ranges(value):
    """Turn ``"1,3-5"`` (1-based) into sorted 0-based page indices."""
    if not value:
        return None
    pages = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start, end = (int(bound) for bound in part.split("-", 1))
            else:
                start = end = int(part)
        except ValueError:
            raise click.BadParameter(f"Invalid page range: {part!r}", param_hint="--pages")
        if start < 1 or end < start:
            raise click.BadParameter(f"Invalid page range: {part!r}", param_hint="--pages")
        pages.update(range(start - 1, end))
    return sorted(pages)


def _fail(error):
    console.print(f"\n[bold red]✗ Error:[/bold red] {error}")
    sys.exit(1)


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """
    pdf2mdx - Convert PDF text into structured Markdown.
    """
    load_builtin_plugins()


@cli.command(name="convert")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.argument('output', required=False, type=click.Path(dir_okay=False))
@click.option('--pages', help='Pages to convert, e.g. "1,3-5"', type=str)
@click.option('--base-font-size', help='Body font size in points (auto-detected by default)', type=float)
@click.option('--no-headers', is_flag=True, help='Do not detect headings')
@click.option('--no-lists', is_flag=True, help='Do not detect list items')
@click.option('--no-code', is_flag=True, help='Do not fence monospace lines')
@click.option('--keep-page-numbers', is_flag=True, help='Keep page-number lines')
@click.option('--no-urls', is_flag=True, help='Do not wrap bare URLs as links')
@click.option('--no-hyphenation-fix', is_flag=True, help='Keep "word - word" spacing')
@click.option('--no-bold', is_flag=True, help='Do not emphasize bold runs')
@click.option('--no-italic', is_flag=True, help='Do not emphasize italic runs')
@click.option('--no-images', is_flag=True, help='Omit image placeholders')
@click.option('--no-links', is_flag=True, help='Omit link annotations')
@click.option('--raw', is_flag=True, help='Print the Markdown to stdout')
def convert(input_pdf, output, pages, base_font_size, no_headers, no_lists, no_code, keep_page_numbers,
            no_urls, no_hyphenation_fix, no_bold, no_italic, no_images, no_links, raw):
    """
    Convert a PDF to Markdown.

    Examples:

        pdf2mdx convert paper.pdf

        pdf2mdx convert paper.pdf paper.md --pages 1-3
    """
    options = MarkdownOptions(
        detect_headers=not no_headers,
        detect_lists=not no_lists,
        detect_code=not no_code,
        base_font_size=base_font_size,
        remove_page_numbers=not keep_page_numbers,
        format_urls=not no_urls,
        fix_hyphenation=not no_hyphenation_fix,
        detect_bold=not no_bold,
        detect_italic=not no_italic,
        include_images=not no_images,
        include_links=not no_links,
    )
    try:
        source = ensure_pdf_exists(input_pdf)
        if output is not None:
            output = ensure_markdown_output(output)
        config = update_dict({"options": options}, pages=parse_page_ranges(pages))
        context = ConversionContext(input_path=source, output_path=output, config=config)
        result = registry.run("convert_markdown", context)
    except _HANDLED_ERRORS as e:
        _fail(e)

    if output is None or raw:
        click.echo(result.markdown, nl=False)
        if output is None:
            return

    summary = Table(title="Conversion Summary", show_header=False)
    summary.add_column("Property", style="cyan")
    summary.add_column("Value", style="green")
    summary.add_row("Output", str(result.output_path))
    summary.add_row("Pages", str(result.page_count))
    summary.add_row("Text items", str(result.item_count))
    summary.add_row("Lines", str(result.line_count))
    summary.add_row("Headings", str(result.heading_count))
    summary.add_row("Tables", str(result.table_count))
    summary.add_row("Time", f"{result.processing_time:.2f}s")
    console.print(summary)
    console.print(f"\n[bold green]✓ Wrote {result.output_path.name}[/bold green]")


@cli.command(name="items")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.option('--pages', help='Pages to read, e.g. "1,3-5"', type=str)
@click.option('--json', 'as_json', is_flag=True, help='Emit the items as JSON')
def items(input_pdf, pages, as_json):
    """
    List positioned text, image and link items.

    Example:

        pdf2mdx items paper.pdf --json
    """
    try:
        source = ensure_pdf_exists(input_pdf)
        config = update_dict({}, pages=parse_page_ranges(pages))
        extracted = registry.run("extract_items", ConversionContext(input_path=source, config=config))
    except _HANDLED_ERRORS as e:
        _fail(e)

    if as_json:
        payload = [dict(asdict(item), kind=item.kind.value) for item in extracted]
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    table = Table(title=f"Items ({len(extracted)})")
    table.add_column("Page", justify="right")
    table.add_column("Kind")
    table.add_column("X", justify="right")
    table.add_column("Y", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Font", style="cyan")
    table.add_column("Text", style="green")
    for item in extracted:
        table.add_row(
            str(item.page),
            item.kind.value,
            f"{item.x:.1f}",
            f"{item.y:.1f}",
            f"{item.font_size:.1f}",
            item.base_font or item.font,
            item.url or item.text,
        )
    console.print(table)


@cli.command(name="info")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
def show_info(input_pdf):
    """
    Display page count and font usage of a PDF file.

    Example:

        pdf2mdx info paper.pdf
    """
    try:
        source = ensure_pdf_exists(input_pdf)
        parser = PDFParser(source, preload=True)
        page_count = parser.page_count()
        extracted = extract_text_items(parser.raw_bytes)
    except _HANDLED_ERRORS as e:
        _fail(e)

    text_items = [item for item in extracted if item.is_text]
    info_table = Table(title="PDF Information", show_header=False)
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("File", source.name)
    info_table.add_row("Pages", str(page_count))
    info_table.add_row("Text items", str(len(text_items)))
    info_table.add_row("Body size", f"{body_font_size(text_items):.1f}pt")
    console.print(info_table)

    fonts = Counter(item.base_font or item.font for item in text_items)
    if not fonts:
        console.print("\n[yellow]No text found.[/yellow]")
        return
    font_table = Table(title="Fonts")
    font_table.add_column("Font", style="cyan")
    font_table.add_column("Items", justify="right")
    font_table.add_column("Sizes")
    for name, count in fonts.most_common():
        sizes = sorted({round(item.font_size, 1) for item in text_items if (item.base_font or item.font) == name})
        font_table.add_row(name or "(unnamed)", str(count), ", ".join(f"{size:g}" for size in sizes))
    console.print(font_table)
