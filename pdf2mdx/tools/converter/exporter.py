"""PDF → Markdown tools registered with the pdf2mdx tool registry."""

from __future__ import annotations

from ...converter import (
    ConversionOptions,
    ConversionResult,
    PdfToMarkdownConverter,
    TextItem,
    extract_text_items,
)
from ...core.utils import get_logger
from ..common.interfaces import BaseTool
from ..common.pipeline import register_tool

LOGGER = get_logger("pdf2mdx.tools.convert.markdown")


@register_tool()
class PdfToMarkdownExporter(BaseTool):
    name = "convert_markdown"

    def run(self) -> ConversionResult:
        context = self.context
        parser = context.ensure_parser()
        options = ConversionOptions(
            page_numbers=context.page_indices(),
            markdown=context.markdown_options(),
        )
        output = context.output_path or context.config.get("output")

        LOGGER.debug("Converting %s to Markdown at %s", context.input_path or "in-memory PDF", output)
        result = PdfToMarkdownConverter(options).convert(parser.raw_bytes, output)
        if result.output_path is not None:
            context.output_path = result.output_path
        return result


@register_tool()
class TextItemExtractor(BaseTool):
    name = "extract_items"

    def run(self) -> list[TextItem]:
        parser = self.context.ensure_parser()
        return extract_text_items(parser.raw_bytes, pages=self.context.page_indices())
