from __future__ import annotations

from pathlib import Path

import pytest

from pdf2mdx.converter import ConversionResult, ItemKind, MarkdownOptions
from pdf2mdx.tools import load_builtin_plugins
from pdf2mdx.tools.common.interfaces import BaseTool, ConversionContext
from pdf2mdx.tools.common.pipeline import ToolRegistry, registry


def setup_module(module):
    load_builtin_plugins()


def test_convert_markdown_tool(sample_pdf: Path, tmp_path: Path) -> None:
    output = tmp_path / "output.md"
    context = ConversionContext(
        input_path=sample_pdf,
        output_path=output,
        config={"options": None, "pages": None},
    )
    tool = registry.create("convert_markdown", context)
    assert isinstance(tool, BaseTool)
    result = registry.run("convert_markdown", context)

    assert isinstance(result, ConversionResult)
    assert result.output_path == output.resolve()
    assert output.read_text(encoding="utf-8").startswith("# Introduction\n")
    assert context.resources["convert_markdown"] is result


def test_convert_markdown_tool_accepts_option_mappings(sample_pdf: Path) -> None:
    context = ConversionContext(
        input_path=sample_pdf,
        config={"options": {"detect_headers": False}, "pages": 0},
    )
    result = registry.run("convert_markdown", context)

    assert result.output_path is None
    assert result.heading_count == 0


def test_convert_markdown_tool_rejects_bad_config(sample_pdf: Path) -> None:
    with pytest.raises(TypeError):
        registry.run("convert_markdown", ConversionContext(input_path=sample_pdf, config={"options": 3}))
    with pytest.raises(TypeError):
        registry.run("convert_markdown", ConversionContext(input_path=sample_pdf, config={"pages": "1"}))


def test_extract_items_tool_reads_in_memory_source(sample_pdf: Path) -> None:
    context = ConversionContext(config={"source": sample_pdf.read_bytes(), "pages": [0]})
    items = registry.run("extract_items", context)

    assert items == context.resources["extract_items"]
    assert [item.kind for item in items] == [ItemKind.TEXT] * 5


def test_registry_lists_builtin_tools() -> None:
    assert {"convert_markdown", "extract_items"} <= set(registry.names())
    assert "convert_markdown" in registry
    with pytest.raises(KeyError, match="available: .*convert_markdown"):
        registry.create("missing", ConversionContext())


class _EchoTool(BaseTool):
    name = "echo"

    def run(self):
        return self.context.config["value"]


class _UnnamedTool(BaseTool):
    def run(self):
        return None


def test_custom_registry_registration() -> None:
    local = ToolRegistry()
    assert local.register(_EchoTool) is _EchoTool

    context = ConversionContext(config={"value": 42})
    assert local.run("echo", context) == 42
    assert context.resources == {"echo": 42}
    with pytest.raises(ValueError):
        local.register(_EchoTool)
    with pytest.raises(ValueError):
        local.register(_UnnamedTool)

    local.register(_UnnamedTool, "noop")
    assert local.names() == ["echo", "noop"]
    assert _UnnamedTool.name == "noop"


def test_context_reads_pages_and_options() -> None:
    context = ConversionContext(config={"pages": (2, 0), "options": {"detect_lists": False}})

    assert context.page_indices() == [2, 0]
    assert context.markdown_options().detect_lists is False
    assert ConversionContext().page_indices() is None
    assert ConversionContext().markdown_options() == MarkdownOptions()
