"""Context and base class shared by pdf2mdx tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from ...converter.types import MarkdownOptions
from ...core.parser import PDFParser
from ...core.utils import resolve_path


@dataclass
class ConversionContext:
    """Input, output and settings for one tool invocation.

    ``config`` may carry ``source`` (bytes or a path used instead of
    ``input_path``), ``pages`` (zero-based index or indices) and ``options``
    (:class:`MarkdownOptions` or a mapping of its fields). Tools leave their
    results in ``resources``.
    """

    input_path: Path | None = None
    output_path: Path | None = None
    parser: PDFParser | None = None
    resources: dict[str, Any] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.input_path, (str, Path)):
            self.input_path = resolve_path(self.input_path)
        if isinstance(self.output_path, (str, Path)):
            self.output_path = resolve_path(self.output_path)

    def ensure_parser(self) -> PDFParser:
        if self.parser is None:
            source = self.config.get("source", self.input_path)
            if source is None:
                raise ValueError("ConversionContext requires an input_path or a 'source' to create a parser")
            self.parser = PDFParser(source)
        return self.parser

    def page_indices(self) -> list[int] | None:
        value = self.config.get("pages")
        if value is None:
            return None
        if isinstance(value, int):
            return [value]
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            return [int(page) for page in value]
        raise TypeError("pages must be an integer or a sequence of integers")

    def markdown_options(self) -> MarkdownOptions:
        value = self.config.get("options")
        if value is None:
            return MarkdownOptions()
        if isinstance(value, MarkdownOptions):
            return value
        if isinstance(value, dict):
            return MarkdownOptions(**value)
        raise TypeError("options must be a MarkdownOptions instance or mapping")


class BaseTool:
    """Base class for tools run through :class:`~pdf2mdx.tools.common.pipeline.ToolRegistry`."""

    name: str

    def __init__(self, context: ConversionContext) -> None:
        self.context = context

    def run(self) -> Any:  # pragma: no cover - to be implemented by subclasses
        raise NotImplementedError
