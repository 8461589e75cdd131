"""Named registry of pdf2mdx tools."""

from __future__ import annotations

from typing import Any

from ...core.utils import get_logger
from .interfaces import BaseTool, ConversionContext

LOGGER = get_logger("pdf2mdx.tools")


class ToolRegistry:
    """Maps tool names to :class:`BaseTool` subclasses and runs them on a context."""

    def __init__(self) -> None:
        self._tools: dict[str, type[BaseTool]] = {}

    def register(self, tool_class: type[BaseTool], name: str | None = None) -> type[BaseTool]:
        name = name or getattr(tool_class, "name", None)
        if not name:
            raise ValueError(f"{tool_class.__name__} does not declare a tool name")
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered")
        tool_class.name = name
        self._tools[name] = tool_class
        return tool_class

    def create(self, name: str, context: ConversionContext) -> BaseTool:
        try:
            tool_class = self._tools[name]
        except KeyError:
            available = ", ".join(self.names()) or "none"
            raise KeyError(f"Tool '{name}' is not registered (available: {available})") from None
        return tool_class(context)

    def run(self, name: str, context: ConversionContext) -> Any:
        """Run ``name`` and keep its result under ``context.resources[name]``."""

        tool = self.create(name, context)
        LOGGER.debug("Running tool %s on %s", name, context.input_path or "in-memory PDF")
        result = tool.run()
        context.resources[name] = result
        return result

    def names(self) -> list[str]:
        return sorted(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


registry = ToolRegistry()


def register_tool(name: str | None = None):
    def decorator(cls: type[BaseTool]) -> type[BaseTool]:
        return registry.register(cls, name)

    return decorator


__all__ = ["ToolRegistry", "registry", "register_tool"]
