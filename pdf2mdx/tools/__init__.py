"""Namespace for pluggable pdf2mdx tools."""

from __future__ import annotations

from .common.pipeline import registry


def load_builtin_plugins() -> None:
    from .converter import exporter  # noqa: F401  # register convert_markdown and extract_items


__all__ = ["registry", "load_builtin_plugins"]
