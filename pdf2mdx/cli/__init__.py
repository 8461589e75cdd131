"""Command-line interface for pdf2mdx."""

from .main import cli

__all__ = ["cli"]
