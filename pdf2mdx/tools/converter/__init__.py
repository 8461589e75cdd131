"""Converter tools registered with the pdf2mdx tool registry."""
