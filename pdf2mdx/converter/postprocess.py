"""Text-level clean-up applied to the assembled Markdown."""

from __future__ import annotations

import re
from typing import Callable

from .types import MarkdownOptions

__all__ = [
    "collapse_blank_lines",
    "finalize_markdown",
    "fix_spaced_hyphens",
    "postprocess_markdown",
    "strip_page_number_lines",
    "wrap_bare_urls",
]

_BLANK_RUN = re.compile(r"\n{3,}")
_SPACED_HYPHEN = re.compile(r"(?<=\w) - (?=\w)")
_PAGE_NUMBER_LINE = re.compile(r"^\s*\d{1,4}\s*$")
_BARE_URL = re.compile(r"(?<![\[(<])\bhttps?://[^\s<>()\[\]]+")
_LIST_MARKER = re.compile(r"^(\s*(?:[-*+]|\d+[.)])\s+)")
_URL_TRAILING = ".,;:!?'\""


def _is_fence(line: str) -> bool:
    return line.lstrip().startswith("```")


def _map_prose_lines(text: str, transform: Callable[[str], str]) -> str:
    """Apply ``transform`` to every line outside code fences and tables."""

    output: list[str] = []
    in_code = False
    for line in text.split("\n"):
        if _is_fence(line):
            in_code = not in_code
            output.append(line)
        elif in_code or line.lstrip().startswith("|"):
            output.append(line)
        else:
            output.append(transform(line))
    return "\n".join(output)


def collapse_blank_lines(text: str) -> str:
    return _BLANK_RUN.sub("\n\n", text)


def fix_spaced_hyphens(text: str) -> str:
    """Repair ``word - word`` hyphenation artefacts, leaving list markers alone."""

    def _fix(line: str) -> str:
        match = _LIST_MARKER.match(line)
        if match:
            marker = match.group(1)
            return marker + _SPACED_HYPHEN.sub("-", line[len(marker):])
        return _SPACED_HYPHEN.sub("-", line)

    return _map_prose_lines(text, _fix)


def strip_page_number_lines(text: str) -> str:
    """Drop number-only lines that stand alone between blank lines."""

    lines = text.split("\n")
    output: list[str] = []
    in_code = False
    for index, line in enumerate(lines):
        if _is_fence(line):
            in_code = not in_code
        if not in_code and _PAGE_NUMBER_LINE.match(line):
            before = lines[index - 1].strip() if index > 0 else ""
            after = lines[index + 1].strip() if index + 1 < len(lines) else ""
            if not before and not after:
                continue
        output.append(line)
    return "\n".join(output)


def _link(match: re.Match[str]) -> str:
    url = match.group(0)
    trailing = ""
    while url and url[-1] in _URL_TRAILING:
        trailing = url[-1] + trailing
        url = url[:-1]
    return f"[{url}]({url}){trailing}"


def wrap_bare_urls(text: str) -> str:
    return _map_prose_lines(text, lambda line: _BARE_URL.sub(_link, line))


def finalize_markdown(text: str) -> str:
    """Strip surrounding whitespace and end with exactly one newline."""

    text = text.strip()
    return f"{text}\n" if text else ""


def postprocess_markdown(text: str, options: MarkdownOptions) -> str:
    text = collapse_blank_lines(text)
    if options.fix_hyphenation:
        text = fix_spaced_hyphens(text)
    if options.remove_page_numbers:
        text = strip_page_number_lines(text)
    if options.format_urls:
        text = wrap_bare_urls(text)
    return finalize_markdown(collapse_blank_lines(text))
