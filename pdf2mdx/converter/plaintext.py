"""Markdown from already-extracted plain text, without positions.

Used when only a text dump is available: lines are classified one at a time
as list items, code or plain text, and blank lines end the open list or
code fence.
"""

from __future__ import annotations

from .constants import ALPHA_PATTERN, BULLET_PATTERN, DECIMAL_PATTERN, ROMAN_PATTERN
from .types import MarkdownOptions

__all__ = ["CODE_PREFIXES", "is_code_like", "text_to_markdown"]

CODE_PREFIXES = (
    "import ",
    "export ",
    "from ",
    "const ",
    "let ",
    "var ",
    "function ",
    "class ",
    "def ",
    "pub fn ",
    "fn ",
    "async fn ",
    "impl ",
    "=> ",
    "-> ",
    ":: ",
    ":= ",
)
CODE_SYNTAX = frozenset("{}()[];=<>")
CODE_SYNTAX_MIN = 3
CODE_LINE_MAX = 200


def is_code_like(text: str) -> bool:
    """Keyword prefix, dense bracket/operator syntax, or a ``;``/brace ending."""

    text = text.strip()
    if not text:
        return False
    if text.startswith(CODE_PREFIXES):
        return True
    if sum(1 for char in text if char in CODE_SYNTAX) >= CODE_SYNTAX_MIN and len(text) < CODE_LINE_MAX:
        return True
    return text.endswith((";", "{", "}"))


def _list_line(text: str) -> str | None:
    match = BULLET_PATTERN.match(text)
    if match:
        return "- " + text[match.end() :]
    for pattern in (DECIMAL_PATTERN, ROMAN_PATTERN, ALPHA_PATTERN):
        match = pattern.match(text)
        if match:
            return f"{match.group('marker')} {text[match.end():]}"
    return None


def text_to_markdown(text: str, options: MarkdownOptions | None = None) -> str:
    options = options or MarkdownOptions()
    output: list[str] = []
    in_code = False

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            if in_code:
                output.append("```")
                in_code = False
            output.append("")
            continue

        if options.detect_lists:
            item = _list_line(line)
            if item is not None:
                if in_code:
                    output.append("```")
                    in_code = False
                output.append(item)
                continue

        if options.detect_code and is_code_like(line):
            if not in_code:
                output.append("```")
                in_code = True
            output.append(line)
            continue
        if in_code:
            output.append("```")
            in_code = False
        output.append(line)

    if in_code:
        output.append("```")
    return "\n".join(output) + "\n" if output else ""
