from __future__ import annotations

import pytest

from pdf2mdx import text_to_markdown
from pdf2mdx.converter import MarkdownOptions, is_code_like


@pytest.mark.parametrize(
    "line",
    [
        "import os",
        "def main():",
        "pub fn run() -> Result<()> {",
        "const total = items.length;",
        "if (a[i] > b) {",
        "}",
        "x := compute(y)",
    ],
)
def test_code_like_lines(line: str) -> None:
    assert is_code_like(line)


@pytest.mark.parametrize(
    "line",
    [
        "The results are shown below.",
        "Revenue (in millions) grew",
        "",
        "   ",
    ],
)
def test_prose_is_not_code(line: str) -> None:
    assert not is_code_like(line)


def test_lists_code_and_paragraphs() -> None:
    text = (
        "Shopping list\n"
        "• apples\n"
        "  2) pears\n"
        "\n"
        "Example:\n"
        "import json\n"
        "data = json.loads(raw);\n"
        "That is all.\n"
    )
    assert text_to_markdown(text) == (
        "Shopping list\n"
        "- apples\n"
        "2) pears\n"
        "\n"
        "Example:\n"
        "```\n"
        "import json\n"
        "data = json.loads(raw);\n"
        "```\n"
        "That is all.\n"
    )


def test_blank_line_and_end_of_text_close_code_fence() -> None:
    assert text_to_markdown("let x = 1;\n\nDone") == "```\nlet x = 1;\n```\n\nDone\n"
    assert text_to_markdown("fn main() {") == "```\nfn main() {\n```\n"


def test_list_item_closes_open_fence() -> None:
    assert text_to_markdown("var a = 1;\n- next") == "```\nvar a = 1;\n```\n- next\n"


def test_detection_can_be_disabled() -> None:
    options = MarkdownOptions(detect_lists=False, detect_code=False)
    assert text_to_markdown("• apples\nimport json", options) == "• apples\nimport json\n"


def test_empty_text() -> None:
    assert text_to_markdown("") == ""
