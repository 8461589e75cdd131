"""Shared constants for the PDF to Markdown converter pipeline."""

from __future__ import annotations

import re

__all__ = [
    "ALPHA_PATTERN",
    "BOLD_PATTERNS",
    "BULLET_PATTERN",
    "CAPTION_PREFIXES",
    "DECIMAL_PATTERN",
    "END_PUNCTUATION",
    "FORM_RECURSION_LIMIT",
    "ITALIC_PATTERNS",
    "LIGATURE_TRANSLATION",
    "MARKDOWN_BULLETS",
    "MONOSPACE_PATTERNS",
    "PAGE_NUMBER_PATTERN",
    "ROMAN_PATTERN",
]

BULLET_PATTERN = re.compile(r"^(?P<marker>[•‣◦▪●○■□➢►▸⁃–—·∙\-*])\s+")
DECIMAL_PATTERN = re.compile(r"^(?P<marker>\(?\d{1,3}(?:\.\d{1,3})*(?:[\.)]|\)))\s+")
ROMAN_PATTERN = re.compile(r"^(?P<marker>\(?[ivxlcdm]{1,6}(?:[\.)]|\)))\s+", re.IGNORECASE)
ALPHA_PATTERN = re.compile(r"^(?P<marker>\(?[a-zA-Z](?:[\.)]|\)))\s+")
PAGE_NUMBER_PATTERN = re.compile(r"^\d{1,4}$")
END_PUNCTUATION = {".", "!", "?", ":", ";"}
LIGATURE_TRANSLATION = str.maketrans(
    {
        "ﬁ": "fi",
        "ﬂ": "fl",
        "ﬃ": "ffi",
        "ﬄ": "ffl",
        "ﬀ": "ff",
        "ﬅ": "st",
        "ﬆ": "st",
    }
)

# Bullet glyphs rewritten to a Markdown dash.
MARKDOWN_BULLETS = frozenset("•‣◦▪●○■□➢►▸⁃·∙")

MONOSPACE_PATTERNS = (
    "courier",
    "consolas",
    "monaco",
    "menlo",
    "mono",
    "fixed",
    "terminal",
    "typewriter",
    "sourcecode",
    "firacode",
    "jetbrains",
    "inconsolata",
)

BOLD_PATTERNS = ("bold", "black", "heavy", "semibold", "demi", "medium")
ITALIC_PATTERNS = ("italic", "oblique")

# Caption and note prefixes in English, German, French, Spanish, Italian,
# Dutch and Portuguese.
CAPTION_PREFIXES = (
    "figure",
    "fig.",
    "table",
    "tab.",
    "chart",
    "source:",
    "sources:",
    "note:",
    "notes:",
    "abbildung",
    "abb.",
    "tabelle",
    "quelle:",
    "anmerkung:",
    "tableau",
    "graphique",
    "remarque:",
    "figura",
    "tabla",
    "fuente:",
    "nota:",
    "tabella",
    "fonte:",
    "figuur",
    "tabel",
    "bron:",
    "opmerking:",
    "quadro",
)

# Interpreter limits.
FORM_RECURSION_LIMIT = 8
TEXT_LEADING_FACTOR = 1.2
DEFAULT_GLYPH_WIDTH = 500.0
DEFAULT_CID_WIDTH = 1000.0
TJ_SPACE_THRESHOLD_MIN = 80.0
TJ_SPACE_THRESHOLD_MAX = 200.0
TJ_SPACE_THRESHOLD_DEFAULT = 150.0

# Line grouping.
LINE_Y_TOLERANCE = 3.0
LINE_START_X_TOLERANCE = 1.0
LINE_BACKTRACK_LIMIT = 10.0
LARGE_Y_JUMP = 50.0
JOIN_GAP_RATIO = 0.15

# Column detection.
COLUMN_BIN_WIDTH = 2.0
COLUMN_EMPTY_RATIO = 0.05
COLUMN_MIN_GUTTER = 8.0
COLUMN_MARGIN_RATIO = 0.05
COLUMN_MIN_ITEMS = 10
COLUMN_MIN_OVERLAP = 0.3
COLUMN_MAX_GUTTERS = 3

# Heading discovery.
HEADING_MIN_RATIO = 1.2
HEADING_CLUSTER_TOLERANCE = 0.5
HEADING_MAX_TIERS = 4
HEADING_MAX_WORDS = 15
HEADING_MIN_CHARS = 4

# Drop caps.
DROP_CAP_MAX_CHARS = 2
DROP_CAP_MIN_RATIO = 2.5
