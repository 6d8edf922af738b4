"""Pygments-backed syntax highlighting and stylesheet generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from html import escape

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)

CSS_CLASS = "highlight"
LIGHT_STYLE = "default"
DARK_STYLE = "github-dark"

_CODE_FORMATTER = HtmlFormatter(nowrap=True)


@lru_cache(maxsize=None)
def css_for(style_name: str) -> str:
    """Return class-based CSS for ``style_name``; unknown styles yield ``""``."""
    try:
        formatter = HtmlFormatter(style=style_name)
    except ClassNotFound:
        logger.warning("Unknown highlight style '%s'; code blocks will be unstyled.", style_name)
        return ""
    return str(formatter.get_style_defs(f".{CSS_CLASS}"))


@dataclass(frozen=True, slots=True)
class HighlightStyles:
    """The light/dark stylesheet pair embedded in every rendered page."""

    light: str
    dark: str

    @classmethod
    def load(cls, light: str = LIGHT_STYLE, dark: str = DARK_STYLE) -> "HighlightStyles":
        return cls(light=css_for(light), dark=css_for(dark))


def highlight_code(code: str, lang_name: str, lang_attrs: str = "") -> str:
    """Highlight a fenced code block for markdown-it.

    Returns an empty string when the language is missing or unknown so the
    renderer falls back to its escaped plain block.
    """
    if not lang_name:
        return ""
    try:
        lexer = get_lexer_by_name(lang_name)
    except ClassNotFound:
        return ""
    spans = highlight(code, lexer, _CODE_FORMATTER)
    return (
        f'<pre class="{CSS_CLASS}"><code class="language-{escape(lang_name)}">'
        f"{spans}</code></pre>"
    )
