"""Markdown rendering adapter."""

from __future__ import annotations

from functools import lru_cache
from typing import Protocol, cast

from markdown_it import MarkdownIt
from mdit_py_plugins.anchors import anchors_plugin
from mdit_py_plugins.deflist import deflist_plugin
from mdit_py_plugins.footnote import footnote_plugin
from mdit_py_plugins.tasklists import tasklists_plugin

from .highlight import highlight_code


class MarkdownRenderer(Protocol):
    """Anything that turns Markdown bytes into an HTML fragment."""

    def render(self, source: bytes) -> bytes: ...


@lru_cache(maxsize=1)
def _renderer() -> MarkdownIt:
    """Configure and cache a GitHub-flavoured CommonMark renderer."""
    md = MarkdownIt(
        "commonmark",
        {"html": True, "linkify": True, "typographer": True, "highlight": highlight_code},
    )
    md.enable(["table", "strikethrough", "linkify"])
    md.use(deflist_plugin)
    md.use(footnote_plugin)
    md.use(tasklists_plugin, label=True)
    md.use(anchors_plugin, min_level=1, max_level=6)
    return md


def render_markdown(text: str) -> str:
    """Render Markdown to HTML using the shared renderer."""
    if not text.strip():
        return ""
    return cast(str, _renderer().render(text))


class MarkdownItRenderer:
    """Default renderer; malformed input degrades to best-effort HTML."""

    def render(self, source: bytes) -> bytes:
        text = source.decode("utf-8", errors="replace")
        return render_markdown(text).encode("utf-8")
