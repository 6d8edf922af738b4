from __future__ import annotations

from pathlib import Path

import pytest

from mdpreview.content import ContentRoot
from mdpreview.highlight import HighlightStyles
from mdpreview.routing import (
    CompositionFailed,
    Exchange,
    Handler,
    NotFound,
    Rendered,
    Router,
    compose,
    is_markdown_path,
)
from mdpreview.templates import PageComposer

STYLES = HighlightStyles(light="/* light */", dark="/* dark */")


class _UpperRenderer:
    def render(self, source: bytes) -> bytes:
        return b"<p>" + source.strip().upper() + b"</p>"


def _router(root: Path, composer: PageComposer | None = None, theme: str = "auto") -> Router:
    return Router(
        ContentRoot(root),
        _UpperRenderer(),
        composer or PageComposer(),
        theme=theme,
        bounding_box=False,
        styles=STYLES,
    )


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/README.md", True),
        ("/docs/Guide.MD", True),
        ("/notes.Md", True),
        ("/image.png", False),
        ("/README.md.bak", False),
        ("/markdown", False),
        ("/", False),
    ],
)
def test_is_markdown_path(path: str, expected: bool) -> None:
    assert is_markdown_path(path) is expected


def test_render_markdown_returns_rendered_document(tmp_path: Path) -> None:
    (tmp_path / "notes.md").write_bytes(b"hello")

    outcome = _router(tmp_path, theme="dark").render_markdown("/notes.md")

    assert isinstance(outcome, Rendered)
    assert "<p>HELLO</p>" in outcome.document
    assert "/* dark */" in outcome.document
    assert "<title>notes.md</title>" in outcome.document


def test_render_markdown_missing_file_is_not_found(tmp_path: Path) -> None:
    outcome = _router(tmp_path).render_markdown("/missing.md")

    assert isinstance(outcome, NotFound)
    assert isinstance(outcome.cause, FileNotFoundError)


def test_render_markdown_template_failure_is_reported(tmp_path: Path) -> None:
    (tmp_path / "notes.md").write_bytes(b"hello")
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "layout.html").write_text("{{ broken", encoding="utf-8")

    outcome = _router(tmp_path, composer=PageComposer(templates)).render_markdown("/notes.md")

    assert isinstance(outcome, CompositionFailed)


def test_compose_runs_stages_in_order_and_can_short_circuit() -> None:
    calls: list[str] = []

    def endpoint(exchange: Exchange) -> None:
        calls.append("endpoint")

    def first(exchange: Exchange, call_next: Handler) -> None:
        calls.append("first")
        call_next(exchange)

    def second(exchange: Exchange, call_next: Handler) -> None:
        calls.append("second")
        if getattr(exchange, "stop", False):
            return
        call_next(exchange)

    class _Stub:
        stop = False

    app = compose(endpoint, first, second)

    app(_Stub())  # type: ignore[arg-type]
    assert calls == ["first", "second", "endpoint"]

    calls.clear()
    stub = _Stub()
    stub.stop = True
    app(stub)  # type: ignore[arg-type]
    assert calls == ["first", "second"]
