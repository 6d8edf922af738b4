"""Request routing: Markdown rendering versus static file serving."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler
from pathlib import Path
from typing import Callable
from urllib.parse import unquote, urlsplit

from .content import ContentRoot
from .highlight import HighlightStyles
from .markdown import MarkdownRenderer
from .templates import DEFAULTS_DIR, CompositionError, PageComposer, RenderedPage

logger = logging.getLogger(__name__)

MARKDOWN_PATTERN = re.compile(r"\.md$", re.IGNORECASE)
ASSET_PREFIX = "/static/"


class Exchange:
    """Per-request view over the live ``SimpleHTTPRequestHandler``.

    Stages read the request from it and answer through it. HTML produced by
    the server passes through ``html_filters`` in registration order.
    """

    def __init__(self, handler: SimpleHTTPRequestHandler) -> None:
        self.handler = handler
        self.html_filters: list[Callable[[str], str]] = []

    @property
    def method(self) -> str:
        return self.handler.command

    @property
    def raw_path(self) -> str:
        return self.handler.path

    @property
    def url_path(self) -> str:
        return unquote(urlsplit(self.handler.path).path)

    @property
    def head_only(self) -> bool:
        return self.method == "HEAD"

    def send_html(self, document: str, status: HTTPStatus = HTTPStatus.OK) -> None:
        for html_filter in self.html_filters:
            document = html_filter(document)
        body = document.encode("utf-8")
        handler = self.handler
        handler.send_response(status)
        handler.send_header("Content-Type", "text/html; charset=utf-8")
        handler.send_header("Content-Length", str(len(body)))
        handler.send_header("Cache-Control", "no-cache")
        handler.end_headers()
        if not self.head_only:
            handler.wfile.write(body)

    def send_error(self, status: HTTPStatus, message: str | None = None) -> None:
        self.handler.send_error(status, message)

    def serve_static(self, directory: Path) -> None:
        """Answer with plain ``SimpleHTTPRequestHandler`` semantics rooted at ``directory``."""
        handler = self.handler
        handler.directory = str(directory)
        source = handler.send_head()
        if source is None:
            return
        try:
            if not self.head_only:
                handler.copyfile(source, handler.wfile)
        finally:
            source.close()


Handler = Callable[[Exchange], None]
Middleware = Callable[[Exchange, Handler], None]


def compose(endpoint: Handler, *stages: Middleware) -> Handler:
    """Chain ``stages`` in front of ``endpoint``; the first stage sees requests first.

    Each stage either answers the exchange itself or passes it on by calling
    the ``call_next`` handler it receives.
    """
    handler = endpoint
    for stage in reversed(stages):
        handler = _bind(stage, handler)
    return handler


def _bind(stage: Middleware, call_next: Handler) -> Handler:
    def run(exchange: Exchange) -> None:
        stage(exchange, call_next)

    return run


class AssetMount:
    """Serve the packaged framework assets under ``/static/``."""

    def __init__(self, directory: Path = DEFAULTS_DIR, prefix: str = ASSET_PREFIX) -> None:
        self._directory = directory
        self._prefix = prefix

    def __call__(self, exchange: Exchange, call_next: Handler) -> None:
        if posixpath.normpath(exchange.url_path).startswith(self._prefix):
            exchange.serve_static(self._directory)
            return
        call_next(exchange)


@dataclass(frozen=True, slots=True)
class Rendered:
    document: str


@dataclass(frozen=True, slots=True)
class NotFound:
    cause: OSError


@dataclass(frozen=True, slots=True)
class CompositionFailed:
    cause: CompositionError


RenderOutcome = Rendered | NotFound | CompositionFailed


def is_markdown_path(url_path: str) -> bool:
    return MARKDOWN_PATTERN.search(url_path) is not None


class Router:
    """Render Markdown requests into the page shell; serve everything else as files."""

    def __init__(
        self,
        content: ContentRoot,
        renderer: MarkdownRenderer,
        composer: PageComposer,
        *,
        theme: str,
        bounding_box: bool,
        styles: HighlightStyles | None = None,
    ) -> None:
        self._content = content
        self._renderer = renderer
        self._composer = composer
        self._theme = theme
        self._bounding_box = bounding_box
        self._styles = styles or HighlightStyles.load()

    def __call__(self, exchange: Exchange) -> None:
        if not is_markdown_path(exchange.url_path):
            exchange.serve_static(self._content.directory)
            return

        outcome = self.render_markdown(exchange.raw_path)
        if isinstance(outcome, Rendered):
            exchange.send_html(outcome.document)
        elif isinstance(outcome, NotFound):
            logger.debug("Markdown read failed for %s: %s", exchange.url_path, outcome.cause)
            exchange.serve_static(self._content.directory)
        else:
            logger.error("Error serving template for %s", exchange.url_path, exc_info=outcome.cause)
            exchange.send_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Could not serve template")

    def render_markdown(self, url_path: str) -> RenderOutcome:
        """Read, render and compose the Markdown document behind ``url_path``."""
        try:
            source = self._content.read_bytes(url_path)
        except OSError as exc:
            return NotFound(exc)

        fragment = self._renderer.render(source)
        page = RenderedPage(
            content_html=fragment.decode("utf-8", errors="replace"),
            theme=self._theme,
            bounding_box=self._bounding_box,
            css_light=self._styles.light,
            css_dark=self._styles.dark,
            title=Path(unquote(urlsplit(url_path).path)).name,
        )
        try:
            return Rendered(self._composer.compose(page))
        except CompositionError as exc:
            return CompositionFailed(exc)
