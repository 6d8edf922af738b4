"""Preview server orchestration.

Wires the content root, renderer, page composer and live reload into one
threaded ``http.server`` listener and decides which URL to announce.
"""

from __future__ import annotations

import logging
import webbrowser
from enum import Enum
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote

from .config import ServerConfig
from .content import ContentRoot
from .highlight import HighlightStyles
from .markdown import MarkdownItRenderer, MarkdownRenderer
from .reload import ContentWatcher, LiveReload, ReloadBroadcaster
from .routing import AssetMount, Exchange, Handler, Router, compose
from .templates import PageComposer

logger = logging.getLogger(__name__)

WILDCARD_HOSTS = {"", "0.0.0.0"}


class ServerStartError(RuntimeError):
    """Raised when the listener cannot bind its address."""


class ServerState(str, Enum):
    INITIALIZING = "initializing"
    SERVING = "serving"
    STOPPED = "stopped"


class _ThreadingHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True


def make_request_handler(app: Handler, directory: Path) -> type[SimpleHTTPRequestHandler]:
    """Create a request handler that feeds every GET/HEAD through ``app``."""
    directory_path = str(directory)

    class PreviewRequestHandler(SimpleHTTPRequestHandler):
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            super().__init__(*args, directory=directory_path, **kwargs)

        # Ensure correct Content-Type headers for common static assets during preview.
        extensions_map = dict(SimpleHTTPRequestHandler.extensions_map)
        extensions_map.update(
            {
                ".webp": "image/webp",
                ".svg": "image/svg+xml",
                ".json": "application/json; charset=utf-8",
                ".js": "application/javascript; charset=utf-8",
                ".css": "text/css; charset=utf-8",
                ".txt": "text/plain; charset=utf-8",
                ".png": "image/png",
                ".gif": "image/gif",
                ".jpg": "image/jpeg",
                ".jpeg": "image/jpeg",
                ".mp4": "video/mp4",
                ".pdf": "application/pdf",
            }
        )

        def do_GET(self) -> None:  # noqa: N802
            app(Exchange(self))

        def do_HEAD(self) -> None:  # noqa: N802
            app(Exchange(self))

        def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
            logger.debug("%s - %s", self.address_string(), format % args)

    return PreviewRequestHandler


class PreviewServer:
    """Serve one content directory with Markdown rendering and live reload."""

    def __init__(
        self,
        config: ServerConfig,
        directory: Path,
        *,
        target: str | None = None,
        renderer: MarkdownRenderer | None = None,
        composer: PageComposer | None = None,
        open_url: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self.config = config
        self.content = ContentRoot(directory)
        self.target = target
        self.state = ServerState.INITIALIZING
        self.broadcaster = ReloadBroadcaster()
        self.watcher = ContentWatcher(self.content.directory, self.broadcaster)
        self.router = Router(
            self.content,
            renderer or MarkdownItRenderer(),
            composer or PageComposer(),
            theme=config.theme,
            bounding_box=config.bounding_box,
            styles=HighlightStyles.load(),
        )
        self.app = compose(self.router, LiveReload(self.broadcaster), AssetMount())
        self._open_url = open_url
        self._httpd: ThreadingHTTPServer | None = None
        self._url: str | None = None

    @property
    def url(self) -> str:
        if self._url is None:
            raise RuntimeError("Preview server has not been started.")
        return self._url

    @property
    def bound_port(self) -> int:
        if self._httpd is None:
            raise RuntimeError("Preview server has not been started.")
        return int(self._httpd.server_address[1])

    def start(self) -> str:
        """Bind the listener, start watching and return the announced URL."""
        if self._httpd is not None:
            return self.url
        handler = make_request_handler(self.app, self.content.directory)
        try:
            self._httpd = _ThreadingHTTPServer((self.config.host, self.config.port), handler)
        except OSError as exc:
            raise ServerStartError(
                f"Unable to listen on {self.config.host}:{self.config.port}: {exc}"
            ) from exc
        self._url = self._announced_url()
        self.watcher.start()
        return self._url

    def landing_path(self) -> str:
        """Return the path component of the announced URL."""
        if self.target:
            return quote(Path(self.target).name)
        return self.content.default_document() or ""

    def launch_browser(self) -> bool:
        try:
            opened = self._open_url(self.url)
        except (webbrowser.Error, OSError) as exc:
            logger.warning("Error opening browser: %s", exc)
            return False
        if not opened:
            logger.warning("No browser could be opened for %s", self.url)
        return bool(opened)

    def serve_forever(self) -> None:
        if self.state is ServerState.STOPPED:
            raise RuntimeError("Preview server has been stopped.")
        self.start()
        httpd = self._httpd
        if httpd is None:
            raise RuntimeError("Preview server has not been started.")
        self.state = ServerState.SERVING
        httpd.serve_forever()

    def run(self, announce: Callable[[str], Any] = print) -> None:
        """Start, announce, optionally open a browser and block until interrupted."""
        url = self.start()
        announce(url)
        if self.config.browser:
            self.launch_browser()
        try:
            self.serve_forever()
        finally:
            self.close()

    def close(self) -> None:
        """Stop watching, end open reload streams and release the socket."""
        self.broadcaster.close()
        self.watcher.stop()
        if self._httpd is not None:
            try:
                if self.state is ServerState.SERVING:
                    self._httpd.shutdown()
            finally:
                self._httpd.server_close()
            self._httpd = None
        self.state = ServerState.STOPPED

    def _announced_url(self) -> str:
        host = self.config.host
        url_host = "127.0.0.1" if host in WILDCARD_HOSTS else host
        return f"http://{url_host}:{self.bound_port}/{self.landing_path()}"
