"""Live reload: a watchdog-driven broadcaster and the middleware that exposes it.

Browsers load ``/static/js/reload.js`` (injected into every page the server
renders) which opens an ``EventSource`` on ``/__reload``. Each open stream
subscribes its own queue to the :class:`ReloadBroadcaster`; the
:class:`ContentWatcher` publishes to all of them when files change.
"""

from __future__ import annotations

import logging
import queue
import re
import threading
from http import HTTPStatus
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .routing import Exchange, Handler

logger = logging.getLogger(__name__)

RELOAD_ENDPOINT = "/__reload"
RELOAD_SCRIPT_PATH = "/static/js/reload.js"
RELOAD_SNIPPET = f'<script src="{RELOAD_SCRIPT_PATH}" data-mdpreview-reload></script>'
RELOAD_EVENT = "reload"
KEEPALIVE_SECONDS = 15.0
DEBOUNCE_SECONDS = 0.1

_CHANGE_EVENTS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED})
_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)


class ReloadBroadcaster:
    """Fan reload events out to every subscribed listener."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: set[queue.Queue[str | None]] = set()
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> queue.Queue[str | None]:
        subscription: queue.Queue[str | None] = queue.Queue()
        with self._lock:
            if self._closed:
                subscription.put_nowait(None)
            else:
                self._subscribers.add(subscription)
        return subscription

    def unsubscribe(self, subscription: queue.Queue[str | None]) -> None:
        with self._lock:
            self._subscribers.discard(subscription)

    def publish(self, event: str = RELOAD_EVENT) -> int:
        """Deliver ``event`` to all current subscribers; returns how many received it."""
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.put_nowait(event)
        return len(subscribers)

    def close(self) -> None:
        """End every open stream; later subscribers are closed immediately."""
        with self._lock:
            self._closed = True
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for subscription in subscribers:
            subscription.put_nowait(None)


class _ChangeHandler(FileSystemEventHandler):
    """Collapse bursts of file events into one publish after a quiet period."""

    def __init__(self, broadcaster: ReloadBroadcaster, debounce: float) -> None:
        super().__init__()
        self._broadcaster = broadcaster
        self._debounce = debounce
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in _CHANGE_EVENTS:
            return
        logger.debug("Change detected: %s %s", event.event_type, event.src_path)
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        listeners = self._broadcaster.publish()
        logger.info("Files changed; notified %d client(s).", listeners)


class ContentWatcher:
    """Watch a directory tree and publish reload events on change."""

    def __init__(
        self,
        directory: Path,
        broadcaster: ReloadBroadcaster,
        *,
        debounce: float = DEBOUNCE_SECONDS,
    ) -> None:
        self._directory = directory
        self._handler = _ChangeHandler(broadcaster, debounce)
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.daemon = True
        observer.schedule(self._handler, str(self._directory), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug("Watching %s for changes", self._directory)

    def stop(self) -> None:
        self._handler.cancel()
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=2.0)
        self._observer = None


def inject_reload_script(document: str) -> str:
    """Insert the reload client before the last ``</body>``, or append it."""
    if RELOAD_SCRIPT_PATH in document:
        return document
    matches = list(_BODY_CLOSE.finditer(document))
    if not matches:
        return document + RELOAD_SNIPPET
    index = matches[-1].start()
    return f"{document[:index]}{RELOAD_SNIPPET}\n{document[index:]}"


class LiveReload:
    """Middleware that owns the reload stream and instruments rendered HTML."""

    def __init__(
        self,
        broadcaster: ReloadBroadcaster,
        *,
        endpoint: str = RELOAD_ENDPOINT,
        keepalive: float = KEEPALIVE_SECONDS,
    ) -> None:
        self._broadcaster = broadcaster
        self._endpoint = endpoint
        self._keepalive = keepalive

    def __call__(self, exchange: Exchange, call_next: Handler) -> None:
        if exchange.url_path == self._endpoint:
            if exchange.method != "GET":
                exchange.send_error(HTTPStatus.METHOD_NOT_ALLOWED)
                return
            self.stream(exchange)
            return
        exchange.html_filters.append(inject_reload_script)
        call_next(exchange)

    def stream(self, exchange: Exchange) -> None:
        """Hold a server-sent event stream open until the client or server goes away."""
        handler = exchange.handler
        subscription = self._broadcaster.subscribe()
        try:
            handler.send_response(HTTPStatus.OK)
            handler.send_header("Content-Type", "text/event-stream")
            handler.send_header("Cache-Control", "no-cache")
            handler.send_header("Connection", "keep-alive")
            handler.end_headers()
            self._write(exchange, b": connected\n\n")
            while True:
                try:
                    event = subscription.get(timeout=self._keepalive)
                except queue.Empty:
                    self._write(exchange, b": ping\n\n")
                    continue
                if event is None:
                    break
                self._write(exchange, f"event: {event}\ndata: {event}\n\n".encode("utf-8"))
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Reload client %s disconnected", handler.address_string())
        finally:
            self._broadcaster.unsubscribe(subscription)
        handler.close_connection = True

    @staticmethod
    def _write(exchange: Exchange, payload: bytes) -> None:
        exchange.handler.wfile.write(payload)
        exchange.handler.wfile.flush()
