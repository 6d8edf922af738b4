from __future__ import annotations

import http.client
import threading
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest

from mdpreview.config import ServerConfig
from mdpreview.preview_server import PreviewServer


def _fetch(server: PreviewServer, path: str, method: str = "GET") -> tuple[int, dict[str, str], bytes]:
    """Issue one request against a running server and return status, headers and body."""
    connection = http.client.HTTPConnection("127.0.0.1", server.bound_port, timeout=10)
    try:
        connection.request(method, path)
        response = connection.getresponse()
        body = response.read()
        headers = {name.lower(): value for name, value in response.getheaders()}
        return response.status, headers, body
    finally:
        connection.close()


@pytest.fixture
def fetch() -> Callable[..., tuple[int, dict[str, str], bytes]]:
    return _fetch


@pytest.fixture
def start_server() -> Iterator[Callable[..., PreviewServer]]:
    """Start preview servers on free ports in background threads; close them afterwards."""
    running: list[tuple[PreviewServer, threading.Thread]] = []

    def _start(directory: Path, *, target: str | None = None, **kwargs: Any) -> PreviewServer:
        composer = kwargs.pop("composer", None)
        config = ServerConfig(host="127.0.0.1", port=0, browser=False, **kwargs)
        server = PreviewServer(config, directory, target=target, composer=composer)
        server.start()
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        running.append((server, thread))
        return server

    yield _start

    for server, thread in running:
        server.close()
        thread.join(timeout=5)
