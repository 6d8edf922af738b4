"""Read access to the directory being previewed."""

from __future__ import annotations

import os
import posixpath
import urllib.parse
from pathlib import Path

README_FILENAME = "README.md"


class ContentRoot:
    """Resolve request paths to files below one root directory.

    Path normalization mirrors ``SimpleHTTPRequestHandler.translate_path`` so a
    Markdown read and the static fallback always agree on which file a URL
    names.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory.resolve()

    @property
    def directory(self) -> Path:
        return self._directory

    def resolve(self, url_path: str) -> Path:
        path = url_path.split("?", 1)[0].split("#", 1)[0]
        try:
            path = urllib.parse.unquote(path, errors="surrogatepass")
        except UnicodeDecodeError:
            path = urllib.parse.unquote(path)
        path = posixpath.normpath(path)

        resolved = self._directory
        for word in filter(None, path.split("/")):
            if os.path.dirname(word) or word in (os.curdir, os.pardir):
                continue
            resolved = resolved / word
        return resolved

    def read_bytes(self, url_path: str) -> bytes:
        """Return the bytes behind ``url_path``; raises ``OSError`` when unreadable."""
        with self.resolve(url_path).open("rb") as handle:
            return handle.read()

    def has_file(self, relative: str) -> bool:
        return self.resolve(relative).is_file()

    def default_document(self) -> str | None:
        """Return the landing document name when the root carries a README."""
        return README_FILENAME if self.has_file(README_FILENAME) else None
