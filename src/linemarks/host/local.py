"""Local-filesystem implementations of the host protocols.

Blocking file I/O runs in worker threads via ``asyncio.to_thread`` so the
event loop stays responsive while documents are read or state is written.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse
from urllib.request import url2pathname

from linemarks.indexer import LineIndex

if TYPE_CHECKING:
    from linemarks.models import Position, Range

logger = logging.getLogger(__name__)


def path_to_uri(path: str | Path) -> str:
    """Return the ``file://`` identity of *path* (made absolute)."""
    return Path(path).resolve().as_uri()


def uri_to_path(uri: str) -> Path | None:
    """Return the local path behind a ``file://`` URI, else ``None``."""
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        return None
    return Path(url2pathname(parsed.path))


class LocalTextDocument:
    """In-memory snapshot of a document's text."""

    def __init__(self, uri: str, text: str, file_name: str | None = None) -> None:
        self._uri = uri
        self._text = text
        path = uri_to_path(uri)
        self._file_name = file_name or (str(path) if path else urlparse(uri).path)
        self._index = LineIndex(text)

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def file_name(self) -> str:
        return self._file_name

    def get_text(self) -> str:
        return self._text

    def position_at(self, offset: int) -> Position:
        return self._index.position_at(offset)

    def __repr__(self) -> str:
        return f"LocalTextDocument({self._uri!r}, {len(self._text)} chars)"


class LocalDocumentSource:
    """Opens ``file://`` documents from disk."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    async def open(self, uri: str) -> LocalTextDocument:
        path = uri_to_path(uri)
        if path is None:
            msg = f"Not a local file URI: {uri}"
            raise FileNotFoundError(msg)
        text = await asyncio.to_thread(
            path.read_text, encoding=self.encoding, errors="replace"
        )
        return LocalTextDocument(uri, text)


class LocalFileSystem:
    """File existence checks against the local disk."""

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(path.exists)


class MemoryStateSlot:
    """Process-lifetime key-value slot, for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    @property
    def available(self) -> bool:
        return True

    def get(self, key: str, default: str) -> str:
        return self.values.get(key, default)

    async def set(self, key: str, value: str) -> None:
        self.values[key] = value


class JsonFileStateSlot:
    """Key-value slot persisted as a JSON object in a single file.

    The file is read on first access. Writes are serialised by a lock and go
    to a uniquely named sibling temporary file that then replaces the
    original, so a crash mid-write leaves the previous state intact.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._values: dict[str, str] | None = None
        self._write_lock = asyncio.Lock()

    @property
    def available(self) -> bool:
        return True

    def _read(self) -> dict[str, str]:
        if self._values is None:
            self._values = {}
            if self.path.is_file():
                try:
                    raw = json.loads(self.path.read_text(encoding="utf-8"))
                except (OSError, ValueError):
                    logger.warning("Ignoring unreadable state file %s", self.path)
                else:
                    if isinstance(raw, dict):
                        self._values = {
                            k: v for k, v in raw.items() if isinstance(v, str)
                        }
                    else:
                        logger.warning("State file %s is not an object", self.path)
        return self._values

    def get(self, key: str, default: str) -> str:
        return self._read().get(key, default)

    async def set(self, key: str, value: str) -> None:
        values = self._read()
        values[key] = value
        async with self._write_lock:
            # Each write carries every key set so far.
            payload = json.dumps(values, indent=2, sort_keys=True)
            await asyncio.to_thread(self._write, payload)

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp, self.path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise


class LoggingNavigator:
    """Navigator for headless hosts: reports the target as ``path:line:col``."""

    def __init__(self) -> None:
        self.last_target: str | None = None

    def jump_to(self, uri: str, range_: Range) -> None:
        path = uri_to_path(uri)
        where = str(path) if path else uri
        # Editors expect 1-based line and column numbers.
        self.last_target = (
            f"{where}:{range_.start.line + 1}:{range_.start.character + 1}"
        )
        logger.info("Jump to %s", self.last_target)
