"""Protocols for the host environment the bookmark engine runs inside.

The engine never touches editors, files or storage directly; it talks to
these collaborators. ``linemarks.host.local`` implements them over the
local filesystem for the command-line host.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pathlib import Path

    from linemarks.models import Position, Range


class TextDocument(Protocol):
    """An open document: identity, text and offset resolver."""

    @property
    def uri(self) -> str:
        """Stable document identity."""
        ...

    @property
    def file_name(self) -> str:
        """Filesystem path or host-specific name of the document."""
        ...

    def get_text(self) -> str:
        """Return the full document text."""
        ...

    def position_at(self, offset: int) -> Position:
        """Translate a flat character offset into a line/column position."""
        ...


class DocumentSource(Protocol):
    """Opens documents by identity."""

    async def open(self, uri: str) -> TextDocument:
        """Open *uri*.

        Raises:
            OSError: If the document cannot be opened.
        """
        ...


class StateSlot(Protocol):
    """Durable key-value storage scoped to the current workspace."""

    @property
    def available(self) -> bool:
        """Whether a storage scope is currently active."""
        ...

    def get(self, key: str, default: str) -> str:
        """Return the stored value for *key*, or *default*."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store *value* under *key*."""
        ...


class FileSystem(Protocol):
    """File existence checks used when pruning persisted state."""

    async def exists(self, path: Path) -> bool:
        """Return whether *path* exists."""
        ...


class Navigator(Protocol):
    """Reveals a range inside a document."""

    def jump_to(self, uri: str, range_: Range) -> None:
        """Open *uri* and select *range_*."""
        ...
