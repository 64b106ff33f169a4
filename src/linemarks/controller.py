"""Bookmark controller: the orchestration layer.

Each document event runs one full cycle::

    scan document -> replace its store entry -> save -> notify tree

The controller owns the BookmarkStore and TreeModel. Both exist only
between ``activate()`` and ``deactivate()``.

Overlapping scans of the same document are resolved by a per-document
sequence number: a scan commits only if no newer scan for that document
was issued while it was suspended.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from linemarks.catalog import PatternCatalog, SettingsCatalogSource
from linemarks.host.local import JsonFileStateSlot, LocalFileSystem
from linemarks.indexer import DocumentIndexer
from linemarks.persistence import PersistenceAdapter
from linemarks.store import BookmarkStore
from linemarks.tree import TreeModel

if TYPE_CHECKING:
    from linemarks.catalog import CatalogSource
    from linemarks.config import Settings
    from linemarks.host.protocol import (
        DocumentSource,
        FileSystem,
        Navigator,
        StateSlot,
        TextDocument,
    )
    from linemarks.indexer import PatternCompileError
    from linemarks.models import Range
    from linemarks.tree import LocationNode

logger = logging.getLogger(__name__)


class DocumentEventKind(StrEnum):
    """Host notifications that trigger a rescan."""

    VISIBLE = "visible"
    CHANGED = "changed"
    SAVED = "saved"


@dataclass(frozen=True)
class DocumentEvent:
    kind: DocumentEventKind
    document: TextDocument


class ControllerNotActiveError(RuntimeError):
    """Raised when the store is accessed outside activate/deactivate."""


class BookmarkController:
    """Keeps the bookmark index in step with document events.

    Args:
        catalog_source: Supplies PatternCatalog snapshots.
        persistence: Saves and restores the store.
        indexer: Document scanner; a default one is created if omitted.
        document_source: Opens documents by identity (used by ``refresh``).
        navigator: Reveals bookmarked ranges (used by ``jump_to``).
        ignore_prefixes: Documents whose file name starts with one of these
            are never scanned.
    """

    def __init__(
        self,
        catalog_source: CatalogSource,
        persistence: PersistenceAdapter,
        indexer: DocumentIndexer | None = None,
        document_source: DocumentSource | None = None,
        navigator: Navigator | None = None,
        ignore_prefixes: tuple[str, ...] = ("extension-output-",),
    ) -> None:
        self.catalog_source = catalog_source
        self.persistence = persistence
        self.indexer = indexer or DocumentIndexer()
        self.document_source = document_source
        self.navigator = navigator
        self.ignore_prefixes = tuple(ignore_prefixes)

        self.diagnostics: dict[str, list[PatternCompileError]] = {}
        self._catalog: PatternCatalog | None = None
        self._store: BookmarkStore | None = None
        self._tree: TreeModel | None = None
        self._sequences: dict[str, int] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        document_source: DocumentSource | None = None,
        navigator: Navigator | None = None,
        slot: StateSlot | None = None,
        file_system: FileSystem | None = None,
    ) -> BookmarkController:
        """Build a controller wired to local-filesystem collaborators.

        When *slot* is omitted, ``storage.state_file`` selects a JSON state
        file; ``None`` there disables persistence.
        """
        if slot is None and settings.storage.state_file is not None:
            slot = JsonFileStateSlot(settings.storage.state_file)
        persistence = PersistenceAdapter(
            slot,
            file_system or LocalFileSystem(),
            key=settings.storage.state_key,
            debounce_seconds=settings.storage.save_debounce_seconds,
        )
        return cls(
            SettingsCatalogSource(settings),
            persistence,
            indexer=DocumentIndexer(yield_every=settings.scan.yield_every),
            document_source=document_source,
            navigator=navigator,
            ignore_prefixes=tuple(settings.bookmarks.ignore_prefixes),
        )

    # --- lifecycle ---

    @property
    def active(self) -> bool:
        return self._store is not None

    @property
    def store(self) -> BookmarkStore:
        if self._store is None:
            msg = "BookmarkController is not active"
            raise ControllerNotActiveError(msg)
        return self._store

    @property
    def tree(self) -> TreeModel:
        if self._tree is None:
            msg = "BookmarkController is not active"
            raise ControllerNotActiveError(msg)
        return self._tree

    async def activate(self) -> None:
        """Load the catalog and restore persisted bookmarks."""
        if self.active:
            return
        self._catalog = self.catalog_source.load()
        restored = await self.persistence.load()
        self._store = restored if restored is not None else BookmarkStore()
        self._tree = TreeModel(self._store)
        logger.info(
            "Bookmark controller active: %d categories, %d document(s)",
            len(self._catalog),
            len(self._store),
        )

    async def deactivate(self) -> None:
        """Flush pending saves and drop the in-memory index."""
        if not self.active:
            return
        await self.persistence.flush()
        self.store.clear()
        self.tree.refresh()
        self._store = None
        self._tree = None
        self._sequences.clear()
        self.diagnostics.clear()
        logger.info("Bookmark controller deactivated")

    # --- catalog ---

    def invalidate_catalog(self) -> None:
        """Mark the catalog stale; the next cycle reloads it."""
        self._catalog = None

    @property
    def catalog(self) -> PatternCatalog:
        if self._catalog is None:
            self._catalog = self.catalog_source.load()
        return self._catalog

    # --- event handling ---

    def is_ignored(self, document: TextDocument) -> bool:
        return document.file_name.startswith(self.ignore_prefixes)

    async def handle_event(self, event: DocumentEvent) -> bool:
        """Run one update cycle for the event's document."""
        logger.debug("%s: %s", event.kind, event.document.uri)
        return await self.update_bookmarks(event.document)

    async def on_document_visible(self, document: TextDocument) -> bool:
        event = DocumentEvent(DocumentEventKind.VISIBLE, document)
        return await self.handle_event(event)

    async def on_document_changed(self, document: TextDocument) -> bool:
        event = DocumentEvent(DocumentEventKind.CHANGED, document)
        return await self.handle_event(event)

    async def on_document_saved(self, document: TextDocument) -> bool:
        event = DocumentEvent(DocumentEventKind.SAVED, document)
        return await self.handle_event(event)

    def _issue_sequence(self, document_id: str) -> int:
        seq = self._sequences.get(document_id, 0) + 1
        self._sequences[document_id] = seq
        return seq

    async def update_bookmarks(self, document: TextDocument) -> bool:
        """Rescan *document* and commit the result.

        Returns:
            True if the scan's results were committed; False if the document
            is ignored, the scan failed, or a newer scan superseded it.
        """
        if self.is_ignored(document):
            return False
        store = self.store
        document_id = document.uri
        seq = self._issue_sequence(document_id)
        catalog = self.catalog

        try:
            result = await self.indexer.scan_async(
                document.get_text(), catalog.categories, document
            )
        except MemoryError:
            raise
        except Exception:
            logger.exception("Failed to scan %s", document_id)
            return False

        if self._sequences.get(document_id) != seq or self._store is not store:
            logger.debug("Discarding stale scan of %s (seq %d)", document_id, seq)
            return False

        if result.errors:
            self.diagnostics[document_id] = result.errors
        else:
            self.diagnostics.pop(document_id, None)

        store.replace_document(document_id, result.locations)
        logger.debug(
            "Indexed %s: %d bookmark(s) in %d categories",
            document_id,
            result.match_count,
            len(result.locations),
        )
        await self.persistence.request_save(store)
        if self._tree is not None:
            self._tree.refresh(document_id)
        return True

    # --- commands ---

    async def refresh(self) -> int:
        """Reopen and rescan every document currently in the store.

        Documents that can no longer be opened are removed.

        Returns:
            Number of documents rescanned.
        """
        if self.document_source is None:
            msg = "refresh requires a document source"
            raise RuntimeError(msg)
        rescanned = 0
        for document_id in self.store.all_documents():
            try:
                document = await self.document_source.open(document_id)
            except OSError:
                logger.info("Removing bookmarks for unreadable %s", document_id)
                await self.forget(document_id)
                continue
            if await self.update_bookmarks(document):
                rescanned += 1
        return rescanned

    async def forget(self, document_id: str) -> bool:
        """Drop all bookmarks of *document_id*."""
        if not self.store.remove(document_id):
            return False
        self._issue_sequence(document_id)
        self.diagnostics.pop(document_id, None)
        await self.persistence.request_save(self.store)
        self.tree.refresh(document_id)
        return True

    def jump_to(self, node: LocationNode) -> tuple[str, Range]:
        """Navigate to *node*'s range; return the ``(uri, range)`` target."""
        uri, range_ = node.target
        if self.navigator is not None:
            self.navigator.jump_to(uri, range_)
        return uri, range_
