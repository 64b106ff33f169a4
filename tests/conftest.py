"""Shared pytest fixtures for linemarks tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from linemarks.catalog import PatternCatalog, StaticCatalogSource
from linemarks.controller import BookmarkController
from linemarks.host.local import LocalTextDocument, MemoryStateSlot
from linemarks.indexer import DocumentIndexer
from linemarks.persistence import PersistenceAdapter

# Document identities used across tests. They point at paths that never
# exist on disk; FakeFileSystem decides which of them "exist".
DOC_A = "file:///workspace/a.py"
DOC_B = "file:///workspace/b.py"
DOC_C = "file:///workspace/c.py"


class FakeFileSystem:
    """FileSystem double: only paths added to ``existing`` exist."""

    def __init__(self, *uris: str) -> None:
        self.existing: set[Path] = set()
        self.checked: list[Path] = []
        for uri in uris:
            self.add(uri)

    def add(self, uri: str) -> None:
        from linemarks.host.local import uri_to_path

        path = uri_to_path(uri)
        assert path is not None
        self.existing.add(path)

    async def exists(self, path: Path) -> bool:
        self.checked.append(path)
        return path in self.existing


@pytest.fixture
def make_document() -> Callable[..., LocalTextDocument]:
    """Factory for in-memory documents."""

    def _make(text: str, uri: str = DOC_A) -> LocalTextDocument:
        return LocalTextDocument(uri, text)

    return _make


@pytest.fixture
def todo_catalog() -> PatternCatalog:
    """Two categories: ``todo`` -> TODO, ``bug`` -> FIXME."""
    return PatternCatalog.from_mappings({"todo": ["TODO"], "bug": ["FIXME"]})


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    return FakeFileSystem(DOC_A, DOC_B, DOC_C)


@pytest.fixture
def memory_slot() -> MemoryStateSlot:
    return MemoryStateSlot()


@pytest.fixture
def make_controller(
    todo_catalog: PatternCatalog,
    fake_fs: FakeFileSystem,
    memory_slot: MemoryStateSlot,
) -> Callable[..., BookmarkController]:
    """Factory for controllers wired to in-memory collaborators."""

    def _make(
        catalog: PatternCatalog | None = None,
        slot: MemoryStateSlot | None = memory_slot,
        **kwargs: object,
    ) -> BookmarkController:
        persistence = PersistenceAdapter(slot, fake_fs)
        return BookmarkController(
            StaticCatalogSource(catalog or todo_catalog),
            persistence,
            indexer=DocumentIndexer(yield_every=1),
            **kwargs,  # type: ignore[arg-type]
        )

    return _make
