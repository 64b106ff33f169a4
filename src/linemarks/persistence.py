"""Persistence of the bookmark index in a durable key-value slot.

The store is serialised as one JSON object::

    {document: {category: [{"range": [[l, c], [l, c]], "capturedText": s}]}}

Loaded data is untrusted: each document and category is validated on its
own and malformed parts are dropped without aborting the load. Documents
whose backing file no longer exists are pruned.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from linemarks.host.local import uri_to_path
from linemarks.models import Location, Range
from linemarks.store import BookmarkStore

if TYPE_CHECKING:
    from linemarks.host.protocol import FileSystem, StateSlot

logger = logging.getLogger(__name__)

DEFAULT_STATE_KEY = "bookmarks.object"

_Point = tuple[NonNegativeInt, NonNegativeInt]


class PersistedLocation(BaseModel):
    """Shape of one stored location.

    Also accepts the older layout where positions were stored as
    ``{"line": l, "character": c}`` objects and the text under ``text``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    range: tuple[_Point, _Point]
    captured_text: str = Field(alias="capturedText")

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        has_text = "capturedText" in data or "captured_text" in data
        if not has_text and "text" in data:
            data["capturedText"] = data.pop("text")
        points = data.get("range")
        if isinstance(points, list) and points and all(
            isinstance(p, dict) for p in points
        ):
            data["range"] = [[p.get("line"), p.get("character")] for p in points]
        return data

    def to_location(self) -> Location:
        (start_line, start_col), (end_line, end_col) = self.range
        return Location(
            range=Range.from_coords(start_line, start_col, end_line, end_col),
            captured_text=self.captured_text,
        )


_category_adapter = TypeAdapter(list[PersistedLocation])


class PersistenceAdapter:
    """Saves and restores a BookmarkStore through a StateSlot.

    Persistence is skipped entirely when no slot is configured or the slot
    reports no active storage scope.

    Attributes:
        debounce_seconds: Delay before a requested save runs. ``0`` saves
            immediately inside ``request_save``.
    """

    def __init__(
        self,
        slot: StateSlot | None,
        file_system: FileSystem,
        key: str = DEFAULT_STATE_KEY,
        debounce_seconds: float = 0.0,
    ) -> None:
        self._slot = slot
        self._file_system = file_system
        self.key = key
        self.debounce_seconds = debounce_seconds
        self._pending_save: asyncio.Task[None] | None = None
        self._dirty_store: BookmarkStore | None = None

    @property
    def available(self) -> bool:
        return self._slot is not None and self._slot.available

    # --- codec ---

    @staticmethod
    def dumps(store: BookmarkStore) -> str:
        """Serialise *store* to the persisted JSON blob."""
        return json.dumps(store.to_dict(), separators=(",", ":"))

    async def loads(self, blob: str) -> BookmarkStore:
        """Rebuild a store from *blob*, pruning missing files.

        Never raises on bad data: unparseable input yields an empty store,
        and malformed documents or categories are dropped individually.
        """
        store = BookmarkStore()
        try:
            raw = json.loads(blob)
        except ValueError:
            logger.warning("Persisted bookmarks are not valid JSON; starting empty")
            return store
        if not isinstance(raw, dict):
            logger.warning(
                "Persisted bookmarks have type %s, expected object; starting empty",
                type(raw).__name__,
            )
            return store

        existing = await asyncio.gather(
            *(self._backing_file_exists(doc_id) for doc_id in raw)
        )
        for (document_id, categories), exists in zip(
            raw.items(), existing, strict=True
        ):
            if not exists:
                logger.info("Pruning bookmarks for missing document %s", document_id)
                continue
            if not isinstance(categories, dict):
                logger.warning("Dropping malformed bookmarks for %s", document_id)
                continue
            for category, entries in categories.items():
                try:
                    persisted = _category_adapter.validate_python(entries)
                except ValidationError as exc:
                    logger.warning(
                        "Dropping malformed category %r of %s: %d error(s)",
                        category,
                        document_id,
                        exc.error_count(),
                    )
                    continue
                store.set_category(
                    document_id, category, [p.to_location() for p in persisted]
                )
        return store

    async def _backing_file_exists(self, document_id: str) -> bool:
        path = uri_to_path(document_id)
        if path is None:
            return False
        try:
            return await self._file_system.exists(path)
        except OSError as exc:
            logger.warning("Cannot check %s (%s); treating it as missing", path, exc)
            return False

    # --- slot I/O ---

    async def save(self, store: BookmarkStore) -> str | None:
        """Write *store* to the slot; return the blob, or None if skipped."""
        if not self.available:
            logger.debug("No storage scope; skipping bookmark save")
            return None
        blob = self.dumps(store)
        try:
            await self._slot.set(self.key, blob)  # type: ignore[union-attr]
        except Exception:
            logger.exception("Failed to persist bookmarks")
            return None
        logger.debug("Persisted bookmarks for %d document(s)", len(store))
        return blob

    async def load(self) -> BookmarkStore | None:
        """Read the slot and rebuild the store; None if no storage scope."""
        if not self.available:
            logger.debug("No storage scope; skipping bookmark load")
            return None
        blob = self._slot.get(self.key, "{}")  # type: ignore[union-attr]
        store = await self.loads(blob)
        logger.info("Restored bookmarks for %d document(s)", len(store))
        return store

    # --- debounced saving ---

    async def request_save(self, store: BookmarkStore) -> None:
        """Save now, or schedule a debounced save when debouncing is on."""
        if self.debounce_seconds <= 0:
            await self.save(store)
            return
        self._dirty_store = store
        self._cancel_pending_save()

        async def debounced_save() -> None:
            await asyncio.sleep(self.debounce_seconds)
            self._pending_save = None
            await self._save_dirty()

        self._pending_save = asyncio.create_task(debounced_save())

    def _cancel_pending_save(self) -> None:
        task, self._pending_save = self._pending_save, None
        if task and not task.done():
            task.cancel()

    async def _save_dirty(self) -> None:
        store, self._dirty_store = self._dirty_store, None
        if store is not None:
            await self.save(store)

    async def flush(self) -> None:
        """Run any pending debounced save immediately (e.g., on shutdown)."""
        self._cancel_pending_save()
        await self._save_dirty()
