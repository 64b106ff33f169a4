"""Authoritative in-memory bookmark index.

Maps document identity -> category -> ordered Location list. A document
key exists only while at least one category has locations for it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from linemarks.models import Location


class BookmarkStore:
    """Per-document, per-category Location lists.

    Mutations replace lists wholesale; stored lists are never edited in
    place. Readers receive copies.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, list[Location]]] = {}

    def clear_document(self, document_id: str) -> None:
        """Remove every category for *document_id*. No-op when absent."""
        self._documents.pop(document_id, None)

    def set_category(
        self, document_id: str, category: str, locations: list[Location]
    ) -> None:
        """Replace *category*'s locations for *document_id*.

        An empty *locations* list is never stored: the call is a no-op.
        """
        if not locations:
            return
        self._documents.setdefault(document_id, {})[category] = list(locations)

    def replace_document(
        self, document_id: str, locations: dict[str, list[Location]]
    ) -> None:
        """Full rescan commit: ``clear_document`` then ``set_category`` each."""
        self.clear_document(document_id)
        for category, locs in locations.items():
            self.set_category(document_id, category, locs)

    def remove(self, document_id: str) -> bool:
        """Remove *document_id*; return whether it was present."""
        return self._documents.pop(document_id, None) is not None

    def has(self, document_id: str) -> bool:
        return document_id in self._documents

    def all_documents(self) -> list[str]:
        """Document identities in insertion order."""
        return list(self._documents)

    def categories_for(self, document_id: str) -> list[str]:
        return list(self._documents.get(document_id, {}))

    def locations_for(self, document_id: str, category: str) -> list[Location]:
        return list(self._documents.get(document_id, {}).get(category, []))

    def clear(self) -> None:
        self._documents.clear()

    def to_dict(self) -> dict[str, dict[str, list[dict[str, Any]]]]:
        """Plain ``{document: {category: [location dict, ...]}}`` mapping."""
        return {
            document_id: {
                category: [loc.to_dict() for loc in locs]
                for category, locs in categories.items()
            }
            for document_id, categories in self._documents.items()
        }

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._documents))

    def __len__(self) -> int:
        return len(self._documents)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BookmarkStore):
            return NotImplemented
        return self._documents == other._documents

    __hash__ = None  # type: ignore[assignment]
