"""Tests for BookmarkStore mutation and query semantics."""

from __future__ import annotations

from linemarks.models import Location, Range
from linemarks.store import BookmarkStore
from tests.conftest import DOC_A, DOC_B


def _loc(line: int, text: str = "TODO") -> Location:
    return Location(Range.from_coords(line, 0, line, 4), text)


class TestSetCategory:
    """set_category() creates entries only for non-empty lists."""

    def test_creates_document_entry(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(0)])
        assert store.has(DOC_A)
        assert store.categories_for(DOC_A) == ["todo"]
        assert store.locations_for(DOC_A, "todo") == [_loc(0)]

    def test_empty_list_is_noop(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [])
        assert not store.has(DOC_A)
        assert len(store) == 0

    def test_empty_list_keeps_existing_category(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(0)])
        store.set_category(DOC_A, "todo", [])
        assert store.locations_for(DOC_A, "todo") == [_loc(0)]

    def test_replaces_category_wholesale(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(0), _loc(1)])
        store.set_category(DOC_A, "todo", [_loc(5)])
        assert store.locations_for(DOC_A, "todo") == [_loc(5)]

    def test_stored_list_is_not_shared_with_caller(self) -> None:
        store = BookmarkStore()
        locations = [_loc(0)]
        store.set_category(DOC_A, "todo", locations)
        locations.append(_loc(1))
        store.locations_for(DOC_A, "todo").append(_loc(2))
        assert store.locations_for(DOC_A, "todo") == [_loc(0)]


class TestClearAndRemove:
    """clear_document(), remove() and replace_document()."""

    def test_clear_document_removes_all_categories(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(0)])
        store.set_category(DOC_A, "bug", [_loc(1)])
        store.clear_document(DOC_A)
        assert not store.has(DOC_A)
        assert store.categories_for(DOC_A) == []

    def test_clear_absent_document_is_noop(self) -> None:
        store = BookmarkStore()
        store.clear_document(DOC_A)
        assert len(store) == 0

    def test_remove_reports_presence(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(0)])
        assert store.remove(DOC_A) is True
        assert store.remove(DOC_A) is False

    def test_replace_document_drops_stale_categories(self) -> None:
        """After a rescan commit only the current categories remain."""
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(0)])
        store.set_category(DOC_A, "bug", [_loc(1)])
        store.replace_document(DOC_A, {"bug": [_loc(3)]})
        assert store.categories_for(DOC_A) == ["bug"]
        assert store.locations_for(DOC_A, "bug") == [_loc(3)]

    def test_replace_document_with_no_matches_removes_entry(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(0)])
        store.replace_document(DOC_A, {"todo": []})
        assert not store.has(DOC_A)

    def test_replace_leaves_other_documents_alone(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(0)])
        store.set_category(DOC_B, "todo", [_loc(1)])
        store.replace_document(DOC_A, {})
        assert store.all_documents() == [DOC_B]


class TestQueries:
    """Read-side helpers."""

    def test_unknown_document_queries_are_empty(self) -> None:
        store = BookmarkStore()
        assert store.categories_for(DOC_A) == []
        assert store.locations_for(DOC_A, "todo") == []

    def test_all_documents_in_insertion_order(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_B, "todo", [_loc(0)])
        store.set_category(DOC_A, "todo", [_loc(0)])
        assert store.all_documents() == [DOC_B, DOC_A]
        assert list(store) == [DOC_B, DOC_A]
        assert DOC_A in store

    def test_to_dict_uses_persisted_shape(self) -> None:
        store = BookmarkStore()
        store.set_category(DOC_A, "todo", [_loc(2, "TODO: x")])
        assert store.to_dict() == {
            DOC_A: {"todo": [{"range": [[2, 0], [2, 4]], "capturedText": "TODO: x"}]}
        }

    def test_equality_compares_contents(self) -> None:
        first, second = BookmarkStore(), BookmarkStore()
        first.set_category(DOC_A, "todo", [_loc(0)])
        second.set_category(DOC_A, "todo", [_loc(0)])
        assert first == second
        second.set_category(DOC_A, "bug", [_loc(1)])
        assert first != second
