"""Read-only navigable hierarchy derived from a BookmarkStore.

Two node kinds exist: documents at the root and bookmarked lines beneath
them. Locations of every category are flattened directly under their
document; the category only selects the icon.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Callable

    from linemarks.models import Location, Range
    from linemarks.store import BookmarkStore

logger = logging.getLogger(__name__)

JUMP_COMMAND = "linemarks.jumpToRange"
FILE_ICON = "file"


@dataclass(frozen=True)
class DocumentNode:
    """Root node wrapping a document identity."""

    document_id: str

    @property
    def label(self) -> str:
        return self.document_id


@dataclass(frozen=True)
class LocationNode:
    """Leaf node for one bookmarked line."""

    parent: DocumentNode
    category: str
    location: Location

    @property
    def label(self) -> str:
        return self.location.captured_text.strip()

    @property
    def target(self) -> tuple[str, Range]:
        """Navigation target: ``(document identity, range)``."""
        return self.parent.document_id, self.location.range


TreeNode: TypeAlias = DocumentNode | LocationNode


@dataclass(frozen=True)
class Command:
    """Host command invoked when a node is activated."""

    command: str
    title: str
    arguments: tuple[object, ...] = ()


@dataclass(frozen=True)
class TreeItem:
    """Display descriptor for a tree node."""

    label: str
    resource: str
    tooltip: str
    icon: str
    collapsible: bool
    command: Command | None = None


class TreeModel:
    """Tree data provider over a BookmarkStore.

    Listeners registered with ``on_did_change`` are called with the
    affected document identity, or ``None`` when the whole tree changed.
    """

    def __init__(self, store: BookmarkStore) -> None:
        self._store = store
        self._listeners: list[Callable[[str | None], None]] = []

    def list_roots(self) -> list[DocumentNode]:
        """Every document in the store, sorted by identity."""
        return [DocumentNode(doc_id) for doc_id in sorted(self._store.all_documents())]

    def list_children(self, node: TreeNode | None = None) -> list[TreeNode]:
        """Children of *node*; the roots when *node* is ``None``."""
        if node is None:
            return list(self.list_roots())
        if isinstance(node, LocationNode):
            return []
        children: list[TreeNode] = []
        for category in self._store.categories_for(node.document_id):
            children.extend(
                LocationNode(parent=node, category=category, location=loc)
                for loc in self._store.locations_for(node.document_id, category)
            )
        return children

    def get_parent(self, node: TreeNode) -> DocumentNode | None:
        if isinstance(node, LocationNode):
            return node.parent
        return None

    def tree_item(self, node: TreeNode) -> TreeItem:
        if isinstance(node, DocumentNode):
            return TreeItem(
                label=node.label,
                resource=node.document_id,
                tooltip=node.document_id,
                icon=FILE_ICON,
                collapsible=True,
            )
        document_id, range_ = node.target
        return TreeItem(
            label=node.label,
            resource=document_id,
            tooltip=node.label,
            icon=f"images/bookmark-{node.category}.svg",
            collapsible=False,
            command=Command(JUMP_COMMAND, "JumpTo", (document_id, range_)),
        )

    # --- change notification ---

    def on_did_change(
        self, listener: Callable[[str | None], None]
    ) -> Callable[[], None]:
        """Register *listener*; return a callable that unregisters it."""
        self._listeners.append(listener)

        def dispose() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return dispose

    def refresh(self, document_id: str | None = None) -> None:
        """Notify listeners that *document_id*'s subtree (or all) changed."""
        # Iterate a copy: listeners may unsubscribe during notification.
        for listener in list(self._listeners):
            try:
                listener(document_id)
            except Exception:
                logger.exception("Tree change listener failed for %s", document_id)
