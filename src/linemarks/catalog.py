"""Pattern catalog: an immutable snapshot of categories and their styles.

The catalog is produced by a ``CatalogSource``. Reloading replaces the
snapshot wholesale; there is no merge with the previous one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from linemarks.config import DEFAULT_STYLE, get_settings
from linemarks.models import Category

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from linemarks.config import Settings, StyleConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternCatalog:
    """Read-only category -> patterns and category -> style snapshot."""

    categories: tuple[Category, ...] = ()
    styles: Mapping[str, StyleConfig] = field(default_factory=dict)

    @classmethod
    def from_mappings(
        cls,
        words: Mapping[str, list[str]],
        styles: Mapping[str, StyleConfig] | None = None,
    ) -> PatternCatalog:
        """Build a catalog from raw ``{category: [pattern, ...]}`` data.

        Categories keep the mapping's insertion order. A category's style
        identifier is its own name when a style exists for it, otherwise
        ``default``.
        """
        styles = dict(styles or {})
        categories = tuple(
            Category(
                name=name,
                patterns=tuple(patterns),
                style=name if name in styles else DEFAULT_STYLE,
            )
            for name, patterns in words.items()
        )
        return cls(categories=categories, styles=styles)

    def __iter__(self) -> Iterator[Category]:
        return iter(self.categories)

    def __len__(self) -> int:
        return len(self.categories)

    def get(self, name: str) -> Category | None:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def style_for(self, category: str) -> StyleConfig | None:
        """Return the style of *category*, falling back to ``default``."""
        entry = self.get(category)
        style = entry.style if entry is not None else DEFAULT_STYLE
        return self.styles.get(style) or self.styles.get(DEFAULT_STYLE)


class CatalogSource(Protocol):
    """Supplies catalog snapshots on demand."""

    def load(self) -> PatternCatalog:
        """Return the current catalog snapshot."""
        ...


class SettingsCatalogSource:
    """Catalog source backed by ``Settings.bookmarks``.

    Args:
        settings: Fixed settings to read from. When omitted, the cached
            ``get_settings()`` instance is read on every load so that a
            ``get_settings.cache_clear()`` is picked up.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    def load(self) -> PatternCatalog:
        settings = self._settings or get_settings()
        catalog = PatternCatalog.from_mappings(
            settings.bookmarks.words, settings.bookmarks.styles
        )
        logger.debug(
            "Loaded pattern catalog: %s",
            ", ".join(f"{c.name}({len(c.patterns)})" for c in catalog) or "<empty>",
        )
        return catalog


class StaticCatalogSource:
    """Catalog source that always returns the same snapshot."""

    def __init__(self, catalog: PatternCatalog) -> None:
        self._catalog = catalog

    def load(self) -> PatternCatalog:
        return self._catalog
