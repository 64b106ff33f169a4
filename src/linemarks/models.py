"""Data models for bookmark locations and pattern categories.

These are plain frozen dataclasses for in-memory use. Locations are
produced fresh on every scan and never mutated; a rescan replaces them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, order=True)
class Position:
    """Zero-based line/column position inside a document."""

    line: int
    character: int

    def to_list(self) -> list[int]:
        return [self.line, self.character]


@dataclass(frozen=True)
class Range:
    """Half-open span between two positions."""

    start: Position
    end: Position

    @classmethod
    def from_coords(
        cls, start_line: int, start_col: int, end_line: int, end_col: int
    ) -> Range:
        return cls(Position(start_line, start_col), Position(end_line, end_col))

    def to_list(self) -> list[list[int]]:
        """Serialise as ``[[startLine, startCol], [endLine, endCol]]``."""
        return [self.start.to_list(), self.end.to_list()]


@dataclass(frozen=True)
class Location:
    """One matched occurrence of a category pattern.

    Attributes:
        range: Span from the match start to the end of the right-stripped
            match text.
        captured_text: Rest of the source line from the match start,
            with trailing whitespace removed.
    """

    range: Range
    captured_text: str

    def to_dict(self) -> dict[str, Any]:
        return {"range": self.range.to_list(), "capturedText": self.captured_text}


@dataclass(frozen=True)
class Category:
    """A named group of patterns sharing one visual style.

    Attributes:
        name: Unique category key.
        patterns: Ordered pattern strings, compiled case-sensitively.
        style: Identifier of the style used to decorate matches.
    """

    name: str
    patterns: tuple[str, ...] = field(default_factory=tuple)
    style: str = "default"
