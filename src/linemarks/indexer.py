"""Pattern-based document scanning.

Scans one document's text against every category in a ``PatternCatalog``
and produces ``Location`` records per category. Offsets are translated to
line/column positions by a resolver (``LineIndex`` by default).

Location geometry:

- ``start`` is the match start.
- ``end`` is the match start plus the length of the right-stripped match
  text. Patterns commonly end in a whitespace class, and that trailing
  whitespace is not part of the marked range.
- ``captured_text`` runs from the match start to the end of its line
  (not to ``end``), right-stripped.
"""

from __future__ import annotations

import asyncio
import logging
import re
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from linemarks.models import Location, Position, Range

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from linemarks.models import Category

logger = logging.getLogger(__name__)


class PositionResolver(Protocol):
    """Translates flat character offsets into line/column positions."""

    def position_at(self, offset: int) -> Position: ...


class LineIndex:
    """Offset-to-position resolver built from line start offsets.

    Lines are split on ``\\n``; a ``\\r`` before it stays part of the line.
    """

    def __init__(self, text: str) -> None:
        self._length = len(text)
        self._line_starts = [0]
        self._line_starts.extend(m.end() for m in re.finditer("\n", text))

    def position_at(self, offset: int) -> Position:
        """Return the position of *offset*, clamped to the document bounds."""
        offset = max(0, min(offset, self._length))
        line = bisect_right(self._line_starts, offset) - 1
        return Position(line, offset - self._line_starts[line])


@dataclass(frozen=True)
class PatternCompileError:
    """Non-fatal diagnostic: a pattern that could not be compiled."""

    category: str
    pattern: str
    message: str

    def __str__(self) -> str:
        return f"[{self.category}] invalid pattern {self.pattern!r}: {self.message}"


@dataclass
class ScanResult:
    """Outcome of scanning one document.

    Attributes:
        locations: ``{category: [Location, ...]}`` in discovery order. Only
            categories with at least one match are present.
        errors: Patterns skipped because they failed to compile.
    """

    locations: dict[str, list[Location]] = field(default_factory=dict)
    errors: list[PatternCompileError] = field(default_factory=list)

    @property
    def match_count(self) -> int:
        return sum(len(locs) for locs in self.locations.values())


def iter_matches(compiled: re.Pattern[str], text: str) -> Iterator[re.Match[str]]:
    """Yield successive matches, each searched from the previous match end.

    A match found at the same start as the previous one ends the scan, so
    a pattern that can match the empty string cannot loop forever.
    """
    pos = 0
    last_start: int | None = None
    while pos <= len(text):
        match = compiled.search(text, pos)
        if match is None or match.start() == last_start:
            return
        last_start = match.start()
        yield match
        pos = match.end()


class DocumentIndexer:
    """Scans document text for category patterns.

    Compiled patterns are cached per pattern string; compile failures are
    cached too so a bad pattern is reported on every scan without
    recompiling it.
    """

    def __init__(self, yield_every: int = 200) -> None:
        self.yield_every = yield_every
        self._compiled: dict[str, re.Pattern[str] | re.error] = {}

    def _compile(self, pattern: str) -> re.Pattern[str] | re.error:
        cached = self._compiled.get(pattern)
        if cached is None:
            try:
                cached = re.compile(pattern)
            except re.error as exc:
                cached = exc
            self._compiled[pattern] = cached
        return cached

    def _location(
        self, text: str, match: re.Match[str], resolver: PositionResolver
    ) -> Location:
        start = match.start()
        end = start + len(match.group(0).rstrip())
        line_end = text.find("\n", start)
        if line_end == -1:
            line_end = len(text)
        return Location(
            range=Range(resolver.position_at(start), resolver.position_at(end)),
            captured_text=text[start:line_end].rstrip(),
        )

    def _plan(
        self, categories: Iterable[Category], result: ScanResult
    ) -> Iterator[tuple[str, re.Pattern[str]]]:
        """Yield ``(category, compiled)`` pairs, recording compile errors."""
        for category in categories:
            if not category.patterns:
                continue
            for pattern in category.patterns:
                compiled = self._compile(pattern)
                if isinstance(compiled, re.error):
                    error = PatternCompileError(category.name, pattern, str(compiled))
                    logger.warning("Skipping pattern: %s", error)
                    result.errors.append(error)
                    continue
                yield category.name, compiled

    def scan(
        self,
        text: str,
        categories: Iterable[Category],
        resolver: PositionResolver | None = None,
    ) -> ScanResult:
        """Scan *text* synchronously.

        Args:
            text: Full document text.
            categories: Categories to match, in catalog order.
            resolver: Offset-to-position translator. Defaults to a
                ``LineIndex`` over *text*.

        Returns:
            ScanResult with per-category locations and compile diagnostics.
        """
        resolver = resolver or LineIndex(text)
        result = ScanResult()
        for name, compiled in self._plan(categories, result):
            for match in iter_matches(compiled, text):
                result.locations.setdefault(name, []).append(
                    self._location(text, match, resolver)
                )
        return result

    async def scan_async(
        self,
        text: str,
        categories: Iterable[Category],
        resolver: PositionResolver | None = None,
    ) -> ScanResult:
        """Scan *text*, yielding to the event loop every ``yield_every`` matches.

        Produces exactly the same result as ``scan()``.
        """
        resolver = resolver or LineIndex(text)
        result = ScanResult()
        processed = 0
        for name, compiled in self._plan(categories, result):
            for match in iter_matches(compiled, text):
                result.locations.setdefault(name, []).append(
                    self._location(text, match, resolver)
                )
                processed += 1
                if processed % self.yield_every == 0:
                    await asyncio.sleep(0)
            # Yield between patterns as well; one pattern may scan a large text.
            await asyncio.sleep(0)
        return result
