"""Tests for the local-filesystem host implementations."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from linemarks.host.local import (
    JsonFileStateSlot,
    LocalDocumentSource,
    LocalFileSystem,
    LocalTextDocument,
    LoggingNavigator,
    MemoryStateSlot,
    path_to_uri,
    uri_to_path,
)
from linemarks.models import Position, Range


class TestUris:
    """path_to_uri() / uri_to_path()."""

    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "dir with space" / "a.py"
        uri = path_to_uri(path)
        assert uri.startswith("file:///")
        assert "%20" in uri
        assert uri_to_path(uri) == path.resolve()

    def test_percent_in_file_name_round_trips(self, tmp_path: Path) -> None:
        path = tmp_path / "a%41.txt"
        path.touch()
        uri = path_to_uri(path)
        assert "%2541" in uri
        assert uri_to_path(uri) == path.resolve()
        assert uri_to_path(uri).exists()  # type: ignore[union-attr]

    @pytest.mark.parametrize("uri", ["untitled:Untitled-1", "output:log", "git:/x"])
    def test_non_file_uri_has_no_path(self, uri: str) -> None:
        assert uri_to_path(uri) is None


class TestLocalTextDocument:
    """In-memory document snapshot."""

    def test_file_name_defaults_to_path(self) -> None:
        doc = LocalTextDocument("file:///workspace/a.py", "x")
        assert doc.file_name == str(Path("/workspace/a.py"))

    def test_explicit_file_name(self) -> None:
        doc = LocalTextDocument("output:1", "x", file_name="extension-output-#1")
        assert doc.file_name == "extension-output-#1"

    def test_position_at(self) -> None:
        doc = LocalTextDocument("file:///a", "ab\ncd")
        assert doc.position_at(4) == Position(1, 1)
        assert doc.get_text() == "ab\ncd"


class TestLocalDocumentSource:
    """Opening documents from disk."""

    @pytest.mark.asyncio
    async def test_open_reads_text(self, tmp_path: Path) -> None:
        path = tmp_path / "a.py"
        path.write_text("TODO here\n", encoding="utf-8")
        doc = await LocalDocumentSource().open(path_to_uri(path))
        assert doc.get_text() == "TODO here\n"
        assert doc.uri == path_to_uri(path)

    @pytest.mark.asyncio
    async def test_undecodable_bytes_are_replaced(self, tmp_path: Path) -> None:
        path = tmp_path / "bin.dat"
        path.write_bytes(b"TODO \xff\xfe")
        doc = await LocalDocumentSource().open(path_to_uri(path))
        assert doc.get_text().startswith("TODO ")

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await LocalDocumentSource().open(path_to_uri(tmp_path / "gone.py"))

    @pytest.mark.asyncio
    async def test_non_file_uri_raises(self) -> None:
        with pytest.raises(FileNotFoundError):
            await LocalDocumentSource().open("untitled:Untitled-1")


class TestLocalFileSystem:
    """Existence checks."""

    @pytest.mark.asyncio
    async def test_exists(self, tmp_path: Path) -> None:
        fs = LocalFileSystem()
        (tmp_path / "here").touch()
        assert await fs.exists(tmp_path / "here") is True
        assert await fs.exists(tmp_path / "gone") is False


class TestStateSlots:
    """MemoryStateSlot and JsonFileStateSlot."""

    @pytest.mark.asyncio
    async def test_memory_slot(self) -> None:
        slot = MemoryStateSlot({"k": "v"})
        assert slot.available is True
        assert slot.get("k", "d") == "v"
        assert slot.get("other", "d") == "d"
        await slot.set("other", "x")
        assert slot.values == {"k": "v", "other": "x"}

    @pytest.mark.asyncio
    async def test_json_slot_survives_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "state.json"
        await JsonFileStateSlot(path).set("bookmarks.object", '{"a": 1}')
        reopened = JsonFileStateSlot(path)
        assert reopened.get("bookmarks.object", "{}") == '{"a": 1}'
        assert list(path.parent.glob("*.tmp")) == []

    @pytest.mark.asyncio
    async def test_json_slot_keeps_other_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"other": "keep"}), encoding="utf-8")
        await JsonFileStateSlot(path).set("mine", "value")
        assert json.loads(path.read_text(encoding="utf-8")) == {
            "mine": "value",
            "other": "keep",
        }

    @pytest.mark.asyncio
    async def test_concurrent_writes_all_land(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        slot = JsonFileStateSlot(path)
        big = "x" * 200_000
        for _ in range(5):
            results = await asyncio.gather(
                *(slot.set(f"k{i}", big) for i in range(8)), return_exceptions=True
            )
            assert [r for r in results if r is not None] == []
        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert sorted(on_disk) == [f"k{i}" for i in range(8)]
        assert list(tmp_path.glob("*.tmp")) == []

    def test_missing_file_reads_default(self, tmp_path: Path) -> None:
        slot = JsonFileStateSlot(tmp_path / "none.json")
        assert slot.get("k", "{}") == "{}"

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_unusable_file_is_ignored(
        self,
        tmp_path: Path,
        content: str,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        path = tmp_path / "state.json"
        path.write_text(content, encoding="utf-8")
        slot = JsonFileStateSlot(path)
        assert slot.get("k", "{}") == "{}"
        assert "state file" in caplog.text.lower()

    def test_non_string_values_are_dropped(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"a": "ok", "b": 3}), encoding="utf-8")
        slot = JsonFileStateSlot(path)
        assert slot.get("a", "") == "ok"
        assert slot.get("b", "missing") == "missing"


class TestLoggingNavigator:
    """Headless navigation target."""

    def test_target_is_one_based(self) -> None:
        navigator = LoggingNavigator()
        navigator.jump_to("file:///workspace/a.py", Range.from_coords(4, 2, 4, 6))
        assert navigator.last_target == f"{Path('/workspace/a.py')}:5:3"

    def test_non_file_uri_kept_verbatim(self) -> None:
        navigator = LoggingNavigator()
        navigator.jump_to("untitled:1", Range.from_coords(0, 0, 0, 1))
        assert navigator.last_target == "untitled:1:1:1"
