"""
Tests for FixtureStore.

Covers path resolution, existence checks, reading and atomic writing of
fixtures, invalidation and listing, including filesystem failures.
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from .errors import FixtureIOError, FixtureNotFoundError, InvalidIdentifierError
from .store import FixtureStore


@pytest.fixture
def store(tmp_path: Path) -> FixtureStore:
    return FixtureStore(tmp_path / "golden")


class TestResolvePath:
    """Test identifier to path mapping."""

    def testDefaultExtension(self, store: FixtureStore):
        assert store.resolvePath("users_list") == store.root / "users_list.json"

    def testDeterministic(self, store: FixtureStore):
        assert store.resolvePath("users_list") == store.resolvePath("users_list")
        assert store.resolvePath("users_list") != store.resolvePath("users_list2")

    def testNestedIdentifier(self, store: FixtureStore):
        assert store.resolvePath("weather/London") == store.root / "weather" / "London.json"

    def testCustomExtension(self, tmp_path: Path):
        assert FixtureStore(tmp_path, extension=".txt").resolvePath("a") == tmp_path / "a.txt"
        assert FixtureStore(tmp_path, extension="").resolvePath("a") == tmp_path / "a"

    def testNoIO(self, store: FixtureStore):
        """Resolving must not create anything."""
        store.resolvePath("weather/London")
        assert not store.root.exists()

    @pytest.mark.parametrize(
        "identifier",
        ["", "   ", "/etc/passwd", "../outside", "a/../../b", "a//b", "a/./b", ".hidden", "a\\b", "trailing/"],
    )
    def testInvalidIdentifiers(self, store: FixtureStore, identifier: str):
        with pytest.raises(InvalidIdentifierError) as excInfo:
            store.resolvePath(identifier)
        assert excInfo.value.identifier == identifier


class TestReadWrite:
    """Test reading and writing fixtures."""

    async def testMissingFixture(self, store: FixtureStore):
        assert await store.exists("missing") is False

        with pytest.raises(FixtureNotFoundError) as excInfo:
            await store.read("missing")
        assert excInfo.value.identifier == "missing"
        assert excInfo.value.operation == "read"

    async def testWriteThenRead(self, store: FixtureStore):
        body = b'[{"id":1}]'
        path = await store.write("users_list", body)

        assert path == store.resolvePath("users_list")
        assert await store.exists("users_list") is True
        assert await store.read("users_list") == body

    async def testEmptyBody(self, store: FixtureStore):
        """Empty body is a valid fixture, not an absent one."""
        await store.write("empty", b"")

        assert await store.exists("empty") is True
        assert await store.read("empty") == b""

    async def testBinaryBody(self, store: FixtureStore):
        body = bytes(range(256)) * 4
        await store.write("binary", body)
        assert await store.read("binary") == body

    async def testOverwriteReplacesContent(self, store: FixtureStore):
        await store.write("users_list", b"old content which is longer")
        await store.write("users_list", b"new")

        assert await store.read("users_list") == b"new"

    async def testCreatesParentDirectories(self, store: FixtureStore):
        await store.write("a/b/c", b"{}")

        assert (store.root / "a" / "b" / "c.json").read_bytes() == b"{}"

    async def testNoTemporaryFilesLeft(self, store: FixtureStore):
        await store.write("users_list", b"one")
        await store.write("users_list", b"two")

        assert [p.name for p in store.root.iterdir()] == ["users_list.json"]

    async def testDirectoryIsNotAFixture(self, store: FixtureStore):
        (store.root / "dir.json").mkdir(parents=True)

        assert await store.exists("dir") is False
        with pytest.raises(FixtureIOError) as excInfo:
            await store.read("dir")
        assert excInfo.value.operation == "read"

    async def testExistsUnexpectedError(self, store: FixtureStore):
        with patch("aiofiles.os.stat", new=AsyncMock(side_effect=PermissionError("denied"))):
            with pytest.raises(FixtureIOError) as excInfo:
                await store.exists("users_list")
        assert excInfo.value.operation == "exists"
        assert "denied" in str(excInfo.value)

    async def testWriteFailureWhenParentIsFile(self, store: FixtureStore):
        store.root.mkdir(parents=True)
        (store.root / "blocked").write_bytes(b"")

        with pytest.raises(FixtureIOError) as excInfo:
            await store.write("blocked/fixture", b"{}")
        assert excInfo.value.identifier == "blocked/fixture"
        assert excInfo.value.operation == "write"

    async def testFailedReplaceKeepsOldContent(self, store: FixtureStore):
        await store.write("users_list", b"old")

        with patch("aiofiles.os.replace", new=AsyncMock(side_effect=OSError(28, "No space left on device"))):
            with pytest.raises(FixtureIOError):
                await store.write("users_list", b"new")

        assert await store.read("users_list") == b"old"
        assert [p.name for p in store.root.iterdir()] == ["users_list.json"]


class TestAtomicity:
    """Concurrent readers must never observe a partially written fixture."""

    async def testReadersSeeCompleteContent(self, store: FixtureStore):
        bodyA = b"A" * 512 * 1024
        bodyB = b"B" * 256 * 1024
        await store.write("big", bodyA)

        seen = []

        async def writer():
            for i in range(20):
                await store.write("big", bodyB if i % 2 == 0 else bodyA)

        async def reader():
            for _ in range(40):
                seen.append(await store.read("big"))

        await asyncio.gather(writer(), reader(), reader())

        assert len(seen) == 80
        for body in seen:
            assert body in (bodyA, bodyB)


class TestDeleteAndList:
    """Test invalidation and listing of fixtures."""

    async def testDelete(self, store: FixtureStore):
        await store.write("users_list", b"[]")

        assert await store.delete("users_list") is True
        assert await store.exists("users_list") is False
        assert await store.delete("users_list") is False

    async def testListIdentifiers(self, store: FixtureStore):
        assert store.listIdentifiers() == []

        await store.write("users_list", b"[]")
        await store.write("weather/London", b"{}")
        await store.write("weather/Minsk", b"{}")
        (store.root / "notes.txt").write_text("not a fixture")
        (store.root / ".users_list.json.1234.tmp").write_bytes(b"partial")

        assert store.listIdentifiers() == ["users_list", "weather/London", "weather/Minsk"]

    async def testListWithoutExtension(self, tmp_path: Path):
        store = FixtureStore(tmp_path, extension="")
        await store.write("raw", b"data")

        assert store.listIdentifiers() == ["raw"]
