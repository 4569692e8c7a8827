"""Tests for the object store backends — memory and local disk."""

from __future__ import annotations

import pytest

from vdrive.fs.exceptions import InvalidPathError
from vdrive.fs.protocol import ObjectStore
from vdrive.fs.stores.local import LocalObjectStore
from vdrive.fs.stores.memory import MemoryObjectStore


@pytest.fixture(params=["memory", "local"])
def any_store(request, tmp_path) -> ObjectStore:
    if request.param == "memory":
        return MemoryObjectStore()
    return LocalObjectStore(tmp_path / "objects")


@pytest.fixture
def local(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path)


# ---------------------------------------------------------------------------
# Protocol conformance
# ---------------------------------------------------------------------------


class TestProtocol:
    def test_memory_is_object_store(self):
        assert isinstance(MemoryObjectStore(), ObjectStore)

    def test_local_is_object_store(self, tmp_path):
        assert isinstance(LocalObjectStore(tmp_path), ObjectStore)


# ---------------------------------------------------------------------------
# Shared behavior
# ---------------------------------------------------------------------------


class TestObjects:
    async def test_put_and_get(self, any_store):
        meta = await any_store.put("root/a.txt", b"hello", "text/plain")
        assert meta.key == "root/a.txt"
        assert meta.size == 5
        assert await any_store.get("root/a.txt") == b"hello"

    async def test_head(self, any_store):
        await any_store.put("root/a.txt", b"hello")
        meta = await any_store.head("root/a.txt")
        assert meta is not None
        assert meta.size == 5
        assert meta.updated_at is not None

    async def test_missing(self, any_store):
        assert await any_store.head("root/nope") is None
        assert await any_store.get("root/nope") is None

    async def test_overwrite(self, any_store):
        await any_store.put("root/a.txt", b"one")
        await any_store.put("root/a.txt", b"three")
        assert await any_store.get("root/a.txt") == b"three"

    async def test_delete(self, any_store):
        await any_store.put("root/a.txt", b"x")
        assert await any_store.delete("root/a.txt") is True
        assert await any_store.head("root/a.txt") is None

    async def test_delete_missing_returns_false(self, any_store):
        assert await any_store.delete("root/nope") is False

    async def test_empty_object(self, any_store):
        await any_store.put("root/docs/.keep", b"")
        meta = await any_store.head("root/docs/.keep")
        assert meta is not None
        assert meta.size == 0


class TestListByPrefix:
    async def test_one_level(self, any_store):
        for key in ["r/a.txt", "r/b/c.txt", "r/b/d/e.txt", "r/f/.keep", "other/x.txt"]:
            await any_store.put(key, b"x")
        listing = await any_store.list_by_prefix("r/")
        assert listing.prefixes == {"r/b/", "r/f/"}
        assert set(listing.objects) == {"r/a.txt"}

    async def test_nested(self, any_store):
        await any_store.put("r/b/d/e.txt", b"x")
        listing = await any_store.list_by_prefix("r/b/")
        assert listing.prefixes == {"r/b/d/"}
        assert listing.objects == {}

    async def test_empty_prefix(self, any_store):
        listing = await any_store.list_by_prefix("r/missing/")
        assert listing.is_empty

    async def test_prefix_is_segment_aware(self, any_store):
        await any_store.put("r/ab/x.txt", b"x")
        listing = await any_store.list_by_prefix("r/a/")
        assert listing.is_empty

    async def test_object_sizes(self, any_store):
        await any_store.put("r/a.txt", b"12345")
        listing = await any_store.list_by_prefix("r/")
        assert listing.objects["r/a.txt"].size == 5


# ---------------------------------------------------------------------------
# MemoryObjectStore specifics
# ---------------------------------------------------------------------------


class TestMemoryStore:
    async def test_introspection(self):
        async with MemoryObjectStore() as store:
            await store.put("b", b"")
            await store.put("a", b"")
            assert store.keys() == ["a", "b"]
            assert len(store) == 2
            assert "a" in store

    async def test_content_type_guessed(self):
        store = MemoryObjectStore()
        meta = await store.put("r/photo.png", b"\x89PNG")
        assert meta.content_type == "image/png"

    async def test_etag(self):
        store = MemoryObjectStore()
        one = await store.put("r/a", b"same")
        two = await store.put("r/b", b"same")
        assert one.etag == two.etag


# ---------------------------------------------------------------------------
# LocalObjectStore specifics
# ---------------------------------------------------------------------------


class TestLocalStore:
    def test_creates_host_dir(self, tmp_path):
        LocalObjectStore(tmp_path / "new")
        assert (tmp_path / "new").is_dir()

    def test_missing_dir_without_create(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LocalObjectStore(tmp_path / "nope", create=False)

    def test_file_not_dir(self, tmp_path):
        f = tmp_path / "file.txt"
        f.write_text("hi")
        with pytest.raises(NotADirectoryError):
            LocalObjectStore(f)

    async def test_key_maps_to_file(self, local, tmp_path):
        await local.put("users/alice/docs/a.txt", b"hi")
        assert (tmp_path / "users" / "alice" / "docs" / "a.txt").read_bytes() == b"hi"

    async def test_traversal_rejected(self, local):
        with pytest.raises(InvalidPathError):
            await local.put("users/../../etc/passwd", b"x")

    async def test_trailing_slash_key_rejected(self, local):
        with pytest.raises(InvalidPathError):
            await local.put("users/alice/docs/", b"x")

    async def test_delete_prunes_empty_dirs(self, local, tmp_path):
        await local.put("users/alice/a/b/c.txt", b"x")
        await local.delete("users/alice/a/b/c.txt")
        assert not (tmp_path / "users").exists()
        assert tmp_path.exists()

    async def test_delete_keeps_nonempty_parents(self, local, tmp_path):
        await local.put("r/a/one.txt", b"x")
        await local.put("r/a/b/two.txt", b"x")
        await local.delete("r/a/b/two.txt")
        assert (tmp_path / "r" / "a" / "one.txt").exists()
        assert not (tmp_path / "r" / "a" / "b").exists()

    async def test_listing_skips_empty_directories(self, local, tmp_path):
        (tmp_path / "r" / "ghost").mkdir(parents=True)
        await local.put("r/a.txt", b"x")
        listing = await local.list_by_prefix("r/")
        assert listing.prefixes == set()
        assert set(listing.objects) == {"r/a.txt"}

    async def test_listing_skips_temp_files(self, local, tmp_path):
        await local.put("r/a.txt", b"x")
        (tmp_path / "r" / ".vdrive-abc.tmp").write_bytes(b"partial")
        listing = await local.list_by_prefix("r/")
        assert set(listing.objects) == {"r/a.txt"}
