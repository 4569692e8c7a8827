"""Shared fixtures for vdrive tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from vdrive._drive_async import DriveAsync
from vdrive.config import DriveConfig
from vdrive.fs.directories import VirtualDirectory
from vdrive.fs.exceptions import StoreUnavailableError
from vdrive.fs.sharing import MemoryShareGrantStore
from vdrive.fs.stores.memory import MemoryObjectStore
from vdrive.models.shares import ShareGrant  # noqa: F401  (registers the table)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from vdrive.fs.types import ObjectMetadata, PrefixListing


class FlakyStore(MemoryObjectStore):
    """MemoryObjectStore with injectable failures and listing hooks.

    ``fail_delete`` / ``fail_put`` hold keys whose operation raises
    ``StoreUnavailableError``; ``fail_list`` holds prefixes whose listing
    raises.  ``on_list`` runs after every listing and may mutate the store
    to simulate a concurrent writer.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_delete: set[str] = set()
        self.fail_put: set[str] = set()
        self.fail_list: set[str] = set()
        self.on_list: Callable[[str, int], Awaitable[None]] | None = None
        self.list_calls: list[str] = []
        self.deleted: list[str] = []

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
    ) -> ObjectMetadata:
        if key in self.fail_put:
            raise StoreUnavailableError(f"injected put failure: {key}", path=key)
        return await super().put(key, data, content_type)

    async def delete(self, key: str) -> bool:
        if key in self.fail_delete:
            raise StoreUnavailableError(f"injected delete failure: {key}", path=key)
        deleted = await super().delete(key)
        if deleted:
            self.deleted.append(key)
        return deleted

    async def list_by_prefix(self, prefix: str) -> PrefixListing:
        if prefix in self.fail_list:
            raise StoreUnavailableError(f"injected list failure: {prefix}", path=prefix)
        listing = await super().list_by_prefix(prefix)
        self.list_calls.append(prefix)
        if self.on_list is not None:
            await self.on_list(prefix, self.list_calls.count(prefix))
        return listing


ROOT = "users/alice"


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def directory(store: MemoryObjectStore) -> VirtualDirectory:
    return VirtualDirectory(store)


@pytest.fixture
def grants() -> MemoryShareGrantStore:
    return MemoryShareGrantStore()


@pytest.fixture
async def drive(
    store: MemoryObjectStore, grants: MemoryShareGrantStore
) -> AsyncIterator[DriveAsync]:
    """DriveAsync over an in-memory store with a small quota."""
    async with DriveAsync(
        store, grants, config=DriveConfig(limit_bytes=1000, max_file_size=500)
    ) as d:
        yield d


@pytest.fixture
def root() -> str:
    return ROOT


@pytest.fixture
def seed() -> Callable[..., Awaitable[None]]:
    """Write keys (relative to ``users/alice``) into a store."""

    async def _seed(target: MemoryObjectStore, *keys: str, data: bytes = b"x") -> None:
        for key in keys:
            await target.put(f"{ROOT}/{key.lstrip('/')}", data)

    return _seed


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session."""
    async with session_factory() as session:
        yield session
