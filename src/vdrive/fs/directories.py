"""VirtualDirectory — folder semantics synthesized from flat key prefixes.

Directories are never stored.  A directory exists iff some key begins with
its prefix: either a file key or the hidden sentinel object that keeps an
otherwise-empty folder visible.  Every method here is a function of the
store's listing at call time, so results may be stale as soon as they
return.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import AlreadyExistsError, DriveError, InvalidPathError, PathNotFoundError
from .types import (
    DeleteReport,
    DirectoryEntry,
    FileEntry,
    ListResult,
    MkdirResult,
    PrefixListing,
    sort_entries,
)
from .utils import DEFAULT_SENTINEL_NAME, from_key, last_segment, normalize_path, to_key

if TYPE_CHECKING:
    import asyncio
    from collections.abc import AsyncIterator

    from .protocol import ObjectStore

logger = logging.getLogger(__name__)


async def iter_levels(store: ObjectStore, prefix: str) -> AsyncIterator[tuple[str, PrefixListing]]:
    """Depth-first walk below *prefix*, yielding ``(prefix, listing)`` per level.

    No depth bound other than the namespace's actual depth.
    """
    stack = [prefix]
    while stack:
        current = stack.pop()
        listing = await store.list_by_prefix(current)
        yield current, listing
        stack.extend(sorted(listing.prefixes, reverse=True))


class VirtualDirectory:
    """Listing, existence, creation, and recursive deletion over an ObjectStore.

    Stateless apart from its configuration; the namespace root is passed
    on every call.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        sentinel_name: str = DEFAULT_SENTINEL_NAME,
        settle_passes: int = 1,
    ) -> None:
        self._store = store
        self.sentinel_name = sentinel_name
        self.settle_passes = settle_passes

    @property
    def store(self) -> ObjectStore:
        return self._store

    def sentinel_key(self, root: str, path: str) -> str:
        """Storage key of the sentinel object for directory *path*."""
        return to_key(root, normalize_path(path, directory=True)) + self.sentinel_name

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list(self, root: str, path: str = "/") -> ListResult:
        """List one directory level: folders first, then files, by name."""
        dir_path = normalize_path(path, directory=True)
        prefix = to_key(root, dir_path)
        listing = await self._store.list_by_prefix(prefix)

        entries: list[DirectoryEntry | FileEntry] = []
        for sub_prefix in listing.prefixes:
            sub_path = from_key(root, sub_prefix)
            entries.append(DirectoryEntry(path=sub_path, name=last_segment(sub_path)))

        for key, meta in listing.objects.items():
            name = key[len(prefix):]
            # Sentinels and bare directory markers are never shown
            if not name or name == self.sentinel_name:
                continue
            entries.append(
                FileEntry(
                    path=dir_path + name,
                    name=name,
                    size=meta.size,
                    modified_at=meta.updated_at,
                    content_key=key,
                    content_type=meta.content_type,
                )
            )

        logger.debug("Listed %s: %d entries", prefix, len(entries))
        return ListResult(
            path=dir_path,
            entries=sort_entries(entries),
            exists=not listing.is_empty,
        )

    async def exists(self, root: str, path: str) -> bool:
        """True iff at least one key or sub-prefix lives under *path*."""
        dir_path = normalize_path(path, directory=True)
        listing = await self._store.list_by_prefix(to_key(root, dir_path))
        return not listing.is_empty

    async def stat(self, root: str, path: str) -> FileEntry | None:
        """File metadata for *path*, or None if no object lives at that key."""
        file_path = normalize_path(path)
        if file_path.endswith("/"):
            return None
        key = to_key(root, file_path)
        meta = await self._store.head(key)
        if meta is None:
            return None
        return FileEntry(
            path=file_path,
            name=last_segment(file_path),
            size=meta.size,
            modified_at=meta.updated_at,
            content_key=key,
            content_type=meta.content_type,
        )

    async def blocking_file(self, root: str, path: str) -> str | None:
        """First path along directory *path*, itself included, stored as a file.

        A folder cannot be created below a file of the same name, so
        ``/report`` blocks ``/report/`` and everything under it.
        """
        dir_path = normalize_path(path, directory=True)
        current = ""
        for segment in dir_path.strip("/").split("/"):
            if not segment:
                continue
            current = f"{current}/{segment}"
            if await self._store.head(to_key(root, current)) is not None:
                return current
        return None

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, root: str, path: str) -> MkdirResult:
        """Create an empty folder by writing its sentinel.

        Check-then-write is not atomic: two concurrent creates may both
        write the sentinel, which is idempotent.
        """
        dir_path = normalize_path(path, directory=True)
        if dir_path == "/":
            raise AlreadyExistsError("The drive root always exists", path=dir_path)

        if await self.exists(root, dir_path):
            raise AlreadyExistsError(f"Directory already exists: {dir_path}", path=dir_path)

        file_path = await self.blocking_file(root, dir_path)
        if file_path is not None:
            raise AlreadyExistsError(f"A file already exists at: {file_path}", path=dir_path)

        key = self.sentinel_key(root, dir_path)
        await self._store.put(key, b"", "application/octet-stream")
        logger.info("Created directory %s (sentinel %s)", dir_path, key)
        return MkdirResult(
            success=True,
            message=f"Created directory: {dir_path}",
            path=dir_path,
            sentinel_key=key,
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def remove(
        self,
        root: str,
        path: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> DeleteReport:
        """Delete whatever *path* names: a file, or a folder and its contents.

        A trailing slash forces directory semantics.
        """
        normalized = normalize_path(path)
        if not normalized.endswith("/") and await self._store.head(
            to_key(root, normalized)
        ) is not None:
            return await self.delete_file(root, normalized)
        if await self.exists(root, normalized):
            return await self.delete_recursive(root, normalized, cancel=cancel)
        raise PathNotFoundError(f"Not found: {normalized}", path=normalized)

    async def delete_file(self, root: str, path: str) -> DeleteReport:
        """Delete the single object at *path*."""
        file_path = normalize_path(path)
        if file_path.endswith("/"):
            raise InvalidPathError(f"Not a file path: {file_path}", path=file_path)

        key = to_key(root, file_path)
        if await self._store.head(key) is None:
            raise PathNotFoundError(f"File not found: {file_path}", path=file_path)

        deleted = await self._store.delete(key)
        logger.info("Deleted file %s", file_path)
        return DeleteReport(path=file_path, deleted_count=1 if deleted else 0)

    async def delete_recursive(
        self,
        root: str,
        path: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> DeleteReport:
        """Delete everything under *path*, children before parent.

        Best-effort and exhaustive: a failed key is recorded in the report
        and the walk continues.  Each level is re-listed once after its
        children are gone to catch entries that landed mid-walk; the
        sentinel goes last so the folder stays visible until it is empty.
        Setting *cancel* stops after the current key; everything already
        deleted stays deleted.
        """
        dir_path = normalize_path(path, directory=True)
        report = DeleteReport(path=dir_path)
        await self._delete_level(to_key(root, dir_path), report, cancel, set())
        if report.failed_keys:
            logger.warning(
                "Recursive delete of %s left %d key(s) behind",
                dir_path,
                len(report.failed_keys),
            )
        else:
            logger.info("Deleted %s (%d objects)", dir_path, report.deleted_count)
        return report

    async def _delete_level(
        self,
        prefix: str,
        report: DeleteReport,
        cancel: asyncio.Event | None,
        failed: set[str],
    ) -> None:
        listing = await self._list_for_delete(prefix, report, failed)
        if listing is None:
            return

        sentinel_key = prefix + self.sentinel_name

        # 1. Direct keys at this level (sentinel deferred)
        for key in sorted(listing.objects):
            if key == sentinel_key:
                continue
            if self._is_cancelled(cancel, report):
                return
            await self._delete_key(key, report, failed)

        # 2. Sub-prefixes, depth-first
        for sub_prefix in sorted(listing.prefixes):
            if self._is_cancelled(cancel, report):
                return
            await self._delete_level(sub_prefix, report, cancel, failed)
            if report.cancelled:
                return

        # 3. Settle and recheck: anything still listed was written mid-walk,
        # including keys re-created after their first delete. Failed keys
        # are not retried.
        has_sentinel = sentinel_key in listing.objects
        for _ in range(self.settle_passes):
            residual = await self._list_for_delete(prefix, report, failed)
            if residual is None:
                break
            has_sentinel = has_sentinel or sentinel_key in residual.objects
            late_keys = [
                k for k in sorted(residual.objects)
                if k not in failed and k != sentinel_key
            ]
            late_prefixes = sorted(p for p in residual.prefixes if p not in failed)
            if late_keys or late_prefixes:
                logger.info(
                    "Settle pass on %s caught %d key(s), %d prefix(es)",
                    prefix,
                    len(late_keys),
                    len(late_prefixes),
                )
            for key in late_keys:
                if self._is_cancelled(cancel, report):
                    return
                await self._delete_key(key, report, failed)
            for sub_prefix in late_prefixes:
                if self._is_cancelled(cancel, report):
                    return
                await self._delete_level(sub_prefix, report, cancel, failed)
                if report.cancelled:
                    return

        if has_sentinel and not self._is_cancelled(cancel, report):
            await self._delete_key(sentinel_key, report, failed)

    async def _list_for_delete(
        self, prefix: str, report: DeleteReport, failed: set[str]
    ) -> PrefixListing | None:
        if prefix in failed:
            return None
        try:
            return await self._store.list_by_prefix(prefix)
        except DriveError as e:
            logger.warning("Listing %s failed during delete", prefix, exc_info=True)
            report.failed_keys.append((prefix, str(e)))
            failed.add(prefix)
            return None

    async def _delete_key(self, key: str, report: DeleteReport, failed: set[str]) -> None:
        if key in failed:
            return
        try:
            deleted = await self._store.delete(key)
        except Exception as e:
            logger.warning("Failed to delete %s", key, exc_info=True)
            report.failed_keys.append((key, str(e) or type(e).__name__))
            failed.add(key)
            return
        # Already gone means another actor got there first
        if deleted:
            report.deleted_count += 1

    @staticmethod
    def _is_cancelled(cancel: asyncio.Event | None, report: DeleteReport) -> bool:
        if cancel is not None and cancel.is_set():
            report.cancelled = True
            return True
        return False
