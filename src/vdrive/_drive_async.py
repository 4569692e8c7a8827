"""DriveAsync — primary async class wiring scope, directories, quota and transfers."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from vdrive.config import DriveConfig
from vdrive.events import DriveEvent, EventBus, EventType
from vdrive.fs.directories import VirtualDirectory
from vdrive.fs.exceptions import InvalidPathError, PathNotFoundError
from vdrive.fs.quota import QuotaAccountant
from vdrive.fs.scope import AccessScope
from vdrive.fs.transfers import ConflictPolicy, TransferCoordinator
from vdrive.fs.types import ListResult
from vdrive.fs.utils import breadcrumbs, join_path, last_segment, normalize_path, validate_name

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Awaitable, Callable, Iterable

    from vdrive.fs.protocol import ObjectStore, ShareGrantStore
    from vdrive.fs.scope import Principal, ScopeDecision
    from vdrive.fs.transfers import UploadBatch
    from vdrive.fs.types import (
        BatchReport,
        Breadcrumb,
        DeleteReport,
        FileEntry,
        MkdirResult,
        NamedBlob,
        ProgressEvent,
        QuotaSnapshot,
    )

logger = logging.getLogger(__name__)


class DriveAsync:
    """Async facade over one object store.

    Every operation takes the ``ScopeDecision`` for the request; paths the
    caller passes in and gets back are in the caller's view, so a share link
    rooted at ``/docs/`` sees that folder as ``/``.

    Usage::

        async with DriveAsync(MemoryObjectStore()) as drive:
            scope = await drive.resolve_scope(Identity("users/alice"))
            await drive.make_directory(scope, "/", "photos")
            listing = await drive.list_directory(scope, "/")
    """

    def __init__(
        self,
        store: ObjectStore,
        grants: ShareGrantStore | None = None,
        *,
        config: DriveConfig | None = None,
    ) -> None:
        self.config = config if config is not None else DriveConfig()
        self._store = store
        self._closed = False

        self._event_bus = EventBus()
        self._access = AccessScope(grants)
        self._directory = VirtualDirectory(
            store,
            sentinel_name=self.config.sentinel_name,
            settle_passes=self.config.settle_passes,
        )
        self._quota = QuotaAccountant(
            store,
            self.config.limit_bytes,
            sentinel_name=self.config.sentinel_name,
        )
        self._transfers = TransferCoordinator(
            self._directory,
            self._quota,
            max_file_size=self.config.max_file_size,
            enforce_quota=self.config.enforce_quota,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        await self._store.open()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._store.close()

    async def __aenter__(self) -> DriveAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def events(self) -> EventBus:
        return self._event_bus

    @property
    def store(self) -> ObjectStore:
        return self._store

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    async def resolve_scope(
        self,
        principal: Principal | None,
        path: str = "/",
    ) -> ScopeDecision:
        """Turn an identity or share token into the scope for one request."""
        return await self._access.resolve(principal, path)

    def _resolve(self, scope: ScopeDecision, path: str | None) -> str:
        if path is None:
            return scope.effective_path
        return scope.within(path)

    def _mutable_target(self, scope: ScopeDecision, path: str) -> str:
        target = scope.within(path)
        if normalize_path(target, directory=True) == scope.share_root:
            if scope.is_shared:
                raise InvalidPathError("Cannot delete the shared folder itself", path=path)
            raise InvalidPathError("Cannot delete the drive root", path=path)
        if last_segment(target) == self.config.sentinel_name:
            raise InvalidPathError("Cannot delete a folder marker", path=path)
        return target

    async def _emit(
        self,
        event_type: EventType,
        scope: ScopeDecision,
        path: str,
        size: int | None = None,
    ) -> None:
        await self._event_bus.emit(
            DriveEvent(
                event_type=event_type,
                root=scope.root,
                path=path,
                size=size,
                token=scope.token,
            )
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_directory(self, scope: ScopeDecision, path: str | None = None) -> ListResult:
        """List one folder: subfolders first, then files, each by name.

        A folder nothing lives under lists as empty with ``exists=False``.
        """
        result = await self._directory.list(scope.root, self._resolve(scope, path))
        if not scope.is_shared:
            return result
        return ListResult(
            path=scope.to_view(result.path),
            entries=[
                dataclasses.replace(entry, path=scope.to_view(entry.path))
                for entry in result.entries
            ],
            exists=result.exists,
        )

    async def exists(self, scope: ScopeDecision, path: str) -> bool:
        """True if *path* names a file or a non-empty folder."""
        target = self._resolve(scope, path)
        if not target.endswith("/"):
            if await self._directory.stat(scope.root, target) is not None:
                return True
        return await self._directory.exists(scope.root, target)

    async def stat(self, scope: ScopeDecision, path: str) -> FileEntry | None:
        entry = await self._directory.stat(scope.root, self._resolve(scope, path))
        if entry is None:
            return None
        return dataclasses.replace(entry, path=scope.to_view(entry.path))

    async def read_file(self, scope: ScopeDecision, path: str) -> bytes:
        """Content of the file at *path*."""
        target = self._resolve(scope, path)
        entry = await self._directory.stat(scope.root, target)
        data = await self._store.get(entry.content_key) if entry is not None else None
        if data is None:
            raise PathNotFoundError(f"File not found: {path}", path=path)
        return data

    def breadcrumbs(self, scope: ScopeDecision, path: str | None = None) -> list[Breadcrumb]:
        view = scope.to_view(normalize_path(self._resolve(scope, path), directory=True))
        return breadcrumbs(view, root_label=self.config.root_label)

    async def get_quota(self, scope: ScopeDecision) -> QuotaSnapshot:
        """Usage of the scope owner's whole root, shared or not."""
        return await self._quota.usage(scope.root)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def make_directory(self, scope: ScopeDecision, path: str, name: str) -> MkdirResult:
        """Create folder *name* inside *path*."""
        scope.require_write(path)
        name = validate_name(name, reserved=(self.config.sentinel_name,))
        target = join_path(scope.within(path), name, directory=True)
        result = await self._directory.create(scope.root, target)
        await self._emit(EventType.DIRECTORY_CREATED, scope, target)
        result.path = scope.to_view(target)
        result.message = f"Created directory: {result.path}"
        return result

    async def remove_entry(
        self,
        scope: ScopeDecision,
        path: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> DeleteReport:
        """Delete a file, or a folder and everything under it.

        Raises:
            PartialFailureError: some keys could not be deleted; the
                exception's ``report`` says which.
        """
        scope.require_write(path)
        target = self._mutable_target(scope, path)
        report = await self._directory.remove(scope.root, target, cancel=cancel)
        if report.deleted_count:
            await self._emit(EventType.ENTRY_DELETED, scope, report.path)
        report.path = scope.to_view(report.path)
        return report.raise_for_failures()

    async def delete_entries(
        self,
        scope: ScopeDecision,
        paths: Iterable[str],
        *,
        cancel: asyncio.Event | None = None,
        on_progress: Callable[[ProgressEvent], object] | None = None,
    ) -> BatchReport:
        """Delete several entries; per-path failures are itemized, not raised."""
        scope.require_write()
        report = await self._transfers.delete_batch(
            scope.root,
            paths,
            cancel=cancel,
            on_progress=on_progress,
            resolve=lambda p: self._mutable_target(scope, p),
        )
        for path in report.succeeded:
            await self._emit(EventType.ENTRY_DELETED, scope, scope.within(path))
        return report

    def start_upload(
        self,
        scope: ScopeDecision,
        path: str,
        items: Iterable[NamedBlob],
        conflict_policy: ConflictPolicy | str = ConflictPolicy.OVERWRITE,
        *,
        cancel: asyncio.Event | None = None,
    ) -> UploadBatch:
        """Prepare an upload into folder *path*; iterate the batch for progress."""
        scope.require_write(path)
        batch = self._transfers.start_upload(
            scope.root,
            scope.within(path),
            items,
            conflict_policy,
            cancel=cancel,
            on_uploaded=self._upload_listener(scope),
        )
        batch.report.path = scope.to_view(batch.path)
        return batch

    async def upload_batch(
        self,
        scope: ScopeDecision,
        path: str,
        items: Iterable[NamedBlob],
        conflict_policy: ConflictPolicy | str = ConflictPolicy.OVERWRITE,
        *,
        cancel: asyncio.Event | None = None,
        on_progress: Callable[[ProgressEvent], object] | None = None,
    ) -> BatchReport:
        """Upload every item into folder *path*.

        Never raises for individual items: the itemized report is the
        result.  ``report.raise_for_failures()`` turns failures into a
        ``PartialFailureError``.
        """
        scope.require_write(path)
        report = await self._transfers.upload_batch(
            scope.root,
            scope.within(path),
            items,
            conflict_policy,
            cancel=cancel,
            on_progress=on_progress,
            on_uploaded=self._upload_listener(scope),
        )
        report.path = scope.to_view(report.path)
        return report

    def _upload_listener(self, scope: ScopeDecision) -> Callable[[str, int], Awaitable[None]]:
        async def on_uploaded(path: str, size: int) -> None:
            await self._emit(EventType.FILE_UPLOADED, scope, path, size)

        return on_uploaded
