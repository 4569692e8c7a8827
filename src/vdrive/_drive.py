"""Drive — synchronous wrapper running DriveAsync on a private event loop."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from vdrive._drive_async import DriveAsync
from vdrive.fs.transfers import ConflictPolicy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from vdrive.config import DriveConfig
    from vdrive.events import EventBus
    from vdrive.fs.protocol import ObjectStore, ShareGrantStore
    from vdrive.fs.scope import Principal, ScopeDecision
    from vdrive.fs.types import (
        BatchReport,
        Breadcrumb,
        DeleteReport,
        FileEntry,
        ListResult,
        MkdirResult,
        NamedBlob,
        ProgressEvent,
        QuotaSnapshot,
    )

logger = logging.getLogger(__name__)


class Drive:
    """Synchronous drive API backed by a private event loop in a daemon thread.

    Usable from plain sync code, notebooks, or threads of a sync web server.
    Cancellation flags may be ``threading.Event`` objects: batches only poll
    ``is_set()`` between items.

    Usage::

        with Drive(LocalObjectStore("/srv/drive")) as drive:
            scope = drive.resolve_scope(Identity("users/alice"))
            drive.make_directory(scope, "/", "photos")
            print(drive.list_directory(scope, "/").names)
    """

    def __init__(
        self,
        store: ObjectStore,
        grants: ShareGrantStore | None = None,
        *,
        config: DriveConfig | None = None,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async = DriveAsync(store, grants, config=config)
        self._run(self._async.open())

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the store, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    def __enter__(self) -> Drive:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    @property
    def events(self) -> EventBus:
        return self._async.events

    @property
    def config(self) -> DriveConfig:
        return self._async.config

    # ------------------------------------------------------------------
    # Drive wrappers (sync)
    # ------------------------------------------------------------------

    def resolve_scope(self, principal: Principal | None, path: str = "/") -> ScopeDecision:
        return self._run(self._async.resolve_scope(principal, path))

    def list_directory(self, scope: ScopeDecision, path: str | None = None) -> ListResult:
        return self._run(self._async.list_directory(scope, path))

    def exists(self, scope: ScopeDecision, path: str) -> bool:
        return self._run(self._async.exists(scope, path))

    def stat(self, scope: ScopeDecision, path: str) -> FileEntry | None:
        return self._run(self._async.stat(scope, path))

    def read_file(self, scope: ScopeDecision, path: str) -> bytes:
        return self._run(self._async.read_file(scope, path))

    def breadcrumbs(self, scope: ScopeDecision, path: str | None = None) -> list[Breadcrumb]:
        return self._async.breadcrumbs(scope, path)

    def get_quota(self, scope: ScopeDecision) -> QuotaSnapshot:
        return self._run(self._async.get_quota(scope))

    def make_directory(self, scope: ScopeDecision, path: str, name: str) -> MkdirResult:
        return self._run(self._async.make_directory(scope, path, name))

    def remove_entry(
        self,
        scope: ScopeDecision,
        path: str,
        *,
        cancel: Any = None,
    ) -> DeleteReport:
        return self._run(self._async.remove_entry(scope, path, cancel=cancel))

    def delete_entries(
        self,
        scope: ScopeDecision,
        paths: Iterable[str],
        *,
        cancel: Any = None,
        on_progress: Callable[[ProgressEvent], object] | None = None,
    ) -> BatchReport:
        return self._run(
            self._async.delete_entries(scope, paths, cancel=cancel, on_progress=on_progress)
        )

    def upload_batch(
        self,
        scope: ScopeDecision,
        path: str,
        items: Iterable[NamedBlob],
        conflict_policy: ConflictPolicy | str = ConflictPolicy.OVERWRITE,
        *,
        cancel: Any = None,
        on_progress: Callable[[ProgressEvent], object] | None = None,
    ) -> BatchReport:
        """Upload *items* into *path*.

        *on_progress* runs on the drive's loop thread, once per item.
        """
        return self._run(
            self._async.upload_batch(
                scope,
                path,
                items,
                conflict_policy,
                cancel=cancel,
                on_progress=on_progress,
            )
        )
