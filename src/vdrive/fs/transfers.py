"""TransferCoordinator — sequential multi-object upload and delete batches.

Batches never abort on a single item: every item is attempted and the
outcome itemized.  Progress is a finite async sequence of
``ProgressEvent``s, one per item, so a progress display can subscribe
without the core knowing anything about rendering.
"""

from __future__ import annotations

import logging
import posixpath
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import AlreadyExistsError, FileTooLargeError, QuotaExceededError
from .types import BatchReport, ProgressEvent
from .utils import guess_mime_type, normalize_path, to_key, validate_name

if TYPE_CHECKING:
    import asyncio
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

    from .directories import VirtualDirectory
    from .quota import QuotaAccountant
    from .types import NamedBlob

    OnUploaded = Callable[[str, int], Awaitable[None]]

logger = logging.getLogger(__name__)

MAX_RENAME_ATTEMPTS = 1000


class ConflictPolicy(str, Enum):
    """What to do when an upload's target name is already taken."""

    OVERWRITE = "overwrite"
    SKIP = "skip"
    RENAME = "rename"
    """Store as ``name (1).ext``, ``name (2).ext``, ... first free name."""


def numbered_name(name: str, n: int) -> str:
    """``report.pdf`` -> ``report (n).pdf``."""
    base, ext = posixpath.splitext(name)
    return f"{base} ({n}){ext}"


class UploadBatch:
    """One run of an upload batch.

    Iterate it to drive the uploads and receive progress; ``report`` fills
    in as items finish.  A batch runs once: to retry, start a new batch.
    Breaking out of the iteration stops after the current item, and
    whatever was uploaded stays uploaded.
    """

    def __init__(
        self,
        coordinator: TransferCoordinator,
        root: str,
        path: str,
        items: list[NamedBlob],
        policy: ConflictPolicy,
        *,
        cancel: asyncio.Event | None = None,
        on_uploaded: OnUploaded | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._root = root
        self._items = items
        self._policy = policy
        self._cancel = cancel
        self._on_uploaded = on_uploaded
        self._started = False
        self.path = normalize_path(path, directory=True)
        self.report = BatchReport(path=self.path)

    @property
    def total(self) -> int:
        return len(self._items)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        if self._started:
            raise RuntimeError("Upload batch already ran; start a new batch to retry")
        self._started = True
        return self._run()

    async def _run(self) -> AsyncIterator[ProgressEvent]:
        used = await self._coordinator._initial_usage(self._root)
        for index, item in enumerate(self._items, start=1):
            if self._cancel is not None and self._cancel.is_set():
                self.report.cancelled = True
                logger.info(
                    "Upload batch into %s cancelled after %d of %d item(s)",
                    self.path,
                    index - 1,
                    self.total,
                )
                return
            outcome, delta, target = await self._coordinator._upload_one(
                self._root, self.path, item, self._policy, self.report, used
            )
            if used is not None:
                used += delta
            if self._on_uploaded is not None and outcome in ("uploaded", "renamed"):
                await self._on_uploaded(self.path + target, item.size)
            yield ProgressEvent(index=index, total=self.total, name=item.name, outcome=outcome)


class TransferCoordinator:
    """Sequences uploads and deletes against a ``VirtualDirectory``."""

    def __init__(
        self,
        directory: VirtualDirectory,
        quota: QuotaAccountant | None = None,
        *,
        max_file_size: int | None = None,
        enforce_quota: bool = False,
    ) -> None:
        self._directory = directory
        self._quota = quota
        self.max_file_size = max_file_size
        self.enforce_quota = enforce_quota and quota is not None

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def start_upload(
        self,
        root: str,
        path: str,
        items: Iterable[NamedBlob],
        policy: ConflictPolicy | str = ConflictPolicy.OVERWRITE,
        *,
        cancel: asyncio.Event | None = None,
        on_uploaded: OnUploaded | None = None,
    ) -> UploadBatch:
        """Prepare an upload batch; nothing happens until it is iterated."""
        return UploadBatch(
            self,
            root,
            path,
            list(items),
            ConflictPolicy(policy),
            cancel=cancel,
            on_uploaded=on_uploaded,
        )

    async def upload_batch(
        self,
        root: str,
        path: str,
        items: Iterable[NamedBlob],
        policy: ConflictPolicy | str = ConflictPolicy.OVERWRITE,
        *,
        cancel: asyncio.Event | None = None,
        on_progress: Callable[[ProgressEvent], object] | None = None,
        on_uploaded: OnUploaded | None = None,
    ) -> BatchReport:
        """Upload every item in order and return the itemized report."""
        batch = self.start_upload(
            root, path, items, policy, cancel=cancel, on_uploaded=on_uploaded
        )
        async for event in batch:
            if on_progress is not None:
                on_progress(event)
        logger.info(
            "Upload batch into %s: %d succeeded, %d failed, %d skipped",
            batch.path,
            len(batch.report.succeeded),
            len(batch.report.failed),
            len(batch.report.skipped),
        )
        return batch.report

    async def _initial_usage(self, root: str) -> int | None:
        if not self.enforce_quota or self._quota is None:
            return None
        snapshot = await self._quota.usage(root)
        return snapshot.used_bytes

    async def _upload_one(
        self,
        root: str,
        dir_path: str,
        item: NamedBlob,
        policy: ConflictPolicy,
        report: BatchReport,
        used: int | None,
    ) -> tuple[str, int, str]:
        """Upload a single item. Returns ``(outcome, bytes added, stored name)``."""
        store = self._directory.store
        target = item.name
        try:
            name = validate_name(item.name, reserved=(self._directory.sentinel_name,))
            target = name
            if self.max_file_size is not None and item.size > self.max_file_size:
                raise FileTooLargeError(
                    f"File size {item.size} exceeds max size {self.max_file_size}",
                    path=dir_path + name,
                )

            blocker = await self._directory.blocking_file(root, dir_path)
            if blocker is not None:
                raise AlreadyExistsError(
                    f"A file already exists at: {blocker}", path=dir_path + name
                )

            if await self._directory.exists(root, dir_path + name + "/"):
                if policy is not ConflictPolicy.RENAME:
                    raise AlreadyExistsError(
                        f"A folder with this name already exists: {name}",
                        path=dir_path + name,
                    )
                target = await self._free_name(root, dir_path, name)

            existing = await store.head(to_key(root, dir_path + target))
            if existing is not None:
                if policy is ConflictPolicy.SKIP:
                    report.skipped.append(item.name)
                    logger.debug("Skipped existing %s%s", dir_path, target)
                    return "skipped", 0, target
                if policy is ConflictPolicy.RENAME:
                    target = await self._free_name(root, dir_path, name)
                    existing = None

            delta = item.size - (existing.size if existing is not None else 0)
            if used is not None and self._quota is not None:
                if used + delta > self._quota.limit_bytes:
                    raise QuotaExceededError(
                        f"Uploading {name} would exceed the storage quota",
                        path=dir_path + name,
                    )

            await store.put(
                to_key(root, dir_path + target),
                item.data,
                item.content_type or guess_mime_type(target),
            )
        except Exception as e:
            logger.warning("Upload of %r into %s failed", item.name, dir_path, exc_info=True)
            report.failed.append((item.name, str(e) or type(e).__name__))
            return "failed", 0, target

        report.succeeded.append(item.name)
        if target != item.name:
            report.renamed[item.name] = target
            return "renamed", delta, target
        return "uploaded", delta, target

    async def _free_name(self, root: str, dir_path: str, name: str) -> str:
        store = self._directory.store
        for n in range(1, MAX_RENAME_ATTEMPTS + 1):
            candidate = numbered_name(name, n)
            if await store.head(to_key(root, dir_path + candidate)) is not None:
                continue
            if await self._directory.exists(root, dir_path + candidate + "/"):
                continue
            return candidate
        raise AlreadyExistsError(f"No free name for {name} in {dir_path}", path=dir_path + name)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_batch(
        self,
        root: str,
        paths: Iterable[str],
        *,
        cancel: asyncio.Event | None = None,
        on_progress: Callable[[ProgressEvent], object] | None = None,
        resolve: Callable[[str], str] | None = None,
    ) -> BatchReport:
        """Remove several files or folders; one item's failure never stops the rest.

        *resolve* maps each caller-facing path to a path inside *root*; an
        item it rejects fails on its own.
        """
        targets = list(paths)
        report = BatchReport(path="/")
        for index, path in enumerate(targets, start=1):
            if cancel is not None and cancel.is_set():
                report.cancelled = True
                break
            try:
                target = resolve(path) if resolve is not None else path
                result = await self._directory.remove(root, target, cancel=cancel)
            except Exception as e:
                logger.warning("Delete of %s failed", path, exc_info=True)
                report.failed.append((path, str(e) or type(e).__name__))
                outcome = "failed"
            else:
                if result.failed_keys:
                    first_key, first_reason = result.failed_keys[0]
                    report.failed.append(
                        (
                            path,
                            f"{len(result.failed_keys)} key(s) not deleted, "
                            f"first {first_key}: {first_reason}",
                        )
                    )
                    outcome = "failed"
                else:
                    report.succeeded.append(path)
                    outcome = "deleted"
                if result.cancelled:
                    report.cancelled = True
            if on_progress is not None:
                on_progress(
                    ProgressEvent(index=index, total=len(targets), name=path, outcome=outcome)
                )
            if report.cancelled:
                break
        logger.info(
            "Delete batch: %d succeeded, %d failed", len(report.succeeded), len(report.failed)
        )
        return report
