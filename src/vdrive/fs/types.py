"""Result types: entries, listings, reports, quota snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .exceptions import PartialFailureError
from .permissions import Permission

if TYPE_CHECKING:
    from collections.abc import Iterable

_GIB = 1024**3


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata the object store reports for a single key."""

    key: str
    size: int = 0
    updated_at: datetime | None = None
    content_type: str | None = None
    etag: str | None = None


@dataclass
class PrefixListing:
    """One level of a delimiter listing: sub-prefixes and direct objects."""

    prefixes: set[str] = field(default_factory=set)
    objects: dict[str, ObjectMetadata] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.prefixes and not self.objects


@dataclass
class FileEntry:
    """A stored object seen through the drive."""

    path: str
    name: str
    size: int
    modified_at: datetime | None
    content_key: str
    content_type: str | None = None

    is_directory = False


@dataclass
class DirectoryEntry:
    """A folder implied by key prefixes. Carries no stored metadata."""

    path: str
    name: str

    is_directory = True


Entry = FileEntry | DirectoryEntry


@dataclass
class ListResult:
    """Result of a directory listing.

    An empty listing is a normal state, not an error; ``exists`` tells an
    empty folder (sentinel only) apart from a prefix nothing lives under.
    """

    path: str
    entries: list[Entry] = field(default_factory=list)
    exists: bool = True

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def directories(self) -> list[DirectoryEntry]:
        return [e for e in self.entries if isinstance(e, DirectoryEntry)]

    @property
    def files(self) -> list[FileEntry]:
        return [e for e in self.entries if isinstance(e, FileEntry)]

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.entries]


@dataclass
class MkdirResult:
    """Result of a mkdir operation."""

    success: bool
    message: str
    path: str | None = None
    sentinel_key: str | None = None


@dataclass
class DeleteReport:
    """Itemized outcome of a (possibly recursive) delete."""

    path: str
    deleted_count: int = 0
    failed_keys: list[tuple[str, str]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed_keys and not self.cancelled

    def raise_for_failures(self) -> DeleteReport:
        if self.failed_keys:
            raise PartialFailureError(
                f"Failed to delete {len(self.failed_keys)} key(s) under {self.path}",
                self,
                path=self.path,
            )
        return self


@dataclass
class NamedBlob:
    """An upload item: a file name plus its bytes."""

    name: str
    data: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ProgressEvent:
    """Progress of a batch: item ``index`` (1-based) of ``total`` finished."""

    index: int
    total: int
    name: str
    outcome: str

    @property
    def fraction(self) -> float:
        return self.index / self.total if self.total else 1.0


@dataclass
class BatchReport:
    """Itemized outcome of a multi-object upload or delete."""

    path: str
    succeeded: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    renamed: dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and not self.cancelled

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.skipped)

    def raise_for_failures(self) -> BatchReport:
        if self.failed:
            raise PartialFailureError(
                f"{len(self.failed)} of {self.processed} item(s) failed in {self.path}",
                self,
                path=self.path,
            )
        return self


@dataclass(frozen=True)
class QuotaSnapshot:
    """Derived storage usage. Never persisted; approximate under concurrency."""

    used_bytes: int
    limit_bytes: int
    percent: float
    file_count: int = 0

    @classmethod
    def compute(cls, used_bytes: int, limit_bytes: int, file_count: int = 0) -> QuotaSnapshot:
        if limit_bytes <= 0:
            percent = 100.0 if used_bytes > 0 else 0.0
        else:
            percent = min(100.0, used_bytes / limit_bytes * 100)
        return cls(
            used_bytes=used_bytes,
            limit_bytes=limit_bytes,
            percent=percent,
            file_count=file_count,
        )

    @property
    def used_gb(self) -> float:
        return self.used_bytes / _GIB

    @property
    def limit_gb(self) -> float:
        return self.limit_bytes / _GIB

    @property
    def free_bytes(self) -> int:
        return max(0, self.limit_bytes - self.used_bytes)


@dataclass(frozen=True)
class Breadcrumb:
    """One navigation step from the drive root to a folder."""

    label: str
    path: str


@dataclass
class ShareGrantInfo:
    """A token-keyed grant of scoped access to an owner's subtree."""

    token: str
    root_path: str
    permission: Permission
    owner_root: str
    created_at: datetime | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        exp = self.expires_at
        if exp.tzinfo is None:
            exp = exp.replace(tzinfo=UTC)
        return exp <= now


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Directories before files, each group by case-insensitive name."""
    return sorted(
        entries,
        key=lambda e: (not e.is_directory, e.name.casefold(), e.name),
    )
