"""vdrive: a hierarchical drive over a flat object store.

Folders, breadcrumbs, quota and shared links, synthesized from key prefixes.
"""

__version__ = "0.1.0"

from vdrive._drive import Drive
from vdrive._drive_async import DriveAsync
from vdrive.config import DriveConfig
from vdrive.events import DriveEvent, EventBus, EventType
from vdrive.fs.exceptions import DriveError, PartialFailureError
from vdrive.fs.scope import Identity, ScopeDecision, ShareToken
from vdrive.fs.stores import LocalObjectStore, MemoryObjectStore
from vdrive.fs.transfers import ConflictPolicy
from vdrive.fs.types import (
    BatchReport,
    DeleteReport,
    ListResult,
    NamedBlob,
    ProgressEvent,
    QuotaSnapshot,
)
from vdrive.fs.utils import format_size

__all__ = [
    "BatchReport",
    "ConflictPolicy",
    "DeleteReport",
    "Drive",
    "DriveAsync",
    "DriveConfig",
    "DriveError",
    "DriveEvent",
    "EventBus",
    "EventType",
    "Identity",
    "ListResult",
    "LocalObjectStore",
    "MemoryObjectStore",
    "NamedBlob",
    "PartialFailureError",
    "ProgressEvent",
    "QuotaSnapshot",
    "ScopeDecision",
    "ShareToken",
    "__version__",
    "format_size",
]
