"""Drive layer — paths, object stores, directories, quota, access, transfers."""

from vdrive.fs.directories import VirtualDirectory
from vdrive.fs.exceptions import (
    AlreadyExistsError,
    AuthenticationRequiredError,
    DriveError,
    FileTooLargeError,
    InvalidPathError,
    InvalidTokenError,
    PartialFailureError,
    PathNotFoundError,
    PermissionDeniedError,
    QuotaExceededError,
    ScopeViolationError,
    StoreUnavailableError,
)
from vdrive.fs.permissions import Permission
from vdrive.fs.protocol import ObjectStore, ShareGrantStore
from vdrive.fs.quota import QuotaAccountant
from vdrive.fs.scope import AccessScope, Identity, ScopeDecision, ShareToken
from vdrive.fs.sharing import DatabaseShareGrantStore, MemoryShareGrantStore, SharingService
from vdrive.fs.transfers import ConflictPolicy, TransferCoordinator, UploadBatch
from vdrive.fs.types import (
    BatchReport,
    Breadcrumb,
    DeleteReport,
    DirectoryEntry,
    FileEntry,
    ListResult,
    MkdirResult,
    NamedBlob,
    ObjectMetadata,
    PrefixListing,
    ProgressEvent,
    QuotaSnapshot,
    ShareGrantInfo,
)
from vdrive.fs.utils import breadcrumbs, format_size, normalize_path

__all__ = [
    "AccessScope",
    "AlreadyExistsError",
    "AuthenticationRequiredError",
    "BatchReport",
    "Breadcrumb",
    "ConflictPolicy",
    "DatabaseShareGrantStore",
    "DeleteReport",
    "DirectoryEntry",
    "DriveError",
    "FileEntry",
    "FileTooLargeError",
    "Identity",
    "InvalidPathError",
    "InvalidTokenError",
    "ListResult",
    "MemoryShareGrantStore",
    "MkdirResult",
    "NamedBlob",
    "ObjectMetadata",
    "ObjectStore",
    "PartialFailureError",
    "PathNotFoundError",
    "Permission",
    "PermissionDeniedError",
    "PrefixListing",
    "ProgressEvent",
    "QuotaAccountant",
    "QuotaExceededError",
    "QuotaSnapshot",
    "ScopeDecision",
    "ScopeViolationError",
    "ShareGrantInfo",
    "ShareGrantStore",
    "ShareToken",
    "SharingService",
    "StoreUnavailableError",
    "TransferCoordinator",
    "UploadBatch",
    "VirtualDirectory",
    "breadcrumbs",
    "format_size",
    "normalize_path",
]
