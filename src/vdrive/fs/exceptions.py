"""Custom exception hierarchy for the vdrive filesystem layer.

Every error carries a machine-readable ``kind`` and the offending path or
key so a presentation layer can render a specific message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import BatchReport, DeleteReport


class DriveError(Exception):
    """Base exception for all vdrive errors."""

    kind = "drive_error"

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def to_dict(self) -> dict[str, str | None]:
        """Structured form for API handlers."""
        return {"kind": self.kind, "message": self.message, "path": self.path}


class InvalidPathError(DriveError, ValueError):
    """Raised when a path is malformed or attempts traversal."""

    kind = "invalid_path"


class AuthenticationRequiredError(DriveError):
    """Raised when no verified identity or share token accompanies a request."""

    kind = "authentication_required"


class InvalidTokenError(DriveError):
    """Raised when a share token is unknown or expired."""

    kind = "invalid_token"


class ScopeViolationError(DriveError):
    """Raised when a path escapes the subtree a share grant covers."""

    kind = "scope_violation"


class PermissionDeniedError(DriveError, PermissionError):
    """Raised on a write-class operation under a read-only scope."""

    kind = "permission_denied"


class AlreadyExistsError(DriveError):
    """Raised when creating an entry that already exists."""

    kind = "already_exists"


class PathNotFoundError(DriveError):
    """Raised when a file or directory path does not exist."""

    kind = "not_found"


class FileTooLargeError(DriveError):
    """Raised when a single upload exceeds the configured size limit."""

    kind = "file_too_large"


class QuotaExceededError(DriveError):
    """Raised when an upload would push a root past its quota."""

    kind = "quota_exceeded"


class StoreUnavailableError(DriveError):
    """Raised on object store transport or backend failures."""

    kind = "store_unavailable"


class PartialFailureError(DriveError):
    """Raised when a batch finished with some items failed.

    Not the same as total failure: ``report`` lists what succeeded too.
    """

    kind = "partial_failure"

    def __init__(
        self,
        message: str,
        report: DeleteReport | BatchReport,
        *,
        path: str | None = None,
    ) -> None:
        super().__init__(message, path=path)
        self.report = report
