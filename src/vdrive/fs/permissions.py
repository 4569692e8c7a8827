"""Permission enum for owner and share-grant scopes."""

from __future__ import annotations

from enum import Enum


class Permission(str, Enum):
    """Permission level of a resolved scope.

    ``WRITE`` implies read.
    """

    READ = "read"
    WRITE = "write"

    @property
    def allows_read(self) -> bool:
        return True

    @property
    def allows_write(self) -> bool:
        return self is Permission.WRITE

    @classmethod
    def parse(cls, value: str | Permission) -> Permission:
        """Coerce a stored permission string, rejecting unknown levels."""
        if isinstance(value, Permission):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Invalid permission: {value!r}. Must be 'read' or 'write'."
            ) from None
