"""ObjectStore and ShareGrantStore protocols — runtime-checkable interfaces.

The drive core only ever talks to storage through ``ObjectStore``: a flat,
prefix-addressed key space with per-object operations.  No call sequence
against it is assumed to be transactional.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .types import ObjectMetadata, PrefixListing, ShareGrantInfo


@runtime_checkable
class ObjectStore(Protocol):
    """Core interface every object store backend must implement.

    Backend transport failures surface as ``StoreUnavailableError``.
    """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Called before first use.  No-op if not needed."""
        ...

    async def close(self) -> None:
        """Called on shutdown."""
        ...

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
    ) -> ObjectMetadata: ...

    async def head(self, key: str) -> ObjectMetadata | None:
        """Metadata for *key*, or ``None`` when it does not exist."""
        ...

    async def get(self, key: str) -> bytes | None:
        """Object content, or ``None`` when it does not exist."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete *key*.  Returns False if nothing was there."""
        ...

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_by_prefix(self, prefix: str) -> PrefixListing:
        """One level below *prefix*, split on ``/``.

        ``prefixes`` holds the direct sub-prefixes (each ending in ``/``),
        ``objects`` the keys with no further ``/`` after *prefix*.
        """
        ...


@runtime_checkable
class ShareGrantStore(Protocol):
    """Read-only lookup of share grants by token."""

    async def lookup(self, token: str) -> ShareGrantInfo | None: ...
