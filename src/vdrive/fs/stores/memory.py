"""MemoryObjectStore — in-process flat key space."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import UTC, datetime

from ..types import ObjectMetadata, PrefixListing
from ..utils import guess_mime_type

logger = logging.getLogger(__name__)


class MemoryObjectStore:
    """Dict-backed object store with S3-style delimiter listing.

    Every operation yields to the event loop once, so concurrent callers
    interleave the way they would against a remote store.

    Implements the ObjectStore protocol.
    """

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, ObjectMetadata]] = {}

    async def __aenter__(self) -> MemoryObjectStore:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
    ) -> ObjectMetadata:
        await asyncio.sleep(0)
        meta = ObjectMetadata(
            key=key,
            size=len(data),
            updated_at=datetime.now(UTC),
            content_type=content_type or guess_mime_type(key),
            etag=hashlib.md5(data).hexdigest(),  # noqa: S324
        )
        self._objects[key] = (bytes(data), meta)
        logger.debug("put %s (%d bytes)", key, len(data))
        return meta

    async def head(self, key: str) -> ObjectMetadata | None:
        await asyncio.sleep(0)
        stored = self._objects.get(key)
        return stored[1] if stored is not None else None

    async def get(self, key: str) -> bytes | None:
        await asyncio.sleep(0)
        stored = self._objects.get(key)
        return stored[0] if stored is not None else None

    async def delete(self, key: str) -> bool:
        await asyncio.sleep(0)
        return self._objects.pop(key, None) is not None

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_by_prefix(self, prefix: str) -> PrefixListing:
        await asyncio.sleep(0)
        listing = PrefixListing()
        for key, (_, meta) in list(self._objects.items()):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if "/" in rest:
                listing.prefixes.add(prefix + rest.split("/", 1)[0] + "/")
            else:
                listing.objects[key] = meta
        return listing

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def keys(self) -> list[str]:
        """All stored keys, sorted."""
        return sorted(self._objects)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, key: object) -> bool:
        return key in self._objects
