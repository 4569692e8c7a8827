"""QuotaAccountant — storage usage derived from a full walk of a root."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .directories import iter_levels
from .types import QuotaSnapshot
from .utils import DEFAULT_SENTINEL_NAME, to_key

if TYPE_CHECKING:
    from .protocol import ObjectStore

logger = logging.getLogger(__name__)


class QuotaAccountant:
    """Sums object sizes under a namespace root.

    O(total object count) per call and nothing is cached: objects in flight
    during the scan may be over- or under-counted.  Call after mutations,
    not per render.
    """

    def __init__(
        self,
        store: ObjectStore,
        limit_bytes: int,
        *,
        sentinel_name: str = DEFAULT_SENTINEL_NAME,
    ) -> None:
        self._store = store
        self.limit_bytes = limit_bytes
        self.sentinel_name = sentinel_name

    async def usage(self, root: str) -> QuotaSnapshot:
        """Walk every level under *root* and total the file sizes."""
        used = 0
        count = 0
        async for _, listing in iter_levels(self._store, to_key(root, "/")):
            for key, meta in listing.objects.items():
                used += meta.size
                if key.rsplit("/", 1)[-1] != self.sentinel_name:
                    count += 1
        snapshot = QuotaSnapshot.compute(used, self.limit_bytes, count)
        logger.debug(
            "Usage of %s: %d/%d bytes (%.1f%%)",
            root,
            snapshot.used_bytes,
            snapshot.limit_bytes,
            snapshot.percent,
        )
        return snapshot

    async def check_fits(self, root: str, extra_bytes: int) -> bool:
        """Whether *extra_bytes* more would stay within the limit."""
        snapshot = await self.usage(root)
        return snapshot.used_bytes + extra_bytes <= self.limit_bytes
