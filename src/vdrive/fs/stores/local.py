"""LocalObjectStore — flat keys mapped onto a host directory."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from ..exceptions import InvalidPathError, StoreUnavailableError
from ..types import ObjectMetadata, PrefixListing
from ..utils import guess_mime_type

logger = logging.getLogger(__name__)

_TMP_PREFIX = ".vdrive-"
_TMP_SUFFIX = ".tmp"


class LocalObjectStore:
    """Object store backed by files under ``host_dir``.

    A key ``users/alice/docs/a.txt`` is stored at
    ``host_dir/users/alice/docs/a.txt``.  Physical directories are pruned
    when their last object goes away, so a prefix exists on disk only while
    some key lives under it.

    Security: _resolve_key() ensures all keys stay within host_dir,
    preventing path traversal attacks.

    Implements the ObjectStore protocol.
    """

    def __init__(self, host_dir: Path | str, *, create: bool = True) -> None:
        self.host_dir = Path(host_dir).resolve()
        if not self.host_dir.exists():
            if not create:
                raise FileNotFoundError(f"Host directory does not exist: {self.host_dir}")
            self.host_dir.mkdir(parents=True, exist_ok=True)
        if not self.host_dir.is_dir():
            raise NotADirectoryError(f"Host path is not a directory: {self.host_dir}")

    # =========================================================================
    # Key Resolution & Security
    # =========================================================================

    def _resolve_key(self, key: str) -> Path:
        """Resolve a key to a physical path, refusing anything outside host_dir."""
        rel = key.lstrip("/")
        if not rel:
            return self.host_dir
        if any(part == ".." for part in rel.split("/")):
            raise InvalidPathError(f"Key traversal detected: {key}", path=key)

        resolved = (self.host_dir / rel).resolve()
        try:
            resolved.relative_to(self.host_dir)
        except ValueError:
            raise InvalidPathError(
                f"Key resolves outside store directory: {key}", path=key
            ) from None
        return resolved

    def _metadata(self, key: str, path: Path) -> ObjectMetadata:
        stat = path.stat()
        return ObjectMetadata(
            key=key,
            size=stat.st_size,
            updated_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
            content_type=guess_mime_type(path.name),
        )

    @staticmethod
    def _is_temp(name: str) -> bool:
        return name.startswith(_TMP_PREFIX) and name.endswith(_TMP_SUFFIX)

    @staticmethod
    def _has_objects(directory: Path) -> bool:
        for _, _, files in os.walk(directory):
            if any(not LocalObjectStore._is_temp(f) for f in files):
                return True
        return False

    def _prune_empty_parents(self, path: Path) -> None:
        current = path.parent
        while current != self.host_dir and self.host_dir in current.parents:
            try:
                current.rmdir()
            except OSError:
                break
            current = current.parent

    # =========================================================================
    # Context Manager (no-op for local disk)
    # =========================================================================

    async def __aenter__(self) -> LocalObjectStore:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        pass

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # =========================================================================
    # Objects
    # =========================================================================

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
    ) -> ObjectMetadata:
        """Write an object. Atomic via tempfile + replace."""
        resolved = self._resolve_key(key)
        if key.endswith("/"):
            raise InvalidPathError(f"Object keys must not end with '/': {key}", path=key)

        def _write() -> ObjectMetadata:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(resolved.parent), prefix=_TMP_PREFIX, suffix=_TMP_SUFFIX
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                Path(tmp_path).replace(resolved)
            except Exception:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
                raise
            meta = self._metadata(key, resolved)
            return ObjectMetadata(
                key=meta.key,
                size=meta.size,
                updated_at=meta.updated_at,
                content_type=content_type or meta.content_type,
                etag=hashlib.md5(data).hexdigest(),  # noqa: S324
            )

        try:
            return await asyncio.to_thread(_write)
        except OSError as e:
            raise StoreUnavailableError(f"Failed to write object: {e}", path=key) from e

    async def head(self, key: str) -> ObjectMetadata | None:
        resolved = self._resolve_key(key)

        def _stat() -> ObjectMetadata | None:
            if not resolved.is_file():
                return None
            return self._metadata(key, resolved)

        try:
            return await asyncio.to_thread(_stat)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreUnavailableError(f"Failed to stat object: {e}", path=key) from e

    async def get(self, key: str) -> bytes | None:
        resolved = self._resolve_key(key)

        def _read() -> bytes | None:
            if not resolved.is_file():
                return None
            return resolved.read_bytes()

        try:
            return await asyncio.to_thread(_read)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreUnavailableError(f"Failed to read object: {e}", path=key) from e

    async def delete(self, key: str) -> bool:
        resolved = self._resolve_key(key)

        def _delete() -> bool:
            if not resolved.is_file():
                return False
            resolved.unlink()
            self._prune_empty_parents(resolved)
            return True

        try:
            return await asyncio.to_thread(_delete)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreUnavailableError(f"Failed to delete object: {e}", path=key) from e

    # =========================================================================
    # Listing
    # =========================================================================

    async def list_by_prefix(self, prefix: str) -> PrefixListing:
        dir_part, _, name_prefix = prefix.rpartition("/")
        directory = self._resolve_key(dir_part) if dir_part else self.host_dir
        key_base = f"{dir_part}/" if dir_part else ""

        def _scan() -> PrefixListing:
            listing = PrefixListing()
            if not directory.is_dir():
                return listing
            with os.scandir(directory) as it:
                for entry in it:
                    if not entry.name.startswith(name_prefix) or self._is_temp(entry.name):
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        if self._has_objects(Path(entry.path)):
                            listing.prefixes.add(f"{key_base}{entry.name}/")
                    elif entry.is_file(follow_symlinks=False):
                        key = f"{key_base}{entry.name}"
                        # Deleted between scandir and stat
                        with contextlib.suppress(FileNotFoundError):
                            listing.objects[key] = self._metadata(key, Path(entry.path))
            return listing

        try:
            return await asyncio.to_thread(_scan)
        except OSError as e:
            raise StoreUnavailableError(f"Failed to list prefix: {e}", path=prefix) from e
