"""Path utilities: normalization, traversal guard, key mapping, display helpers."""

from __future__ import annotations

import mimetypes

from .exceptions import InvalidPathError
from .types import Breadcrumb

DEFAULT_SENTINEL_NAME = ".keep"
DEFAULT_ROOT_LABEL = "My Drive"

MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255

# Reserved filenames (Windows compatibility for disk-backed stores)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


# =============================================================================
# Path Normalization
# =============================================================================


def _check_characters(raw: str) -> None:
    if "\x00" in raw:
        raise InvalidPathError("Path contains null bytes", path=raw)
    for ch in raw:
        code = ord(ch)
        if 0x01 <= code <= 0x1F:
            raise InvalidPathError(f"Path contains control character: 0x{code:02x}", path=raw)
    if len(raw) > MAX_PATH_LENGTH:
        raise InvalidPathError(f"Path too long (max {MAX_PATH_LENGTH} characters)", path=raw)


def normalize_path(raw: str, *, directory: bool = False) -> str:
    """Canonicalize a drive path.

    - Ensures a single leading /
    - Removes empty and ``.`` segments (double slashes)
    - Rejects any ``..`` segment; this is the only traversal guard
    - Keeps a trailing slash if the input had one, adds one if *directory*

    Examples:
        normalize_path("foo.txt") -> "/foo.txt"
        normalize_path("/foo//bar/") -> "/foo/bar/"
        normalize_path("foo", directory=True) -> "/foo/"
        normalize_path("") -> "/"
        normalize_path("/a/../b") -> InvalidPathError
    """
    if raw is None:
        raise InvalidPathError("Path is required")
    _check_characters(raw)

    raw = raw.strip()
    trailing = raw.endswith("/")

    segments = [s for s in raw.split("/") if s not in ("", ".")]
    for segment in segments:
        if segment == "..":
            raise InvalidPathError("Path traversal is not allowed", path=raw)
        if len(segment) > MAX_NAME_LENGTH:
            raise InvalidPathError(
                f"Path segment too long (max {MAX_NAME_LENGTH} characters)", path=raw
            )

    if not segments:
        return "/"

    path = "/" + "/".join(segments)
    if directory or trailing:
        path += "/"
    return path


def is_ancestor(ancestor: str, path: str) -> bool:
    """True iff *path* is *ancestor* or nested under it.

    Comparison happens at segment boundaries: ``/ab`` is not under ``/a/``.
    """
    ancestor = normalize_path(ancestor, directory=True)
    path = normalize_path(path)
    if path == ancestor or path + "/" == ancestor:
        return True
    return path.startswith(ancestor)


def last_segment(path: str) -> str:
    """Final path component, used for display names. Root yields ``""``."""
    stripped = path.rstrip("/")
    if not stripped:
        return ""
    return stripped.rsplit("/", 1)[-1]


def is_file_path(path: str) -> bool:
    """Rendering hint for icon selection. Never use it as an existence check."""
    return not path.endswith("/") and "." in last_segment(path)


def split_path(path: str) -> tuple[str, str]:
    """Split path into (parent_dir, name).

    Examples:
        split_path("/foo/bar.txt") -> ("/foo/", "bar.txt")
        split_path("/foo/bar/") -> ("/foo/", "bar")
        split_path("/") -> ("/", "")
    """
    path = normalize_path(path)
    name = last_segment(path)
    if not name:
        return "/", ""
    parent = path.rstrip("/")[: -len(name)]
    return parent or "/", name


def parent_path(path: str) -> str:
    """Parent directory of *path*, with trailing slash."""
    return split_path(path)[0]


def join_path(base: str, *parts: str, directory: bool = False) -> str:
    """Compose path fragments and normalize the result."""
    return normalize_path("/".join([base, *parts]), directory=directory)


def validate_name(name: str, *, reserved: tuple[str, ...] = (DEFAULT_SENTINEL_NAME,)) -> str:
    """Validate a single entry name for mkdir and upload. Returns the stripped name."""
    if name is None:
        raise InvalidPathError("Name is required")
    _check_characters(name)
    name = name.strip()
    if not name:
        raise InvalidPathError("Name is required", path=name)
    if "/" in name or "\\" in name:
        raise InvalidPathError(f"Name must not contain path separators: {name}", path=name)
    if name in (".", ".."):
        raise InvalidPathError(f"Invalid name: {name}", path=name)
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidPathError(
            f"Filename too long (max {MAX_NAME_LENGTH} characters)", path=name
        )
    if name in reserved:
        raise InvalidPathError(f"Reserved name: {name}", path=name)

    name_upper = name.upper()
    base_name = name_upper.split(".")[0] if "." in name_upper else name_upper
    if base_name in RESERVED_NAMES:
        raise InvalidPathError(f"Reserved filename: {name}", path=name)
    return name


# =============================================================================
# Namespace Roots and Storage Keys
# =============================================================================


def validate_root(root: str) -> str:
    """Validate a namespace root such as ``users/alice``. Returns it without slashes."""
    if not root or not root.strip("/"):
        raise InvalidPathError("Namespace root is required", path=root)
    if "\\" in root or "\0" in root:
        raise InvalidPathError("Namespace root contains invalid characters", path=root)
    segments = root.strip("/").split("/")
    if any(s in ("", ".", "..") for s in segments):
        raise InvalidPathError("Namespace root contains invalid segments", path=root)
    return "/".join(segments)


def to_key(root: str, path: str) -> str:
    """Map a drive path under *root* to a flat storage key.

    Directory paths keep their trailing slash so they double as list prefixes.
    """
    root = validate_root(root)
    return root + normalize_path(path)


def from_key(root: str, key: str) -> str:
    """Map a storage key (or prefix) under *root* back to a drive path."""
    root = validate_root(root)
    prefix = root + "/"
    if not key.startswith(prefix):
        raise InvalidPathError(f"Key is outside namespace root {root!r}", path=key)
    return "/" + key[len(prefix):]


# =============================================================================
# Display Helpers
# =============================================================================


def breadcrumbs(path: str, *, root_label: str = DEFAULT_ROOT_LABEL) -> list[Breadcrumb]:
    """Navigation trail from the drive root to *path*."""
    path = normalize_path(path, directory=True)
    crumbs = [Breadcrumb(label=root_label, path="/")]
    accumulated = "/"
    for part in path.strip("/").split("/"):
        if not part:
            continue
        accumulated += part + "/"
        crumbs.append(Breadcrumb(label=part, path=accumulated))
    return crumbs


def format_size(num_bytes: int) -> str:
    """Human-readable 1024-based size.

    Examples:
        format_size(0) -> "0 B"
        format_size(1536) -> "1.5 KB"
    """
    if num_bytes <= 0:
        return "0 B"
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[unit]}"


def guess_mime_type(filename: str) -> str:
    """Guess the content type of an upload from its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"
