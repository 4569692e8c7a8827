"""DriveConfig — tunables shared by every drive component."""

from __future__ import annotations

import os
from dataclasses import dataclass

from vdrive.fs.utils import DEFAULT_ROOT_LABEL, DEFAULT_SENTINEL_NAME, validate_name

DEFAULT_LIMIT_BYTES = 5 * 1024 * 1024 * 1024  # 5 GB per owner
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MB

_ENV_PREFIX = "VDRIVE_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DriveConfig:
    """Configuration for a drive instance."""

    limit_bytes: int = DEFAULT_LIMIT_BYTES
    """Quota per namespace root."""

    sentinel_name: str = DEFAULT_SENTINEL_NAME
    """Hidden zero-length object that keeps an empty folder visible."""

    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    """Largest single upload accepted. Larger items fail individually."""

    enforce_quota: bool = False
    """If True, uploads that would exceed ``limit_bytes`` fail individually."""

    settle_passes: int = 1
    """Re-list passes per level during recursive delete."""

    root_label: str = DEFAULT_ROOT_LABEL
    """Breadcrumb label of the drive root."""

    def __post_init__(self) -> None:
        if self.limit_bytes < 0:
            raise ValueError(f"limit_bytes must be non-negative, got {self.limit_bytes}")
        if self.max_file_size <= 0:
            raise ValueError(f"max_file_size must be positive, got {self.max_file_size}")
        if not 0 <= self.settle_passes <= 1:
            raise ValueError("settle_passes must be 0 or 1")
        self.sentinel_name = validate_name(self.sentinel_name, reserved=())

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> DriveConfig:
        """Build a config from ``VDRIVE_*`` environment variables."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}
        if (value := env.get(f"{_ENV_PREFIX}LIMIT_BYTES")) is not None:
            kwargs["limit_bytes"] = int(value)
        if (value := env.get(f"{_ENV_PREFIX}SENTINEL_NAME")) is not None:
            kwargs["sentinel_name"] = value
        if (value := env.get(f"{_ENV_PREFIX}MAX_FILE_SIZE")) is not None:
            kwargs["max_file_size"] = int(value)
        if (value := env.get(f"{_ENV_PREFIX}ENFORCE_QUOTA")) is not None:
            kwargs["enforce_quota"] = _env_bool(value)
        if (value := env.get(f"{_ENV_PREFIX}ROOT_LABEL")) is not None:
            kwargs["root_label"] = value
        return cls(**kwargs)  # type: ignore[arg-type]
