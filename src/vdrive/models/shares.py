"""ShareGrant model — token-keyed shared links into an owner's drive.

Provides ``ShareGrantBase`` (non-table) and ``ShareGrant`` (concrete table).
Subclass ``ShareGrantBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name.
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def generate_token(nbytes: int = 16) -> str:
    """Opaque share token: *nbytes* random bytes, hex-encoded."""
    return secrets.token_hex(nbytes)


class ShareGrantBase(SQLModel):
    """Base fields for a share grant. Subclass with ``table=True`` for a concrete table."""

    token: str = Field(default_factory=generate_token, primary_key=True)
    root_path: str
    permission: str = Field(default="read")
    owner_root: str = Field(index=True)
    created_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class ShareGrant(ShareGrantBase, table=True):
    """Default share grant table — ``vdrive_share_grants``."""

    __tablename__ = "vdrive_share_grants"
