"""SQLModel tables for vdrive."""

from vdrive.models.shares import ShareGrant, ShareGrantBase, generate_token

__all__ = [
    "ShareGrant",
    "ShareGrantBase",
    "generate_token",
]
