"""SharingService — share-grant CRUD and token lookup.

Stateless service that receives the grant model at construction and a
session at call time.  ``DatabaseShareGrantStore`` wraps it with a session
factory to satisfy the read-only ``ShareGrantStore`` protocol the access
layer consumes.  Grant creation and revocation belong to the administrative
surface, not the drive core.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlmodel import select

from .permissions import Permission
from .types import ShareGrantInfo
from .utils import normalize_path, validate_root

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from vdrive.models.shares import ShareGrantBase

logger = logging.getLogger(__name__)


def to_grant_info(grant: ShareGrantBase) -> ShareGrantInfo:
    """Convert a stored grant row into the core's grant record."""
    return ShareGrantInfo(
        token=grant.token,
        root_path=grant.root_path,
        permission=Permission.parse(grant.permission),
        owner_root=grant.owner_root,
        created_at=grant.created_at,
        expires_at=grant.expires_at,
    )


class SharingService:
    """Manages share grants.

    Constructor receives the concrete grant model so callers can use
    custom SQLModel subclasses with different table names.
    """

    def __init__(self, grant_model: type[ShareGrantBase]) -> None:
        self._grant_model = grant_model

    async def create_grant(
        self,
        session: AsyncSession,
        owner_root: str,
        root_path: str,
        permission: str | Permission = Permission.READ,
        *,
        created_by: str = "",
        expires_at: datetime | None = None,
        token: str | None = None,
    ) -> ShareGrantBase:
        """Create a grant record. Flushes but does not commit."""
        permission = Permission.parse(permission)
        kwargs: dict[str, object] = {
            "owner_root": validate_root(owner_root),
            "root_path": normalize_path(root_path, directory=True),
            "permission": permission.value,
            "created_by": created_by,
            "expires_at": expires_at,
        }
        if token is not None:
            kwargs["token"] = token
        grant = self._grant_model(**kwargs)
        session.add(grant)
        await session.flush()
        logger.info(
            "Created %s grant on %s%s", permission.value, grant.owner_root, grant.root_path
        )
        return grant

    async def get_grant(
        self,
        session: AsyncSession,
        token: str,
    ) -> ShareGrantBase | None:
        """Fetch a grant by token, expired or not."""
        model = self._grant_model
        result = await session.execute(select(model).where(model.token == token))
        return result.scalar_one_or_none()

    async def revoke_grant(
        self,
        session: AsyncSession,
        token: str,
    ) -> bool:
        """Delete a grant. Returns True if found."""
        grant = await self.get_grant(session, token)
        if grant is None:
            return False
        await session.delete(grant)
        await session.flush()
        logger.info("Revoked grant on %s%s", grant.owner_root, grant.root_path)
        return True

    async def list_grants(
        self,
        session: AsyncSession,
        owner_root: str,
        *,
        include_expired: bool = False,
    ) -> list[ShareGrantBase]:
        """List grants issued on *owner_root*'s drive."""
        model = self._grant_model
        result = await session.execute(
            select(model).where(model.owner_root == validate_root(owner_root))
        )
        grants = list(result.scalars().all())
        if include_expired:
            return grants
        now = datetime.now(UTC)
        return [g for g in grants if not to_grant_info(g).is_expired(now)]


class DatabaseShareGrantStore:
    """``ShareGrantStore`` backed by ``SharingService`` and a session factory.

    Implements the ShareGrantStore protocol.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        sharing: SharingService,
    ) -> None:
        self._session_factory = session_factory
        self._sharing = sharing

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Per-operation session: commit on success, roll back on error."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def lookup(self, token: str) -> ShareGrantInfo | None:
        async with self.session() as session:
            grant = await self._sharing.get_grant(session, token)
            return to_grant_info(grant) if grant is not None else None


class MemoryShareGrantStore:
    """In-process ``ShareGrantStore``.

    Implements the ShareGrantStore protocol.
    """

    def __init__(self, grants: list[ShareGrantInfo] | None = None) -> None:
        self._grants: dict[str, ShareGrantInfo] = {}
        for grant in grants or []:
            self.add(grant)

    def add(self, grant: ShareGrantInfo) -> ShareGrantInfo:
        grant.owner_root = validate_root(grant.owner_root)
        grant.root_path = normalize_path(grant.root_path, directory=True)
        grant.permission = Permission.parse(grant.permission)
        self._grants[grant.token] = grant
        return grant

    def remove(self, token: str) -> bool:
        return self._grants.pop(token, None) is not None

    async def lookup(self, token: str) -> ShareGrantInfo | None:
        return self._grants.get(token)
