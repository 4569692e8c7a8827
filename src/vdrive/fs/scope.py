"""AccessScope — resolve who is asking into a namespace root and permission.

A request reaches the drive either as a verified owner ``Identity`` or as a
bearer ``ShareToken`` for a shared link.  Both resolve to a
``ScopeDecision``: the namespace root every storage key is confined to, the
subtree the caller may see, and the permission level.  The decision is an
explicit request-scoped value threaded through every call; nothing about
the current user or location lives in module state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import (
    AuthenticationRequiredError,
    InvalidTokenError,
    PermissionDeniedError,
    ScopeViolationError,
)
from .permissions import Permission
from .utils import is_ancestor, normalize_path, validate_root

if TYPE_CHECKING:
    from .protocol import ShareGrantStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """An authenticated caller as reported by the identity provider.

    An unverified identity is treated exactly like no identity.
    """

    owner_root: str
    is_verified: bool = True


@dataclass(frozen=True)
class ShareToken:
    """A bearer token presented through a shared link."""

    token: str

    def __repr__(self) -> str:
        return f"ShareToken(token='{self.token[:4]}…')"


Principal = Identity | ShareToken


def compose_share_path(share_root: str, requested: str) -> str:
    """Resolve *requested* relative to *share_root*, confined to that subtree.

    A leading slash in *requested* means the share root itself.  Any ``..``
    segment is a scope violation, whatever it would resolve to.
    """
    share_root = normalize_path(share_root, directory=True)
    if any(segment == ".." for segment in (requested or "").split("/")):
        raise ScopeViolationError(
            "Shared link paths may not contain '..'", path=requested
        )
    candidate = normalize_path(f"{share_root}/{requested or ''}")
    if not is_ancestor(share_root, candidate):
        raise ScopeViolationError(
            f"Path escapes shared folder {share_root}", path=requested
        )
    return candidate


@dataclass(frozen=True)
class ScopeDecision:
    """Resolved access for one request."""

    root: str
    """Namespace root all storage keys are confined to."""

    effective_path: str
    """Requested location, as a path inside ``root``."""

    permission: Permission
    """Permission level within the scope."""

    share_root: str = "/"
    """Subtree the caller is confined to. ``/`` for owners."""

    token: str | None = None
    """Share token the decision came from, if any."""

    @property
    def is_shared(self) -> bool:
        return self.token is not None

    @property
    def can_write(self) -> bool:
        return self.permission.allows_write

    def within(self, path: str) -> str:
        """Resolve a caller-facing *path* to a path inside ``root``."""
        if self.is_shared:
            return compose_share_path(self.share_root, path)
        return normalize_path(path)

    def to_view(self, path: str) -> str:
        """Convert a path inside ``root`` back to the caller's view."""
        if not self.is_shared:
            return path
        if path.startswith(self.share_root):
            return "/" + path[len(self.share_root):]
        if path + "/" == self.share_root:
            return "/"
        return path

    def require_write(self, path: str | None = None) -> None:
        """Raise unless the scope permits write-class operations."""
        if not self.permission.allows_write:
            raise PermissionDeniedError(
                "Write access denied: this link is read-only",
                path=path if path is not None else self.effective_path,
            )


class AccessScope:
    """Turns an ``Identity`` or ``ShareToken`` into a ``ScopeDecision``."""

    def __init__(self, grants: ShareGrantStore | None = None) -> None:
        self._grants = grants

    async def resolve(
        self,
        principal: Principal | None,
        requested_path: str = "/",
    ) -> ScopeDecision:
        if principal is None:
            raise AuthenticationRequiredError("A verified identity or share token is required")

        if isinstance(principal, Identity):
            return self._resolve_identity(principal, requested_path)

        if isinstance(principal, ShareToken):
            return await self._resolve_token(principal, requested_path)

        raise TypeError(f"Unsupported principal: {type(principal).__name__}")

    def _resolve_identity(self, identity: Identity, requested_path: str) -> ScopeDecision:
        if not identity.is_verified:
            raise AuthenticationRequiredError("Identity is not verified")
        # Owners always have full rights within their own root
        return ScopeDecision(
            root=validate_root(identity.owner_root),
            effective_path=normalize_path(requested_path),
            permission=Permission.WRITE,
        )

    async def _resolve_token(self, share: ShareToken, requested_path: str) -> ScopeDecision:
        if self._grants is None:
            raise InvalidTokenError("Shared links are not enabled")
        if not share.token:
            raise InvalidTokenError("Share token is empty")

        grant = await self._grants.lookup(share.token)
        if grant is None:
            raise InvalidTokenError("Unknown share token")
        if grant.is_expired():
            logger.info("Rejected expired share token for %s%s", grant.owner_root, grant.root_path)
            raise InvalidTokenError("Share token has expired")

        share_root = normalize_path(grant.root_path, directory=True)
        effective = compose_share_path(share_root, requested_path)
        return ScopeDecision(
            root=validate_root(grant.owner_root),
            effective_path=effective,
            permission=Permission.parse(grant.permission),
            share_root=share_root,
            token=grant.token,
        )
