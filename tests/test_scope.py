"""Tests for AccessScope — identities, share tokens, and path confinement."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from vdrive.fs.exceptions import (
    AuthenticationRequiredError,
    InvalidPathError,
    InvalidTokenError,
    PermissionDeniedError,
    ScopeViolationError,
)
from vdrive.fs.permissions import Permission
from vdrive.fs.scope import AccessScope, Identity, ScopeDecision, ShareToken, compose_share_path
from vdrive.fs.sharing import MemoryShareGrantStore
from vdrive.fs.types import ShareGrantInfo


@pytest.fixture
def grant_store() -> MemoryShareGrantStore:
    return MemoryShareGrantStore(
        [
            ShareGrantInfo(
                token="readtoken",
                root_path="/shared",
                permission=Permission.READ,
                owner_root="users/alice",
            ),
            ShareGrantInfo(
                token="writetoken",
                root_path="/team/",
                permission="write",  # type: ignore[arg-type]
                owner_root="/users/alice/",
            ),
            ShareGrantInfo(
                token="oldtoken",
                root_path="/shared/",
                permission=Permission.READ,
                owner_root="users/alice",
                expires_at=datetime.now(UTC) - timedelta(minutes=1),
            ),
        ]
    )


@pytest.fixture
def access(grant_store) -> AccessScope:
    return AccessScope(grant_store)


# ---------------------------------------------------------------------------
# Permission
# ---------------------------------------------------------------------------


class TestPermission:
    def test_write_implies_read(self):
        assert Permission.WRITE.allows_read
        assert Permission.WRITE.allows_write
        assert Permission.READ.allows_read
        assert not Permission.READ.allows_write

    def test_parse(self):
        assert Permission.parse("read") is Permission.READ
        assert Permission.parse(Permission.WRITE) is Permission.WRITE

    def test_parse_invalid(self):
        with pytest.raises(ValueError, match="Invalid permission"):
            Permission.parse("admin")


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class TestIdentity:
    async def test_verified_identity(self, access):
        decision = await access.resolve(Identity("users/alice"), "/docs")
        assert decision.root == "users/alice"
        assert decision.effective_path == "/docs"
        assert decision.permission is Permission.WRITE
        assert decision.share_root == "/"
        assert not decision.is_shared

    async def test_unverified_identity(self, access):
        with pytest.raises(AuthenticationRequiredError):
            await access.resolve(Identity("users/alice", is_verified=False))

    async def test_no_principal(self, access):
        with pytest.raises(AuthenticationRequiredError):
            await access.resolve(None)

    async def test_owner_traversal_rejected(self, access):
        with pytest.raises(InvalidPathError):
            await access.resolve(Identity("users/alice"), "/../bob/")

    async def test_unsupported_principal(self, access):
        with pytest.raises(TypeError):
            await access.resolve("users/alice")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Share tokens
# ---------------------------------------------------------------------------


class TestShareToken:
    async def test_read_token(self, access):
        decision = await access.resolve(ShareToken("readtoken"), "/")
        assert decision.root == "users/alice"
        assert decision.effective_path == "/shared/"
        assert decision.share_root == "/shared/"
        assert decision.permission is Permission.READ
        assert decision.is_shared
        assert decision.token == "readtoken"

    async def test_path_is_relative_to_share_root(self, access):
        decision = await access.resolve(ShareToken("readtoken"), "/photos/2024/")
        assert decision.effective_path == "/shared/photos/2024/"

    async def test_relative_path_without_slash(self, access):
        decision = await access.resolve(ShareToken("readtoken"), "a.txt")
        assert decision.effective_path == "/shared/a.txt"

    async def test_write_token_normalizes_grant(self, access):
        decision = await access.resolve(ShareToken("writetoken"), "/")
        assert decision.root == "users/alice"
        assert decision.share_root == "/team/"
        assert decision.can_write

    @pytest.mark.parametrize(
        "requested",
        [
            pytest.param("..", id="bare"),
            pytest.param("/../", id="to-parent"),
            pytest.param("/a/../../secret", id="escape"),
            pytest.param("/a/../b", id="stays-inside"),
        ],
    )
    async def test_dotdot_is_scope_violation(self, access, requested):
        with pytest.raises(ScopeViolationError):
            await access.resolve(ShareToken("readtoken"), requested)

    async def test_unknown_token(self, access):
        with pytest.raises(InvalidTokenError, match="Unknown"):
            await access.resolve(ShareToken("nope"))

    async def test_empty_token(self, access):
        with pytest.raises(InvalidTokenError):
            await access.resolve(ShareToken(""))

    async def test_expired_token(self, access):
        with pytest.raises(InvalidTokenError, match="expired"):
            await access.resolve(ShareToken("oldtoken"))

    async def test_tokens_disabled(self):
        with pytest.raises(InvalidTokenError):
            await AccessScope().resolve(ShareToken("readtoken"))

    def test_token_repr_is_masked(self):
        assert "readtoken" not in repr(ShareToken("readtoken"))


# ---------------------------------------------------------------------------
# ScopeDecision
# ---------------------------------------------------------------------------


class TestScopeDecision:
    def _shared(self, permission: Permission = Permission.READ) -> ScopeDecision:
        return ScopeDecision(
            root="users/alice",
            effective_path="/shared/",
            permission=permission,
            share_root="/shared/",
            token="t",
        )

    def test_within_shared(self):
        assert self._shared().within("/a/b.txt") == "/shared/a/b.txt"

    def test_within_rejects_escape(self):
        with pytest.raises(ScopeViolationError):
            self._shared().within("../other")

    def test_to_view(self):
        decision = self._shared()
        assert decision.to_view("/shared/a/b.txt") == "/a/b.txt"
        assert decision.to_view("/shared/") == "/"
        assert decision.to_view("/shared") == "/"

    def test_owner_to_view_is_identity(self):
        decision = ScopeDecision(
            root="users/alice", effective_path="/", permission=Permission.WRITE
        )
        assert decision.to_view("/a/b/") == "/a/b/"
        assert decision.within("a//b") == "/a/b"

    def test_require_write_read_only(self):
        with pytest.raises(PermissionDeniedError):
            self._shared().require_write("/a")

    def test_require_write_allowed(self):
        self._shared(Permission.WRITE).require_write("/a")

    def test_permission_denied_is_permission_error(self):
        with pytest.raises(PermissionError):
            self._shared().require_write()


class TestComposeSharePath:
    @pytest.mark.parametrize(
        ("requested", "expected"),
        [
            ("/", "/shared/"),
            ("", "/shared/"),
            ("x", "/shared/x"),
            ("/x/y/", "/shared/x/y/"),
            ("//x", "/shared/x"),
        ],
    )
    def test_compose(self, requested, expected):
        assert compose_share_path("/shared", requested) == expected

    def test_result_always_under_share_root(self):
        for requested in ["/", "a", "/a/b/c", "./a", "a/./b/"]:
            assert compose_share_path("/s/", requested).startswith("/s/")
