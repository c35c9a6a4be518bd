"""
Unit tests for the identity store.

Tests cover:
- User insert and hydration from edges
- Credential lookup by email or username
- Partial profile updates
- Author projections for missing users
"""

import pytest

from backend.flock_server.models import EdgeType, User
from backend.flock_server.store import IdentityStore


def make_user(user_id: str, handle: str) -> User:
    return User(
        user_id=user_id,
        name=handle.capitalize(),
        username=handle,
        email=f"{handle}@example.com",
        created_at=1,
        updated_at=1,
    )


class TestIdentityStore:
    """Tests for IdentityStore."""

    @pytest.fixture
    def identity(self):
        return IdentityStore()

    @pytest.fixture
    def seeded(self, db, identity):
        with db.transaction() as conn:
            identity.insert_user(conn, make_user("u1", "alice"), "hash-1")
            identity.insert_user(conn, make_user("u2", "bob"), "hash-2")
            identity.insert_user(conn, make_user("u3", "carol"), "hash-3")
        return db

    @pytest.mark.asyncio
    async def test_get_user_hydrates_edges(self, seeded, identity):
        """Followers, following and bookmarks are read from the edge relation."""
        with seeded.transaction() as conn:
            identity.edges.add(conn, EdgeType.FOLLOWS, "u1", "u2", 2)
            identity.edges.add(conn, EdgeType.FOLLOWS, "u3", "u1", 3)
            identity.edges.add(conn, EdgeType.BOOKMARKS, "u1", "p2", 4)
            identity.edges.add(conn, EdgeType.BOOKMARKS, "u1", "p1", 5)

        with seeded.connect() as conn:
            alice = identity.get_user(conn, "u1")
            bob = identity.get_user(conn, "u2")

        assert alice.following == {"u2"}
        assert alice.followers == {"u3"}
        assert alice.bookmarks == ["p2", "p1"]
        assert bob.followers == {"u1"}

    @pytest.mark.asyncio
    async def test_get_missing_user(self, seeded, identity):
        """Unknown ids return None."""
        with seeded.connect() as conn:
            assert identity.get_user(conn, "nope") is None
            assert not identity.exists(conn, "nope")

    @pytest.mark.asyncio
    async def test_find_credentials_by_email_or_username(self, seeded, identity):
        """Either identifier resolves to the same credentials."""
        with seeded.connect() as conn:
            by_email = identity.find_credentials(conn, "bob@example.com")
            by_username = identity.find_credentials(conn, "bob")
            missing = identity.find_credentials(conn, "dave")

        assert by_email == ("u2", "hash-2")
        assert by_username == ("u2", "hash-2")
        assert missing is None

    @pytest.mark.asyncio
    async def test_email_or_username_taken(self, seeded, identity):
        """A clash on either field counts as taken."""
        with seeded.connect() as conn:
            assert identity.email_or_username_taken(conn, "alice@example.com", "new")
            assert identity.email_or_username_taken(conn, "new@example.com", "alice")
            assert not identity.email_or_username_taken(conn, "new@example.com", "new")

    @pytest.mark.asyncio
    async def test_update_profile_changes_only_given_columns(self, seeded, identity):
        """Unspecified profile fields keep their values."""
        with seeded.transaction() as conn:
            updated = identity.update_profile(conn, "u1", {"bio": "hi"}, updated_at=10)

        with seeded.connect() as conn:
            alice = identity.get_user(conn, "u1")

        assert updated
        assert alice.bio == "hi"
        assert alice.name == "Alice"
        assert alice.updated_at == 10

    @pytest.mark.asyncio
    async def test_update_profile_rejects_unknown_column(self, seeded, identity):
        """Only profile columns may be updated."""
        with pytest.raises(ValueError):
            with seeded.transaction() as conn:
                identity.update_profile(conn, "u1", {"email": "x@y.z"}, updated_at=10)

    @pytest.mark.asyncio
    async def test_update_profile_missing_user(self, seeded, identity):
        """Updating an unknown user reports False."""
        with seeded.transaction() as conn:
            assert not identity.update_profile(conn, "nope", {"bio": "x"}, updated_at=10)

    @pytest.mark.asyncio
    async def test_projections_degrade_for_missing_users(self, seeded, identity):
        """Missing users resolve to all-None projections."""
        with seeded.connect() as conn:
            resolved = identity.projections(conn, ["u1", "ghost", "u1"])

        assert resolved["u1"].handle == "alice"
        assert resolved["u1"].display_name == "Alice"
        assert resolved["ghost"].handle is None
        assert resolved["ghost"].display_name is None
        assert resolved["ghost"].to_dict()["id"] == "ghost"

    @pytest.mark.asyncio
    async def test_list_users_except(self, seeded, identity):
        """Every user but the given one is listed."""
        with seeded.connect() as conn:
            others = identity.list_users_except(conn, "u1")

        assert {user.user_id for user in others} == {"u2", "u3"}

    @pytest.mark.asyncio
    async def test_to_dict_has_no_password(self, seeded, identity):
        """Public user records never carry the password hash."""
        with seeded.connect() as conn:
            data = identity.get_user(conn, "u1").to_dict()

        assert "password" not in data
        assert "password_hash" not in data
        assert "hash-1" not in data.values()
