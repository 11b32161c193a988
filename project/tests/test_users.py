"""Tests for the user repository."""
import pytest
from sqlalchemy import select

from leadstore.models.user import User


async def admin_id(users) -> int:
    return next(u.id for u in (await users.get_all_users()).items if u.username == "admin")


@pytest.mark.unit
class TestAuthenticate:
    """Credential checks."""

    async def test_default_admin(self, users):
        """The bootstrapped admin logs in with the default password."""
        assert await users.authenticate_user("admin", "admin") is True

    async def test_wrong_password(self, users):
        """A wrong password is refused."""
        assert await users.authenticate_user("admin", "Admin") is False

    async def test_unknown_user(self, users):
        """An unknown username is refused."""
        assert await users.authenticate_user("nobody", "admin") is False

    async def test_passwords_stored_hashed(self, storage, users):
        """No plain text password reaches the table."""
        await users.add_user("operator", "s3cret")
        Session = await storage.get_handle()
        with Session() as session:
            stored = session.scalars(select(User.password)).all()
        assert "s3cret" not in stored
        assert "admin" not in stored


@pytest.mark.unit
class TestUserManagement:
    """Adding, listing, deleting users and changing passwords."""

    async def test_listing_hides_passwords(self, users):
        """Listed users carry id, username and created_at only."""
        await users.add_user("operator", "s3cret")
        result = await users.get_all_users()
        assert {u.username for u in result.items} == {"admin", "operator"}
        for user in result.items:
            assert set(user.model_dump()) == {"id", "username", "created_at"}

    async def test_add_user(self, users):
        """A new user can log in."""
        result = await users.add_user("operator", "s3cret")
        assert result.success is True
        assert result.id is not None
        assert await users.authenticate_user("operator", "s3cret") is True

    async def test_add_existing_username(self, users):
        """Usernames are unique."""
        await users.add_user("operator", "s3cret")
        result = await users.add_user("operator", "other")
        assert result.success is False
        assert result.message == "Username already exists"
        assert result.reason == "conflict"

    async def test_cannot_delete_only_admin(self, users):
        """Deleting the only admin is always refused."""
        await users.add_user("operator", "s3cret")
        result = await users.delete_user(await admin_id(users))
        assert result.success is False
        assert result.message == "Cannot delete the last admin user"
        assert result.reason == "conflict"
        assert await users.authenticate_user("admin", "admin") is True

    async def test_delete_non_admin(self, users):
        """Other users can be deleted."""
        added = await users.add_user("operator", "s3cret")
        result = await users.delete_user(added.id)
        assert result.success is True
        assert [u.username for u in (await users.get_all_users()).items] == ["admin"]
        assert await users.authenticate_user("operator", "s3cret") is False

    async def test_delete_unknown_id(self, users):
        """Deleting a missing id is a successful no-op."""
        result = await users.delete_user(12345)
        assert result.success is True
        assert len((await users.get_all_users()).items) == 1

    async def test_update_password(self, users):
        """The new password replaces the old one without verification."""
        result = await users.update_user_password(await admin_id(users), "n3w-pass")
        assert result.success is True
        assert await users.authenticate_user("admin", "admin") is False
        assert await users.authenticate_user("admin", "n3w-pass") is True

    async def test_get_user(self, users):
        """Single lookup by username."""
        assert (await users.get_user("admin")).username == "admin"
        assert await users.get_user("ghost") is None
