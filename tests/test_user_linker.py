"""Tests for canonical user resolution and external identity linking."""

import pytest
from sqlalchemy import func, select

from smartbudget.core.exceptions import (
    DuplicateIdentity,
    ExternalIdentityConflict,
    ExternalIdentityError,
    NameRequired,
)
from smartbudget.db.models.user import User
from smartbudget.services.identity_provider import ExternalIdentity
from smartbudget.services.users import CreationPolicy, UserLinker


async def count_users(session) -> int:
    return await session.scalar(select(func.count()).select_from(User))


class TestFindOrCreate:
    async def test_repeated_calls_return_same_user(self, user_linker, session):
        first = await user_linker.find_or_create_by_email("a@x.com", "Alice", CreationPolicy.OTP)
        second = await user_linker.find_or_create_by_email("A@X.COM", None, CreationPolicy.OTP)

        assert first.id == second.id
        assert first.otp_only is True
        assert first.password_hash is None
        assert await count_users(session) == 1

    async def test_otp_signup_needs_a_name(self, user_linker, session):
        with pytest.raises(NameRequired):
            await user_linker.find_or_create_by_email("a@x.com", "  ", CreationPolicy.OTP)
        assert await count_users(session) == 0

    async def test_duplicate_email_is_reported_by_create(self, user_linker):
        await user_linker.create_user("a@x.com", "Alice", CreationPolicy.OTP)
        with pytest.raises(DuplicateIdentity):
            await user_linker.create_user("a@x.com", "Alice Again", CreationPolicy.OTP)

    async def test_lost_creation_race_recovers_with_lookup(self, session_factory):
        async with session_factory() as other:
            winner = await UserLinker(other).create_user("a@x.com", "Alice", CreationPolicy.OTP)

        async with session_factory() as session:
            linker = UserLinker(session)
            real_lookup = linker.get_by_email
            lookups = []

            async def stale_then_real(email):
                lookups.append(email)
                # The first read happens "before" the other request committed.
                return None if len(lookups) == 1 else await real_lookup(email)

            linker.get_by_email = stale_then_real
            user = await linker.find_or_create_by_email("a@x.com", "Alice", CreationPolicy.OTP)

        assert user.id == winner.id
        assert len(lookups) == 2


class TestExternalLinking:
    async def test_link_attaches_external_id_once(self, user_linker):
        user = await user_linker.create_user("a@x.com", "Alice", CreationPolicy.OTP)

        linked = await user_linker.link_external_identity(user, "ext-1")
        assert linked.external_id == "ext-1"
        # Same id again is a no-op.
        assert (await user_linker.link_external_identity(linked, "ext-1")).external_id == "ext-1"

    async def test_different_external_id_is_not_overwritten(self, user_linker):
        user = await user_linker.create_user("a@x.com", "Alice", CreationPolicy.OTP)
        await user_linker.link_external_identity(user, "ext-1")

        with pytest.raises(ExternalIdentityConflict):
            await user_linker.link_external_identity(user, "ext-2")
        assert (await user_linker.get_by_id(user.id)).external_id == "ext-1"

    async def test_resolve_creates_unseen_identity_with_fallback_name(self, user_linker):
        user = await user_linker.resolve_external(ExternalIdentity("ext-9", "carol@x.com"))

        assert user.external_id == "ext-9"
        assert user.name == "carol"
        assert user.password_hash is None
        assert user.otp_only is False

    async def test_resolve_matches_existing_external_id(self, user_linker, session):
        created = await user_linker.resolve_external(ExternalIdentity("ext-9", "carol@x.com", "Carol"))
        # Provider email changed; the external id still identifies the same person.
        again = await user_linker.resolve_external(ExternalIdentity("ext-9", "carol@new.com", "Carol"))

        assert again.id == created.id
        assert await count_users(session) == 1

    async def test_resolve_links_existing_local_account_by_email(self, user_linker):
        local = await user_linker.create_user(
            "b@x.com", "Bob", CreationPolicy.PASSWORD, password_hash="hashed"
        )
        resolved = await user_linker.resolve_external(ExternalIdentity("ext-b", "B@x.com", "Bobby"))

        assert resolved.id == local.id
        assert resolved.external_id == "ext-b"
        assert resolved.name == "Bob"

    @pytest.mark.parametrize("email", [None, "", "   "])
    async def test_resolve_without_email_cannot_create(self, user_linker, session, email):
        with pytest.raises(ExternalIdentityError):
            await user_linker.resolve_external(ExternalIdentity("ext-x", email))
        assert await count_users(session) == 0
