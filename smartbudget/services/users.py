"""Find-or-create the canonical user and attach external identities to it."""

import enum

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from smartbudget.core.exceptions import (
    DuplicateIdentity,
    ExternalIdentityConflict,
    ExternalIdentityError,
    InvalidInput,
    NameRequired,
)
from smartbudget.db.models.user import User
from smartbudget.services.identity_provider import ExternalIdentity
from smartbudget.services.otp import normalize_email

logger = structlog.get_logger(__name__)


class CreationPolicy(str, enum.Enum):
    """How a brand-new user is allowed to sign in afterwards."""

    PASSWORD = "password"
    OTP = "otp"
    EXTERNAL = "external"


class UserLinker:
    """Resolve every sign-in path to one `User` row.

    Lookups followed by inserts race across requests; the unique indexes on
    `email` and `external_id` decide the winner and the loser re-reads.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        return await self.session.scalar(select(User).where(User.email == normalize_email(email)))

    async def get_by_external_id(self, external_id: str) -> User | None:
        return await self.session.scalar(select(User).where(User.external_id == external_id))

    async def create_user(
        self,
        email: str,
        display_name: str | None,
        policy: CreationPolicy,
        *,
        password_hash: str | None = None,
        external_id: str | None = None,
    ) -> User:
        """Insert a new user or raise `DuplicateIdentity` if the email/external id is taken."""

        email = normalize_email(email)
        name = (display_name or "").strip()
        if not email:
            raise InvalidInput("Email is required.")
        if not name:
            if policy is CreationPolicy.EXTERNAL:
                name = email.split("@", 1)[0]
            else:
                raise NameRequired()
        if policy is CreationPolicy.PASSWORD and not password_hash:
            raise InvalidInput("Password is required.")
        if policy is CreationPolicy.EXTERNAL and not external_id:
            raise InvalidInput("External identity id is required.")

        user = User(
            email=email,
            name=name,
            password_hash=password_hash if policy is CreationPolicy.PASSWORD else None,
            otp_only=policy is CreationPolicy.OTP,
            external_id=external_id if policy is CreationPolicy.EXTERNAL else None,
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateIdentity(email) from exc

        await self.session.refresh(user)
        logger.info("user.created", user_id=user.id, policy=policy.value)
        return user

    async def find_or_create_by_email(
        self,
        email: str,
        display_name: str | None,
        policy: CreationPolicy,
        *,
        password_hash: str | None = None,
        external_id: str | None = None,
    ) -> User:
        """Return the user for `email`, creating it under `policy` when missing."""

        user = await self.get_by_email(email)
        if user:
            return user

        try:
            return await self.create_user(
                email, display_name, policy, password_hash=password_hash, external_id=external_id
            )
        except DuplicateIdentity:
            user = await self.get_by_email(email)
            if user is None:
                raise
            logger.info("user.create_race_recovered", user_id=user.id)
            return user

    async def link_external_identity(self, user: User, external_id: str) -> User:
        """Attach `external_id` once; a different existing id is never overwritten."""

        if user.external_id == external_id:
            return user
        if user.external_id is not None:
            logger.warning("user.external_id_conflict", user_id=user.id)
            raise ExternalIdentityConflict(user.id)

        try:
            result = await self.session.execute(
                update(User)
                .where(User.id == user.id, User.external_id.is_(None))
                .values(external_id=external_id)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            logger.warning("user.external_id_taken", user_id=user.id)
            raise ExternalIdentityConflict(user.id) from exc

        await self.session.refresh(user)
        if result.rowcount != 1 and user.external_id != external_id:
            logger.warning("user.external_id_conflict", user_id=user.id)
            raise ExternalIdentityConflict(user.id)

        logger.info("user.external_linked", user_id=user.id)
        return user

    async def resolve_external(self, identity: ExternalIdentity) -> User:
        """Map a verified external identity to the canonical user, creating it if unseen."""

        for _ in range(2):
            user = await self.get_by_external_id(identity.external_id)
            if user:
                return user

            if not normalize_email(identity.email):
                raise ExternalIdentityError("External identity has no email to match or create an account.")

            user = await self.get_by_email(identity.email)
            if user:
                return await self.link_external_identity(user, identity.external_id)

            try:
                return await self.create_user(
                    identity.email,
                    identity.name,
                    CreationPolicy.EXTERNAL,
                    external_id=identity.external_id,
                )
            except DuplicateIdentity:
                # Another request created the row first; look it up again.
                continue

        raise DuplicateIdentity(identity.email)
