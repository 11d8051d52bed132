"""Request gate that turns a bearer token into the canonical user id.

Two independent attempts are made, in order, and the first `Verified` wins:

1. the external provider (only when one is configured), whose identity is
   mapped onto a local user through `UserLinker`;
2. our own signed session token via `TokenIssuer`.

Each attempt returns `Verified | Rejected` instead of raising, so the
fallthrough is explicit and differently-shaped provider failures never leak
into the caller.
"""

from dataclasses import dataclass
from typing import Literal, Union

import structlog

from smartbudget.core.exceptions import (
    DuplicateIdentity,
    ExternalIdentityConflict,
    ExternalIdentityError,
    InvalidInput,
    Unauthenticated,
)
from smartbudget.core.security import TokenError, TokenIssuer
from smartbudget.services.identity_provider import ExternalIdentityProvider
from smartbudget.services.users import UserLinker

logger = structlog.get_logger(__name__)

IdentitySource = Literal["external", "local"]


@dataclass(frozen=True)
class Verified:
    user_id: int
    source: IdentitySource


@dataclass(frozen=True)
class Rejected:
    source: IdentitySource
    reason: str


AuthOutcome = Union[Verified, Rejected]


def extract_bearer_token(authorization: str | None) -> str | None:
    """Accept `Bearer <token>` or a raw token string; blank means no token."""

    if not authorization:
        return None
    value = authorization.strip()
    scheme, _, rest = value.partition(" ")
    if rest and scheme.lower() == "bearer":
        value = rest.strip()
    return value or None


class CredentialVerifier:
    def __init__(
        self,
        token_issuer: TokenIssuer,
        user_linker: UserLinker,
        identity_provider: ExternalIdentityProvider | None = None,
    ):
        self.token_issuer = token_issuer
        self.user_linker = user_linker
        self.identity_provider = identity_provider

    async def try_external(self, token: str) -> AuthOutcome:
        if self.identity_provider is None:
            return Rejected("external", "not configured")

        try:
            identity = await self.identity_provider.fetch_identity(token)
            user = await self.user_linker.resolve_external(identity)
        except (ExternalIdentityError, ExternalIdentityConflict, DuplicateIdentity, InvalidInput) as exc:
            logger.warning("auth.external_fallthrough", reason=str(exc) or type(exc).__name__)
            return Rejected("external", str(exc) or type(exc).__name__)

        return Verified(user.id, "external")

    def try_local(self, token: str) -> AuthOutcome:
        try:
            return Verified(self.token_issuer.verify(token), "local")
        except TokenError as exc:
            return Rejected("local", type(exc).__name__)

    async def authenticate(self, bearer_token: str | None) -> int:
        """Return the authenticated user id or raise `Unauthenticated`."""

        token = extract_bearer_token(bearer_token)
        if not token:
            raise Unauthenticated("Not authenticated.")

        outcome = await self.try_external(token)
        if isinstance(outcome, Rejected):
            outcome = self.try_local(token)

        if isinstance(outcome, Verified):
            return outcome.user_id

        logger.info("auth.rejected", reason=outcome.reason)
        raise Unauthenticated()
