"""Client for the managed auth provider whose access tokens we also accept."""

from dataclasses import dataclass
from typing import Optional

import anyio
import httpx

from smartbudget.core.config import Settings
from smartbudget.core.exceptions import ExternalIdentityError


@dataclass
class ExternalIdentity:
    """Normalized identity returned by the external provider."""

    external_id: str
    email: Optional[str]
    name: Optional[str] = None


class ExternalIdentityProvider:
    """Ask a Supabase-compatible auth server who owns a bearer token.

    `fetch_identity` either returns an `ExternalIdentity` or raises
    `ExternalIdentityError`; timeouts and transport failures are reported the
    same way so callers only handle one failure type.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExternalIdentityProvider | None":
        """Return a configured provider, or None when external auth is not set up."""
        if not settings.external_auth_enabled:
            return None
        return cls(
            base_url=settings.EXTERNAL_AUTH_URL,
            api_key=settings.EXTERNAL_AUTH_API_KEY,
            timeout=settings.EXTERNAL_AUTH_TIMEOUT_SECONDS,
        )

    async def fetch_identity(self, token: str) -> ExternalIdentity:
        try:
            with anyio.fail_after(self.timeout):
                user_data = await self._get_user(token)
        except TimeoutError as exc:
            raise ExternalIdentityError("External provider timed out.") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ExternalIdentityError(f"External provider request failed: {exc}") from exc
        except UnicodeError as exc:
            # httpx only sends ASCII header values
            raise ExternalIdentityError("Token cannot be sent to the external provider.") from exc

        provider_id = user_data.get("id")
        if not provider_id:
            raise ExternalIdentityError("External profile missing id.")

        metadata = user_data.get("user_metadata") or {}
        name = metadata.get("full_name") or metadata.get("name")
        return ExternalIdentity(external_id=str(provider_id), email=user_data.get("email"), name=name)

    async def _get_user(self, token: str) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.get(
                f"{self.base_url}/auth/v1/user",
                headers={"Authorization": f"Bearer {token}", "apikey": self.api_key},
            )
        if resp.status_code != 200:
            raise ExternalIdentityError(f"External provider rejected the token ({resp.status_code}).")
        try:
            data = resp.json()
        except ValueError as exc:
            raise ExternalIdentityError("External provider returned a malformed profile.") from exc
        if not isinstance(data, dict):
            raise ExternalIdentityError("External provider returned a malformed profile.")
        return data
