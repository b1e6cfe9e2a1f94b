from __future__ import annotations

import httpx
import structlog

from studypotion_service.domain.exceptions import UnauthenticatedError
from studypotion_service.domain.interfaces import AuthGatewayPort
from studypotion_service.domain.models import AuthenticatedUser

logger = structlog.get_logger(__name__)


class SupabaseAuthGateway(AuthGatewayPort):
    """Validates access tokens against a Supabase-compatible ``/auth/v1/user`` endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        auth_url: str,
        api_key: str,
        timeout: float = 10.0,
    ) -> None:
        self._client = client
        self._user_url = f"{auth_url.rstrip('/')}/auth/v1/user"
        self._api_key = api_key
        self._timeout = timeout

    async def get_user(self, access_token: str) -> AuthenticatedUser:
        if not access_token:
            raise UnauthenticatedError("missing access token")

        try:
            response = await self._client.get(
                self._user_url,
                headers={
                    "apikey": self._api_key,
                    "Authorization": f"Bearer {access_token}",
                },
                timeout=self._timeout,
            )
        except httpx.RequestError as exc:
            logger.error("auth.request.failed", url=self._user_url, error=str(exc))
            raise UnauthenticatedError(f"auth provider unreachable: {exc}") from exc

        if response.status_code != 200:
            logger.info("auth.token.rejected", status_code=response.status_code)
            raise UnauthenticatedError(f"auth provider answered {response.status_code}")

        try:
            data = response.json()
            user = AuthenticatedUser(id=str(data["id"]), email=data.get("email"))
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("auth.response.invalid", error=str(exc))
            raise UnauthenticatedError("invalid auth provider response") from exc

        logger.debug("auth.token.accepted", user_id=user.id)
        return user
