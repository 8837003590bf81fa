"""Session retrieval and sign-out against the hosted auth service."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from app.config import Settings
from app.seed_data import DEMO_USERS

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "sb-access-token"


class UserSession(BaseModel):
    """Authenticated user identity, passed explicitly to views and controllers."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str = ""
    access_token: str


class AuthClient(ABC):
    @abstractmethod
    async def get_session(self, token: Optional[str]) -> Optional[UserSession]:
        """Resolve an access token to a session; None means not authenticated."""

    @abstractmethod
    async def sign_out(self, session: UserSession) -> None:
        ...

    async def close(self) -> None:
        """Release any held resources."""


class SupabaseAuth(AuthClient):
    """GoTrue endpoints: GET /auth/v1/user, POST /auth/v1/logout."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        self._settings = settings
        self._base = f"{settings.supabase_url.rstrip('/')}/auth/v1"
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)
        self._owns_client = client is None

    def _headers(self, token: str) -> dict[str, str]:
        return {"apikey": self._settings.supabase_anon_key, "Authorization": f"Bearer {token}"}

    async def get_session(self, token: Optional[str]) -> Optional[UserSession]:
        if not token:
            return None
        try:
            r = await self._client.get(f"{self._base}/user", headers=self._headers(token))
        except httpx.HTTPError as e:
            logger.warning("Supabase session lookup failed: %s", e)
            return None
        if not r.is_success:
            if r.status_code not in (401, 403):
                logger.warning("Supabase session lookup failed with status %s", r.status_code)
            return None
        data = r.json()
        if not data.get("id"):
            return None
        return UserSession(user_id=data["id"], email=data.get("email") or "", access_token=token)

    async def sign_out(self, session: UserSession) -> None:
        try:
            r = await self._client.post(f"{self._base}/logout", headers=self._headers(session.access_token))
            if not r.is_success:
                logger.warning("Supabase sign-out failed with status %s", r.status_code)
        except httpx.HTTPError as e:
            logger.warning("Supabase sign-out failed: %s", e)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class FixtureAuth(AuthClient):
    """Fixed demonstration tokens (see seed_data.DEMO_USERS)."""

    def __init__(self, users: Optional[list[dict]] = None) -> None:
        self._by_token = {u["token"]: u for u in (users or DEMO_USERS)}
        self.signed_out: list[str] = []

    async def get_session(self, token: Optional[str]) -> Optional[UserSession]:
        user = self._by_token.get(token or "")
        if user is None:
            return None
        return UserSession(user_id=user["id"], email=user["email"], access_token=token)

    async def sign_out(self, session: UserSession) -> None:
        self.signed_out.append(session.user_id)


def create_auth_client(settings: Settings) -> AuthClient:
    if settings.data_source == "live" and settings.supabase_configured:
        return SupabaseAuth(settings)
    return FixtureAuth()


def token_from_headers(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return cookie_token or None
