"""Bearer-token resolution against Supabase Auth.

Only the "who is this token" question is answered here; sign-up, refresh and
session handling belong to Supabase and the client.
"""
import logging
from typing import Optional

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .config import Settings
from .errors import ExternalApiError, InvalidTokenError, UnauthorizedError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None


class SupabaseAuth:
    def __init__(self, http: httpx.AsyncClient, api_key: str):
        self.http = http
        self.api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["SupabaseAuth"]:
        if not settings.auth_configured:
            return None
        http = httpx.AsyncClient(base_url=settings.supabase_url.rstrip("/"), timeout=10)
        return cls(http, settings.supabase_key)

    async def get_user(self, token: str) -> AuthUser:
        try:
            resp = await self.http.get(
                "/auth/v1/user",
                headers={"apikey": self.api_key, "Authorization": f"Bearer {token}"},
            )
        except httpx.RequestError as exc:
            logger.error("Supabase auth unreachable: %s", type(exc).__name__)
            raise ExternalApiError("Auth service unreachable", upstream="/auth/v1/user", transient=True) from exc

        if resp.status_code != 200:
            raise InvalidTokenError()
        try:
            data = resp.json()
        except ValueError:
            raise InvalidTokenError()
        if not isinstance(data, dict) or not data.get("id"):
            raise InvalidTokenError()
        return AuthUser(id=str(data["id"]), email=data.get("email"))

    async def aclose(self) -> None:
        await self.http.aclose()


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[AuthUser]:
    """The caller if a token was sent; a bad token is still an error."""
    auth: Optional[SupabaseAuth] = getattr(request.app.state, "auth", None)
    if credentials is None or auth is None:
        return None
    return await auth.get_user(credentials.credentials)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthUser:
    auth: Optional[SupabaseAuth] = getattr(request.app.state, "auth", None)
    if auth is None:
        raise UnauthorizedError("Supabase is not configured on the server")
    if credentials is None:
        raise InvalidTokenError("Missing Authorization bearer token")
    return await auth.get_user(credentials.credentials)
