from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol

import httpx
import jwt

from regalerts.core.config import Settings
from regalerts.core.errors import AuthServiceUnavailableError, SessionVerificationError


logger = logging.getLogger(__name__)

# The hosted auth service signs access tokens with the project's shared secret.
_ALLOWED_ALGS = ["HS256"]


@dataclass(frozen=True)
class SessionIdentity:
    user_id: str
    email: str | None = None


class SessionVerifier(Protocol):
    async def verify(self, token: str) -> SessionIdentity: ...


class JwtSessionVerifier:
    """Verifies access tokens locally with the project JWT secret."""

    def __init__(self, secret: str, *, audience: str, leeway_seconds: int = 0) -> None:
        self._secret = secret
        self._audience = audience
        self._leeway = leeway_seconds

    async def verify(self, token: str) -> SessionIdentity:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=_ALLOWED_ALGS,
                audience=self._audience,
                leeway=self._leeway,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise SessionVerificationError("Access token rejected") from exc
        return SessionIdentity(user_id=str(claims["sub"]), email=claims.get("email"))


class RemoteSessionVerifier:
    """Asks the hosted auth service who owns the token."""

    def __init__(
        self,
        auth_url: str,
        *,
        api_key: str | None,
        timeout_s: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user_url = f"{auth_url.rstrip('/')}/auth/v1/user"
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._transport = transport

    async def verify(self, token: str) -> SessionIdentity:
        headers = {"Authorization": f"Bearer {token}"}
        if self._api_key:
            headers["apikey"] = self._api_key
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                response = await client.get(self._user_url, headers=headers)
        except httpx.HTTPError as exc:
            raise AuthServiceUnavailableError("Auth service unreachable") from exc
        if response.status_code in {401, 403}:
            raise SessionVerificationError("Access token rejected")
        if response.status_code >= 400:
            raise AuthServiceUnavailableError(f"Auth service responded with status {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise AuthServiceUnavailableError("Auth service returned malformed JSON") from exc
        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            raise SessionVerificationError("Auth service returned no user")
        return SessionIdentity(user_id=str(user_id), email=body.get("email"))


def build_session_verifier(settings: Settings) -> SessionVerifier:
    # Prefer local verification when the secret is available; it avoids a network hop per request.
    if settings.auth_jwt_secret:
        return JwtSessionVerifier(
            settings.auth_jwt_secret,
            audience=settings.auth_jwt_audience,
            leeway_seconds=settings.auth_jwt_leeway_seconds,
        )
    logger.info("session_verifier_remote auth_url=%s", settings.auth_url)
    return RemoteSessionVerifier(
        settings.auth_url,
        api_key=settings.auth_api_key,
        timeout_s=settings.auth_timeout_ms / 1000.0,
    )
