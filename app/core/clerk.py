"""Clerk session verification.

Clerk issues short-lived RS256 session JWTs, sent either in the ``__session``
cookie (same-origin) or as an ``Authorization: Bearer`` header. Tokens are
checked against the instance PEM key when one is configured, otherwise
against the instance JWKS, whose keys are cached by ``kid``.
"""

from typing import Any, Iterable

import httpx
import jwt
from cachetools import TTLCache
from fastapi import Request
from jwt import PyJWK

from app.core.config import Settings
from app.core.exceptions import AuthDenied
from app.core.logging import get_logger

log = get_logger(__name__)

SESSION_COOKIE_NAME = "__session"
JWKS_TIMEOUT_SECONDS = 5.0


def extract_session_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization") or ""
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(SESSION_COOKIE_NAME) or None


class ClerkSessionVerifier:
    def __init__(
        self,
        jwt_key: str | None = None,
        jwks_url: str | None = None,
        authorized_parties: Iterable[str] = (),
        jwks_cache_ttl: int = 3600,
        leeway: int = 5,
    ):
        # Env files often carry the PEM with escaped newlines.
        self.jwt_key = jwt_key.replace("\\n", "\n") if jwt_key else None
        self.jwks_url = jwks_url
        self.authorized_parties = frozenset(authorized_parties)
        self.leeway = leeway
        self._jwks_cache: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=16, ttl=jwks_cache_ttl)
        if not self.jwt_key and not self.jwks_url:
            log.warning("clerk_verifier_unconfigured", msg="every protected request will be denied")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClerkSessionVerifier":
        return cls(
            jwt_key=settings.clerk_jwt_key,
            jwks_url=settings.clerk_jwks_url,
            authorized_parties=settings.clerk_authorized_parties,
            jwks_cache_ttl=settings.jwks_cache_ttl_seconds,
        )

    async def _refresh_jwks(self) -> None:
        async with httpx.AsyncClient(timeout=JWKS_TIMEOUT_SECONDS) as client:
            resp = await client.get(self.jwks_url)
            resp.raise_for_status()
            keys = resp.json().get("keys", [])
        for key in keys:
            if key.get("kid"):
                self._jwks_cache[key["kid"]] = key
        log.info("clerk_jwks_refreshed", keys=len(keys))

    async def _signing_key(self, token: str) -> Any:
        if self.jwt_key:
            return self.jwt_key
        if not self.jwks_url:
            raise AuthDenied("Session verification is not configured")
        kid = jwt.get_unverified_header(token).get("kid")
        if not kid:
            raise AuthDenied("Invalid session")
        if kid not in self._jwks_cache:
            try:
                await self._refresh_jwks()
            except httpx.HTTPError as e:
                log.warning("clerk_jwks_unavailable", error=str(e))
                raise AuthDenied("Unable to verify session") from e
        jwk = self._jwks_cache.get(kid)
        if not jwk:
            raise AuthDenied("Invalid session")
        return PyJWK.from_dict(jwk).key

    async def verify(self, token: str) -> dict[str, Any]:
        """Return the verified claims or raise AuthDenied."""
        try:
            key = await self._signing_key(token)
            claims = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                leeway=self.leeway,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.PyJWTError as e:
            raise AuthDenied("Invalid or expired session") from e
        azp = claims.get("azp")
        if self.authorized_parties and azp and azp not in self.authorized_parties:
            raise AuthDenied("Invalid session origin")
        return claims

    async def protect(self, request: Request) -> dict[str, Any]:
        """Require a valid session on the request; raise AuthDenied otherwise."""
        token = extract_session_token(request)
        if not token:
            raise AuthDenied("Not authenticated")
        return await self.verify(token)
