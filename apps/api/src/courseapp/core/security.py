"""
Identity Provider Client

Verifies bearer ID tokens issued by the identity provider.

Two verification modes, chosen from settings:
- JWKS (AUTH_JWKS_URL): signing keys are fetched from the provider's JWKS
  endpoint and tokens are verified with RS256. Key fetching is a network
  round-trip and runs off the event loop.
- Shared secret (AUTH_JWT_SECRET): tokens are verified with an HMAC key.
  Used by self-hosted deployments and by the admin bootstrap script.

Both modes enforce expiry. Audience and issuer are checked when configured.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

import jwt

from courseapp.core.config import settings

logger = logging.getLogger(__name__)


class TokenVerificationError(Exception):
    """Raised when the identity provider rejects a token."""


class TokenExpiredError(TokenVerificationError):
    """Raised when a token has expired."""


class IdentityProvider:
    """Decodes and verifies ID tokens."""

    def __init__(
        self,
        *,
        jwks_url: str | None = None,
        secret: str | None = None,
        algorithm: str = "HS256",
        audience: str | None = None,
        issuer: str | None = None,
    ):
        self._jwks_client = jwt.PyJWKClient(jwks_url, cache_keys=True) if jwks_url else None
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience
        self._issuer = issuer

    @property
    def is_configured(self) -> bool:
        return self._jwks_client is not None or bool(self._secret)

    async def _resolve_key(self, token: str) -> tuple[Any, list[str]]:
        if self._jwks_client is not None:
            signing_key = await asyncio.to_thread(self._jwks_client.get_signing_key_from_jwt, token)
            return signing_key.key, ["RS256"]

        if self._secret:
            return self._secret, [self._algorithm]

        raise TokenVerificationError("Identity provider is not configured")

    async def verify_id_token(self, token: str) -> dict[str, Any]:
        """
        Verify a token and return its claims.

        Args:
            token: Raw bearer token

        Returns:
            Decoded claims

        Raises:
            TokenExpiredError: If the token has expired
            TokenVerificationError: If the token is malformed, badly signed or
                otherwise rejected
        """
        try:
            key, algorithms = await self._resolve_key(token)
            return jwt.decode(
                token,
                key,
                algorithms=algorithms,
                audience=self._audience,
                issuer=self._issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_aud": self._audience is not None,
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.PyJWTError as e:
            raise TokenVerificationError(str(e)) from e

    def create_access_token(
        self,
        subject: str,
        email: str,
        admin: bool = False,
        expires_minutes: int | None = None,
    ) -> str:
        """
        Mint a token in shared-secret mode.

        Used by the admin bootstrap script and tests; JWKS deployments get
        their tokens from the identity provider itself.
        """
        if not self._secret:
            raise TokenVerificationError("Token minting requires a shared secret")

        now = datetime.now(UTC)
        expires_at = now + timedelta(minutes=expires_minutes or settings.auth_token_expire_minutes)
        payload: dict[str, Any] = {
            "sub": subject,
            "email": email,
            "admin": admin,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        if self._audience:
            payload["aud"] = self._audience
        if self._issuer:
            payload["iss"] = self._issuer

        return jwt.encode(payload, self._secret, algorithm=self._algorithm)


@lru_cache
def get_identity_provider() -> IdentityProvider:
    """Get the identity provider configured from settings."""
    provider = IdentityProvider(
        jwks_url=settings.auth_jwks_url,
        secret=settings.auth_jwt_secret,
        algorithm=settings.auth_jwt_algorithm,
        audience=settings.auth_audience,
        issuer=settings.auth_issuer,
    )
    if not provider.is_configured:
        logger.warning("No identity provider configured - every admin request will be rejected")
    return provider
