"""
Bearer token verification against the external identity provider.

The identity provider issues signed JWTs. We only ever *verify* them here:
- shared-secret tokens (HS256) in development and tests
- provider-signed tokens (RS256) checked against the provider's JWKS

SECURITY REQUIREMENTS:
- The user id is taken from the verified ``sub`` claim only
- Verification failures never expose the underlying reason to clients
"""
import time
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import requests
from jose import JWTError, jwt

from core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_MINUTES = 60


class TokenVerificationError(Exception):
    """Raised when a bearer token cannot be verified."""


class TokenVerifier:
    """
    Verifies identity-provider JWTs and returns the user id.

    Exactly one of ``secret`` or ``jwks_url`` is expected. The JWKS document is
    fetched lazily and cached on this instance for ``jwks_ttl`` seconds.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithms: Optional[List[str]] = None,
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
        jwks_url: Optional[str] = None,
        jwks_ttl: int = 3600,
        http_timeout: int = 5,
    ):
        self.secret = secret
        self.algorithms = algorithms or ["HS256"]
        self.audience = audience
        self.issuer = issuer
        self.jwks_url = jwks_url
        self.jwks_ttl = jwks_ttl
        self.http_timeout = http_timeout
        self._jwks: Optional[Dict] = None
        self._jwks_fetched_at = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenVerifier":
        return cls(
            secret=settings.AUTH_TOKEN_SECRET,
            algorithms=settings.token_algorithms,
            audience=settings.AUTH_TOKEN_AUDIENCE,
            issuer=settings.AUTH_TOKEN_ISSUER,
            jwks_url=settings.AUTH_JWKS_URL,
            jwks_ttl=settings.AUTH_JWKS_CACHE_TTL_S,
        )

    def _signing_key(self):
        if self.jwks_url:
            if self._jwks is None or time.monotonic() - self._jwks_fetched_at > self.jwks_ttl:
                try:
                    resp = requests.get(self.jwks_url, timeout=self.http_timeout)
                    resp.raise_for_status()
                    self._jwks = resp.json()
                    self._jwks_fetched_at = time.monotonic()
                except (requests.RequestException, ValueError) as e:
                    logger.error(f"Failed to fetch JWKS from {self.jwks_url}: {e}")
                    if self._jwks is None:
                        raise TokenVerificationError("Signing keys unavailable") from e
            return self._jwks
        if self.secret:
            return self.secret
        raise TokenVerificationError("No token verification key configured")

    def verify(self, token: str) -> str:
        """Return the verified user id for ``token`` or raise TokenVerificationError."""
        if not token:
            raise TokenVerificationError("Missing token")

        key = self._signing_key()
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            raise TokenVerificationError(str(e)) from e

        user_id = payload.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise TokenVerificationError("Token has no subject")
        return user_id


def create_access_token(
    user_id: str,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
    **claims,
) -> str:
    """Mint a shared-secret token. Used by local tooling and tests."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=DEFAULT_TOKEN_TTL_MINUTES))
    to_encode = {"sub": user_id, "exp": expire, **claims}
    return jwt.encode(to_encode, secret, algorithm=algorithm)
