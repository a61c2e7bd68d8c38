"""
Authentication helpers for the coaching endpoints.

The identity of the caller is derived solely from the verified bearer token.
Client-supplied ids in request bodies are never trusted.
"""
from typing import Optional

from core.exceptions import UnauthorizedError
from core.security import TokenVerificationError, TokenVerifier

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise UnauthorizedError()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise UnauthorizedError()
    return token


def authenticate(authorization: Optional[str], verifier: TokenVerifier) -> str:
    """
    Verify the Authorization header and return the caller's user id.

    Raises UnauthorizedError (401) for a missing, malformed or invalid token.
    """
    token = extract_bearer_token(authorization)
    try:
        return verifier.verify(token)
    except TokenVerificationError as e:
        raise UnauthorizedError() from e
