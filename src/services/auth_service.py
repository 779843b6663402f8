"""Authentication for the billing API.

Callers present a bearer token in the Authorization header. Tokens are
configured through API_TOKENS; comparison is constant-time.
"""

import hmac
import logging
from typing import Iterable

from src.api.errors import AuthenticationError

logger = logging.getLogger(__name__)


def _extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from "Bearer <token>", or None when absent or malformed."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def authenticate_caller(authorization: str | None, allowed_tokens: Iterable[str]) -> str:
    """Verify the caller's bearer token.

    Args:
        authorization: Authorization header value
        allowed_tokens: Tokens accepted by this deployment

    Returns:
        The verified token

    Raises:
        AuthenticationError: Missing, malformed or unknown token
    """
    token = _extract_bearer_token(authorization)
    if token is None:
        logger.warning("No bearer token provided")
        raise AuthenticationError()

    # Check every candidate so timing does not reveal which one matched
    matched = False
    for candidate in allowed_tokens:
        if hmac.compare_digest(token.encode(), candidate.encode()):
            matched = True

    if not matched:
        logger.warning("Rejected unknown bearer token")
        raise AuthenticationError()
    return token
