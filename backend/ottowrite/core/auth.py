"""Authentication dependencies.

Public interface:
    ``require_auth``  returns AuthContext or raises 401.
    ``subject_from_authorization`` resolves a raw ``Authorization`` header to
    a user id without raising (used for rate-limit keys).

When ``settings.auth_enabled`` is False every request acts as
``settings.dev_user_id`` so the development workflow needs no tokens.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .token_factory import decode_token
from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller. Documents are owned by ``user_id``."""

    user_id: str
    email: Optional[str] = None


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthContext:
    """Require a valid bearer token and return the caller's AuthContext."""
    if not settings.auth_enabled:
        return AuthContext(user_id=settings.dev_user_id)

    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(
        credentials.credentials,
        settings.jwt_secret_key,
        settings.jwt_algorithm,
        audience=settings.jwt_audience,
    )
    if payload is None:
        logger.info("Rejected invalid or expired token")
        raise AuthenticationError("Invalid or expired token")

    return AuthContext(user_id=payload.sub, email=payload.email)


def subject_from_authorization(header: Optional[str]) -> Optional[str]:
    """User id from a ``Bearer`` header value, or None if absent or invalid."""
    if not header or not settings.auth_enabled:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    payload = decode_token(
        token.strip(),
        settings.jwt_secret_key,
        settings.jwt_algorithm,
        audience=settings.jwt_audience,
    )
    return payload.sub if payload else None
