"""Pure functions for creating and decoding HS256 access tokens.

Tokens carry the same claims as the hosted auth provider's access tokens
(``sub``, ``aud``, ``exp``, optional ``email`` and ``role``), so the API
verifies provider-issued tokens with the shared JWT secret. ``create_token``
exists for tests and local scripts.
"""

import hashlib
import hmac
import base64
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class TokenPayload:
    """Decoded JWT payload. Immutable."""
    sub: str
    exp: datetime
    role: str = "authenticated"
    email: Optional[str] = None


def create_token(
    subject: str,
    secret: str,
    algorithm: str = "HS256",
    expires_seconds: int = 3600,
    audience: str = "authenticated",
    email: Optional[str] = None,
) -> str:
    """Create a signed JWT for *subject* (a user id)."""
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    now = time.time()
    payload = {
        "sub": subject,
        "aud": audience,
        "role": "authenticated",
        "iat": int(now),
        "exp": int(now + expires_seconds),
    }
    if email:
        payload["email"] = email

    header = {"alg": "HS256", "typ": "JWT"}
    segments = [
        _b64encode(json.dumps(header).encode()),
        _b64encode(json.dumps(payload).encode()),
    ]
    signing_input = b".".join(segments)
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    segments.append(_b64encode(signature))
    return b".".join(segments).decode()


def decode_token(
    token: str,
    secret: str,
    algorithm: str = "HS256",
    audience: Optional[str] = "authenticated",
) -> Optional[TokenPayload]:
    """Decode and validate a JWT token.

    Returns ``None`` on any validation failure (bad signature, expired,
    wrong audience, missing subject, malformed) rather than raising.
    """
    if algorithm != "HS256":
        return None
    try:
        parts = token.encode().split(b".")
        if len(parts) != 3:
            return None

        header = json.loads(_b64decode(parts[0]))
        if header.get("alg") != "HS256":
            return None

        signing_input = parts[0] + b"." + parts[1]
        expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
        actual_sig = _b64decode(parts[2])

        if not hmac.compare_digest(expected_sig, actual_sig):
            return None

        payload = json.loads(_b64decode(parts[1]))

        exp = payload.get("exp", 0)
        if time.time() > exp:
            return None

        if audience is not None:
            aud = payload.get("aud")
            audiences = aud if isinstance(aud, list) else [aud]
            if audience not in audiences:
                return None

        sub = payload.get("sub")
        if not sub or not isinstance(sub, str):
            return None

        return TokenPayload(
            sub=sub,
            exp=datetime.fromtimestamp(exp, tz=timezone.utc),
            role=payload.get("role", "authenticated"),
            email=payload.get("email"),
        )
    except (json.JSONDecodeError, KeyError, ValueError, IndexError, TypeError, AttributeError):
        return None


# --- base64url helpers (no padding, URL-safe) ---

def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    padding = 4 - len(data) % 4
    if padding != 4:
        data += b"=" * padding
    return base64.urlsafe_b64decode(data)
