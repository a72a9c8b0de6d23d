"""
Security primitives: password hashing, session tokens, opaque one-time tokens.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
import jwt
import structlog

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

class PasswordHasher:
    """bcrypt one-way hash and compare."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.rounds)).decode()

    def verify(self, password: str, hashed: Optional[str]) -> bool:
        """Verify a password against a bcrypt hash. A missing hash never matches."""
        if not hashed:
            return False
        return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

class TokenSigner:
    """Issues and verifies signed session tokens."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def sign(self, claims: dict[str, Any], *, expires_delta: timedelta | None = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "iat": now,
            "exp": now + (expires_delta or timedelta(minutes=self.expire_minutes)),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
        return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])

    def verify(self, token: str) -> Optional[dict[str, Any]]:
        """Return the claims of a valid token, or None."""
        try:
            return self.decode(token)
        except jwt.PyJWTError as exc:
            log.debug("token.invalid", error=type(exc).__name__)
            return None


def session_claims(user_id: uuid.UUID, email: str, organization_id: uuid.UUID) -> dict[str, str]:
    """Claims embedded in every session token."""
    return {
        "username": str(user_id),
        "sub": email,
        "organizationId": str(organization_id),
    }


# ---------------------------------------------------------------------------
# Opaque tokens (invitations, password resets)
# ---------------------------------------------------------------------------

def generate_token() -> str:
    """Random opaque token. Carries no expiry."""
    return str(uuid.uuid4())
