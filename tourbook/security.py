"""
Cryptographic primitives for tourbook: passwords, session JWTs, reset digests.

Everything that touches a secret lives here so the rest of the code base only
ever calls named helpers.

1. Passwords
   - Stored as Argon2id hashes through passlib; plaintext never reaches the
     database or the logs
   - Old hashes from a retired scheme still verify and get re-hashed

2. Session JWTs
   - Claims: "sub" (user id), "iat" (issue time), "exp" (expiry)
   - HS256-signed with SECRET_KEY, lifetime ACCESS_TOKEN_EXPIRE_MINUTES
   - Nothing is persisted; staleness after a password change is decided by
     the token service from "iat"

3. Reset token digests
   - A reset link carries 32 random bytes; the users table keeps only their
     SHA-256 digest
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from tourbook.config import settings


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

# deprecated="auto" re-hashes anything not produced by the first scheme.
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    """Argon2id hash of a password, e.g. "$argon2id$v=19$m=65536,t=3,p=4$..."."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True when the password matches the stored hash."""
    return pwd_context.verify(password, password_hash)


# ---------------------------------------------------------------------------
# Session JWTs
# ---------------------------------------------------------------------------


def create_access_token(
    claims: dict,
    expires_delta: timedelta | None = None,
    issued_at: datetime | None = None,
) -> str:
    """
    Sign a session token.

    Args:
        claims: Claims to carry; callers pass at least "sub".
        expires_delta: Token lifetime, ACCESS_TOKEN_EXPIRE_MINUTES if omitted.
        issued_at: Value of "iat", the current UTC time if omitted.

    Returns:
        The compact JWT string.
    """
    now = issued_at or datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {**claims, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Check the signature and expiry of a session token and return its claims.

    Raises:
        JWTError: For a bad signature, an expired token or a malformed string.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ---------------------------------------------------------------------------
# Reset token digests
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return 32 random bytes, hex-encoded."""
    return secrets.token_hex(32)


def hash_reset_token(plain_token: str) -> str:
    """SHA-256 hex digest of a reset token, the only form that is stored."""
    return hashlib.sha256(plain_token.encode()).hexdigest()
