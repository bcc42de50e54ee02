"""
Token service — session tokens and password-reset tokens.

Session tokens:
  issue_token() signs a JWT carrying the user id ("sub") and issue time
  ("iat"). verify_token() checks signature and expiry only. Whether the token
  predates the user's latest password change is a separate question answered
  by is_stale(); the auth guard asks both.

Password-reset tokens:
  create_reset_token() draws a random value, stores only its SHA-256 digest
  and an expiry on the user, and returns the plaintext exactly once (for the
  e-mail). Creating a new token overwrites any pending one.
  consume_reset_token() looks the digest up among unexpired tokens and
  clears it on success, so each token works once.

Timestamps:
  SQLite hands DateTime(timezone=True) values back without tzinfo. All
  stored times are UTC, so naive values are read as UTC before comparing.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.config import settings
from tourbook.exceptions import AuthenticationError, AuthFailure, ResetTokenInvalidError
from tourbook.models.user import User
from tourbook.security import (
    create_access_token,
    decode_access_token,
    generate_reset_token,
    hash_reset_token,
)


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    issued_at: datetime


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the store."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------

def issue_token(user_id: uuid.UUID, now: datetime | None = None) -> str:
    """Sign a session token for this user, valid for ACCESS_TOKEN_EXPIRE_MINUTES."""
    return create_access_token({"sub": str(user_id)}, issued_at=now)


def verify_token(token: str) -> TokenClaims:
    """
    Check a session token's signature and expiry.

    Raises:
        AuthenticationError(INVALID_TOKEN): tampered, expired or malformed.
    """
    try:
        payload = decode_access_token(token)
        user_id = uuid.UUID(payload["sub"])
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
    except (JWTError, KeyError, TypeError, ValueError):
        raise AuthenticationError(AuthFailure.INVALID_TOKEN)
    return TokenClaims(user_id=user_id, issued_at=issued_at)


def is_stale(issued_at: datetime, password_changed_at: datetime | None) -> bool:
    """
    True when the token was issued before the latest password change.

    Compared at whole-second precision, the precision of the "iat" claim.
    """
    if password_changed_at is None:
        return False
    issued = int(as_utc(issued_at).timestamp())
    changed = int(as_utc(password_changed_at).timestamp())
    return issued < changed


def mark_password_changed(user: User, now: datetime | None = None) -> None:
    """
    Record a password change.

    Backdated by one second so the token issued in the same request, whose
    "iat" is truncated to the second, is not stale. The cost is a grace
    window: a token issued in the whole second before the backdated time
    also stays valid, up to about two seconds before the change.
    """
    now = now or datetime.now(timezone.utc)
    user.password_changed_at = now - timedelta(seconds=1)


# ---------------------------------------------------------------------------
# Password-reset tokens
# ---------------------------------------------------------------------------

def create_reset_token(user: User, now: datetime | None = None) -> str:
    """
    Store a fresh reset token digest on the user and return the plaintext.

    The caller must persist the user (flush) and deliver the plaintext.
    """
    now = now or datetime.now(timezone.utc)
    plain_token = generate_reset_token()
    user.password_reset_token_hash = hash_reset_token(plain_token)
    user.password_reset_expires = now + timedelta(
        minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
    )
    return plain_token


def clear_reset_token(user: User) -> None:
    user.password_reset_token_hash = None
    user.password_reset_expires = None


async def consume_reset_token(
    db: AsyncSession,
    plain_token: str,
    now: datetime | None = None,
) -> User:
    """
    Find the active user holding this unexpired reset token and clear it.

    Raises:
        ResetTokenInvalidError: unknown, already used, or expired token.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(User)
        .where(User.password_reset_token_hash == hash_reset_token(plain_token))
        .where(User.active.is_(True))
    )
    user = result.scalar_one_or_none()

    if user is None or user.password_reset_expires is None:
        raise ResetTokenInvalidError()
    if as_utc(user.password_reset_expires) <= now:
        raise ResetTokenInvalidError()

    clear_reset_token(user)
    await db.flush()
    return user
