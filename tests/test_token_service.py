"""
Unit tests for the token service.

Session tokens:
  - issue/verify round trip carries the user id and issue time
  - tampered and expired tokens are INVALID_TOKEN
  - staleness is decided at whole-second precision

Reset tokens:
  - only the digest is stored, with an expiry
  - consume works once, refuses expired tokens, clears the fields
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from tourbook.config import settings
from tourbook.exceptions import AuthenticationError, AuthFailure, ResetTokenInvalidError
from tourbook.models.user import User
from tourbook.security import hash_reset_token
from tourbook.services.token_service import (
    as_utc,
    clear_reset_token,
    consume_reset_token,
    create_reset_token,
    is_stale,
    issue_token,
    mark_password_changed,
    verify_token,
)


NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestSessionTokens:
    def test_round_trip(self):
        user_id = uuid.uuid4()
        claims = verify_token(issue_token(user_id))
        assert claims.user_id == user_id
        assert abs(claims.issued_at - datetime.now(timezone.utc)) < timedelta(seconds=5)

    def test_tampered_token(self):
        token = issue_token(uuid.uuid4())
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with pytest.raises(AuthenticationError) as exc_info:
            verify_token(tampered)
        assert exc_info.value.reason is AuthFailure.INVALID_TOKEN

    def test_expired_token(self):
        issued = datetime.now(timezone.utc) - timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES + 1)
        with pytest.raises(AuthenticationError):
            verify_token(issue_token(uuid.uuid4(), now=issued))

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            verify_token("loggedout")


class TestStaleness:
    def test_never_changed(self):
        assert is_stale(NOW, None) is False

    def test_issued_before_change(self):
        assert is_stale(NOW, NOW + timedelta(seconds=1)) is True

    def test_same_second_is_fresh(self):
        assert is_stale(NOW, NOW + timedelta(milliseconds=500)) is False

    def test_naive_change_time_is_utc(self):
        naive = (NOW + timedelta(minutes=1)).replace(tzinfo=None)
        assert is_stale(NOW, naive) is True

    def test_token_issued_with_the_change_is_fresh(self):
        user = User(name="Someone", email="s@example.com")
        mark_password_changed(user, now=NOW)
        assert is_stale(NOW, user.password_changed_at) is False
        assert is_stale(NOW - timedelta(seconds=5), user.password_changed_at) is True

    def test_grace_window_before_a_change(self):
        """Tokens from the second before the backdated time survive, older ones do not."""
        user = User(name="Someone", email="s@example.com")
        mark_password_changed(user, now=NOW + timedelta(milliseconds=900))
        # Stored as 11:59:59.900, compared as 11:59:59
        assert is_stale(NOW - timedelta(seconds=1), user.password_changed_at) is False
        assert is_stale(NOW - timedelta(seconds=1, milliseconds=1), user.password_changed_at) is True
        assert is_stale(NOW - timedelta(seconds=2), user.password_changed_at) is True

    def test_as_utc(self):
        assert as_utc(datetime(2025, 1, 1)).tzinfo is timezone.utc
        assert as_utc(NOW) is NOW


class TestResetTokens:
    def test_create_stores_digest_only(self):
        user = User(name="Someone", email="s@example.com")
        plain = create_reset_token(user, now=NOW)
        assert len(plain) == 64
        assert user.password_reset_token_hash == hash_reset_token(plain)
        assert user.password_reset_token_hash != plain
        assert user.password_reset_expires == NOW + timedelta(
            minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
        )

    def test_new_token_replaces_pending_one(self):
        user = User(name="Someone", email="s@example.com")
        first = create_reset_token(user, now=NOW)
        second = create_reset_token(user, now=NOW)
        assert first != second
        assert user.password_reset_token_hash == hash_reset_token(second)

    def test_clear(self):
        user = User(name="Someone", email="s@example.com")
        create_reset_token(user, now=NOW)
        clear_reset_token(user)
        assert user.password_reset_token_hash is None
        assert user.password_reset_expires is None

    async def test_consume_once(self, db_session, create_user):
        user, _ = await create_user("reset@example.com")
        stored = await db_session.get(User, user.id)
        plain = create_reset_token(stored)
        await db_session.flush()

        consumed = await consume_reset_token(db_session, plain)
        assert consumed.id == user.id
        assert consumed.password_reset_token_hash is None

        with pytest.raises(ResetTokenInvalidError):
            await consume_reset_token(db_session, plain)

    async def test_consume_expired(self, db_session, create_user):
        user, _ = await create_user("late@example.com")
        stored = await db_session.get(User, user.id)
        plain = create_reset_token(stored, now=NOW)
        await db_session.flush()

        later = NOW + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES, seconds=1)
        with pytest.raises(ResetTokenInvalidError):
            await consume_reset_token(db_session, plain, now=later)

    async def test_consume_just_before_expiry(self, db_session, create_user):
        user, _ = await create_user("ontime@example.com")
        stored = await db_session.get(User, user.id)
        plain = create_reset_token(stored, now=NOW)
        await db_session.flush()

        almost = NOW + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES - 1)
        consumed = await consume_reset_token(db_session, plain, now=almost)
        assert consumed.id == user.id
