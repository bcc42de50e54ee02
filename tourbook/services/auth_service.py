"""
Authentication service — signup, login and password business logic.

Functions here take a session and plain values and return users and tokens.
routers/users.py turns their results into responses, writing the token to
both the body and the "jwt" cookie.

Signup flow:
  1. Create the user through the user resource (e-mail normalized, unique)
  2. Hash the password with Argon2id; the role is always "user"
  3. Send the welcome e-mail (a failure is logged, signup still succeeds)
  4. Issue a session token: a new account starts logged in

Login flow:
  1. Look up the active user by e-mail
  2. Check the password against its Argon2 hash
  3. Issue a session token

Password flows:
  - update_password: re-verify the current password, store the new one,
    mark the change (older tokens go stale) and issue a fresh token
  - forgot_password: store a reset token digest and e-mail the plaintext;
    if the e-mail fails, clear the digest again and report the failure
  - reset_password: consume the token, store the new password, log in

Guarantees:
  - Only Argon2 hashes of passwords are written
  - An unknown e-mail and a wrong password produce one identical 401
  - Reset tokens are kept as SHA-256 digests and are single-use
"""

import logging
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.config import settings
from tourbook.exceptions import (
    EmailDeliveryError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from tourbook.models.user import User, UserRole
from tourbook.security import hash_password, verify_password
from tourbook.services.email_service import EmailSender
from tourbook.services.token_service import (
    clear_reset_token,
    consume_reset_token,
    create_reset_token,
    issue_token,
    mark_password_changed,
)
from tourbook.services.user_service import user_handlers

logger = logging.getLogger(__name__)


def _check_confirmation(password: str, password_confirm: str) -> None:
    if password != password_confirm:
        raise ValidationError(
            "Invalid input data. Passwords are not the same!",
            errors={"password_confirm": "Passwords are not the same!"},
        )


async def _get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(
        select(User)
        .where(User.email == email.strip().lower())
        .where(User.active.is_(True))
    )
    return result.scalar_one_or_none()


async def signup(
    db: AsyncSession,
    sender: EmailSender,
    name: str,
    email: str,
    password: str,
    password_confirm: str,
    welcome_url: str,
) -> tuple[User, str]:
    """
    Register a new user.

    Args:
        db: Database session.
        sender: E-mail collaborator for the welcome message.
        name: Display name.
        email: Login e-mail (must be unique).
        password / password_confirm: Must match.
        welcome_url: Link placed in the welcome e-mail.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        ValidationError: If the passwords differ or the record is invalid.
        ConflictError: If the e-mail is already registered.
    """
    _check_confirmation(password, password_confirm)

    created = await user_handlers.create_one(
        db,
        {
            "name": name,
            "email": email,
            "hashed_password": hash_password(password),
            "role": UserRole.USER,
        },
    )
    user = await db.get(User, created["id"])

    try:
        await sender.send(user, "welcome", f"Welcome to {settings.APP_NAME}!", {"url": welcome_url})
    except Exception:
        logger.exception("Welcome e-mail to user %s failed", user.id)

    logger.info("User %s signed up", user.id)
    return user, issue_token(user.id)


async def login(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    """
    Check credentials and return the user with a fresh session token.

    Raises:
        InvalidCredentialsError: If the e-mail is unknown (or deactivated)
                                 or the password is wrong.
    """
    user = await _get_user_by_email(db, email)

    # Unknown email and wrong password raise the same error
    if user is None or not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    return user, issue_token(user.id)


async def update_password(
    db: AsyncSession,
    user: User,
    password_current: str,
    password: str,
    password_confirm: str,
) -> tuple[User, str]:
    """
    Change the caller's password.

    Raises:
        InvalidCredentialsError: If the current password is wrong.
        ValidationError: If the new passwords differ.
    """
    if not verify_password(password_current, user.hashed_password):
        raise InvalidCredentialsError("Your current password is wrong.")
    _check_confirmation(password, password_confirm)

    user.hashed_password = hash_password(password)
    mark_password_changed(user)
    await db.flush()

    logger.info("User %s changed their password", user.id)
    return user, issue_token(user.id)


async def forgot_password(
    db: AsyncSession,
    sender: EmailSender,
    email: str,
    build_reset_url: Callable[[str], str],
) -> None:
    """
    Start a password reset: store a token digest and e-mail the link.

    Args:
        build_reset_url: Turns the plaintext token into the link to send.

    Raises:
        NotFoundError: If no active user has this e-mail.
        EmailDeliveryError: If the e-mail could not be sent. The stored
                            token is cleared and committed before this
                            is raised.
    """
    user = await _get_user_by_email(db, email)
    if user is None:
        raise NotFoundError("There is no user with that email address.")

    plain_token = create_reset_token(user)
    await db.flush()

    try:
        await sender.send(
            user,
            "password_reset",
            "Your password reset token (valid for only 10 minutes)",
            {
                "url": build_reset_url(plain_token),
                "minutes": settings.PASSWORD_RESET_EXPIRE_MINUTES,
            },
        )
    except Exception as exc:
        logger.error("Reset e-mail to user %s failed, clearing token: %s", user.id, exc)
        clear_reset_token(user)
        # The request transaction rolls back on error; keep the cleared fields
        await db.commit()
        raise EmailDeliveryError() from exc

    logger.info("Reset token sent to user %s", user.id)


async def reset_password(
    db: AsyncSession,
    plain_token: str,
    password: str,
    password_confirm: str,
) -> tuple[User, str]:
    """
    Finish a password reset and log the user in.

    Raises:
        ValidationError: If the new passwords differ.
        ResetTokenInvalidError: If the token is unknown, used or expired.
    """
    _check_confirmation(password, password_confirm)
    user = await consume_reset_token(db, plain_token)

    user.hashed_password = hash_password(password)
    mark_password_changed(user)
    await db.flush()

    logger.info("User %s reset their password", user.id)
    return user, issue_token(user.id)
