"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a chain that enforces authentication, then role-based access:

  get_current_user (JWT -> User)            deny on any failure (401)
      └── restrict_to(*roles) (User -> User) deny on wrong role (403)
  get_optional_user (JWT -> User | None)    never denies

The guard walks one request through these states:

  Unauthenticated -> TokenPresent -> TokenVerified -> UserResolved
      -> PasswordFreshnessChecked -> Authorized

and stops with an AuthenticationError whose reason says where it failed:

  NO_CREDENTIAL     no bearer header and no "jwt" cookie
  INVALID_TOKEN     bad signature, expired, or malformed
  USER_GONE         the user was deleted (or deactivated) after issuance
  PASSWORD_CHANGED  the token predates the latest password change

Where the token comes from:
  The "Authorization: Bearer <token>" header wins; the "jwt" cookie set at
  login is the fallback, so browser clients need no header handling.

Other collaborators injected here:
  get_email_sender() hands out the e-mail sender built in the lifespan.
"""

import logging
import uuid

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.database import get_db
from tourbook.exceptions import AuthenticationError, AuthFailure, ForbiddenError
from tourbook.models.user import User, UserRole
from tourbook.services.email_service import EmailSender
from tourbook.services.token_service import is_stale, verify_token

logger = logging.getLogger(__name__)

AUTH_COOKIE = "jwt"

# auto_error=False: a missing header is not an error yet, the cookie may
# still carry the token. tokenUrl feeds Swagger UI's "Authorize" button.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login", auto_error=False)


def extract_token(request: Request, bearer: str | None) -> str | None:
    """Bearer header first, then the auth cookie."""
    if bearer:
        return bearer
    cookie = request.cookies.get(AUTH_COOKIE)
    return cookie or None


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Active users only; deactivated accounts resolve to None."""
    result = await db.execute(
        select(User).where(User.id == user_id).where(User.active.is_(True))
    )
    return result.scalar_one_or_none()


async def authenticate(db: AsyncSession, token: str | None) -> User:
    """
    Run the full guard for one credential.

    Returns:
        The authorized User.

    Raises:
        AuthenticationError: with the reason of the first failed check.
    """
    if not token:
        raise AuthenticationError(AuthFailure.NO_CREDENTIAL)

    claims = verify_token(token)

    user = await get_user_by_id(db, claims.user_id)
    if user is None:
        raise AuthenticationError(AuthFailure.USER_GONE)

    if is_stale(claims.issued_at, user.password_changed_at):
        raise AuthenticationError(AuthFailure.PASSWORD_CHANGED)

    return user


async def get_current_user(
    request: Request,
    bearer: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Protect a route: the request must carry a valid, fresh token.

    The user is also stored on request.state.user for downstream code.

    Raises:
        AuthenticationError (401): see the module docstring for the reasons.
    """
    try:
        user = await authenticate(db, extract_token(request, bearer))
    except AuthenticationError as exc:
        logger.info("Denied %s %s: %s", request.method, request.url.path, exc.reason.value)
        raise
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    bearer: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    Same checks as get_current_user, but never denies.

    Used where anonymous and logged-in visitors get different answers.
    """
    try:
        user = await authenticate(db, extract_token(request, bearer))
    except AuthenticationError:
        request.state.user = None
        return None
    request.state.user = user
    return user


def check_role(user: User, roles: tuple[UserRole, ...]) -> None:
    """
    Raises:
        ForbiddenError (403): if the user's role is not in roles.
    """
    if user.role not in roles:
        raise ForbiddenError()


def restrict_to(*roles: UserRole):
    """
    Build a dependency that admits only the given roles.

    Usage:
        @router.post("", dependencies=[Depends(restrict_to(UserRole.ADMIN))])

    Chains on get_current_user, so authentication always runs first.
    """

    async def role_guard(user: User = Depends(get_current_user)) -> User:
        check_role(user, roles)
        return user

    return role_guard


def get_email_sender(request: Request) -> EmailSender:
    """The e-mail sender created at startup (overridden in tests)."""
    return request.app.state.email_sender
