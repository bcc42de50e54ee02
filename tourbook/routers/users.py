"""
Users router — authentication, self-service profile and user administration.

Public endpoints:
  POST   /users/signup                  — Register and get logged in
  POST   /users/login                   — Authenticate and get a token
  GET    /users/logout                  — Overwrite the session cookie
  POST   /users/forgot-password         — E-mail a password reset link
  PATCH  /users/reset-password/{token}  — Set a new password with the link
  GET    /users/session                 — The logged-in user, or null

Protected endpoints (valid token required):
  PATCH  /users/update-my-password      — Change password, get a fresh token
  GET    /users/me                      — Own profile
  PATCH  /users/update-me               — Change name, e-mail or photo
  DELETE /users/delete-me               — Deactivate own account

Admin endpoints:
  GET    /users                         — List users
  GET    /users/{user_id}               — One user
  PATCH  /users/{user_id}               — Update a user (including role)
  DELETE /users/{user_id}               — Deactivate a user

Tokens:
  Every endpoint that logs a user in returns the token in the body and sets
  it as the HttpOnly "jwt" cookie. API clients send it back as
  "Authorization: Bearer <token>"; browsers just keep the cookie.

Security audit notes:
  - Plaintext passwords exist only in memory during request processing;
    they are hashed before any database operation and never logged.
  - Reset tokens only leave the server inside the e-mailed link.
"""

import uuid

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.database import get_db
from tourbook.dependencies import (
    get_current_user,
    get_email_sender,
    get_optional_user,
    restrict_to,
)
from tourbook.models.user import User, UserRole
from tourbook.routers.envelopes import (
    clear_auth_cookie,
    item_envelope,
    list_envelope,
    set_auth_cookie,
)
from tourbook.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdatePasswordRequest,
)
from tourbook.schemas.user import UpdateMeRequest, UserUpdateRequest
from tourbook.services import auth_service, user_service
from tourbook.services.email_service import EmailSender
from tourbook.services.resource import serialize
from tourbook.services.user_service import user_handlers

router = APIRouter()

admin_only = restrict_to(UserRole.ADMIN)


def _logged_in(response: Response, user: User, token: str) -> dict:
    set_auth_cookie(response, token)
    return {"status": "success", "token": token, "data": {"user": serialize(user)}}


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    body: SignupRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    """
    Register a new user with the "user" role and log them in.

    - **email**: Must be a valid email format and not already registered
    - **password**: Minimum 8 characters, repeated in **password_confirm**
    """
    user, token = await auth_service.signup(
        db=db,
        sender=sender,
        name=body.name,
        email=body.email,
        password=body.password,
        password_confirm=body.password_confirm,
        welcome_url=str(request.url_for("get_me")),
    )
    return _logged_in(response, user, token)


@router.post("/login", summary="Authenticate and get a token")
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    The token expires after ACCESS_TOKEN_EXPIRE_MINUTES.
    """
    user, token = await auth_service.login(db=db, email=body.email, password=body.password)
    return _logged_in(response, user, token)


@router.get("/logout", summary="Log out")
async def logout(response: Response):
    """Replace the session cookie with a short-lived dummy value."""
    clear_auth_cookie(response)
    return {"status": "success"}


@router.post("/forgot-password", summary="Request a password reset e-mail")
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    """
    E-mail a one-time reset link, valid for PASSWORD_RESET_EXPIRE_MINUTES.

    Returns 404 if no user has this e-mail and 500 if the e-mail could not
    be sent (the reset token is discarded in that case).
    """
    await auth_service.forgot_password(
        db=db,
        sender=sender,
        email=body.email,
        build_reset_url=lambda token: str(request.url_for("reset_password", token=token)),
    )
    return {"status": "success", "message": "Token sent to email!"}


@router.patch("/reset-password/{token}", summary="Reset password with a token")
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user, session_token = await auth_service.reset_password(
        db=db,
        plain_token=token,
        password=body.password,
        password_confirm=body.password_confirm,
    )
    return _logged_in(response, user, session_token)


@router.get("/session", summary="Current session, if any")
async def session(user: User | None = Depends(get_optional_user)):
    """
    The logged-in user, or null. Never answers 401.

    Lets pages render differently for visitors and logged-in users.
    """
    return {"status": "success", "data": {"user": serialize(user) if user else None}}


# ---------------------------------------------------------------------------
# Self-service (protected)
# ---------------------------------------------------------------------------

@router.patch("/update-my-password", summary="Change your password")
async def update_my_password(
    body: UpdatePasswordRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Tokens issued before the change stop working; a fresh one is returned."""
    user, token = await auth_service.update_password(
        db=db,
        user=user,
        password_current=body.password_current,
        password=body.password,
        password_confirm=body.password_confirm,
    )
    return _logged_in(response, user, token)


@router.get("/me", summary="Your profile")
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return item_envelope("user", await user_handlers.get_one(db, user.id))


@router.patch("/update-me", summary="Update your profile")
async def update_me(
    body: UpdateMeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Only name, email and photo can be changed here."""
    updated = await user_service.update_me(db, user, body.model_dump(exclude_unset=True))
    return item_envelope("user", updated)


@router.delete(
    "/delete-me",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate your account",
)
async def delete_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_me(db, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

@router.get("", summary="[Admin] List users", dependencies=[Depends(admin_only)])
async def list_users(request: Request, db: AsyncSession = Depends(get_db)):
    listing = await user_handlers.get_all(db, request.query_params)
    return list_envelope("users", listing)


@router.get("/{user_id}", summary="[Admin] Get a user", dependencies=[Depends(admin_only)])
async def get_user(user_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return item_envelope("user", await user_handlers.get_one(db, user_id))


@router.patch("/{user_id}", summary="[Admin] Update a user", dependencies=[Depends(admin_only)])
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Passwords are not changed here; role changes are."""
    updated = await user_handlers.update_one(db, user_id, body.model_dump(exclude_unset=True))
    return item_envelope("user", updated)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="[Admin] Deactivate a user",
    dependencies=[Depends(admin_only)],
)
async def delete_user(user_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await user_handlers.delete_one(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
