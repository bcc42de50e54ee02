"""
User service — the user resource and self-service profile changes.

Users are soft-deleted: the resource flips `active` to False and its default
filter hides inactive users from every read, so the admin "delete" and the
self-service delete-me leave the same trace.

update_me() accepts profile fields only (name, email, photo). Password
changes go through auth_service.update_password(), which re-verifies the
current password and re-issues the session token.
"""

from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.exceptions import ValidationError
from tourbook.models.user import User
from tourbook.services.constraints import EmailFormat, Length, Required
from tourbook.services.handler_factory import HandlerFactory
from tourbook.services.resource import Resource


PROFILE_FIELDS = ("name", "email", "photo")

PASSWORD_FIELDS = ("password", "password_confirm")


def _prepare_user(record: dict[str, Any]) -> dict[str, Any]:
    if isinstance(record.get("email"), str):
        record["email"] = record["email"].strip().lower()
    if isinstance(record.get("name"), str):
        record["name"] = record["name"].strip()
    return record


user_resource = Resource(
    model=User,
    name="user",
    plural="users",
    default_filters=(User.active.is_(True),),
    unique_together=(("email",),),
    constraints=(
        Required("name", "Please tell us your name!"),
        Length("name", max_len=100),
        Required("email", "Please provide your email"),
        EmailFormat("email"),
    ),
    prepare=_prepare_user,
    soft_delete_field="active",
)

user_handlers = HandlerFactory(user_resource)


async def update_me(
    db: AsyncSession,
    user: User,
    payload: Mapping[str, Any],
) -> dict[str, Any]:
    """
    Update the caller's own profile.

    Unknown keys are dropped; only PROFILE_FIELDS reach the store.

    Raises:
        ValidationError: If the payload carries a password field.
        ConflictError: If the new e-mail is taken.
    """
    if any(key in payload for key in PASSWORD_FIELDS):
        raise ValidationError(
            "This route is not for password updates. Please use /update-my-password."
        )
    changes = {
        key: value
        for key, value in payload.items()
        if key in PROFILE_FIELDS and value is not None
    }
    return await user_handlers.update_one(db, user.id, changes)


async def delete_me(db: AsyncSession, user: User) -> None:
    """Deactivate the caller's account."""
    await user_handlers.delete_one(db, user.id)
