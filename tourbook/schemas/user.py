"""
Pydantic schemas for user profile updates.

Password fields are absent: passwords change only through the
dedicated password endpoints. UpdateMeRequest allows extra keys so that a
stray "password" can be detected and rejected with a clear message instead
of being silently dropped.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from tourbook.models.user import UserRole


class UpdateMeRequest(BaseModel):
    """Request body for PATCH /api/v1/users/update-me."""
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    photo: str | None = None

    model_config = ConfigDict(extra="allow")


class UserUpdateRequest(BaseModel):
    """Request body for PATCH /api/v1/users/{id} (admin only)."""
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    photo: str | None = None
    role: UserRole | None = None
