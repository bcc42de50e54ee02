"""
User model — the authentication identity.

Each User is a login credential (email + hashed password) with a role.
Roles gate what a user may do once authenticated:

  - USER: Books tours and writes reviews (the default for signup)
  - GUIDE: Leads tours, can see the monthly plan
  - LEAD_GUIDE: Manages tours and bookings
  - ADMIN: Full access, including user management

Sensitive columns:
  hashed_password, password_reset_token_hash, password_reset_expires and the
  internal version counter are listed in __hidden__ and never serialized.

Soft delete:
  Users are never physically removed. Deleting an account flips `active` to
  False; inactive users are excluded from every default query.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tourbook.database import Base


class UserRole(str, enum.Enum):
    """
    Defines the role a user holds.

    Inherits from str so the enum value serializes naturally to JSON.
    """
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    __hidden__ = frozenset({
        "hashed_password",
        "password_reset_token_hash",
        "password_reset_expires",
        "version",
    })

    # Shown when a user appears inside another record (tour guides, review authors)
    __summary__ = ("name", "photo", "role")

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Login identifier, stored lower-cased
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    photo: Mapped[str] = mapped_column(
        String(255),
        default="default.jpg",
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        default=UserRole.USER,
        nullable=False,
    )

    # Argon2id hash of the password (never store plaintext!)
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Tokens issued before this instant are rejected
    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # SHA-256 digest of the pending reset token, never the token itself
    password_reset_token_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    password_reset_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
