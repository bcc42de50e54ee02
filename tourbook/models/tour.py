"""
Tour model — a bookable tour.

List-valued and nested fields (images, start dates, locations) are stored as
JSON columns. Locations follow the GeoJSON point layout, so coordinates are
[longitude, latitude].

Guides are regular users linked through the tour_guides association table.
Reviews hang off the tour and are only loaded when a caller asks for them
(the Get-by-id operation eager-loads them explicitly).

Read-time derivations:
  duration_weeks is computed from duration when the tour is serialized; it is
  declared in __computed__ together with the column it depends on.

Secret tours:
  Tours with secret_tour=True are excluded from every default query.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourbook.database import Base


tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_id", ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Tour(Base):
    __tablename__ = "tours"

    # Compound index for the common "cheap and well rated" listing
    __table_args__ = (
        Index("ix_tours_price_ratings", "price", "ratings_average"),
    )

    __hidden__ = frozenset({"version"})

    __computed__ = {
        "duration_weeks": ("duration",),
    }

    __summary__ = ("name", "slug", "price", "duration", "summary", "image_cover")

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(40),
        unique=True,
        nullable=False,
    )

    # URL-friendly name, derived from name on every write
    slug: Mapped[str] = mapped_column(
        String(60),
        nullable=False,
        index=True,
    )

    # Length in days
    duration: Mapped[int] = mapped_column(Integer, nullable=False)

    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)

    # "easy", "medium" or "difficult"
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)

    ratings_average: Mapped[float] = mapped_column(
        Float,
        default=4.5,
        nullable=False,
    )
    ratings_quantity: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    price: Mapped[float] = mapped_column(Float, nullable=False)
    price_discount: Mapped[float | None] = mapped_column(Float, nullable=True)

    summary: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # ISO-8601 strings
    start_dates: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    secret_tour: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # {"type": "Point", "coordinates": [lng, lat], "address": ..., "description": ...}
    start_location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # Same shape as start_location plus "day"
    locations: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # --- Relationships ---
    guides: Mapped[list["User"]] = relationship(secondary=tour_guides)

    reviews: Mapped[list["Review"]] = relationship(
        back_populates="tour",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def duration_weeks(self) -> float:
        return self.duration / 7
