"""
Review model — a user's rating of a tour.

A user may review a given tour only once; the (tour_id, user_id) pair is
unique. Every write to a review recomputes the parent tour's
ratings_average and ratings_quantity (see review_service).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourbook.database import Base


class Review(Base):
    __tablename__ = "reviews"

    __table_args__ = (
        UniqueConstraint("tour_id", "user_id", name="uq_reviews_tour_user"),
    )

    __hidden__ = frozenset({"version"})

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    review: Mapped[str] = mapped_column(Text, nullable=False)

    # 1 to 5
    rating: Mapped[int] = mapped_column(Integer, nullable=False)

    tour_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("tours.id"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # --- Relationships ---
    tour: Mapped["Tour"] = relationship(back_populates="reviews")

    # The author; loaded explicitly wherever reviews are listed or fetched
    user: Mapped["User"] = relationship()

    __mapper_args__ = {"version_id_col": version}
