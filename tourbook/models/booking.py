"""
Booking model — a user's purchase of a tour.

The price is copied from the tour at booking time, so later price changes
don't rewrite history.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourbook.database import Base


class Booking(Base):
    __tablename__ = "bookings"

    __hidden__ = frozenset({"version"})

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

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

    price: Mapped[float] = mapped_column(Float, nullable=False)

    paid: Mapped[bool] = mapped_column(
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

    # --- Relationships ---
    tour: Mapped["Tour"] = relationship()
    user: Mapped["User"] = relationship()

    __mapper_args__ = {"version_id_col": version}
