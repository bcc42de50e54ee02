"""
Pydantic schemas for Booking endpoints.

When price is omitted on creation, the tour's current price is used.
"""

import uuid

from pydantic import BaseModel


class BookingCreateRequest(BaseModel):
    """Request body for POST /api/v1/bookings."""
    tour_id: uuid.UUID
    user_id: uuid.UUID
    price: float | None = None
    paid: bool = True


class BookingUpdateRequest(BaseModel):
    """Request body for PATCH /api/v1/bookings/{id}."""
    price: float | None = None
    paid: bool | None = None
