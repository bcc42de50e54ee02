"""
Pydantic schemas for Review endpoints.

The author is always the authenticated caller; it is never read from the
body. The tour comes from the nested route (/tours/{tour_id}/reviews) or,
on the top-level route, from tour_id in the body.
"""

import uuid

from pydantic import BaseModel


class ReviewCreateRequest(BaseModel):
    """Request body for POST /api/v1/reviews and /api/v1/tours/{tour_id}/reviews."""
    review: str
    rating: int
    tour_id: uuid.UUID | None = None


class ReviewUpdateRequest(BaseModel):
    """Request body for PATCH /api/v1/reviews/{id}."""
    review: str | None = None
    rating: int | None = None
