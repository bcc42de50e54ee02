"""
Pydantic schemas for Tour endpoints.

Create requests require the fields every tour must have; update requests
make everything optional and are applied with exclude_unset, so only the
keys the client sent are merged onto the stored tour. Value rules (name
length, difficulty, discount below price, ...) live in the tour resource's
constraints, which see the merged record.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class GeoPoint(BaseModel):
    """A GeoJSON point; coordinates are [longitude, latitude]."""
    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(min_length=2, max_length=2)
    address: str | None = None
    description: str | None = None


class TourLocation(GeoPoint):
    day: int | None = None


class TourCreateRequest(BaseModel):
    """Request body for POST /api/v1/tours."""
    name: str
    duration: int
    max_group_size: int
    difficulty: str
    ratings_average: float | None = None
    price: float
    price_discount: float | None = None
    summary: str
    description: str | None = None
    image_cover: str
    images: list[str] = []
    start_dates: list[datetime] = []
    secret_tour: bool = False
    start_location: GeoPoint | None = None
    locations: list[TourLocation] = []
    guides: list[uuid.UUID] = []


class TourUpdateRequest(BaseModel):
    """Request body for PATCH /api/v1/tours/{id}."""
    name: str | None = None
    duration: int | None = None
    max_group_size: int | None = None
    difficulty: str | None = None
    ratings_average: float | None = None
    price: float | None = None
    price_discount: float | None = None
    summary: str | None = None
    description: str | None = None
    image_cover: str | None = None
    images: list[str] | None = None
    start_dates: list[datetime] | None = None
    secret_tour: bool | None = None
    start_location: GeoPoint | None = None
    locations: list[TourLocation] | None = None
    guides: list[uuid.UUID] | None = None
