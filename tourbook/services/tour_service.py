"""
Tour service — the tour resource and the tour-specific read models.

This module handles:
  - The tour Resource: default filter (no secret tours), guides loaded on
    every read, reviews (with authors) loaded by Get-by-id, slug derivation,
    and the declarative rules a stored tour must satisfy
  - The "top 5 cheap" listing alias
  - Statistics grouped by difficulty
  - The monthly plan (tour starts per month of a year)
  - Geo queries around a point (tours within a radius, distances)

Geo math:
  Locations are GeoJSON points, [longitude, latitude]. Distances use the
  haversine formula on a sphere with the equatorial Earth radius.
"""

import math
import re
import unicodedata
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.exceptions import NotFoundError, ValidationError
from tourbook.models.tour import Tour
from tourbook.models.user import User
from tourbook.services.constraints import (
    LessThanField,
    Length,
    OneOf,
    Range,
    Required,
)
from tourbook.services.handler_factory import HandlerFactory
from tourbook.services.resource import Resource


DIFFICULTIES = ("easy", "medium", "difficult")

EARTH_RADIUS = {"mi": 3963.2, "km": 6378.1}

TOP_TOURS_ALIAS = {
    "limit": "5",
    "sort": "-ratings_average,price",
    "fields": "name,price,ratings_average,summary,difficulty",
}


def slugify(value: str) -> str:
    """'The Forest Hiker' -> 'the-forest-hiker'."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    value = re.sub(r"[^\w\s-]", "", value).strip().lower()
    return re.sub(r"[-\s_]+", "-", value)


def _prepare_tour(record: dict[str, Any]) -> dict[str, Any]:
    for key in ("name", "summary", "description"):
        if isinstance(record.get(key), str):
            record[key] = record[key].strip()
    if record.get("name"):
        record["slug"] = slugify(record["name"])
    if record.get("ratings_average") is not None:
        record["ratings_average"] = round(record["ratings_average"], 1)
    if record.get("start_dates"):
        record["start_dates"] = [
            value.isoformat() if isinstance(value, datetime) else value
            for value in record["start_dates"]
        ]
    return record


tour_resource = Resource(
    model=Tour,
    name="tour",
    plural="tours",
    default_filters=(Tour.secret_tour.is_(False),),
    list_relations=("guides",),
    detail_relations=("reviews.user",),
    unique_together=(("name",),),
    constraints=(
        Required("name", "A tour must have a name"),
        Length("name", min_len=10, max_len=40),
        Required("duration", "A tour must have a duration"),
        Range("duration", gt=0),
        Required("max_group_size", "A tour must have a group size"),
        Range("max_group_size", gt=0),
        Required("difficulty", "A tour must have a difficulty"),
        OneOf("difficulty", DIFFICULTIES),
        Required("ratings_average"),
        Range("ratings_average", ge=1, le=5),
        Required("price", "A tour must have a price"),
        Range("price", gt=0),
        Range("price_discount", ge=0),
        LessThanField(
            "price_discount",
            "price",
            "Discount price ({value}) should be below the regular price",
        ),
        Required("summary", "A tour must have a summary"),
        Required("image_cover", "A tour must have a cover image"),
    ),
    many_to_many={"guides": User},
    prepare=_prepare_tour,
)

tour_handlers = HandlerFactory(tour_resource)


def alias_top_tours(params: Mapping[str, str]) -> dict[str, str]:
    """The five best-rated, cheapest tours, with a short field list."""
    return {**params, **TOP_TOURS_ALIAS}


async def ensure_tour_exists(db: AsyncSession, tour_id: uuid.UUID) -> Tour:
    """
    Raises:
        NotFoundError: If no visible tour has this id.
    """
    result = await db.execute(
        select(Tour)
        .where(Tour.id == tour_id)
        .where(*tour_resource.default_filters)
    )
    tour = result.scalar_one_or_none()
    if tour is None:
        raise NotFoundError("No tour found with that ID")
    return tour


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------

async def get_tour_stats(db: AsyncSession) -> list[dict[str, Any]]:
    """
    Statistics per difficulty over tours rated 4.5 or better.

    Ordered by average price, cheapest first.
    """
    difficulty = func.upper(Tour.difficulty)
    avg_price = func.avg(Tour.price)
    result = await db.execute(
        select(
            difficulty.label("difficulty"),
            func.count(Tour.id).label("num_tours"),
            func.sum(Tour.ratings_quantity).label("num_ratings"),
            func.avg(Tour.ratings_average).label("avg_rating"),
            avg_price.label("avg_price"),
            func.min(Tour.price).label("min_price"),
            func.max(Tour.price).label("max_price"),
        )
        .where(Tour.ratings_average >= 4.5)
        .where(*tour_resource.default_filters)
        .group_by(difficulty)
        .order_by(avg_price.asc())
    )
    return [dict(row._mapping) for row in result]


async def get_monthly_plan(db: AsyncSession, year: int) -> list[dict[str, Any]]:
    """
    How many tours start in each month of a year, busiest month first.

    Start dates live in a JSON list per tour, so the grouping is done here
    rather than in SQL.
    """
    result = await db.execute(
        select(Tour.name, Tour.start_dates)
        .where(*tour_resource.default_filters)
        .order_by(Tour.name)
    )

    months: dict[int, list[str]] = defaultdict(list)
    for name, start_dates in result:
        for raw in start_dates or []:
            start = datetime.fromisoformat(raw)
            if start.year == year:
                months[start.month].append(name)

    plan = [
        {"month": month, "num_tour_starts": len(tours), "tours": tours}
        for month, tours in months.items()
    ]
    plan.sort(key=lambda item: (-item["num_tour_starts"], item["month"]))
    return plan[:12]


# ---------------------------------------------------------------------------
# Geo queries
# ---------------------------------------------------------------------------

def parse_latlng(latlng: str) -> tuple[float, float]:
    """
    Parse "lat,lng".

    Raises:
        ValidationError: If the value is not two numbers.
    """
    parts = latlng.split(",")
    try:
        if len(parts) != 2:
            raise ValueError(latlng)
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValidationError(
            "Please provide latitude and longitude in the format lat,lng."
        )
    return lat, lng


def _earth_radius(unit: str) -> float:
    if unit not in EARTH_RADIUS:
        raise ValidationError("Unit must be 'mi' or 'km'")
    return EARTH_RADIUS[unit]


def haversine(lat1: float, lng1: float, lat2: float, lng2: float, radius: float) -> float:
    """Great-circle distance between two points, in the unit of radius."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * radius * math.asin(math.sqrt(a))


async def _tours_with_distance(
    db: AsyncSession, latlng: str, unit: str
) -> list[tuple[Tour, float]]:
    lat, lng = parse_latlng(latlng)
    radius = _earth_radius(unit)

    result = await db.execute(
        select(Tour)
        .where(Tour.start_location.is_not(None))
        .where(*tour_resource.default_filters)
    )
    pairs = []
    for tour in result.scalars():
        coordinates = (tour.start_location or {}).get("coordinates")
        if not coordinates:
            continue
        tour_lng, tour_lat = coordinates
        pairs.append((tour, haversine(lat, lng, tour_lat, tour_lng, radius)))
    pairs.sort(key=lambda pair: pair[1])
    return pairs


async def get_tours_within(
    db: AsyncSession, distance: float, latlng: str, unit: str
) -> list[Tour]:
    """Tours whose start location lies within distance of the center."""
    if distance < 0:
        raise ValidationError("Distance must not be negative")
    pairs = await _tours_with_distance(db, latlng, unit)
    return [tour for tour, away in pairs if away <= distance]


async def get_distances(db: AsyncSession, latlng: str, unit: str) -> list[dict[str, Any]]:
    """Distance from the point to every tour's start, nearest first."""
    pairs = await _tours_with_distance(db, latlng, unit)
    return [
        {"id": tour.id, "name": tour.name, "distance": round(away, 3)}
        for tour, away in pairs
    ]
