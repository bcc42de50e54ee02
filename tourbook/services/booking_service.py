"""
Booking service — the booking resource and the caller's booked tours.

A booking records that a user bought a tour at a price. When no price is
given at creation, the tour's current price is used.
"""

from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.models.booking import Booking
from tourbook.models.tour import Tour
from tourbook.models.user import User
from tourbook.services.constraints import Range, Required
from tourbook.services.handler_factory import HandlerFactory
from tourbook.services.query_builder import eager_options
from tourbook.services.resource import Resource, serialize
from tourbook.services.tour_service import ensure_tour_exists, tour_resource
from tourbook.services.user_service import user_handlers


booking_resource = Resource(
    model=Booking,
    name="booking",
    plural="bookings",
    list_relations=("tour", "user"),
    constraints=(
        Required("tour_id", "Booking must belong to a Tour!"),
        Required("user_id", "Booking must belong to a User!"),
        Required("price", "Booking must have a price."),
        Range("price", gt=0),
    ),
)

booking_handlers = HandlerFactory(booking_resource)


async def create_booking(db: AsyncSession, payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Create a booking, defaulting the price to the tour's.

    Raises:
        NotFoundError: If the tour or the user does not exist.
    """
    values = dict(payload)
    tour = await ensure_tour_exists(db, values["tour_id"])
    await user_handlers.get_one(db, values["user_id"])
    if values.get("price") is None:
        values["price"] = tour.price
    return await booking_handlers.create_one(db, values)


async def get_my_tours(db: AsyncSession, user: User) -> list[dict[str, Any]]:
    """The visible tours the user has booked, each listed once."""
    booked = select(Booking.tour_id).where(Booking.user_id == user.id)
    result = await db.execute(
        select(Tour)
        .where(Tour.id.in_(booked))
        .where(*tour_resource.default_filters)
        .options(*eager_options(Tour, tour_resource.list_relations))
        .order_by(Tour.name.asc())
    )
    return [serialize(tour) for tour in result.scalars().all()]
