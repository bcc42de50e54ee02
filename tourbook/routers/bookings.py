"""
Bookings router — who booked which tour.

All endpoints require a valid token.

Endpoints:
  GET    /bookings/my-tours             — Tours the caller has booked
  GET    /bookings                      — List bookings     (admin, lead-guide)
  POST   /bookings                      — Create a booking  (admin, lead-guide)
  GET    /bookings/{booking_id}         — One booking       (admin, lead-guide)
  PATCH  /bookings/{booking_id}         — Update price/paid (admin, lead-guide)
  DELETE /bookings/{booking_id}         — Delete a booking  (admin, lead-guide)
"""

import uuid

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.database import get_db
from tourbook.dependencies import get_current_user, restrict_to
from tourbook.models.user import User, UserRole
from tourbook.routers.envelopes import item_envelope, list_envelope
from tourbook.schemas.booking import BookingCreateRequest, BookingUpdateRequest
from tourbook.services import booking_service
from tourbook.services.booking_service import booking_handlers

router = APIRouter(dependencies=[Depends(get_current_user)])

booking_managers = restrict_to(UserRole.ADMIN, UserRole.LEAD_GUIDE)


@router.get("/my-tours", summary="Tours you have booked")
async def my_tours(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tours = await booking_service.get_my_tours(db, user)
    return {"status": "success", "results": len(tours), "data": {"tours": tours}}


# ---------------------------------------------------------------------------
# Management (admin, lead-guide)
# ---------------------------------------------------------------------------

@router.get("", summary="List bookings", dependencies=[Depends(booking_managers)])
async def list_bookings(request: Request, db: AsyncSession = Depends(get_db)):
    listing = await booking_handlers.get_all(db, request.query_params)
    return list_envelope("bookings", listing)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a booking",
    dependencies=[Depends(booking_managers)],
)
async def create_booking(body: BookingCreateRequest, db: AsyncSession = Depends(get_db)):
    """The price defaults to the tour's current price."""
    booking = await booking_service.create_booking(db, body.model_dump())
    return item_envelope("booking", booking)


@router.get("/{booking_id}", summary="Get a booking", dependencies=[Depends(booking_managers)])
async def get_booking(booking_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return item_envelope("booking", await booking_handlers.get_one(db, booking_id))


@router.patch(
    "/{booking_id}",
    summary="Update a booking",
    dependencies=[Depends(booking_managers)],
)
async def update_booking(
    booking_id: uuid.UUID,
    body: BookingUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_handlers.update_one(db, booking_id, body.model_dump(exclude_unset=True))
    return item_envelope("booking", booking)


@router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a booking",
    dependencies=[Depends(booking_managers)],
)
async def delete_booking(booking_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await booking_handlers.delete_one(db, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
