"""
Tours router — tour catalogue, statistics and geo endpoints.

Endpoints:
  GET    /tours                                    — List tours (public)
  GET    /tours/top-5-cheap                        — Best rated, cheapest five
  GET    /tours/tour-stats                         — Statistics per difficulty
  GET    /tours/monthly-plan/{year}                — Tour starts per month
  GET    /tours/tours-within/{distance}/center/{latlng}/unit/{unit}
                                                   — Tours near a point
  GET    /tours/distances/{latlng}/unit/{unit}     — Distance to every tour
  GET    /tours/{tour_id}                          — One tour with reviews
  POST   /tours                                    — Create (admin, lead-guide)
  PATCH  /tours/{tour_id}                          — Update (admin, lead-guide)
  DELETE /tours/{tour_id}                          — Delete (admin, lead-guide)

List endpoints accept the query-builder parameters:
  ?difficulty=easy&price[lt]=1500&sort=-price&fields=name,price&page=2&limit=10

The fixed-path routes are declared before /{tour_id} so they are matched
first.
"""

import uuid

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.database import get_db
from tourbook.dependencies import restrict_to
from tourbook.models.user import UserRole
from tourbook.routers.envelopes import item_envelope, list_envelope
from tourbook.schemas.tour import TourCreateRequest, TourUpdateRequest
from tourbook.services import tour_service
from tourbook.services.resource import serialize
from tourbook.services.tour_service import tour_handlers

router = APIRouter()

tour_managers = restrict_to(UserRole.ADMIN, UserRole.LEAD_GUIDE)


# ---------------------------------------------------------------------------
# Listings and read models
# ---------------------------------------------------------------------------

@router.get("", summary="List tours")
async def list_tours(request: Request, db: AsyncSession = Depends(get_db)):
    """List visible tours, filtered, sorted, projected and paginated."""
    listing = await tour_handlers.get_all(db, request.query_params)
    return list_envelope("tours", listing)


@router.get("/top-5-cheap", summary="Top five cheap tours")
async def top_tours(request: Request, db: AsyncSession = Depends(get_db)):
    """
    The five best-rated tours, cheaper first among equal ratings.

    Other query parameters (filters) still apply.
    """
    params = tour_service.alias_top_tours(request.query_params)
    listing = await tour_handlers.get_all(db, params)
    return list_envelope("tours", listing)


@router.get("/tour-stats", summary="Tour statistics per difficulty")
async def tour_stats(db: AsyncSession = Depends(get_db)):
    stats = await tour_service.get_tour_stats(db)
    return {"status": "success", "data": {"stats": stats}}


@router.get(
    "/monthly-plan/{year}",
    summary="Tour starts per month",
    dependencies=[Depends(restrict_to(UserRole.ADMIN, UserRole.LEAD_GUIDE, UserRole.GUIDE))],
)
async def monthly_plan(year: int, db: AsyncSession = Depends(get_db)):
    """How many tours start in each month of the year, busiest first."""
    plan = await tour_service.get_monthly_plan(db, year)
    return {"status": "success", "results": len(plan), "data": {"plan": plan}}


@router.get(
    "/tours-within/{distance}/center/{latlng}/unit/{unit}",
    summary="Tours within a distance of a point",
)
async def tours_within(
    distance: float,
    latlng: str,
    unit: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Tours whose start location is within `distance` of `latlng`.

    - **latlng**: "lat,lng", e.g. "34.11,-118.11"
    - **unit**: "mi" or "km"
    """
    tours = await tour_service.get_tours_within(db, distance, latlng, unit)
    return {
        "status": "success",
        "results": len(tours),
        "data": {"tours": [serialize(tour) for tour in tours]},
    }


@router.get("/distances/{latlng}/unit/{unit}", summary="Distances to all tours")
async def distances(latlng: str, unit: str, db: AsyncSession = Depends(get_db)):
    """Distance from `latlng` to every tour's start, nearest first."""
    result = await tour_service.get_distances(db, latlng, unit)
    return {"status": "success", "data": {"distances": result}}


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

@router.get("/{tour_id}", summary="Get a tour")
async def get_tour(tour_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """One tour with its guides and reviews (and their authors)."""
    tour = await tour_handlers.get_one(db, tour_id)
    return item_envelope("tour", tour)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a tour",
    dependencies=[Depends(tour_managers)],
)
async def create_tour(request: TourCreateRequest, db: AsyncSession = Depends(get_db)):
    tour = await tour_handlers.create_one(db, request.model_dump(exclude_none=True))
    return item_envelope("tour", tour)


@router.patch(
    "/{tour_id}",
    summary="Update a tour",
    dependencies=[Depends(tour_managers)],
)
async def update_tour(
    tour_id: uuid.UUID,
    request: TourUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Partial update. Only the fields sent are changed, but the whole
    resulting tour must still be valid (e.g. discount below price).
    """
    tour = await tour_handlers.update_one(db, tour_id, request.model_dump(exclude_unset=True))
    return item_envelope("tour", tour)


@router.delete(
    "/{tour_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a tour",
    dependencies=[Depends(tour_managers)],
)
async def delete_tour(tour_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Delete a tour together with its reviews."""
    await tour_handlers.delete_one(db, tour_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
