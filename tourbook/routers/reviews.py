"""
Reviews router — tour reviews, top-level and nested under a tour.

All endpoints require a valid token.

Endpoints:
  GET    /reviews                       — List reviews
  GET    /tours/{tour_id}/reviews       — List one tour's reviews
  POST   /reviews                       — Review a tour (role "user", tour_id in body)
  POST   /tours/{tour_id}/reviews       — Review this tour (role "user")
  GET    /reviews/{review_id}           — One review
  PATCH  /reviews/{review_id}           — Edit (own review, or any as admin)
  DELETE /reviews/{review_id}           — Delete (own review, or any as admin)

The author is always the caller; a user_id in the body is ignored. Every
write recomputes the reviewed tour's rating summary.
"""

import uuid

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.database import get_db
from tourbook.dependencies import get_current_user, restrict_to
from tourbook.models.user import User, UserRole
from tourbook.routers.envelopes import item_envelope, list_envelope
from tourbook.schemas.review import ReviewCreateRequest, ReviewUpdateRequest
from tourbook.services.review_service import ensure_can_modify, review_handlers
from tourbook.services.tour_service import ensure_tour_exists

router = APIRouter(dependencies=[Depends(get_current_user)])

# Mounted at /tours/{tour_id}/reviews
nested_router = APIRouter(dependencies=[Depends(get_current_user)])

reviewers = restrict_to(UserRole.USER)
review_editors = restrict_to(UserRole.USER, UserRole.ADMIN)


async def _create_review(
    db: AsyncSession,
    body: ReviewCreateRequest,
    user: User,
    tour_id: uuid.UUID | None,
) -> dict:
    tour_id = tour_id or body.tour_id
    if tour_id is not None:
        await ensure_tour_exists(db, tour_id)
    review = await review_handlers.create_one(
        db,
        {
            "review": body.review,
            "rating": body.rating,
            "tour_id": tour_id,
            "user_id": user.id,
        },
    )
    return item_envelope("review", review)


# ---------------------------------------------------------------------------
# Nested under a tour
# ---------------------------------------------------------------------------

@nested_router.get("", summary="List a tour's reviews")
async def list_tour_reviews(
    tour_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    listing = await review_handlers.get_all(db, request.query_params, scope={"tour_id": tour_id})
    return list_envelope("reviews", listing)


@nested_router.post("", status_code=status.HTTP_201_CREATED, summary="Review a tour")
async def create_tour_review(
    tour_id: uuid.UUID,
    body: ReviewCreateRequest,
    user: User = Depends(reviewers),
    db: AsyncSession = Depends(get_db),
):
    return await _create_review(db, body, user, tour_id)


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------

@router.get("", summary="List reviews")
async def list_reviews(request: Request, db: AsyncSession = Depends(get_db)):
    listing = await review_handlers.get_all(db, request.query_params)
    return list_envelope("reviews", listing)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a review")
async def create_review(
    body: ReviewCreateRequest,
    user: User = Depends(reviewers),
    db: AsyncSession = Depends(get_db),
):
    return await _create_review(db, body, user, None)


@router.get("/{review_id}", summary="Get a review")
async def get_review(review_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return item_envelope("review", await review_handlers.get_one(db, review_id))


@router.patch("/{review_id}", summary="Edit a review")
async def update_review(
    review_id: uuid.UUID,
    body: ReviewUpdateRequest,
    user: User = Depends(review_editors),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_modify(db, review_id, user)
    review = await review_handlers.update_one(db, review_id, body.model_dump(exclude_unset=True))
    return item_envelope("review", review)


@router.delete(
    "/{review_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a review",
)
async def delete_review(
    review_id: uuid.UUID,
    user: User = Depends(review_editors),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_modify(db, review_id, user)
    await review_handlers.delete_one(db, review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
