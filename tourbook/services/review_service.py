"""
Review service — the review resource and tour rating aggregation.

Each user may review a tour once (unique tour_id + user_id).

Rating aggregation:
  After every review create, update or delete, the reviewed tour's
  ratings_quantity and ratings_average are recomputed from its remaining
  reviews. A tour without reviews falls back to 0 ratings averaging 4.5.

Ownership:
  Plain users may only change their own reviews; admins may change any.
"""

import logging
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.exceptions import ForbiddenError, NotFoundError
from tourbook.models.review import Review
from tourbook.models.tour import Tour
from tourbook.models.user import User, UserRole
from tourbook.services.constraints import Range, Required
from tourbook.services.handler_factory import HandlerFactory
from tourbook.services.resource import Resource

logger = logging.getLogger(__name__)


DEFAULT_RATINGS_AVERAGE = 4.5


async def update_tour_ratings(db: AsyncSession, review: Review) -> None:
    """Recompute the rating summary of the review's tour."""
    tour_id = review.tour_id
    result = await db.execute(
        select(func.count(Review.id), func.avg(Review.rating))
        .where(Review.tour_id == tour_id)
    )
    quantity, average = result.one()

    if quantity:
        values = {"ratings_quantity": quantity, "ratings_average": round(average, 1)}
    else:
        values = {"ratings_quantity": 0, "ratings_average": DEFAULT_RATINGS_AVERAGE}

    await db.execute(
        update(Tour)
        .where(Tour.id == tour_id)
        .values(**values, version=Tour.version + 1)
        .execution_options(synchronize_session="fetch")
    )
    logger.debug("Tour %s ratings: %s", tour_id, values)


review_resource = Resource(
    model=Review,
    name="review",
    plural="reviews",
    list_relations=("user",),
    unique_together=(("tour_id", "user_id"),),
    constraints=(
        Required("review", "Review can not be empty!"),
        Required("rating", "A review must have a rating"),
        Range("rating", ge=1, le=5),
        Required("tour_id", "Review must belong to a tour."),
        Required("user_id", "Review must belong to a user."),
    ),
    after_write=update_tour_ratings,
)

review_handlers = HandlerFactory(review_resource)


async def ensure_can_modify(db: AsyncSession, review_id: uuid.UUID, user: User) -> None:
    """
    Raises:
        NotFoundError: If the review does not exist.
        ForbiddenError: If a plain user targets someone else's review.
    """
    owner_id = await db.scalar(select(Review.user_id).where(Review.id == review_id))
    if owner_id is None:
        raise NotFoundError("No review found with that ID")
    if user.role != UserRole.ADMIN and owner_id != user.id:
        raise ForbiddenError("You can only change your own reviews")
