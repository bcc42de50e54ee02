"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. String relationship targets ("Tour", "User", ...) resolve
  3. Other modules can import from tourbook.models directly
"""

from tourbook.models.user import User, UserRole  # noqa: F401
from tourbook.models.tour import Tour, tour_guides  # noqa: F401
from tourbook.models.review import Review  # noqa: F401
from tourbook.models.booking import Booking  # noqa: F401
