"""
The tourbook ASGI application.

Wiring, in order:
  1. Lifespan: the store (engine plus session factory) and the SMTP sender
     are created on startup, kept on app.state, and released on shutdown
  2. CORS with credentials, so browser clients send the "jwt" cookie
  3. Error handlers from tourbook.exceptions
  4. Routers for tours, reviews (also nested under a tour), users, bookings

Serve it with:
    uvicorn tourbook.main:app --reload

Use --reload only on a development machine.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import make_url

from tourbook.config import settings
from tourbook.database import Base, create_engine, create_sessionmaker
from tourbook.exceptions import register_exception_handlers
from tourbook.logging_config import configure_logging
from tourbook.routers import bookings, reviews, tours, users
from tourbook.services.email_service import SmtpEmailSender

# Register every model on Base.metadata before create_all
import tourbook.models  # noqa: F401

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _ensure_sqlite_directory(url: str) -> None:
    """SQLite creates the file, but not the directory it lives in."""
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build and release the per-process collaborators.

    Startup:
      Configures logging, builds the engine and session factory and stores
      them on app.state (get_db reads them from there), creates all tables
      if they don't exist, and builds the SMTP e-mail sender.

    Shutdown:
      Closes the e-mail sender and disposes of the database engine.
    """
    # --- Startup ---
    configure_logging(settings.LOG_LEVEL)

    _ensure_sqlite_directory(settings.DATABASE_URL)
    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.engine = engine
    app.state.sessionmaker = create_sessionmaker(engine)
    app.state.email_sender = SmtpEmailSender(settings)
    logger.info("%s %s started (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)

    yield

    # --- Shutdown ---
    await app.state.email_sender.close()
    await engine.dispose()
    logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Tour booking REST API with reviews, bookings and user accounts",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

# Credentials on, so browsers send the "jwt" cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(tours.router, prefix=f"{API_PREFIX}/tours", tags=["Tours"])
app.include_router(
    reviews.nested_router,
    prefix=f"{API_PREFIX}/tours/{{tour_id}}/reviews",
    tags=["Reviews"],
)
app.include_router(users.router, prefix=f"{API_PREFIX}/users", tags=["Users"])
app.include_router(reviews.router, prefix=f"{API_PREFIX}/reviews", tags=["Reviews"])
app.include_router(bookings.router, prefix=f"{API_PREFIX}/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe: answers as long as the process serves requests."""
    return {"status": "ok", "version": settings.APP_VERSION}
