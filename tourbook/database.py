"""
The store: async engine, per-request sessions, and the ORM base.

  - create_engine() / create_sessionmaker(): factories called by the lifespan
  - Base: the DeclarativeBase every tourbook model maps onto
  - get_db(): one session and one transaction per request

No connection exists at import time. main.lifespan puts the session factory
on app.state and get_db() pulls it from the app serving the request, which is
how the test suite swaps in its in-memory engine.

Transaction outcome per request:
  - handler returned: commit
  - anything escaped: rollback, then re-raise

A service that must keep a compensating write on its error path (the
forgot-password flow clearing a reset token) commits it itself before
raising.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine.

    echo=True logs all SQL statements, useful while developing.
    """
    return create_async_engine(url, echo=echo)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory: creates new AsyncSession instances.

    expire_on_commit=False prevents lazy-load errors after commit: without it,
    accessing attributes on a committed object would trigger a synchronous DB
    call, which fails in async context.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class, which provides metadata tracking
    for table creation and the common declarative mapping features.
    """
    pass


async def get_db(request: Request):
    """Yield a session bound to the serving app's engine; see the module docstring."""
    session_factory = request.app.state.sessionmaker
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
