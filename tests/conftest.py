"""
Test fixtures for the Tours API test suite.

Fixtures shared by every test module:

  - db_engine / session_factory / db_session: Fresh in-memory SQLite
    database for each test
  - email_sender: A recording fake that can be told to fail
  - make_client: Builds async HTTP test clients against the app
  - client: Unauthenticated test client
  - user_client: A user created through the real signup endpoint
  - admin_client / lead_guide_client / guide_client: Users provisioned
    directly in the database with the given role
  - create_tour: Inserts a tour through the tour handlers

Harness notes:
  - Every test starts from an empty sqlite+aiosqlite:// database; StaticPool
    makes all sessions of that test share its single connection.
  - get_db and get_email_sender are replaced through app.dependency_overrides;
    routes, services and error handling run unmodified.
  - Each role has its own client and cookie jar.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tourbook.database import Base, get_db
from tourbook.dependencies import get_email_sender
from tourbook.exceptions import EmailDeliveryError
from tourbook.main import app
from tourbook.models.user import User, UserRole
from tourbook.security import hash_password
from tourbook.services.email_service import EmailSender
from tourbook.services.token_service import issue_token
from tourbook.services.tour_service import tour_handlers


# One throwaway in-memory database per test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

PASSWORD = "test1234pass"


class FakeEmailSender(EmailSender):
    """Records every message instead of sending it."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, user, template, subject, context):
        if self.fail:
            raise EmailDeliveryError()
        self.sent.append(
            {"to": user.email, "template": template, "subject": subject, "context": context}
        )


def tour_payload(**overrides) -> dict:
    """A valid tour creation body."""
    payload = {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "image_cover": "tour-1-cover.jpg",
        "start_dates": ["2025-04-25T09:00:00", "2025-07-20T09:00:00"],
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def db_engine():
    """Engine over an empty schema, torn down after the test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A session for arranging and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest_asyncio.fixture
async def make_client(session_factory, email_sender):
    """
    Factory for async HTTP test clients with the test database injected.

    Each call returns a new client with its own cookie jar; pass a token to
    send it as a bearer header.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    clients = []

    def _make(token: str | None = None) -> AsyncClient:
        ac = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        if token:
            ac.headers["Authorization"] = f"Bearer {token}"
        clients.append(ac)
        return ac

    yield _make

    for ac in clients:
        await ac.aclose()
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(make_client):
    return make_client()


@pytest_asyncio.fixture
async def create_user(session_factory):
    """Insert an active user with the given role and return (user, token)."""

    async def _create(
        email: str,
        role: UserRole = UserRole.USER,
        name: str = "Test Person",
        password: str = PASSWORD,
    ) -> tuple[User, str]:
        async with session_factory() as session:
            user = User(
                name=name,
                email=email,
                role=role,
                hashed_password=hash_password(password),
            )
            session.add(user)
            await session.commit()
        return user, issue_token(user.id)

    return _create


@pytest_asyncio.fixture
async def user_client(make_client):
    """
    Test client for a regular user created through the real signup flow.

    The new user's id is available as client.user_id.
    """
    ac = make_client()
    response = await ac.post(
        "/api/v1/users/signup",
        json={
            "name": "Laura Wilson",
            "email": "laura@example.com",
            "password": PASSWORD,
            "password_confirm": PASSWORD,
        },
    )
    assert response.status_code == 201, f"Signup failed: {response.text}"
    body = response.json()
    ac.headers["Authorization"] = f"Bearer {body['token']}"
    ac.user_id = uuid.UUID(body["data"]["user"]["id"])
    return ac


@pytest_asyncio.fixture
async def admin_client(make_client, create_user):
    user, token = await create_user("admin@example.com", UserRole.ADMIN, name="Ada Admin")
    ac = make_client(token)
    ac.user_id = user.id
    return ac


@pytest_asyncio.fixture
async def lead_guide_client(make_client, create_user):
    user, token = await create_user("lead@example.com", UserRole.LEAD_GUIDE, name="Leo Lead")
    ac = make_client(token)
    ac.user_id = user.id
    return ac


@pytest_asyncio.fixture
async def guide_client(make_client, create_user):
    user, token = await create_user("guide@example.com", UserRole.GUIDE, name="Gia Guide")
    ac = make_client(token)
    ac.user_id = user.id
    return ac


@pytest.fixture
def tour_body():
    """The valid tour body builder, for tests that post tours."""
    return tour_payload


@pytest_asyncio.fixture
async def create_tour(session_factory):
    """Insert a tour through the tour handlers and return its representation."""

    async def _create(**overrides) -> dict:
        async with session_factory() as session:
            tour = await tour_handlers.create_one(session, tour_payload(**overrides))
            await session.commit()
        return tour

    return _create
