"""
Test infrastructure for the Rebbit API.

Strategy
--------
- SQLite in-memory via aiosqlite, so no PostgreSQL instance is needed.
- StaticPool forces every session to share the one in-memory connection;
  a second connection would see an empty database.
- A fresh engine and schema is built for each test and the app's ``get_db``
  dependency is pointed at it, giving every test a clean isolated state.
- The mailer is replaced by a recorder so tests can assert on outgoing
  mail without an SMTP relay.
- bcrypt runs at its minimum cost factor to keep the suite fast.
"""
import tempfile

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rebbit.config import Settings
from rebbit.database import Base, get_db
from rebbit.dependencies import get_mailer
from rebbit.mailer import Mailer
from rebbit.main import create_app
from rebbit.middleware import install_query_counter
from rebbit.models import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_SETTINGS = Settings(
    _env_file=None,
    DATABASE_URL=TEST_DATABASE_URL,
    JWT_SECRET="test-secret",
    BCRYPT_ROUNDS=4,
    MAIL_ENABLED=False,
    MAIL_FROM="noreply@rebbit.test",
    UPLOAD_DIR=tempfile.mkdtemp(prefix="rebbit-uploads-"),
    LOG_LEVEL="WARNING",
)

app = create_app(TEST_SETTINGS)


class RecordingMailer(Mailer):
    """Mailer that keeps messages in memory instead of talking SMTP."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.sent: list[dict] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "body": body})


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory database with all tables for one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_query_counter(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Session factory bound to the test engine, also used by the app's ``get_db``."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    """
    Yield a live AsyncSession for tests that drive the service layer
    directly (seeding data, asserting ORM state).
    """
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mailer() -> RecordingMailer:
    recorder = RecordingMailer(TEST_SETTINGS)
    app.dependency_overrides[get_mailer] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_mailer, None)


@pytest_asyncio.fixture
async def async_client(session_factory, mailer) -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def auth_headers(token: str) -> dict:
    return {"x-auth-token": token}


@pytest.fixture
def register(async_client):
    """
    Return a coroutine that registers a user and yields ``{"id", "token",
    "headers", "email"}`` for it.
    """
    counter = {"n": 0}

    async def _register(pseudo: str | None = None, email: str | None = None, password: str = "secret123") -> dict:
        counter["n"] += 1
        pseudo = pseudo or f"user{counter['n']}"
        email = email or f"{pseudo}@example.com"
        resp = await async_client.post("/api/auth/register", json={
            "pseudo": pseudo,
            "name": "Test",
            "surname": pseudo.title(),
            "email": email,
            "password": password,
            "birthdate": "1990-05-17",
        })
        assert resp.status_code == 200, resp.text
        token = resp.json()["token"]
        claims = jwt.decode(token, options={"verify_signature": False})
        return {
            "id": claims["user"]["id"],
            "token": token,
            "headers": auth_headers(token),
            "email": email,
        }

    return _register


@pytest.fixture
def promote(session_factory):
    """Return a coroutine that turns a registered user into an admin."""

    async def _promote(user: dict) -> dict:
        async with session_factory() as session:
            await session.execute(update(User).where(User.id == user["id"]).values(role="admin"))
            await session.commit()
        token = app.state.credentials.issue_access_token(user["id"], "admin")
        return {**user, "token": token, "headers": auth_headers(token)}

    return _promote


@pytest.fixture
def create_post(async_client):
    """Return a coroutine that creates a post for *user* and returns its JSON."""

    async def _create_post(user: dict, title: str = "A post", tags=None, state: str = "published", **extra) -> dict:
        payload = {
            "title": title,
            "content": f"Content of {title}",
            "tags": tags if tags is not None else ["general"],
            "state": state,
            **extra,
        }
        resp = await async_client.post("/api/posts", json=payload, headers=user["headers"])
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _create_post
