"""Shared fixtures - a fresh SQLite database per test and an API client bound to it."""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from screenops import database
from screenops.auth.roles import UserRole
from screenops.auth.security import create_session_token, hash_password
from screenops.config import settings
from screenops.database import Base, get_db
from screenops.main import app
from screenops.models import Application, Participant, UserProfile

CRON_KEY = "test-cron-key"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """No CRM calls, no webhook signatures, no retry sleeps."""
    monkeypatch.setattr(settings, "hubspot_api_key", "")
    monkeypatch.setattr(settings, "typeform_webhook_secret", "")
    monkeypatch.setattr(settings, "cron_secure_key", CRON_KEY)
    monkeypatch.setattr(settings, "webhook_retry_delay_seconds", 0)
    monkeypatch.setattr(settings, "reprocess_retry_delay_seconds", 0)
    monkeypatch.setattr(settings, "calendly_retry_delay_seconds", 0)
    monkeypatch.setattr(settings, "calendly_participant_attempts", 2)
    monkeypatch.setattr(settings, "calendly_application_attempts", 2)


@pytest_asyncio.fixture
async def session_maker(tmp_path, monkeypatch) -> AsyncGenerator[async_sessionmaker, None]:
    """Create a fresh SQLite database for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    monkeypatch.setattr(database, "async_session_maker", maker)
    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _make_user(
    db: AsyncSession,
    role: str = UserRole.PROGRAM_OPERATIONS_ADMINISTRATOR.value,
    email: str | None = None,
    password: str = "correct-horse",
    first_name: str = "Avery",
    last_name: str = "Admin",
) -> UserProfile:
    user = UserProfile(
        email=email or f"{role.lower()}@example.com",
        first_name=first_name,
        last_name=last_name,
        role=role,
        password_hash=hash_password(password),
    )
    db.add(user)
    await db.commit()
    return user


def _auth_headers(user: UserProfile) -> dict[str, str]:
    token = create_session_token(subject=str(user.id), role=user.role)
    return {"Authorization": f"Bearer {token}"}


async def _make_application(db: AsyncSession, email: str = "ada@example.com", **fields) -> Application:
    participant = Participant(email=email, first_name="Ada", last_name="Lovelace")
    db.add(participant)
    await db.flush()
    application = Application(participant_id=participant.id, application_data={}, **fields)
    db.add(application)
    await db.commit()
    return application


@pytest.fixture
def make_user(db):
    async def factory(role: str = UserRole.PROGRAM_OPERATIONS_ADMINISTRATOR.value, **kwargs) -> UserProfile:
        return await _make_user(db, role, **kwargs)

    return factory


@pytest.fixture
def make_application(db):
    async def factory(email: str = "ada@example.com", **fields) -> Application:
        return await _make_application(db, email, **fields)

    return factory


@pytest.fixture
def auth_headers():
    return _auth_headers


@pytest_asyncio.fixture
async def admin(make_user) -> UserProfile:
    return await make_user()


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return _auth_headers(admin)


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_KEY}"}
