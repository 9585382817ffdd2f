"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable, Iterator
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ["JWT_SECRET"] = "test-secret-for-uconnect-0123456789abcdef"
os.environ["ALLOWED_DOMAINS"] = "campus.edu"
os.environ["ADMIN_PASSWORD"] = "AdminPass123"
os.environ["LOG_FORMAT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"

from uconnect.auth.tokens import reset_token_service  # noqa: E402
from uconnect.config import get_settings  # noqa: E402
from uconnect.database import close_db, create_schema, get_session, init_db  # noqa: E402
from uconnect.email.service import reset_email_service  # noqa: E402
from uconnect.main import create_app  # noqa: E402
from uconnect.media.storage import get_media_storage, reset_media_storage  # noqa: E402

DEFAULT_PASSWORD = "Password123"


def _reset_singletons() -> None:
    get_settings.cache_clear()
    reset_token_service()
    reset_email_service()
    reset_media_storage()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Give every test its own SQLite file and uploads directory."""
    uploads = tmp_path / "uploads"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("UPLOADS_DIR", str(uploads))
    _reset_singletons()
    yield uploads
    _reset_singletons()


@pytest.fixture
def uploads_dir(isolated_env: Path) -> Path:
    return isolated_env


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Initialise the engine and create the schema."""
    settings = get_settings()
    await init_db(settings.database_url)
    await create_schema()
    get_media_storage().ensure_dirs()
    yield
    await close_db()


@pytest_asyncio.fixture
async def client(database: None) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client (no lifespan, so Redis stays uninitialised)."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@asynccontextmanager
async def open_session() -> AsyncIterator[AsyncSession]:
    """A short-lived session outside any request, closed on exit."""
    sessions = get_session()
    try:
        yield await anext(sessions)
    finally:
        await sessions.aclose()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for service-level tests."""
    async with open_session() as session:
        yield session


@pytest.fixture
def mock_email_service(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Mock the email service to capture verification links instead of sending them."""
    mock_service = MagicMock()
    mock_service.send_verification_email = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    monkeypatch.setattr("uconnect.auth.router.get_email_service", lambda *a, **kw: mock_service)
    return mock_service


def last_verification_token(mock_email_service: MagicMock) -> str:
    """Pull the token out of the most recent verification link."""
    verify_url = mock_email_service.send_verification_email.call_args.args[1]
    return parse_qs(urlparse(verify_url).query)["token"][0]


async def signup_account(
    client: AsyncClient,
    mock_email_service: MagicMock,
    *,
    username: str,
    email: str | None = None,
    password: str = DEFAULT_PASSWORD,
    name: str | None = None,
) -> str:
    """Sign up and return the verification token from the emailed link."""
    response = await client.post("/api/auth/signup", json={
        "name": name or username.title(),
        "username": username,
        "email": email or f"{username}@campus.edu",
        "password": password,
    })
    assert response.status_code == 200, response.text
    return last_verification_token(mock_email_service)


async def login_headers(client: AsyncClient, identifier: str, password: str) -> dict[str, str]:
    """Log in and return a Bearer header. The session cookie is dropped so callers stay explicit."""
    response = await client.post("/api/auth/login", json={"identifier": identifier, "password": password})
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def make_user(
    client: AsyncClient, mock_email_service: MagicMock
) -> Callable[..., Awaitable[dict]]:
    """Factory: sign up, verify and log in a campus account."""

    async def _make(username: str = "alice", password: str = DEFAULT_PASSWORD) -> dict:
        email = f"{username}@campus.edu"
        token = await signup_account(client, mock_email_service, username=username, email=email, password=password)
        response = await client.get("/api/auth/verify-email", params={"token": token})
        assert response.status_code == 302, response.text
        headers = await login_headers(client, email, password)
        me = await client.get("/api/auth/me", headers=headers)
        return {
            "id": me.json()["user"]["id"],
            "username": username,
            "email": email,
            "password": password,
            "headers": headers,
        }

    return _make


@pytest_asyncio.fixture
async def admin_headers(client: AsyncClient) -> dict[str, str]:
    """Seed the configured admin and log in as it."""
    response = await client.post("/api/auth/create-admin")
    assert response.status_code == 200, response.text
    settings = get_settings()
    return await login_headers(client, settings.admin_username, settings.admin_password)
