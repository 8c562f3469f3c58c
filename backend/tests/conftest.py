"""Pytest configuration and fixtures."""
import os

# Must be set before tagging_service builds its settings and engine
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tagging_service.core.config import settings
from tagging_service.db import models  # noqa: F401
from tagging_service.db.base import Base
from tagging_service.db.models import Tag
from tagging_service.db.session import get_async_session
from tagging_service.main import app
from tagging_service.schemas import TagCreate
from tagging_service.services import TagService

# Use an in-memory SQLite database unless a real one is configured
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

ORG_ID = "org-acme"
OTHER_ORG_ID = "org-globex"
USER_ID = "user-alice"
TEST_AUTH_SECRET = "test-secret"


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as db:
        try:
            yield db
        finally:
            await db.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def tag_service(session: AsyncSession) -> TagService:
    """Tag service with the database-backed audit trail."""
    return TagService(session)


@pytest.fixture
def make_tag(tag_service: TagService):
    """Factory creating tags through the service."""

    async def _make(
        name: str,
        parent: Optional[Tag] = None,
        organization_id: str = ORG_ID,
        created_by: str = USER_ID,
        **kwargs,
    ) -> Tag:
        return await tag_service.create_tag(
            TagCreate(
                name=name,
                organization_id=organization_id,
                created_by=created_by,
                parent_id=parent.id if parent else None,
                **kwargs,
            )
        )

    return _make


@pytest_asyncio.fixture
async def tree(make_tag):
    """Root -> Middle -> {Leaf, Sibling} plus an unrelated root."""
    root = await make_tag("Root")
    middle = await make_tag("Middle", parent=root)
    leaf = await make_tag("Leaf", parent=middle)
    sibling = await make_tag("Sibling", parent=middle)
    other = await make_tag("Other")
    return {"root": root, "middle": middle, "leaf": leaf, "sibling": sibling, "other": other}


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user in an organization."""

    def _headers(user_id: str = USER_ID, organization_id: Optional[str] = ORG_ID) -> dict:
        claims = {"sub": user_id}
        if organization_id:
            claims["org"] = organization_id
        token = jwt.encode(claims, TEST_AUTH_SECRET, algorithm=settings.AUTH_ALGORITHM)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(session: AsyncSession, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test session injected."""
    monkeypatch.setattr(settings, "AUTH_SECRET", TEST_AUTH_SECRET)

    async def override_get_async_session():
        yield session

    app.dependency_overrides[get_async_session] = override_get_async_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()
