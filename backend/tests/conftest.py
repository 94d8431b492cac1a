"""Shared fixtures: an in-memory SQLite store per test."""

import os

# Keep the module-level engine unconfigured; tests bind their own
os.environ["DATABASE_URL"] = ""
os.environ["CREATE_ISSUES"] = "false"
os.environ["ANTHROPIC_API_KEY"] = ""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import edgecal.models  # noqa: F401
from edgecal.database import Base


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
