"""Shared fixtures: a fresh SQLite file per test and an ASGI client bound to it."""

import os
import tempfile

# Point the application's own engine at a throwaway directory before any
# backend module reads its settings.
_test_data_dir = tempfile.mkdtemp(prefix="feedback_test_")
os.environ.setdefault("FEEDBACK_DATA_DIR", _test_data_dir)
os.environ.setdefault("FEEDBACK_SEED_SAMPLE_DATA", "false")

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from backend.app.db import build_engine, create_schema, get_db  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app.models.feedback import FeedbackItem, VoteRecord  # noqa: E402

_BASE_TIME = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)


@pytest.fixture
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_schema(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def timestamp(minutes: int = 0) -> str:
    """ISO timestamp ``minutes`` after a fixed base time."""
    return (_BASE_TIME + timedelta(minutes=minutes)).isoformat()


async def create_feedback(
    db: AsyncSession,
    title: str = "Add dark mode",
    description: str = "A darker theme for late night sessions would be easier on the eyes.",
    category: str = "feature",
    upvotes: int = 0,
    created_at: str | None = None,
) -> FeedbackItem:
    item = FeedbackItem(
        title=title,
        description=description,
        category=category,
        upvotes=upvotes,
        created_at=created_at or datetime.now(UTC).isoformat(),
    )
    db.add(item)
    await db.flush()
    return item


async def create_vote(
    db: AsyncSession,
    feedback_id: int,
    session_id: str,
    direction: str = "upvote",
) -> VoteRecord:
    vote = VoteRecord(
        session_id=session_id,
        feedback_id=feedback_id,
        direction=direction,
        created_at=datetime.now(UTC).isoformat(),
    )
    db.add(vote)
    await db.flush()
    return vote
