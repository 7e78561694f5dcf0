import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from backend.app.config import DATA_DIR, DATABASE_URL, settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


# Pass as ``execution_options`` to ``AsyncSession.connection()`` before the first
# statement of a transaction to open it with BEGIN IMMEDIATE (write lock held
# from the start, so concurrent writers queue on busy_timeout instead of failing).
WRITE_LOCK = {"sqlite_begin": "IMMEDIATE"}


def _set_sqlite_pragmas(dbapi_conn, _connection_record) -> None:
    # Disable the driver's implicit BEGIN; _emit_begin issues it instead.
    dbapi_conn.isolation_level = None

    cursor = dbapi_conn.cursor()
    # SQLite performance & safety pragmas (busy_timeout first so the rest wait on locks)
    cursor.execute("PRAGMA busy_timeout = 5000")
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA synchronous = NORMAL")
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.execute("PRAGMA temp_store = MEMORY")
    cursor.close()


def _emit_begin(conn) -> None:
    mode = conn.get_execution_options().get("sqlite_begin")
    conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async SQLite engine with pragmas and explicit BEGIN handling."""
    new_engine = create_async_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
    )
    event.listen(new_engine.sync_engine, "connect", _set_sqlite_pragmas)
    event.listen(new_engine.sync_engine, "begin", _emit_begin)
    return new_engine


engine = build_engine(DATABASE_URL)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:
    """FastAPI dependency for database sessions."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def begin_write(session: AsyncSession) -> None:
    """Open the session's transaction with BEGIN IMMEDIATE.

    An already open transaction (usually a deferred one autobegun by an earlier
    read) is committed first, so the write lock is always taken at BEGIN.
    """
    if session.in_transaction():
        await session.commit()
    await session.connection(execution_options=WRITE_LOCK)


async def create_schema(target: AsyncEngine) -> None:
    """Create all tables, including the full-text index and its triggers."""
    import backend.app.models  # noqa: F401  ensure models are registered

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Create the data directory and schema, then seed sample data if enabled."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    await create_schema(engine)

    if settings.seed_sample_data:
        async with async_session() as session:
            seeded = await seed_sample_feedback(session)
        if seeded:
            logger.info("Seeded %d sample feedback items", seeded)


async def seed_sample_feedback(session: AsyncSession) -> int:
    """Insert a few example items into an empty store. Returns how many were added."""
    from sqlalchemy import select

    from backend.app.models.feedback import FeedbackItem

    existing = await session.execute(select(FeedbackItem.id).limit(1))
    if existing.scalar_one_or_none() is not None:
        return 0

    # Counters start at zero: a non-zero seed would have no ledger rows behind it.
    now = datetime.now(UTC)
    samples = [
        (
            "Add dark mode support",
            "Would love to see a dark mode option for better user experience "
            "during night time usage.",
            "feature",
            timedelta(days=1),
        ),
        (
            "Search functionality is slow",
            "The search feature takes too long to return results, especially "
            "with large datasets.",
            "bug",
            timedelta(hours=12),
        ),
        (
            "Improve mobile responsiveness",
            "Some elements don't display properly on mobile devices. The layout "
            "needs optimization for smaller screens.",
            "improvement",
            timedelta(hours=6),
        ),
    ]
    for title, description, category, age in samples:
        session.add(
            FeedbackItem(
                title=title,
                description=description,
                category=category,
                upvotes=0,
                created_at=(now - age).isoformat(),
            )
        )
    await session.commit()
    return len(samples)
