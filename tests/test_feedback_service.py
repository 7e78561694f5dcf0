"""Direct service-layer tests for create / get / toggle / vote status / reconcile."""

import asyncio

import pytest
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.enums import VoteAction, VoteDirection
from backend.app.errors import NotFoundError, ValidationError
from backend.app.models.feedback import FeedbackItem, VoteRecord
from backend.app.services import feedback_service
from tests.conftest import create_feedback, create_vote


async def _ledger_count(db: AsyncSession, feedback_id: int) -> int:
    result = await db.execute(
        select(func.count(VoteRecord.id)).where(
            VoteRecord.feedback_id == feedback_id,
            VoteRecord.direction == "upvote",
        )
    )
    count = result.scalar_one()
    await db.commit()
    return count


async def _stored_upvotes(db: AsyncSession, feedback_id: int) -> int:
    result = await db.execute(select(FeedbackItem.upvotes).where(FeedbackItem.id == feedback_id))
    upvotes = result.scalar_one()
    await db.commit()
    return upvotes


# ---------------------------------------------------------------------------
# create / get
# ---------------------------------------------------------------------------


async def test_create_feedback_defaults(db: AsyncSession):
    item = await feedback_service.create_feedback(
        db,
        title="Add dark mode",
        description="Please add a dark theme for night use.",
        category="feature",
    )
    assert item.id is not None
    assert item.upvotes == 0
    assert item.category == "feature"
    assert item.created_at

    fetched = await feedback_service.get_feedback(db, item.id)
    assert fetched.title == "Add dark mode"
    assert fetched.upvotes == 0


async def test_create_feedback_assigns_increasing_ids(db: AsyncSession):
    first = await feedback_service.create_feedback(
        db, title="First one", description="The very first feedback item.", category="bug"
    )
    second = await feedback_service.create_feedback(
        db, title="Second one", description="The second feedback item here.", category="bug"
    )
    assert second.id > first.id > 0


@pytest.mark.parametrize(
    ("title", "description", "category"),
    [
        ("ab", "Long enough description.", "bug"),
        ("x" * 201, "Long enough description.", "bug"),
        ("Valid title", "too short", "bug"),
        ("Valid title", "Long enough description.", "question"),
    ],
)
async def test_create_feedback_rejects_invalid_input(
    db: AsyncSession, title: str, description: str, category: str
):
    with pytest.raises(ValidationError):
        await feedback_service.create_feedback(
            db, title=title, description=description, category=category
        )


async def test_get_feedback_not_found(db: AsyncSession):
    with pytest.raises(NotFoundError):
        await feedback_service.get_feedback(db, 9999)


# ---------------------------------------------------------------------------
# toggle
# ---------------------------------------------------------------------------


async def test_toggle_parity(db: AsyncSession):
    """Odd number of toggles leaves one upvote, even leaves none and no ledger row."""
    item = await create_feedback(db)
    await db.commit()

    for n in range(1, 7):
        result = await feedback_service.toggle_upvote(db, item.id, "session-1")
        expected = n % 2
        assert result.action == (VoteAction.ADDED if expected else VoteAction.REMOVED)
        assert result.item.upvotes == expected
        assert await _ledger_count(db, item.id) == expected


async def test_toggle_scenario_two_sessions(db: AsyncSession):
    item = await feedback_service.create_feedback(
        db,
        title="Add dark mode",
        description="A dark theme option for the whole app, please!",
        category="feature",
    )
    assert (await feedback_service.get_feedback(db, item.id)).upvotes == 0

    r1 = await feedback_service.toggle_upvote(db, item.id, "session-1")
    assert (r1.action, r1.item.upvotes) == (VoteAction.ADDED, 1)

    r2 = await feedback_service.toggle_upvote(db, item.id, "session-1")
    assert (r2.action, r2.item.upvotes) == (VoteAction.REMOVED, 0)

    r3 = await feedback_service.toggle_upvote(db, item.id, "session-1")
    assert (r3.action, r3.item.upvotes) == (VoteAction.ADDED, 1)

    r4 = await feedback_service.toggle_upvote(db, item.id, "session-2")
    assert (r4.action, r4.item.upvotes) == (VoteAction.ADDED, 2)


async def test_toggle_not_found_mutates_nothing(db: AsyncSession):
    with pytest.raises(NotFoundError):
        await feedback_service.toggle_upvote(db, 424242, "session-1")

    result = await db.execute(select(func.count(VoteRecord.id)))
    assert result.scalar_one() == 0


async def test_toggle_removal_never_goes_below_zero(db: AsyncSession):
    """A drifted counter already at zero stays at zero when the vote is withdrawn."""
    item = await create_feedback(db, upvotes=0)
    await create_vote(db, feedback_id=item.id, session_id="session-1")
    await db.commit()

    result = await feedback_service.toggle_upvote(db, item.id, "session-1")
    assert result.action == VoteAction.REMOVED
    assert result.item.upvotes == 0
    assert await _ledger_count(db, item.id) == 0


async def test_toggle_flips_legacy_downvote(db: AsyncSession):
    item = await create_feedback(db)
    await create_vote(db, feedback_id=item.id, session_id="session-1", direction="downvote")
    await db.commit()

    result = await feedback_service.toggle_upvote(db, item.id, "session-1")
    assert result.action == VoteAction.ADDED
    assert result.item.upvotes == 1

    status = await feedback_service.get_vote_status(db, item.id, "session-1")
    assert status.direction == VoteDirection.UPVOTE

    rows = await db.execute(select(func.count(VoteRecord.id)))
    assert rows.scalar_one() == 1


async def test_concurrent_toggles_from_different_sessions(session_factory):
    async with session_factory() as setup:
        item = await create_feedback(setup)
        await setup.commit()
        feedback_id = item.id

    async def toggle(session_id: str):
        async with session_factory() as session:
            return await feedback_service.toggle_upvote(session, feedback_id, session_id)

    results = await asyncio.gather(*(toggle(f"session-{n}") for n in range(8)))
    assert all(r.action == VoteAction.ADDED for r in results)

    async with session_factory() as check:
        assert await _stored_upvotes(check, feedback_id) == 8
        assert await _ledger_count(check, feedback_id) == 8


async def test_concurrent_toggles_after_reading_in_same_session(session_factory):
    """A read before the toggle must not leave it in a deferred transaction."""
    async with session_factory() as setup:
        item = await create_feedback(setup)
        await setup.commit()
        feedback_id = item.id

    async def read_then_toggle(session_id: str):
        async with session_factory() as session:
            status = await feedback_service.get_vote_status(session, feedback_id, session_id)
            assert not status.has_voted
            return await feedback_service.toggle_upvote(session, feedback_id, session_id)

    results = await asyncio.gather(*(read_then_toggle(f"session-{n}") for n in range(4)))
    assert all(r.action == VoteAction.ADDED for r in results)

    async with session_factory() as check:
        assert await _stored_upvotes(check, feedback_id) == 4
        assert await _ledger_count(check, feedback_id) == 4


async def test_concurrent_withdrawals_keep_counter_on_ledger(session_factory):
    """Sessions that already upvoted withdraw at once; the counter lands on the ledger."""
    async with session_factory() as setup:
        item = await create_feedback(setup, upvotes=6)
        for n in range(6):
            await create_vote(setup, item.id, f"session-{n}")
        await setup.commit()
        feedback_id = item.id

    async def toggle(session_id: str):
        async with session_factory() as session:
            return await feedback_service.toggle_upvote(session, feedback_id, session_id)

    results = await asyncio.gather(*(toggle(f"session-{n}") for n in range(6)))
    assert all(r.action == VoteAction.REMOVED for r in results)
    assert all(r.item.upvotes >= 0 for r in results)

    async with session_factory() as check:
        assert await _ledger_count(check, feedback_id) == 0
        assert await _stored_upvotes(check, feedback_id) == 0


async def test_concurrent_toggles_from_same_session(session_factory):
    """Two racing toggles serialize: one adds, the other removes, no duplicate row."""
    async with session_factory() as setup:
        item = await create_feedback(setup)
        await setup.commit()
        feedback_id = item.id

    async def toggle():
        async with session_factory() as session:
            return await feedback_service.toggle_upvote(session, feedback_id, "session-1")

    results = await asyncio.gather(toggle(), toggle())
    assert sorted(r.action.value for r in results) == ["added", "removed"]

    async with session_factory() as check:
        assert await _stored_upvotes(check, feedback_id) == 0
        assert await _ledger_count(check, feedback_id) == 0


# ---------------------------------------------------------------------------
# vote status
# ---------------------------------------------------------------------------


async def test_vote_status(db: AsyncSession):
    item = await create_feedback(db)
    await db.commit()

    status = await feedback_service.get_vote_status(db, item.id, "session-1")
    assert status.has_voted is False
    assert status.direction is None

    await feedback_service.toggle_upvote(db, item.id, "session-1")

    status = await feedback_service.get_vote_status(db, item.id, "session-1")
    assert status.has_voted is True
    assert status.direction == VoteDirection.UPVOTE

    other = await feedback_service.get_vote_status(db, item.id, "session-2")
    assert other.has_voted is False


async def test_vote_status_unknown_item(db: AsyncSession):
    status = await feedback_service.get_vote_status(db, 777, "session-1")
    assert status.has_voted is False


# ---------------------------------------------------------------------------
# store constraints
# ---------------------------------------------------------------------------


async def test_ledger_rejects_duplicate_session_vote(db: AsyncSession):
    item = await create_feedback(db)
    await create_vote(db, feedback_id=item.id, session_id="session-1")
    await db.commit()

    with pytest.raises(IntegrityError):
        await create_vote(db, feedback_id=item.id, session_id="session-1")
    await db.rollback()


async def test_deleting_feedback_cascades_to_votes(db: AsyncSession):
    item = await create_feedback(db)
    await create_vote(db, feedback_id=item.id, session_id="session-1")
    await create_vote(db, feedback_id=item.id, session_id="session-2")
    await db.commit()

    await db.execute(delete(FeedbackItem).where(FeedbackItem.id == item.id))
    await db.commit()

    result = await db.execute(select(func.count(VoteRecord.id)))
    assert result.scalar_one() == 0


# ---------------------------------------------------------------------------
# stats / reconcile
# ---------------------------------------------------------------------------


async def test_stats(db: AsyncSession):
    await create_feedback(db, category="bug", upvotes=2)
    await create_feedback(db, category="bug", upvotes=1)
    await create_feedback(db, category="feature", upvotes=4)
    await db.commit()

    stats = await feedback_service.get_stats(db)
    assert stats.total_feedback == 3
    assert stats.total_upvotes == 7
    assert stats.categories == {"bug": 2, "feature": 1, "improvement": 0}


async def test_reconcile_restores_counters_from_ledger(db: AsyncSession):
    drifted = await create_feedback(db, title="Drifted item")
    healthy = await create_feedback(db, title="Healthy item")
    await create_vote(db, feedback_id=drifted.id, session_id="session-1")
    await db.commit()

    await feedback_service.toggle_upvote(db, healthy.id, "session-1")
    await db.execute(
        update(FeedbackItem).where(FeedbackItem.id == drifted.id).values(upvotes=7)
    )
    await db.commit()

    corrections = await feedback_service.reconcile_upvotes(db)
    assert corrections == [(drifted.id, 7, 1)]
    assert await _stored_upvotes(db, drifted.id) == 1
    assert await _stored_upvotes(db, healthy.id) == 1

    assert await feedback_service.reconcile_upvotes(db) == []
