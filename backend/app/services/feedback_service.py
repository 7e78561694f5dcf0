"""Feedback creation, lookup, and the per-session upvote toggle.

The ``upvotes`` column is a cached count of upvote rows in ``user_votes``. The
toggle changes the ledger row and the counter in the same transaction, opened
with the SQLite write lock held, so the two can never be observed out of step.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db import begin_write
from backend.app.enums import Category, VoteAction, VoteDirection
from backend.app.errors import NotFoundError, StorageError, ValidationError
from backend.app.models.feedback import FeedbackItem, VoteRecord

logger = logging.getLogger(__name__)

TITLE_LENGTH = (3, 200)
DESCRIPTION_LENGTH = (10, 2000)


@dataclass
class ToggleResult:
    item: FeedbackItem
    action: VoteAction


@dataclass
class VoteStatus:
    has_voted: bool
    direction: VoteDirection | None = None


@dataclass
class FeedbackStats:
    total_feedback: int
    total_upvotes: int
    categories: dict[str, int]


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _check_length(field: str, value: str, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if not low <= len(value.strip()) <= high:
        raise ValidationError(f"{field} must be between {low} and {high} characters")


async def create_feedback(
    db: AsyncSession, title: str, description: str, category: Category | str
) -> FeedbackItem:
    _check_length("Title", title, TITLE_LENGTH)
    _check_length("Description", description, DESCRIPTION_LENGTH)
    try:
        category = Category(category)
    except ValueError:
        choices = ", ".join(c.value for c in Category)
        raise ValidationError(f"Category must be one of: {choices}") from None

    item = FeedbackItem(
        title=title,
        description=description,
        category=category.value,
        upvotes=0,
        created_at=_now(),
    )
    db.add(item)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise StorageError("Failed to create feedback") from exc

    logger.info("Created feedback %d (%s)", item.id, item.category)
    return item


async def get_feedback(db: AsyncSession, feedback_id: int) -> FeedbackItem:
    item = await db.get(FeedbackItem, feedback_id, populate_existing=True)
    if item is None:
        raise NotFoundError(f"No feedback found with ID {feedback_id}")
    return item


async def toggle_upvote(db: AsyncSession, feedback_id: int, session_id: str) -> ToggleResult:
    """Add the session's upvote if it has none, otherwise withdraw it.

    A legacy downvote row is flipped to an upvote. Raises NotFoundError before
    touching anything when the item does not exist.
    """
    try:
        await begin_write(db)

        item = await db.get(FeedbackItem, feedback_id, populate_existing=True)
        if item is None:
            await db.rollback()
            raise NotFoundError(f"No feedback found with ID {feedback_id}")

        result = await db.execute(
            select(VoteRecord).where(
                VoteRecord.session_id == session_id,
                VoteRecord.feedback_id == feedback_id,
            )
        )
        vote = result.scalar_one_or_none()

        if vote is not None and vote.direction == VoteDirection.UPVOTE.value:
            removed = await db.execute(delete(VoteRecord).where(VoteRecord.id == vote.id))
            if removed.rowcount:
                await db.execute(
                    update(FeedbackItem)
                    .where(FeedbackItem.id == feedback_id)
                    .values(
                        upvotes=case(
                            (FeedbackItem.upvotes > 0, FeedbackItem.upvotes - 1),
                            else_=0,
                        )
                    )
                    .execution_options(synchronize_session=False)
                )
            action = VoteAction.REMOVED
        else:
            if vote is None:
                db.add(
                    VoteRecord(
                        session_id=session_id,
                        feedback_id=feedback_id,
                        direction=VoteDirection.UPVOTE.value,
                        created_at=_now(),
                    )
                )
            else:
                vote.direction = VoteDirection.UPVOTE.value
                vote.created_at = _now()
            # Unique (session_id, feedback_id) is checked here, before the counter moves.
            await db.flush()
            await db.execute(
                update(FeedbackItem)
                .where(FeedbackItem.id == feedback_id)
                .values(upvotes=FeedbackItem.upvotes + 1)
                .execution_options(synchronize_session=False)
            )
            action = VoteAction.ADDED

        await db.refresh(item)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise StorageError(f"Failed to toggle upvote on feedback {feedback_id}") from exc

    logger.info(
        "Upvote %s on feedback %d (now %d)", action.value, feedback_id, item.upvotes
    )
    return ToggleResult(item=item, action=action)


async def get_vote_status(db: AsyncSession, feedback_id: int, session_id: str) -> VoteStatus:
    result = await db.execute(
        select(VoteRecord.direction).where(
            VoteRecord.session_id == session_id,
            VoteRecord.feedback_id == feedback_id,
        )
    )
    direction = result.scalar_one_or_none()
    if direction is None:
        return VoteStatus(has_voted=False)
    return VoteStatus(has_voted=True, direction=VoteDirection(direction))


async def get_stats(db: AsyncSession) -> FeedbackStats:
    result = await db.execute(
        select(
            FeedbackItem.category,
            func.count(FeedbackItem.id),
            func.coalesce(func.sum(FeedbackItem.upvotes), 0),
        ).group_by(FeedbackItem.category)
    )

    categories = {c.value: 0 for c in Category}
    total_upvotes = 0
    for category, count, upvotes in result.all():
        categories[category] = count
        total_upvotes += upvotes

    return FeedbackStats(
        total_feedback=sum(categories.values()),
        total_upvotes=total_upvotes,
        categories=categories,
    )


async def reconcile_upvotes(db: AsyncSession) -> list[tuple[int, int, int]]:
    """Recompute every counter from the vote ledger and fix the ones that drifted.

    Returns ``(feedback_id, old_count, new_count)`` for each corrected item.
    """
    upvote_counts = (
        select(VoteRecord.feedback_id, func.count(VoteRecord.id).label("n"))
        .where(VoteRecord.direction == VoteDirection.UPVOTE.value)
        .group_by(VoteRecord.feedback_id)
        .subquery()
    )

    try:
        await begin_write(db)
        rows = await db.execute(
            select(
                FeedbackItem.id,
                FeedbackItem.upvotes,
                func.coalesce(upvote_counts.c.n, 0),
            )
            .outerjoin(upvote_counts, upvote_counts.c.feedback_id == FeedbackItem.id)
            .order_by(FeedbackItem.id)
        )
        corrections = [(fid, old, new) for fid, old, new in rows.all() if old != new]

        for fid, old, new in corrections:
            await db.execute(
                update(FeedbackItem)
                .where(FeedbackItem.id == fid)
                .values(upvotes=new)
                .execution_options(synchronize_session=False)
            )
            logger.warning("Upvote counter drift on feedback %d: %d -> %d", fid, old, new)

        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise StorageError("Failed to reconcile upvote counters") from exc

    return corrections
