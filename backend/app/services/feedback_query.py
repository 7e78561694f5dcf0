"""Listing queries over the feedback store.

Every filter (category, full-text search, "my upvotes" scope) is an independent
predicate on a single SELECT, so any combination intersects rather than one
replacing another. The page slice and the total count are taken from the same
filtered statement.
"""

import math
from dataclasses import dataclass

from sqlalchemy import Select, and_, desc, false, func, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.enums import Category, SortOrder, VoteDirection
from backend.app.models.feedback import FeedbackItem, VoteRecord, feedback_search

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

# Upper-case FTS5 operators typed between words are connectors, not search terms.
_FTS_OPERATORS = frozenset({"OR", "AND", "NOT", "NEAR"})


@dataclass(frozen=True)
class FeedbackQuery:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    category: Category | None = None
    sort_by: SortOrder = SortOrder.RECENT
    search: str | None = None
    my_upvotes: bool = False
    session_id: str | None = None


@dataclass
class FeedbackPage:
    items: list[FeedbackItem]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def build_match_expression(search: str | None) -> str | None:
    """Turn free text into an FTS5 MATCH expression where any word may match.

    Each whitespace-separated word becomes a quoted term, so punctuation in user
    input can never be parsed as FTS5 syntax. Returns None when nothing
    searchable is left.
    """
    if not search:
        return None

    terms = []
    for token in search.split():
        if token in _FTS_OPERATORS or not any(ch.isalnum() for ch in token):
            continue
        terms.append('"' + token.replace('"', '""') + '"')

    return " OR ".join(terms) if terms else None


def _filtered_statement(query: FeedbackQuery, match: str | None) -> Select:
    stmt = select(FeedbackItem)

    if query.category is not None:
        stmt = stmt.where(FeedbackItem.category == Category(query.category).value)

    if match is not None:
        stmt = stmt.join(feedback_search, feedback_search.c.rowid == FeedbackItem.id).where(
            literal_column("feedback_search").op("MATCH")(match)
        )

    if query.my_upvotes:
        if query.session_id is None:
            stmt = stmt.where(false())
        else:
            stmt = stmt.join(
                VoteRecord,
                and_(
                    VoteRecord.feedback_id == FeedbackItem.id,
                    VoteRecord.session_id == query.session_id,
                    VoteRecord.direction == VoteDirection.UPVOTE.value,
                ),
            )

    return stmt


def _ordering(sort_by: SortOrder, searching: bool) -> list:
    order = []
    if sort_by == SortOrder.UPVOTES:
        order.append(desc(FeedbackItem.upvotes))
    order.append(desc(FeedbackItem.created_at))
    if searching:
        # FTS5 rank: lower is more relevant
        order.append(feedback_search.c.rank)
    order.append(desc(FeedbackItem.id))
    return order


async def list_feedback(db: AsyncSession, query: FeedbackQuery) -> FeedbackPage:
    """Return one page of feedback matching every filter in ``query``."""
    match = build_match_expression(query.search)
    stmt = _filtered_statement(query, match)

    count_result = await db.execute(select(func.count()).select_from(stmt.subquery()))
    total = count_result.scalar_one()

    page_stmt = (
        stmt.order_by(*_ordering(SortOrder(query.sort_by), match is not None))
        .limit(query.limit)
        .offset((query.page - 1) * query.limit)
    )
    result = await db.execute(page_stmt)

    return FeedbackPage(
        items=list(result.scalars().all()),
        page=query.page,
        limit=query.limit,
        total=total,
    )
