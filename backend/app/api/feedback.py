"""Feedback endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from pydantic import StringConstraints
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.deps import get_session_id
from backend.app.db import get_db
from backend.app.enums import Category, SortOrder
from backend.app.models.feedback import FeedbackItem
from backend.app.schemas.feedback import (
    FeedbackCreate,
    FeedbackListResponse,
    FeedbackResponse,
    FeedbackStatsResponse,
    FiltersResponse,
    PaginationResponse,
    VoteStatusResponse,
    VoteToggleResponse,
)
from backend.app.services import feedback_service
from backend.app.services.feedback_query import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    FeedbackQuery,
    build_match_expression,
    list_feedback,
)

router = APIRouter(prefix="/feedback", tags=["feedback"])

MAX_SEARCH_LENGTH = 100

SearchText = Annotated[
    str, StringConstraints(strip_whitespace=True, max_length=MAX_SEARCH_LENGTH)
]


@router.get("", response_model=FeedbackListResponse)
async def list_feedback_items(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    category: Category | None = None,
    sort_by: SortOrder = Query(SortOrder.RECENT, alias="sortBy"),
    search: SearchText | None = None,
    my_upvotes: bool = Query(False, alias="myUpvotes"),
    session_id: str = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> FeedbackListResponse:
    # Blank or operator-only input applies no search, so none is echoed either
    if build_match_expression(search) is None:
        search = None

    result = await list_feedback(
        db,
        FeedbackQuery(
            page=page,
            limit=limit,
            category=category,
            sort_by=sort_by,
            search=search,
            my_upvotes=my_upvotes,
            session_id=session_id,
        ),
    )

    return FeedbackListResponse(
        items=[FeedbackResponse.model_validate(item) for item in result.items],
        pagination=PaginationResponse(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
            has_next=result.has_next,
            has_prev=result.has_prev,
        ),
        filters=FiltersResponse(
            category=category,
            sort_by=sort_by,
            search=search,
            my_upvotes=my_upvotes,
        ),
    )


@router.post("", response_model=FeedbackResponse, status_code=201)
async def create_feedback(
    data: FeedbackCreate, db: AsyncSession = Depends(get_db)
) -> FeedbackItem:
    return await feedback_service.create_feedback(
        db, title=data.title, description=data.description, category=data.category
    )


@router.get("/stats", response_model=FeedbackStatsResponse)
async def feedback_stats(db: AsyncSession = Depends(get_db)) -> FeedbackStatsResponse:
    stats = await feedback_service.get_stats(db)
    return FeedbackStatsResponse(
        total_feedback=stats.total_feedback,
        total_upvotes=stats.total_upvotes,
        categories=stats.categories,
    )


@router.get("/{feedback_id}", response_model=FeedbackResponse)
async def get_feedback(
    feedback_id: int = Path(ge=1), db: AsyncSession = Depends(get_db)
) -> FeedbackItem:
    return await feedback_service.get_feedback(db, feedback_id)


@router.post("/{feedback_id}/upvote", response_model=VoteToggleResponse)
async def toggle_upvote(
    feedback_id: int = Path(ge=1),
    session_id: str = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> VoteToggleResponse:
    result = await feedback_service.toggle_upvote(db, feedback_id, session_id)
    return VoteToggleResponse(
        action=result.action,
        item=FeedbackResponse.model_validate(result.item),
    )


@router.get("/{feedback_id}/vote-status", response_model=VoteStatusResponse)
async def vote_status(
    feedback_id: int = Path(ge=1),
    session_id: str = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> VoteStatusResponse:
    status = await feedback_service.get_vote_status(db, feedback_id, session_id)
    return VoteStatusResponse(has_voted=status.has_voted, direction=status.direction)
