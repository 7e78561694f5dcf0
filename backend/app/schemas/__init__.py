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

__all__ = [
    "FeedbackCreate",
    "FeedbackResponse",
    "FeedbackListResponse",
    "PaginationResponse",
    "FiltersResponse",
    "VoteToggleResponse",
    "VoteStatusResponse",
    "FeedbackStatsResponse",
]
