"""Feedback request/response schemas."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.app.enums import Category, SortOrder, VoteAction, VoteDirection


class _CamelModel(BaseModel):
    """Serialized with camelCase keys; accepts snake_case names on construction."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeedbackCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    category: Category


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    category: Category
    upvotes: int
    created_at: str


class PaginationResponse(_CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class FiltersResponse(_CamelModel):
    category: Category | None = None
    sort_by: SortOrder = SortOrder.RECENT
    search: str | None = None
    my_upvotes: bool = False


class FeedbackListResponse(BaseModel):
    items: list[FeedbackResponse]
    pagination: PaginationResponse
    filters: FiltersResponse


class VoteToggleResponse(BaseModel):
    action: VoteAction
    item: FeedbackResponse


class VoteStatusResponse(_CamelModel):
    has_voted: bool
    direction: VoteDirection | None = None


class FeedbackStatsResponse(_CamelModel):
    total_feedback: int
    total_upvotes: int
    categories: dict[str, int]
