from __future__ import annotations

from datetime import date, datetime
from typing import Any, Generic, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import ReactionType


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Problem(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs."""

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str | None = None


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Generic offset-paginated response."""

    items: list[T]
    total: int
    page: int
    limit: int


# ============================================================================
# HEALTH & CONFIG
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


class Config(BaseModel):
    """Public system configuration."""

    reaction_types: list[str]
    max_tags_per_thread: int
    max_tag_length: int
    snippet_length: int
    max_page_size: int


# ============================================================================
# PROFILE SCHEMAS
# ============================================================================


class Author(BaseModel):
    id: UUID
    name: str
    avatar_url: str | None = None


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, max_length=100)
    avatar_url: str | None = Field(None, max_length=500)


# ============================================================================
# THREAD SCHEMAS
# ============================================================================


class Segment(BaseModel):
    id: UUID
    thread_id: UUID
    content: str
    order_index: int

    model_config = ConfigDict(from_attributes=True)


class Thread(BaseModel):
    """Thread row without its segments."""

    id: UUID
    owner_id: UUID
    title: str
    is_published: bool
    is_private: bool
    cover_image: str | None = None
    snippet: str | None = None
    original_thread_id: UUID | None = None
    fork_count: int = 0
    version: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ThreadDetail(Thread):
    """Thread with ordered segments, tag names, reaction counts and author."""

    segments: list[Segment] = []
    tags: list[str] = []
    reaction_counts: dict[str, int] = {}
    author: Author


class ThreadListItem(ThreadDetail):
    bookmarks: int = 0


class ThreadPlaceholder(BaseModel):
    """Stand-in for a collection member that could not be resolved."""

    id: UUID
    title: str
    unavailable: Literal[True] = True


class ThreadCreate(BaseModel):
    title: str = Field(..., max_length=200)
    segments: list[str]
    tags: list[str] = Field(default_factory=list)
    cover_image: str | None = Field(None, max_length=1000)
    is_published: bool = True
    is_private: bool = False
    original_thread_id: UUID | None = None


class SegmentInput(BaseModel):
    content: str


class ThreadUpdate(BaseModel):
    """Partial update. ``segments`` and ``tags`` replace the whole set when present."""

    title: str | None = Field(None, max_length=200)
    segments: list[SegmentInput | str] | None = None
    tags: list[str] | None = None
    cover_image: str | None = Field(None, max_length=1000)
    is_published: bool | None = None
    is_private: bool | None = None
    expected_version: int | None = None


class ForkResponse(BaseModel):
    id: UUID


# ============================================================================
# DRAFT SCHEMAS
# ============================================================================


class DraftSegment(BaseModel):
    content: str
    type: str = "text"


class Draft(BaseModel):
    """Draft with content normalized to an ordered list."""

    id: UUID
    owner_id: UUID
    title: str
    content: list[DraftSegment]
    tags: list[str] = []
    cover_image: str | None = None
    is_private: bool = False
    created_at: datetime
    updated_at: datetime | None = None


class DraftCreate(BaseModel):
    title: str = Field("", max_length=200)
    # Anything the editor produced: list, object, or (legacy) string.
    content: Any = None
    tags: list[str] = Field(default_factory=list)
    cover_image: str | None = Field(None, max_length=1000)
    is_private: bool = False


class DraftUpdate(DraftCreate):
    pass


# ============================================================================
# REACTION SCHEMAS
# ============================================================================


class ReactionTotals(BaseModel):
    """Reaction totals for one target."""

    thread_id: UUID
    segment_id: UUID | None = None
    counts: dict[str, int]  # every reaction type, zero-filled
    mine: list[ReactionType]  # 0 or 1 entries


class ReactionUser(BaseModel):
    user_id: UUID
    type: str
    segment_id: UUID | None = None
    user_name: str
    user_avatar: str | None = None
    created_at: datetime


# ============================================================================
# ANALYTICS SCHEMAS
# ============================================================================


class ThreadAnalytics(BaseModel):
    thread_id: UUID
    view_count: int = 0
    unique_viewers: int = 0


class DailyViews(BaseModel):
    date: date
    count: int


class Interaction(BaseModel):
    interaction_type: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeaturedThread(ThreadDetail):
    feature_score: float


class TrendingThread(ThreadDetail):
    recent_views: int


class RelatedThread(ThreadDetail):
    shared_tags: int


# ============================================================================
# COLLECTION SCHEMAS
# ============================================================================


class Collection(BaseModel):
    id: UUID
    owner_id: UUID
    name: str
    is_private: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CollectionWithThreads(Collection):
    threads: list[ThreadDetail | ThreadPlaceholder] = []


class CollectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    is_private: bool = True


class CollectionUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    is_private: bool | None = None


class CollectionMembership(BaseModel):
    collection_id: UUID
    thread_id: UUID
    member: bool


# ============================================================================
# BOOKMARK SCHEMAS
# ============================================================================


class Bookmark(BaseModel):
    thread_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookmarkState(BaseModel):
    thread_id: UUID
    bookmarked: bool
