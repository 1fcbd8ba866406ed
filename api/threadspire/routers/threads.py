"""Thread endpoints: content store, forks, lineage, views and discovery."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user_id_optional
from ..deps import get_db
from ..services import analytics, forks, threads
from ..settings import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, TRENDING_WINDOW_DAYS

router = APIRouter(prefix="/thread", tags=["Threads"])


@router.post("", response_model=schemas.ThreadDetail, status_code=status.HTTP_201_CREATED)
def create_thread(
    payload: schemas.ThreadCreate,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ThreadDetail:
    """Publish a thread from a list of segment contents."""
    return threads.create_thread(
        db,
        user_id,
        title=payload.title,
        segments=payload.segments,
        tags=payload.tags,
        cover_image=payload.cover_image,
        is_published=payload.is_published,
        is_private=payload.is_private,
        original_thread_id=payload.original_thread_id,
    )


@router.get("", response_model=schemas.Page[schemas.ThreadListItem])
def list_threads(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    tags: list[str] = Query(default=[]),
    owner_id: UUID | None = Query(None),
    only_published: bool = Query(True),
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.Page[schemas.ThreadListItem]:
    """
    List threads.

    Anonymous callers only see public threads. With ``only_published=false``
    a signed-in caller also sees their own unpublished threads.
    """
    return threads.get_threads(
        db,
        user_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        tags=tags,
        owner_id=owner_id,
        only_published=only_published,
    )


@router.get("/featured", response_model=list[schemas.FeaturedThread])
def featured_threads(
    limit: int = Query(3, ge=1, le=20),
    db: Session = Depends(get_db),
) -> list[schemas.FeaturedThread]:
    return analytics.get_featured_threads(db, limit=limit)


@router.get("/trending", response_model=list[schemas.TrendingThread])
def trending_threads(
    limit: int = Query(5, ge=1, le=50),
    days: int = Query(TRENDING_WINDOW_DAYS, ge=1, le=90),
    db: Session = Depends(get_db),
) -> list[schemas.TrendingThread]:
    return analytics.get_trending_threads(db, limit=limit, days=days)


@router.get("/{id}", response_model=schemas.ThreadDetail)
def get_thread(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ThreadDetail:
    """Full thread with ordered segments. Counts as a view."""
    thread = threads.get_thread_by_id(db, id, user_id)
    analytics.record_view(db, id, user_id)
    return thread


@router.patch("/{id}", response_model=schemas.ThreadDetail)
def update_thread(
    id: UUID,
    payload: schemas.ThreadUpdate,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ThreadDetail:
    """Edit a thread. ``segments`` and ``tags`` replace the existing sets."""
    segments = None
    if payload.segments is not None:
        segments = [
            segment.content if isinstance(segment, schemas.SegmentInput) else segment
            for segment in payload.segments
        ]

    return threads.update_thread(
        db,
        id,
        user_id,
        title=payload.title,
        segments=segments,
        tags=payload.tags,
        cover_image=payload.cover_image,
        is_published=payload.is_published,
        is_private=payload.is_private,
        expected_version=payload.expected_version,
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_thread(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> None:
    threads.delete_thread(db, id, user_id)


@router.post("/{id}/fork", response_model=schemas.ForkResponse, status_code=status.HTTP_201_CREATED)
def fork_thread(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ForkResponse:
    """Fork a thread. Returns only the new id; fetch the thread to see it."""
    return schemas.ForkResponse(id=forks.fork_thread(db, id, user_id))


@router.get("/{id}/lineage", response_model=list[schemas.Thread])
def thread_lineage(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.Thread]:
    return threads.get_thread_lineage(db, id, user_id)


@router.get("/{id}/forks", response_model=list[schemas.Thread])
def thread_forks(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.Thread]:
    return threads.get_forks(db, id, user_id)


@router.get("/{id}/related", response_model=list[schemas.RelatedThread])
def related_threads(
    id: UUID,
    limit: int = Query(3, ge=1, le=20),
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.RelatedThread]:
    """Public threads that share tags with this one, most shared tags first."""
    return analytics.get_related_threads(db, id, user_id, limit=limit)


@router.post("/{id}/views", response_model=schemas.ThreadAnalytics)
def record_view(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ThreadAnalytics:
    return analytics.record_view(db, id, user_id)


@router.get("/{id}/analytics", response_model=schemas.ThreadAnalytics)
def thread_analytics(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ThreadAnalytics:
    return analytics.get_thread_analytics(db, id, user_id)


@router.get("/{id}/analytics/daily", response_model=list[schemas.DailyViews])
def thread_views_by_day(
    id: UUID,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.DailyViews]:
    return analytics.get_thread_views_by_day(db, id, user_id, days=days)


@router.get("/{id}/interactions", response_model=list[schemas.Interaction])
def thread_interactions(
    id: UUID,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.Interaction]:
    """Recent interactions on one of the caller's threads."""
    return analytics.get_thread_interactions(db, id, user_id, limit=limit)
