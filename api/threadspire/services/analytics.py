"""
View counting, interaction log and discovery rankings.

Counters are only ever changed with single-statement increments
(``UPDATE ... SET view_count = view_count + 1``) so concurrent viewers
never lose updates.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..cache import cache_get, cache_set
from ..errors import ConflictError
from ..settings import (
    DISCOVERY_CACHE_TTL_SECONDS,
    FEATURED_CANDIDATE_POOL,
    TRENDING_WINDOW_DAYS,
)
from . import thread_stats, threads
from .transactions import atomic

logger = logging.getLogger(__name__)

FORK_WEIGHT = 3
VIEW_WEIGHT = 0.1


def log_interaction(
    db: Session,
    thread_id: UUID,
    user_id: UUID,
    interaction_type: models.InteractionType,
) -> None:
    """Append an interaction log entry. Runs inside the caller's transaction."""
    db.add(
        models.InteractionLog(
            thread_id=thread_id,
            user_id=user_id,
            interaction_type=interaction_type.value,
        )
    )


def _analytics_row(db: Session, thread_id: UUID) -> schemas.ThreadAnalytics:
    row = db.get(models.ThreadAnalytics, thread_id)
    if row is None:
        return schemas.ThreadAnalytics(thread_id=thread_id)
    return schemas.ThreadAnalytics(
        thread_id=thread_id,
        view_count=row.view_count,
        unique_viewers=row.unique_viewers,
    )


def _ensure_analytics_row(db: Session, thread_id: UUID) -> None:
    """Create the counters row on first view. Two first views may race to insert it."""
    if db.get(models.ThreadAnalytics, thread_id) is not None:
        return
    try:
        with atomic(db, "create_thread_analytics"):
            db.add(models.ThreadAnalytics(thread_id=thread_id, view_count=0, unique_viewers=0))
    except ConflictError:
        if db.get(models.ThreadAnalytics, thread_id) is None:
            raise
        logger.debug(f"Analytics row for thread {thread_id} was created concurrently")


def record_view(db: Session, thread_id: UUID, user_id: UUID | None) -> schemas.ThreadAnalytics:
    """
    Count one view of a thread.

    ``view_count`` always goes up by one. For a signed-in viewer a ``view``
    log entry is appended, and ``unique_viewers`` goes up only when that entry
    is the viewer's first for this thread. Anonymous views never change
    ``unique_viewers``.
    """
    thread = threads.get_thread_row(db, thread_id)
    threads.check_read_access(thread, user_id)

    _ensure_analytics_row(db, thread_id)

    with atomic(db, "record_view"):
        increments = {models.ThreadAnalytics.view_count: models.ThreadAnalytics.view_count + 1}

        if user_id is not None:
            log_interaction(db, thread_id, user_id, models.InteractionType.VIEW)
            db.flush()
            prior_views = (
                db.query(func.count(models.InteractionLog.id))
                .filter(
                    models.InteractionLog.thread_id == thread_id,
                    models.InteractionLog.user_id == user_id,
                    models.InteractionLog.interaction_type == models.InteractionType.VIEW.value,
                )
                .scalar()
            )
            if prior_views == 1:
                increments[models.ThreadAnalytics.unique_viewers] = (
                    models.ThreadAnalytics.unique_viewers + 1
                )

        increments[models.ThreadAnalytics.updated_at] = datetime.now(timezone.utc)
        db.query(models.ThreadAnalytics).filter(
            models.ThreadAnalytics.thread_id == thread_id
        ).update(increments, synchronize_session=False)

    db.expire_all()
    logger.debug(f"Recorded view of thread {thread_id} by {user_id or 'anonymous'}")
    return _analytics_row(db, thread_id)


def get_thread_analytics(db: Session, thread_id: UUID, user_id: UUID | None) -> schemas.ThreadAnalytics:
    """Counters for a thread; zeros when it has never been viewed."""
    thread = threads.get_thread_row(db, thread_id)
    threads.check_read_access(thread, user_id)
    return _analytics_row(db, thread_id)


def get_thread_views_by_day(
    db: Session,
    thread_id: UUID,
    user_id: UUID | None,
    days: int = 30,
) -> list[schemas.DailyViews]:
    """
    Signed-in views per calendar day (UTC), oldest first.

    The series is dense: days without views are present with a zero count.
    """
    thread = threads.get_thread_row(db, thread_id)
    threads.check_read_access(thread, user_id)

    today = datetime.now(timezone.utc).date()
    first_day = today - timedelta(days=days - 1)
    since = datetime.combine(first_day, datetime.min.time(), tzinfo=timezone.utc)

    timestamps = (
        db.query(models.InteractionLog.created_at)
        .filter(
            models.InteractionLog.thread_id == thread_id,
            models.InteractionLog.interaction_type == models.InteractionType.VIEW.value,
            models.InteractionLog.created_at >= since,
        )
        .all()
    )
    per_day: Counter[date] = Counter(created_at.date() for (created_at,) in timestamps)

    return [
        schemas.DailyViews(date=day, count=per_day.get(day, 0))
        for day in (first_day + timedelta(days=offset) for offset in range(days))
    ]


def get_thread_interactions(
    db: Session,
    thread_id: UUID,
    user_id: UUID | None,
    limit: int = 100,
) -> list[schemas.Interaction]:
    """Most recent interactions on a thread. Only the owner may see them."""
    owner_id = threads.require_user(user_id, "view thread interactions")
    thread = threads.get_thread_row(db, thread_id)
    threads.require_owner(thread, owner_id, "view interactions on")

    rows = (
        db.query(models.InteractionLog)
        .filter(models.InteractionLog.thread_id == thread_id)
        .order_by(models.InteractionLog.created_at.desc(), models.InteractionLog.id.desc())
        .limit(limit)
        .all()
    )
    return [schemas.Interaction.model_validate(row) for row in rows]


# ============================================================================
# DISCOVERY
# ============================================================================


def _discoverable(query):
    return query.filter(
        models.Thread.is_published.is_(True),
        models.Thread.is_private.is_(False),
    )


def _load_with_segments(db: Session, thread_ids: list[UUID]) -> dict[UUID, models.Thread]:
    rows = (
        db.query(models.Thread)
        .options(selectinload(models.Thread.segments))
        .filter(models.Thread.id.in_(thread_ids))
        .all()
    )
    return {row.id: row for row in rows}


def get_trending_threads(
    db: Session,
    limit: int = 5,
    days: int = TRENDING_WINDOW_DAYS,
) -> list[schemas.TrendingThread]:
    """Published public threads with the most signed-in views in the last ``days`` days."""
    cache_key = f"discovery:trending:{limit}:{days}"
    cached = cache_get(cache_key)
    if cached is not None:
        return [schemas.TrendingThread.model_validate(item) for item in cached]

    since = datetime.now(timezone.utc) - timedelta(days=days)
    view_total = func.count(models.InteractionLog.id).label("recent_views")
    ranked = (
        _discoverable(
            db.query(models.InteractionLog.thread_id, view_total).join(
                models.Thread, models.Thread.id == models.InteractionLog.thread_id
            )
        )
        .filter(
            models.InteractionLog.interaction_type == models.InteractionType.VIEW.value,
            models.InteractionLog.created_at >= since,
        )
        .group_by(models.InteractionLog.thread_id)
        .order_by(view_total.desc(), models.InteractionLog.thread_id.asc())
        .limit(limit)
        .all()
    )

    rows = _load_with_segments(db, [thread_id for thread_id, _ in ranked])
    ordered = [rows[thread_id] for thread_id, _ in ranked if thread_id in rows]
    recent = dict(ranked)

    result = [
        schemas.TrendingThread(**detail.model_dump(), recent_views=recent[detail.id])
        for detail in threads.build_details(db, ordered)
    ]
    cache_set(cache_key, [item.model_dump(mode="json") for item in result], DISCOVERY_CACHE_TTL_SECONDS)
    return result


def get_featured_threads(db: Session, limit: int = 3) -> list[schemas.FeaturedThread]:
    """
    Highest-scoring threads among the most recently updated public ones.

    score = reactions + 3 * forks + 0.1 * views
    """
    cache_key = f"discovery:featured:{limit}"
    cached = cache_get(cache_key)
    if cached is not None:
        return [schemas.FeaturedThread.model_validate(item) for item in cached]

    candidates = (
        _discoverable(db.query(models.Thread))
        .options(selectinload(models.Thread.segments))
        .order_by(models.Thread.updated_at.desc(), models.Thread.id.asc())
        .limit(FEATURED_CANDIDATE_POOL)
        .all()
    )
    engagement = thread_stats.engagement_by_thread(db, [t.id for t in candidates])

    scores = {}
    for thread in candidates:
        reactions, views = engagement.get(thread.id, (0, 0))
        scores[thread.id] = reactions + FORK_WEIGHT * thread.fork_count + VIEW_WEIGHT * views

    # sorted() is stable, so equal scores keep the recency order
    top = sorted(candidates, key=lambda t: scores[t.id], reverse=True)[:limit]

    result = [
        schemas.FeaturedThread(**detail.model_dump(), feature_score=round(scores[detail.id], 2))
        for detail in threads.build_details(db, top)
    ]
    cache_set(cache_key, [item.model_dump(mode="json") for item in result], DISCOVERY_CACHE_TTL_SECONDS)
    return result


def get_related_threads(
    db: Session,
    thread_id: UUID,
    user_id: UUID | None,
    limit: int = 3,
) -> list[schemas.RelatedThread]:
    """
    Published public threads sharing at least one tag with ``thread_id``.

    Ranked by the number of shared tags, then newest first. The thread itself
    is never included, and a thread without tags has no related threads.
    """
    thread = threads.get_thread_row(db, thread_id)
    threads.check_read_access(thread, user_id)

    own_tags = db.query(models.ThreadTag.tag_id).filter(models.ThreadTag.thread_id == thread_id)
    shared = func.count(models.ThreadTag.tag_id).label("shared_tags")
    ranked = (
        _discoverable(
            db.query(models.ThreadTag.thread_id, shared).join(
                models.Thread, models.Thread.id == models.ThreadTag.thread_id
            )
        )
        .filter(
            models.ThreadTag.tag_id.in_(own_tags.scalar_subquery()),
            models.ThreadTag.thread_id != thread_id,
        )
        .group_by(models.ThreadTag.thread_id, models.Thread.created_at)
        .order_by(shared.desc(), models.Thread.created_at.desc(), models.ThreadTag.thread_id.asc())
        .limit(limit)
        .all()
    )

    rows = _load_with_segments(db, [related_id for related_id, _ in ranked])
    ordered = [rows[related_id] for related_id, _ in ranked if related_id in rows]
    counts = dict(ranked)

    return [
        schemas.RelatedThread(**detail.model_dump(), shared_tags=counts[detail.id])
        for detail in threads.build_details(db, ordered)
    ]
