"""
Thread statistics helpers for efficiently adding counts to threads.

Counts are fetched with GROUP BY queries over all requested threads at once
and merged in memory by the callers.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models

logger = logging.getLogger(__name__)


def empty_reaction_counts() -> dict[str, int]:
    """Zero-filled count map with every reaction type present."""
    return {reaction.value: 0 for reaction in models.ReactionType}


def reaction_counts(db: Session, thread_id: UUID, segment_id: UUID | None = None) -> dict[str, int]:
    """
    Per-type reaction counts for one target.

    ``segment_id=None`` means thread-level reactions only; segment reactions
    are counted on their own segment.
    """
    query = db.query(
        models.Reaction.type,
        func.count(models.Reaction.id).label("total"),
    ).filter(models.Reaction.thread_id == thread_id)

    if segment_id is None:
        query = query.filter(models.Reaction.segment_id.is_(None))
    else:
        query = query.filter(models.Reaction.segment_id == segment_id)

    counts = empty_reaction_counts()
    for row in query.group_by(models.Reaction.type).all():
        if row.type in counts:
            counts[row.type] = row.total
    return counts


def reaction_totals_by_thread(db: Session, thread_ids: list[UUID]) -> dict[UUID, dict[str, int]]:
    """
    Per-type reaction totals for many threads, thread and segment reactions combined.
    """
    totals: dict[UUID, dict[str, int]] = {tid: empty_reaction_counts() for tid in thread_ids}
    if not thread_ids:
        return totals

    rows = (
        db.query(
            models.Reaction.thread_id,
            models.Reaction.type,
            func.count(models.Reaction.id).label("total"),
        )
        .filter(models.Reaction.thread_id.in_(thread_ids))
        .group_by(models.Reaction.thread_id, models.Reaction.type)
        .all()
    )
    for row in rows:
        if row.type in totals[row.thread_id]:
            totals[row.thread_id][row.type] = row.total
    return totals


def bookmark_counts(db: Session, thread_ids: list[UUID]) -> dict[UUID, int]:
    if not thread_ids:
        return {}

    rows = (
        db.query(models.Bookmark.thread_id, func.count().label("count"))
        .filter(models.Bookmark.thread_id.in_(thread_ids))
        .group_by(models.Bookmark.thread_id)
        .all()
    )
    return {thread_id: count for thread_id, count in rows}


def tag_names_by_thread(db: Session, thread_ids: list[UUID]) -> dict[UUID, list[str]]:
    """
    Tag names per thread, alphabetical.

    Tags are decoration: if the lookup fails the threads are returned without
    tags instead of failing the read.
    """
    names: dict[UUID, list[str]] = defaultdict(list)
    if not thread_ids:
        return names

    try:
        rows = (
            db.query(models.ThreadTag.thread_id, models.Tag.name)
            .join(models.Tag, models.Tag.id == models.ThreadTag.tag_id)
            .filter(models.ThreadTag.thread_id.in_(thread_ids))
            .order_by(models.Tag.name.asc())
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Tag lookup failed for {len(thread_ids)} threads: {e}")
        return names

    for thread_id, name in rows:
        names[thread_id].append(name)
    return names


def engagement_by_thread(db: Session, thread_ids: list[UUID]) -> dict[UUID, tuple[int, int]]:
    """(total reactions, view_count) per thread, used for feature scoring."""
    if not thread_ids:
        return {}

    reactions = dict(
        db.query(models.Reaction.thread_id, func.count(models.Reaction.id))
        .filter(models.Reaction.thread_id.in_(thread_ids))
        .group_by(models.Reaction.thread_id)
        .all()
    )
    views = dict(
        db.query(models.ThreadAnalytics.thread_id, models.ThreadAnalytics.view_count)
        .filter(models.ThreadAnalytics.thread_id.in_(thread_ids))
        .all()
    )
    return {tid: (reactions.get(tid, 0), views.get(tid, 0)) for tid in thread_ids}
