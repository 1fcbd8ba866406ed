"""
Reaction aggregator.

A user holds at most one reaction per target, where a target is a thread
(``segment_id`` None) or one of its segments:

    no reaction --add(t)--> reacted(t)
    reacted(t)  --add(t)--> no reaction        (toggle off)
    reacted(t)  --add(u)--> reacted(u)         (replace)
    reacted(t)  --remove(t)--> no reaction
    anything    --remove(x)--> unchanged when x is not held

After every change the recomputed count map is published to listeners of
the target through the reaction hub.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import NotFoundError, ValidationError
from ..realtime import reaction_hub
from . import thread_stats, threads
from .analytics import log_interaction
from .profiles import resolve_authors
from .transactions import atomic

logger = logging.getLogger(__name__)


def parse_reaction_type(value: str) -> models.ReactionType:
    """Accept the emoji itself or the enum name (``"FIRE"``)."""
    try:
        return models.ReactionType(value)
    except ValueError:
        pass
    try:
        return models.ReactionType[value.upper()]
    except KeyError:
        allowed = " ".join(r.value for r in models.ReactionType)
        raise ValidationError(f"Unknown reaction '{value}'. Allowed: {allowed}") from None


def _check_target(db: Session, thread_id: UUID, segment_id: UUID | None, user_id: UUID | None):
    thread = threads.get_thread_row(db, thread_id)
    threads.check_read_access(thread, user_id)
    if segment_id is not None:
        segment = db.get(models.ThreadSegment, segment_id)
        if segment is None or segment.thread_id != thread_id:
            raise NotFoundError(f"Segment {segment_id} not found in thread {thread_id}")


def _target_filter(query, thread_id: UUID, segment_id: UUID | None, user_id: UUID):
    query = query.filter(
        models.Reaction.thread_id == thread_id,
        models.Reaction.user_id == user_id,
    )
    if segment_id is None:
        return query.filter(models.Reaction.segment_id.is_(None))
    return query.filter(models.Reaction.segment_id == segment_id)


def _notify(db: Session, thread_id: UUID, segment_id: UUID | None) -> dict[str, int]:
    counts = thread_stats.reaction_counts(db, thread_id, segment_id)
    reaction_hub.publish(thread_id, segment_id, counts)
    return counts


def _totals(db: Session, thread_id: UUID, segment_id: UUID | None, user_id: UUID | None, counts=None):
    if counts is None:
        counts = thread_stats.reaction_counts(db, thread_id, segment_id)
    return schemas.ReactionTotals(
        thread_id=thread_id,
        segment_id=segment_id,
        counts=counts,
        mine=get_user_reactions(db, thread_id, user_id, segment_id),
    )


def add_reaction(
    db: Session,
    thread_id: UUID,
    reaction_type: models.ReactionType,
    user_id: UUID | None,
    segment_id: UUID | None = None,
) -> schemas.ReactionTotals:
    """
    React to a thread or segment.

    Adding the reaction the user already holds removes it. Adding a different
    one replaces it.
    """
    reactor_id = threads.require_user(user_id, "react")
    _check_target(db, thread_id, segment_id, reactor_id)

    with atomic(db, "add_reaction"):
        existing = _target_filter(db.query(models.Reaction), thread_id, segment_id, reactor_id).first()

        if existing is not None and existing.type == reaction_type.value:
            db.delete(existing)
            action = "removed"
        else:
            if existing is not None:
                db.delete(existing)
                # The unique index covers (target, user): the old row must be gone first.
                db.flush()
            db.add(
                models.Reaction(
                    thread_id=thread_id,
                    segment_id=segment_id,
                    user_id=reactor_id,
                    type=reaction_type.value,
                )
            )
            log_interaction(db, thread_id, reactor_id, models.InteractionType.REACTION)
            action = "replaced" if existing is not None else "added"

    logger.info(
        f"Reaction {reaction_type.value} {action} by {reactor_id} on thread {thread_id}"
        + (f" segment {segment_id}" if segment_id else "")
    )
    counts = _notify(db, thread_id, segment_id)
    return _totals(db, thread_id, segment_id, reactor_id, counts)


def remove_reaction(
    db: Session,
    thread_id: UUID,
    reaction_type: models.ReactionType,
    user_id: UUID | None,
    segment_id: UUID | None = None,
) -> schemas.ReactionTotals:
    """Remove the caller's reaction of this type. Removing a reaction not held is a no-op."""
    reactor_id = threads.require_user(user_id, "react")
    threads.get_thread_row(db, thread_id)

    with atomic(db, "remove_reaction"):
        deleted = (
            _target_filter(db.query(models.Reaction), thread_id, segment_id, reactor_id)
            .filter(models.Reaction.type == reaction_type.value)
            .delete(synchronize_session=False)
        )

    if not deleted:
        return _totals(db, thread_id, segment_id, reactor_id)

    logger.info(f"Reaction {reaction_type.value} removed by {reactor_id} on thread {thread_id}")
    counts = _notify(db, thread_id, segment_id)
    return _totals(db, thread_id, segment_id, reactor_id, counts)


def get_reaction_counts(
    db: Session,
    thread_id: UUID,
    user_id: UUID | None,
    segment_id: UUID | None = None,
) -> dict[str, int]:
    """Counts for every reaction type, zero when nobody used it."""
    _check_target(db, thread_id, segment_id, user_id)
    return thread_stats.reaction_counts(db, thread_id, segment_id)


def get_user_reactions(
    db: Session,
    thread_id: UUID,
    user_id: UUID | None,
    segment_id: UUID | None = None,
) -> list[models.ReactionType]:
    """The caller's reaction on the target as a list of zero or one types."""
    if user_id is None:
        return []
    rows = _target_filter(db.query(models.Reaction.type), thread_id, segment_id, user_id).all()
    return [models.ReactionType(row.type) for row in rows]


def get_reaction_totals(
    db: Session,
    thread_id: UUID,
    user_id: UUID | None,
    segment_id: UUID | None = None,
) -> schemas.ReactionTotals:
    _check_target(db, thread_id, segment_id, user_id)
    return _totals(db, thread_id, segment_id, user_id)


def get_reaction_users(
    db: Session,
    thread_id: UUID,
    user_id: UUID | None,
    limit: int = 100,
) -> list[schemas.ReactionUser]:
    """Who reacted to a thread or its segments, newest first."""
    _check_target(db, thread_id, None, user_id)

    rows = (
        db.query(models.Reaction)
        .filter(models.Reaction.thread_id == thread_id)
        .order_by(models.Reaction.created_at.desc(), models.Reaction.id.desc())
        .limit(limit)
        .all()
    )
    authors = resolve_authors(db, [row.user_id for row in rows])
    return [
        schemas.ReactionUser(
            user_id=row.user_id,
            type=row.type,
            segment_id=row.segment_id,
            user_name=authors[row.user_id].name,
            user_avatar=authors[row.user_id].avatar_url,
            created_at=row.created_at,
        )
        for row in rows
    ]
