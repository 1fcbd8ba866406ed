"""Fork/remix: copy a thread into a new unpublished thread owned by the caller."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models
from . import threads
from .analytics import log_interaction
from .transactions import atomic

logger = logging.getLogger(__name__)


def fork_thread(db: Session, original_id: UUID, user_id: UUID | None) -> UUID:
    """
    Fork a thread and return the new thread's id.

    The copy, the parent's fork counter and the interaction log entry are
    written in one transaction. Nothing is committed if any step fails.
    """
    owner_id = threads.require_user(user_id, "fork threads")

    original = threads.get_thread_row(db, original_id, with_segments=True)
    threads.check_read_access(original, owner_id)
    threads.walk_lineage(db, original_id)

    contents = [segment.content for segment in original.segments]
    tag_names = [tag.name for tag in original.tags]

    with atomic(db, "fork_thread"):
        fork = threads.insert_thread(
            db,
            owner_id=owner_id,
            title=original.title,
            contents=contents,
            tags=tag_names,
            cover_image=original.cover_image,
            is_published=False,
            is_private=original.is_private,
            original_thread_id=original_id,
        )
        fork_id = fork.id

        # Atomic increment in SQL. Leaves the original's version untouched.
        db.query(models.Thread).filter(models.Thread.id == original_id).update(
            {models.Thread.fork_count: models.Thread.fork_count + 1},
            synchronize_session=False,
        )
        log_interaction(db, original_id, owner_id, models.InteractionType.FORK)

    db.expire_all()
    logger.info(f"User {owner_id} forked thread {original_id} into {fork_id}")
    return fork_id
