"""Per-user thread bookmarks."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from . import threads
from .analytics import log_interaction
from .transactions import atomic

logger = logging.getLogger(__name__)


def add_bookmark(db: Session, thread_id: UUID, user_id: UUID | None) -> schemas.BookmarkState:
    """Bookmark a thread. Bookmarking it again changes nothing."""
    reader_id = threads.require_user(user_id, "bookmark threads")
    thread = threads.get_thread_row(db, thread_id)
    threads.check_read_access(thread, reader_id)

    if db.get(models.Bookmark, (reader_id, thread_id)) is None:
        with atomic(db, "add_bookmark"):
            db.add(models.Bookmark(user_id=reader_id, thread_id=thread_id))
            log_interaction(db, thread_id, reader_id, models.InteractionType.BOOKMARK)
        logger.info(f"User {reader_id} bookmarked thread {thread_id}")

    return schemas.BookmarkState(thread_id=thread_id, bookmarked=True)


def remove_bookmark(db: Session, thread_id: UUID, user_id: UUID | None) -> schemas.BookmarkState:
    reader_id = threads.require_user(user_id, "bookmark threads")

    with atomic(db, "remove_bookmark"):
        db.query(models.Bookmark).filter(
            models.Bookmark.user_id == reader_id,
            models.Bookmark.thread_id == thread_id,
        ).delete(synchronize_session=False)

    return schemas.BookmarkState(thread_id=thread_id, bookmarked=False)


def toggle_bookmark(db: Session, thread_id: UUID, user_id: UUID | None) -> schemas.BookmarkState:
    reader_id = threads.require_user(user_id, "bookmark threads")
    if db.get(models.Bookmark, (reader_id, thread_id)) is None:
        return add_bookmark(db, thread_id, reader_id)
    return remove_bookmark(db, thread_id, reader_id)


def is_bookmarked(db: Session, thread_id: UUID, user_id: UUID | None) -> schemas.BookmarkState:
    bookmarked = user_id is not None and db.get(models.Bookmark, (user_id, thread_id)) is not None
    return schemas.BookmarkState(thread_id=thread_id, bookmarked=bookmarked)


def get_user_bookmarks(db: Session, user_id: UUID | None) -> list[schemas.Bookmark]:
    """The caller's bookmarks, newest first."""
    reader_id = threads.require_user(user_id, "view bookmarks")
    rows = (
        db.query(models.Bookmark)
        .filter(models.Bookmark.user_id == reader_id)
        .order_by(models.Bookmark.created_at.desc(), models.Bookmark.thread_id.asc())
        .all()
    )
    return [schemas.Bookmark.model_validate(row) for row in rows]
