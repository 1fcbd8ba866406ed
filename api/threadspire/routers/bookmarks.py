"""Bookmark endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user_id_optional
from ..deps import get_db
from ..services import bookmarks

router = APIRouter(prefix="/bookmark", tags=["Bookmarks"])


@router.get("", response_model=list[schemas.Bookmark])
def list_my_bookmarks(
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.Bookmark]:
    return bookmarks.get_user_bookmarks(db, user_id)


@router.get("/{thread_id}", response_model=schemas.BookmarkState)
def bookmark_state(
    thread_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.BookmarkState:
    return bookmarks.is_bookmarked(db, thread_id, user_id)


@router.put("/{thread_id}", response_model=schemas.BookmarkState)
def add_bookmark(
    thread_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.BookmarkState:
    return bookmarks.add_bookmark(db, thread_id, user_id)


@router.delete("/{thread_id}", response_model=schemas.BookmarkState)
def remove_bookmark(
    thread_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.BookmarkState:
    return bookmarks.remove_bookmark(db, thread_id, user_id)


@router.post("/{thread_id}/toggle", response_model=schemas.BookmarkState)
def toggle_bookmark(
    thread_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.BookmarkState:
    return bookmarks.toggle_bookmark(db, thread_id, user_id)
