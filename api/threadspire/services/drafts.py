"""
Draft lifecycle: tolerant storage of editor content and Draft -> Thread publication.

Draft content is stored exactly as the client sent it. Older clients saved a
plain string, newer ones a JSON-encoded list or a list of segment objects, so
every read goes through ``normalize_draft_content``.
"""

from __future__ import annotations

import json
import logging
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import NotFoundError, PermissionDeniedError
from . import threads
from .transactions import atomic

logger = logging.getLogger(__name__)

DEFAULT_SEGMENT_TYPE = "text"


def _normalize_entry(entry: Any) -> dict[str, str]:
    if isinstance(entry, str):
        return {"content": entry, "type": DEFAULT_SEGMENT_TYPE}

    if isinstance(entry, dict) and "content" in entry:
        content = entry["content"]
        if not isinstance(content, str):
            content = json.dumps(content)
        segment_type = entry.get("type")
        if not isinstance(segment_type, str) or not segment_type:
            segment_type = DEFAULT_SEGMENT_TYPE
        return {"content": content, "type": segment_type}

    return {"content": json.dumps(entry), "type": DEFAULT_SEGMENT_TYPE}


def normalize_draft_content(raw: Any) -> list[dict[str, str]]:
    """
    Turn any stored draft content into an ordered list of ``{content, type}``.

    Never raises. ``None`` and blank strings give an empty list. A string that
    is not valid JSON becomes a single text segment. A value that is not a
    list is wrapped in one.
    """
    if raw is None:
        return []

    value = raw
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            value = json.loads(raw)
        except ValueError:
            return [{"content": raw, "type": DEFAULT_SEGMENT_TYPE}]
        if isinstance(value, str):
            # A JSON-encoded string literal is still just text.
            return [{"content": value, "type": DEFAULT_SEGMENT_TYPE}]

    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    return [_normalize_entry(entry) for entry in value]


def _to_schema(draft: models.Draft) -> schemas.Draft:
    return schemas.Draft(
        id=draft.id,
        owner_id=draft.owner_id,
        title=draft.title or "",
        content=[schemas.DraftSegment(**entry) for entry in normalize_draft_content(draft.content)],
        tags=list(draft.tags or []),
        cover_image=draft.cover_image,
        is_private=draft.is_private,
        created_at=draft.created_at,
        updated_at=draft.updated_at,
    )


def _get_owned_draft(db: Session, draft_id: UUID, user_id: UUID | None, action: str) -> models.Draft:
    owner_id = threads.require_user(user_id, f"{action} drafts")
    draft = db.get(models.Draft, draft_id)
    if draft is None:
        raise NotFoundError(f"Draft {draft_id} not found")
    if draft.owner_id != owner_id:
        raise PermissionDeniedError(f"You can only {action} your own drafts")
    return draft


def create_draft(
    db: Session,
    user_id: UUID | None,
    title: str = "",
    content: Any = None,
    tags: list[str] | None = None,
    cover_image: str | None = None,
    is_private: bool = False,
) -> schemas.Draft:
    owner_id = threads.require_user(user_id, "save drafts")

    with atomic(db, "create_draft"):
        draft = models.Draft(
            owner_id=owner_id,
            title=title or "",
            content=content,
            tags=list(tags or []),
            cover_image=cover_image,
            is_private=is_private,
        )
        db.add(draft)
        db.flush()
        draft_id = draft.id

    logger.info(f"Created draft {draft_id} for user {owner_id}")
    return get_draft_by_id(db, draft_id, owner_id)


def update_draft(
    db: Session,
    draft_id: UUID,
    user_id: UUID | None,
    title: str | None = None,
    content: Any = None,
    tags: list[str] | None = None,
    cover_image: str | None = None,
    is_private: bool | None = None,
) -> schemas.Draft:
    """Overwrite the given fields. ``content`` is stored as given, without normalizing."""
    draft = _get_owned_draft(db, draft_id, user_id, "edit")

    with atomic(db, "update_draft"):
        if title is not None:
            draft.title = title
        if content is not None:
            draft.content = content
        if tags is not None:
            draft.tags = list(tags)
        if cover_image is not None:
            draft.cover_image = cover_image or None
        if is_private is not None:
            draft.is_private = is_private

    return get_draft_by_id(db, draft_id, user_id)


def get_draft_by_id(db: Session, draft_id: UUID, user_id: UUID | None) -> schemas.Draft:
    """Drafts are only visible to their owner."""
    return _to_schema(_get_owned_draft(db, draft_id, user_id, "view"))


def get_drafts_by_user(db: Session, user_id: UUID | None) -> list[schemas.Draft]:
    owner_id = threads.require_user(user_id, "view drafts")
    drafts = (
        db.query(models.Draft)
        .filter(models.Draft.owner_id == owner_id)
        .order_by(models.Draft.updated_at.desc(), models.Draft.id.asc())
        .all()
    )
    return [_to_schema(draft) for draft in drafts]


def delete_draft(db: Session, draft_id: UUID, user_id: UUID | None) -> None:
    draft = _get_owned_draft(db, draft_id, user_id, "delete")
    with atomic(db, "delete_draft"):
        db.delete(draft)
    logger.info(f"Deleted draft {draft_id}")


def publish_draft(db: Session, draft_id: UUID, user_id: UUID | None) -> schemas.ThreadDetail:
    """
    Publish a draft as a thread and delete the draft.

    The thread, its segments, tags and analytics row are inserted and the
    draft deleted in one transaction. If any insert fails the draft is kept
    and no part of the thread is left behind.
    """
    draft = _get_owned_draft(db, draft_id, user_id, "publish")

    entries = normalize_draft_content(draft.content)
    title = threads.clean_title(draft.title)
    contents = threads.clean_segments([entry["content"] for entry in entries])
    tag_names = threads.normalize_tags(draft.tags)

    with atomic(db, "publish_draft"):
        thread = threads.insert_thread(
            db,
            owner_id=draft.owner_id,
            title=title,
            contents=contents,
            tags=tag_names,
            cover_image=draft.cover_image,
            is_published=True,
            is_private=draft.is_private,
        )
        thread_id = thread.id
        # Flush the segment inserts before the draft goes away.
        db.flush()
        db.delete(draft)

    logger.info(f"Published draft {draft_id} as thread {thread_id} ({len(contents)} segments)")
    return threads.get_thread_by_id(db, thread_id, user_id)
