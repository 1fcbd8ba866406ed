"""Draft endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user_id_optional
from ..deps import get_db
from ..services import drafts

router = APIRouter(prefix="/draft", tags=["Drafts"])


@router.post("", response_model=schemas.Draft, status_code=status.HTTP_201_CREATED)
def create_draft(
    payload: schemas.DraftCreate,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.Draft:
    """Save a draft. ``content`` is stored exactly as sent."""
    return drafts.create_draft(
        db,
        user_id,
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
        cover_image=payload.cover_image,
        is_private=payload.is_private,
    )


@router.get("", response_model=list[schemas.Draft])
def list_my_drafts(
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.Draft]:
    return drafts.get_drafts_by_user(db, user_id)


@router.get("/{id}", response_model=schemas.Draft)
def get_draft(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.Draft:
    return drafts.get_draft_by_id(db, id, user_id)


@router.patch("/{id}", response_model=schemas.Draft)
def update_draft(
    id: UUID,
    payload: schemas.DraftUpdate,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.Draft:
    fields = payload.model_dump(exclude_unset=True)
    return drafts.update_draft(
        db,
        id,
        user_id,
        title=fields.get("title"),
        content=fields.get("content"),
        tags=fields.get("tags"),
        cover_image=fields.get("cover_image"),
        is_private=fields.get("is_private"),
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_draft(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> None:
    drafts.delete_draft(db, id, user_id)


@router.post("/{id}/publish", response_model=schemas.ThreadDetail, status_code=status.HTTP_201_CREATED)
def publish_draft(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ThreadDetail:
    """Turn a draft into a published thread. The draft is deleted."""
    return drafts.publish_draft(db, id, user_id)
