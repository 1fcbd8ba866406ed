"""Profile endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user_id
from ..deps import get_db
from ..services import profiles

router = APIRouter(prefix="/profile", tags=["Profiles"])


@router.get("/me", response_model=schemas.Author)
def get_my_profile(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
) -> schemas.Author:
    return profiles.get_author(db, user_id)


@router.put("/me", response_model=schemas.Author)
def update_my_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
) -> schemas.Author:
    """Set the display name and avatar shown on your threads."""
    return profiles.upsert_profile(db, user_id, name=payload.name, avatar_url=payload.avatar_url)


@router.get("/{id}", response_model=schemas.Author)
def get_profile(id: UUID, db: Session = Depends(get_db)) -> schemas.Author:
    """Display data for any user. Unknown users come back as "Unknown Creator"."""
    return profiles.get_author(db, id)
