"""Collection endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user_id_optional
from ..deps import get_db
from ..services import collections

router = APIRouter(prefix="/collection", tags=["Collections"])


@router.post("", response_model=schemas.Collection, status_code=status.HTTP_201_CREATED)
def create_collection(
    payload: schemas.CollectionCreate,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.Collection:
    return collections.create_collection(db, user_id, payload.name, payload.is_private)


@router.get("", response_model=list[schemas.Collection])
def list_my_collections(
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.Collection]:
    return collections.get_user_collections(db, user_id)


@router.get("/for-thread/{thread_id}", response_model=list[schemas.Collection])
def collections_for_thread(
    thread_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.Collection]:
    """The caller's collections that contain the thread."""
    return collections.get_collections_for_thread(db, thread_id, user_id)


@router.get("/{id}", response_model=schemas.CollectionWithThreads)
def get_collection(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.CollectionWithThreads:
    """
    A collection and its threads.

    Threads that can no longer be shown come back as placeholders with
    ``unavailable: true``.
    """
    return collections.get_collection(db, id, user_id)


@router.patch("/{id}", response_model=schemas.Collection)
def update_collection(
    id: UUID,
    payload: schemas.CollectionUpdate,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.Collection:
    return collections.update_collection(
        db, id, user_id, name=payload.name, is_private=payload.is_private
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_collection(
    id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> None:
    collections.delete_collection(db, id, user_id)


@router.get("/{id}/threads/{thread_id}", response_model=schemas.CollectionMembership)
def check_membership(
    id: UUID,
    thread_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.CollectionMembership:
    return collections.is_thread_in_collection(db, id, thread_id, user_id)


@router.put("/{id}/threads/{thread_id}", response_model=schemas.CollectionMembership)
def add_thread(
    id: UUID,
    thread_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.CollectionMembership:
    return collections.add_thread_to_collection(db, id, thread_id, user_id)


@router.delete("/{id}/threads/{thread_id}", response_model=schemas.CollectionMembership)
def remove_thread(
    id: UUID,
    thread_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.CollectionMembership:
    return collections.remove_thread_from_collection(db, id, thread_id, user_id)
