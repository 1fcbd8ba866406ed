"""
Collection membership index.

Collections group threads for their owner, independently of who wrote the
threads. Membership is a plain (collection, thread) pair.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PrivateAccessError,
    ThreadSpireError,
    ValidationError,
)
from ..settings import UNAVAILABLE_THREAD_TITLE
from . import threads
from .transactions import atomic

logger = logging.getLogger(__name__)


def _get_collection_row(db: Session, collection_id: UUID) -> models.Collection:
    collection = db.get(models.Collection, collection_id)
    if collection is None:
        raise NotFoundError(f"Collection {collection_id} not found")
    return collection


def _get_owned_collection(
    db: Session, collection_id: UUID, user_id: UUID | None, action: str
) -> models.Collection:
    owner_id = threads.require_user(user_id, f"{action} collections")
    collection = _get_collection_row(db, collection_id)
    if collection.owner_id != owner_id:
        raise PermissionDeniedError(f"You can only {action} your own collections")
    return collection


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Collection name must not be empty")
    return cleaned


def create_collection(
    db: Session, user_id: UUID | None, name: str, is_private: bool = True
) -> schemas.Collection:
    owner_id = threads.require_user(user_id, "create collections")
    name = _clean_name(name)

    with atomic(db, "create_collection"):
        collection = models.Collection(owner_id=owner_id, name=name, is_private=is_private)
        db.add(collection)
        db.flush()
        collection_id = collection.id

    logger.info(f"Created collection {collection_id} for user {owner_id}")
    return schemas.Collection.model_validate(db.get(models.Collection, collection_id))


def update_collection(
    db: Session,
    collection_id: UUID,
    user_id: UUID | None,
    name: str | None = None,
    is_private: bool | None = None,
) -> schemas.Collection:
    collection = _get_owned_collection(db, collection_id, user_id, "edit")
    new_name = _clean_name(name) if name is not None else None

    with atomic(db, "update_collection"):
        if new_name is not None:
            collection.name = new_name
        if is_private is not None:
            collection.is_private = is_private

    return schemas.Collection.model_validate(db.get(models.Collection, collection_id))


def delete_collection(db: Session, collection_id: UUID, user_id: UUID | None) -> None:
    """Delete a collection and its membership rows. The threads are untouched."""
    _get_owned_collection(db, collection_id, user_id, "delete")

    with atomic(db, "delete_collection"):
        db.query(models.CollectionThread).filter(
            models.CollectionThread.collection_id == collection_id
        ).delete(synchronize_session=False)
        db.query(models.Collection).filter(models.Collection.id == collection_id).delete(
            synchronize_session=False
        )

    db.expire_all()
    logger.info(f"Deleted collection {collection_id}")


def add_thread_to_collection(
    db: Session, collection_id: UUID, thread_id: UUID, user_id: UUID | None
) -> schemas.CollectionMembership:
    """Add a thread. Adding a thread that is already a member changes nothing."""
    _get_owned_collection(db, collection_id, user_id, "modify")
    threads.get_thread_row(db, thread_id)

    key = (collection_id, thread_id)
    if db.get(models.CollectionThread, key) is None:
        try:
            with atomic(db, "add_thread_to_collection"):
                db.add(models.CollectionThread(collection_id=collection_id, thread_id=thread_id))
            logger.info(f"Added thread {thread_id} to collection {collection_id}")
        except ConflictError:
            # Only a concurrent add of the same pair is tolerated.
            if db.get(models.CollectionThread, key) is None:
                raise
            logger.debug(f"Thread {thread_id} was added to collection {collection_id} concurrently")

    return schemas.CollectionMembership(collection_id=collection_id, thread_id=thread_id, member=True)


def remove_thread_from_collection(
    db: Session, collection_id: UUID, thread_id: UUID, user_id: UUID | None
) -> schemas.CollectionMembership:
    """Remove a thread. Removing a thread that is not a member changes nothing."""
    _get_owned_collection(db, collection_id, user_id, "modify")

    with atomic(db, "remove_thread_from_collection"):
        db.query(models.CollectionThread).filter(
            models.CollectionThread.collection_id == collection_id,
            models.CollectionThread.thread_id == thread_id,
        ).delete(synchronize_session=False)

    return schemas.CollectionMembership(collection_id=collection_id, thread_id=thread_id, member=False)


def get_collection(
    db: Session, collection_id: UUID, user_id: UUID | None
) -> schemas.CollectionWithThreads:
    """
    A collection with its threads, in the order they were added.

    Private collections are visible to their owner only. Each member is
    resolved through the content store; a member that cannot be resolved
    (deleted, or private to this caller) is returned as a placeholder so one
    bad member never fails the whole collection.
    """
    collection = _get_collection_row(db, collection_id)
    if collection.is_private and collection.owner_id != user_id:
        raise PrivateAccessError("This collection is private")

    member_ids = [
        thread_id
        for (thread_id,) in db.query(models.CollectionThread.thread_id)
        .filter(models.CollectionThread.collection_id == collection_id)
        .order_by(models.CollectionThread.created_at.asc(), models.CollectionThread.thread_id.asc())
        .all()
    ]

    members: list[schemas.ThreadDetail | schemas.ThreadPlaceholder] = []
    for thread_id in member_ids:
        try:
            members.append(threads.get_thread_by_id(db, thread_id, user_id))
        except ThreadSpireError as e:
            logger.warning(f"Collection {collection_id}: member {thread_id} unavailable: {e.detail}")
            members.append(schemas.ThreadPlaceholder(id=thread_id, title=UNAVAILABLE_THREAD_TITLE))

    return schemas.CollectionWithThreads(
        **schemas.Collection.model_validate(collection).model_dump(),
        threads=members,
    )


def get_user_collections(db: Session, user_id: UUID | None) -> list[schemas.Collection]:
    owner_id = threads.require_user(user_id, "view your collections")
    rows = (
        db.query(models.Collection)
        .filter(models.Collection.owner_id == owner_id)
        .order_by(models.Collection.created_at.desc(), models.Collection.id.asc())
        .all()
    )
    return [schemas.Collection.model_validate(row) for row in rows]


def is_thread_in_collection(
    db: Session, collection_id: UUID, thread_id: UUID, user_id: UUID | None
) -> schemas.CollectionMembership:
    collection = _get_collection_row(db, collection_id)
    if collection.is_private and collection.owner_id != user_id:
        raise PrivateAccessError("This collection is private")

    member = db.get(models.CollectionThread, (collection_id, thread_id)) is not None
    return schemas.CollectionMembership(collection_id=collection_id, thread_id=thread_id, member=member)


def get_collections_for_thread(
    db: Session, thread_id: UUID, user_id: UUID | None
) -> list[schemas.Collection]:
    """The caller's collections that contain a thread."""
    owner_id = threads.require_user(user_id, "view your collections")
    rows = (
        db.query(models.Collection)
        .join(
            models.CollectionThread,
            models.CollectionThread.collection_id == models.Collection.id,
        )
        .filter(
            models.Collection.owner_id == owner_id,
            models.CollectionThread.thread_id == thread_id,
        )
        .order_by(models.Collection.name.asc())
        .all()
    )
    return [schemas.Collection.model_validate(row) for row in rows]
