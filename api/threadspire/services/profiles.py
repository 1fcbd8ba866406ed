"""Author display data."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import AuthenticationRequiredError
from ..settings import UNKNOWN_CREATOR_NAME
from .transactions import atomic

logger = logging.getLogger(__name__)


def _fallback_author(user_id: UUID) -> schemas.Author:
    return schemas.Author(id=user_id, name=UNKNOWN_CREATOR_NAME, avatar_url=None)


def resolve_authors(db: Session, user_ids: list[UUID]) -> dict[UUID, schemas.Author]:
    """
    Look up display data for many users.

    Never fails the surrounding read: unknown users and lookup errors both
    degrade to "Unknown Creator".
    """
    authors = {uid: _fallback_author(uid) for uid in user_ids}
    if not user_ids:
        return authors

    try:
        profiles = db.query(models.Profile).filter(models.Profile.id.in_(set(user_ids))).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Profile lookup failed for {len(user_ids)} users: {e}")
        return authors

    for profile in profiles:
        authors[profile.id] = schemas.Author(
            id=profile.id,
            name=profile.name or UNKNOWN_CREATOR_NAME,
            avatar_url=profile.avatar_url,
        )
    return authors


def get_author(db: Session, user_id: UUID) -> schemas.Author:
    return resolve_authors(db, [user_id])[user_id]


def upsert_profile(
    db: Session,
    user_id: UUID | None,
    name: str | None = None,
    avatar_url: str | None = None,
) -> schemas.Author:
    """Create or update the caller's own profile."""
    if user_id is None:
        raise AuthenticationRequiredError("Sign in to edit your profile")

    with atomic(db, "upsert_profile"):
        profile = db.get(models.Profile, user_id)
        if profile is None:
            profile = models.Profile(id=user_id)
            db.add(profile)
        if name is not None:
            profile.name = name.strip() or None
        if avatar_url is not None:
            profile.avatar_url = avatar_url.strip() or None

    logger.info(f"Updated profile for user {user_id}")
    return get_author(db, user_id)
