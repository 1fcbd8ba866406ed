from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReactionType(str, Enum):
    """Emoji a user may place on a thread or a segment."""

    MIND_BLOWN = "🤯"
    INSIGHT = "💡"
    CALM = "😌"
    FIRE = "🔥"
    LOVE = "🫶"


class InteractionType(str, Enum):
    VIEW = "view"
    REACTION = "reaction"
    BOOKMARK = "bookmark"
    FORK = "fork"


# ============================================================================
# IDENTITY (owned by the identity provider, mirrored for display only)
# ============================================================================


class Profile(Base):
    """Display data for a user id handed to us by the identity provider."""

    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True)
    name = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())


# ============================================================================
# CONTENT
# ============================================================================


class Thread(Base):
    """Long-form post made of ordered segments."""

    __tablename__ = "threads"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    owner_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    cover_image = Column(String(1000), nullable=True)
    snippet = Column(Text, nullable=True)

    # Visibility
    is_published = Column(Boolean, nullable=False, default=True, index=True)
    is_private = Column(Boolean, nullable=False, default=False, index=True)

    # Lineage: parent pointer, forms a forest
    original_thread_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("threads.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    fork_count = Column(Integer, nullable=False, default=0, server_default="0")

    # Optimistic concurrency token, bumped by the ORM on every flush of this row
    version = Column(Integer, nullable=False, default=1, server_default="1")

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    segments = relationship(
        "ThreadSegment",
        back_populates="thread",
        order_by="ThreadSegment.order_index",
    )
    tags = relationship("Tag", secondary="thread_tags", order_by="Tag.name", viewonly=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_threads_owner_created", owner_id, created_at.desc()),
        Index("ix_threads_published_private", is_published, is_private),
    )


class ThreadSegment(Base):
    """One ordered content unit of a thread. Content is opaque rich text."""

    __tablename__ = "thread_segments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    thread_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content = Column(Text, nullable=False)
    order_index = Column(Integer, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    thread = relationship("Thread", back_populates="segments")

    __table_args__ = (
        UniqueConstraint("thread_id", "order_index", name="uq_thread_segments_thread_order"),
    )


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)


class ThreadTag(Base):
    __tablename__ = "thread_tags"

    thread_id = Column(
        Uuid(as_uuid=True), ForeignKey("threads.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id = Column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)


# ============================================================================
# DRAFTS
# ============================================================================


class Draft(Base):
    """Unpublished content. ``content`` is stored exactly as the client sent it."""

    __tablename__ = "drafts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    owner_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    title = Column(String(200), nullable=False, default="")
    content = Column(JSON, nullable=True)  # list, object, or a (possibly JSON) string
    tags = Column(JSON, nullable=False, default=list)
    cover_image = Column(String(1000), nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        index=True,
    )


# ============================================================================
# SOCIAL FEATURES
# ============================================================================


class Reaction(Base):
    """Emoji reaction on a thread (segment_id NULL) or on one of its segments."""

    __tablename__ = "reactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(
        Uuid(as_uuid=True), ForeignKey("threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    segment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("thread_segments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    type = Column(String(16), nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), index=True
    )

    __table_args__ = (
        # One active reaction per user per target. Two partial indexes because
        # NULL segment ids never collide in a plain unique constraint.
        Index(
            "uq_reactions_thread_user",
            thread_id,
            user_id,
            unique=True,
            postgresql_where=segment_id.is_(None),
            sqlite_where=segment_id.is_(None),
        ),
        Index(
            "uq_reactions_segment_user",
            thread_id,
            segment_id,
            user_id,
            unique=True,
            postgresql_where=segment_id.isnot(None),
            sqlite_where=segment_id.isnot(None),
        ),
        Index("ix_reactions_thread_type", thread_id, type),
    )


class Bookmark(Base):
    __tablename__ = "bookmarks"

    user_id = Column(Uuid(as_uuid=True), primary_key=True)
    thread_id = Column(
        Uuid(as_uuid=True), ForeignKey("threads.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), index=True
    )


class Collection(Base):
    """User-owned grouping of threads, independent of authorship."""

    __tablename__ = "collections"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    owner_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_private = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class CollectionThread(Base):
    __tablename__ = "collection_threads"

    collection_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("collections.id", ondelete="CASCADE"),
        primary_key=True,
    )
    thread_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("threads.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ============================================================================
# ANALYTICS
# ============================================================================


class ThreadAnalytics(Base):
    """Per-thread counters, created lazily on first view."""

    __tablename__ = "thread_analytics"

    thread_id = Column(
        Uuid(as_uuid=True), ForeignKey("threads.id", ondelete="CASCADE"), primary_key=True
    )
    view_count = Column(Integer, nullable=False, default=0, server_default="0")
    unique_viewers = Column(Integer, nullable=False, default=0, server_default="0")
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class InteractionLog(Base):
    """Append-only interaction record. Rows are never updated or deleted one by one.

    ``thread_id`` carries no foreign key so the log outlives deleted threads.
    """

    __tablename__ = "interaction_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    interaction_type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    __table_args__ = (
        Index("ix_interaction_logs_thread_user_type", thread_id, user_id, interaction_type),
        Index("ix_interaction_logs_type_created", interaction_type, created_at),
    )
