"""initial schema

Revision ID: 20261019000000
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates every table of the content & engagement core:
- profiles
- threads, thread_segments, tags, thread_tags
- drafts
- reactions, bookmarks, collections, collection_threads
- thread_analytics, interaction_logs
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261019000000"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated_nullable: bool = False) -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=None if updated_nullable else sa.func.now(),
            nullable=updated_nullable,
        ),
    ]


def upgrade() -> None:
    # ========================================================================
    # PROFILES
    # ========================================================================

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        *_timestamps(updated_nullable=True),
    )

    # ========================================================================
    # THREADS, SEGMENTS, TAGS
    # ========================================================================

    op.create_table(
        "threads",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("cover_image", sa.String(1000), nullable=True),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "original_thread_id",
            sa.Uuid(),
            sa.ForeignKey("threads.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("fork_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_threads_id", "threads", ["id"])
    op.create_index("ix_threads_owner_id", "threads", ["owner_id"])
    op.create_index("ix_threads_is_published", "threads", ["is_published"])
    op.create_index("ix_threads_is_private", "threads", ["is_private"])
    op.create_index("ix_threads_original_thread_id", "threads", ["original_thread_id"])
    op.create_index("ix_threads_created_at", "threads", ["created_at"])
    op.create_index("ix_threads_owner_created", "threads", ["owner_id", sa.text("created_at DESC")])
    op.create_index("ix_threads_published_private", "threads", ["is_published", "is_private"])

    op.create_table(
        "thread_segments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "thread_id",
            sa.Uuid(),
            sa.ForeignKey("threads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        *_timestamps(updated_nullable=True),
        sa.UniqueConstraint("thread_id", "order_index", name="uq_thread_segments_thread_order"),
    )
    op.create_index("ix_thread_segments_id", "thread_segments", ["id"])
    op.create_index("ix_thread_segments_thread_id", "thread_segments", ["thread_id"])

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
    )
    op.create_index("ix_tags_name", "tags", ["name"], unique=True)

    op.create_table(
        "thread_tags",
        sa.Column(
            "thread_id",
            sa.Uuid(),
            sa.ForeignKey("threads.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
    )

    # ========================================================================
    # DRAFTS
    # ========================================================================

    op.create_table(
        "drafts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False, server_default=""),
        sa.Column("content", sa.JSON(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("cover_image", sa.String(1000), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_drafts_id", "drafts", ["id"])
    op.create_index("ix_drafts_owner_id", "drafts", ["owner_id"])
    op.create_index("ix_drafts_updated_at", "drafts", ["updated_at"])

    # ========================================================================
    # REACTIONS
    # ========================================================================

    op.create_table(
        "reactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "thread_id",
            sa.Uuid(),
            sa.ForeignKey("threads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "segment_id",
            sa.Uuid(),
            sa.ForeignKey("thread_segments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_reactions_thread_id", "reactions", ["thread_id"])
    op.create_index("ix_reactions_segment_id", "reactions", ["segment_id"])
    op.create_index("ix_reactions_user_id", "reactions", ["user_id"])
    op.create_index("ix_reactions_created_at", "reactions", ["created_at"])
    op.create_index("ix_reactions_thread_type", "reactions", ["thread_id", "type"])
    # One active reaction per user per target
    op.create_index(
        "uq_reactions_thread_user",
        "reactions",
        ["thread_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("segment_id IS NULL"),
        sqlite_where=sa.text("segment_id IS NULL"),
    )
    op.create_index(
        "uq_reactions_segment_user",
        "reactions",
        ["thread_id", "segment_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("segment_id IS NOT NULL"),
        sqlite_where=sa.text("segment_id IS NOT NULL"),
    )

    # ========================================================================
    # BOOKMARKS & COLLECTIONS
    # ========================================================================

    op.create_table(
        "bookmarks",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "thread_id",
            sa.Uuid(),
            sa.ForeignKey("threads.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_bookmarks_thread_id", "bookmarks", ["thread_id"])
    op.create_index("ix_bookmarks_created_at", "bookmarks", ["created_at"])

    op.create_table(
        "collections",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_collections_id", "collections", ["id"])
    op.create_index("ix_collections_owner_id", "collections", ["owner_id"])
    op.create_index("ix_collections_created_at", "collections", ["created_at"])

    op.create_table(
        "collection_threads",
        sa.Column(
            "collection_id",
            sa.Uuid(),
            sa.ForeignKey("collections.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "thread_id",
            sa.Uuid(),
            sa.ForeignKey("threads.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_collection_threads_thread_id", "collection_threads", ["thread_id"])

    # ========================================================================
    # ANALYTICS
    # ========================================================================

    op.create_table(
        "thread_analytics",
        sa.Column(
            "thread_id",
            sa.Uuid(),
            sa.ForeignKey("threads.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unique_viewers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Append-only; thread_id has no foreign key so entries outlive their thread
    op.create_table(
        "interaction_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("thread_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("interaction_type", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_interaction_logs_thread_id", "interaction_logs", ["thread_id"])
    op.create_index("ix_interaction_logs_user_id", "interaction_logs", ["user_id"])
    op.create_index("ix_interaction_logs_created_at", "interaction_logs", ["created_at"])
    op.create_index(
        "ix_interaction_logs_thread_user_type",
        "interaction_logs",
        ["thread_id", "user_id", "interaction_type"],
    )
    op.create_index(
        "ix_interaction_logs_type_created",
        "interaction_logs",
        ["interaction_type", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("interaction_logs")
    op.drop_table("thread_analytics")
    op.drop_table("collection_threads")
    op.drop_table("collections")
    op.drop_table("bookmarks")
    op.drop_table("reactions")
    op.drop_table("drafts")
    op.drop_table("thread_tags")
    op.drop_table("tags")
    op.drop_table("thread_segments")
    op.drop_table("threads")
    op.drop_table("profiles")
