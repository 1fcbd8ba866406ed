"""
Content store for threads, segments and tags.

Owns the segment-ordering contract: for any thread, ``order_index`` values are
unique and form ``0..n-1`` after every write, and segments are always read in
``order_index`` order.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..cache import cache_invalidate
from ..errors import (
    AuthenticationRequiredError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PrivateAccessError,
    ValidationError,
)
from ..settings import (
    DEFAULT_PAGE_SIZE,
    MAX_LINEAGE_DEPTH,
    MAX_PAGE_SIZE,
    MAX_TAG_LENGTH,
    MAX_TAGS_PER_THREAD,
    MAX_TITLE_LENGTH,
    SNIPPET_LENGTH,
)
from . import thread_stats
from .profiles import resolve_authors
from .transactions import atomic

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": models.Thread.created_at,
    "updated_at": models.Thread.updated_at,
    "title": models.Thread.title,
    "fork_count": models.Thread.fork_count,
}


# ============================================================================
# VALIDATION
# ============================================================================


def require_user(user_id: UUID | None, action: str) -> UUID:
    if user_id is None:
        raise AuthenticationRequiredError(f"Sign in to {action}")
    return user_id


def clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Title must not be empty")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title exceeds {MAX_TITLE_LENGTH} characters")
    return cleaned


def clean_segments(contents: Sequence[str]) -> list[str]:
    """Check that there is at least one segment and none is blank. Content is stored untouched."""
    if not contents:
        raise ValidationError("A thread needs at least one segment")
    for position, content in enumerate(contents):
        if content is None or not str(content).strip():
            raise ValidationError(f"Segment {position + 1} is empty")
    return [str(content) for content in contents]


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """
    Trim tag names, drop blanks and duplicates (first occurrence wins), and
    enforce the per-thread limits.
    """
    names: list[str] = []
    for raw in tags or []:
        name = (raw or "").strip()
        if not name or name in names:
            continue
        if len(name) > MAX_TAG_LENGTH:
            raise ValidationError(f"Tag '{name}' exceeds {MAX_TAG_LENGTH} characters")
        names.append(name)

    if len(names) > MAX_TAGS_PER_THREAD:
        raise ValidationError(f"A thread can have at most {MAX_TAGS_PER_THREAD} tags")
    return names


def make_snippet(contents: Sequence[str]) -> str | None:
    if not contents:
        return None
    return contents[0][:SNIPPET_LENGTH]


# ============================================================================
# LOOKUPS
# ============================================================================


def get_thread_row(db: Session, thread_id: UUID, with_segments: bool = False) -> models.Thread:
    query = db.query(models.Thread).filter(models.Thread.id == thread_id)
    if with_segments:
        query = query.options(selectinload(models.Thread.segments))
    thread = query.first()
    if thread is None:
        raise NotFoundError(f"Thread {thread_id} not found")
    return thread


def check_read_access(thread: models.Thread, user_id: UUID | None) -> None:
    if thread.is_private and user_id is None:
        raise PrivateAccessError("This thread is private. Please log in to view it.")


def require_owner(thread: models.Thread, user_id: UUID, action: str) -> None:
    if thread.owner_id != user_id:
        raise PermissionDeniedError(f"You can only {action} your own threads")


def walk_lineage(db: Session, thread_id: UUID) -> list[models.Thread]:
    """
    Ancestors of a thread, parent first.

    Raises ValidationError if the stored lineage contains a cycle.
    """
    ancestors: list[models.Thread] = []
    seen = {thread_id}
    current = db.get(models.Thread, thread_id)
    while current is not None and current.original_thread_id is not None:
        parent_id = current.original_thread_id
        if parent_id in seen or len(ancestors) >= MAX_LINEAGE_DEPTH:
            logger.error(f"Lineage cycle detected while walking from thread {thread_id}")
            raise ValidationError("Thread lineage contains a cycle")
        seen.add(parent_id)
        current = db.get(models.Thread, parent_id)
        if current is not None:
            ancestors.append(current)
    return ancestors


def assert_lineage_allows(db: Session, parent_id: UUID, child_id: UUID | None = None) -> None:
    """
    Refuse to hang a thread under ``parent_id`` if that would close a loop.

    ``child_id`` is the thread receiving the parent pointer, when it already exists.
    """
    if child_id is not None and parent_id == child_id:
        raise ValidationError("A thread cannot be its own original")
    ancestors = walk_lineage(db, parent_id)
    if child_id is not None and any(a.id == child_id for a in ancestors):
        raise ValidationError("A thread cannot fork one of its own descendants")


# ============================================================================
# WRITE HELPERS (run inside an open transaction)
# ============================================================================


def get_or_create_tag(db: Session, name: str) -> models.Tag:
    tag = db.query(models.Tag).filter(models.Tag.name == name).first()
    if tag is None:
        tag = models.Tag(name=name)
        db.add(tag)
        db.flush()
    return tag


def link_tags(db: Session, thread_id: UUID, names: list[str]) -> None:
    for name in names:
        tag = get_or_create_tag(db, name)
        db.add(models.ThreadTag(thread_id=thread_id, tag_id=tag.id))


def insert_segments(db: Session, thread_id: UUID, contents: Sequence[str]) -> None:
    for position, content in enumerate(contents):
        db.add(
            models.ThreadSegment(
                thread_id=thread_id,
                content=content,
                order_index=position,
            )
        )


def init_analytics(db: Session, thread_id: UUID) -> None:
    if db.get(models.ThreadAnalytics, thread_id) is None:
        db.add(models.ThreadAnalytics(thread_id=thread_id, view_count=0, unique_viewers=0))


def insert_thread(
    db: Session,
    owner_id: UUID,
    title: str,
    contents: Sequence[str],
    tags: list[str],
    cover_image: str | None = None,
    is_published: bool = True,
    is_private: bool = False,
    original_thread_id: UUID | None = None,
) -> models.Thread:
    """Insert a thread with its segments, tags and analytics row. Inputs must be validated."""
    thread = models.Thread(
        owner_id=owner_id,
        title=title,
        cover_image=cover_image,
        snippet=make_snippet(contents),
        is_published=is_published,
        is_private=is_private,
        original_thread_id=original_thread_id,
        fork_count=0,
    )
    db.add(thread)
    db.flush()  # get thread.id

    insert_segments(db, thread.id, contents)
    link_tags(db, thread.id, tags)
    init_analytics(db, thread.id)
    return thread


# ============================================================================
# READ MODELS
# ============================================================================


def build_details(
    db: Session,
    threads: list[models.Thread],
    thread_level_counts: bool = True,
) -> list[schemas.ThreadDetail]:
    """
    Assemble ThreadDetail objects for already-loaded threads.

    With ``thread_level_counts`` the reaction map covers reactions on the thread
    itself; otherwise it totals thread and segment reactions together.
    """
    thread_ids = [t.id for t in threads]
    tags = thread_stats.tag_names_by_thread(db, thread_ids)
    authors = resolve_authors(db, [t.owner_id for t in threads])
    if thread_level_counts:
        counts = {tid: thread_stats.reaction_counts(db, tid) for tid in thread_ids}
    else:
        counts = thread_stats.reaction_totals_by_thread(db, thread_ids)

    details = []
    for thread in threads:
        base = schemas.Thread.model_validate(thread)
        details.append(
            schemas.ThreadDetail(
                **base.model_dump(),
                segments=[schemas.Segment.model_validate(s) for s in thread.segments],
                tags=tags.get(thread.id, []),
                reaction_counts=counts[thread.id],
                author=authors[thread.owner_id],
            )
        )
    return details


# ============================================================================
# OPERATIONS
# ============================================================================


def create_thread(
    db: Session,
    user_id: UUID | None,
    title: str,
    segments: Sequence[str],
    tags: Iterable[str] | None = None,
    cover_image: str | None = None,
    is_published: bool = True,
    is_private: bool = False,
    original_thread_id: UUID | None = None,
) -> schemas.ThreadDetail:
    """
    Create a thread from segment contents.

    Segments get ``order_index`` equal to their position. Tags are created on
    first use. A zero-valued analytics row is created with the thread.
    """
    owner_id = require_user(user_id, "create threads")
    title = clean_title(title)
    contents = clean_segments(segments)
    tag_names = normalize_tags(tags)

    if original_thread_id is not None:
        get_thread_row(db, original_thread_id)
        assert_lineage_allows(db, original_thread_id)

    with atomic(db, "create_thread"):
        thread = insert_thread(
            db,
            owner_id=owner_id,
            title=title,
            contents=contents,
            tags=tag_names,
            cover_image=cover_image,
            is_published=is_published,
            is_private=is_private,
            original_thread_id=original_thread_id,
        )
        thread_id = thread.id

    cache_invalidate("discovery:*")
    logger.info(
        f"Created thread {thread_id} for user {owner_id}: "
        f"{len(contents)} segments, {len(tag_names)} tags, published={is_published}"
    )
    return get_thread_by_id(db, thread_id, owner_id)


def get_thread_by_id(db: Session, thread_id: UUID, user_id: UUID | None) -> schemas.ThreadDetail:
    """
    Full thread: segments in order, tag names, thread-level reaction counts, author.

    Pure read. View tracking is the caller's job (see analytics.record_view).
    """
    thread = get_thread_row(db, thread_id, with_segments=True)
    check_read_access(thread, user_id)
    return build_details(db, [thread])[0]


def update_thread(
    db: Session,
    thread_id: UUID,
    user_id: UUID | None,
    title: str | None = None,
    segments: Sequence[str] | None = None,
    tags: Iterable[str] | None = None,
    cover_image: str | None = None,
    is_published: bool | None = None,
    is_private: bool | None = None,
    expected_version: int | None = None,
) -> schemas.ThreadDetail:
    """
    Partial update. ``segments`` and ``tags`` replace the whole set.

    The delete and re-insert of segments happen in one transaction, so readers
    never see a thread without segments. ``expected_version`` rejects writers
    that loaded an older copy of the thread.
    """
    owner_id = require_user(user_id, "edit threads")
    thread = get_thread_row(db, thread_id)
    require_owner(thread, owner_id, "edit")

    if expected_version is not None and expected_version != thread.version:
        raise ConflictError(
            f"Thread is at version {thread.version}, not {expected_version}. Reload and try again."
        )

    new_title = clean_title(title) if title is not None else None
    contents = clean_segments(segments) if segments is not None else None
    tag_names = normalize_tags(tags) if tags is not None else None

    with atomic(db, "update_thread"):
        # Every edit touches the row, so the version counter moves exactly once.
        thread.updated_at = datetime.now(timezone.utc)
        if new_title is not None:
            thread.title = new_title
        if cover_image is not None:
            thread.cover_image = cover_image or None
        if is_published is not None:
            thread.is_published = is_published
        if is_private is not None:
            thread.is_private = is_private

        if contents is not None:
            # Segment ids change on replacement, so segment reactions go with them.
            db.query(models.Reaction).filter(
                models.Reaction.thread_id == thread_id,
                models.Reaction.segment_id.isnot(None),
            ).delete(synchronize_session=False)
            db.query(models.ThreadSegment).filter(
                models.ThreadSegment.thread_id == thread_id
            ).delete(synchronize_session=False)
            insert_segments(db, thread_id, contents)
            thread.snippet = make_snippet(contents)

        if tag_names is not None:
            db.query(models.ThreadTag).filter(
                models.ThreadTag.thread_id == thread_id
            ).delete(synchronize_session=False)
            link_tags(db, thread_id, tag_names)

    db.expire_all()
    cache_invalidate("discovery:*")
    logger.info(f"Updated thread {thread_id} (segments replaced={contents is not None})")
    return get_thread_by_id(db, thread_id, owner_id)


def delete_thread(db: Session, thread_id: UUID, user_id: UUID | None) -> None:
    """
    Delete a thread and everything hanging off it.

    Nothing relies on database cascades: segments, tag links, reactions,
    analytics, bookmarks and collection memberships are removed explicitly,
    and forks lose their pointer to this thread. Interaction logs are kept.
    """
    owner_id = require_user(user_id, "delete threads")
    thread = get_thread_row(db, thread_id)
    require_owner(thread, owner_id, "delete")

    with atomic(db, "delete_thread"):
        for model in (
            models.Reaction,
            models.ThreadSegment,
            models.ThreadTag,
            models.ThreadAnalytics,
            models.CollectionThread,
            models.Bookmark,
        ):
            db.query(model).filter(model.thread_id == thread_id).delete(synchronize_session=False)

        db.query(models.Thread).filter(
            models.Thread.original_thread_id == thread_id
        ).update({models.Thread.original_thread_id: None}, synchronize_session=False)

        db.query(models.Thread).filter(models.Thread.id == thread_id).delete(
            synchronize_session=False
        )

    db.expire_all()
    cache_invalidate("discovery:*")
    logger.info(f"Deleted thread {thread_id}")


def get_threads(
    db: Session,
    user_id: UUID | None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    tags: Iterable[str] | None = None,
    owner_id: UUID | None = None,
    only_published: bool = True,
) -> schemas.Page[schemas.ThreadListItem]:
    """
    Page through threads with segments and tags resolved, plus bookmark counts
    and reaction totals merged in from separate grouped queries.

    Anonymous callers only see public threads. Unpublished threads are only
    listed for their owner.
    """
    if sort_by not in SORTABLE_COLUMNS:
        raise ValidationError(
            f"Cannot sort by '{sort_by}'. Allowed: {', '.join(sorted(SORTABLE_COLUMNS))}"
        )
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be 'asc' or 'desc'")
    if page < 1:
        raise ValidationError("page starts at 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    query = db.query(models.Thread)

    if only_published:
        query = query.filter(models.Thread.is_published.is_(True))
    elif user_id is not None:
        query = query.filter(
            models.Thread.is_published.is_(True) | (models.Thread.owner_id == user_id)
        )
    else:
        query = query.filter(models.Thread.is_published.is_(True))

    if user_id is None:
        query = query.filter(models.Thread.is_private.is_(False))

    if owner_id is not None:
        query = query.filter(models.Thread.owner_id == owner_id)

    tag_names = [t.strip() for t in (tags or []) if t and t.strip()]
    if tag_names:
        tagged = (
            db.query(models.ThreadTag.thread_id)
            .join(models.Tag, models.Tag.id == models.ThreadTag.tag_id)
            .filter(models.Tag.name.in_(tag_names))
        )
        query = query.filter(models.Thread.id.in_(tagged))

    total = query.count()

    column = SORTABLE_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    threads = (
        query.options(selectinload(models.Thread.segments))
        .order_by(ordering, models.Thread.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    details = build_details(db, threads, thread_level_counts=False)
    bookmarks = thread_stats.bookmark_counts(db, [t.id for t in threads])

    items = [
        schemas.ThreadListItem(**detail.model_dump(), bookmarks=bookmarks.get(detail.id, 0))
        for detail in details
    ]
    return schemas.Page(items=items, total=total, page=page, limit=limit)


def get_thread_lineage(db: Session, thread_id: UUID, user_id: UUID | None) -> list[schemas.Thread]:
    """Ancestors of a thread, nearest first. Private ancestors are hidden from anonymous callers."""
    thread = get_thread_row(db, thread_id)
    check_read_access(thread, user_id)
    ancestors = walk_lineage(db, thread_id)
    return [
        schemas.Thread.model_validate(a)
        for a in ancestors
        if user_id is not None or not a.is_private
    ]


def get_forks(db: Session, thread_id: UUID, user_id: UUID | None) -> list[schemas.Thread]:
    """
    Direct forks of a thread, oldest first.

    Unpublished forks are only listed for their owner.
    """
    thread = get_thread_row(db, thread_id)
    check_read_access(thread, user_id)

    query = db.query(models.Thread).filter(models.Thread.original_thread_id == thread_id)
    if user_id is None:
        query = query.filter(
            models.Thread.is_published.is_(True),
            models.Thread.is_private.is_(False),
        )
    else:
        query = query.filter(
            models.Thread.is_published.is_(True) | (models.Thread.owner_id == user_id)
        )
    forks = query.order_by(models.Thread.created_at.asc(), models.Thread.id.asc()).all()
    return [schemas.Thread.model_validate(f) for f in forks]
