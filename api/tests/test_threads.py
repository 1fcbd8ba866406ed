"""Test thread content store operations."""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from threadspire import models
from threadspire.errors import (
    AuthenticationRequiredError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PrivateAccessError,
    ValidationError,
)
from threadspire.services import analytics, bookmarks, collections, reactions, threads
from threadspire.settings import SNIPPET_LENGTH


def _order_indexes(db: Session, thread_id: uuid.UUID) -> list[int]:
    rows = (
        db.query(models.ThreadSegment.order_index)
        .filter(models.ThreadSegment.thread_id == thread_id)
        .order_by(models.ThreadSegment.order_index)
        .all()
    )
    return [row.order_index for row in rows]


def test_create_then_get_round_trips_segments_in_order(db: Session, user_id):
    created = threads.create_thread(db, user_id, title="T", segments=["a", "b", "c"])

    fetched = threads.get_thread_by_id(db, created.id, user_id)

    assert [s.content for s in fetched.segments] == ["a", "b", "c"]
    assert [s.order_index for s in fetched.segments] == [0, 1, 2]
    assert fetched.title == "T"
    assert fetched.fork_count == 0
    assert fetched.original_thread_id is None


def test_create_initializes_zero_analytics(db: Session, make_thread):
    thread = make_thread()

    row = db.get(models.ThreadAnalytics, thread.id)
    assert row is not None
    assert (row.view_count, row.unique_viewers) == (0, 0)


def test_create_requires_user(db: Session):
    with pytest.raises(AuthenticationRequiredError):
        threads.create_thread(db, None, title="T", segments=["a"])


@pytest.mark.parametrize(
    "title, segments",
    [
        ("", ["a"]),
        ("   ", ["a"]),
        ("T", []),
        ("T", ["a", ""]),
        ("T", ["a", "   "]),
        ("x" * 201, ["a"]),
    ],
)
def test_create_rejects_invalid_content(db: Session, user_id, title, segments):
    with pytest.raises(ValidationError):
        threads.create_thread(db, user_id, title=title, segments=segments)
    assert db.query(models.Thread).count() == 0


def test_snippet_is_first_segment_truncated(db: Session, user_id):
    long_segment = "y" * (SNIPPET_LENGTH + 50)
    created = threads.create_thread(db, user_id, title="T", segments=[long_segment, "second"])
    assert created.snippet == "y" * SNIPPET_LENGTH


def test_tags_are_trimmed_deduplicated_and_shared(db: Session, user_id, other_user_id):
    first = threads.create_thread(db, user_id, title="A", segments=["a"], tags=[" poetry ", "art", "poetry", ""])
    second = threads.create_thread(db, other_user_id, title="B", segments=["b"], tags=["art"])

    assert first.tags == ["art", "poetry"]
    assert second.tags == ["art"]
    assert db.query(models.Tag).count() == 2


def test_tag_limits_are_enforced(db: Session, user_id):
    with pytest.raises(ValidationError):
        threads.create_thread(db, user_id, title="T", segments=["a"], tags=[f"t{i}" for i in range(6)])
    with pytest.raises(ValidationError):
        threads.create_thread(db, user_id, title="T", segments=["a"], tags=["x" * 21])


def test_normalize_tags_keeps_first_occurrence_order():
    assert threads.normalize_tags(["b", "a", "b", " c "]) == ["b", "a", "c"]
    assert threads.normalize_tags(None) == []


def test_get_missing_thread_raises_not_found(db: Session, user_id):
    with pytest.raises(NotFoundError):
        threads.get_thread_by_id(db, uuid.uuid4(), user_id)


def test_private_thread_needs_a_signed_in_reader(db: Session, make_thread, other_user_id):
    thread = make_thread(is_private=True)

    with pytest.raises(PrivateAccessError):
        threads.get_thread_by_id(db, thread.id, None)
    assert threads.get_thread_by_id(db, thread.id, other_user_id).id == thread.id


def test_reaction_counts_on_detail_include_every_type(db: Session, make_thread):
    thread = make_thread()
    detail = threads.get_thread_by_id(db, thread.id, None)
    assert detail.reaction_counts == {r.value: 0 for r in models.ReactionType}


def test_author_falls_back_to_unknown_creator(db: Session, make_thread):
    thread = make_thread()
    detail = threads.get_thread_by_id(db, thread.id, None)
    assert detail.author.name == "Unknown Creator"


def test_update_replaces_segments_with_dense_order(db: Session, make_thread, user_id):
    thread = make_thread(segments=["a", "b", "c", "d"])

    updated = threads.update_thread(db, thread.id, user_id, segments=["z", "y"])

    assert [s.content for s in updated.segments] == ["z", "y"]
    assert _order_indexes(db, thread.id) == [0, 1]
    assert updated.snippet == "z"


def test_update_replaces_tags_and_fields(db: Session, make_thread, user_id):
    thread = make_thread(tags=["old"])

    updated = threads.update_thread(
        db,
        thread.id,
        user_id,
        title="New title",
        tags=["new", "fresh"],
        is_published=False,
        is_private=True,
    )

    assert updated.title == "New title"
    assert updated.tags == ["fresh", "new"]
    assert updated.is_published is False
    assert updated.is_private is True
    # Untouched fields keep their values
    assert [s.content for s in updated.segments] == ["first", "second"]


def test_update_rejects_empty_segment_and_keeps_old_content(db: Session, make_thread, user_id):
    thread = make_thread(segments=["keep", "me"])

    with pytest.raises(ValidationError):
        threads.update_thread(db, thread.id, user_id, segments=["ok", ""])

    fetched = threads.get_thread_by_id(db, thread.id, user_id)
    assert [s.content for s in fetched.segments] == ["keep", "me"]


def test_update_by_non_owner_is_denied(db: Session, make_thread, other_user_id):
    thread = make_thread()
    with pytest.raises(PermissionDeniedError):
        threads.update_thread(db, thread.id, other_user_id, title="Mine now")


def test_update_bumps_version_and_rejects_stale_writers(db: Session, make_thread, user_id):
    thread = make_thread()
    start_version = threads.get_thread_by_id(db, thread.id, user_id).version

    updated = threads.update_thread(db, thread.id, user_id, title="v2", expected_version=start_version)
    assert updated.version == start_version + 1

    with pytest.raises(ConflictError):
        threads.update_thread(db, thread.id, user_id, title="stale", expected_version=start_version)
    assert threads.get_thread_by_id(db, thread.id, user_id).title == "v2"


def test_segment_replacement_drops_segment_reactions(db: Session, make_thread, user_id):
    thread = make_thread()
    segment_id = thread.segments[0].id
    reactions.add_reaction(db, thread.id, models.ReactionType.FIRE, user_id, segment_id)
    reactions.add_reaction(db, thread.id, models.ReactionType.LOVE, user_id)

    threads.update_thread(db, thread.id, user_id, segments=["new"])

    remaining = db.query(models.Reaction).filter(models.Reaction.thread_id == thread.id).all()
    assert [(r.segment_id, r.type) for r in remaining] == [(None, models.ReactionType.LOVE.value)]


def test_delete_removes_dependents_and_detaches_forks(db: Session, make_thread, user_id, other_user_id):
    from threadspire.services.forks import fork_thread

    thread_id = make_thread(tags=["gone"]).id
    fork_id = fork_thread(db, thread_id, other_user_id)
    reactions.add_reaction(db, thread_id, models.ReactionType.CALM, other_user_id)
    bookmarks.add_bookmark(db, thread_id, other_user_id)
    analytics.record_view(db, thread_id, other_user_id)
    collection = collections.create_collection(db, user_id, "Mine")
    collections.add_thread_to_collection(db, collection.id, thread_id, user_id)

    threads.delete_thread(db, thread_id, user_id)

    assert db.get(models.Thread, thread_id) is None
    for model in (
        models.ThreadSegment,
        models.ThreadTag,
        models.Reaction,
        models.ThreadAnalytics,
        models.Bookmark,
        models.CollectionThread,
    ):
        assert db.query(model).filter(model.thread_id == thread_id).count() == 0
    assert db.get(models.Thread, fork_id).original_thread_id is None
    # The interaction log is append-only and survives
    assert db.query(models.InteractionLog).filter(models.InteractionLog.thread_id == thread_id).count() > 0
    # Tags themselves are shared and stay
    assert db.query(models.Tag).filter(models.Tag.name == "gone").count() == 1


def test_delete_by_non_owner_is_denied(db: Session, make_thread, other_user_id):
    thread = make_thread()
    with pytest.raises(PermissionDeniedError):
        threads.delete_thread(db, thread.id, other_user_id)
    assert db.get(models.Thread, thread.id) is not None


def test_listing_hides_private_threads_from_anonymous(db: Session, make_thread, user_id):
    make_thread(title="public")
    make_thread(title="private", is_private=True)

    anonymous = threads.get_threads(db, None)
    signed_in = threads.get_threads(db, user_id)

    assert [t.title for t in anonymous.items] == ["public"]
    assert anonymous.total == 1
    assert sorted(t.title for t in signed_in.items) == ["private", "public"]


def test_listing_shows_unpublished_only_to_owner(db: Session, make_thread, user_id, other_user_id):
    make_thread(title="draft-ish", is_published=False)
    make_thread(title="live")

    owner_view = threads.get_threads(db, user_id, only_published=False)
    other_view = threads.get_threads(db, other_user_id, only_published=False)

    assert sorted(t.title for t in owner_view.items) == ["draft-ish", "live"]
    assert [t.title for t in other_view.items] == ["live"]


def test_listing_filters_by_tag_and_owner(db: Session, make_thread, user_id, other_user_id):
    make_thread(title="tagged", tags=["sea"])
    make_thread(title="untagged")
    make_thread(title="theirs", tags=["sea"], owner=other_user_id)

    by_tag = threads.get_threads(db, None, tags=["sea"])
    by_owner = threads.get_threads(db, None, tags=["sea"], owner_id=user_id)

    assert sorted(t.title for t in by_tag.items) == ["tagged", "theirs"]
    assert [t.title for t in by_owner.items] == ["tagged"]


def test_listing_paginates_and_sorts(db: Session, make_thread):
    for title in ["c", "a", "b"]:
        make_thread(title=title)

    first = threads.get_threads(db, None, page=1, limit=2, sort_by="title", sort_order="asc")
    second = threads.get_threads(db, None, page=2, limit=2, sort_by="title", sort_order="asc")

    assert [t.title for t in first.items] == ["a", "b"]
    assert [t.title for t in second.items] == ["c"]
    assert first.total == second.total == 3


def test_listing_rejects_unknown_sort_key(db: Session):
    with pytest.raises(ValidationError):
        threads.get_threads(db, None, sort_by="owner_id; drop table threads")


def test_listing_merges_bookmarks_and_reaction_totals(db: Session, make_thread, user_id, other_user_id):
    thread = make_thread()
    segment_id = thread.segments[1].id
    reactions.add_reaction(db, thread.id, models.ReactionType.FIRE, user_id)
    reactions.add_reaction(db, thread.id, models.ReactionType.FIRE, other_user_id, segment_id)
    bookmarks.add_bookmark(db, thread.id, other_user_id)

    item = threads.get_threads(db, None).items[0]

    assert item.bookmarks == 1
    assert item.reaction_counts[models.ReactionType.FIRE.value] == 2
    assert [s.content for s in item.segments] == ["first", "second"]


def test_create_with_missing_original_is_not_found(db: Session, user_id):
    with pytest.raises(NotFoundError):
        threads.create_thread(db, user_id, title="T", segments=["a"], original_thread_id=uuid.uuid4())


def test_lineage_and_forks(db: Session, make_thread, user_id, other_user_id):
    from threadspire.services.forks import fork_thread

    root = make_thread(title="root")
    child_id = fork_thread(db, root.id, other_user_id)
    grandchild_id = fork_thread(db, child_id, user_id)

    lineage = threads.get_thread_lineage(db, grandchild_id, user_id)
    assert [t.id for t in lineage] == [child_id, root.id]
    assert [t.id for t in threads.get_forks(db, root.id, other_user_id)] == [child_id]
    assert threads.get_forks(db, root.id, None) == []


def test_lineage_cycle_is_detected(db: Session, make_thread):
    a = make_thread(title="a")
    b = make_thread(title="b")
    # Corrupt the data directly; the content store would never write this.
    db.query(models.Thread).filter(models.Thread.id == a.id).update({"original_thread_id": b.id})
    db.query(models.Thread).filter(models.Thread.id == b.id).update({"original_thread_id": a.id})
    db.commit()

    with pytest.raises(ValidationError):
        threads.walk_lineage(db, a.id)


# ============================================================================
# HTTP
# ============================================================================


def test_create_thread_requires_auth(client: TestClient):
    response = client.post("/thread", json={"title": "T", "segments": ["a"]})
    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["status"] == 401


def test_thread_http_lifecycle(client: TestClient, auth_headers, user_id, other_user_id):
    headers = auth_headers(user_id)

    created = client.post(
        "/thread",
        headers=headers,
        json={"title": "Hello", "segments": ["one", "two"], "tags": ["intro"]},
    )
    assert created.status_code == 201
    thread_id = created.json()["id"]

    fetched = client.get(f"/thread/{thread_id}")
    assert fetched.status_code == 200
    assert [s["content"] for s in fetched.json()["segments"]] == ["one", "two"]
    assert fetched.json()["tags"] == ["intro"]

    denied = client.patch(f"/thread/{thread_id}", headers=auth_headers(other_user_id), json={"title": "x"})
    assert denied.status_code == 403

    patched = client.patch(
        f"/thread/{thread_id}",
        headers=headers,
        json={"segments": [{"content": "uno"}, "dos", "tres"]},
    )
    assert patched.status_code == 200
    assert [s["order_index"] for s in patched.json()["segments"]] == [0, 1, 2]
    assert [s["content"] for s in patched.json()["segments"]] == ["uno", "dos", "tres"]

    assert client.delete(f"/thread/{thread_id}", headers=headers).status_code == 204
    assert client.get(f"/thread/{thread_id}").status_code == 404


def test_get_thread_over_http_counts_a_view(client: TestClient, auth_headers, user_id):
    headers = auth_headers(user_id)
    thread_id = client.post("/thread", headers=headers, json={"title": "T", "segments": ["a"]}).json()["id"]

    client.get(f"/thread/{thread_id}", headers=headers)
    client.get(f"/thread/{thread_id}")

    stats = client.get(f"/thread/{thread_id}/analytics").json()
    assert stats["view_count"] == 2
    assert stats["unique_viewers"] == 1


def test_private_thread_over_http(client: TestClient, auth_headers, user_id):
    headers = auth_headers(user_id)
    thread_id = client.post(
        "/thread", headers=headers, json={"title": "T", "segments": ["a"], "is_private": True}
    ).json()["id"]

    assert client.get(f"/thread/{thread_id}").status_code == 403
    assert client.get(f"/thread/{thread_id}", headers=headers).status_code == 200


def test_stale_version_over_http_is_conflict(client: TestClient, auth_headers, user_id):
    headers = auth_headers(user_id)
    body = client.post("/thread", headers=headers, json={"title": "T", "segments": ["a"]}).json()

    ok = client.patch(
        f"/thread/{body['id']}", headers=headers, json={"title": "T2", "expected_version": body["version"]}
    )
    stale = client.patch(
        f"/thread/{body['id']}", headers=headers, json={"title": "T3", "expected_version": body["version"]}
    )

    assert ok.status_code == 200
    assert stale.status_code == 409


def test_list_threads_over_http(client: TestClient, auth_headers, user_id):
    headers = auth_headers(user_id)
    for title in ["one", "two"]:
        client.post("/thread", headers=headers, json={"title": title, "segments": ["a"]})

    response = client.get("/thread", params={"sort_by": "title", "sort_order": "asc"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert [t["title"] for t in body["items"]] == ["one", "two"]
    assert client.get("/thread", params={"sort_by": "nope"}).status_code == 400
