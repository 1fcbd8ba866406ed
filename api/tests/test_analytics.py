"""Test view counting, daily series, interaction log and discovery."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert
from sqlalchemy.orm import Session

from threadspire import models
from threadspire.errors import (
    AuthenticationRequiredError,
    PermissionDeniedError,
    PrivateAccessError,
)
from threadspire.models import ReactionType
from threadspire.services import analytics, reactions
from threadspire.services.forks import fork_thread


def test_repeat_views_by_one_user_count_once_as_unique(db: Session, make_thread, other_user_id):
    thread = make_thread()

    for _ in range(5):
        result = analytics.record_view(db, thread.id, other_user_id)

    assert result.view_count == 5
    assert result.unique_viewers == 1


def test_views_by_three_users(db: Session, make_thread):
    thread = make_thread()

    for _ in range(3):
        analytics.record_view(db, thread.id, uuid.uuid4())

    result = analytics.get_thread_analytics(db, thread.id, None)
    assert result.view_count == 3
    assert result.unique_viewers == 3


def test_anonymous_views_do_not_count_as_unique(db: Session, make_thread):
    thread = make_thread()

    analytics.record_view(db, thread.id, None)
    result = analytics.record_view(db, thread.id, None)

    assert result.view_count == 2
    assert result.unique_viewers == 0
    assert db.query(models.InteractionLog).count() == 0


def test_view_creates_missing_analytics_row(db: Session, make_thread, user_id):
    thread = make_thread()
    db.query(models.ThreadAnalytics).delete()
    db.commit()

    assert analytics.get_thread_analytics(db, thread.id, None).view_count == 0
    assert analytics.record_view(db, thread.id, user_id).view_count == 1


def test_private_thread_view_requires_sign_in(db: Session, make_thread, other_user_id):
    thread = make_thread(is_private=True)

    with pytest.raises(PrivateAccessError):
        analytics.record_view(db, thread.id, None)
    assert analytics.record_view(db, thread.id, other_user_id).view_count == 1


def test_daily_series_is_dense(db: Session, make_thread, user_id, other_user_id):
    thread = make_thread()
    analytics.record_view(db, thread.id, user_id)
    analytics.record_view(db, thread.id, other_user_id)
    db.add(
        models.InteractionLog(
            thread_id=thread.id,
            user_id=user_id,
            interaction_type=models.InteractionType.VIEW.value,
            created_at=datetime.now(timezone.utc) - timedelta(days=3),
        )
    )
    db.commit()

    series = analytics.get_thread_views_by_day(db, thread.id, user_id)

    today = datetime.now(timezone.utc).date()
    assert len(series) == 30
    assert series[0].date == today - timedelta(days=29)
    assert series[-1].date == today
    assert series[-1].count == 2
    assert series[-4].count == 1
    assert sum(point.count for point in series) == 3


def test_daily_series_for_unviewed_thread_is_all_zero(db: Session, make_thread):
    thread = make_thread()
    series = analytics.get_thread_views_by_day(db, thread.id, None, days=7)
    assert [point.count for point in series] == [0] * 7


def test_interactions_are_owner_only(db: Session, make_thread, user_id, other_user_id):
    thread = make_thread()
    analytics.record_view(db, thread.id, other_user_id)
    reactions.add_reaction(db, thread.id, ReactionType.CALM, other_user_id)

    log = analytics.get_thread_interactions(db, thread.id, user_id)
    assert sorted(entry.interaction_type for entry in log) == ["reaction", "view"]

    with pytest.raises(PermissionDeniedError):
        analytics.get_thread_interactions(db, thread.id, other_user_id)
    with pytest.raises(AuthenticationRequiredError):
        analytics.get_thread_interactions(db, thread.id, None)


def test_trending_ranks_by_recent_signed_in_views(db: Session, make_thread):
    popular = make_thread(title="popular")
    quiet = make_thread(title="quiet")
    anonymous_only = make_thread(title="anonymous only")
    hidden = make_thread(title="hidden", is_private=True)

    for _ in range(3):
        analytics.record_view(db, popular.id, uuid.uuid4())
    analytics.record_view(db, quiet.id, uuid.uuid4())
    analytics.record_view(db, anonymous_only.id, None)
    for _ in range(5):
        analytics.record_view(db, hidden.id, uuid.uuid4())

    trending = analytics.get_trending_threads(db, limit=5)

    assert [(t.title, t.recent_views) for t in trending] == [("popular", 3), ("quiet", 1)]
    assert trending[0].segments


def test_trending_ignores_old_views(db: Session, make_thread, user_id):
    thread = make_thread()
    db.add(
        models.InteractionLog(
            thread_id=thread.id,
            user_id=user_id,
            interaction_type=models.InteractionType.VIEW.value,
            created_at=datetime.now(timezone.utc) - timedelta(days=30),
        )
    )
    db.commit()

    assert analytics.get_trending_threads(db, days=7) == []


def test_featured_scores_forks_reactions_and_views(db: Session, make_thread, user_id):
    forked = make_thread(title="forked")
    loved = make_thread(title="loved")
    viewed = make_thread(title="viewed")
    make_thread(title="private", is_private=True)

    fork_thread(db, forked.id, uuid.uuid4())
    fork_thread(db, forked.id, uuid.uuid4())
    for _ in range(4):
        reactions.add_reaction(db, loved.id, ReactionType.INSIGHT, uuid.uuid4())
    for _ in range(10):
        analytics.record_view(db, viewed.id, None)

    featured = analytics.get_featured_threads(db, limit=3)

    assert [(t.title, t.feature_score) for t in featured] == [
        ("forked", 6.0),
        ("loved", 4.0),
        ("viewed", 1.0),
    ]


def test_view_and_analytics_over_http(client: TestClient, auth_headers, user_id, other_user_id):
    thread_id = client.post(
        "/thread", headers=auth_headers(user_id), json={"title": "T", "segments": ["a"]}
    ).json()["id"]

    # Reading a thread counts as a view
    assert client.get(f"/thread/{thread_id}", headers=auth_headers(other_user_id)).status_code == 200
    response = client.post(f"/thread/{thread_id}/views", headers=auth_headers(other_user_id))
    assert response.json() == {"thread_id": thread_id, "view_count": 2, "unique_viewers": 1}

    daily = client.get(f"/thread/{thread_id}/analytics/daily", params={"days": 7})
    assert len(daily.json()) == 7
    assert daily.json()[-1]["count"] == 2

    assert client.get(f"/thread/{thread_id}/interactions", headers=auth_headers(other_user_id)).status_code == 403
    owner_view = client.get(f"/thread/{thread_id}/interactions", headers=auth_headers(user_id))
    assert [entry["interaction_type"] for entry in owner_view.json()] == ["view", "view"]


def test_discovery_over_http(client: TestClient, auth_headers, user_id):
    thread_id = client.post(
        "/thread", headers=auth_headers(user_id), json={"title": "T", "segments": ["a"]}
    ).json()["id"]
    client.post(f"/thread/{thread_id}/views", headers=auth_headers(user_id))

    trending = client.get("/thread/trending")
    featured = client.get("/thread/featured")

    assert [t["id"] for t in trending.json()] == [thread_id]
    assert [t["id"] for t in featured.json()] == [thread_id]


def test_first_view_tolerates_concurrent_row_creation(db: Session, make_thread, user_id, monkeypatch):
    thread = make_thread()
    db.query(models.ThreadAnalytics).delete()
    db.commit()

    real_get = db.get
    raced = []

    def get_after_other_viewer(entity, ident, *args, **kwargs):
        # Another request creates the row between our lookup and our insert
        if entity is models.ThreadAnalytics and not raced:
            raced.append(ident)
            db.execute(insert(models.ThreadAnalytics).values(thread_id=ident, view_count=0, unique_viewers=0))
            db.commit()
            return None
        return real_get(entity, ident, *args, **kwargs)

    monkeypatch.setattr(db, "get", get_after_other_viewer)
    result = analytics.record_view(db, thread.id, user_id)

    assert raced == [thread.id]
    assert result.view_count == 1
    assert result.unique_viewers == 1
    assert db.query(models.ThreadAnalytics).count() == 1


def test_related_threads_ranked_by_shared_tags(db: Session, make_thread):
    current = make_thread(title="current", tags=["python", "web", "async"])
    one_tag = make_thread(title="one", tags=["web", "cooking"])
    two_tags = make_thread(title="two", tags=["python", "async"])
    make_thread(title="unrelated", tags=["cooking"])
    make_thread(title="untagged")

    related = analytics.get_related_threads(db, current.id, None)

    assert [t.id for t in related] == [two_tags.id, one_tag.id]
    assert [t.shared_tags for t in related] == [2, 1]
    assert current.id not in [t.id for t in related]


def test_related_threads_exclude_private_and_unpublished(db: Session, make_thread, user_id):
    current = make_thread(title="current", tags=["shared"])
    public = make_thread(title="public", tags=["shared"])
    make_thread(title="private", tags=["shared"], is_private=True)
    make_thread(title="draft", tags=["shared"], is_published=False)

    related = analytics.get_related_threads(db, current.id, user_id)

    assert [t.id for t in related] == [public.id]


def test_related_threads_limit_and_untagged_thread(db: Session, make_thread):
    current = make_thread(title="current", tags=["shared"])
    for position in range(5):
        make_thread(title=f"match {position}", tags=["shared"])
    untagged = make_thread(title="untagged")

    assert len(analytics.get_related_threads(db, current.id, None)) == 3
    assert len(analytics.get_related_threads(db, current.id, None, limit=5)) == 5
    assert analytics.get_related_threads(db, untagged.id, None) == []


def test_related_threads_of_private_thread_require_sign_in(db: Session, make_thread, user_id):
    current = make_thread(tags=["shared"], is_private=True)

    with pytest.raises(PrivateAccessError):
        analytics.get_related_threads(db, current.id, None)
    assert analytics.get_related_threads(db, current.id, user_id) == []


def test_related_threads_over_http(client: TestClient, auth_headers, user_id):
    headers = auth_headers(user_id)
    current = client.post(
        "/thread", headers=headers, json={"title": "T", "segments": ["a"], "tags": ["art"]}
    ).json()["id"]
    other = client.post(
        "/thread", headers=headers, json={"title": "U", "segments": ["b"], "tags": ["art", "ink"]}
    ).json()["id"]

    response = client.get(f"/thread/{current}/related")

    assert response.status_code == 200
    assert [(t["id"], t["shared_tags"]) for t in response.json()] == [(other, 1)]
    assert client.get(f"/thread/{uuid.uuid4()}/related").status_code == 404
