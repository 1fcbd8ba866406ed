"""Test per-user bookmarks."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from threadspire import models
from threadspire.errors import AuthenticationRequiredError
from threadspire.services import bookmarks, threads


def test_bookmarking_twice_keeps_one_row(db: Session, make_thread, other_user_id):
    thread = make_thread()

    bookmarks.add_bookmark(db, thread.id, other_user_id)
    state = bookmarks.add_bookmark(db, thread.id, other_user_id)

    assert state.bookmarked is True
    assert db.query(models.Bookmark).count() == 1
    # Only the first bookmark is logged
    assert db.query(models.InteractionLog).count() == 1


def test_toggle_bookmark(db: Session, make_thread, user_id):
    thread = make_thread()

    assert bookmarks.toggle_bookmark(db, thread.id, user_id).bookmarked is True
    assert bookmarks.is_bookmarked(db, thread.id, user_id).bookmarked is True
    assert bookmarks.toggle_bookmark(db, thread.id, user_id).bookmarked is False
    assert bookmarks.is_bookmarked(db, thread.id, user_id).bookmarked is False


def test_remove_missing_bookmark_is_a_noop(db: Session, make_thread, user_id):
    thread = make_thread()
    assert bookmarks.remove_bookmark(db, thread.id, user_id).bookmarked is False


def test_list_bookmarks_is_per_user(db: Session, make_thread, user_id, other_user_id):
    first = make_thread(title="first")
    second = make_thread(title="second")
    bookmarks.add_bookmark(db, first.id, user_id)
    bookmarks.add_bookmark(db, second.id, user_id)
    bookmarks.add_bookmark(db, second.id, other_user_id)

    assert {b.thread_id for b in bookmarks.get_user_bookmarks(db, user_id)} == {first.id, second.id}
    assert [b.thread_id for b in bookmarks.get_user_bookmarks(db, other_user_id)] == [second.id]


def test_bookmarks_need_a_user(db: Session, make_thread):
    thread = make_thread()

    with pytest.raises(AuthenticationRequiredError):
        bookmarks.add_bookmark(db, thread.id, None)
    with pytest.raises(AuthenticationRequiredError):
        bookmarks.get_user_bookmarks(db, None)
    assert bookmarks.is_bookmarked(db, thread.id, None).bookmarked is False


def test_thread_listing_counts_bookmarks(db: Session, make_thread, user_id, other_user_id):
    thread = make_thread()
    bookmarks.add_bookmark(db, thread.id, user_id)
    bookmarks.add_bookmark(db, thread.id, other_user_id)

    page = threads.get_threads(db, None)

    assert [(item.id, item.bookmarks) for item in page.items] == [(thread.id, 2)]


def test_deleted_thread_drops_its_bookmarks(db: Session, make_thread, user_id, other_user_id):
    thread = make_thread()
    bookmarks.add_bookmark(db, thread.id, other_user_id)

    threads.delete_thread(db, thread.id, user_id)

    assert bookmarks.get_user_bookmarks(db, other_user_id) == []


def test_bookmarks_over_http(client: TestClient, auth_headers, user_id):
    headers = auth_headers(user_id)
    thread_id = client.post("/thread", headers=headers, json={"title": "T", "segments": ["a"]}).json()["id"]

    assert client.put(f"/bookmark/{thread_id}").status_code == 401
    assert client.put(f"/bookmark/{thread_id}", headers=headers).json()["bookmarked"] is True
    assert [b["thread_id"] for b in client.get("/bookmark", headers=headers).json()] == [thread_id]
    assert client.post(f"/bookmark/{thread_id}/toggle", headers=headers).json()["bookmarked"] is False
    assert client.get(f"/bookmark/{thread_id}", headers=headers).json()["bookmarked"] is False
