from __future__ import annotations

from threadspire.models import ReactionType


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["uptime_s"] >= 0


def test_config_lists_reaction_types_and_limits(client):
    response = client.get("/config")
    assert response.status_code == 200
    body = response.json()
    assert body["reaction_types"] == [reaction.value for reaction in ReactionType]
    assert body["max_tags_per_thread"] == 5
    assert body["max_tag_length"] == 20
    assert body["snippet_length"] == 150


def test_security_headers(client):
    response = client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Content-Security-Policy"].startswith("default-src 'none'")


def test_docs_page_is_not_locked_down(client):
    response = client.get("/docs")
    assert response.status_code == 200
    assert "Content-Security-Policy" not in response.headers


def test_unknown_thread_is_a_problem_document(client):
    response = client.get("/thread/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["status"] == 404
    assert response.json()["title"]
