from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from conftest import ForumDB, post
from discussions.api.merge import get_event_dispatcher
from discussions.db import get_session
from discussions.events import DiscussionMerged, EventDispatcher
from discussions.main import app

MODERATOR_HEADERS = {"X-User-Id": "42", "X-User-Permissions": "discussion.merge"}


@pytest.fixture()
def api(forum_url):
    async def seed() -> dict:
        forum = ForumDB(forum_url)
        await forum.start()
        try:
            target, _ = await forum.add_discussion("target", [post(1, 10), post(2, 20), post(3, 30)])
            source, _ = await forum.add_discussion("source", [post(1, 5, user_id=2), post(2, 40, user_id=3)])
        finally:
            await forum.stop()
        return {"target": target, "source": source}

    ids = asyncio.run(seed())
    engine = create_async_engine(forum_url, poolclass=NullPool)
    sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    events: list[DiscussionMerged] = []

    async def session_override():
        async with sessions() as session:
            yield session

    def dispatcher_override() -> EventDispatcher:
        dispatcher = EventDispatcher()
        dispatcher.listen(DiscussionMerged, events.append)
        return dispatcher

    app.dependency_overrides[get_session] = session_override
    app.dependency_overrides[get_event_dispatcher] = dispatcher_override
    try:
        yield TestClient(app), ids, events
    finally:
        app.dependency_overrides.clear()


def test_preview_returns_plan_without_writing(api) -> None:
    client, ids, events = api
    resp = client.post(
        f"/api/discussions/{ids['target']}/merge",
        json={"ids": [ids["target"], ids["source"]], "merge": False, "ordering": "date"},
        headers=MODERATOR_HEADERS,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["committed"] is False
    assert [p["number"] for p in body["discussion"]["posts"]] == [1, 2, 3, 4, 5]
    assert body["discussion"]["comment_count"] == 5
    assert events == []

    source = client.get(f"/api/discussions/{ids['source']}")
    assert source.status_code == 200
    assert len(source.json()["posts"]) == 2


def test_commit_merges_and_redirects_old_discussion(api) -> None:
    client, ids, events = api
    resp = client.post(
        f"/api/discussions/{ids['target']}/merge",
        json={"ids": [ids["target"], ids["source"]], "merge": True, "ordering": "suffix"},
        headers=MODERATOR_HEADERS,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["committed"] is True
    assert body["merged_discussion_ids"] == [ids["source"]]
    assert body["discussion"]["last_post_number"] == 5
    assert len(events) == 1

    old = client.get(f"/api/discussions/{ids['source']}", follow_redirects=False)
    assert old.status_code == 301
    assert old.headers["location"].endswith(f"/api/discussions/{ids['target']}")

    target = client.get(f"/api/discussions/{ids['target']}")
    assert [p["number"] for p in target.json()["posts"]] == [1, 2, 3, 4, 5]

    redirections = client.get(f"/api/discussions/{ids['target']}/redirections").json()
    assert [r["from_discussion_id"] for r in redirections["items"]] == [ids["source"]]


def test_merge_outcome_is_logged_with_arguments(api, caplog) -> None:
    client, ids, _ = api
    with caplog.at_level("INFO", logger="discussions.api.merge"):
        resp = client.post(
            f"/api/discussions/{ids['target']}/merge",
            json={"ids": [ids["target"], ids["source"]], "merge": False},
            headers=MODERATOR_HEADERS,
        )
    assert resp.status_code == 200
    records = [r for r in caplog.records if r.name == "discussions.api.merge"]
    assert [r.msg for r in records] == ["Merge %s for discussion %s"]
    assert records[0].args == ("previewed", ids["target"])


def test_merge_requires_permission(api) -> None:
    client, ids, _ = api
    resp = client.post(
        f"/api/discussions/{ids['target']}/merge",
        json={"ids": [ids["target"], ids["source"]], "merge": True},
        headers={"X-User-Id": "7"},
    )
    assert resp.status_code == 403


def test_ids_must_include_target(api) -> None:
    client, ids, _ = api
    resp = client.post(
        f"/api/discussions/{ids['target']}/merge",
        json={"ids": [ids["source"]], "merge": False},
        headers=MODERATOR_HEADERS,
    )
    assert resp.status_code == 422


def test_unknown_ordering_is_rejected(api) -> None:
    client, ids, _ = api
    resp = client.post(
        f"/api/discussions/{ids['target']}/merge",
        json={"ids": [ids["target"], ids["source"]], "ordering": "random"},
        headers=MODERATOR_HEADERS,
    )
    assert resp.status_code == 422


def test_unknown_discussion_is_not_found(api) -> None:
    client, _, _ = api
    resp = client.post(
        "/api/discussions/9999/merge",
        json={"ids": [9999, 10000], "merge": True},
        headers=MODERATOR_HEADERS,
    )
    assert resp.status_code == 404
    assert client.get("/api/discussions/9999").status_code == 404


def test_validation_errors_are_reported(api) -> None:
    client, ids, _ = api
    resp = client.post(
        f"/api/discussions/{ids['target']}/merge",
        json={"ids": [ids["target"]], "merge": True},
        headers=MODERATOR_HEADERS,
    )
    assert resp.status_code == 422
    assert "ids" in resp.json()["detail"]["errors"]
