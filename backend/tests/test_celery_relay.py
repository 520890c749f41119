from __future__ import annotations

from celery.backends.base import DisabledBackend

from discussions.api.merge import _celery_relay
from discussions.celery_app import celery
from discussions.events import DiscussionMerged
from discussions.models.discussion import Discussion, Post
from discussions.permissions import Actor


def test_relay_runs_without_a_result_backend() -> None:
    assert celery.conf.task_ignore_result is True
    assert isinstance(celery.backend, DisabledBackend)


def test_relay_queues_merged_event(monkeypatch) -> None:
    sent: list[tuple] = []

    def fake_send_task(name, args=None, **options):
        sent.append((name, args, options))

    monkeypatch.setattr(celery, "send_task", fake_send_task)
    target = Discussion(id=1, title="target")
    source = Discussion(id=2, title="source")
    event = DiscussionMerged(
        actor=Actor(id=7, is_admin=True),
        posts=[Post(id=11, discussion_id=2, number=1)],
        discussion=target,
        source_discussions=[target, source],
    )

    _celery_relay(event)

    assert sent == [
        (
            "discussions.workers.merged.run_discussion_merged",
            [{"actor_id": 7, "discussion_id": 1, "post_ids": [11], "source_discussion_ids": [2]}],
            {"queue": "discussion_events"},
        )
    ]
