from __future__ import annotations

from conftest import at
from discussions.discussion_metadata import summarize_posts
from discussions.merge_service import PlannedPost
from discussions.models.discussion import PostType


def _planned(id: int, number: int, minute: int, user_id: int, type: str = PostType.COMMENT, hidden: bool = False):
    return PlannedPost(
        id=id,
        discussion_id=1,
        number=number,
        created_at=at(minute),
        user_id=user_id,
        type=type,
        hidden_at=at(minute + 1) if hidden else None,
    )


def test_summary_counts_comments_and_distinct_authors() -> None:
    summary = summarize_posts(
        [
            _planned(10, 1, 0, user_id=1),
            _planned(11, 2, 1, user_id=2),
            _planned(12, 3, 2, user_id=1),
        ]
    )
    assert summary.comment_count == 3
    assert summary.participant_count == 2
    assert summary.first_post_id == 10
    assert summary.last_post_id == 12
    assert summary.last_post_number == 3
    assert summary.post_number_index == 3


def test_summary_counts_eligible_posts_and_ends_on_highest_number() -> None:
    summary = summarize_posts(
        [
            _planned(10, 1, 0, user_id=1),
            _planned(11, 2, 1, user_id=2, hidden=True),
            _planned(12, 3, 2, user_id=3, type=PostType.DISCUSSION_RENAMED),
            _planned(13, 4, 3, user_id=4, type=PostType.DISCUSSION_TAGGED),
        ]
    )
    assert summary.comment_count == 3
    assert summary.participant_count == 3
    assert summary.last_post_id == 13
    assert summary.last_post_number == 4
    assert summary.post_number_index == 4


def test_summary_with_no_excluded_types_counts_everything() -> None:
    summary = summarize_posts(
        [
            _planned(10, 1, 0, user_id=1),
            _planned(11, 2, 1, user_id=2, type=PostType.DISCUSSION_TAGGED),
        ],
        excluded_types=(),
    )
    assert summary.comment_count == 2
    assert summary.participant_count == 2


def test_summary_of_empty_discussion() -> None:
    summary = summarize_posts([])
    assert summary.comment_count == 0
    assert summary.first_post_id is None
    assert summary.last_post_number is None
