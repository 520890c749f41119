"""Prometheus metrics for discussion merges."""
from __future__ import annotations

from prometheus_client import Counter


MERGES_TOTAL = Counter(
    "forum_discussion_merges_total",
    "Merge commands by ordering and outcome",
    ["ordering", "outcome"],
)

MERGE_FAILURES_TOTAL = Counter(
    "forum_discussion_merge_failures_total",
    "Merge transactions rolled back, by failed step",
    ["step"],
)

POSTS_RENUMBERED_TOTAL = Counter(
    "forum_posts_renumbered_total",
    "Posts whose number or discussion changed during a committed merge",
    ["ordering"],
)

GAP_FIXES_TOTAL = Counter(
    "forum_post_number_gap_fixes_total",
    "Discussions renumbered because their post numbers had gaps",
)

REDIRECTIONS_TOTAL = Counter(
    "forum_discussion_redirections_total",
    "Redirections written for merged-away discussions",
)

SUBSCRIPTIONS_MIGRATED_TOTAL = Counter(
    "forum_subscriptions_migrated_total",
    "Follow subscriptions carried over to a merge target",
    ["mode"],
)

NUMBERING_AUDIT_GAPS_TOTAL = Counter(
    "forum_numbering_audit_gaps_total",
    "Post-merge audits that found a non-contiguous numbering",
)
