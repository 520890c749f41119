"""Models package: re-export all ORM classes so `Base.metadata` knows every table."""
from discussions.models.discussion import Discussion, Post, PostType  # noqa: F401
from discussions.models.discussion_user import DiscussionUser, Subscription  # noqa: F401
from discussions.models.redirection import Redirection  # noqa: F401
