"""Comment and moderation module.

Provides page comments with:
- User and guest authorship (guests edit with a one-time token)
- One level of replies
- good / not_good reactions
- Reports with automatic hiding at a threshold
- Admin moderation with an audit trail

Note: Routers and services are not exported here to avoid circular imports.
Import directly from sitecomments.comments.router when needed.
"""

from .errors import CommentError
from .models import (
    AUTO_HIDE_THRESHOLD,
    COMMENTS_TABLES_CQL,
    AuthorType,
    Comment,
    HiddenReason,
    PageKey,
    ReactionCounts,
    ReactionType,
    Reply,
    Report,
    ReportReason,
)


__all__ = [
    "AUTO_HIDE_THRESHOLD",
    "COMMENTS_TABLES_CQL",
    "AuthorType",
    "Comment",
    "CommentError",
    "HiddenReason",
    "PageKey",
    "ReactionCounts",
    "ReactionType",
    "Reply",
    "Report",
    "ReportReason",
]
