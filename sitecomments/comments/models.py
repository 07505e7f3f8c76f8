"""Database models for the comment and moderation system.

Cassandra table definitions for:
- Comments: one row per comment, plus a per-page index ordered newest first
- Replies: one level deep, plus a per-parent index ordered oldest first
- Reactions: good/not_good votes keyed by target and actor
- Reports: abuse reports, unique per (comment, reporter)
- Audit logs: append-only admin action trail bucketed by month

Visibility is modelled by ``hidden_reason`` alone; ``is_hidden`` is derived
from it and both columns are written together.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import orjson


class PageKey(str, Enum):
    """Content pages that accept comments."""

    HOME = "home"
    PROFILE = "profile"
    YOUTUBE = "youtube"
    NICONICO = "niconico"
    DEV = "dev"


class AuthorType(str, Enum):
    USER = "user"
    GUEST = "guest"


class HiddenReason(str, Enum):
    """Why a comment or reply is not shown publicly."""

    ADMIN = "admin"
    REPORTED = "reported"
    DELETED = "deleted"


class VisibilityState(str, Enum):
    """Admin filter over the (is_hidden, hidden_reason) pair."""

    VISIBLE = "visible"
    HIDDEN = "hidden"
    REPORTED = "reported"
    DELETED = "deleted"


class ReactionType(str, Enum):
    GOOD = "good"
    NOT_GOOD = "not_good"

    @property
    def opposite(self) -> "ReactionType":
        return ReactionType.NOT_GOOD if self is ReactionType.GOOD else ReactionType.GOOD


class ReportReason(str, Enum):
    SPAM = "spam"
    ABUSE = "abuse"
    OTHER = "other"


class ActorType(str, Enum):
    USER = "user"
    GUEST = "guest"


class TargetType(str, Enum):
    """Audit log target tables."""

    COMMENTS = "comments"
    REPLIES = "comment_replies"
    REPORTS = "comment_reports"
    AUDIT_LOGS = "audit_logs"


class AuditAction(str, Enum):
    COMMENT_HIDE = "comment.hide"
    COMMENT_UNHIDE = "comment.unhide"
    COMMENT_DELETE = "comment.delete"
    COMMENT_HEART = "comment.heart"
    REPLY_HIDE = "reply.hide"
    REPLY_UNHIDE = "reply.unhide"
    REPLY_DELETE = "reply.delete"
    REPLY_HEART = "reply.heart"
    REPORT_RESOLVE = "report.resolve"
    AUDIT_LOGS_CLEANUP = "audit_logs.cleanup"


# Distinct reporters needed before a comment is hidden automatically
AUTO_HIDE_THRESHOLD = 3


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments (
    comment_id UUID PRIMARY KEY,
    page_key TEXT,
    author_type TEXT,
    author_user_id UUID,
    guest_name TEXT,
    author_name TEXT,
    author_avatar_url TEXT,
    body TEXT,
    body_has_links BOOLEAN,
    is_hidden BOOLEAN,
    hidden_reason TEXT,
    admin_heart BOOLEAN,
    admin_heart_by UUID,
    admin_heart_at TIMESTAMP,
    edit_token_hash TEXT,
    created_at TIMESTAMP,
    edited_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Page feed index, newest first
COMMENTS_BY_PAGE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_page (
    page_key TEXT,
    created_at TIMESTAMP,
    comment_id UUID,
    PRIMARY KEY ((page_key), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, comment_id ASC)
"""

REPLIES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_replies (
    reply_id UUID PRIMARY KEY,
    parent_comment_id UUID,
    page_key TEXT,
    author_user_id UUID,
    author_name TEXT,
    author_avatar_url TEXT,
    body TEXT,
    body_has_links BOOLEAN,
    is_hidden BOOLEAN,
    hidden_reason TEXT,
    admin_heart BOOLEAN,
    admin_heart_by UUID,
    admin_heart_at TIMESTAMP,
    created_at TIMESTAMP,
    edited_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Thread index, oldest first
REPLIES_BY_PARENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.replies_by_parent (
    parent_comment_id UUID,
    created_at TIMESTAMP,
    reply_id UUID,
    PRIMARY KEY ((parent_comment_id), created_at, reply_id)
) WITH CLUSTERING ORDER BY (created_at ASC, reply_id ASC)
"""

# One row per (target, actor, polarity); the ledger keeps at most one
# polarity per (target, actor)
REACTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_reactions (
    target_id UUID,
    actor_key TEXT,
    reaction_type TEXT,
    actor_type TEXT,
    actor_user_id UUID,
    actor_fingerprint TEXT,
    created_at TIMESTAMP,
    PRIMARY KEY ((target_id), actor_key, reaction_type)
)
"""

REPORTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_reports (
    comment_id UUID,
    reporter_key TEXT,
    report_id UUID,
    reporter_type TEXT,
    reporter_user_id UUID,
    reporter_fingerprint TEXT,
    reason TEXT,
    message TEXT,
    resolved BOOLEAN,
    created_at TIMESTAMP,
    PRIMARY KEY ((comment_id), reporter_key)
)
"""

# Report id lookup for admin triage
REPORTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_reports_by_id (
    report_id UUID PRIMARY KEY,
    comment_id UUID,
    reporter_key TEXT
)
"""

AUDIT_LOGS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.audit_logs (
    bucket TEXT,
    created_at TIMESTAMP,
    log_id UUID,
    actor_user_id UUID,
    action TEXT,
    target_type TEXT,
    target_id TEXT,
    meta TEXT,
    PRIMARY KEY ((bucket), created_at, log_id)
) WITH CLUSTERING ORDER BY (created_at DESC, log_id ASC)
"""

# Months that hold at least one audit entry
AUDIT_LOG_BUCKETS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.audit_log_buckets (
    bucket TEXT PRIMARY KEY
)
"""

COMMENTS_TABLES_CQL = [
    COMMENTS_TABLE_CQL,
    COMMENTS_BY_PAGE_TABLE_CQL,
    REPLIES_TABLE_CQL,
    REPLIES_BY_PARENT_TABLE_CQL,
    REACTIONS_TABLE_CQL,
    REPORTS_TABLE_CQL,
    REPORTS_BY_ID_TABLE_CQL,
    AUDIT_LOGS_TABLE_CQL,
    AUDIT_LOG_BUCKETS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


def _hidden_reason(value: str | None) -> HiddenReason | None:
    return HiddenReason(value) if value else None


def visibility_state(hidden_reason: HiddenReason | None) -> VisibilityState:
    """Map a hidden reason to the admin visibility filter."""
    if hidden_reason is None:
        return VisibilityState.VISIBLE
    return {
        HiddenReason.ADMIN: VisibilityState.HIDDEN,
        HiddenReason.REPORTED: VisibilityState.REPORTED,
        HiddenReason.DELETED: VisibilityState.DELETED,
    }[hidden_reason]


@dataclass
class Comment:
    """Top-level comment on a page."""

    comment_id: UUID
    page_key: PageKey
    author_type: AuthorType
    author_user_id: UUID | None
    guest_name: str | None
    author_name: str | None
    author_avatar_url: str | None
    body: str
    body_has_links: bool
    hidden_reason: HiddenReason | None
    admin_heart: bool
    admin_heart_by: UUID | None
    admin_heart_at: datetime | None
    edit_token_hash: str | None
    created_at: datetime
    edited_at: datetime | None
    updated_at: datetime

    @property
    def is_hidden(self) -> bool:
        return self.hidden_reason is not None

    @property
    def is_deleted(self) -> bool:
        return self.hidden_reason is HiddenReason.DELETED

    @property
    def visibility_state(self) -> VisibilityState:
        return visibility_state(self.hidden_reason)

    @property
    def display_name(self) -> str:
        if self.author_type is AuthorType.GUEST:
            return self.guest_name or "guest"
        return self.author_name or "user"

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from Cassandra row."""
        return cls(
            comment_id=row.comment_id,
            page_key=PageKey(row.page_key),
            author_type=AuthorType(row.author_type),
            author_user_id=row.author_user_id,
            guest_name=row.guest_name,
            author_name=row.author_name,
            author_avatar_url=row.author_avatar_url,
            body=row.body,
            body_has_links=row.body_has_links or False,
            hidden_reason=_hidden_reason(row.hidden_reason),
            admin_heart=row.admin_heart or False,
            admin_heart_by=row.admin_heart_by,
            admin_heart_at=row.admin_heart_at,
            edit_token_hash=row.edit_token_hash,
            created_at=row.created_at,
            edited_at=row.edited_at,
            updated_at=row.updated_at or row.created_at,
        )


@dataclass
class Reply:
    """One-level reply to a comment. Always authored by a signed-in user."""

    reply_id: UUID
    parent_comment_id: UUID
    page_key: PageKey
    author_user_id: UUID
    author_name: str | None
    author_avatar_url: str | None
    body: str
    body_has_links: bool
    hidden_reason: HiddenReason | None
    admin_heart: bool
    admin_heart_by: UUID | None
    admin_heart_at: datetime | None
    created_at: datetime
    edited_at: datetime | None
    updated_at: datetime

    @property
    def is_hidden(self) -> bool:
        return self.hidden_reason is not None

    @property
    def is_deleted(self) -> bool:
        return self.hidden_reason is HiddenReason.DELETED

    @property
    def visibility_state(self) -> VisibilityState:
        return visibility_state(self.hidden_reason)

    @classmethod
    def from_row(cls, row: Any) -> "Reply":
        """Create Reply from Cassandra row."""
        return cls(
            reply_id=row.reply_id,
            parent_comment_id=row.parent_comment_id,
            page_key=PageKey(row.page_key),
            author_user_id=row.author_user_id,
            author_name=row.author_name,
            author_avatar_url=row.author_avatar_url,
            body=row.body,
            body_has_links=row.body_has_links or False,
            hidden_reason=_hidden_reason(row.hidden_reason),
            admin_heart=row.admin_heart or False,
            admin_heart_by=row.admin_heart_by,
            admin_heart_at=row.admin_heart_at,
            created_at=row.created_at,
            edited_at=row.edited_at,
            updated_at=row.updated_at or row.created_at,
        )


@dataclass
class ReactionCounts:
    """Good/not_good totals for one target."""

    good: int = 0
    not_good: int = 0

    def add(self, reaction_type: ReactionType) -> None:
        if reaction_type is ReactionType.GOOD:
            self.good += 1
        else:
            self.not_good += 1


@dataclass
class Report:
    """Abuse report on a comment."""

    report_id: UUID
    comment_id: UUID
    reporter_key: str
    reason: ReportReason
    message: str | None
    resolved: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Report":
        return cls(
            report_id=row.report_id,
            comment_id=row.comment_id,
            reporter_key=row.reporter_key,
            reason=ReportReason(row.reason),
            message=row.message,
            resolved=row.resolved or False,
            created_at=row.created_at,
        )


@dataclass
class AuditLogEntry:
    """Append-only record of an admin action."""

    log_id: UUID
    actor_user_id: UUID
    action: str
    target_type: str
    target_id: str | None
    meta: dict[str, Any]
    created_at: datetime

    @property
    def bucket(self) -> str:
        return audit_bucket(self.created_at)

    @classmethod
    def from_row(cls, row: Any) -> "AuditLogEntry":
        return cls(
            log_id=row.log_id,
            actor_user_id=row.actor_user_id,
            action=row.action,
            target_type=row.target_type,
            target_id=row.target_id,
            meta=orjson.loads(row.meta) if row.meta else {},
            created_at=row.created_at,
        )

    def meta_json(self) -> str:
        return orjson.dumps(self.meta).decode()


def audit_bucket(moment: datetime) -> str:
    """Monthly partition key for audit logs (``YYYY-MM``)."""
    return moment.strftime("%Y-%m")


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_comment(
    page_key: PageKey,
    author_type: AuthorType,
    body: str,
    body_has_links: bool,
    author_user_id: UUID | None = None,
    guest_name: str | None = None,
    author_name: str | None = None,
    author_avatar_url: str | None = None,
    edit_token_hash: str | None = None,
) -> Comment:
    """Create a new visible comment."""
    now = datetime.now(UTC)
    return Comment(
        comment_id=uuid4(),
        page_key=page_key,
        author_type=author_type,
        author_user_id=author_user_id,
        guest_name=guest_name,
        author_name=author_name,
        author_avatar_url=author_avatar_url,
        body=body,
        body_has_links=body_has_links,
        hidden_reason=None,
        admin_heart=False,
        admin_heart_by=None,
        admin_heart_at=None,
        edit_token_hash=edit_token_hash,
        created_at=now,
        edited_at=None,
        updated_at=now,
    )


def create_reply(
    parent: Comment,
    author_user_id: UUID,
    body: str,
    body_has_links: bool,
    author_name: str | None = None,
    author_avatar_url: str | None = None,
) -> Reply:
    """Create a new visible reply under ``parent``."""
    now = datetime.now(UTC)
    return Reply(
        reply_id=uuid4(),
        parent_comment_id=parent.comment_id,
        page_key=parent.page_key,
        author_user_id=author_user_id,
        author_name=author_name,
        author_avatar_url=author_avatar_url,
        body=body,
        body_has_links=body_has_links,
        hidden_reason=None,
        admin_heart=False,
        admin_heart_by=None,
        admin_heart_at=None,
        created_at=now,
        edited_at=None,
        updated_at=now,
    )


def create_report(
    comment_id: UUID,
    reporter_key: str,
    reason: ReportReason,
    message: str | None = None,
) -> Report:
    return Report(
        report_id=uuid4(),
        comment_id=comment_id,
        reporter_key=reporter_key,
        reason=reason,
        message=message,
        resolved=False,
        created_at=datetime.now(UTC),
    )


def create_audit_log(
    actor_user_id: UUID,
    action: AuditAction,
    target_type: TargetType,
    target_id: UUID | str | None = None,
    meta: dict[str, Any] | None = None,
) -> AuditLogEntry:
    """Create an audit log entry ready to be inserted."""
    return AuditLogEntry(
        log_id=uuid4(),
        actor_user_id=actor_user_id,
        action=action.value,
        target_type=target_type.value,
        target_id=str(target_id) if target_id is not None else None,
        meta=meta or {},
        created_at=datetime.now(UTC),
    )
