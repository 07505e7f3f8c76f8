"""Cassandra persistence for comments, replies, reactions, reports and audit logs.

All statements are prepared once. Every query runs under a bounded timeout
and driver failures surface as ``UpstreamFailureError``. Conditional writes
(lightweight transactions) return whether they were applied so callers can
tell a lost race or a missing row from success.
"""

import asyncio
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from cassandra import DriverException, RequestExecutionException, RequestValidationException
from cassandra.cluster import NoHostAvailable

from .errors import UpstreamFailureError
from .models import (
    AuditLogEntry,
    Comment,
    HiddenReason,
    PageKey,
    ReactionType,
    Reply,
    Report,
    audit_bucket,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from .identity import Actor


logger = structlog.get_logger(__name__)

# Partition-key IN lists are split into chunks of this size
IN_CHUNK_SIZE = 100
# Page index rows read per round trip
PAGE_INDEX_BATCH = 500
# Rows scanned per audit bucket when filtering
AUDIT_SCAN_LIMIT = 5000
REPORT_SCAN_LIMIT = 1000

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _chunks(ids: Sequence[UUID]) -> Iterable[list[UUID]]:
    for start in range(0, len(ids), IN_CHUNK_SIZE):
        yield list(ids[start : start + IN_CHUNK_SIZE])


def _was_applied(rows: list[Any]) -> bool:
    # LWT results lead with the [applied] column
    return bool(rows) and bool(rows[0][0])


def _reason_value(reason: HiddenReason | None) -> str | None:
    return reason.value if reason is not None else None


class CommentRepository:
    """Data access for the comment system."""

    def __init__(self, session: "Session", keyspace: str, timeout: float = 5.0):
        self.session = session
        self.keyspace = keyspace
        self.timeout = timeout
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace

        # Comments
        self._insert_comment = self.session.prepare(f"""
            INSERT INTO {ks}.comments
            (comment_id, page_key, author_type, author_user_id, guest_name, author_name,
             author_avatar_url, body, body_has_links, is_hidden, hidden_reason,
             admin_heart, admin_heart_by, admin_heart_at, edit_token_hash,
             created_at, edited_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_comment_by_page = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_page (page_key, created_at, comment_id)
            VALUES (?, ?, ?)
        """)
        self._get_comment = self.session.prepare(f"""
            SELECT * FROM {ks}.comments WHERE comment_id = ?
        """)
        self._get_comments_in = self.session.prepare(f"""
            SELECT * FROM {ks}.comments WHERE comment_id IN ?
        """)
        self._get_page_index = self.session.prepare(f"""
            SELECT created_at, comment_id FROM {ks}.comments_by_page
            WHERE page_key = ?
            LIMIT ?
        """)
        self._get_page_index_before = self.session.prepare(f"""
            SELECT created_at, comment_id FROM {ks}.comments_by_page
            WHERE page_key = ? AND created_at <= ?
            LIMIT ?
        """)
        self._update_comment_body = self.session.prepare(f"""
            UPDATE {ks}.comments
            SET body = ?, body_has_links = ?, edited_at = ?, updated_at = ?
            WHERE comment_id = ?
            IF EXISTS
        """)
        self._set_comment_visibility = self.session.prepare(f"""
            UPDATE {ks}.comments
            SET is_hidden = ?, hidden_reason = ?, updated_at = ?
            WHERE comment_id = ?
            IF EXISTS
        """)
        self._auto_hide_comment = self.session.prepare(f"""
            UPDATE {ks}.comments
            SET is_hidden = true, hidden_reason = 'reported', updated_at = ?
            WHERE comment_id = ?
            IF hidden_reason = null
        """)
        self._set_comment_heart = self.session.prepare(f"""
            UPDATE {ks}.comments
            SET admin_heart = ?, admin_heart_by = ?, admin_heart_at = ?, updated_at = ?
            WHERE comment_id = ?
            IF admin_heart = ?
        """)

        # Replies
        self._insert_reply = self.session.prepare(f"""
            INSERT INTO {ks}.comment_replies
            (reply_id, parent_comment_id, page_key, author_user_id, author_name,
             author_avatar_url, body, body_has_links, is_hidden, hidden_reason,
             admin_heart, admin_heart_by, admin_heart_at, created_at, edited_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_reply_by_parent = self.session.prepare(f"""
            INSERT INTO {ks}.replies_by_parent (parent_comment_id, created_at, reply_id)
            VALUES (?, ?, ?)
        """)
        self._get_reply = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_replies WHERE reply_id = ?
        """)
        self._get_replies_in = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_replies WHERE reply_id IN ?
        """)
        self._get_reply_index_in = self.session.prepare(f"""
            SELECT parent_comment_id, reply_id FROM {ks}.replies_by_parent
            WHERE parent_comment_id IN ?
        """)
        self._set_reply_visibility = self.session.prepare(f"""
            UPDATE {ks}.comment_replies
            SET is_hidden = ?, hidden_reason = ?, updated_at = ?
            WHERE reply_id = ?
            IF EXISTS
        """)
        self._set_reply_heart = self.session.prepare(f"""
            UPDATE {ks}.comment_replies
            SET admin_heart = ?, admin_heart_by = ?, admin_heart_at = ?, updated_at = ?
            WHERE reply_id = ?
            IF admin_heart = ?
        """)

        # Reactions
        self._get_actor_reactions = self.session.prepare(f"""
            SELECT reaction_type FROM {ks}.comment_reactions
            WHERE target_id = ? AND actor_key = ?
        """)
        self._insert_reaction = self.session.prepare(f"""
            INSERT INTO {ks}.comment_reactions
            (target_id, actor_key, reaction_type, actor_type, actor_user_id,
             actor_fingerprint, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._delete_reaction = self.session.prepare(f"""
            DELETE FROM {ks}.comment_reactions
            WHERE target_id = ? AND actor_key = ? AND reaction_type = ?
            IF EXISTS
        """)
        self._get_reactions_in = self.session.prepare(f"""
            SELECT target_id, reaction_type FROM {ks}.comment_reactions
            WHERE target_id IN ?
        """)
        self._get_actor_reactions_in = self.session.prepare(f"""
            SELECT target_id, reaction_type FROM {ks}.comment_reactions
            WHERE target_id IN ? AND actor_key = ?
        """)

        # Reports
        self._insert_report = self.session.prepare(f"""
            INSERT INTO {ks}.comment_reports
            (comment_id, reporter_key, report_id, reporter_type, reporter_user_id,
             reporter_fingerprint, reason, message, resolved, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_report_by_id = self.session.prepare(f"""
            INSERT INTO {ks}.comment_reports_by_id (report_id, comment_id, reporter_key)
            VALUES (?, ?, ?)
        """)
        self._count_reports = self.session.prepare(f"""
            SELECT COUNT(*) FROM {ks}.comment_reports WHERE comment_id = ?
        """)
        self._get_report_keys_in = self.session.prepare(f"""
            SELECT comment_id, reporter_key FROM {ks}.comment_reports
            WHERE comment_id IN ?
        """)
        self._list_reports = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_reports LIMIT ?
        """)
        self._get_report_ref = self.session.prepare(f"""
            SELECT comment_id, reporter_key FROM {ks}.comment_reports_by_id
            WHERE report_id = ?
        """)
        self._get_report = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_reports
            WHERE comment_id = ? AND reporter_key = ?
        """)
        self._set_report_resolved = self.session.prepare(f"""
            UPDATE {ks}.comment_reports
            SET resolved = ?
            WHERE comment_id = ? AND reporter_key = ?
            IF EXISTS
        """)

        # Audit logs
        self._insert_audit_log = self.session.prepare(f"""
            INSERT INTO {ks}.audit_logs
            (bucket, created_at, log_id, actor_user_id, action, target_type, target_id, meta)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_audit_bucket = self.session.prepare(f"""
            INSERT INTO {ks}.audit_log_buckets (bucket) VALUES (?)
        """)
        self._list_audit_buckets = self.session.prepare(f"""
            SELECT bucket FROM {ks}.audit_log_buckets
        """)
        self._list_audit_logs = self.session.prepare(f"""
            SELECT * FROM {ks}.audit_logs
            WHERE bucket = ? AND created_at >= ? AND created_at <= ?
            LIMIT ?
        """)
        self._count_audit_before = self.session.prepare(f"""
            SELECT COUNT(*) FROM {ks}.audit_logs
            WHERE bucket = ? AND created_at < ?
        """)
        self._purge_audit_before = self.session.prepare(f"""
            DELETE FROM {ks}.audit_logs
            WHERE bucket = ? AND created_at < ?
        """)
        self._delete_audit_bucket = self.session.prepare(f"""
            DELETE FROM {ks}.audit_log_buckets WHERE bucket = ?
        """)

    async def _execute(self, statement: Any, params: list[Any] | None = None) -> list[Any]:
        """Run one statement with a timeout and translate driver failures."""
        try:
            result = await asyncio.wait_for(
                self.session.aexecute(statement, params),
                timeout=self.timeout,
            )
        except (
            DriverException,
            RequestExecutionException,
            RequestValidationException,
            NoHostAvailable,
            TimeoutError,
        ) as e:
            logger.error(
                "cassandra_query_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamFailureError from e
        return list(result or [])

    # ==========================================================================
    # Comments
    # ==========================================================================

    async def insert_comment(self, comment: Comment) -> None:
        await self._execute(
            self._insert_comment,
            [
                comment.comment_id,
                comment.page_key.value,
                comment.author_type.value,
                comment.author_user_id,
                comment.guest_name,
                comment.author_name,
                comment.author_avatar_url,
                comment.body,
                comment.body_has_links,
                comment.is_hidden,
                _reason_value(comment.hidden_reason),
                comment.admin_heart,
                comment.admin_heart_by,
                comment.admin_heart_at,
                comment.edit_token_hash,
                comment.created_at,
                comment.edited_at,
                comment.updated_at,
            ],
        )
        await self._execute(
            self._insert_comment_by_page,
            [comment.page_key.value, comment.created_at, comment.comment_id],
        )

    async def get_comment(self, comment_id: UUID) -> Comment | None:
        rows = await self._execute(self._get_comment, [comment_id])
        return Comment.from_row(rows[0]) if rows else None

    async def get_comments(self, comment_ids: Sequence[UUID]) -> list[Comment]:
        """Load comments by id, newest first."""
        comments = []
        for chunk in _chunks(comment_ids):
            rows = await self._execute(self._get_comments_in, [chunk])
            comments.extend(Comment.from_row(row) for row in rows)
        comments.sort(key=lambda c: c.created_at, reverse=True)
        return comments

    async def list_page_comments(self, page_key: PageKey) -> list[Comment]:
        """All comments of a page regardless of visibility, newest first.

        The index is walked in batches along ``created_at``. Each batch
        restarts at the last timestamp seen (inclusive) so rows sharing it
        are not skipped; ids already collected are ignored.
        """
        comment_ids: list[UUID] = []
        seen: set[UUID] = set()
        rows = await self._execute(
            self._get_page_index, [page_key.value, PAGE_INDEX_BATCH]
        )
        while True:
            fresh = [row.comment_id for row in rows if row.comment_id not in seen]
            seen.update(fresh)
            comment_ids.extend(fresh)
            if len(rows) < PAGE_INDEX_BATCH or not fresh:
                break
            rows = await self._execute(
                self._get_page_index_before,
                [page_key.value, rows[-1].created_at, PAGE_INDEX_BATCH],
            )
        return await self.get_comments(comment_ids)

    async def update_comment_body(
        self, comment_id: UUID, body: str, body_has_links: bool, edited_at: datetime
    ) -> bool:
        rows = await self._execute(
            self._update_comment_body,
            [body, body_has_links, edited_at, edited_at, comment_id],
        )
        return _was_applied(rows)

    async def set_comment_visibility(
        self, comment_id: UUID, hidden_reason: HiddenReason | None, now: datetime
    ) -> bool:
        """Set or clear the hidden reason. False when the comment is missing."""
        rows = await self._execute(
            self._set_comment_visibility,
            [hidden_reason is not None, _reason_value(hidden_reason), now, comment_id],
        )
        return _was_applied(rows)

    async def auto_hide_comment(self, comment_id: UUID, now: datetime) -> bool:
        """Hide as reported, only if the comment is currently visible."""
        rows = await self._execute(self._auto_hide_comment, [now, comment_id])
        return _was_applied(rows)

    async def set_comment_heart(
        self,
        comment_id: UUID,
        on: bool,
        admin_user_id: UUID | None,
        now: datetime,
        expected: bool,
    ) -> bool:
        rows = await self._execute(
            self._set_comment_heart,
            [
                on,
                admin_user_id if on else None,
                now if on else None,
                now,
                comment_id,
                expected,
            ],
        )
        return _was_applied(rows)

    # ==========================================================================
    # Replies
    # ==========================================================================

    async def insert_reply(self, reply: Reply) -> None:
        await self._execute(
            self._insert_reply,
            [
                reply.reply_id,
                reply.parent_comment_id,
                reply.page_key.value,
                reply.author_user_id,
                reply.author_name,
                reply.author_avatar_url,
                reply.body,
                reply.body_has_links,
                reply.is_hidden,
                _reason_value(reply.hidden_reason),
                reply.admin_heart,
                reply.admin_heart_by,
                reply.admin_heart_at,
                reply.created_at,
                reply.edited_at,
                reply.updated_at,
            ],
        )
        await self._execute(
            self._insert_reply_by_parent,
            [reply.parent_comment_id, reply.created_at, reply.reply_id],
        )

    async def get_reply(self, reply_id: UUID) -> Reply | None:
        rows = await self._execute(self._get_reply, [reply_id])
        return Reply.from_row(rows[0]) if rows else None

    async def list_replies(self, parent_ids: Sequence[UUID]) -> dict[UUID, list[Reply]]:
        """Replies grouped by parent, oldest first. Every parent id gets a list."""
        grouped: dict[UUID, list[Reply]] = {parent_id: [] for parent_id in parent_ids}
        reply_ids: list[UUID] = []
        for chunk in _chunks(parent_ids):
            rows = await self._execute(self._get_reply_index_in, [chunk])
            reply_ids.extend(row.reply_id for row in rows)

        for chunk in _chunks(reply_ids):
            rows = await self._execute(self._get_replies_in, [chunk])
            for row in rows:
                reply = Reply.from_row(row)
                grouped.setdefault(reply.parent_comment_id, []).append(reply)

        for replies in grouped.values():
            replies.sort(key=lambda r: r.created_at)
        return grouped

    async def set_reply_visibility(
        self, reply_id: UUID, hidden_reason: HiddenReason | None, now: datetime
    ) -> bool:
        rows = await self._execute(
            self._set_reply_visibility,
            [hidden_reason is not None, _reason_value(hidden_reason), now, reply_id],
        )
        return _was_applied(rows)

    async def set_reply_heart(
        self,
        reply_id: UUID,
        on: bool,
        admin_user_id: UUID | None,
        now: datetime,
        expected: bool,
    ) -> bool:
        rows = await self._execute(
            self._set_reply_heart,
            [
                on,
                admin_user_id if on else None,
                now if on else None,
                now,
                reply_id,
                expected,
            ],
        )
        return _was_applied(rows)

    # ==========================================================================
    # Reactions
    # ==========================================================================

    async def get_actor_reactions(
        self, target_id: UUID, actor_key: str
    ) -> set[ReactionType]:
        rows = await self._execute(self._get_actor_reactions, [target_id, actor_key])
        return {ReactionType(row.reaction_type) for row in rows}

    async def insert_reaction(
        self, target_id: UUID, actor: "Actor", reaction_type: ReactionType
    ) -> bool:
        rows = await self._execute(
            self._insert_reaction,
            [
                target_id,
                actor.key,
                reaction_type.value,
                actor.actor_type.value,
                actor.user_id,
                actor.fingerprint,
                datetime.now(UTC),
            ],
        )
        return _was_applied(rows)

    async def delete_reaction(
        self, target_id: UUID, actor_key: str, reaction_type: ReactionType
    ) -> bool:
        rows = await self._execute(
            self._delete_reaction, [target_id, actor_key, reaction_type.value]
        )
        return _was_applied(rows)

    async def list_reactions(
        self, target_ids: Sequence[UUID]
    ) -> list[tuple[UUID, ReactionType]]:
        reactions = []
        for chunk in _chunks(target_ids):
            rows = await self._execute(self._get_reactions_in, [chunk])
            reactions.extend(
                (row.target_id, ReactionType(row.reaction_type)) for row in rows
            )
        return reactions

    async def list_actor_reactions(
        self, target_ids: Sequence[UUID], actor_key: str
    ) -> list[tuple[UUID, ReactionType]]:
        reactions = []
        for chunk in _chunks(target_ids):
            rows = await self._execute(self._get_actor_reactions_in, [chunk, actor_key])
            reactions.extend(
                (row.target_id, ReactionType(row.reaction_type)) for row in rows
            )
        return reactions

    # ==========================================================================
    # Reports
    # ==========================================================================

    async def insert_report(self, report: Report, reporter: "Actor") -> bool:
        """Insert unless this reporter already reported the comment."""
        rows = await self._execute(
            self._insert_report,
            [
                report.comment_id,
                report.reporter_key,
                report.report_id,
                reporter.actor_type.value,
                reporter.user_id,
                reporter.fingerprint,
                report.reason.value,
                report.message,
                report.resolved,
                report.created_at,
            ],
        )
        if not _was_applied(rows):
            return False
        await self._execute(
            self._insert_report_by_id,
            [report.report_id, report.comment_id, report.reporter_key],
        )
        return True

    async def count_reports(self, comment_id: UUID) -> int:
        rows = await self._execute(self._count_reports, [comment_id])
        return rows[0].count if rows else 0

    async def list_report_keys(
        self, comment_ids: Sequence[UUID]
    ) -> list[tuple[UUID, str]]:
        """(comment_id, reporter_key) pairs for the given comments."""
        keys = []
        for chunk in _chunks(comment_ids):
            rows = await self._execute(self._get_report_keys_in, [chunk])
            keys.extend((row.comment_id, row.reporter_key) for row in rows)
        return keys

    async def list_reports(self) -> list[Report]:
        rows = await self._execute(self._list_reports, [REPORT_SCAN_LIMIT])
        return [Report.from_row(row) for row in rows]

    async def get_report(self, report_id: UUID) -> Report | None:
        refs = await self._execute(self._get_report_ref, [report_id])
        if not refs:
            return None
        rows = await self._execute(
            self._get_report, [refs[0].comment_id, refs[0].reporter_key]
        )
        return Report.from_row(rows[0]) if rows else None

    async def set_report_resolved(self, report: Report, resolved: bool) -> bool:
        rows = await self._execute(
            self._set_report_resolved,
            [resolved, report.comment_id, report.reporter_key],
        )
        return _was_applied(rows)

    # ==========================================================================
    # Audit logs
    # ==========================================================================

    async def insert_audit_log(self, entry: AuditLogEntry) -> None:
        await self._execute(
            self._insert_audit_log,
            [
                entry.bucket,
                entry.created_at,
                entry.log_id,
                entry.actor_user_id,
                entry.action,
                entry.target_type,
                entry.target_id,
                entry.meta_json(),
            ],
        )
        await self._execute(self._insert_audit_bucket, [entry.bucket])

    async def _audit_buckets(self) -> list[str]:
        rows = await self._execute(self._list_audit_buckets)
        return sorted((row.bucket for row in rows), reverse=True)

    async def list_audit_logs(
        self,
        since: datetime | None = None,
        until: datetime | None = None,
        action: str | None = None,
        actor_user_id: UUID | None = None,
        limit: int = 200,
    ) -> list[AuditLogEntry]:
        """Audit entries newest first, filtered and capped at ``limit``."""
        since = since or EPOCH
        until = until or datetime.now(UTC)
        first, last = audit_bucket(since), audit_bucket(until)

        entries: list[AuditLogEntry] = []
        for bucket in await self._audit_buckets():
            if bucket > last:
                continue
            if bucket < first:
                break
            rows = await self._execute(
                self._list_audit_logs, [bucket, since, until, AUDIT_SCAN_LIMIT]
            )
            for row in rows:
                if action and row.action != action:
                    continue
                if actor_user_id and row.actor_user_id != actor_user_id:
                    continue
                entries.append(AuditLogEntry.from_row(row))
                if len(entries) >= limit:
                    return entries
        return entries

    async def purge_audit_logs(self, before: datetime) -> int:
        """Delete audit entries older than ``before``. Returns the count removed."""
        cutoff_bucket = audit_bucket(before)
        deleted = 0
        for bucket in await self._audit_buckets():
            if bucket > cutoff_bucket:
                continue
            rows = await self._execute(self._count_audit_before, [bucket, before])
            count = rows[0].count if rows else 0
            if count:
                await self._execute(self._purge_audit_before, [bucket, before])
                deleted += count
            # Whole month is older than the cutoff
            if bucket < cutoff_bucket:
                await self._execute(self._delete_audit_bucket, [bucket])
        return deleted
