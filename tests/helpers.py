"""Test doubles and request helpers shared by the test modules."""

from dataclasses import replace
from datetime import UTC, datetime
from uuid import UUID, uuid4

from sitecomments.auth.security import create_access_token
from sitecomments.comments.errors import UpstreamFailureError
from sitecomments.comments.models import (
    AuditLogEntry,
    Comment,
    HiddenReason,
    PageKey,
    ReactionType,
    Reply,
    Report,
)


class FakeCommentRepository:
    """In-memory stand-in for ``CommentRepository`` with the same contract.

    Reads hand out copies so callers cannot mutate stored rows, and the
    conditional writes honour the same conditions as the CQL statements.
    """

    def __init__(self) -> None:
        self.comments: dict[UUID, Comment] = {}
        self.replies: dict[UUID, Reply] = {}
        # (target_id, actor_key, reaction_type)
        self.reactions: set[tuple[UUID, str, ReactionType]] = set()
        # (comment_id, reporter_key) -> Report
        self.reports: dict[tuple[UUID, str], Report] = {}
        self.audit_logs: list[AuditLogEntry] = []
        self.fail_audit = False
        self.fail_reactions = False

    # Comments

    async def insert_comment(self, comment: Comment) -> None:
        self.comments[comment.comment_id] = replace(comment)

    async def get_comment(self, comment_id: UUID) -> Comment | None:
        comment = self.comments.get(comment_id)
        return replace(comment) if comment else None

    async def get_comments(self, comment_ids) -> list[Comment]:
        found = [replace(self.comments[i]) for i in comment_ids if i in self.comments]
        return self._newest_first(found)

    async def list_page_comments(self, page_key: PageKey) -> list[Comment]:
        found = [replace(c) for c in self.comments.values() if c.page_key is page_key]
        return self._newest_first(found)

    def _newest_first(self, comments: list[Comment]) -> list[Comment]:
        order = {comment_id: i for i, comment_id in enumerate(self.comments)}
        return sorted(
            comments,
            key=lambda c: (c.created_at, order[c.comment_id]),
            reverse=True,
        )

    async def update_comment_body(self, comment_id, body, body_has_links, edited_at) -> bool:
        comment = self.comments.get(comment_id)
        if comment is None:
            return False
        comment.body = body
        comment.body_has_links = body_has_links
        comment.edited_at = edited_at
        comment.updated_at = edited_at
        return True

    async def set_comment_visibility(self, comment_id, hidden_reason, now) -> bool:
        comment = self.comments.get(comment_id)
        if comment is None:
            return False
        comment.hidden_reason = hidden_reason
        comment.updated_at = now
        return True

    async def auto_hide_comment(self, comment_id, now) -> bool:
        comment = self.comments.get(comment_id)
        if comment is None or comment.hidden_reason is not None:
            return False
        comment.hidden_reason = HiddenReason.REPORTED
        comment.updated_at = now
        return True

    async def set_comment_heart(self, comment_id, on, admin_user_id, now, expected) -> bool:
        comment = self.comments.get(comment_id)
        if comment is None or comment.admin_heart != expected:
            return False
        comment.admin_heart = on
        comment.admin_heart_by = admin_user_id if on else None
        comment.admin_heart_at = now if on else None
        comment.updated_at = now
        return True

    # Replies

    async def insert_reply(self, reply: Reply) -> None:
        self.replies[reply.reply_id] = replace(reply)

    async def get_reply(self, reply_id: UUID) -> Reply | None:
        reply = self.replies.get(reply_id)
        return replace(reply) if reply else None

    async def list_replies(self, parent_ids) -> dict[UUID, list[Reply]]:
        grouped: dict[UUID, list[Reply]] = {parent_id: [] for parent_id in parent_ids}
        for reply in self.replies.values():
            if reply.parent_comment_id in grouped:
                grouped[reply.parent_comment_id].append(replace(reply))
        return grouped

    async def set_reply_visibility(self, reply_id, hidden_reason, now) -> bool:
        reply = self.replies.get(reply_id)
        if reply is None:
            return False
        reply.hidden_reason = hidden_reason
        reply.updated_at = now
        return True

    async def set_reply_heart(self, reply_id, on, admin_user_id, now, expected) -> bool:
        reply = self.replies.get(reply_id)
        if reply is None or reply.admin_heart != expected:
            return False
        reply.admin_heart = on
        reply.admin_heart_by = admin_user_id if on else None
        reply.admin_heart_at = now if on else None
        return True

    # Reactions

    async def get_actor_reactions(self, target_id, actor_key) -> set[ReactionType]:
        return {t for (tid, key, t) in self.reactions if tid == target_id and key == actor_key}

    async def insert_reaction(self, target_id, actor, reaction_type) -> bool:
        row = (target_id, actor.key, reaction_type)
        if row in self.reactions:
            return False
        self.reactions.add(row)
        return True

    async def delete_reaction(self, target_id, actor_key, reaction_type) -> bool:
        row = (target_id, actor_key, reaction_type)
        if row not in self.reactions:
            return False
        self.reactions.remove(row)
        return True

    async def list_reactions(self, target_ids):
        if self.fail_reactions:
            raise UpstreamFailureError
        ids = set(target_ids)
        return [(tid, t) for (tid, _, t) in self.reactions if tid in ids]

    async def list_actor_reactions(self, target_ids, actor_key):
        if self.fail_reactions:
            raise UpstreamFailureError
        ids = set(target_ids)
        return [(tid, t) for (tid, key, t) in self.reactions if tid in ids and key == actor_key]

    # Reports

    async def insert_report(self, report: Report, reporter) -> bool:
        key = (report.comment_id, report.reporter_key)
        if key in self.reports:
            return False
        self.reports[key] = replace(report)
        return True

    async def count_reports(self, comment_id) -> int:
        return sum(1 for cid, _ in self.reports if cid == comment_id)

    async def list_report_keys(self, comment_ids):
        ids = set(comment_ids)
        return [(cid, key) for (cid, key) in self.reports if cid in ids]

    async def list_reports(self) -> list[Report]:
        return [replace(r) for r in self.reports.values()]

    async def get_report(self, report_id) -> Report | None:
        for report in self.reports.values():
            if report.report_id == report_id:
                return replace(report)
        return None

    async def set_report_resolved(self, report, resolved) -> bool:
        stored = self.reports.get((report.comment_id, report.reporter_key))
        if stored is None:
            return False
        stored.resolved = resolved
        return True

    # Audit logs

    async def insert_audit_log(self, entry: AuditLogEntry) -> None:
        if self.fail_audit:
            raise UpstreamFailureError
        self.audit_logs.append(entry)

    async def list_audit_logs(
        self, since=None, until=None, action=None, actor_user_id=None, limit=200
    ) -> list[AuditLogEntry]:
        entries = sorted(self.audit_logs, key=lambda e: e.created_at, reverse=True)
        if since:
            entries = [e for e in entries if e.created_at >= since]
        if until:
            entries = [e for e in entries if e.created_at <= until]
        if action:
            entries = [e for e in entries if e.action == action]
        if actor_user_id:
            entries = [e for e in entries if e.actor_user_id == actor_user_id]
        return entries[:limit]

    async def purge_audit_logs(self, before: datetime) -> int:
        kept = [e for e in self.audit_logs if e.created_at >= before]
        deleted = len(self.audit_logs) - len(kept)
        self.audit_logs = kept
        return deleted


class FakeAdminRoleService:
    def __init__(self) -> None:
        self.admins: set[UUID] = set()

    async def is_admin(self, user_id: UUID) -> bool:
        return user_id in self.admins


def make_token(user_id: UUID | None = None, name: str = "Bob", **claims) -> str:
    payload = {
        "sub": str(user_id or uuid4()),
        "email": f"{name.lower()}@example.com",
        "name": name,
        **claims,
    }
    return create_access_token(payload)


def auth_headers(user_id: UUID, name: str = "Bob") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, name)}"}


def guest_headers(ip: str, fingerprint: str | None = None) -> dict[str, str]:
    headers = {"X-Forwarded-For": ip}
    if fingerprint:
        headers["X-Fingerprint"] = fingerprint
    return headers


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)
