"""Admin moderation gateway.

Applies hide/unhide/delete/heart to comments and replies, resolves reports,
and manages the audit trail. Callers must have passed the admin-role check
(see ``AdminUser``). Every action writes one audit entry; an audit failure
never undoes the action and is reported back as a degraded success.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from .errors import CommentNotFoundError, UpstreamFailureError
from .models import (
    AuditAction,
    AuditLogEntry,
    HiddenReason,
    TargetType,
    create_audit_log,
)
from .reports import ReportView


if TYPE_CHECKING:
    from .repository import CommentRepository


logger = structlog.get_logger(__name__)

AUDIT_WARNING = "action applied but audit log could not be written"
# Attempts for a heart toggle that keeps losing the conditional write
HEART_TOGGLE_ATTEMPTS = 3


class ModerationAction(str, Enum):
    HIDE = "hide"
    UNHIDE = "unhide"
    DELETE = "delete"


_HIDDEN_REASON = {
    ModerationAction.HIDE: HiddenReason.ADMIN,
    ModerationAction.UNHIDE: None,
    ModerationAction.DELETE: HiddenReason.DELETED,
}

_COMMENT_AUDIT = {
    ModerationAction.HIDE: AuditAction.COMMENT_HIDE,
    ModerationAction.UNHIDE: AuditAction.COMMENT_UNHIDE,
    ModerationAction.DELETE: AuditAction.COMMENT_DELETE,
}

_REPLY_AUDIT = {
    ModerationAction.HIDE: AuditAction.REPLY_HIDE,
    ModerationAction.UNHIDE: AuditAction.REPLY_UNHIDE,
    ModerationAction.DELETE: AuditAction.REPLY_DELETE,
}


@dataclass
class ModerationResult:
    ok: bool = True
    audit_logged: bool = True
    warning: str | None = None
    admin_heart: bool | None = None
    deleted_count: int | None = None


class ModerationGateway:
    def __init__(self, repository: "CommentRepository", audit_list_limit: int = 200):
        self.repository = repository
        self.audit_list_limit = audit_list_limit

    async def _audit(
        self,
        admin_user_id: UUID,
        action: AuditAction,
        target_type: TargetType,
        target_id: UUID | str | None,
        meta: dict[str, Any] | None = None,
    ) -> ModerationResult:
        entry = create_audit_log(admin_user_id, action, target_type, target_id, meta)
        try:
            await self.repository.insert_audit_log(entry)
        except UpstreamFailureError as e:
            logger.error(
                "audit_log_write_failed",
                action=action.value,
                target_id=str(target_id),
                error=str(e),
            )
            return ModerationResult(ok=True, audit_logged=False, warning=AUDIT_WARNING)
        return ModerationResult()

    # ==========================================================================
    # Visibility
    # ==========================================================================

    async def moderate_comment(
        self, comment_id: UUID, action: ModerationAction, admin_user_id: UUID
    ) -> ModerationResult:
        """Hide, unhide or soft-delete a comment.

        Unhide clears any reason, including ``deleted``.
        """
        comment = await self.repository.get_comment(comment_id)
        if comment is None:
            raise CommentNotFoundError

        reason = _HIDDEN_REASON[action]
        if not await self.repository.set_comment_visibility(
            comment_id, reason, datetime.now(UTC)
        ):
            raise CommentNotFoundError

        if action is ModerationAction.UNHIDE and comment.is_deleted:
            logger.warning("comment_undeleted", comment_id=str(comment_id))
        logger.info(
            "comment_moderated",
            comment_id=str(comment_id),
            action=action.value,
            previous_reason=comment.hidden_reason.value if comment.hidden_reason else None,
        )
        return await self._audit(
            admin_user_id, _COMMENT_AUDIT[action], TargetType.COMMENTS, comment_id
        )

    async def moderate_reply(
        self, reply_id: UUID, action: ModerationAction, admin_user_id: UUID
    ) -> ModerationResult:
        reason = _HIDDEN_REASON[action]
        if not await self.repository.set_reply_visibility(
            reply_id, reason, datetime.now(UTC)
        ):
            raise CommentNotFoundError("reply not found")

        logger.info("reply_moderated", reply_id=str(reply_id), action=action.value)
        return await self._audit(
            admin_user_id, _REPLY_AUDIT[action], TargetType.REPLIES, reply_id
        )

    # ==========================================================================
    # Hearts
    # ==========================================================================

    async def toggle_comment_heart(
        self, comment_id: UUID, admin_user_id: UUID
    ) -> ModerationResult:
        for _ in range(HEART_TOGGLE_ATTEMPTS):
            comment = await self.repository.get_comment(comment_id)
            if comment is None:
                raise CommentNotFoundError
            on = not comment.admin_heart
            if await self.repository.set_comment_heart(
                comment_id, on, admin_user_id, datetime.now(UTC), expected=comment.admin_heart
            ):
                break
        else:
            raise UpstreamFailureError("heart toggle kept conflicting")

        logger.info("comment_heart_toggled", comment_id=str(comment_id), on=on)
        result = await self._audit(
            admin_user_id,
            AuditAction.COMMENT_HEART,
            TargetType.COMMENTS,
            comment_id,
            {"on": on},
        )
        result.admin_heart = on
        return result

    async def toggle_reply_heart(
        self, reply_id: UUID, admin_user_id: UUID
    ) -> ModerationResult:
        for _ in range(HEART_TOGGLE_ATTEMPTS):
            reply = await self.repository.get_reply(reply_id)
            if reply is None:
                raise CommentNotFoundError("reply not found")
            on = not reply.admin_heart
            if await self.repository.set_reply_heart(
                reply_id, on, admin_user_id, datetime.now(UTC), expected=reply.admin_heart
            ):
                break
        else:
            raise UpstreamFailureError("heart toggle kept conflicting")

        logger.info("reply_heart_toggled", reply_id=str(reply_id), on=on)
        result = await self._audit(
            admin_user_id,
            AuditAction.REPLY_HEART,
            TargetType.REPLIES,
            reply_id,
            {"on": on},
        )
        result.admin_heart = on
        return result

    # ==========================================================================
    # Reports
    # ==========================================================================

    async def resolve_report(
        self, report_id: UUID, resolved: bool, admin_user_id: UUID
    ) -> tuple[ReportView, ModerationResult]:
        """Set the triage flag. Never changes comment visibility."""
        report = await self.repository.get_report(report_id)
        if report is None:
            raise CommentNotFoundError("report not found")
        if not await self.repository.set_report_resolved(report, resolved):
            raise CommentNotFoundError("report not found")

        report.resolved = resolved
        logger.info("report_resolved", report_id=str(report_id), resolved=resolved)
        result = await self._audit(
            admin_user_id,
            AuditAction.REPORT_RESOLVE,
            TargetType.REPORTS,
            report_id,
            {"resolved": resolved},
        )
        comment = await self.repository.get_comment(report.comment_id)
        return ReportView(report=report, comment=comment), result

    # ==========================================================================
    # Audit trail
    # ==========================================================================

    async def list_audit_logs(
        self,
        action: str | None = None,
        actor_user_id: UUID | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[AuditLogEntry]:
        return await self.repository.list_audit_logs(
            since=since,
            until=until,
            action=action,
            actor_user_id=actor_user_id,
            limit=self.audit_list_limit,
        )

    async def purge_audit_logs(
        self, before: datetime, admin_user_id: UUID
    ) -> ModerationResult:
        """Retention cleanup. The cleanup itself is recorded afterwards."""
        deleted = await self.repository.purge_audit_logs(before)
        logger.warning(
            "audit_logs_purged", before=before.isoformat(), deleted_count=deleted
        )
        result = await self._audit(
            admin_user_id,
            AuditAction.AUDIT_LOGS_CLEANUP,
            TargetType.AUDIT_LOGS,
            None,
            {"before": before.isoformat(), "deleted": deleted},
        )
        result.deleted_count = deleted
        return result
