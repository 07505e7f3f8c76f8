"""Abuse reports and automatic hiding.

One report per (comment, reporter). Once the total number of reports on a
comment reaches the threshold the comment is hidden with reason
``reported``. Resolving reports later never un-hides it.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .errors import (
    CommentNotFoundError,
    DuplicateReportError,
    RateLimitExceededError,
    UpstreamFailureError,
)
from .models import AUTO_HIDE_THRESHOLD, Comment, Report, ReportReason, create_report


if TYPE_CHECKING:
    from .identity import Actor
    from .rate_limit import RateLimiter
    from .repository import CommentRepository


logger = structlog.get_logger(__name__)

MAX_MESSAGE_LENGTH = 500


@dataclass
class ReportOutcome:
    report: Report
    report_count: int
    auto_hidden: bool = False


@dataclass
class ReportView:
    """Report with a summary of the reported comment for triage."""

    report: Report
    comment: Comment | None


class ReportService:
    def __init__(
        self,
        repository: "CommentRepository",
        rate_limiter: "RateLimiter",
        report_limit: int = 3,
        threshold: int = AUTO_HIDE_THRESHOLD,
    ):
        self.repository = repository
        self.rate_limiter = rate_limiter
        self.report_limit = report_limit
        self.threshold = threshold

    async def submit(
        self,
        comment_id: UUID,
        reporter: "Actor",
        reason: ReportReason,
        message: str | None = None,
    ) -> ReportOutcome:
        """Record a report and hide the comment once the threshold is reached.

        Raises:
            DuplicateReportError: the reporter already reported this comment.
        """
        result = await self.rate_limiter.allow("report", reporter.key, self.report_limit)
        if not result.ok:
            raise RateLimitExceededError

        comment = await self.repository.get_comment(comment_id)
        if comment is None or comment.is_deleted:
            raise CommentNotFoundError

        if message is not None:
            message = message.strip()[:MAX_MESSAGE_LENGTH] or None

        report = create_report(comment_id, reporter.key, reason, message)
        if not await self.repository.insert_report(report, reporter):
            logger.info("report_duplicate", comment_id=str(comment_id))
            raise DuplicateReportError

        count = await self.repository.count_reports(comment_id)
        auto_hidden = False
        if count >= self.threshold:
            # No-op unless the comment is currently visible
            auto_hidden = await self.repository.auto_hide_comment(
                comment_id, datetime.now(UTC)
            )
            if auto_hidden:
                logger.warning(
                    "comment_auto_hidden",
                    comment_id=str(comment_id),
                    report_count=count,
                )

        logger.info(
            "report_submitted",
            comment_id=str(comment_id),
            reason=reason.value,
            report_count=count,
        )
        return ReportOutcome(report=report, report_count=count, auto_hidden=auto_hidden)

    async def reported_comment_ids(
        self, comment_ids: list[UUID], reporter: "Actor"
    ) -> set[UUID]:
        """Which of ``comment_ids`` the reporter has already reported."""
        if not comment_ids:
            return set()
        try:
            keys = await self.repository.list_report_keys(comment_ids)
        except UpstreamFailureError as e:
            logger.warning("reported_ids_unavailable", error=str(e))
            return set()
        return {comment_id for comment_id, key in keys if key == reporter.key}

    async def list_reports(self, resolved: bool | None = None) -> list[ReportView]:
        """Reports newest first, optionally filtered by triage state."""
        reports = await self.repository.list_reports()
        if resolved is not None:
            reports = [r for r in reports if r.resolved is resolved]
        reports.sort(key=lambda r: r.created_at, reverse=True)

        comment_ids = list({r.comment_id for r in reports})
        comments = {
            c.comment_id: c for c in await self.repository.get_comments(comment_ids)
        }
        return [ReportView(report=r, comment=comments.get(r.comment_id)) for r in reports]
