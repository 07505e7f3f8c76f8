"""Admin moderation API endpoints.

Every route requires a signed-in user holding the admin role.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query

from sitecomments.auth.dependencies import AdminUser

from .dependencies import (
    CommentServiceDep,
    ModerationGatewayDep,
    ReportServiceDep,
    handle_comment_error,
)
from .errors import CommentError
from .models import AuthorType, PageKey, VisibilityState
from .schemas import (
    AdminCommentListResponse,
    AdminCommentResponse,
    AdminReportListResponse,
    AdminReportResponse,
    AuditLogListResponse,
    AuditLogResponse,
    ModerateRequest,
    ModerationResponse,
    ResolveReportRequest,
    ResolveReportResponse,
)


router = APIRouter(prefix="/v1/admin", tags=["admin"])


# ==============================================================================
# Comments
# ==============================================================================


@router.get(
    "/comments",
    response_model=AdminCommentListResponse,
    summary="List comments for moderation",
)
async def list_admin_comments(
    admin: AdminUser,
    comment_service: CommentServiceDep,
    page_key: PageKey | None = None,
    state: VisibilityState | None = None,
    author_type: AuthorType | None = None,
) -> AdminCommentListResponse:
    """All comments including hidden and deleted ones, newest first."""
    try:
        views = await comment_service.list_admin(
            page_key=page_key, state=state, author_type=author_type
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return AdminCommentListResponse(
        items=[AdminCommentResponse.from_admin_view(v) for v in views],
        total=len(views),
    )


@router.patch(
    "/comments/{comment_id}",
    response_model=ModerationResponse,
    summary="Hide, unhide or delete comment",
)
async def moderate_comment(
    comment_id: UUID,
    data: ModerateRequest,
    admin: AdminUser,
    gateway: ModerationGatewayDep,
) -> ModerationResponse:
    try:
        result = await gateway.moderate_comment(comment_id, data.action, admin.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ModerationResponse.from_result(result)


@router.post(
    "/comments/{comment_id}/heart",
    response_model=ModerationResponse,
    summary="Toggle admin heart on comment",
)
async def toggle_comment_heart(
    comment_id: UUID,
    admin: AdminUser,
    gateway: ModerationGatewayDep,
) -> ModerationResponse:
    try:
        result = await gateway.toggle_comment_heart(comment_id, admin.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ModerationResponse.from_result(result)


# ==============================================================================
# Replies
# ==============================================================================


@router.patch(
    "/replies/{reply_id}",
    response_model=ModerationResponse,
    summary="Hide, unhide or delete reply",
)
async def moderate_reply(
    reply_id: UUID,
    data: ModerateRequest,
    admin: AdminUser,
    gateway: ModerationGatewayDep,
) -> ModerationResponse:
    try:
        result = await gateway.moderate_reply(reply_id, data.action, admin.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ModerationResponse.from_result(result)


@router.post(
    "/replies/{reply_id}/heart",
    response_model=ModerationResponse,
    summary="Toggle admin heart on reply",
)
async def toggle_reply_heart(
    reply_id: UUID,
    admin: AdminUser,
    gateway: ModerationGatewayDep,
) -> ModerationResponse:
    try:
        result = await gateway.toggle_reply_heart(reply_id, admin.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ModerationResponse.from_result(result)


# ==============================================================================
# Reports
# ==============================================================================


@router.get(
    "/reports",
    response_model=AdminReportListResponse,
    summary="List reports",
)
async def list_reports(
    admin: AdminUser,
    report_service: ReportServiceDep,
    resolved: bool | None = None,
) -> AdminReportListResponse:
    try:
        views = await report_service.list_reports(resolved=resolved)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return AdminReportListResponse(
        items=[AdminReportResponse.from_view(v) for v in views],
        total=len(views),
    )


@router.patch(
    "/reports/{report_id}",
    response_model=ResolveReportResponse,
    summary="Mark report resolved or open",
)
async def resolve_report(
    report_id: UUID,
    data: ResolveReportRequest,
    admin: AdminUser,
    gateway: ModerationGatewayDep,
) -> ResolveReportResponse:
    """Triage only. Resolving a report never un-hides its comment."""
    try:
        view, result = await gateway.resolve_report(report_id, data.resolved, admin.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ResolveReportResponse(
        **ModerationResponse.from_result(result).model_dump(),
        report=AdminReportResponse.from_view(view),
    )


# ==============================================================================
# Audit trail
# ==============================================================================


@router.get(
    "/audit-logs",
    response_model=AuditLogListResponse,
    summary="List audit log entries",
)
async def list_audit_logs(
    admin: AdminUser,
    gateway: ModerationGatewayDep,
    action: str | None = None,
    actor_user_id: UUID | None = None,
    since: datetime | None = Query(default=None, alias="from"),
    until: datetime | None = Query(default=None, alias="to"),
) -> AuditLogListResponse:
    """Newest first, filtered by action, actor and time range."""
    try:
        entries = await gateway.list_audit_logs(
            action=action,
            actor_user_id=actor_user_id,
            since=since,
            until=until,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return AuditLogListResponse(
        items=[AuditLogResponse.from_entry(e) for e in entries],
        total=len(entries),
    )


@router.delete(
    "/audit-logs",
    response_model=ModerationResponse,
    summary="Delete audit log entries older than a cutoff",
)
async def purge_audit_logs(
    admin: AdminUser,
    gateway: ModerationGatewayDep,
    before: datetime = Query(...),
) -> ModerationResponse:
    try:
        result = await gateway.purge_audit_logs(before, admin.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ModerationResponse.from_result(result)
