"""Comment system API endpoints.

Provides routes for:
- Posting, listing and editing comments (users and guests)
- Replies
- Reaction toggles
- Abuse reports
"""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Header, Query, status

from sitecomments.auth.dependencies import ClientId, OptionalUser
from sitecomments.core.context import set_actor_key

from .dependencies import (
    ActorDep,
    CommentServiceDep,
    ReactionLedgerDep,
    ReportServiceDep,
    handle_comment_error,
)
from .errors import CommentError, CommentValidationError
from .identity import resolve_actor
from .models import PageKey
from .schemas import (
    CommentListResponse,
    CommentResponse,
    CreateCommentRequest,
    CreatedCommentResponse,
    CreateReplyRequest,
    CreateReportRequest,
    LatestCommentsResponse,
    ReactionRequest,
    ReactionResponse,
    ReplyResponse,
    ReportedIdsResponse,
    ReportResponse,
    UpdateCommentRequest,
)


logger = structlog.get_logger(__name__)

MAX_REPORTED_IDS_QUERY = 100


router = APIRouter(prefix="/v1/comments", tags=["comments"])
reports_router = APIRouter(prefix="/v1/reports", tags=["reports"])


@router.post(
    "",
    response_model=CreatedCommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create comment",
)
async def create_comment(
    data: CreateCommentRequest,
    comment_service: CommentServiceDep,
    user: OptionalUser,
    client_id: ClientId,
) -> CreatedCommentResponse:
    """Post a comment on a page.

    Guests receive an ``edit_token`` in this response only. Rate limited
    per commenter.
    """
    actor = resolve_actor(user, None, client_id)
    set_actor_key(actor.key)
    try:
        created = await comment_service.create_comment(
            page_key=data.page_key,
            author_type=data.author_type,
            body=data.body,
            actor=actor,
            user=user,
            guest_name=data.guest_name,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return CreatedCommentResponse.from_comment(
        created.comment,
        edit_token=created.edit_token,
        is_mine=user is not None,
    )


@router.get(
    "",
    response_model=CommentListResponse,
    summary="List page comments",
)
async def list_comments(
    comment_service: CommentServiceDep,
    actor: ActorDep,
    page_key: PageKey,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    with_total: bool = False,
) -> CommentListResponse:
    """Visible comments of a page, newest first, with reaction counts and the
    caller's own reaction (guests identify with ``X-Fingerprint``)."""
    try:
        result = await comment_service.list_comments(
            page_key=page_key,
            actor=actor,
            page=page,
            limit=limit,
            with_total=with_total,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return CommentListResponse(
        items=[CommentResponse.from_view(view) for view in result.items],
        page=result.page,
        limit=result.limit,
        has_more=result.has_more,
        total=result.total,
    )


@router.get(
    "/latest",
    response_model=LatestCommentsResponse,
    summary="Latest comments across pages",
)
async def list_latest_comments(
    comment_service: CommentServiceDep,
    limit: int = Query(default=6, ge=1, le=50),
) -> LatestCommentsResponse:
    """Latest visible comments for the home page. Empty on storage failure."""
    try:
        comments = await comment_service.list_latest(limit=limit)
    except CommentError as e:
        logger.warning("latest_comments_unavailable", error=e.message)
        return LatestCommentsResponse(items=[])
    return LatestCommentsResponse(
        items=[CommentResponse.from_comment(c) for c in comments]
    )


@router.patch(
    "/{comment_id}",
    response_model=CommentResponse,
    summary="Edit comment",
)
async def edit_comment(
    comment_id: UUID,
    data: UpdateCommentRequest,
    comment_service: CommentServiceDep,
    user: OptionalUser,
) -> CommentResponse:
    """Replace a comment body.

    User comments can only be edited by their author. Guest comments need
    the ``edit_token`` issued at creation.
    """
    try:
        comment = await comment_service.edit_comment(
            comment_id=comment_id,
            body=data.body,
            user=user,
            edit_token=data.edit_token,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return CommentResponse.from_comment(comment, is_mine=True)


@router.post(
    "/{comment_id}/reaction",
    response_model=ReactionResponse,
    summary="Toggle reaction",
)
async def toggle_reaction(
    comment_id: UUID,
    data: ReactionRequest,
    reactions: ReactionLedgerDep,
    user: OptionalUser,
    client_id: ClientId,
    x_fingerprint: Annotated[str | None, Header()] = None,
) -> ReactionResponse:
    """Toggle good/not_good on a comment or reply.

    Sending the same reaction again removes it; sending the other one
    replaces it.
    """
    actor = resolve_actor(user, data.fingerprint or x_fingerprint, client_id)
    set_actor_key(actor.key)
    try:
        action = await reactions.toggle(comment_id, data.reaction_type, actor)
    except CommentError as e:
        raise handle_comment_error(e) from e

    counts = (await reactions.counts_for([comment_id]))[comment_id]
    return ReactionResponse(
        action=action,
        reaction_type=data.reaction_type,
        good_count=counts.good,
        not_good_count=counts.not_good,
    )


@router.get(
    "/{comment_id}/replies",
    response_model=list[ReplyResponse],
    summary="List replies",
)
async def list_replies(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: ActorDep,
) -> list[ReplyResponse]:
    """Visible replies of a comment, oldest first."""
    try:
        views = await comment_service.list_replies(comment_id, actor)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return [ReplyResponse.from_view(view) for view in views]


@router.post(
    "/{comment_id}/replies",
    response_model=ReplyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to comment",
)
async def create_reply(
    comment_id: UUID,
    data: CreateReplyRequest,
    comment_service: CommentServiceDep,
    user: OptionalUser,
) -> ReplyResponse:
    """Reply to a comment. Signed-in users only."""
    try:
        reply = await comment_service.create_reply(comment_id, data.body, user)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ReplyResponse.from_reply(reply, is_mine=True)


# ==============================================================================
# Reports
# ==============================================================================


@reports_router.post(
    "",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report comment",
)
async def create_report(
    data: CreateReportRequest,
    report_service: ReportServiceDep,
    user: OptionalUser,
    client_id: ClientId,
    x_fingerprint: Annotated[str | None, Header()] = None,
) -> ReportResponse:
    """Report a comment. One report per commenter; 409 on repeat."""
    reporter = resolve_actor(user, data.fingerprint or x_fingerprint, client_id)
    set_actor_key(reporter.key)
    try:
        outcome = await report_service.submit(
            comment_id=data.comment_id,
            reporter=reporter,
            reason=data.reason,
            message=data.message,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    report = outcome.report
    return ReportResponse(
        id=report.report_id,
        comment_id=report.comment_id,
        reason=report.reason,
        message=report.message,
        created_at=report.created_at,
    )


def _parse_comment_ids(raw: str) -> list[UUID]:
    parts = [part.strip() for part in raw.split(",") if part.strip()]
    if not parts:
        raise CommentValidationError("comment_ids is required", field="comment_ids")
    if len(parts) > MAX_REPORTED_IDS_QUERY:
        raise CommentValidationError(
            f"at most {MAX_REPORTED_IDS_QUERY} ids", field="comment_ids"
        )
    try:
        return [UUID(part) for part in parts]
    except ValueError as e:
        raise CommentValidationError("invalid comment id", field="comment_ids") from e


@reports_router.get(
    "",
    response_model=ReportedIdsResponse,
    summary="Comments already reported by the caller",
)
async def list_reported_ids(
    report_service: ReportServiceDep,
    actor: ActorDep,
    comment_ids: str = Query(default=""),
) -> ReportedIdsResponse:
    try:
        ids = _parse_comment_ids(comment_ids)
        reported = await report_service.reported_comment_ids(ids, actor)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ReportedIdsResponse(reported_ids=[i for i in ids if i in reported])
