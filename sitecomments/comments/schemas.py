"""Pydantic schemas for the comment system.

Request/Response models with validation for:
- Comments, edits and replies
- Reactions
- Reports
- Admin moderation and the audit trail
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .identity import MAX_FINGERPRINT_LENGTH
from .models import (
    AuditLogEntry,
    AuthorType,
    Comment,
    HiddenReason,
    PageKey,
    ReactionType,
    ReportReason,
    VisibilityState,
)
from .moderation import ModerationAction, ModerationResult
from .reactions import ToggleAction
from .reports import ReportView
from .service import AdminCommentView, CommentView, ReplyView


# ==============================================================================
# Constants
# ==============================================================================
MAX_BODY_LENGTH = 2000
MAX_REPORT_MESSAGE_LENGTH = 500
MAX_EDIT_TOKEN_LENGTH = 200


def _strip_body(v: str) -> str:
    v = v.strip()
    if not v:
        msg = "body must not be empty"
        raise ValueError(msg)
    return v


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Request to post a comment on a page."""

    page_key: PageKey
    author_type: AuthorType
    guest_name: str | None = Field(None, max_length=20)
    body: str = Field(..., min_length=1, max_length=MAX_BODY_LENGTH)

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        return _strip_body(v)

    @field_validator("guest_name")
    @classmethod
    def validate_guest_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class UpdateCommentRequest(BaseModel):
    """Body edit. Guests prove ownership with their edit token."""

    body: str = Field(..., min_length=1, max_length=MAX_BODY_LENGTH)
    edit_token: str | None = Field(None, max_length=MAX_EDIT_TOKEN_LENGTH)

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        return _strip_body(v)


class CreateReplyRequest(BaseModel):
    body: str = Field(..., min_length=1, max_length=MAX_BODY_LENGTH)

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        return _strip_body(v)


class ReactionRequest(BaseModel):
    reaction_type: ReactionType
    fingerprint: str | None = Field(None, max_length=MAX_FINGERPRINT_LENGTH)


class CreateReportRequest(BaseModel):
    comment_id: UUID
    reason: ReportReason
    message: str | None = Field(None, max_length=MAX_REPORT_MESSAGE_LENGTH)
    fingerprint: str | None = Field(None, max_length=MAX_FINGERPRINT_LENGTH)


class ModerateRequest(BaseModel):
    """Admin visibility action on a comment or reply."""

    action: ModerationAction


class ResolveReportRequest(BaseModel):
    resolved: bool


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentResponse(BaseModel):
    """Comment as shown to the public, with per-caller fields."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    page_key: PageKey
    author_type: AuthorType
    author_user_id: UUID | None = None
    guest_name: str | None = None
    author_name: str | None = None
    author_avatar_url: str | None = None
    body: str
    body_has_links: bool = False
    is_hidden: bool = False
    hidden_reason: HiddenReason | None = None
    admin_heart: bool = False
    admin_heart_at: datetime | None = None
    created_at: datetime
    edited_at: datetime | None = None
    good_count: int = 0
    not_good_count: int = 0
    my_reaction: ReactionType | None = None
    reply_count: int = 0
    is_mine: bool = False

    @staticmethod
    def _comment_fields(comment: Comment) -> dict[str, Any]:
        return {
            "id": comment.comment_id,
            "page_key": comment.page_key,
            "author_type": comment.author_type,
            "author_user_id": comment.author_user_id,
            "guest_name": comment.guest_name,
            "author_name": comment.author_name,
            "author_avatar_url": comment.author_avatar_url,
            "body": comment.body,
            "body_has_links": comment.body_has_links,
            "is_hidden": comment.is_hidden,
            "hidden_reason": comment.hidden_reason,
            "admin_heart": comment.admin_heart,
            "admin_heart_at": comment.admin_heart_at,
            "created_at": comment.created_at,
            "edited_at": comment.edited_at,
        }

    @classmethod
    def from_comment(cls, comment: Comment, **extra: Any) -> "CommentResponse":
        return cls(**cls._comment_fields(comment), **extra)

    @classmethod
    def from_view(cls, view: CommentView) -> "CommentResponse":
        return cls.from_comment(
            view.comment,
            good_count=view.good_count,
            not_good_count=view.not_good_count,
            my_reaction=view.my_reaction,
            reply_count=view.reply_count,
            is_mine=view.is_mine,
        )


class CreatedCommentResponse(CommentResponse):
    """Newly created comment. ``edit_token`` is only ever sent here."""

    edit_token: str | None = None


class CommentListResponse(BaseModel):
    items: list[CommentResponse]
    page: int
    limit: int
    has_more: bool
    total: int | None = None


class LatestCommentsResponse(BaseModel):
    items: list[CommentResponse]


class ReplyResponse(BaseModel):
    id: UUID
    parent_comment_id: UUID
    page_key: PageKey
    author_user_id: UUID
    author_name: str | None = None
    author_avatar_url: str | None = None
    body: str
    body_has_links: bool = False
    is_hidden: bool = False
    hidden_reason: HiddenReason | None = None
    admin_heart: bool = False
    created_at: datetime
    edited_at: datetime | None = None
    good_count: int = 0
    not_good_count: int = 0
    my_reaction: ReactionType | None = None
    is_mine: bool = False

    @classmethod
    def from_reply(cls, reply: Any, **extra: Any) -> "ReplyResponse":
        return cls(
            id=reply.reply_id,
            parent_comment_id=reply.parent_comment_id,
            page_key=reply.page_key,
            author_user_id=reply.author_user_id,
            author_name=reply.author_name,
            author_avatar_url=reply.author_avatar_url,
            body=reply.body,
            body_has_links=reply.body_has_links,
            is_hidden=reply.is_hidden,
            hidden_reason=reply.hidden_reason,
            admin_heart=reply.admin_heart,
            created_at=reply.created_at,
            edited_at=reply.edited_at,
            **extra,
        )

    @classmethod
    def from_view(cls, view: ReplyView) -> "ReplyResponse":
        return cls.from_reply(
            view.reply,
            good_count=view.good_count,
            not_good_count=view.not_good_count,
            my_reaction=view.my_reaction,
            is_mine=view.is_mine,
        )


class ReactionResponse(BaseModel):
    """Toggle outcome plus the authoritative recount."""

    action: ToggleAction
    reaction_type: ReactionType
    good_count: int = 0
    not_good_count: int = 0


class ReportResponse(BaseModel):
    id: UUID
    comment_id: UUID
    reason: ReportReason
    message: str | None = None
    created_at: datetime


class ReportedIdsResponse(BaseModel):
    reported_ids: list[UUID]


# ==============================================================================
# Admin Schemas
# ==============================================================================


class AdminCommentResponse(CommentResponse):
    visibility_state: VisibilityState
    report_count: int = 0
    admin_heart_by: UUID | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_admin_view(cls, view: AdminCommentView) -> "AdminCommentResponse":
        comment = view.comment
        return cls.from_comment(
            comment,
            good_count=view.good_count,
            not_good_count=view.not_good_count,
            report_count=view.report_count,
            visibility_state=comment.visibility_state,
            admin_heart_by=comment.admin_heart_by,
            updated_at=comment.updated_at,
        )


class AdminCommentListResponse(BaseModel):
    items: list[AdminCommentResponse]
    total: int


class ModerationResponse(BaseModel):
    """Admin action outcome. ``audit_logged=False`` means degraded success."""

    ok: bool = True
    audit_logged: bool = True
    warning: str | None = None
    admin_heart: bool | None = None
    deleted_count: int | None = None

    @classmethod
    def from_result(cls, result: ModerationResult) -> "ModerationResponse":
        return cls(
            ok=result.ok,
            audit_logged=result.audit_logged,
            warning=result.warning,
            admin_heart=result.admin_heart,
            deleted_count=result.deleted_count,
        )


class ReportedCommentSummary(BaseModel):
    id: UUID
    page_key: PageKey
    author_type: AuthorType
    author_name: str
    body: str
    hidden_reason: HiddenReason | None = None


class AdminReportResponse(BaseModel):
    id: UUID
    comment_id: UUID
    reason: ReportReason
    message: str | None = None
    resolved: bool = False
    created_at: datetime
    comment: ReportedCommentSummary | None = None

    @classmethod
    def from_view(cls, view: ReportView) -> "AdminReportResponse":
        report, comment = view.report, view.comment
        summary = None
        if comment is not None:
            summary = ReportedCommentSummary(
                id=comment.comment_id,
                page_key=comment.page_key,
                author_type=comment.author_type,
                author_name=comment.display_name,
                body=comment.body,
                hidden_reason=comment.hidden_reason,
            )
        return cls(
            id=report.report_id,
            comment_id=report.comment_id,
            reason=report.reason,
            message=report.message,
            resolved=report.resolved,
            created_at=report.created_at,
            comment=summary,
        )


class AdminReportListResponse(BaseModel):
    items: list[AdminReportResponse]
    total: int


class ResolveReportResponse(ModerationResponse):
    report: AdminReportResponse


class AuditLogResponse(BaseModel):
    id: UUID
    actor_user_id: UUID
    action: str
    target_type: str
    target_id: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: AuditLogEntry) -> "AuditLogResponse":
        return cls(
            id=entry.log_id,
            actor_user_id=entry.actor_user_id,
            action=entry.action,
            target_type=entry.target_type,
            target_id=entry.target_id,
            meta=entry.meta,
            created_at=entry.created_at,
        )


class AuditLogListResponse(BaseModel):
    items: list[AuditLogResponse]
    total: int
