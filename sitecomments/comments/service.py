"""Comment store service layer.

Business logic for:
- Creating and listing comments on a page (users and guests)
- Editing with ownership proof (session for users, edit token for guests)
- One-level replies by signed-in users
- Admin listing across pages with visibility filters

Counts and the caller's own reaction are recomputed on every read.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from .edit_token import hash_edit_token, issue_edit_token, verify_edit_token
from .errors import (
    AuthenticationRequiredError,
    CommentNotFoundError,
    CommentValidationError,
    OwnershipDeniedError,
    RateLimitExceededError,
    UpstreamFailureError,
)
from .identity import Actor, UserActor
from .links import check_body_links, link_error_message
from .models import (
    AuthorType,
    Comment,
    PageKey,
    ReactionCounts,
    ReactionType,
    Reply,
    VisibilityState,
    create_comment,
    create_reply,
)


if TYPE_CHECKING:
    from .rate_limit import RateLimiter
    from .reactions import ReactionLedger
    from .repository import CommentRepository


logger = structlog.get_logger(__name__)

GUEST_NAME_MIN = 2
GUEST_NAME_MAX = 20
MAX_PAGE_SIZE = 100


class AuthorProfile(Protocol):
    """Signed-in user as seen by the comment store."""

    id: UUID
    email: str
    name: str | None
    avatar_url: str | None


def profile_display_name(user: AuthorProfile) -> str:
    name = (user.name or user.email or "").strip()
    return name or "user"


@dataclass
class CommentView:
    """Comment with per-request derived fields."""

    comment: Comment
    good_count: int = 0
    not_good_count: int = 0
    my_reaction: ReactionType | None = None
    reply_count: int = 0
    is_mine: bool = False


@dataclass
class CommentPage:
    items: list[CommentView]
    page: int
    limit: int
    has_more: bool
    total: int | None = None


@dataclass
class ReplyView:
    reply: Reply
    good_count: int = 0
    not_good_count: int = 0
    my_reaction: ReactionType | None = None
    is_mine: bool = False


@dataclass
class AdminCommentView:
    comment: Comment
    good_count: int = 0
    not_good_count: int = 0
    report_count: int = 0


@dataclass
class CreatedComment:
    comment: Comment
    # Plaintext guest edit token, returned exactly once
    edit_token: str | None = None


def validate_body_links(body: str) -> bool:
    """Apply the link policy. Returns whether the body contains links."""
    check = check_body_links(body)
    if not check.ok:
        raise CommentValidationError(link_error_message(check), field="body")
    return check.has_links


class CommentService:
    """Service for comments and replies."""

    def __init__(
        self,
        repository: "CommentRepository",
        reactions: "ReactionLedger",
        rate_limiter: "RateLimiter",
        comment_limit: int = 5,
        reply_limit: int = 5,
    ):
        self.repository = repository
        self.reactions = reactions
        self.rate_limiter = rate_limiter
        self.comment_limit = comment_limit
        self.reply_limit = reply_limit

    async def _check_rate_limit(self, kind: str, actor_key: str, limit: int) -> None:
        result = await self.rate_limiter.allow(kind, actor_key, limit)
        if not result.ok:
            logger.info("rate_limited", kind=kind, actor_key=actor_key)
            raise RateLimitExceededError

    # ==========================================================================
    # Comments
    # ==========================================================================

    async def create_comment(
        self,
        page_key: PageKey,
        author_type: AuthorType,
        body: str,
        actor: Actor,
        user: AuthorProfile | None = None,
        guest_name: str | None = None,
    ) -> CreatedComment:
        """Create a visible comment.

        User authors must be signed in and get their profile snapshotted.
        Guest authors need a 2-20 character name and receive a one-time
        edit token.
        """
        await self._check_rate_limit("comment", actor.key, self.comment_limit)

        body = body.strip()
        if not body:
            raise CommentValidationError("body invalid", field="body")

        edit_token = None
        if author_type is AuthorType.USER:
            if user is None:
                raise AuthenticationRequiredError
            has_links = validate_body_links(body)
            comment = create_comment(
                page_key=page_key,
                author_type=author_type,
                body=body,
                body_has_links=has_links,
                author_user_id=UUID(str(user.id)),
                author_name=profile_display_name(user),
                author_avatar_url=(user.avatar_url or "").strip() or None,
            )
        else:
            name = (guest_name or "").strip()
            if not GUEST_NAME_MIN <= len(name) <= GUEST_NAME_MAX:
                raise CommentValidationError(
                    f"guest name must be {GUEST_NAME_MIN}-{GUEST_NAME_MAX} characters",
                    field="guest_name",
                )
            has_links = validate_body_links(body)
            edit_token = issue_edit_token()
            comment = create_comment(
                page_key=page_key,
                author_type=author_type,
                body=body,
                body_has_links=has_links,
                guest_name=name,
                edit_token_hash=hash_edit_token(edit_token),
            )

        await self.repository.insert_comment(comment)

        logger.info(
            "comment_created",
            comment_id=str(comment.comment_id),
            page_key=page_key.value,
            author_type=author_type.value,
            body_has_links=has_links,
        )
        return CreatedComment(comment=comment, edit_token=edit_token)

    async def get_comment(self, comment_id: UUID) -> Comment:
        comment = await self.repository.get_comment(comment_id)
        if comment is None or comment.is_deleted:
            raise CommentNotFoundError
        return comment

    async def edit_comment(
        self,
        comment_id: UUID,
        body: str,
        user: AuthorProfile | None = None,
        edit_token: str | None = None,
    ) -> Comment:
        """Replace a comment body after proving ownership.

        Admins get no special treatment here; they moderate through the
        admin endpoints instead.
        """
        comment = await self.get_comment(comment_id)

        if comment.author_type is AuthorType.USER:
            if user is None:
                raise AuthenticationRequiredError
            if UUID(str(user.id)) != comment.author_user_id:
                raise OwnershipDeniedError
        elif comment.author_type is AuthorType.GUEST:
            if not verify_edit_token(edit_token, comment.edit_token_hash):
                logger.info("guest_edit_denied", comment_id=str(comment_id))
                raise OwnershipDeniedError
        else:
            raise OwnershipDeniedError

        body = body.strip()
        if not body:
            raise CommentValidationError("body invalid", field="body")
        has_links = validate_body_links(body)

        now = datetime.now(UTC)
        if not await self.repository.update_comment_body(
            comment_id, body, has_links, now
        ):
            raise CommentNotFoundError

        comment.body = body
        comment.body_has_links = has_links
        comment.edited_at = now
        comment.updated_at = now

        logger.info(
            "comment_edited",
            comment_id=str(comment_id),
            author_type=comment.author_type.value,
        )
        return comment

    async def list_comments(
        self,
        page_key: PageKey,
        actor: Actor | None = None,
        page: int = 1,
        limit: int = 20,
        with_total: bool = False,
        include_hidden: bool = False,
    ) -> CommentPage:
        """Newest-first comments of a page with counts and the caller's view."""
        if page < 1:
            raise CommentValidationError("page must be >= 1", field="page")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise CommentValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit"
            )

        comments = await self.repository.list_page_comments(page_key)
        if not include_hidden:
            comments = [c for c in comments if not c.is_hidden]

        start = (page - 1) * limit
        window = comments[start : start + limit]
        items = await self._decorate(window, actor)

        return CommentPage(
            items=items,
            page=page,
            limit=limit,
            has_more=start + limit < len(comments),
            total=len(comments) if with_total else None,
        )

    async def list_latest(self, limit: int = 6) -> list[Comment]:
        """Latest visible comments across all pages."""
        latest: list[Comment] = []
        for page_key in PageKey:
            comments = await self.repository.list_page_comments(page_key)
            latest.extend([c for c in comments if not c.is_hidden][:limit])
        latest.sort(key=lambda c: c.created_at, reverse=True)
        return latest[:limit]

    async def _reply_counts(self, parent_ids: list[UUID]) -> dict[UUID, int]:
        counts = dict.fromkeys(parent_ids, 0)
        if not parent_ids:
            return counts
        try:
            grouped = await self.repository.list_replies(parent_ids)
        except UpstreamFailureError as e:
            logger.warning("reply_counts_unavailable", error=str(e))
            return counts
        for parent_id, replies in grouped.items():
            counts[parent_id] = sum(1 for r in replies if not r.is_hidden)
        return counts

    async def _decorate(
        self, comments: list[Comment], actor: Actor | None
    ) -> list[CommentView]:
        ids = [c.comment_id for c in comments]
        counts = await self.reactions.counts_for(ids)
        mine = await self.reactions.actor_reactions_for(ids, actor)
        reply_counts = await self._reply_counts(ids)

        user_id = actor.user_id if isinstance(actor, UserActor) else None
        return [
            CommentView(
                comment=c,
                good_count=counts[c.comment_id].good,
                not_good_count=counts[c.comment_id].not_good,
                my_reaction=mine[c.comment_id],
                reply_count=reply_counts[c.comment_id],
                is_mine=user_id is not None and c.author_user_id == user_id,
            )
            for c in comments
        ]

    async def list_admin(
        self,
        page_key: PageKey | None = None,
        state: VisibilityState | None = None,
        author_type: AuthorType | None = None,
    ) -> list[AdminCommentView]:
        """Every comment, any visibility, with counts and report totals."""
        page_keys = [page_key] if page_key else list(PageKey)
        comments: list[Comment] = []
        for key in page_keys:
            comments.extend(await self.repository.list_page_comments(key))

        if state is not None:
            comments = [c for c in comments if c.visibility_state is state]
        if author_type is not None:
            comments = [c for c in comments if c.author_type is author_type]
        comments.sort(key=lambda c: c.created_at, reverse=True)

        ids = [c.comment_id for c in comments]
        counts = await self.reactions.counts_for(ids)
        report_counts = dict.fromkeys(ids, 0)
        try:
            for comment_id, _ in await self.repository.list_report_keys(ids):
                report_counts[comment_id] = report_counts.get(comment_id, 0) + 1
        except UpstreamFailureError as e:
            logger.warning("report_counts_unavailable", error=str(e))

        return [
            AdminCommentView(
                comment=c,
                good_count=counts[c.comment_id].good,
                not_good_count=counts[c.comment_id].not_good,
                report_count=report_counts[c.comment_id],
            )
            for c in comments
        ]

    # ==========================================================================
    # Replies
    # ==========================================================================

    async def create_reply(
        self,
        parent_id: UUID,
        body: str,
        user: AuthorProfile | None,
    ) -> Reply:
        """Reply to a comment. Requires a signed-in user."""
        if user is None:
            raise AuthenticationRequiredError("login required to reply")

        user_id = UUID(str(user.id))
        await self._check_rate_limit("reply", UserActor(user_id).key, self.reply_limit)

        parent = await self.repository.get_comment(parent_id)
        if parent is None or parent.is_deleted:
            raise CommentNotFoundError("parent comment not found")

        body = body.strip()
        if not body:
            raise CommentValidationError("body invalid", field="body")
        has_links = validate_body_links(body)

        reply = create_reply(
            parent=parent,
            author_user_id=user_id,
            body=body,
            body_has_links=has_links,
            author_name=profile_display_name(user),
            author_avatar_url=(user.avatar_url or "").strip() or None,
        )
        await self.repository.insert_reply(reply)

        logger.info(
            "reply_created",
            reply_id=str(reply.reply_id),
            parent_comment_id=str(parent_id),
        )
        return reply

    async def list_replies(
        self, parent_id: UUID, actor: Actor | None = None
    ) -> list[ReplyView]:
        """Visible replies of a comment, oldest first."""
        grouped = await self.repository.list_replies([parent_id])
        replies = [r for r in grouped.get(parent_id, []) if not r.is_hidden]

        ids = [r.reply_id for r in replies]
        counts: dict[UUID, ReactionCounts] = await self.reactions.counts_for(ids)
        mine = await self.reactions.actor_reactions_for(ids, actor)

        user_id = actor.user_id if isinstance(actor, UserActor) else None
        return [
            ReplyView(
                reply=r,
                good_count=counts[r.reply_id].good,
                not_good_count=counts[r.reply_id].not_good,
                my_reaction=mine[r.reply_id],
                is_mine=user_id is not None and r.author_user_id == user_id,
            )
            for r in replies
        ]
