"""Tests for the comment store service."""

from uuid import uuid4

import pytest

from sitecomments.auth.schemas import AuthenticatedUser
from sitecomments.comments.errors import (
    AuthenticationRequiredError,
    CommentNotFoundError,
    CommentValidationError,
    OwnershipDeniedError,
    RateLimitExceededError,
)
from sitecomments.comments.identity import GuestActor, UserActor
from sitecomments.comments.models import (
    AuthorType,
    HiddenReason,
    PageKey,
    ReactionType,
    ReportReason,
    VisibilityState,
)


@pytest.fixture
def bob() -> AuthenticatedUser:
    return AuthenticatedUser(
        id=uuid4(), email="bob@example.com", name="Bob", avatar_url="https://img/bob.png"
    )


@pytest.fixture
def guest() -> GuestActor:
    return GuestActor(fingerprint="fp-alice")


async def _guest_comment(service, guest, body="hello", page_key=PageKey.HOME):
    return await service.create_comment(
        page_key=page_key,
        author_type=AuthorType.GUEST,
        body=body,
        actor=guest,
        guest_name="Alice",
    )


async def _user_comment(service, user, body="hi from bob", page_key=PageKey.HOME):
    return await service.create_comment(
        page_key=page_key,
        author_type=AuthorType.USER,
        body=body,
        actor=UserActor(user.id),
        user=user,
    )


class TestCreateComment:
    @pytest.mark.asyncio
    async def test_guest_gets_edit_token(self, comment_service, repository, guest) -> None:
        created = await _guest_comment(comment_service, guest)

        assert created.edit_token
        stored = repository.comments[created.comment.comment_id]
        assert stored.guest_name == "Alice"
        assert stored.edit_token_hash
        assert stored.edit_token_hash != created.edit_token
        assert stored.hidden_reason is None

    @pytest.mark.asyncio
    async def test_user_profile_is_snapshotted(self, comment_service, bob) -> None:
        created = await _user_comment(comment_service, bob)

        comment = created.comment
        assert created.edit_token is None
        assert comment.author_user_id == bob.id
        assert comment.author_name == "Bob"
        assert comment.author_avatar_url == "https://img/bob.png"
        assert comment.edit_token_hash is None

    @pytest.mark.asyncio
    async def test_user_author_requires_login(self, comment_service, guest) -> None:
        with pytest.raises(AuthenticationRequiredError):
            await comment_service.create_comment(
                page_key=PageKey.HOME,
                author_type=AuthorType.USER,
                body="hello",
                actor=guest,
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [None, "A", "  A  ", "x" * 21])
    async def test_guest_name_length(self, comment_service, guest, name) -> None:
        with pytest.raises(CommentValidationError) as exc_info:
            await comment_service.create_comment(
                page_key=PageKey.HOME,
                author_type=AuthorType.GUEST,
                body="hello",
                actor=guest,
                guest_name=name,
            )
        assert exc_info.value.field == "guest_name"

    @pytest.mark.asyncio
    async def test_link_count_enforced(self, comment_service, guest) -> None:
        two = await _guest_comment(comment_service, guest, "https://a.example https://b.example")
        assert two.comment.body_has_links is True

        with pytest.raises(CommentValidationError, match="max 2 links"):
            await _guest_comment(
                comment_service, guest, "https://a.example https://b.example https://c.example"
            )

    @pytest.mark.asyncio
    async def test_whitespace_body_rejected(self, comment_service, guest) -> None:
        with pytest.raises(CommentValidationError, match="body invalid"):
            await _guest_comment(comment_service, guest, "   ")

    @pytest.mark.asyncio
    async def test_rate_limited_after_five(self, comment_service, guest) -> None:
        for i in range(5):
            await _guest_comment(comment_service, guest, f"comment {i}")
        with pytest.raises(RateLimitExceededError):
            await _guest_comment(comment_service, guest, "one too many")


class TestEditComment:
    @pytest.mark.asyncio
    async def test_guest_edit_with_token(self, comment_service, repository, guest) -> None:
        created = await _guest_comment(comment_service, guest)

        edited = await comment_service.edit_comment(
            created.comment.comment_id, "edited", edit_token=created.edit_token
        )

        assert edited.body == "edited"
        assert edited.edited_at is not None
        assert repository.comments[created.comment.comment_id].body == "edited"

    @pytest.mark.asyncio
    async def test_guest_edit_wrong_token(self, comment_service, repository, guest) -> None:
        created = await _guest_comment(comment_service, guest)

        with pytest.raises(OwnershipDeniedError):
            await comment_service.edit_comment(
                created.comment.comment_id, "edited", edit_token="not-the-token"
            )
        assert repository.comments[created.comment.comment_id].body == "hello"

    @pytest.mark.asyncio
    async def test_guest_edit_without_token(self, comment_service, guest, bob) -> None:
        created = await _guest_comment(comment_service, guest)
        with pytest.raises(OwnershipDeniedError):
            await comment_service.edit_comment(created.comment.comment_id, "edited", user=bob)

    @pytest.mark.asyncio
    async def test_user_edit_by_author(self, comment_service, bob) -> None:
        created = await _user_comment(comment_service, bob)
        edited = await comment_service.edit_comment(
            created.comment.comment_id, "better", user=bob
        )
        assert edited.body == "better"

    @pytest.mark.asyncio
    async def test_user_edit_requires_login(self, comment_service, bob) -> None:
        created = await _user_comment(comment_service, bob)
        with pytest.raises(AuthenticationRequiredError):
            await comment_service.edit_comment(created.comment.comment_id, "better")

    @pytest.mark.asyncio
    async def test_user_edit_by_someone_else(self, comment_service, bob) -> None:
        created = await _user_comment(comment_service, bob)
        # Admin role does not matter here
        other = AuthenticatedUser(id=uuid4(), email="admin@example.com", role="admin")
        with pytest.raises(OwnershipDeniedError):
            await comment_service.edit_comment(
                created.comment.comment_id, "hijack", user=other
            )

    @pytest.mark.asyncio
    async def test_edit_missing_comment(self, comment_service, bob) -> None:
        with pytest.raises(CommentNotFoundError):
            await comment_service.edit_comment(uuid4(), "x", user=bob)

    @pytest.mark.asyncio
    async def test_edit_deleted_comment(self, comment_service, repository, bob) -> None:
        created = await _user_comment(comment_service, bob)
        repository.comments[created.comment.comment_id].hidden_reason = HiddenReason.DELETED
        with pytest.raises(CommentNotFoundError):
            await comment_service.edit_comment(created.comment.comment_id, "x", user=bob)

    @pytest.mark.asyncio
    async def test_edit_rechecks_links(self, comment_service, bob) -> None:
        created = await _user_comment(comment_service, bob)
        with pytest.raises(CommentValidationError, match="max 2 links"):
            await comment_service.edit_comment(
                created.comment.comment_id,
                "https://a.example https://b.example https://c.example",
                user=bob,
            )


class TestListComments:
    @pytest.mark.asyncio
    async def test_newest_first_and_hidden_excluded(
        self, comment_service, repository, bob
    ) -> None:
        first = await _user_comment(comment_service, bob, "first")
        second = await _user_comment(comment_service, bob, "second")
        hidden = await _user_comment(comment_service, bob, "hidden")
        repository.comments[hidden.comment.comment_id].hidden_reason = HiddenReason.ADMIN

        result = await comment_service.list_comments(PageKey.HOME, with_total=True)

        ids = [v.comment.comment_id for v in result.items]
        assert ids == [second.comment.comment_id, first.comment.comment_id]
        assert result.total == 2
        assert result.has_more is False

    @pytest.mark.asyncio
    async def test_pagination(self, comment_service, bob) -> None:
        for i in range(3):
            await _user_comment(comment_service, bob, f"c{i}")

        page_one = await comment_service.list_comments(PageKey.HOME, page=1, limit=2)
        page_two = await comment_service.list_comments(PageKey.HOME, page=2, limit=2)

        assert len(page_one.items) == 2
        assert page_one.has_more is True
        assert page_one.total is None
        assert len(page_two.items) == 1
        assert page_two.has_more is False

    @pytest.mark.asyncio
    async def test_other_pages_not_included(self, comment_service, bob) -> None:
        await _user_comment(comment_service, bob, page_key=PageKey.DEV)
        result = await comment_service.list_comments(PageKey.HOME)
        assert result.items == []

    @pytest.mark.asyncio
    async def test_items_carry_caller_view(self, comment_service, reactions, bob) -> None:
        created = await _user_comment(comment_service, bob)
        comment_id = created.comment.comment_id
        await reactions.toggle(comment_id, ReactionType.GOOD, UserActor(bob.id))
        await reactions.toggle(comment_id, ReactionType.NOT_GOOD, GuestActor("fp-x"))

        result = await comment_service.list_comments(PageKey.HOME, actor=UserActor(bob.id))

        view = result.items[0]
        assert view.good_count == 1
        assert view.not_good_count == 1
        assert view.my_reaction is ReactionType.GOOD
        assert view.is_mine is True
        assert view.reply_count == 0

    @pytest.mark.asyncio
    async def test_counts_degrade_on_failure(self, comment_service, repository, bob) -> None:
        await _user_comment(comment_service, bob)
        repository.fail_reactions = True

        result = await comment_service.list_comments(PageKey.HOME, actor=UserActor(bob.id))

        assert result.items[0].good_count == 0
        assert result.items[0].my_reaction is None

    @pytest.mark.asyncio
    async def test_invalid_paging(self, comment_service) -> None:
        with pytest.raises(CommentValidationError):
            await comment_service.list_comments(PageKey.HOME, page=0)
        with pytest.raises(CommentValidationError):
            await comment_service.list_comments(PageKey.HOME, limit=101)

    @pytest.mark.asyncio
    async def test_latest_across_pages(self, comment_service, bob) -> None:
        home = await _user_comment(comment_service, bob, page_key=PageKey.HOME)
        dev = await _user_comment(comment_service, bob, page_key=PageKey.DEV)

        latest = await comment_service.list_latest(limit=6)

        assert [c.comment_id for c in latest] == [
            dev.comment.comment_id,
            home.comment.comment_id,
        ]


class TestListAdmin:
    @pytest.mark.asyncio
    async def test_state_filter_and_report_counts(
        self, comment_service, report_service, repository, bob
    ) -> None:
        visible = await _user_comment(comment_service, bob, "visible")
        deleted = await _user_comment(comment_service, bob, "deleted")
        repository.comments[deleted.comment.comment_id].hidden_reason = HiddenReason.DELETED
        await report_service.submit(
            visible.comment.comment_id, GuestActor("fp-1"), ReportReason.SPAM
        )

        everything = await comment_service.list_admin()
        only_deleted = await comment_service.list_admin(state=VisibilityState.DELETED)

        assert len(everything) == 2
        counts = {v.comment.comment_id: v.report_count for v in everything}
        assert counts[visible.comment.comment_id] == 1
        assert [v.comment.comment_id for v in only_deleted] == [deleted.comment.comment_id]

    @pytest.mark.asyncio
    async def test_author_type_filter(self, comment_service, bob, guest) -> None:
        await _user_comment(comment_service, bob)
        await _guest_comment(comment_service, guest)

        guests = await comment_service.list_admin(author_type=AuthorType.GUEST)

        assert [v.comment.author_type for v in guests] == [AuthorType.GUEST]


class TestReplies:
    @pytest.mark.asyncio
    async def test_reply_requires_login(self, comment_service, bob) -> None:
        parent = await _user_comment(comment_service, bob)
        with pytest.raises(AuthenticationRequiredError):
            await comment_service.create_reply(parent.comment.comment_id, "re", None)

    @pytest.mark.asyncio
    async def test_reply_to_missing_parent(self, comment_service, bob) -> None:
        with pytest.raises(CommentNotFoundError, match="parent comment not found"):
            await comment_service.create_reply(uuid4(), "re", bob)

    @pytest.mark.asyncio
    async def test_reply_to_deleted_parent(self, comment_service, repository, bob) -> None:
        parent = await _user_comment(comment_service, bob)
        repository.comments[parent.comment.comment_id].hidden_reason = HiddenReason.DELETED
        with pytest.raises(CommentNotFoundError):
            await comment_service.create_reply(parent.comment.comment_id, "re", bob)

    @pytest.mark.asyncio
    async def test_reply_inherits_page_and_counts(self, comment_service, repository, bob) -> None:
        parent = await _user_comment(comment_service, bob, page_key=PageKey.YOUTUBE)
        parent_id = parent.comment.comment_id

        first = await comment_service.create_reply(parent_id, "first", bob)
        second = await comment_service.create_reply(parent_id, "second", bob)
        repository.replies[second.reply_id].hidden_reason = HiddenReason.ADMIN

        assert first.page_key is PageKey.YOUTUBE
        views = await comment_service.list_replies(parent_id, UserActor(bob.id))
        assert [v.reply.reply_id for v in views] == [first.reply_id]
        assert views[0].is_mine is True

        listing = await comment_service.list_comments(PageKey.YOUTUBE)
        assert listing.items[0].reply_count == 1

    @pytest.mark.asyncio
    async def test_replies_of_unknown_parent(self, comment_service) -> None:
        assert await comment_service.list_replies(uuid4()) == []
