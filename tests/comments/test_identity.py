"""Tests for actor resolution and guest edit tokens."""

from uuid import uuid4

from sitecomments.auth.schemas import AuthenticatedUser
from sitecomments.comments.edit_token import (
    hash_edit_token,
    issue_edit_token,
    verify_edit_token,
)
from sitecomments.comments.identity import (
    MAX_FINGERPRINT_LENGTH,
    GuestActor,
    UserActor,
    normalize_fingerprint,
    resolve_actor,
)
from sitecomments.comments.models import ActorType


class TestResolveActor:
    def test_user_wins_over_fingerprint(self) -> None:
        user = AuthenticatedUser(id=uuid4(), email="bob@example.com")
        actor = resolve_actor(user, "fp-123", "10.0.0.1")
        assert actor == UserActor(user_id=user.id)
        assert actor.key == f"user:{user.id}"
        assert actor.actor_type is ActorType.USER
        assert actor.fingerprint is None

    def test_guest_uses_fingerprint(self) -> None:
        actor = resolve_actor(None, "  fp-123  ", "10.0.0.1")
        assert actor == GuestActor(fingerprint="fp-123")
        assert actor.key == "guest:fp-123"
        assert actor.user_id is None

    def test_guest_falls_back_to_client_id(self) -> None:
        actor = resolve_actor(None, None, "10.0.0.1")
        assert actor.key == "guest:guest-10.0.0.1"

    def test_blank_fingerprint_counts_as_absent(self) -> None:
        actor = resolve_actor(None, "   ", None)
        assert actor.key == "guest:guest-unknown"

    def test_fingerprint_is_truncated(self) -> None:
        assert len(normalize_fingerprint("x" * 500)) == MAX_FINGERPRINT_LENGTH


class TestEditToken:
    def test_tokens_are_unique(self) -> None:
        assert issue_edit_token() != issue_edit_token()

    def test_hash_is_sha256_hex(self) -> None:
        digest = hash_edit_token("secret")
        assert len(digest) == 64
        assert digest != "secret"

    def test_verify_matching_token(self) -> None:
        token = issue_edit_token()
        assert verify_edit_token(token, hash_edit_token(token)) is True

    def test_verify_wrong_token(self) -> None:
        assert verify_edit_token("wrong", hash_edit_token("right")) is False

    def test_missing_values_never_verify(self) -> None:
        assert verify_edit_token(None, hash_edit_token("x")) is False
        assert verify_edit_token("x", None) is False
        assert verify_edit_token("", "") is False
