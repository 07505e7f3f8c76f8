"""Tests for the comment link policy."""

import pytest

from sitecomments.comments.errors import CommentValidationError
from sitecomments.comments.links import LinkCheck, check_body_links, link_error_message
from sitecomments.comments.service import validate_body_links


class TestCheckBodyLinks:
    def test_plain_text_has_no_links(self) -> None:
        check = check_body_links("just a friendly comment")
        assert check == LinkCheck(ok=True, has_links=False, link_count=0)

    def test_two_links_are_allowed(self) -> None:
        check = check_body_links("see https://a.example and http://b.example/x?y=1")
        assert check.ok is True
        assert check.has_links is True
        assert check.link_count == 2

    def test_three_links_are_rejected(self) -> None:
        body = "https://a.example https://b.example https://c.example"
        check = check_body_links(body)
        assert check.ok is False
        assert check.link_count == 3

    def test_scheme_match_is_case_insensitive(self) -> None:
        check = check_body_links("HTTPS://LOUD.EXAMPLE")
        assert check.ok is True
        assert check.link_count == 1

    def test_other_schemes_are_not_links(self) -> None:
        check = check_body_links("ftp://files.example mailto:me@example.com")
        assert check.has_links is False


class TestLinkErrorMessage:
    def test_without_links(self) -> None:
        assert link_error_message(LinkCheck(False, False, 0)) == "body invalid"

    def test_over_limit(self) -> None:
        assert link_error_message(LinkCheck(False, True, 3)) == "max 2 links"

    def test_bad_scheme(self) -> None:
        assert link_error_message(LinkCheck(False, True, 1)) == "only http/https"


class TestValidateBodyLinks:
    def test_returns_has_links(self) -> None:
        assert validate_body_links("hello") is False
        assert validate_body_links("hello https://x.example") is True

    def test_raises_with_field(self) -> None:
        with pytest.raises(CommentValidationError) as exc_info:
            validate_body_links("https://1.example https://2.example https://3.example")
        assert exc_info.value.message == "max 2 links"
        assert exc_info.value.field == "body"
