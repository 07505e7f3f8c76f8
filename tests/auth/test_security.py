"""Tests for access token handling."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from sitecomments.auth.schemas import AuthenticatedUser
from sitecomments.auth.security import create_access_token, decode_access_token
from sitecomments.config.settings import get_settings


class TestAccessToken:
    """Tests for access token creation and decoding."""

    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        user_id = uuid4()
        token = create_access_token(
            {"sub": str(user_id), "email": "test@example.com", "name": "Tess"}
        )

        payload = decode_access_token(token)

        assert payload["sub"] == str(user_id)
        assert payload["email"] == "test@example.com"
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        """Should raise JWTError for expired token."""
        token = create_access_token(
            {"sub": str(uuid4())}, expires_delta=timedelta(seconds=-1)
        )

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        settings = get_settings()
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "refresh"},
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(token)

    def test_decode_access_token_missing_sub(self) -> None:
        token = create_access_token({"email": "nobody@example.com"})

        with pytest.raises(JWTError, match="sub"):
            decode_access_token(token)

    def test_decode_access_token_wrong_secret(self) -> None:
        settings = get_settings()
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "access"},
            "another-secret",
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError):
            decode_access_token(token)


class TestAuthenticatedUser:
    def test_from_payload(self) -> None:
        user_id = uuid4()
        user = AuthenticatedUser.from_token_payload(
            {"sub": str(user_id), "email": "a@example.com", "full_name": "  Ann  "}
        )

        assert user.id == user_id
        assert user.name == "Ann"
        assert user.role == "user"
        assert user.avatar_url is None

    def test_blank_profile_fields(self) -> None:
        user = AuthenticatedUser.from_token_payload(
            {"sub": str(uuid4()), "name": "   ", "avatar_url": ""}
        )

        assert user.name is None
        assert user.avatar_url is None
