"""Pydantic schemas for the authenticated caller."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AuthenticatedUser(BaseModel):
    """Identity and profile snapshot carried by an access token."""

    id: UUID
    email: str = ""
    role: str = "user"
    name: str | None = Field(None, max_length=200)
    avatar_url: str | None = Field(None, max_length=2000)

    @field_validator("name", "avatar_url")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @classmethod
    def from_token_payload(cls, payload: dict[str, Any]) -> "AuthenticatedUser":
        return cls(
            id=payload["sub"],
            email=payload.get("email") or "",
            role=payload.get("role") or "user",
            name=payload.get("full_name") or payload.get("name"),
            avatar_url=payload.get("avatar_url"),
        )
