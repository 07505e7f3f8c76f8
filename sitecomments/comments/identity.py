"""Commenter identity resolution.

A request acts either as a signed-in user or as a guest identified by a
client-supplied fingerprint. Guests that send no fingerprint fall back to a
key derived from the connection's client id so throttling and report
de-duplication still apply.
"""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from .models import ActorType


MAX_FINGERPRINT_LENGTH = 128


class _HasId(Protocol):
    id: UUID


@dataclass(frozen=True)
class UserActor:
    user_id: UUID

    actor_type = ActorType.USER

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"

    @property
    def fingerprint(self) -> None:
        return None


@dataclass(frozen=True)
class GuestActor:
    fingerprint: str

    actor_type = ActorType.GUEST

    @property
    def key(self) -> str:
        return f"guest:{self.fingerprint}"

    @property
    def user_id(self) -> None:
        return None


Actor = UserActor | GuestActor


def normalize_fingerprint(value: str | None) -> str | None:
    """Trim a client fingerprint; blank values count as absent."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    return value[:MAX_FINGERPRINT_LENGTH]


def resolve_actor(
    user: _HasId | None,
    fingerprint: str | None,
    client_id: str | None,
) -> Actor:
    """Resolve who is acting. Never fails.

    Args:
        user: Authenticated user, if any. Always wins.
        fingerprint: Client-supplied guest fingerprint.
        client_id: Connection client id used for the fallback guest key.
    """
    if user is not None:
        return UserActor(user_id=UUID(str(user.id)))

    fp = normalize_fingerprint(fingerprint)
    if fp is None:
        fp = f"guest-{client_id or 'unknown'}"
    return GuestActor(fingerprint=fp)
