"""Reaction ledger.

Each actor holds at most one reaction per target across the good/not_good
pair. Toggling the same reaction twice removes it; switching polarity
replaces the old row. Targets may be comments or replies.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .errors import CommentNotFoundError, RateLimitExceededError, UpstreamFailureError
from .models import ReactionCounts, ReactionType


if TYPE_CHECKING:
    from .identity import Actor
    from .rate_limit import RateLimiter
    from .repository import CommentRepository


logger = structlog.get_logger(__name__)


class ToggleAction(str, Enum):
    ADDED = "added"
    REMOVED = "removed"


class ReactionLedger:
    def __init__(
        self,
        repository: "CommentRepository",
        rate_limiter: "RateLimiter",
        reaction_limit: int = 10,
    ):
        self.repository = repository
        self.rate_limiter = rate_limiter
        self.reaction_limit = reaction_limit

    async def _ensure_target(self, target_id: UUID) -> None:
        comment = await self.repository.get_comment(target_id)
        if comment is not None:
            if comment.is_deleted:
                raise CommentNotFoundError
            return
        reply = await self.repository.get_reply(target_id)
        if reply is None or reply.is_deleted:
            raise CommentNotFoundError

    async def toggle(
        self, target_id: UUID, reaction_type: ReactionType, actor: "Actor"
    ) -> ToggleAction:
        """Add or remove ``reaction_type`` for ``actor`` on ``target_id``."""
        result = await self.rate_limiter.allow(
            "reaction", f"{actor.key}:{target_id}", self.reaction_limit
        )
        if not result.ok:
            raise RateLimitExceededError

        await self._ensure_target(target_id)

        if await self.repository.delete_reaction(target_id, actor.key, reaction_type):
            logger.info(
                "reaction_removed",
                target_id=str(target_id),
                reaction_type=reaction_type.value,
            )
            return ToggleAction.REMOVED

        await self.repository.delete_reaction(
            target_id, actor.key, reaction_type.opposite
        )
        await self.repository.insert_reaction(target_id, actor, reaction_type)

        logger.info(
            "reaction_added",
            target_id=str(target_id),
            reaction_type=reaction_type.value,
        )
        return ToggleAction.ADDED

    async def counts_for(self, target_ids: list[UUID]) -> dict[UUID, ReactionCounts]:
        """Good/not_good totals. Every requested id is present, zeroed if unknown."""
        counts = {target_id: ReactionCounts() for target_id in target_ids}
        if not target_ids:
            return counts
        try:
            reactions = await self.repository.list_reactions(target_ids)
        except UpstreamFailureError as e:
            logger.warning("reaction_counts_unavailable", error=str(e))
            return counts
        for target_id, reaction_type in reactions:
            if target_id in counts:
                counts[target_id].add(reaction_type)
        return counts

    async def actor_reactions_for(
        self, target_ids: list[UUID], actor: "Actor | None"
    ) -> dict[UUID, ReactionType | None]:
        """The caller's own reaction per target (None when absent)."""
        mine: dict[UUID, ReactionType | None] = dict.fromkeys(target_ids)
        if actor is None or not target_ids:
            return mine
        try:
            reactions = await self.repository.list_actor_reactions(target_ids, actor.key)
        except UpstreamFailureError as e:
            logger.warning("my_reactions_unavailable", error=str(e))
            return mine
        for target_id, reaction_type in reactions:
            mine[target_id] = reaction_type
        return mine
