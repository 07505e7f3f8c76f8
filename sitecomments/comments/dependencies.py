"""FastAPI dependencies for the comment system.

Provides dependency injection for:
- Comment, reaction, report and moderation services
- The acting commenter (user or guest)
- Error translation
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from sitecomments.auth.dependencies import ClientId, OptionalUser
from sitecomments.core.context import set_actor_key

from .errors import CommentError, CommentValidationError
from .identity import Actor, resolve_actor
from .moderation import ModerationGateway
from .reactions import ReactionLedger
from .reports import ReportService
from .service import CommentService


def _from_state(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="comment service unavailable",
        )
    return service


async def get_comment_service(request: Request) -> CommentService:
    return _from_state(request, "comment_service")


async def get_reaction_ledger(request: Request) -> ReactionLedger:
    return _from_state(request, "reaction_ledger")


async def get_report_service(request: Request) -> ReportService:
    return _from_state(request, "report_service")


async def get_moderation_gateway(request: Request) -> ModerationGateway:
    return _from_state(request, "moderation_gateway")


async def get_actor(
    user: OptionalUser,
    client_id: ClientId,
    x_fingerprint: Annotated[str | None, Header()] = None,
) -> Actor:
    """Acting identity for reads and header-identified guests."""
    actor = resolve_actor(user, x_fingerprint, client_id)
    set_actor_key(actor.key)
    return actor


# Type aliases for dependency injection
CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]
ReactionLedgerDep = Annotated[ReactionLedger, Depends(get_reaction_ledger)]
ReportServiceDep = Annotated[ReportService, Depends(get_report_service)]
ModerationGatewayDep = Annotated[ModerationGateway, Depends(get_moderation_gateway)]
ActorDep = Annotated[Actor, Depends(get_actor)]


def handle_comment_error(error: CommentError) -> HTTPException:
    """Convert comment errors to HTTP exceptions.

    Validation errors carry the offending field so the response has the
    same shape as request validation failures.
    """
    status_map = {
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "authentication_required": status.HTTP_401_UNAUTHORIZED,
        "ownership_denied": status.HTTP_403_FORBIDDEN,
        "comment_not_found": status.HTTP_404_NOT_FOUND,
        "duplicate_report": status.HTTP_409_CONFLICT,
        "rate_limit_exceeded": status.HTTP_429_TOO_MANY_REQUESTS,
        "upstream_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(error, CommentValidationError):
        return HTTPException(
            status_code=status_code,
            detail={
                "message": error.message,
                "details": [{"field": error.field, "message": error.message}],
            },
        )

    return HTTPException(status_code=status_code, detail=error.message)
