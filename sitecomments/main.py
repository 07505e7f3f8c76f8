"""sitecomments API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sitecomments.auth.admin_roles import AdminRoleService
from sitecomments.comments.admin_router import router as admin_router
from sitecomments.comments.moderation import ModerationGateway
from sitecomments.comments.rate_limit import (
    InMemoryRateLimiter,
    RateLimiter,
    RedisRateLimiter,
)
from sitecomments.comments.reactions import ReactionLedger
from sitecomments.comments.reports import ReportService
from sitecomments.comments.repository import CommentRepository
from sitecomments.comments.router import reports_router
from sitecomments.comments.router import router as comments_router
from sitecomments.comments.service import CommentService
from sitecomments.config import Settings, get_settings
from sitecomments.core.context import get_request_id
from sitecomments.core.database import init_async_cassandra, shutdown_async_cassandra
from sitecomments.core.logging import configure_structlog, get_logger
from sitecomments.core.middleware import RequestContextMiddleware
from sitecomments.core.redis import init_redis, shutdown_redis
from sitecomments.health.router import router as health_router


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def build_rate_limiter(settings: Settings, redis_client: Any = None) -> RateLimiter:
    """Shared Redis counters when configured and reachable, else process-local."""
    window = settings.comment_rate_limit_window_seconds
    if settings.comment_rate_limit_backend == "redis":
        if redis_client is not None:
            return RedisRateLimiter(redis_client, window_seconds=window)
        logger.warning(
            "rate_limit_backend_fallback",
            requested="redis",
            message="Redis unavailable - using in-memory rate limits",
        )
    return InMemoryRateLimiter(window_seconds=window)


def init_comment_services(
    app: FastAPI, session: Any, settings: Settings, rate_limiter: RateLimiter
) -> None:
    """Wire the comment services onto ``app.state`` for dependency injection."""
    keyspace = settings.cassandra_keyspace
    timeout = settings.cassandra_request_timeout

    repository = CommentRepository(session=session, keyspace=keyspace, timeout=timeout)
    reactions = ReactionLedger(
        repository=repository,
        rate_limiter=rate_limiter,
        reaction_limit=settings.comment_reaction_limit,
    )
    app.state.reaction_ledger = reactions
    app.state.comment_service = CommentService(
        repository=repository,
        reactions=reactions,
        rate_limiter=rate_limiter,
        comment_limit=settings.comment_create_limit,
        reply_limit=settings.comment_reply_limit,
    )
    app.state.report_service = ReportService(
        repository=repository,
        rate_limiter=rate_limiter,
        report_limit=settings.comment_report_limit,
    )
    app.state.moderation_gateway = ModerationGateway(
        repository=repository,
        audit_list_limit=settings.audit_log_list_limit,
    )
    app.state.admin_role_service = AdminRoleService(
        session=session, keyspace=keyspace, timeout=timeout
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - rate limits are process-local",
        )
    app.state.redis = redis_client

    # Initialize Cassandra (async)
    app.state.cassandra_session = None
    try:
        session = await init_async_cassandra()
        app.state.cassandra_session = session
        logger.info("cassandra_initialized")

        init_comment_services(
            app, session, settings, build_rate_limiter(settings, redis_client)
        )
        logger.info(
            "comment_services_initialized",
            rate_limit_backend=settings.comment_rate_limit_backend,
        )
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # SECURITY: Always set debug=False so Starlette never renders stack traces.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Page comments with guest editing, reactions, reports and moderation",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    # Global exception handlers (security: never expose stack traces)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages.

        A dict ``detail`` carries ``message`` plus field-level ``details``.
        """
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        details = None
        if isinstance(exc.detail, dict):
            message = exc.detail.get("message", "")
            details = exc.detail.get("details")
        else:
            message = str(exc.detail)
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            message = "Internal server error"
            details = None

        content: dict[str, Any] = {
            "error": True,
            "message": message,
            "status_code": exc.status_code,
            "request_id": request_id,
        }
        if details:
            content["details"] = details
        return ORJSONResponse(
            status_code=exc.status_code, content=content, headers=exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Request validation failures are 400s with per-field details."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": status.HTTP_400_BAD_REQUEST,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        SECURITY: Never expose stack traces or internal error details to users.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(comments_router)
    app.include_router(reports_router)
    app.include_router(admin_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "sitecomments API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
