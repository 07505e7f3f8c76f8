# Core infrastructure
from sitecomments.core.context import (
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_actor_key,
    set_client_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from sitecomments.core.database import init_async_cassandra, shutdown_async_cassandra
from sitecomments.core.logging import configure_structlog, get_logger
from sitecomments.core.middleware import RequestContextMiddleware, get_client_id


__all__ = [
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_client_id",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "init_async_cassandra",
    "set_actor_key",
    "set_client_id",
    "set_request_id",
    "set_trace_id",
    "set_user_id",
    "shutdown_async_cassandra",
]
