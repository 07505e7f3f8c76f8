"""Request context management using contextvars.

Every request gets a request id; the resolved commenter (authenticated user
or guest actor key) and the client id are attached once known, so any log
line emitted further down the call stack carries them without passing
parameters around.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
actor_key_var: ContextVar[str | None] = ContextVar("actor_key", default=None)
client_id_var: ContextVar[str | None] = ContextVar("client_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current authenticated user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the authenticated user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def set_actor_key(actor_key: str | None) -> None:
    """Set the resolved commenter identity (``user:<id>`` or ``guest:<fp>``)."""
    actor_key_var.set(actor_key)


def set_client_id(client_id: str | None) -> None:
    """Set the connection's client id (first forwarded hop or peer address)."""
    client_id_var.set(client_id)


def set_trace_id(trace_id: str | None) -> None:
    """Set the trace ID from distributed tracing headers."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    values = {
        "request_id": request_id_var.get(),
        "user_id": user_id_var.get(),
        "actor_key": actor_key_var.get(),
        "client_id": client_id_var.get(),
        "trace_id": trace_id_var.get(),
    }
    for key, value in values.items():
        if value:
            context[key] = value

    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent leakage between requests.
    """
    request_id_var.set("")
    user_id_var.set(None)
    actor_key_var.set(None)
    client_id_var.set(None)
    trace_id_var.set(None)
