"""Request context management using contextvars.

Every request gets a request id and, once authenticated, the acting user id.
Both are read by the logging processors so services never pass them around.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_CONTEXT_VARS: dict[str, ContextVar[Any]] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "trace_id": trace_id_var,
    "correlation_id": correlation_id_var,
}


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID, generating one when the caller sent none."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(str(user_id) if user_id is not None else None)


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Get the non-empty context variables as a dictionary."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


def clear_context() -> None:
    """Reset all context variables at the end of a request."""
    request_id_var.set("")
    user_id_var.set(None)
    trace_id_var.set(None)
    correlation_id_var.set(None)


class RequestContext:
    """Context manager that scopes context values to a block.

    Used by background jobs (e.g. counter reconciliation) that run outside
    the HTTP middleware.
    """

    def __init__(self, **values: str | UUID | None) -> None:
        unknown = set(values) - set(_CONTEXT_VARS)
        if unknown:
            msg = f"Unknown context keys: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        self.values = values
        self._tokens: dict[str, Token[Any]] = {}

    def __enter__(self) -> "RequestContext":
        self.values.setdefault("request_id", None)
        for name, value in self.values.items():
            if name == "request_id":
                value = value or generate_request_id()
            if value is not None:
                self._tokens[name] = _CONTEXT_VARS[name].set(str(value))
        return self

    def __exit__(self, *_: object) -> None:
        for name, token in self._tokens.items():
            _CONTEXT_VARS[name].reset(token)
        self._tokens.clear()
