"""Correlation ID management for webhook request tracing."""

import uuid
from collections.abc import Mapping
from contextvars import ContextVar, Token

# Context variable for correlation ID - accessible across hook invocations
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Meta stamps every delivery attempt with its own request id; reuse it so
# retries of the same notification can be lined up in the logs.
_UPSTREAM_ID_HEADERS = (CORRELATION_ID_HEADER, "X-Request-ID", "X-FB-Trace-ID")


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def correlation_id_from_headers(headers: Mapping[str, str]) -> str:
    """Pick an upstream correlation ID from ``headers`` or generate one."""
    lowered = {k.lower(): v for k, v in headers.items()}
    for name in _UPSTREAM_ID_HEADERS:
        value = lowered.get(name.lower())
        if value:
            return value
    return generate_correlation_id()


def get_correlation_id() -> str:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    """Set correlation ID in context."""
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    """Reset correlation ID to previous value."""
    correlation_id_var.reset(token)
