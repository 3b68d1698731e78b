"""Per-request context threaded through every hook invocation."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from wadispatch.errors import DeadlineExceeded
from wadispatch.observability.correlation import correlation_id_from_headers, get_correlation_id


@dataclass(frozen=True)
class RequestContext:
    """Read-only view of the webhook request being processed.

    Attributes:
        correlation_id: ID used to tie log lines of this request together.
        headers: Request headers as received.
        body: Raw request body.
        deadline: ``time.monotonic()`` value after which hooks should stop
            working. ``None`` means no deadline.
        state: Scratch space owned by this request. The before-hook can
            stash values here for later hooks.
    """

    correlation_id: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    deadline: float | None = None
    state: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        headers: Mapping[str, str] | None = None,
        body: bytes = b"",
        timeout: float | None = None,
    ) -> RequestContext:
        """Build a context for a new request.

        Reuses the correlation ID already bound by the HTTP middleware, else
        derives one from the headers.
        """
        headers = headers or {}
        correlation_id = get_correlation_id() or correlation_id_from_headers(headers)
        deadline = time.monotonic() + timeout if timeout is not None else None
        return cls(correlation_id=correlation_id, headers=headers, body=body, deadline=deadline)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_expired(self) -> None:
        """Raise ``DeadlineExceeded`` once the request deadline has passed."""
        if self.expired():
            raise DeadlineExceeded("request deadline exceeded")
