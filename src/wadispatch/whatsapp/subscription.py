"""Webhook subscription handshake.

Meta sends ``GET ?hub.mode=subscribe&hub.verify_token=...&hub.challenge=...``
while the webhook is being configured and expects the challenge echoed
back when the token matches.
"""

from __future__ import annotations

import hmac
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Union

from wadispatch.dispatch.context import RequestContext


class SubscriptionVerificationError(Exception):
    """Raised when the subscription handshake must be refused."""


@dataclass(frozen=True)
class VerificationRequest:
    mode: str
    verify_token: str
    challenge: str


SubscriptionVerifier = Callable[[RequestContext, VerificationRequest], Union[Awaitable[None], None]]


def verify_subscription(request: VerificationRequest, expected_token: str) -> str:
    """Check the handshake and return the challenge to echo.

    Raises:
        SubscriptionVerificationError: If the mode is not ``subscribe``, no
            token is configured, or the token does not match.
    """
    if request.mode != "subscribe":
        raise SubscriptionVerificationError("unexpected hub.mode")
    if not expected_token:
        raise SubscriptionVerificationError("no verify token configured")
    if not hmac.compare_digest(request.verify_token.encode(), expected_token.encode()):
        raise SubscriptionVerificationError("verify token mismatch")
    return request.challenge
