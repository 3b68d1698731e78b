"""Exceptions raised while receiving and dispatching webhook notifications.

Terminal errors (signature, decode, rejection) end the request with a
non-2xx status. ``HookError`` and ``DeadlineExceeded`` are reported to the
hooks error reporter and never change the response.
"""

from __future__ import annotations


class WebhookError(Exception):
    """Base class for webhook processing errors."""


class ConfigurationError(ValueError):
    """Raised when a ``WebhookConfig`` combination is invalid."""


class SignatureError(WebhookError):
    """Raised when the request signature cannot be verified."""


class MissingSignatureError(SignatureError):
    """Raised when the signature header is absent or empty."""


class InvalidSignatureFormatError(SignatureError):
    """Raised when the signature header is not ``sha256=<hex>``."""


class SignatureMismatchError(SignatureError):
    """Raised when the computed HMAC does not match the header."""


class PayloadDecodeError(WebhookError):
    """Raised when the body is not valid JSON or has an incompatible shape."""


class RequestRejected(WebhookError):
    """Raised by a before-hook to veto the request.

    Args:
        message: Human readable reason, logged but never returned to Meta.
        status_code: Explicit HTTP status. Falls back to the configured
            rejection status when omitted.
    """

    def __init__(self, message: str = "request rejected", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FatalRejection(RequestRejected):
    """Before-hook veto caused by a server-side fault rather than the caller."""


class DeadlineExceeded(WebhookError):
    """Raised when the request deadline passes before dispatch completes."""


class HookError(WebhookError):
    """A registered hook failed while processing one unit of a notification.

    Attributes:
        hook: Name of the hook slot that failed (e.g. ``"text"``, ``"status"``).
        entry_id: Business account id of the enclosing entry.
        change_field: ``field`` tag of the enclosing change.
        message_id: Platform id of the message or status, when applicable.
    """

    def __init__(
        self,
        cause: BaseException,
        *,
        hook: str,
        entry_id: str | None = None,
        change_field: str | None = None,
        message_id: str | None = None,
    ):
        super().__init__(f"{hook} hook failed: {cause}")
        self.cause = cause
        self.hook = hook
        self.entry_id = entry_id
        self.change_field = change_field
        self.message_id = message_id
