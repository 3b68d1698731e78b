"""Webhook configuration, built once at startup and shared by all requests."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from wadispatch.dispatch.hooks import (
    AfterHook,
    BeforeHook,
    Hooks,
    HooksErrorReporter,
    NotificationErrorReporter,
    noop_hooks_error_reporter,
    noop_notification_error_reporter,
)
from wadispatch.errors import ConfigurationError
from wadispatch.whatsapp.subscription import SubscriptionVerifier

__all__ = ["WebhookConfig"]

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class WebhookConfig:
    """Everything the notification handler needs to serve requests.

    Attributes:
        secret: Meta App Secret used to verify ``X-Hub-Signature-256``.
        validate_signature: Set to False only for local development.
        hooks: Per-kind handlers.
        before: Called before decoding; raise ``RequestRejected`` to veto.
        after: Called once after dispatch with the notification and the
            terminal error. Its outcome never changes the response.
        hooks_error_reporter: Receives every hook failure.
        notification_error_reporter: Receives errors Meta reports inside
            the payload.
        verify_token: Token expected in the GET subscription handshake.
        subscription_verifier: Replaces the token comparison when set.
        signature_failure_status: Status for missing or invalid signatures.
        bad_payload_status: Status for bodies that fail to decode.
        rejection_status: Status for an ordinary before-hook veto.
        fatal_rejection_status: Status for a ``FatalRejection`` or an
            unexpected before-hook exception.
        request_timeout: Seconds before the request deadline; None disables it.
    """

    secret: str = ""
    validate_signature: bool = True
    hooks: Hooks = field(default_factory=Hooks)
    before: BeforeHook | None = None
    after: AfterHook | None = None
    hooks_error_reporter: HooksErrorReporter = noop_hooks_error_reporter
    notification_error_reporter: NotificationErrorReporter = noop_notification_error_reporter
    verify_token: str = ""
    subscription_verifier: SubscriptionVerifier | None = None
    signature_failure_status: int = 401
    bad_payload_status: int = 400
    rejection_status: int = 400
    fatal_rejection_status: int = 500
    request_timeout: float | None = None

    def __post_init__(self) -> None:
        # None means "use the no-op default"
        if self.hooks is None:
            object.__setattr__(self, "hooks", Hooks())
        if self.hooks_error_reporter is None:
            object.__setattr__(self, "hooks_error_reporter", noop_hooks_error_reporter)
        if self.notification_error_reporter is None:
            object.__setattr__(
                self, "notification_error_reporter", noop_notification_error_reporter
            )
        self.validate()

    def validate(self) -> None:
        """Check option combinations.

        Raises:
            ConfigurationError: If the configuration cannot serve requests.
        """
        if self.validate_signature and not self.secret.strip():
            raise ConfigurationError(
                "Signature validation is enabled but no app secret is configured. "
                "Set WHATSAPP_APP_SECRET or disable validation for local development."
            )

        for name in (
            "signature_failure_status",
            "bad_payload_status",
            "rejection_status",
            "fatal_rejection_status",
        ):
            status = getattr(self, name)
            if not 400 <= status <= 599:
                raise ConfigurationError(f"Invalid {name}: {status}. Must be a 4xx or 5xx code.")

        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigurationError(
                f"Invalid request_timeout: {self.request_timeout}. Must be positive."
            )

        for name in ("before", "after", "hooks_error_reporter", "notification_error_reporter"):
            value = getattr(self, name)
            if value is not None and not callable(value):
                raise ConfigurationError(f"{name} must be callable")

    @classmethod
    def from_env(cls, **overrides: Any) -> WebhookConfig:
        """Build a config from environment variables.

        Reads ``WHATSAPP_APP_SECRET``, ``WHATSAPP_VALIDATE_SIGNATURE``
        (default true), ``WHATSAPP_VERIFY_TOKEN`` and
        ``WHATSAPP_REQUEST_TIMEOUT``. Keyword arguments win over the
        environment; hooks and reporters can only be passed that way.
        """
        values: dict[str, Any] = {
            "secret": os.environ.get("WHATSAPP_APP_SECRET", ""),
            "validate_signature": os.environ.get("WHATSAPP_VALIDATE_SIGNATURE", "true").lower()
            in _TRUE_VALUES,
            "verify_token": os.environ.get("WHATSAPP_VERIFY_TOKEN", ""),
        }
        timeout = os.environ.get("WHATSAPP_REQUEST_TIMEOUT")
        if timeout:
            try:
                values["request_timeout"] = float(timeout)
            except ValueError as e:
                raise ConfigurationError(f"Invalid WHATSAPP_REQUEST_TIMEOUT: {timeout!r}") from e
        values.update(overrides)
        return cls(**values)
