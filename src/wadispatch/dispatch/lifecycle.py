"""Request lifecycle for inbound notifications.

    Received -> SignatureVerify -> BeforeHook -> Decode -> Dispatch -> AfterHook -> Responded

Signature failures, before-hook vetoes and decode failures end the request
with their configured status. Anything that happens during dispatch is
reported and the platform still gets a 200, so it does not redeliver.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from wadispatch.config import WebhookConfig
from wadispatch.errors import FatalRejection, PayloadDecodeError, RequestRejected, SignatureError
from wadispatch.observability.logging import get_logger
from wadispatch.observability.redaction import safe_log_context
from wadispatch.whatsapp.decoder import decode_notification
from wadispatch.whatsapp.models import Notification
from wadispatch.whatsapp.signature import HeaderValue, verify_request
from wadispatch.whatsapp.subscription import (
    SubscriptionVerificationError,
    VerificationRequest,
    verify_subscription,
)

from .context import RequestContext
from .engine import Dispatcher, DispatchReport
from .hooks import call_hook

logger = get_logger(__name__)


@dataclass(frozen=True)
class WebhookResponse:
    """Transport-independent response: status code and plain-text body."""

    status_code: int
    content: str = ""
    report: DispatchReport | None = None


class NotificationHandler:
    """Verifies, decodes and dispatches webhook notifications."""

    def __init__(self, config: WebhookConfig) -> None:
        self.config = config
        self.dispatcher = Dispatcher(
            hooks=config.hooks,
            hooks_error_reporter=config.hooks_error_reporter,
            notification_error_reporter=config.notification_error_reporter,
        )

    def new_context(self, headers: Mapping[str, str], body: bytes = b"") -> RequestContext:
        return RequestContext.create(headers, body, timeout=self.config.request_timeout)

    async def handle(
        self,
        body: bytes,
        headers: Mapping[str, HeaderValue],
        ctx: RequestContext | None = None,
    ) -> WebhookResponse:
        """Process one POSTed notification and decide the response."""
        if ctx is None:
            ctx = self.new_context(_flatten(headers), body)

        if self.config.validate_signature:
            try:
                verify_request(body, headers, self.config.secret)
            except SignatureError as e:
                logger.warning(
                    "signature verification failed",
                    extra={"extra_fields": safe_log_context(reason=str(e))},
                )
                return WebhookResponse(self.config.signature_failure_status, "invalid signature")

        rejection = await self._run_before(ctx)
        if rejection is not None:
            await self._run_after(ctx, None, rejection[1])
            return WebhookResponse(rejection[0], "rejected")

        try:
            notification = decode_notification(body)
        except PayloadDecodeError as e:
            logger.warning(
                "invalid notification payload",
                extra={"extra_fields": safe_log_context(reason=str(e), size=len(body))},
            )
            await self._run_after(ctx, None, e)
            return WebhookResponse(self.config.bad_payload_status, "bad payload")

        report = await self.dispatcher.dispatch(ctx, notification)
        logger.info(
            "notification dispatched",
            extra={
                "extra_fields": safe_log_context(
                    object=notification.object,
                    entries=len(notification.entries),
                    dispatched=report.dispatched,
                    skipped=report.skipped,
                    failed=len(report.failures),
                    platform_errors=report.platform_errors,
                )
            },
        )

        await self._run_after(ctx, notification, report.terminal_error)
        return WebhookResponse(200, "ok", report)

    async def verify_subscription(
        self, ctx: RequestContext, request: VerificationRequest
    ) -> WebhookResponse:
        """Answer the GET handshake: echo the challenge or refuse with 403."""
        try:
            if self.config.subscription_verifier is not None:
                await call_hook(self.config.subscription_verifier, ctx, request)
                challenge = request.challenge
            else:
                challenge = verify_subscription(request, self.config.verify_token)
        except SubscriptionVerificationError as e:
            logger.warning(
                "subscription verification failed",
                extra={
                    "extra_fields": safe_log_context(
                        hub_mode=request.mode or "missing", reason=str(e)
                    )
                },
            )
            return WebhookResponse(403, "verification failed")
        except Exception:
            logger.exception(
                "subscription verifier failed",
                extra={"extra_fields": safe_log_context(hub_mode=request.mode or "missing")},
            )
            return WebhookResponse(403, "verification failed")

        logger.info(
            "subscription verification successful",
            extra={"extra_fields": safe_log_context(hub_mode=request.mode)},
        )
        return WebhookResponse(200, challenge)

    async def _run_before(self, ctx: RequestContext) -> tuple[int, BaseException] | None:
        if self.config.before is None:
            return None
        try:
            await call_hook(self.config.before, ctx)
        except FatalRejection as e:
            status = e.status_code or self.config.fatal_rejection_status
            logger.error(
                "request rejected by before hook (fatal)",
                extra={"extra_fields": safe_log_context(reason=str(e), status=status)},
            )
            return status, e
        except RequestRejected as e:
            status = e.status_code or self.config.rejection_status
            logger.warning(
                "request rejected by before hook",
                extra={"extra_fields": safe_log_context(reason=str(e), status=status)},
            )
            return status, e
        except Exception as e:
            logger.exception("before hook failed")
            return self.config.fatal_rejection_status, e
        return None

    async def _run_after(
        self,
        ctx: RequestContext,
        notification: Notification | None,
        error: BaseException | None,
    ) -> None:
        if self.config.after is None:
            return
        try:
            await call_hook(self.config.after, ctx, notification, error)
        except Exception:
            # The response is already decided
            logger.exception("after hook failed")


def _flatten(headers: Mapping[str, HeaderValue]) -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in headers.items():
        if isinstance(value, str):
            flat[key] = value
        elif value:
            flat[key] = value[0]
    return flat
