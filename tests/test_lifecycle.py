"""Tests for the request lifecycle: signature gate, before/after hooks, statuses."""

from wadispatch.config import WebhookConfig
from wadispatch.dispatch.context import RequestContext
from wadispatch.dispatch.hooks import Hooks
from wadispatch.dispatch.lifecycle import NotificationHandler
from wadispatch.errors import FatalRejection, PayloadDecodeError, RequestRejected
from wadispatch.whatsapp.message_types import MessageType
from wadispatch.whatsapp.models import Notification
from wadispatch.whatsapp.signature import SIGNATURE_HEADER
from wadispatch.whatsapp.subscription import VerificationRequest

from helpers import MINIMAL_BODY, TEST_SECRET, TEXT_BODY, Recorder, run, signature_header


def _handle(config: WebhookConfig, body: bytes, headers: dict | None = None):
    return run(NotificationHandler(config).handle(body, headers or {}))


class TestSignatureGate:
    def test_valid_signature_dispatches(self):
        text = Recorder("text")
        config = WebhookConfig(secret=TEST_SECRET, hooks=Hooks(messages={MessageType.TEXT: text}))
        result = _handle(config, TEXT_BODY, {SIGNATURE_HEADER: signature_header(TEXT_BODY)})

        assert result.status_code == 200
        assert text.count == 1

    def test_missing_signature_rejected_before_anything(self):
        calls = []
        config = WebhookConfig(
            secret=TEST_SECRET,
            hooks=Hooks(messages={MessageType.TEXT: Recorder("text", calls)}),
            before=Recorder("before", calls),
            after=Recorder("after", calls),
        )
        result = _handle(config, TEXT_BODY)

        assert result.status_code == 401
        assert calls == []

    def test_mismatch_rejected(self):
        config = WebhookConfig(secret=TEST_SECRET)
        result = _handle(config, TEXT_BODY, {SIGNATURE_HEADER: signature_header(TEXT_BODY, "wrong")})
        assert result.status_code == 401

    def test_signature_checked_before_decoding(self):
        config = WebhookConfig(secret=TEST_SECRET)
        result = _handle(config, b"not json", {SIGNATURE_HEADER: "sha256=00"})
        assert result.status_code == 401

    def test_custom_failure_status(self):
        config = WebhookConfig(secret=TEST_SECRET, signature_failure_status=403)
        result = _handle(config, TEXT_BODY, {SIGNATURE_HEADER: "garbage"})
        assert result.status_code == 403

    def test_header_lists_accepted(self):
        config = WebhookConfig(secret=TEST_SECRET)
        result = _handle(config, TEXT_BODY, {SIGNATURE_HEADER: [signature_header(TEXT_BODY)]})
        assert result.status_code == 200

    def test_validation_disabled_skips_check(self):
        config = WebhookConfig(validate_signature=False, secret=TEST_SECRET)
        result = _handle(config, TEXT_BODY, {SIGNATURE_HEADER: "sha256=wrong"})
        assert result.status_code == 200


class TestBeforeHook:
    def test_before_runs_first(self):
        calls = []
        config = WebhookConfig(
            validate_signature=False,
            hooks=Hooks(messages={MessageType.TEXT: Recorder("text", calls)}),
            before=Recorder("before", calls),
        )
        _handle(config, TEXT_BODY)

        assert [name for name, _ in calls] == ["before", "text"]
        assert isinstance(calls[0][1][0], RequestContext)

    def test_rejection_aborts_dispatch(self):
        text = Recorder("text")
        config = WebhookConfig(
            validate_signature=False,
            hooks=Hooks(messages={MessageType.TEXT: text}),
            before=Recorder("before", raises=RequestRejected("tenant disabled")),
        )
        result = _handle(config, TEXT_BODY)

        assert result.status_code == 400
        assert text.count == 0

    def test_rejection_status_configurable(self):
        config = WebhookConfig(
            validate_signature=False,
            rejection_status=409,
            before=Recorder("before", raises=RequestRejected()),
        )
        assert _handle(config, TEXT_BODY).status_code == 409

    def test_explicit_status_wins(self):
        config = WebhookConfig(
            validate_signature=False,
            before=Recorder("before", raises=RequestRejected("slow down", status_code=429)),
        )
        assert _handle(config, TEXT_BODY).status_code == 429

    def test_fatal_rejection(self):
        config = WebhookConfig(
            validate_signature=False,
            before=Recorder("before", raises=FatalRejection("db down")),
        )
        assert _handle(config, TEXT_BODY).status_code == 500

    def test_unexpected_exception_is_fatal(self):
        config = WebhookConfig(
            validate_signature=False,
            before=Recorder("before", raises=KeyError("oops")),
        )
        assert _handle(config, TEXT_BODY).status_code == 500

    def test_before_can_share_state_with_hooks(self):
        seen = []

        def before(ctx):
            ctx.state["tenant"] = "acme"

        def on_text(ctx, msg, source):
            seen.append(ctx.state["tenant"])

        config = WebhookConfig(
            validate_signature=False,
            before=before,
            hooks=Hooks(messages={MessageType.TEXT: on_text}),
        )
        _handle(config, TEXT_BODY)

        assert seen == ["acme"]


class TestAfterHook:
    def test_called_once_with_notification(self):
        after = Recorder("after")
        config = WebhookConfig(validate_signature=False, after=after)
        result = _handle(config, TEXT_BODY)

        assert result.status_code == 200
        assert after.count == 1
        _, notification, error = after.args()
        assert isinstance(notification, Notification)
        assert error is None

    def test_decode_failure_seen_by_after(self):
        calls = []
        config = WebhookConfig(
            validate_signature=False,
            hooks=Hooks(on_notification=Recorder("notification", calls)),
            after=Recorder("after", calls),
        )
        result = _handle(config, b"{not json")

        assert result.status_code == 400
        assert [name for name, _ in calls] == ["after"]
        _, notification, error = calls[0][1]
        assert notification is None
        assert isinstance(error, PayloadDecodeError)

    def test_bad_payload_status_configurable(self):
        config = WebhookConfig(validate_signature=False, bad_payload_status=422)
        assert _handle(config, b"[]").status_code == 422

    def test_rejection_seen_by_after(self):
        after = Recorder("after")
        rejection = RequestRejected("no")
        config = WebhookConfig(
            validate_signature=False,
            before=Recorder("before", raises=rejection),
            after=after,
        )
        _handle(config, TEXT_BODY)

        assert after.args()[1:] == (None, rejection)

    def test_after_failure_does_not_change_response(self):
        config = WebhookConfig(validate_signature=False, after=Recorder("after", raises=RuntimeError("x")))
        assert _handle(config, TEXT_BODY).status_code == 200

    def test_after_return_value_ignored(self):
        async def after(ctx, notification, error):
            return 500

        config = WebhookConfig(validate_signature=False, after=after)
        assert _handle(config, TEXT_BODY).status_code == 200

    def test_hook_failures_keep_200(self):
        after = Recorder("after")
        config = WebhookConfig(
            validate_signature=False,
            hooks=Hooks(messages={MessageType.TEXT: Recorder("text", raises=RuntimeError("down"))}),
            after=after,
        )
        result = _handle(config, TEXT_BODY)

        assert result.status_code == 200
        assert len(result.report.failures) == 1
        assert after.args()[2] is None


class TestEmptyConfig:
    def test_minimal_body_no_hooks(self):
        result = _handle(WebhookConfig(validate_signature=False), MINIMAL_BODY)
        assert result.status_code == 200
        assert result.content == "ok"
        assert result.report.dispatched == 0


class TestSubscription:
    def _verify(self, config, mode="subscribe", token="tok", challenge="1158201444"):
        handler = NotificationHandler(config)
        ctx = RequestContext(correlation_id="test")
        return run(handler.verify_subscription(ctx, VerificationRequest(mode, token, challenge)))

    def test_matching_token_echoes_challenge(self):
        result = self._verify(WebhookConfig(validate_signature=False, verify_token="tok"))
        assert result.status_code == 200
        assert result.content == "1158201444"

    def test_wrong_token(self):
        result = self._verify(WebhookConfig(validate_signature=False, verify_token="tok"), token="nope")
        assert result.status_code == 403

    def test_wrong_mode(self):
        result = self._verify(WebhookConfig(validate_signature=False, verify_token="tok"), mode="unsubscribe")
        assert result.status_code == 403

    def test_no_token_configured(self):
        result = self._verify(WebhookConfig(validate_signature=False), token="")
        assert result.status_code == 403

    def test_custom_verifier(self):
        seen = []

        async def verifier(ctx, request):
            seen.append(request.verify_token)

        result = self._verify(WebhookConfig(validate_signature=False, subscription_verifier=verifier), token="any")
        assert result.status_code == 200
        assert seen == ["any"]

    def test_custom_verifier_refuses(self):
        def verifier(ctx, request):
            raise PermissionError("nope")

        result = self._verify(WebhookConfig(validate_signature=False, subscription_verifier=verifier))
        assert result.status_code == 403
