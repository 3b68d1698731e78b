"""WhatsApp webhook routes.

GET  {path}  → subscription handshake (hub.challenge echo)
POST {path}  → signed notification delivery

The routes only adapt HTTP to ``NotificationHandler``; every decision about
status codes is made there.
"""

from fastapi import APIRouter, Query, Request, Response

from wadispatch.dispatch.lifecycle import NotificationHandler, WebhookResponse
from wadispatch.observability.logging import get_logger
from wadispatch.observability.redaction import safe_log_context
from wadispatch.whatsapp.subscription import VerificationRequest

logger = get_logger(__name__)


def _to_response(result: WebhookResponse) -> Response:
    return Response(status_code=result.status_code, content=result.content, media_type="text/plain")


def create_router(handler: NotificationHandler, path: str = "/webhooks/whatsapp") -> APIRouter:
    """Build the webhook router bound to ``handler``."""
    router = APIRouter(tags=["webhooks"])

    @router.get(path)
    async def verify_webhook(
        request: Request,
        hub_mode: str = Query("", alias="hub.mode"),
        hub_verify_token: str = Query("", alias="hub.verify_token"),
        hub_challenge: str = Query("", alias="hub.challenge"),
    ) -> Response:
        """Meta webhook verification endpoint.

        Returns:
            200 with hub.challenge if the token matches, 403 otherwise.
        """
        ctx = handler.new_context(dict(request.headers))
        result = await handler.verify_subscription(
            ctx,
            VerificationRequest(
                mode=hub_mode,
                verify_token=hub_verify_token,
                challenge=hub_challenge,
            ),
        )
        return _to_response(result)

    @router.post(path)
    async def receive_notification(request: Request) -> Response:
        """Receive a notification from the WhatsApp Cloud API.

        The raw body is read before anything else because the signature
        covers the exact bytes Meta sent.
        """
        try:
            body = await request.body()
        except Exception:
            logger.warning(
                "failed to read request body",
                extra={"extra_fields": safe_log_context(path=request.url.path)},
            )
            return Response(status_code=handler.config.bad_payload_status, content="bad payload")

        ctx = handler.new_context(dict(request.headers), body)
        result = await handler.handle(body, request.headers, ctx)
        return _to_response(result)

    return router
