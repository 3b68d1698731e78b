"""FastAPI application factory for the webhook receiver."""

from fastapi import FastAPI, Request, Response

from wadispatch.config import WebhookConfig
from wadispatch.dispatch.lifecycle import NotificationHandler
from wadispatch.observability.correlation import (
    CORRELATION_ID_HEADER,
    correlation_id_from_headers,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public
from .routes import webhooks

DEFAULT_WEBHOOK_PATH = "/webhooks/whatsapp"


def create_app(
    config: WebhookConfig | None = None,
    path: str = DEFAULT_WEBHOOK_PATH,
) -> FastAPI:
    """Create the FastAPI app serving the webhook endpoint.

    Args:
        config: Webhook configuration. If None, reads it from the
            environment via ``WebhookConfig.from_env``.
        path: Route for both the GET handshake and POST deliveries.

    Returns:
        Configured FastAPI application.
    """
    if config is None:
        config = WebhookConfig.from_env()

    app = FastAPI(
        title="wadispatch",
        docs_url=None,
        redoc_url=None,
    )
    app.state.notification_handler = NotificationHandler(config)

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = correlation_id_from_headers(request.headers)
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(webhooks.create_router(app.state.notification_handler, path))

    return app
