"""FastAPI application that receives Telegram updates over a webhook.

WHY: Long polling is fine for a single process on a laptop, but hosted
deployments (Cloud Run, a VM behind a load balancer) want Telegram to push
updates to an HTTPS endpoint instead. FastAPI gives request parsing,
OpenAPI docs and a health route with almost no code.

HOW: create_app() wraps an already-built python-telegram-bot Application
(built with updater=False). The lifespan initializes and starts the
Application, registers the webhook with Telegram, and runs the idle-session
sweep. POST /telegram/webhook decodes the JSON body into an Update and puts
it on the Application's update queue; the handlers in voice_journal.bot do
the rest.

RULES:
- When a webhook secret is configured, requests without the matching
  X-Telegram-Bot-Api-Secret-Token header get 403
- Malformed update bodies get 400; Telegram is never told about workflow
  errors (those are answered in the chat)
- Shutdown stops the Application, cancels the sweep and closes the adapters
- Error responses use the ErrorResponse schema
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request
from telegram import Update
from telegram.ext import Application

from voice_journal import __version__
from voice_journal.bot.bot import (
    ADAPTERS_KEY,
    WORKFLOW_KEY,
    start_session_cleanup,
    stop_session_cleanup,
)
from voice_journal.config import Settings
from voice_journal.server.models import ErrorResponse, HealthResponse, WebhookAck

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/telegram/webhook"
SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def create_app(settings: Settings, telegram_app: Application) -> FastAPI:
    """Create the webhook FastAPI app around a Telegram Application.

    RULES:
    - set_webhook is only called when settings.webhook_url is set
    - The lifespan is skipped by TestClient unless used as a context manager
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with telegram_app:
            await telegram_app.start()
            if settings.webhook_url:
                await telegram_app.bot.set_webhook(
                    url=settings.webhook_url,
                    secret_token=settings.webhook_secret or None,
                    allowed_updates=Update.ALL_TYPES,
                )
                logger.info("Webhook registered at %s", settings.webhook_url)
            start_session_cleanup(telegram_app)
            try:
                yield
            finally:
                await stop_session_cleanup(telegram_app)
                await telegram_app.stop()
                for adapter in telegram_app.bot_data.get(ADAPTERS_KEY, []):
                    await adapter.aclose()

    app = FastAPI(
        lifespan=lifespan,
        title="Voice Journal Bot",
        description=(
            "Webhook receiver for the voice journal Telegram bot. Telegram "
            "pushes updates here; voice messages are stored in Google Drive "
            "and filed into a Google Sheets journal."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    @app.post(
        WEBHOOK_PATH,
        response_model=WebhookAck,
        tags=["telegram"],
        summary="Receive a Telegram update",
        description="Endpoint registered with Telegram's setWebhook. Queues the update for processing.",
        responses={
            400: {"model": ErrorResponse, "description": "Body is not a valid update"},
            403: {"model": ErrorResponse, "description": "Secret token mismatch"},
        },
    )
    async def receive_update(
        request: Request,
        secret_token: Optional[str] = Header(default=None, alias=SECRET_HEADER),
    ) -> WebhookAck:
        expected = settings.webhook_secret
        if expected and not secrets.compare_digest(secret_token or "", expected):
            logger.warning("Rejected webhook call with a bad secret token")
            raise HTTPException(status_code=403, detail="Invalid secret token")

        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Request body is not JSON")
        if not isinstance(data, dict):
            raise HTTPException(status_code=400, detail="Update must be a JSON object")

        update = Update.de_json(data, telegram_app.bot)
        await telegram_app.update_queue.put(update)
        return WebhookAck()

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
        summary="Health check",
        description="Liveness and readiness check for load balancers and orchestrators.",
    )
    async def health_check() -> HealthResponse:
        workflow = telegram_app.bot_data.get(WORKFLOW_KEY)
        active = len(workflow.sessions) if workflow is not None else 0
        return HealthResponse(status="ok", version=__version__, active_sessions=active)

    return app


def run_server(settings: Settings, host: str = "0.0.0.0", port: int = 8000) -> None:
    """Serve the webhook app with uvicorn (blocks until interrupted)."""
    import uvicorn

    from voice_journal.bot.bot import create_application

    telegram_app = create_application(settings, updater=False)
    logger.info("Starting webhook server on %s:%d", host, port)
    uvicorn.run(create_app(settings, telegram_app), host=host, port=port)
