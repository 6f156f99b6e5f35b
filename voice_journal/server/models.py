"""Pydantic response models for the webhook server.

WHY: The webhook endpoint and the health check return small JSON bodies.
Typed models give request validation, consistent serialization, and the
schemas shown in the /docs UI.

RULES:
- All models use Field(description=...) for OpenAPI documentation
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class WebhookAck(BaseModel):
    """Acknowledgement returned to Telegram for every accepted update."""

    ok: bool = Field(default=True, description="True when the update was queued.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response.

    WHY: Load balancers and orchestrators need a simple endpoint
    to verify the service is alive and ready.
    """

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="Application version string.", json_schema_extra={"example": "0.1.0"})
    active_sessions: int = Field(
        description="Number of conversations with an entry in memory.",
        json_schema_extra={"example": 3},
    )
