"""Shared schema base and health response."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model serialising field names as camelCase for API clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(ApiModel):
    """Plain acknowledgement."""

    success: bool = Field(True, description="Whether the operation succeeded.")
    message: str = Field(..., description="Human-readable outcome.")


class HealthResponse(ApiModel):
    """Liveness/readiness snapshot of one service."""

    status: str = Field("ok", description="Always 'ok' while the process serves requests.")
    service: str = Field(..., description="Service name (identity, post, media or search).")
    timestamp: datetime = Field(..., description="Server time (UTC).")
    broker_connected: bool = Field(
        ..., description="Whether the event relay is connected; false means degraded mode."
    )
    rate_limit_backend: str = Field(..., description="Counting store backend in use.")
