from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    service: str
    version: str


class ErrorResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    error: str
    error_code: str
    details: str | None = None
    correlation_id: str | None = None
