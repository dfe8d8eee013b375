"""Pydantic response models for the operational endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class HealthOut(BaseModel):
    """Storage health as reported by ``GET /health``."""

    model_config = ConfigDict(from_attributes=True)

    status: Literal["healthy", "unhealthy"]
    bucket: str
    region: str
    checked_at: datetime
    response_time_ms: float | None = None
    error: str | None = None


class ReadyOut(BaseModel):
    status: Literal["ready", "not_ready"]
    pool: dict[str, Any] | None = None
    detail: dict[str, Any] | None = None


class ProblemOut(BaseModel):
    """RFC 7807 problem document returned for storage errors."""

    type: str = "about:blank"
    title: str
    status: int
    detail: str
    error_code: str
    instance: str
    request_id: str | None = None
