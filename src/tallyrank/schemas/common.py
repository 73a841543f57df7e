"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Structured error body returned for engine errors."""

    detail: str
    code: str = Field(..., description="Stable machine-readable error code.")
    retry_after_ms: int | None = Field(
        None,
        description="Remaining cooldown for rate-limited requests.",
    )
