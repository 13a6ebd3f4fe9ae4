from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    ok: bool = True


class OkResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    """Unified error body returned by every API route."""

    error: str
    message: str
    request_id: str | None = None
    details: object | None = None
