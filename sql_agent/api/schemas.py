"""Pydantic schemas for the WebSocket frames and HTTP endpoints."""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, Field


class InboundFrame(BaseModel):
    """A client frame: ``{"message": "<text>"}``."""

    message: str = Field(..., min_length=1, description="The user's message")


class ProgressFrame(BaseModel):
    """Informational update while a turn is running."""

    progress: str


class ResponseFrame(BaseModel):
    """Terminal success for a turn.  ``response`` may be null."""

    response: str | None


class ErrorFrame(BaseModel):
    """Terminal or turn-local failure notice."""

    error: str


OutboundFrame = Union[ProgressFrame, ResponseFrame, ErrorFrame]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "sql-agent-gateway"
