from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """Single conversation turn as sent by the chat widget."""
    role: Literal["user", "assistant", "system"]
    content: str = ""


class ChatRequest(BaseModel):
    """Request payload for chat API."""
    messages: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    reply: str


class ErrorResponse(BaseModel):
    """Generic failure payload; details stay in the server log."""
    error: str


class HealthResponse(BaseModel):
    """Liveness payload with the active model and vocabulary size."""
    status: str
    model: str
    tags_loaded: int
