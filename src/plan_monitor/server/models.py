"""Pydantic models for the chat job API."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class StartChatRequest(BaseModel):
    """Request to start a chat job."""

    query: str = Field(min_length=1)
    domain: str = "general"
    solution: Optional[str] = None


class StartChatResponse(BaseModel):
    """Response after a chat job was created."""

    id: str
    timestamp: str
    message: str = "Chat processing started"


class ChatStatusResponse(BaseModel):
    """Status payload of a chat job."""

    status: str
    plan: Optional[dict[str, Any]] = None
    result: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
