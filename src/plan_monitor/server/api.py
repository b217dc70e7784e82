"""FastAPI app that serves the mock chat backend over HTTP."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from ..client.mock import MockJobBackend
from ..errors import UnknownJobError
from .models import ChatStatusResponse, StartChatRequest, StartChatResponse


def create_app(
    backend: Optional[MockJobBackend] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the mock backend application.

    Args:
        backend: Backend holding session state; a fresh one by default.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Plan Monitor Mock Backend",
        description="Simulated chat job API for exercising plan-monitor",
        version="0.1.0",
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.backend = backend or MockJobBackend()

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Plan Monitor Mock Backend",
            "version": "0.1.0",
            "status": "running",
            "sessions": app.state.backend.session_count,
        }

    @app.post("/ui/chat", response_model=StartChatResponse)
    async def start_chat(request: StartChatRequest) -> StartChatResponse:
        job_id = app.state.backend.start_job(request.query, request.domain, request.solution)
        logger.info("Mock chat {} started (domain={})", job_id, request.domain)
        return StartChatResponse(
            id=job_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/ui/chat/{job_id}", response_model=ChatStatusResponse)
    async def chat_status(job_id: str) -> ChatStatusResponse:
        try:
            payload = app.state.backend.job_status(job_id)
        except UnknownJobError:
            raise HTTPException(status_code=404, detail=f"Chat session {job_id} not found")
        return ChatStatusResponse(**payload)

    return app
