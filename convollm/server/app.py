"""
FastAPI application.

Routes:
    GET  /ping             liveness check
    POST /chat/completion  canonical chat completion, JSON or SSE stream

The orchestrator and its collaborators are built once in the app lifespan
(or injected, for tests) and shared by every request.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from convollm import __version__
from convollm.components import Components
from convollm.config.settings import Settings, get_settings
from convollm.llm.errors import CallerInputError, OrchestrationError
from convollm.llm.orchestrator import CompletionOrchestrator
from convollm.server.auth import verify_token
from convollm.server.schemas import parse_completion_request
from convollm.server.sse import sse_frames

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def create_app(
    settings: Settings | None = None,
    orchestrator: CompletionOrchestrator | None = None,
) -> FastAPI:
    """
    Create the HTTP app.

    Args:
        settings: Application settings (global settings if None)
        orchestrator: Pre-built orchestrator; if None, one is built from
            settings at startup, along with any MCP tool server
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if orchestrator is not None:
            yield
            return

        components = Components(settings)
        async with components.create_tool_registry() as registry:
            app.state.orchestrator = components.create_orchestrator(registry)
            logger.info("Orchestrator ready")
            yield
        logger.info("Orchestrator shut down")

    app = FastAPI(
        title="convollm",
        description="Chat-completion endpoint with retrieved context and tool calling",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(OrchestrationError)
    async def orchestration_error_handler(request: Request, exc: OrchestrationError):
        if exc.status_code >= 500:
            logger.error(f"Request to {request.url.path} failed: {exc}", exc_info=exc)
        else:
            logger.info(f"Request to {request.url.path} rejected: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    @app.post("/chat/completion", dependencies=[Depends(verify_token)])
    async def chat_completion(request: Request):
        try:
            payload = await request.json()
        except ValueError as e:
            raise CallerInputError("Request body must be valid JSON") from e

        messages, context = parse_completion_request(payload, settings.server, settings.llm)
        logger.info(
            f"Completion request: app={context.app_id} channel={context.channel} "
            f"model={context.model} stream={context.stream} messages={len(messages)}"
        )

        result = await request.app.state.orchestrator.process(messages, context)
        if context.stream:
            return StreamingResponse(
                sse_frames(result),
                media_type="text/event-stream",
                headers=SSE_HEADERS,
            )
        return JSONResponse(content=result.model_dump())

    return app
