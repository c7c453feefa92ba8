"""FastAPI application exposing the MCP dispatcher over HTTP."""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from fastapi import Depends, FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from opencontext.api.dependencies import AppDependencies, build_dependencies
from opencontext.api.dispatcher import McpDispatcher
from opencontext.api.schemas import PARSE_ERROR, SERVER_NAME
from opencontext.config import Settings, get_settings
from opencontext.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger


def _sse_event(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="open-context", version=deps.dispatcher.server_version)
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_dispatcher(dep: AppDependencies = Depends(get_dependencies)) -> McpDispatcher:
        return dep.dispatcher

    async def _dispatch(request: Request, dispatcher: McpDispatcher) -> dict[str, Any] | None:
        body = await request.body()
        # dispatch may block on upstream sources
        return await run_in_threadpool(dispatcher.handle_raw, body)

    @app.post("/message")
    async def message(request: Request, dispatcher: McpDispatcher = Depends(get_dispatcher)) -> Response:
        response = await _dispatch(request, dispatcher)
        if response is None:
            return Response(status_code=status.HTTP_202_ACCEPTED)
        error = response.get("error")
        code = status.HTTP_400_BAD_REQUEST if error and error.get("code") == PARSE_ERROR else status.HTTP_200_OK
        return JSONResponse(status_code=code, content=response)

    @app.post("/sse")
    async def message_stream(request: Request, dispatcher: McpDispatcher = Depends(get_dispatcher)) -> Response:
        client_id = uuid4().hex
        response = await _dispatch(request, dispatcher)
        logger.info("sse.message", client_id=client_id, answered=response is not None)

        def iter_sse():
            yield _sse_event("connected", {"clientId": client_id})
            if response is not None:
                yield _sse_event("message", response)

        return Response(
            "".join(iter_sse()),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def healthcheck() -> dict[str, str]:
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": deps.dispatcher.server_version,
            "environment": settings.environment,
        }

    @app.head("/health")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return app


__all__ = ["create_app"]
