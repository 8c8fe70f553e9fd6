"""FastAPI application.

Run with::

    uvicorn ai_orchestrator.api.app:app --reload
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ai_orchestrator.api.dependencies import (
    AdminHandlerDep,
    AnalysisHandlerDep,
    Services,
    build_services,
    sweep_cache_periodically,
)
from ai_orchestrator.config import settings
from ai_orchestrator.dto import (
    AdminCacheRequest,
    AdminCacheResponse,
    AnalyzeEnvelope,
    AnalyzeRequest,
    HealthCheckResponse,
    StatsResponse,
)
from ai_orchestrator.entities import AIResponse, ErrorCode, ResponseMetadata
from ai_orchestrator.handlers import client_identity, envelope_response
from ai_orchestrator.logger import get_logger, setup_logging

API_VERSION = "0.1.0"

logger = get_logger(__name__)


def create_app(services: Services | None = None, sweep_interval: float | None = None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        services: Pre-wired services (tests inject fakes). Built from
            settings at startup when omitted.
        sweep_interval: Seconds between background cache purges.
            Defaults to settings.cache_sweep_interval.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize services, start the cache sweeper, clean up on shutdown."""
        setup_logging(settings.log_level)
        app.state.services = services or build_services()

        sweeper = asyncio.create_task(
            sweep_cache_periodically(
                app.state.services.cache_service,
                sweep_interval or settings.cache_sweep_interval,
            )
        )
        logger.info("AI orchestrator started", extra={"providers": app.state.services.providers.names()})

        yield

        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await app.state.services.providers.close_all()
        del app.state.services
        logger.info("AI orchestrator shut down")

    app = FastAPI(
        title="AI Orchestrator API",
        description="Cached, rate-limited and policy-checked access to vision LLM providers",
        version=API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Answer malformed /analyze bodies with an INVALID_REQUEST envelope."""
        if request.url.path != "/analyze":
            return await request_validation_exception_handler(request, exc)
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else "Invalid request body"
        response = AIResponse.failure(
            code=ErrorCode.INVALID_REQUEST,
            message=message,
            metadata=ResponseMetadata(provider="unknown", model="unknown", latency_ms=0),
        )
        return envelope_response(response)

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "AI Orchestrator API",
            "version": API_VERSION,
            "endpoints": {
                "analyze": "/analyze",
                "admin": "/admin/cache",
                "stats": "/stats",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: AdminHandlerDep):
        """Health check endpoint. 503 when a backing store is unreachable."""
        body, healthy = await handler.health_check()
        return JSONResponse(
            content=body.model_dump(by_alias=True),
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    @app.post("/analyze", response_model=AnalyzeEnvelope)
    async def analyze(body: AnalyzeRequest, request: Request, handler: AnalysisHandlerDep):
        """Run an analysis request through cache, rate limits, provider and policy."""
        peer = request.client.host if request.client else None
        return await handler.analyze(body, client_identity(request.headers, fallback_ip=peer))

    @app.post("/admin/cache", response_model=AdminCacheResponse, response_model_by_alias=True)
    async def admin_cache(
        body: AdminCacheRequest,
        handler: AdminHandlerDep,
        authorization: str | None = Header(None),
    ) -> AdminCacheResponse:
        """Flush, invalidate or purge cache entries. Requires the admin bearer token."""
        return await handler.manage_cache(body, authorization)

    @app.get("/stats", response_model=StatsResponse, response_model_by_alias=True)
    async def stats(handler: AdminHandlerDep) -> StatsResponse:
        """Cache entry counts and usage summary."""
        return await handler.get_stats()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ai_orchestrator.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
