"""
FastAPI application entry point for the portfolio backend.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from portfolio_backend.config import get_settings
from portfolio_backend.dependencies import get_analytics_service, get_token_verifier
from portfolio_backend.routers import ROUTERS
from portfolio_backend.routers.analytics import request_context

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.firebase_configured and not settings.use_in_memory_backends:
        # Builds the verifier now so the clock skew is measured once, up front.
        get_token_verifier()
    yield
    try:
        get_analytics_service().save()
    except Exception:
        logger.exception("Saving analytics on shutdown failed")


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    app = FastAPI(title="Portfolio Backend", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_root = f"{settings.api_prefix}/"

    @app.middleware("http")
    async def track_api_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith(api_root):
            await run_in_threadpool(
                get_analytics_service().track_event,
                "api_request",
                {
                    "method": request.method,
                    "path": request.url.path,
                    "statusCode": response.status_code,
                    "durationMs": round((time.perf_counter() - started) * 1000, 1),
                },
                request_context(request),
            )
        return response

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        try:
            await run_in_threadpool(
                get_analytics_service().track_event,
                "server_error",
                {"path": request.url.path, "method": request.method, "error": str(exc)},
                request_context(request),
            )
        except Exception:
            logger.exception("Tracking server error failed")
        detail = "Internal server error" if settings.is_production else str(exc)
        return JSONResponse(status_code=500, content={"detail": detail})

    for router in ROUTERS:
        app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
