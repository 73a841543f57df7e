# src/tallyrank/main.py
"""Main entry point for the Tallyrank application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from tallyrank.api.v1 import rankings_router, votes_router
from tallyrank.core.errors import CooldownError, InvalidDirectionError, TallyrankError
from tallyrank.core.settings import settings
from tallyrank.schemas.common import ErrorResponse
from tallyrank.services.ranking_refresh import RankingRefreshWorker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Tallyrank API",
    description="Community product voting and ranking API",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(votes_router, prefix="/api/v1")
app.include_router(rankings_router, prefix="/api/v1")


@app.exception_handler(TallyrankError)
async def handle_engine_error(request: Request, exc: TallyrankError) -> JSONResponse:
    """Translate engine errors into structured JSON responses."""
    body = ErrorResponse(detail=str(exc), code=exc.code)
    headers: dict[str, str] = {}
    if isinstance(exc, CooldownError):
        body.retry_after_ms = exc.remaining_ms
        headers["Retry-After"] = str(exc.retry_after_seconds)
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report a bad vote direction as an engine error; defer anything else."""
    for error in exc.errors():
        loc = error.get("loc") or ()
        if loc and loc[-1] == "direction":
            return await handle_engine_error(request, InvalidDirectionError(error.get("input")))
    return await request_validation_exception_handler(request, exc)


@app.on_event("startup")
async def on_startup() -> None:
    if settings.ranking_refresh_enabled:
        worker = RankingRefreshWorker()
        await worker.start()
        app.state.ranking_worker = worker
    else:
        app.state.ranking_worker = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: RankingRefreshWorker | None = getattr(app.state, "ranking_worker", None)
    if worker:
        await worker.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Tallyrank API",
        "version": settings.app_version,
        "description": "Community product voting and ranking API",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run("tallyrank.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
