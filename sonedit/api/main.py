"""
Main FastAPI application for the sonedit audio editor.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sonedit.api.deps import reset_engine
from sonedit.api.routes import edit, effects, health, tracks
from sonedit.audio.export import supported_formats
from sonedit.core.config import settings
from sonedit.core.exceptions import SonEditError
from sonedit.core.logging import get_logger

logger = get_logger(__name__)

NOT_FOUND_CODES = {"TRACK_NOT_FOUND", "EFFECT_NOT_FOUND"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        env=settings.env
    )

    yield

    logger.info("application_shutting_down")
    reset_engine()


app = FastAPI(
    title="sonedit API",
    description="Sample-buffer audio editing: tracks, effects, undo/redo and export",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SonEditError)
async def sonedit_error_handler(request, exc: SonEditError) -> JSONResponse:
    """Handle editor errors; unknown ids map to 404, everything else to 400."""
    status_code = 404 if exc.code in NOT_FOUND_CODES else 400
    logger.warning(
        "sonedit_error",
        error_code=exc.code,
        message=exc.message,
        path=request.url.path
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message
            }
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors."""
    logger.exception(
        "unexpected_error",
        error_type=type(exc).__name__,
        path=request.url.path
    )

    if settings.is_development:
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": str(exc),
                    "type": type(exc).__name__
                }
            }
        )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(effects.router, prefix="/api/v1", tags=["effects"])
app.include_router(tracks.router, prefix="/api/v1", tags=["tracks"])
app.include_router(edit.router, prefix="/api/v1", tags=["edit"])


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "environment": settings.env,
        "docs": "/docs",
        "api": {
            "health": "/api/v1/health",
            "effects": "/api/v1/effects",
            "tracks": "/api/v1/tracks",
            "selection": "/api/v1/selection",
            "edit": "/api/v1/edit",
            "history": "/api/v1/history",
        },
        "audio": {
            "sample_rate": settings.sample_rate,
            "export_formats": supported_formats(),
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sonedit.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
