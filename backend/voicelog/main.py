"""FastAPI entrypoint for the voicelog backend."""

from __future__ import annotations

import logging
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

# Load environment variables from .env file
load_dotenv(Path(__file__).parent.parent / ".env")

from .config import get_settings
from .constants import AUDIO_URL_PREFIX, INTERNAL_SERVER_ERROR, VALIDATION_ERROR
from .database import init_db
from .errors import AppError
from .responses import error_envelope
from .routers import meetings_router
from .services.meetings_service import get_meetings_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Voicelog API",
    description="Voice-recorded meeting reports validated against a fixed template and indexed by date",
    version="1.0.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(meetings_router)

# Uploaded recordings; the directory is created on startup
app.mount(
    AUDIO_URL_PREFIX,
    StaticFiles(directory=get_settings().upload_dir, check_dir=False),
    name="audio",
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}", exc_info=exc.__cause__)
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_envelope(
            {"code": VALIDATION_ERROR, "message": "Invalid request", "details": details}
        ),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope({"code": INTERNAL_SERVER_ERROR, "message": "Internal server error"}),
    )


@app.on_event("startup")
async def startup_event() -> None:
    """Initialize database and start the background sync worker."""
    logger.info("Starting Voicelog API...")
    await init_db()
    logger.info("Database initialized")
    get_settings().upload_dir.mkdir(parents=True, exist_ok=True)
    await get_meetings_service().sync_worker.start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Stop the sync worker and close the sheet client."""
    service = get_meetings_service()
    await service.sync_worker.stop()
    await service.sync_coordinator.sink.aclose()
    logger.info("Voicelog API stopped")


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "name": "Voicelog API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


def run() -> None:
    """Serve the API with uvicorn (the ``voicelog`` console script)."""
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
