"""
FastAPI application for the make2manage web service.

This is the main entry point for the web application.
Run with: uvicorn web.app:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from make2manage.engine.errors import (
    CapacityExceeded,
    EmptySchedule,
    InvalidCommand,
    InvalidSeed,
    InvalidSettings,
    OrderNotFound,
    SessionClosed,
    SimulationError,
    UndoUnavailable,
)
from make2manage.io.level_io import LevelFormatError
from make2manage.logging_conf import configure_logging
from web.config import get_settings
from web.database.session import init_db
from web.services.session_service import SessionNotFound

logger = logging.getLogger(__name__)

# Most specific class wins; handlers are resolved along the exception's MRO
ERROR_STATUS: dict[type[Exception], int] = {
    OrderNotFound: 404,
    SessionNotFound: 404,
    InvalidSettings: 422,
    InvalidSeed: 422,
    EmptySchedule: 422,
    LevelFormatError: 422,
    InvalidCommand: 409,
    CapacityExceeded: 409,
    SessionClosed: 409,
    UndoUnavailable: 409,
    SimulationError: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    config = get_settings()
    configure_logging(config.log_level)
    init_db()
    logger.info("make2manage web service started")
    yield


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.debug("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return handler


def create_app() -> FastAPI:
    """Application factory for creating the FastAPI app."""
    config = get_settings()

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Make-to-order shop floor simulation",
        debug=config.debug,
        lifespan=lifespan,
    )

    for error, status_code in ERROR_STATUS.items():
        app.add_exception_handler(error, _error_handler(status_code))

    from web.routes.sessions import router as sessions_router

    app.include_router(sessions_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {"status": "healthy", "app": config.app_name, "version": config.app_version}

    return app


# Create the application instance
app = create_app()


def main() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    config = get_settings()
    uvicorn.run("web.app:app", host=config.host, port=config.port, log_level=config.log_level.lower())
