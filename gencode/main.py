"""
FastAPI application for gen-code.

Accepts project generation requests, runs them in the background and streams
their progress to observers over Server-Sent Events.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from gencode.api.v1 import router as api_v1_router
from gencode.config import Settings, configure_structlog, settings
from gencode.services import Services, build_services

configure_structlog()
logger = structlog.get_logger(__name__)


def create_app(
    app_settings: Settings | None = None, services: Services | None = None
) -> FastAPI:
    """
    Build the application.

    Args:
        app_settings: Settings to use, the module-level settings by default
        services: Pre-built services; built from settings at startup if None
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan event handler for startup and shutdown."""
        app.state.services = services or build_services(app_settings)
        await app.state.services.start()
        logger.info(
            "gen-code starting up",
            version=app_settings.api_version,
            host=app_settings.server_host,
            port=app_settings.server_port,
            models=app.state.services.models,
        )

        yield

        logger.info("gen-code shutting down")
        await app.state.services.stop()

    app = FastAPI(
        title=app_settings.api_title,
        description="Generate projects from a prompt, push them to GitHub and "
        "follow progress live over Server-Sent Events.",
        version=app_settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(CORSMiddleware, **app_settings.get_cors_config())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
            for error in errors
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": message or "invalid request"},
        )

    app.include_router(api_v1_router)

    @app.get("/", tags=["Root"])
    async def root():
        """Basic service information; use `/health` for health checks."""
        return {
            "service": app_settings.api_title,
            "version": app_settings.api_version,
            "status": "operational",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "gencode.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,  # Use our structured logging
    )


if __name__ == "__main__":
    run()
