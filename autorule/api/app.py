"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from autorule.api.deps import shutdown_orchestrator
from autorule.api.routes import cron, logs, notifications, rules, triggers
from autorule.core.config import get_settings
from autorule.core.exceptions import (
    AutoRuleError,
    RuleInactiveError,
    RuleNotFoundError,
    UnsupportedActivationModeError,
)
from autorule.core.logging import get_logger, setup_logging
from autorule.schemas.common import ErrorResponse, ValidationErrorResponse
from autorule.storage.redis_client import close_redis_pool, init_redis_pool

logger = get_logger(__name__)

ERROR_STATUS: dict[type[AutoRuleError], int] = {
    RuleNotFoundError: 404,
    RuleInactiveError: 400,
    UnsupportedActivationModeError: 400,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    settings = get_settings()

    # Startup
    setup_logging()
    logger.info("Starting application", app_name=settings.app_name, version=settings.app_version)

    await init_redis_pool()
    logger.info("Redis connection pool initialized")

    yield

    # Shutdown
    logger.info("Shutting down application")
    await shutdown_orchestrator()
    await close_redis_pool()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Execution rule dispatch and scheduling engine",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(triggers.router, prefix="/api/v1")
    app.include_router(rules.router, prefix="/api/v1")
    app.include_router(logs.router, prefix="/api/v1")
    app.include_router(notifications.router, prefix="/api/v1")
    app.include_router(cron.router, prefix="/api/v1")

    # Error response handlers
    @app.exception_handler(AutoRuleError)
    async def domain_exception_handler(request: Request, exc: AutoRuleError) -> JSONResponse:
        status_code = ERROR_STATUS.get(type(exc), 400)
        logger.info(
            "Request rejected",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
        return JSONResponse(status_code=status_code, content=ErrorResponse(error=exc.message).model_dump())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        detail = exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=detail if isinstance(detail, str) else "HTTP error").model_dump(),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=ValidationErrorResponse(details=jsonable_encoder(exc.errors())).model_dump(),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Internal server error").model_dump(),
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "ok", "version": settings.app_version}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus exposition."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def run() -> None:
    """Console entry point serving the API with uvicorn."""
    import uvicorn

    uvicorn.run("autorule.api.app:app", host="0.0.0.0", port=8000)


# Application instance for uvicorn
app = create_app()
