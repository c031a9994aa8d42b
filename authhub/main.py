"""Main FastAPI application entry point."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from authhub.api.v1.endpoints.audit.routes import router as audit_router
from authhub.api.v1.endpoints.auth.routes import router as auth_router
from authhub.api.v1.endpoints.health.routes import router as health_router
from authhub.core.auth.exceptions import (
    AuthError,
    AuthErrorCode,
    CryptoFailure,
    UserNotFoundException,
)
from authhub.core.exceptions import DomainException
from authhub.core.services.configuration_service import ConfigurationService
from authhub.infrastructure.cache.redis_client import close_redis_connection, get_redis_client
from authhub.infrastructure.database.connection import DatabaseManager
from authhub.infrastructure.database.session import close_db_connections
from authhub.settings import Settings, get_settings
from authhub.utils.logging import setup_logging

logger = logging.getLogger("authhub")

AUTH_ERROR_STATUS = {
    AuthErrorCode.FEDERATION_FAILED: status.HTTP_400_BAD_REQUEST,
    AuthErrorCode.INVALID_REFRESH_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.INVALID_ACCESS_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.ISSUANCE_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events."""
    settings = get_settings()
    setup_logging(settings)
    logger.info("Starting AuthHub...")

    try:
        ConfigurationService(settings).ensure_valid()

        db_manager = DatabaseManager(settings)
        await db_manager.initialize()
        await db_manager.create_all()
        await db_manager.close()
        logger.info("Database tables created")

        if settings.oauth_state_check_enabled:
            redis_client = get_redis_client()
            await redis_client.connect()
            if await redis_client.ping():
                logger.info("Redis connection established")
            else:
                logger.warning("Redis ping failed, OAuth logins will be rejected until it recovers")

        logger.info("AuthHub started successfully")
    except Exception:
        logger.exception("Startup failed")
        raise

    yield

    logger.info("Shutting down AuthHub...")
    await close_redis_connection()
    await close_db_connections()


def create_app(
    settings: Optional[Settings] = None,
    lifespan_handler: Callable = lifespan,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings to build the app from (defaults to cached settings)
        lifespan_handler: Startup and shutdown handler

    Returns:
        Configured application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan_handler,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, prefix="/api/v1")
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(audit_router, prefix="/api/v1")

    register_exception_handlers(app)

    register_middleware(app)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        """Map the closed authentication error taxonomy to HTTP statuses."""
        status_code = AUTH_ERROR_STATUS[exc.code]
        headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message, "type": exc.code.value, "retryable": exc.retryable},
            headers=headers,
        )

    @app.exception_handler(CryptoFailure)
    async def crypto_failure_handler(request: Request, exc: CryptoFailure):
        logger.critical(f"Cryptographic failure: {exc.operation}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "type": "InternalError"},
        )

    @app.exception_handler(UserNotFoundException)
    async def user_not_found_handler(request: Request, exc: UserNotFoundException):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": exc.message, "type": "UserNotFound"},
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        """Handle custom domain exceptions."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": exc.message, "type": exc.__class__.__name__},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "type": "HTTPException"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "type": "InternalError"},
        )


def register_middleware(app: FastAPI) -> None:
    """Register custom middleware."""

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log all HTTP requests."""
        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        logger.info(f"Request started: {request.method} {request.url.path} from {client_ip}")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} time={process_time:.3f}s"
        )

        return response

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        """Add security headers to responses."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        return response


app = create_app()


@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint."""
    settings = get_settings()
    return {
        "message": settings.api_title,
        "version": settings.api_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "authhub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
