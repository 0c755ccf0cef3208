"""Main FastAPI application entry point.

This module handles the core application setup:
- FastAPI application initialization
- Middleware for CORS, correlation ids and request logging
- Translation of application errors into the response envelope
- Database startup and shutdown
- Route registration and the health check
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from campus_cms.api.responses import failure, success
from campus_cms.api.v1.router import api_router
from campus_cms.core.config import get_settings
from campus_cms.core.exceptions import AppException, ConflictError
from campus_cms.core.logging import (
    CorrelationMiddleware,
    RequestLoggingMiddleware,
    get_logger,
    setup_logging
)
from campus_cms.database.session import SessionManager, get_session_manager, init_db

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup and release the connection pool on shutdown."""
    setup_logging()
    manager = get_session_manager()
    logger.info("Starting up application", environment=settings.ENVIRONMENT.value)
    try:
        await init_db(manager)
        yield
    except Exception as e:
        logger.error("Startup failed", error=e)
        raise
    finally:
        await manager.dispose()
        logger.info("Shutdown completed")


def _field_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(location) or None, "message": error.get("msg")})
    return errors


def create_application() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Content management API for an institutional website",
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url=f"{settings.API_PREFIX}/docs" if not settings.PROD else None,
        redoc_url=f"{settings.API_PREFIX}/redoc" if not settings.PROD else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationMiddleware)

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """Handle custom application exceptions"""
        return JSONResponse(
            status_code=exc.status_code,
            content=failure(exc.detail, error=exc.error, errors=exc.errors)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report malformed input as a 400 with one entry per field"""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=failure("Validation failed", errors=_field_errors(exc))
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        """A unique key taken between the pre-check and the commit"""
        logger.warning("Integrity error", path=request.url.path, method=request.method, detail=str(exc.orig))
        conflict = ConflictError()
        return JSONResponse(status_code=conflict.status_code, content=failure(conflict.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            error=exc,
            path=request.url.path,
            method=request.method
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=failure(
                "Internal server error",
                error=None if settings.PROD else str(exc)
            )
        )

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/health", tags=["health"])
    async def health_check(manager: SessionManager = Depends(get_session_manager)):
        """Health check endpoint for monitoring systems."""
        healthy = await manager.healthcheck()
        data = {"database": "connected" if healthy else "unavailable", "version": app.version}
        if not settings.PROD:
            data["queries"] = manager.metrics.snapshot()
        body = success("Service is healthy" if healthy else "Service is unhealthy", data)
        if not healthy:
            body["success"] = False
            return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
        return body

    return app


app = create_application()

if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run(
        "campus_cms.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.PROD,
        log_level="debug" if settings.DEBUG else "info"
    )
