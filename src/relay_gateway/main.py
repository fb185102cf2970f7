"""Main entry point for the HTTP Relay Gateway application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from relay_gateway import __version__
from relay_gateway.api.routes import router
from relay_gateway.core.config import Settings, settings as default_settings
from relay_gateway.core.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan management
    Handles startup and shutdown procedures
    """
    settings: Settings = app.state.settings
    logger.info("Starting HTTP Relay Gateway...")
    logger.info(
        "Gateway configuration",
        extra={
            "host": settings.HOST,
            "port": settings.PORT,
            "debug": settings.DEBUG,
            "log_level": settings.LOG_LEVEL,
            "auth_enabled": settings.auth_enabled,
            "forward_timeout": settings.FORWARD_TIMEOUT,
            "follow_redirects": settings.FOLLOW_REDIRECTS,
        }
    )
    if not settings.auth_enabled:
        logger.warning("PROXY_API_KEY is not set - relay endpoints run in open mode")

    yield

    logger.info("Shutting down HTTP Relay Gateway...")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Custom validation error handler"""
    logger.warning(
        "Request validation failed",
        extra={
            "url": str(request.url),
            "method": request.method,
            "errors": exc.errors()
        }
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Request validation failed",
            "details": exc.errors(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """General exception handler for unhandled errors"""
    logger.error(
        "Unhandled exception",
        extra={
            "url": str(request.url),
            "method": request.method,
            "error": str(exc)
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error occurred",
            "details": str(exc) or type(exc).__name__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings
    setup_logging(settings)

    app = FastAPI(
        title="HTTP Relay Gateway",
        description="Authenticated HTTP forwarding gateway with SSRF protection",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "health",
                "description": "Health check and system status"
            },
            {
                "name": "proxy",
                "description": "Request relaying to public HTTP targets"
            },
            {
                "name": "diagnostics",
                "description": "Network diagnostics for target URLs"
            }
        ]
    )
    app.state.settings = settings

    # Add security middleware
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.allowed_hosts
    )

    # Add custom exception handlers
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include API routes
    app.include_router(router, prefix="/api")

    # Root endpoint
    @app.get("/", tags=["health"])
    async def root():
        """Root endpoint with gateway information and available endpoints"""
        return {
            "service": "HTTP Relay Gateway",
            "version": __version__,
            "auth": "required" if settings.auth_enabled else "disabled",
            "endpoints": {
                "direct_relay": "/api/proxy?url=<target>",
                "get_encoded_relay": "/api/get_proxy?url=<target>&method=<method>&headers=<json>&body=<body>",
                "health": "/api/health",
                "diagnose": "/api/diagnose?url=<target>",
                "docs": "/docs"
            }
        }

    return app


app = create_app()


def main():
    """Run the HTTP Relay Gateway server."""
    uvicorn.run(
        "relay_gateway.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level=default_settings.LOG_LEVEL.lower(),
        reload=default_settings.DEBUG
    )


if __name__ == "__main__":
    main()
