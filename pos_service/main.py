"""Main FastAPI application for the POS Management Service."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pos_service import __version__
from pos_service.api.routes import auth, categories, health, management, products, sales, users
from pos_service.core.database import DatabaseManager
from pos_service.core.responses import error_response
from pos_service.core.settings import Settings, get_settings
from pos_service.middleware.auth import AuthenticationMiddleware
from pos_service.middleware.logging import LoggingMiddleware, configure_logging
from pos_service.middleware.tenant import TenantResolverMiddleware
from pos_service.services.identity_service import IdentityBridge
from pos_service.services.provisioning import ProvisioningService
from pos_service.tenancy.connection_cache import TenantConnectionCache
from pos_service.tenancy.directory import TenantDirectory

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application and its long-lived collaborators.

    Everything is wired eagerly; engines connect lazily, so building the app
    does not touch any database.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    database = DatabaseManager(settings)
    directory = TenantDirectory(database.session_factory, settings.database_url)
    connection_cache = TenantConnectionCache(directory, settings)
    identity_bridge = IdentityBridge(database.session_factory, connection_cache, directory, settings)
    provisioning = ProvisioningService(
        database, directory, identity_bridge, connection_cache, settings
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        # Startup
        await database.connect()
        yield
        # Shutdown
        await connection_cache.close_all()
        await database.disconnect()

    app = FastAPI(
        title="POS Management Service",
        description="Multi-tenant point-of-sale backend with a database per shop",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.directory = directory
    app.state.connection_cache = connection_cache
    app.state.identity_bridge = identity_bridge
    app.state.provisioning = provisioning

    # Custom middleware stack (order matters!): the last one added runs
    # first, so requests pass logging, then authentication, then tenant
    # resolution, which relies on the identity set by authentication.
    app.add_middleware(
        TenantResolverMiddleware,
        directory=directory,
        connection_cache=connection_cache,
        settings=settings,
    )
    app.add_middleware(AuthenticationMiddleware, directory=directory, settings=settings)
    app.add_middleware(LoggingMiddleware, debug=settings.debug)

    # Outermost so that preflight requests never reach the auth gate
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "pos-management-service",
            "version": __version__,
            "status": "running",
            "api": {
                "prefix": settings.api_prefix,
                "docs": "/docs" if not settings.is_production else None,
            }
        }

    api_prefix = settings.api_prefix
    app.include_router(health.router, prefix=api_prefix, tags=["system"])
    app.include_router(auth.router, prefix=api_prefix)
    app.include_router(management.router, prefix=api_prefix)
    app.include_router(users.router, prefix=api_prefix)
    app.include_router(products.router, prefix=api_prefix)
    app.include_router(categories.router, prefix=api_prefix)
    app.include_router(sales.router, prefix=api_prefix)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error in the JSON:API error format."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with JSON:API format."""
        if isinstance(exc.detail, dict):
            code = exc.detail.get("code", "HTTP_ERROR")
            message = exc.detail.get("message", "HTTP Error")
        elif exc.status_code == 404:
            code, message = "RESOURCE_NOT_FOUND", "The requested resource was not found"
        else:
            code, message = "HTTP_ERROR", str(exc.detail)
        return error_response(
            exc.status_code,
            code,
            message,
            pointer=request.url.path,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with JSON:API format."""
        return JSONResponse(
            status_code=422,
            content={
                "errors": [
                    {
                        "status": "422",
                        "code": "VALIDATION_ERROR",
                        "title": "Invalid request",
                        "detail": error.get("msg", "Invalid value"),
                        "source": {"pointer": "/" + "/".join(str(loc) for loc in error.get("loc", ()))},
                    }
                    for error in exc.errors()
                ]
            }
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        """Handle unexpected errors without leaking internals."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(
            500,
            "INTERNAL_SERVER_ERROR",
            "Internal Server Error",
            detail="An unexpected error occurred",
        )


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "pos_service.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
