"""Main FastAPI application."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings as default_settings
from .core.container import ApplicationContainer, build_container
from .core.exceptions import BaseAPIException
from .core.logging import configure_logging
from .api.middleware import (
    ClientIdentityMiddleware,
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    api_error_response,
)
from .api.routes import admin, auth, messages, notices, opportunities, pages


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ApplicationContainer] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    A prebuilt ``container`` replaces the one normally wired from settings
    at startup.
    """
    settings = settings or (container.settings if container else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        # Startup
        configure_logging(settings.monitoring.log_level)
        if getattr(app.state, "container", None) is None:
            app.state.container = build_container(settings)
        await app.state.container.startup()
        yield
        # Shutdown
        await app.state.container.shutdown()

    app = FastAPI(
        title=settings.api.title,
        description=settings.api.description,
        version=settings.api.version,
        lifespan=lifespan
    )
    app.state.container = container

    @app.exception_handler(BaseAPIException)
    async def handle_api_exception(request: Request, exc: BaseAPIException):
        return api_error_response(exc)

    # Add middleware
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ClientIdentityMiddleware, cookie_name=settings.session.cookie_name)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")
    app.include_router(opportunities.router, prefix="/api/v1")
    app.include_router(messages.router, prefix="/api/v1")
    app.include_router(notices.router, prefix="/api/v1")
    app.include_router(pages.router)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "message": "Kájọpọ̀ Connect API",
            "version": settings.api.version,
            "status": "healthy"
        }

    # Health check endpoint
    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "kajopo.main:app",
        host=default_settings.api.host,
        port=default_settings.api.port,
        reload=default_settings.api.reload,
        workers=default_settings.api.workers if not default_settings.api.reload else 1,
    )
