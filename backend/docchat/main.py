"""FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.docchat.api.routes.documents import router as documents_router
from backend.docchat.api.routes.health import router as health_router
from backend.docchat.api.routes.messages import router as messages_router
from backend.docchat.api.routes.metrics import router as metrics_router
from backend.docchat.api.routes.uploads import router as uploads_router
from backend.docchat.config import Settings, get_settings
from backend.docchat.db.engine import create_all
from backend.docchat.dependencies import Services, build_services

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to build services from (defaults to environment)
        services: Prebuilt services, used as-is (tests inject these)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        built = services or build_services(settings or get_settings())
        # SQLite dev databases are created on the fly; other backends use migrations
        if built.engine is not None and built.engine.dialect.name == "sqlite":
            await create_all(built.engine)
        app.state.services = built
        logger.info("Document chat services started")
        try:
            yield
        finally:
            await built.aclose()
            logger.info("Document chat services stopped")

    app = FastAPI(title="Document Chat API", version="0.1.0", lifespan=lifespan)

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(uploads_router, tags=["uploads"])
    app.include_router(documents_router, tags=["documents"])
    app.include_router(messages_router, tags=["messages"])

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Document Chat API", "version": "0.1.0"}

    return app


app = create_app()
