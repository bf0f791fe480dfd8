"""API route registration."""

from fastapi import FastAPI

from switchboard.api.routes.conversations import router as conversations_router
from switchboard.api.routes.health import router as health_router
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)


def register_routes(app: FastAPI) -> None:
    """Register all routes with the FastAPI application."""
    app.include_router(conversations_router, tags=["Conversations"])
    app.include_router(health_router, tags=["Health"])
    logger.debug("routes_registered")
