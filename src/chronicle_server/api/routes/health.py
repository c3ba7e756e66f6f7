"""Health and root endpoints.

Provides the root ``/`` endpoint (API identity and version) and the
``/health`` endpoint (liveness check with the loaded persona count).
"""

from fastapi import APIRouter

from chronicle_server import __version__
from chronicle_server.game.resolver import TurnResolver


def router(resolver: TurnResolver) -> APIRouter:
    """Build the health router."""
    api = APIRouter()

    @api.get("/")
    async def root():
        """Root endpoint showing API identity and current version."""
        return {"message": "Chronicle Server API", "version": __version__}

    @api.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "personas": len(resolver.personas)}

    return api
