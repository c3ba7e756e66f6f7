"""API route registration."""

from fastapi import FastAPI

from chronicle_server.api.routes import chronicles, health, sessions
from chronicle_server.game.resolver import TurnResolver


def register_routes(app: FastAPI, resolver: TurnResolver) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router(resolver))
    app.include_router(sessions.router(resolver))
    app.include_router(chronicles.router(resolver))
