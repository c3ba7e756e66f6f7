"""
FastAPI backend server for the chronicle game.

This module builds the FastAPI application that exposes the turn resolver
over HTTP.  It sets up:
- CORS middleware for browser clients served from other origins
- The turn resolver (oracle, media, store, personas wired from config)
- All API routes
- One exception handler mapping the typed error hierarchy to HTTP status

Error mapping
-------------
=====================  ======
BudgetExceeded         422
UnknownPersona         422
SessionNotFound        404
GameAlreadyOver        409
OracleFailure          502   (includes OracleMalformed)
TranscriptionFailure   502
PersistenceFailure     500
=====================  ======
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chronicle_server import __version__
from chronicle_server.api.models import ErrorResponse
from chronicle_server.api.routes import register_routes
from chronicle_server.game.errors import (
    BudgetExceeded,
    ChronicleError,
    GameAlreadyOver,
    OracleFailure,
    PersistenceFailure,
    SessionNotFound,
    TranscriptionFailure,
    UnknownPersona,
)
from chronicle_server.game.resolver import TurnResolver

logger = logging.getLogger(__name__)

# Most specific first: OracleMalformed is matched through OracleFailure.
_STATUS_BY_ERROR: tuple[tuple[type[ChronicleError], int], ...] = (
    (BudgetExceeded, 422),
    (UnknownPersona, 422),
    (SessionNotFound, 404),
    (GameAlreadyOver, 409),
    (OracleFailure, 502),
    (TranscriptionFailure, 502),
    (PersistenceFailure, 500),
)


def status_for(exc: ChronicleError) -> int:
    """HTTP status code for a typed error; unknown subclasses are 500."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def _error_extra(exc: ChronicleError) -> dict:
    if isinstance(exc, BudgetExceeded):
        return {"side": exc.side, "cost": exc.cost, "budget": exc.budget, "costs": exc.costs}
    if isinstance(exc, (SessionNotFound, GameAlreadyOver)):
        return {"scene_id": exc.scene_id}
    if isinstance(exc, UnknownPersona):
        return {"persona_id": exc.persona_id}
    return {}


async def chronicle_error_handler(request: Request, exc: ChronicleError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    body = ErrorResponse(error=type(exc).__name__, detail=str(exc), extra=_error_extra(exc))
    return JSONResponse(status_code=status, content=body.model_dump())


# ============================================================================
# APPLICATION FACTORY
# ============================================================================


def create_app(resolver: TurnResolver | None = None, cfg=None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        resolver: Pre-built resolver (tests inject one with mocked
            collaborators); built from ``cfg`` when omitted.
        cfg: Server configuration; the runtime ``config`` when omitted.
    """
    if cfg is None:
        from chronicle_server.config import config as cfg

    docs = cfg.docs_should_be_enabled
    app = FastAPI(
        title="Chronicle Server",
        version=__version__,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ChronicleError, chronicle_error_handler)

    if resolver is None:
        resolver = TurnResolver.from_config(cfg)
    app.state.resolver = resolver
    register_routes(app, resolver)
    return app


# ============================================================================
# SERVER STARTUP
# ============================================================================


def start_server(host: str | None = None, port: int | None = None) -> None:
    """Configure logging, build the app, and run it under uvicorn."""
    import uvicorn

    from chronicle_server.config import config, configure_logging

    configure_logging(config.logging)
    app = create_app(cfg=config)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.logging.level.lower(),
    )
