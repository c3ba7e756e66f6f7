"""Persona listing and chronicle (saved scene) endpoints."""

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from chronicle_server.api.models import (
    ChronicleListResponse,
    ChronicleSummaryModel,
    PersonaListResponse,
    PersonaModel,
)
from chronicle_server.chronicle import chronicle_filename, render_chronicle
from chronicle_server.game.errors import UnknownPersona
from chronicle_server.game.resolver import TurnResolver


def router(resolver: TurnResolver) -> APIRouter:
    """Build the personas/chronicles router."""
    api = APIRouter()

    @api.get("/personas", response_model=PersonaListResponse)
    async def list_personas():
        """Director personas selectable for a new scene."""
        return PersonaListResponse(
            personas=[
                PersonaModel(persona_id=p.persona_id, name=p.name, voice=p.voice)
                for p in resolver.personas.directors()
            ]
        )

    @api.get("/chronicles", response_model=ChronicleListResponse)
    async def list_chronicles():
        """Saved scenes, most recently updated first."""
        summaries = await resolver.list_scenes()
        return ChronicleListResponse(
            chronicles=[
                ChronicleSummaryModel(
                    scene_id=s.scene_id,
                    mode=s.mode,
                    persona_id=s.persona_id,
                    player_name=s.player_name,
                    opponent_name=s.opponent_name,
                    round=s.round,
                    game_over=s.game_over,
                    created_at=s.created_at,
                    updated_at=s.updated_at,
                )
                for s in summaries
            ]
        )

    @api.get("/chronicles/{scene_id}/export", response_class=HTMLResponse)
    async def export_chronicle(scene_id: str):
        """Download the scene's history as a standalone HTML page."""
        scene = await resolver.get_scene(scene_id)
        try:
            director_name = resolver.personas.get(scene.persona_id).name
        except UnknownPersona:
            # The persona file may have been removed since the scene was played.
            director_name = "Unknown Director"
        return HTMLResponse(
            content=render_chronicle(scene, director_name=director_name),
            headers={"Content-Disposition": f'attachment; filename="{chronicle_filename(scene)}"'},
        )

    return api
