"""Scene endpoints: start a scene, submit turns, read state.

Handlers only translate between HTTP and the resolver.  Typed resolver
errors propagate to the exception handler registered in
:mod:`chronicle_server.api.server`.
"""

import base64
import binascii

from fastapi import APIRouter, HTTPException

from chronicle_server.api.models import (
    SceneStateResponse,
    StartSessionRequest,
    TurnRequest,
    TurnResponse,
    VoiceTurnRequest,
    scene_state_from_scene,
    turn_response_from_result,
)
from chronicle_server.game.resolver import TurnResolver


def router(resolver: TurnResolver) -> APIRouter:
    """Build the sessions router with access to the turn resolver."""
    api = APIRouter(prefix="/sessions")

    @api.post("", response_model=TurnResponse)
    async def start_session(request: StartSessionRequest):
        """
        Start a scene and return its opening narration.

        A request with ``opponent_name`` starts a competitive duel; without
        one it starts a sandbox scene.
        """
        result = await resolver.start_session(**request.model_dump())
        return turn_response_from_result(result)

    @api.post("/{scene_id}/turn", response_model=TurnResponse)
    async def submit_turn(scene_id: str, request: TurnRequest):
        """Resolve one turn of player (and optional opponent) actions."""
        result = await resolver.resolve_turn(scene_id, request.player_actions, request.opponent_actions)
        return turn_response_from_result(result)

    @api.post("/{scene_id}/turn/voice", response_model=TurnResponse)
    async def submit_voice_turn(scene_id: str, request: VoiceTurnRequest):
        """Transcribe a base64 recording and resolve it as the player's action."""
        try:
            audio = base64.b64decode(request.audio_base64, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=422, detail="audio_base64 is not valid base64") from None

        result = await resolver.resolve_voice_turn(
            scene_id,
            audio,
            filename=request.filename,
            opponent_actions=request.opponent_actions,
        )
        return turn_response_from_result(result)

    @api.get("/{scene_id}", response_model=SceneStateResponse)
    async def get_scene(scene_id: str):
        """Return the committed state of a scene."""
        return scene_state_from_scene(await resolver.get_scene(scene_id))

    return api
