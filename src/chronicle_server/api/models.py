"""
Pydantic models for API requests and responses.

Request models validate caller input before it reaches the resolver;
response models define the JSON shape of every endpoint and feed FastAPI's
OpenAPI schema.

Models are organized into two categories:
1. Request models: Data sent FROM the client TO the server
2. Response models: Data sent FROM the server TO the client

The ``*_from_*`` helpers at the bottom convert resolver objects into
response models so route handlers stay one-liners.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# REQUEST MODELS (Client → Server)
# ============================================================================


def _action_list(value: Any) -> Any:
    """Accept a single action string or a list; drop blank entries."""
    if value is None:
        return value
    if isinstance(value, str):
        value = [value]
    if isinstance(value, list):
        return [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return value


class StartSessionRequest(BaseModel):
    """
    Start a new scene.

    Attributes:
        player_name: Name of participant A
        setting: Free-text game setting
        player_opening: Player's opening move or composition
        opponent_name: Name of participant B; omit for a sandbox scene
        opponent_opening: Opponent's opening move (competitive only)
        persona_id: Director persona; the configured default when omitted
        art_style, player_visuals, opponent_visuals: Visual anchors for imagery
        director_may_initiate_combat: Override the configured combat policy
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    player_name: str = Field(min_length=1, max_length=80)
    setting: str = ""
    player_opening: str = ""
    opponent_name: str | None = Field(default=None, max_length=80)
    opponent_opening: str = ""
    persona_id: str | None = None
    art_style: str = ""
    player_visuals: str = ""
    opponent_visuals: str = ""
    director_may_initiate_combat: bool | None = None


class TurnRequest(BaseModel):
    """
    Submit one turn.

    Attributes:
        player_actions: One action string or a list of actions
        opponent_actions: Opponent actions for combat scenes; the autonomous
            opponent decides when omitted
    """

    player_actions: list[str] = Field(min_length=1)
    opponent_actions: list[str] | None = None

    @field_validator("player_actions", "opponent_actions", mode="before")
    @classmethod
    def normalise_actions(cls, value: Any) -> Any:
        return _action_list(value)


class VoiceTurnRequest(BaseModel):
    """
    Submit a spoken turn.

    Attributes:
        audio_base64: Base64-encoded recording
        filename: Original filename; its extension tells the transcriber the format
        opponent_actions: As for :class:`TurnRequest`
    """

    audio_base64: str = Field(min_length=1)
    filename: str = "audio.webm"
    opponent_actions: list[str] | None = None

    @field_validator("opponent_actions", mode="before")
    @classmethod
    def normalise_actions(cls, value: Any) -> Any:
        return _action_list(value)


# ============================================================================
# RESPONSE MODELS (Server → Client)
# ============================================================================


class ParticipantModel(BaseModel):
    name: str
    hp: int
    max_hp: int


class StatusEffectModel(BaseModel):
    name: str
    duration: int
    target: str


class SceneStateResponse(BaseModel):
    """
    Committed state of a scene.

    ``player_hp`` / ``opponent_hp`` are 0 when the scene has no fight in
    progress.
    """

    scene_id: str
    mode: str
    persona_id: str
    setting: str
    player: ParticipantModel
    opponent: ParticipantModel | None = None
    player_hp: int
    opponent_hp: int
    round: int
    game_over: bool
    winner: str | None = None
    final_reason: str | None = None
    effects: list[StatusEffectModel]
    memory: list[str]
    history: list[dict[str, Any]]
    director_may_initiate_combat: bool
    created_at: str
    updated_at: str


class TurnResponse(BaseModel):
    """
    Result of starting a scene or resolving a turn.

    ``image_b64`` / ``audio_b64`` are ``None`` when the artifact could not be
    produced; the narration is always present.
    """

    scene_id: str
    narration: str
    turn_summary: str | None = None
    image_b64: str | None = None
    audio_b64: str | None = None
    transcript: str | None = None
    player_actions: list[str] = []
    opponent_actions: list[str] = []
    player_costs: list[int] = []
    opponent_costs: list[int] = []
    expired_effects: list[StatusEffectModel] = []
    combat_started: bool = False
    combat_ended: bool = False
    combat_winner: str | None = None
    scene: SceneStateResponse


class PersonaModel(BaseModel):
    persona_id: str
    name: str
    voice: str


class PersonaListResponse(BaseModel):
    personas: list[PersonaModel]


class ChronicleSummaryModel(BaseModel):
    scene_id: str
    mode: str
    persona_id: str
    player_name: str
    opponent_name: str | None = None
    round: int
    game_over: bool
    created_at: str
    updated_at: str


class ChronicleListResponse(BaseModel):
    chronicles: list[ChronicleSummaryModel]


class ErrorResponse(BaseModel):
    """
    Error body for every typed failure.

    Attributes:
        error: Exception class name (stable, machine-readable)
        detail: Human-readable message
        extra: Error-specific fields (for example the budget breakdown)
    """

    error: str
    detail: str
    extra: dict[str, Any] = {}


# ============================================================================
# CONVERSION HELPERS
# ============================================================================


def scene_state_from_scene(scene) -> SceneStateResponse:
    data = scene.to_dict()
    return SceneStateResponse(
        scene_id=scene.scene_id,
        mode=scene.mode.value,
        persona_id=scene.persona_id,
        setting=scene.setting,
        player=ParticipantModel(**data["player"]),
        opponent=ParticipantModel(**data["opponent"]) if data["opponent"] else None,
        player_hp=scene.player_hp,
        opponent_hp=scene.opponent_hp,
        round=scene.round,
        game_over=scene.game_over,
        winner=scene.winner,
        final_reason=scene.final_reason,
        effects=[StatusEffectModel(**e) for e in data["effects"]],
        memory=data["memory"]["entries"],
        history=data["history"],
        director_may_initiate_combat=scene.director_may_initiate_combat,
        created_at=scene.created_at,
        updated_at=scene.updated_at,
    )


def turn_response_from_result(result) -> TurnResponse:
    return TurnResponse(
        scene_id=result.scene.scene_id,
        narration=result.narration,
        turn_summary=result.turn_summary,
        image_b64=result.media.image_b64,
        audio_b64=result.media.audio_b64,
        transcript=result.transcript,
        player_actions=result.player_actions,
        opponent_actions=result.opponent_actions,
        player_costs=result.player_costs,
        opponent_costs=result.opponent_costs,
        expired_effects=[StatusEffectModel(**e.to_dict()) for e in result.expired_effects],
        combat_started=result.combat_started,
        combat_ended=result.combat_ended,
        combat_winner=result.combat_winner,
        scene=scene_state_from_scene(result.scene),
    )
