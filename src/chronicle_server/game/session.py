"""Scene (session) state.

A :class:`Scene` is one persistent game instance: its participants, mode,
status effects, memory window, and full history.  Scenes are created by
:meth:`~chronicle_server.game.resolver.TurnResolver.start_session`, mutated
only by the resolver, and persisted through a
:class:`~chronicle_server.store.scene_store.SceneStore`.

Mode transitions
----------------
::

    sandbox ──(director initiates combat)──▶ sandbox_combat
    sandbox_combat ──(either HP ≤ 0)──▶ sandbox
    competitive ──(either HP ≤ 0)──▶ competitive + game_over

No other transition exists.  A scene never changes between sandbox and
competitive.

HP accounting
-------------
Every HP change goes through :meth:`Participant.apply_delta`, which clamps
the result into ``[0, max_hp]``.  Outside combat (plain sandbox) the player's
HP is 0 and there is no opponent.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from chronicle_server.game.effects import StatusEffectLedger
from chronicle_server.game.memory import MemoryWindow


class Mode(str, Enum):
    """Game mode of a scene."""

    SANDBOX = "sandbox"
    COMPETITIVE = "competitive"
    SANDBOX_COMBAT = "sandbox_combat"

    @property
    def is_combat(self) -> bool:
        """Combat modes resolve two simultaneous actions and count rounds."""
        return self in (Mode.COMPETITIVE, Mode.SANDBOX_COMBAT)


@dataclass
class Participant:
    """One side of a scene."""

    name: str
    hp: int = 0
    max_hp: int = 0

    def apply_delta(self, delta: int) -> int:
        """Apply an HP delta, clamped into ``[0, max_hp]``.

        Returns:
            The HP after the change.
        """
        self.hp = min(self.max_hp, max(0, self.hp + delta))
        return self.hp

    @property
    def defeated(self) -> bool:
        return self.hp <= 0

    def to_dict(self) -> dict:
        return {"name": self.name, "hp": self.hp, "max_hp": self.max_hp}

    @classmethod
    def from_dict(cls, data: dict) -> Participant:
        return cls(name=data["name"], hp=int(data["hp"]), max_hp=int(data["max_hp"]))


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class Scene:
    """Persistent state of one game session.

    Attributes:
        scene_id:   Opaque identifier (uuid4 hex).
        mode:       Current :class:`Mode`.
        player:     Participant A.
        opponent:   Participant B; ``None`` in plain sandbox.
        history:    Role-tagged message log used as oracle context.
        memory:     Bounded window of recent turn summaries.
        effects:    Status effects for both participants.
        persona_id: Director persona narrating the scene.
        setting:    Game setting text given at session start.
        art_style, player_visuals, opponent_visuals:
                    Visual anchors forwarded untouched to the media pipeline.
        round:      Round counter; only advances in combat modes.
        game_over:  Terminal flag (competitive only).
        winner:     ``"player"``, ``"opponent"`` or ``"draw"`` once decided.
        final_reason: Human-readable conclusion once the game is over.
        director_may_initiate_combat:
                    Whether a sandbox director may open a combat encounter.
    """

    scene_id: str
    mode: Mode
    player: Participant
    opponent: Participant | None = None
    history: list[dict] = field(default_factory=list)
    memory: MemoryWindow = field(default_factory=MemoryWindow)
    effects: StatusEffectLedger = field(default_factory=StatusEffectLedger)
    persona_id: str = "grand_tactician"
    setting: str = ""
    art_style: str = ""
    player_visuals: str = ""
    opponent_visuals: str = ""
    round: int = 0
    game_over: bool = False
    winner: str | None = None
    final_reason: str | None = None
    director_may_initiate_combat: bool = True
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    # ── Derived views ─────────────────────────────────────────────────────────

    @property
    def player_hp(self) -> int:
        return self.player.hp

    @property
    def opponent_hp(self) -> int:
        return self.opponent.hp if self.opponent else 0

    @property
    def opponent_name(self) -> str:
        return self.opponent.name if self.opponent else ""

    def trailing_history(self, window: int) -> list[dict]:
        """Return the last ``window`` history entries as oracle messages."""
        if window <= 0:
            return []
        return [{"role": m["role"], "content": m["content"]} for m in self.history[-window:]]

    def touch(self) -> None:
        self.updated_at = _now()

    def copy(self) -> Scene:
        """Deep copy via the serialised form; used for all-or-nothing turns."""
        return Scene.from_dict(self.to_dict())

    # ── Serialisation ─────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "scene_id": self.scene_id,
            "mode": self.mode.value,
            "player": self.player.to_dict(),
            "opponent": self.opponent.to_dict() if self.opponent else None,
            "history": [dict(m) for m in self.history],
            "memory": {"capacity": self.memory.capacity, "entries": self.memory.entries()},
            "effects": self.effects.to_list(),
            "persona_id": self.persona_id,
            "setting": self.setting,
            "art_style": self.art_style,
            "player_visuals": self.player_visuals,
            "opponent_visuals": self.opponent_visuals,
            "round": self.round,
            "game_over": self.game_over,
            "winner": self.winner,
            "final_reason": self.final_reason,
            "director_may_initiate_combat": self.director_may_initiate_combat,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Scene:
        memory = data.get("memory") or {}
        opponent = data.get("opponent")
        return cls(
            scene_id=data["scene_id"],
            mode=Mode(data["mode"]),
            player=Participant.from_dict(data["player"]),
            opponent=Participant.from_dict(opponent) if opponent else None,
            history=[dict(m) for m in data.get("history", [])],
            memory=MemoryWindow(
                capacity=int(memory.get("capacity", 5)),
                entries=list(memory.get("entries", [])),
            ),
            effects=StatusEffectLedger.from_list(data.get("effects", [])),
            persona_id=data.get("persona_id", "grand_tactician"),
            setting=data.get("setting", ""),
            art_style=data.get("art_style", ""),
            player_visuals=data.get("player_visuals", ""),
            opponent_visuals=data.get("opponent_visuals", ""),
            round=int(data.get("round", 0)),
            game_over=bool(data.get("game_over", False)),
            winner=data.get("winner"),
            final_reason=data.get("final_reason"),
            director_may_initiate_combat=bool(data.get("director_may_initiate_combat", True)),
            created_at=data.get("created_at") or _now(),
            updated_at=data.get("updated_at") or _now(),
        )
