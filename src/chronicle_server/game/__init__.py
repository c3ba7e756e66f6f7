"""Turn orchestration core.

Package structure
-----------------
errors.py     Typed errors surfaced to callers.
effects.py    StatusEffectLedger: timed buffs/debuffs per participant.
memory.py     MemoryWindow: bounded rolling summary of recent turns.
session.py    Scene, Participant, Mode: persistent scene state.
cost.py       ActionCostAssessor: oracle-backed action cost, fail-open.
personas.py   PersonaRegistry: director personas (built-in + YAML).
opponent.py   OpponentPlanner: autonomous opponent tool-use loop.
resolver.py   TurnResolver: the per-turn state machine.

Only the leaf modules are re-exported here; import the resolver and
planner from their modules directly.
"""

from chronicle_server.game.effects import StatusEffect, StatusEffectLedger
from chronicle_server.game.errors import (
    BudgetExceeded,
    ChronicleError,
    GameAlreadyOver,
    OracleFailure,
    OracleMalformed,
    PersistenceFailure,
    SessionNotFound,
    TranscriptionFailure,
    UnknownPersona,
)
from chronicle_server.game.memory import MemoryWindow
from chronicle_server.game.session import Mode, Participant, Scene

__all__ = [
    "BudgetExceeded",
    "ChronicleError",
    "GameAlreadyOver",
    "MemoryWindow",
    "Mode",
    "OracleFailure",
    "OracleMalformed",
    "Participant",
    "PersistenceFailure",
    "Scene",
    "SessionNotFound",
    "StatusEffect",
    "StatusEffectLedger",
    "TranscriptionFailure",
    "UnknownPersona",
]
