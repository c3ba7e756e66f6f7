"""Typed errors surfaced by the turn pipeline.

Every failure the caller can observe is one of the classes below.  They
propagate unchanged from the component that detects them, through
:class:`~chronicle_server.game.resolver.TurnResolver`, to the API layer,
which maps each class to a single HTTP status code.

Missing media artifacts are deliberately *not* represented here: an image
or audio clip that could not be produced is a ``None`` field on a
successful turn, never an exception.
"""

from __future__ import annotations


class ChronicleError(Exception):
    """Base class for all caller-visible turn pipeline errors."""


class BudgetExceeded(ChronicleError):
    """A side's summed action cost is over the per-turn budget.

    User-correctable.  Raised before any oracle outcome call, so the scene
    is never touched.

    Attributes:
        side:   ``"player"`` or ``"opponent"``.
        cost:   Summed assessed cost of the submitted actions.
        budget: Per-turn budget the cost was checked against.
        costs:  Individual cost per submitted action, in submission order.
    """

    def __init__(self, *, side: str, cost: int, budget: int, costs: list[int]) -> None:
        super().__init__(f"{side} actions cost {cost} points; the per-turn budget is {budget}.")
        self.side = side
        self.cost = cost
        self.budget = budget
        self.costs = costs


class SessionNotFound(ChronicleError):
    """No scene is stored under the requested id."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(f"Scene {scene_id!r} not found.")
        self.scene_id = scene_id


class GameAlreadyOver(ChronicleError):
    """The scene reached its terminal game-over state and accepts no turns."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(f"Scene {scene_id!r} has concluded; no further turns are accepted.")
        self.scene_id = scene_id


class OracleFailure(ChronicleError):
    """The reasoning oracle was unreachable, timed out, or errored.

    Transient.  The turn is aborted without any state change and is safe to
    retry.
    """


class OracleMalformed(OracleFailure):
    """The oracle answered, but its reply failed strict schema validation.

    Attributes:
        raw: The first 500 characters of the offending reply, for logs.
    """

    def __init__(self, message: str, *, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw[:500]


class TranscriptionFailure(ChronicleError):
    """Spoken input could not be turned into text."""


class UnknownPersona(ChronicleError):
    """The requested director persona is not loaded."""

    def __init__(self, persona_id: str) -> None:
        super().__init__(f"Unknown director persona {persona_id!r}.")
        self.persona_id = persona_id


class PersistenceFailure(ChronicleError):
    """The resolved scene could not be committed to the store.

    The resolver works on a private copy of the scene, so the stored,
    previously committed state stays authoritative.  The caller must treat
    the turn as not having happened.
    """
