"""Status Effect Ledger.

Tracks the timed buffs and debuffs attached to the two participants of a
scene.  The ledger is a plain in-memory structure owned by its
:class:`~chronicle_server.game.session.Scene`; it is serialised with the
scene and never shared between scenes.

Lifecycle of an effect
----------------------
1. The oracle returns ``new_effects`` as part of a turn outcome.
2. The resolver calls :meth:`StatusEffectLedger.apply` with them.
3. The resolver calls :meth:`StatusEffectLedger.tick` exactly once for the
   turn, *after* step 2.
4. Every later resolved turn ticks once more; when ``duration`` reaches 0
   the effect is removed.

An effect applied with duration ``d`` is therefore still present after
``d - 1`` ticks and gone after ``d`` ticks.

Ordering and duplicates
-----------------------
Effects keep insertion order.  Two effects with the same name on the same
target stack independently; they are never merged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

PLAYER = "player"
OPPONENT = "opponent"
TARGETS = (PLAYER, OPPONENT)


@dataclass
class StatusEffect:
    """A timed modifier attached to one participant.

    Attributes:
        name:     Free-text tag, e.g. ``"Stunned"``.
        duration: Turns remaining.  Always ``> 0`` while held by a ledger.
        target:   ``"player"`` or ``"opponent"``.
    """

    name: str
    duration: int
    target: str

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("StatusEffect requires a non-empty name.")
        if self.target not in TARGETS:
            raise ValueError(f"StatusEffect target must be one of {TARGETS}, got {self.target!r}.")
        if self.duration <= 0:
            raise ValueError(f"StatusEffect duration must be positive, got {self.duration}.")

    def to_dict(self) -> dict:
        return asdict(self)


class StatusEffectLedger:
    """Insertion-ordered collection of active status effects."""

    def __init__(self, effects: list[StatusEffect] | None = None) -> None:
        self._effects: list[StatusEffect] = list(effects or [])

    def apply(self, effects: list[StatusEffect]) -> None:
        """Append newly granted effects, keeping their given durations."""
        self._effects.extend(
            StatusEffect(name=e.name, duration=e.duration, target=e.target) for e in effects
        )

    def tick(self) -> list[StatusEffect]:
        """Advance one resolved turn.

        Decrements every effect by exactly one and drops those that reach
        zero.

        Returns:
            The effects that expired on this tick, in insertion order.
        """
        expired: list[StatusEffect] = []
        remaining: list[StatusEffect] = []
        for effect in self._effects:
            effect.duration -= 1
            if effect.duration > 0:
                remaining.append(effect)
            else:
                expired.append(effect)
        self._effects = remaining
        return expired

    def active(self, target: str) -> list[StatusEffect]:
        """Return the effects currently held by ``target``."""
        return [e for e in self._effects if e.target == target]

    def clear(self, target: str) -> None:
        """Drop every effect held by ``target`` (used when an opponent leaves)."""
        self._effects = [e for e in self._effects if e.target != target]

    def describe(self, target: str) -> str:
        """Prompt-ready one-liner, e.g. ``"Stunned (1), Bleeding (2)"``."""
        effects = self.active(target)
        if not effects:
            return "none"
        return ", ".join(f"{e.name} ({e.duration})" for e in effects)

    def to_list(self) -> list[dict]:
        return [e.to_dict() for e in self._effects]

    @classmethod
    def from_list(cls, data: list[dict]) -> StatusEffectLedger:
        return cls(
            [
                StatusEffect(name=d["name"], duration=int(d["duration"]), target=d["target"])
                for d in data
            ]
        )

    def __len__(self) -> int:
        return len(self._effects)
