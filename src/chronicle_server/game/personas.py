"""Director personas.

A persona is the voice narrating a scene: its system prompt, the oracle
model it runs on, and the speech voice its narration is read in.  Two
personas are built in; more can be added as YAML files in the configured
persona directory, one persona per file::

    # data/personas/chronicler.yaml
    persona_id: chronicler
    name: The Chronicler
    role: gm
    model: llama3.1:8b
    voice: fable
    system_prompt: |
      You are 'The Chronicler' ...

A file persona with the same ``persona_id`` as a built-in replaces it.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

from chronicle_server.game.errors import UnknownPersona

logger = logging.getLogger(__name__)

GM_ROLE = "gm"


@dataclass(slots=True)
class Persona:
    """A director persona.

    Attributes:
        persona_id:    Stable identifier referenced by scenes.
        name:          Display name.
        role:          ``"gm"`` for selectable directors; other roles load
                       but are not offered to callers.
        system_prompt: System message sent with every narration call.
        model:         Oracle model override; ``None`` uses the configured one.
        voice:         Speech synthesizer voice.
    """

    persona_id: str
    name: str
    system_prompt: str
    role: str = GM_ROLE
    model: str | None = None
    voice: str = "shimmer"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_JSON_ONLY = "Always reply with a single JSON object and nothing else."

BUILTIN_PERSONAS = (
    Persona(
        persona_id="grand_tactician",
        name="The Grand Tactician",
        voice="onyx",
        system_prompt=(
            "You are 'The Grand Tactician', a game master overseeing narrative duels. "
            "You adjudicate simultaneous actions, synthesize them into one compelling "
            "turn, and make explicit who gained the upper hand and what it cost the "
            "other side. Ignore meta-comments, questions about the game system, or "
            f"text in parentheses within player inputs. {_JSON_ONLY}"
        ),
    ),
    Persona(
        persona_id="the_conductor",
        name="The Conductor",
        voice="nova",
        system_prompt=(
            "You are 'The Conductor', a game master crafting dramatic, emotionally "
            "resonant narratives. You treat story beats as movements in a symphony: "
            "build tension, orchestrate climaxes, resolve harmonies. Respond with "
            "poetic flair and atmospheric storytelling. Ignore meta-comments or "
            f"questions about the game system. {_JSON_ONLY}"
        ),
    ),
)


class PersonaRegistry:
    """In-memory registry of director personas."""

    def __init__(self, personas=BUILTIN_PERSONAS) -> None:
        self._personas: dict[str, Persona] = {}
        for persona in personas:
            self.register(persona)

    @classmethod
    def from_config(cls, settings) -> PersonaRegistry:
        """Built-ins plus every YAML persona under ``settings.absolute_directory``."""
        registry = cls()
        registry.load_directory(settings.absolute_directory)
        return registry

    def register(self, persona: Persona) -> None:
        self._personas[persona.persona_id] = persona

    def get(self, persona_id: str) -> Persona:
        """Return the persona, or raise :class:`UnknownPersona`."""
        try:
            return self._personas[persona_id]
        except KeyError:
            raise UnknownPersona(persona_id) from None

    def directors(self) -> list[Persona]:
        """Personas selectable as scene directors, sorted by name."""
        return sorted(
            (p for p in self._personas.values() if p.role == GM_ROLE),
            key=lambda p: p.name,
        )

    def __contains__(self, persona_id: str) -> bool:
        return persona_id in self._personas

    def __len__(self) -> int:
        return len(self._personas)

    # ── YAML loading ──────────────────────────────────────────────────────────

    def load_directory(self, directory: Path) -> int:
        """Load every ``*.yaml`` / ``*.yml`` persona file in ``directory``.

        A missing directory loads nothing.  A file that cannot be parsed or
        lacks required keys is skipped with a warning; one bad file must not
        prevent the server from starting.

        Returns:
            Number of personas loaded.
        """
        directory = Path(directory)
        if not directory.is_dir():
            logger.info("Persona directory %s not found; using built-in personas only", directory)
            return 0

        loaded = 0
        for path in sorted([*directory.glob("*.yaml"), *directory.glob("*.yml")]):
            try:
                persona = self._read_persona(path)
            except (OSError, yaml.YAMLError, ValueError) as exc:
                logger.warning("Skipping persona file %s: %s", path.name, exc)
                continue
            self.register(persona)
            loaded += 1
            logger.info("Loaded persona %s (%s)", persona.name, persona.persona_id)
        return loaded

    def _read_persona(self, path: Path) -> Persona:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
        if not isinstance(payload, dict):
            raise ValueError("persona file must contain a mapping")

        missing = [key for key in ("name", "system_prompt") if not payload.get(key)]
        if missing:
            raise ValueError(f"missing required keys: {', '.join(missing)}")

        name = str(payload["name"])
        role = payload.get("role")
        # Directors named as such are selectable even without an explicit role.
        if not role and ("director" in name.lower() or "game master" in name.lower()):
            role = GM_ROLE

        return Persona(
            persona_id=str(payload.get("persona_id") or path.stem),
            name=name,
            system_prompt=str(payload["system_prompt"]),
            role=str(role or "npc"),
            model=payload.get("model") or None,
            voice=str(payload.get("voice") or "shimmer"),
        )
