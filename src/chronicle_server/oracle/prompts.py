"""Prompt builders for every oracle call the turn pipeline makes.

Each builder returns plain text.  The director persona's system prompt is
supplied separately by the caller; the builders here only state the
situation and the JSON contract the reply must satisfy, which matches a
model in :mod:`chronicle_server.oracle.schemas`.

Scene context (HP, effects, memory) is rendered by :func:`scene_context`
so that every combat prompt describes the scene the same way.
"""

from __future__ import annotations

from chronicle_server.game.effects import OPPONENT, PLAYER

# ── JSON contracts ────────────────────────────────────────────────────────────

COST_SYSTEM = (
    "You are the rules referee of a narrative combat game. Rate how demanding a "
    "single action is on a scale of 1 (simple, quick) to 3 (elaborate, "
    "multi-step, or powerful). Reply with exactly one JSON object and nothing "
    'else: {"cost": <integer>}.'
)

_EFFECTS_CONTRACT = (
    '"new_effects": a list of {"target": "player" or "opponent", "name": <string>, '
    '"duration": <positive integer>} for any lasting status effect this turn '
    "creates (use [] for none)"
)

_DUEL_CONTRACT = (
    "Reply with exactly one JSON object with these keys: "
    '"narration" (string), "turn_summary" (one short sentence), '
    '"hp_delta_player" (integer, 0 or negative), '
    '"hp_delta_opponent" (integer, 0 or negative), '
    f"{_EFFECTS_CONTRACT}, "
    '"image_prompt" (optional short visual description of the key moment).'
)

_SANDBOX_CONTRACT = (
    "Reply with exactly one JSON object with these keys: "
    '"narration" (string), "turn_summary" (one short sentence), '
    f"{_EFFECTS_CONTRACT}, "
    '"image_prompt" (optional short visual description of the key moment).'
)

_COMBAT_INITIATION_CONTRACT = (
    "If, and only if, the story now turns into a fight, also set "
    '"initiate_combat": true, "opponent_descriptor": <who the player now faces>, '
    'and "opponent_hp": <positive integer health for that opponent>.'
)

_NO_COMBAT_CONTRACT = (
    "Do not start combat encounters in this scene; never set "
    '"initiate_combat".'
)

_NARRATION_CONTRACT = 'Reply with exactly one JSON object: {"narration": <string>}.'

IMAGE_PROMPT_SYSTEM = (
    "You are an art director. Turn the narration into one detailed image prompt "
    "made of comma-separated keywords. You must respect the art style and the "
    "visual descriptions you are given. Reply with exactly one JSON object: "
    '{"prompt": <string>}.'
)


def cost_prompt(action: str) -> str:
    return f'Action: "{action}"'


# ── Scene context ─────────────────────────────────────────────────────────────


def scene_context(scene) -> str:
    """Describe HP, active effects and recent memory for a combat prompt."""
    lines = [
        f"Round: {scene.round}",
        f"{scene.player.name}: HP {scene.player_hp}/{scene.player.max_hp}, "
        f"effects: {scene.effects.describe(PLAYER)}",
    ]
    if scene.opponent is not None:
        lines.append(
            f"{scene.opponent.name}: HP {scene.opponent_hp}/{scene.opponent.max_hp}, "
            f"effects: {scene.effects.describe(OPPONENT)}"
        )
    memory = scene.memory.render()
    if memory:
        lines.extend(["", memory])
    return "\n".join(lines)


def _quote_actions(actions: list[str]) -> str:
    return "; ".join(f'"{a}"' for a in actions)


# ── Opening / conclusion ──────────────────────────────────────────────────────


def opening_prompt(
    *,
    setting: str,
    player_name: str,
    player_opening: str,
    opponent_name: str | None = None,
    opponent_opening: str = "",
) -> str:
    """Introduce a new scene."""
    if not opponent_name:
        return (
            f'The game setting is: "{setting}". The player, \'{player_name}\', opens with: '
            f'"{player_opening}". Introduce the scene and the player\'s situation, then end '
            "with a compelling choice for the player's first move. There is no opponent.\n"
            f"{_NARRATION_CONTRACT}"
        )
    return (
        f"This is a competitive narrative duel between '{player_name}' and "
        f"'{opponent_name}'. The game setting is: \"{setting}\".\n"
        f"{player_name}'s opening: \"{player_opening}\"\n"
        f"{opponent_name}'s opening: \"{opponent_opening}\"\n"
        "Introduce the scene, the stakes for both sides, and set the stage for the "
        "first round.\n"
        f"{_NARRATION_CONTRACT}"
    )


def conclusion_prompt(scene, *, winner: str) -> str:
    """Ask for the concluding beat once a fight is decided."""
    player = scene.player.name
    opponent = scene.opponent_name or "the opponent"
    if winner == PLAYER:
        verdict = f"{player} has won; {opponent} has run out of health."
    elif winner == OPPONENT:
        verdict = f"{player} has been defeated by {opponent}."
    else:
        verdict = f"{player} and {opponent} have fallen together; the fight ends in a draw."
    return (
        f"The fight has reached its conclusion in round {scene.round}. {verdict} "
        "Narrate the final, decisive moment. Be dramatic and conclusive.\n"
        f"{_NARRATION_CONTRACT}"
    )


# ── Turn outcomes ─────────────────────────────────────────────────────────────


def sandbox_prompt(scene, actions: list[str], *, allow_combat: bool) -> str:
    """Single-action story continuation."""
    parts = [
        f"The player, '{scene.player.name}', takes the following action: "
        f"{_quote_actions(actions)}.",
        "Narrate the outcome and advance the story, ending with a choice or a "
        "'what if' for the player's next move.",
        f"Active effects on {scene.player.name}: {scene.effects.describe(PLAYER)}. "
        "They must influence the outcome.",
    ]
    memory = scene.memory.render()
    if memory:
        parts.append(memory)
    parts.append(_SANDBOX_CONTRACT)
    parts.append(_COMBAT_INITIATION_CONTRACT if allow_combat else _NO_COMBAT_CONTRACT)
    return "\n".join(parts)


def duel_prompt(scene, player_actions: list[str], opponent_actions: list[str]) -> str:
    """Simultaneous dual-action adjudication."""
    return "\n".join(
        [
            f"Adjudicate these simultaneous actions between '{scene.player.name}' and "
            f"'{scene.opponent_name}'.",
            scene_context(scene),
            "",
            f"{scene.player.name}'s actions: {_quote_actions(player_actions)}",
            f"{scene.opponent_name}'s actions: {_quote_actions(opponent_actions)}",
            "Describe the clash, who gains the upper hand, and the damage each side "
            "takes. Active effects must influence the outcome.",
            _DUEL_CONTRACT,
        ]
    )


# ── Opponent planning ─────────────────────────────────────────────────────────


def opponent_system(opponent_name: str, budget: int) -> str:
    return (
        f"You control '{opponent_name}' in a narrative combat game. Each turn you may "
        f"take one or more actions whose summed cost is at most {budget} points. Use "
        "the assess_action_cost tool to check what an action costs before committing. "
        'When you are done, reply with exactly one JSON object: {"actions": [<string>, ...]}.'
    )


def opponent_prompt(scene) -> str:
    return "\n".join(
        [
            f"You are {scene.opponent_name}. Decide your actions for this round against "
            f"{scene.player.name}.",
            scene_context(scene),
        ]
    )


# ── Media ─────────────────────────────────────────────────────────────────────


def image_prompt_request(narration: str, *, art_style: str, player_visuals: str, opponent_visuals: str) -> str:
    return (
        f'Art Style: "{art_style}"\n\n'
        f'Player Visuals: "{player_visuals}"\n'
        f'Opponent Visuals: "{opponent_visuals}"\n\n'
        f'Narration:\n"{narration}"'
    )
