"""Strict reply schemas for the reasoning oracle.

Every oracle reply is decoded through one of the pydantic models below
before any of its values reach scene state.  Decoding is strict: a missing
required field, a wrong JSON type (``"2"`` where an integer is expected), or
a body that is not JSON at all raises
:class:`~chronicle_server.game.errors.OracleMalformed`.  The resolver never
guesses a default for an outcome it could not read.

Unknown extra keys are ignored; models frequently add commentary fields and
those carry no game meaning.

Decoding pipeline
-----------------
1. Strip Markdown code fences (```` ```json ... ``` ````), which chat
   models emit even in JSON mode.
2. ``json.loads``.
3. ``Model.model_validate`` with strict scalar types.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError

from chronicle_server.game.errors import OracleMalformed

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$")


class _OracleReply(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ============================================================================
# COST / PLANNING
# ============================================================================


class CostReply(_OracleReply):
    """``{"cost": <int>}``: the assessed cost of one action."""

    cost: StrictInt


class OpponentPlanReply(_OracleReply):
    """Final answer of the opponent planner: the actions it commits to."""

    actions: list[StrictStr] = Field(min_length=1)


# ============================================================================
# OUTCOMES
# ============================================================================


class EffectReply(_OracleReply):
    """One newly granted status effect."""

    target: Literal["player", "opponent"]
    name: StrictStr = Field(min_length=1)
    duration: StrictInt = Field(gt=0)


class NarrativeOutcome(_OracleReply):
    """Single-action continuation in sandbox mode.

    The combat-initiation triple (``initiate_combat``,
    ``opponent_descriptor``, ``opponent_hp``) is optional; the resolver
    honours it only when all three are usable and the scene allows it.
    """

    narration: StrictStr = Field(min_length=1)
    turn_summary: StrictStr | None = None
    new_effects: list[EffectReply] = Field(default_factory=list)
    initiate_combat: StrictBool = False
    opponent_descriptor: StrictStr | None = None
    opponent_hp: StrictInt | None = None
    image_prompt: StrictStr | None = None


class DuelOutcome(_OracleReply):
    """Simultaneous dual-action adjudication in combat modes.

    HP deltas are non-positive by convention; the resolver clamps the
    resulting HP regardless of sign.
    """

    narration: StrictStr = Field(min_length=1)
    turn_summary: StrictStr | None = None
    hp_delta_player: StrictInt
    hp_delta_opponent: StrictInt = 0
    new_effects: list[EffectReply] = Field(default_factory=list)
    game_over: StrictBool = False
    image_prompt: StrictStr | None = None


# ============================================================================
# NARRATION / MEDIA
# ============================================================================


class NarrationReply(_OracleReply):
    """Opening or concluding narration beat."""

    narration: StrictStr = Field(min_length=1)


class ImagePromptReply(_OracleReply):
    """Image prompt derived from a narration."""

    prompt: StrictStr = Field(min_length=1)


ReplyT = TypeVar("ReplyT", bound=_OracleReply)


def strip_fences(raw: str) -> str:
    """Remove Markdown code fences around a JSON body."""
    return _FENCE_RE.sub("", raw).strip()


def decode(model: type[ReplyT], raw: str) -> ReplyT:
    """Decode ``raw`` oracle content strictly into ``model``.

    Raises:
        OracleMalformed: The content is not JSON or does not match ``model``.
    """
    cleaned = strip_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("Oracle reply for %s is not JSON: %.200s", model.__name__, cleaned)
        raise OracleMalformed(f"Oracle reply for {model.__name__} is not JSON.", raw=raw) from exc

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning(
            "Oracle reply failed %s validation (%d errors): %.200s",
            model.__name__,
            exc.error_count(),
            cleaned,
        )
        raise OracleMalformed(
            f"Oracle reply does not match {model.__name__}: {exc.errors()[0]['msg']}", raw=raw
        ) from exc


def decode_arguments(arguments) -> dict:
    """Normalise a tool call's ``arguments`` (dict or JSON string) to a dict.

    Ollama sends a dict; OpenAI-compatible servers send a JSON string.

    Raises:
        OracleMalformed: The arguments are neither.
    """
    if isinstance(arguments, dict):
        return arguments
    if isinstance(arguments, str):
        try:
            parsed = json.loads(strip_fences(arguments) or "{}")
        except json.JSONDecodeError as exc:
            raise OracleMalformed("Tool call arguments are not JSON.", raw=arguments) from exc
        if isinstance(parsed, dict):
            return parsed
    raise OracleMalformed("Tool call arguments must be an object.", raw=str(arguments))
