"""Test doubles shared across the suite.

``ScriptedOracle`` stands in for :class:`chronicle_server.oracle.client.OracleClient`.
Cost and image-prompt calls are answered by rule (so their concurrency
order never matters); every other ``complete`` call pops the next scripted
reply in order.  ``chat`` (used by the opponent planner) pops from its own
queue.
"""

import json

from chronicle_server.config import RuleSettings
from chronicle_server.game.cost import ActionCostAssessor
from chronicle_server.game.opponent import OpponentPlanner
from chronicle_server.game.personas import PersonaRegistry
from chronicle_server.game.resolver import TurnResolver
from chronicle_server.media.pipeline import MediaPipeline
from chronicle_server.oracle import prompts


class ScriptedOracle:
    """Deterministic oracle double."""

    def __init__(self, replies=None, *, costs=None, default_cost=1, chat_replies=None):
        self.replies = list(replies or [])
        self.costs = dict(costs or {})
        self.default_cost = default_cost
        self.chat_replies = list(chat_replies or [])
        self.calls: list[dict] = []
        self.chat_calls: list[dict] = []
        self.model = "test-model"

    @property
    def outcome_calls(self) -> list[dict]:
        """``complete`` calls other than cost and image-prompt calls."""
        return [
            c
            for c in self.calls
            if c["system"] not in (prompts.COST_SYSTEM, prompts.IMAGE_PROMPT_SYSTEM)
        ]

    async def complete(self, *, system, prompt, history=None, model=None):
        self.calls.append({"system": system, "prompt": prompt, "history": history, "model": model})

        if system == prompts.COST_SYSTEM:
            action = prompt.removeprefix('Action: "').removesuffix('"')
            cost = self.costs.get(action, self.default_cost)
            if isinstance(cost, Exception):
                raise cost
            return cost if isinstance(cost, str) else json.dumps({"cost": cost})

        if system == prompts.IMAGE_PROMPT_SYSTEM:
            return json.dumps({"prompt": "two figures clash under a red sky"})

        if not self.replies:
            raise AssertionError(f"Unexpected oracle call: {prompt[:120]!r}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply if isinstance(reply, str) else json.dumps(reply)

    async def chat(self, messages, *, model=None, tools=None, json_mode=True):
        self.chat_calls.append({"messages": [dict(m) for m in messages], "tools": tools, "model": model})
        if not self.chat_replies:
            raise AssertionError("Unexpected oracle chat call")
        reply = self.chat_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_rules(**overrides) -> RuleSettings:
    """``RuleSettings`` with test defaults (budget 3, starting HP 10)."""
    return RuleSettings(**overrides)


def make_resolver(store, oracle, *, rules=None, media=None, transcriber=None, personas=None) -> TurnResolver:
    """Wire a resolver around ``oracle`` with no media backends configured."""
    rules = rules or make_rules()
    assessor = ActionCostAssessor(oracle, min_cost=rules.min_action_cost, max_cost=rules.max_action_cost)
    planner = OpponentPlanner(oracle, assessor, budget=rules.action_budget, max_tool_rounds=3)
    return TurnResolver(
        store=store,
        oracle=oracle,
        assessor=assessor,
        planner=planner,
        media=media or MediaPipeline(oracle),
        personas=personas or PersonaRegistry(),
        rules=rules,
        transcriber=transcriber,
    )


def duel(narration="Steel rings on steel.", *, player=0, opponent=0, effects=None, summary=None, **extra) -> dict:
    """A valid combat outcome reply."""
    reply = {
        "narration": narration,
        "hp_delta_player": player,
        "hp_delta_opponent": opponent,
        "new_effects": effects or [],
    }
    if summary is not None:
        reply["turn_summary"] = summary
    reply.update(extra)
    return reply


def story(narration="The path winds on.", **extra) -> dict:
    """A valid sandbox outcome reply."""
    return {"narration": narration, "new_effects": [], **extra}


def narration(text="The tale begins.") -> dict:
    return {"narration": text}
