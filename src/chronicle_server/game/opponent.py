"""Autonomous opponent planner.

When a combat turn arrives without opponent actions, the resolver asks this
planner to choose them.  The planner runs a tool-use conversation with the
oracle: the oracle may call ``assess_action_cost`` any number of times to
price candidate actions against the budget, and finishes with a plain JSON
answer ``{"actions": [...]}``.

Loop
----
1. Send system + context (+ tool definitions) to the oracle.
2. If the reply carries ``tool_calls``, run each call through the
   :class:`~chronicle_server.game.cost.ActionCostAssessor`, append the
   assistant turn and one ``role: "tool"`` message per call, and repeat.
3. Otherwise decode the content as :class:`OpponentPlanReply`.

The loop is sequential and bounded by ``max_tool_rounds``; a model that
keeps calling tools past the bound is treated as a malformed reply.  The
planner does not enforce the budget itself: the resolver validates the
returned actions with the same check applied to the player.
"""

from __future__ import annotations

import json
import logging

from chronicle_server.game.errors import OracleMalformed
from chronicle_server.oracle import prompts
from chronicle_server.oracle.schemas import OpponentPlanReply, decode, decode_arguments

logger = logging.getLogger(__name__)

ASSESS_TOOL_NAME = "assess_action_cost"

ASSESS_TOOL = {
    "type": "function",
    "function": {
        "name": ASSESS_TOOL_NAME,
        "description": "Return the integer cost of one candidate action.",
        "parameters": {
            "type": "object",
            "properties": {
                "action": {"type": "string", "description": "The candidate action text."},
            },
            "required": ["action"],
        },
    },
}


class OpponentPlanner:
    """Choose opponent actions through an oracle tool-use loop."""

    def __init__(self, oracle, assessor, *, budget: int, max_tool_rounds: int = 6) -> None:
        self._oracle = oracle
        self._assessor = assessor
        self._budget = budget
        self._max_rounds = max_tool_rounds

    async def plan(self, scene, *, model: str | None = None) -> list[str]:
        """Return the opponent's actions for the current round.

        Raises:
            OracleFailure:   The oracle was unreachable during the loop.
            OracleMalformed: The final answer failed validation, or the tool
                             round limit was exceeded.
        """
        messages: list[dict] = [
            {"role": "system", "content": prompts.opponent_system(scene.opponent_name, self._budget)},
            {"role": "user", "content": prompts.opponent_prompt(scene)},
        ]

        for round_no in range(self._max_rounds + 1):
            reply = await self._oracle.chat(messages, model=model, tools=[ASSESS_TOOL])
            tool_calls = reply.get("tool_calls") or []

            if not tool_calls:
                plan = decode(OpponentPlanReply, reply.get("content") or "")
                actions = [a.strip() for a in plan.actions if a.strip()]
                if not actions:
                    raise OracleMalformed("Opponent plan contains only empty actions.")
                logger.debug(
                    "Opponent %s planned %d action(s) after %d tool round(s)",
                    scene.opponent_name,
                    len(actions),
                    round_no,
                )
                return actions

            if round_no == self._max_rounds:
                break

            messages.append(
                {"role": "assistant", "content": reply.get("content") or "", "tool_calls": tool_calls}
            )
            for call in tool_calls:
                messages.append(await self._run_tool(call))

        logger.warning("Opponent planner exceeded %d tool rounds", self._max_rounds)
        raise OracleMalformed(f"Opponent planner exceeded {self._max_rounds} tool rounds.")

    async def _run_tool(self, call: dict) -> dict:
        """Execute one tool call and return the ``role: "tool"`` message."""
        function = call.get("function") or {}
        name = function.get("name", "")

        if name != ASSESS_TOOL_NAME:
            result = {"error": f"unknown tool {name!r}"}
        else:
            arguments = decode_arguments(function.get("arguments", {}))
            action = str(arguments.get("action") or "").strip()
            if not action:
                result = {"error": "action must be a non-empty string"}
            else:
                cost = await self._assessor.assess(action)
                result = {"action": action, "cost": cost, "budget": self._budget}

        return {"role": "tool", "tool_name": name, "content": json.dumps(result)}
