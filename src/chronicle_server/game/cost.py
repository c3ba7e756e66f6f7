"""Action Cost Assessor.

Rates a single free-text action on the integer cost scale used for the
per-turn budget.  The rating comes from the oracle under a strict
``{"cost": <int>}`` contract.

Fail-open
---------
Cost assessment gates a turn but never decides its outcome, so an
unavailable or confused oracle must not block play.  Any oracle failure
(unreachable, timeout, unparseable reply) yields ``min_cost`` and a warning
in the log.  An out-of-range integer is clamped into
``[min_cost, max_cost]``.
"""

from __future__ import annotations

import asyncio
import logging

from chronicle_server.game.errors import OracleFailure
from chronicle_server.oracle import prompts
from chronicle_server.oracle.schemas import CostReply, decode

logger = logging.getLogger(__name__)


class ActionCostAssessor:
    """Assess action costs through the oracle.

    Args:
        oracle:   An :class:`~chronicle_server.oracle.client.OracleClient`.
        min_cost: Lower clamp and fail-open value.
        max_cost: Upper clamp.
        model:    Optional model override for cost calls.
    """

    def __init__(self, oracle, *, min_cost: int = 1, max_cost: int = 3, model: str | None = None) -> None:
        if min_cost > max_cost:
            raise ValueError("min_cost must not exceed max_cost.")
        self._oracle = oracle
        self._min = min_cost
        self._max = max_cost
        self._model = model

    @property
    def min_cost(self) -> int:
        return self._min

    @property
    def max_cost(self) -> int:
        return self._max

    async def assess(self, action: str) -> int:
        """Return the clamped cost of ``action``.

        Raises:
            ValueError: ``action`` is empty or whitespace.
        """
        if not action or not action.strip():
            raise ValueError("Cannot assess the cost of an empty action.")

        try:
            raw = await self._oracle.complete(
                system=prompts.COST_SYSTEM,
                prompt=prompts.cost_prompt(action.strip()),
                model=self._model,
            )
            reply = decode(CostReply, raw)
        except OracleFailure as exc:
            logger.warning(
                "Cost assessment failed for %r (%s); using minimum cost %d",
                action[:80],
                exc,
                self._min,
            )
            return self._min

        cost = min(self._max, max(self._min, reply.cost))
        if cost != reply.cost:
            logger.debug("Cost %d for %r clamped to %d", reply.cost, action[:80], cost)
        return cost

    async def assess_many(self, actions: list[str]) -> list[int]:
        """Assess several independent actions concurrently, in input order."""
        return list(await asyncio.gather(*(self.assess(a) for a in actions)))

    async def total(self, actions: list[str]) -> int:
        return sum(await self.assess_many(actions))
