"""Tests for the action cost assessor."""

import asyncio

import pytest

from chronicle_server.game.cost import ActionCostAssessor
from chronicle_server.game.errors import OracleFailure
from tests.fakes import ScriptedOracle


def _assess(oracle, action, **kwargs):
    return asyncio.run(ActionCostAssessor(oracle, **kwargs).assess(action))


@pytest.mark.unit
@pytest.mark.parametrize(("reported", "expected"), [(0, 1), (1, 1), (2, 2), (3, 3), (9, 3), (-4, 1)])
def test_cost_is_clamped(reported, expected):
    oracle = ScriptedOracle(costs={"swing": reported})

    assert _assess(oracle, "swing") == expected


@pytest.mark.unit
def test_custom_bounds():
    oracle = ScriptedOracle(costs={"swing": 9})

    assert _assess(oracle, "swing", min_cost=2, max_cost=5) == 5


@pytest.mark.unit
def test_oracle_failure_falls_back_to_minimum():
    oracle = ScriptedOracle(costs={"swing": OracleFailure("down")})

    assert _assess(oracle, "swing") == 1


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["three", '{"cost": "2"}', '{"points": 2}', "[]"])
def test_malformed_reply_falls_back_to_minimum(raw):
    oracle = ScriptedOracle(costs={"swing": raw})

    assert _assess(oracle, "swing") == 1


@pytest.mark.unit
def test_fenced_reply_is_accepted():
    oracle = ScriptedOracle(costs={"swing": '```json\n{"cost": 2}\n```'})

    assert _assess(oracle, "swing") == 2


@pytest.mark.unit
@pytest.mark.parametrize("action", ["", "   "])
def test_empty_action_rejected(action):
    with pytest.raises(ValueError):
        _assess(ScriptedOracle(), action)


@pytest.mark.unit
def test_assess_many_keeps_input_order():
    oracle = ScriptedOracle(costs={"a": 3, "b": 1, "c": 2})
    assessor = ActionCostAssessor(oracle)

    assert asyncio.run(assessor.assess_many(["a", "b", "c"])) == [3, 1, 2]
    assert asyncio.run(assessor.total(["a", "b", "c"])) == 6


@pytest.mark.unit
def test_min_above_max_rejected():
    with pytest.raises(ValueError):
        ActionCostAssessor(ScriptedOracle(), min_cost=4, max_cost=2)
