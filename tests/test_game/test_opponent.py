"""Tests for the opponent planner tool loop."""

import asyncio
import json

import pytest

from chronicle_server.game.cost import ActionCostAssessor
from chronicle_server.game.errors import OracleMalformed
from chronicle_server.game.opponent import ASSESS_TOOL_NAME, OpponentPlanner
from chronicle_server.game.session import Mode, Participant, Scene
from tests.fakes import ScriptedOracle


def _scene() -> Scene:
    return Scene(
        scene_id="duel-1",
        mode=Mode.COMPETITIVE,
        player=Participant("Aria", hp=10, max_hp=10),
        opponent=Participant("Brom", hp=10, max_hp=10),
    )


def _planner(oracle, *, max_tool_rounds=3) -> OpponentPlanner:
    return OpponentPlanner(oracle, ActionCostAssessor(oracle), budget=3, max_tool_rounds=max_tool_rounds)


def _tool_call(arguments) -> dict:
    return {
        "role": "assistant",
        "content": "",
        "tool_calls": [{"function": {"name": ASSESS_TOOL_NAME, "arguments": arguments}}],
    }


def _answer(*actions) -> dict:
    return {"role": "assistant", "content": json.dumps({"actions": list(actions)})}


class TestPlan:
    @pytest.mark.unit
    def test_direct_answer(self):
        oracle = ScriptedOracle(chat_replies=[_answer("shield bash", " ")])

        actions = asyncio.run(_planner(oracle).plan(_scene()))

        assert actions == ["shield bash"]
        first = oracle.chat_calls[0]
        assert first["messages"][0]["role"] == "system"
        assert "Brom" in first["messages"][0]["content"]
        assert first["tools"][0]["function"]["name"] == ASSESS_TOOL_NAME

    @pytest.mark.unit
    def test_tool_call_result_is_returned_as_tool_message(self):
        oracle = ScriptedOracle(
            costs={"overhead smash": 3},
            chat_replies=[_tool_call({"action": "overhead smash"}), _answer("overhead smash")],
        )

        actions = asyncio.run(_planner(oracle).plan(_scene()))

        assert actions == ["overhead smash"]
        second = oracle.chat_calls[1]["messages"]
        assert second[-2]["role"] == "assistant"
        tool_message = second[-1]
        assert tool_message["role"] == "tool"
        assert tool_message["tool_name"] == ASSESS_TOOL_NAME
        assert json.loads(tool_message["content"]) == {"action": "overhead smash", "cost": 3, "budget": 3}

    @pytest.mark.unit
    def test_string_arguments_are_accepted(self):
        oracle = ScriptedOracle(
            costs={"feint": 1},
            chat_replies=[_tool_call('{"action": "feint"}'), _answer("feint")],
        )

        asyncio.run(_planner(oracle).plan(_scene()))

        tool_message = oracle.chat_calls[1]["messages"][-1]
        assert json.loads(tool_message["content"])["cost"] == 1

    @pytest.mark.unit
    def test_unknown_tool_gets_error_result(self):
        bogus = {
            "role": "assistant",
            "content": "",
            "tool_calls": [{"function": {"name": "roll_dice", "arguments": {}}}],
        }
        oracle = ScriptedOracle(chat_replies=[bogus, _answer("wait")])

        asyncio.run(_planner(oracle).plan(_scene()))

        tool_message = oracle.chat_calls[1]["messages"][-1]
        assert "error" in json.loads(tool_message["content"])


class TestLimits:
    @pytest.mark.unit
    def test_round_limit_raises_malformed(self):
        oracle = ScriptedOracle(chat_replies=[_tool_call({"action": "feint"})] * 3)

        with pytest.raises(OracleMalformed):
            asyncio.run(_planner(oracle, max_tool_rounds=2).plan(_scene()))

        assert len(oracle.chat_calls) == 3

    @pytest.mark.unit
    @pytest.mark.parametrize("content", ["not json", '{"actions": []}', '{"actions": ["  "]}', '{"moves": ["x"]}'])
    def test_bad_final_answer(self, content):
        oracle = ScriptedOracle(chat_replies=[{"role": "assistant", "content": content}])

        with pytest.raises(OracleMalformed):
            asyncio.run(_planner(oracle).plan(_scene()))
