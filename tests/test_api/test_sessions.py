"""
Tests for the session endpoints.

Tests cover:
- Starting competitive and sandbox scenes
- Submitting text and voice turns
- Mapping of typed resolver errors to HTTP status codes
- Request validation

All tests run against an app whose resolver is wired to a scripted oracle
and a temporary SQLite store.
"""

import base64
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from chronicle_server.api.server import create_app, status_for
from chronicle_server.config import ServerConfig
from chronicle_server.game.errors import OracleFailure, OracleMalformed, PersistenceFailure
from chronicle_server.store.errors import StoreOperationContext, StoreWriteError
from tests.fakes import duel, make_resolver, narration, story

# ============================================================================
# START SESSION
# ============================================================================


class TestStartSession:
    @pytest.mark.api
    def test_competitive_session(self, test_client, oracle):
        oracle.replies.append(narration("Two rivals meet on the bridge."))

        response = test_client.post(
            "/sessions",
            json={"player_name": "Aria", "opponent_name": "Brom", "setting": "A rope bridge"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["narration"] == "Two rivals meet on the bridge."
        assert data["scene"]["mode"] == "competitive"
        assert data["scene"]["player_hp"] == 10
        assert data["scene"]["opponent_hp"] == 10
        assert data["image_b64"] is None
        assert data["audio_b64"] is None

    @pytest.mark.api
    def test_sandbox_session(self, test_client, oracle):
        oracle.replies.append(narration("Fog."))

        response = test_client.post("/sessions", json={"player_name": "Aria"})

        assert response.status_code == 200
        assert response.json()["scene"]["mode"] == "sandbox"
        assert response.json()["scene"]["opponent"] is None

    @pytest.mark.api
    def test_blank_player_name_rejected(self, test_client):
        response = test_client.post("/sessions", json={"player_name": "   "})

        assert response.status_code == 422

    @pytest.mark.api
    def test_unknown_persona(self, test_client):
        response = test_client.post("/sessions", json={"player_name": "Aria", "persona_id": "nobody"})

        assert response.status_code == 422
        assert response.json()["error"] == "UnknownPersona"
        assert response.json()["extra"] == {"persona_id": "nobody"}


# ============================================================================
# TURNS
# ============================================================================


class TestTurns:
    @pytest.mark.api
    def test_sandbox_turn(self, test_client, oracle, sandbox_scene):
        oracle.replies.append(story("A key glints."))

        response = test_client.post(
            f"/sessions/{sandbox_scene.scene_id}/turn",
            json={"player_actions": "search the altar"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["narration"] == "A key glints."
        assert data["player_actions"] == ["search the altar"]
        assert data["scene"]["round"] == 0
        assert len(data["scene"]["memory"]) == 1

    @pytest.mark.api
    def test_competitive_knockout(self, test_client, oracle, competitive_scene):
        oracle.replies.extend([duel("Brom falls.", opponent=-10), narration("Silence.")])

        response = test_client.post(
            f"/sessions/{competitive_scene.scene_id}/turn",
            json={"player_actions": ["strike"], "opponent_actions": ["parry"]},
        )

        assert response.status_code == 200
        scene = response.json()["scene"]
        assert scene["game_over"] is True
        assert scene["mode"] == "competitive"
        assert scene["opponent_hp"] == 0
        assert scene["winner"] == "player"

        state = test_client.get(f"/sessions/{competitive_scene.scene_id}")
        assert state.json()["game_over"] is True

    @pytest.mark.api
    def test_turn_after_game_over_is_conflict(self, test_client, oracle, competitive_scene):
        oracle.replies.extend([duel(opponent=-10), narration("Silence.")])
        url = f"/sessions/{competitive_scene.scene_id}/turn"
        test_client.post(url, json={"player_actions": ["strike"], "opponent_actions": ["parry"]})

        response = test_client.post(url, json={"player_actions": ["strike"], "opponent_actions": ["parry"]})

        assert response.status_code == 409
        assert response.json()["error"] == "GameAlreadyOver"

    @pytest.mark.api
    def test_over_budget(self, test_client, oracle, competitive_scene):
        oracle.costs.update({"leap": 3, "slash": 2})

        response = test_client.post(
            f"/sessions/{competitive_scene.scene_id}/turn",
            json={"player_actions": ["leap", "slash"], "opponent_actions": ["parry"]},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "BudgetExceeded"
        assert body["extra"] == {"side": "player", "cost": 5, "budget": 3, "costs": [3, 2]}

    @pytest.mark.api
    def test_unknown_scene(self, test_client):
        response = test_client.post("/sessions/missing/turn", json={"player_actions": ["look"]})

        assert response.status_code == 404
        assert response.json()["extra"] == {"scene_id": "missing"}

    @pytest.mark.api
    def test_oracle_failure_is_bad_gateway(self, test_client, oracle, competitive_scene):
        oracle.replies.append(OracleFailure("oracle unreachable"))

        response = test_client.post(
            f"/sessions/{competitive_scene.scene_id}/turn",
            json={"player_actions": ["strike"], "opponent_actions": ["parry"]},
        )

        assert response.status_code == 502
        state = test_client.get(f"/sessions/{competitive_scene.scene_id}").json()
        assert state["round"] == 0
        assert state["history"] == []

    @pytest.mark.api
    def test_persistence_failure_is_server_error(self, oracle, competitive_scene):
        store = AsyncMock()
        store.load.return_value = competitive_scene
        store.save.side_effect = StoreWriteError(context=StoreOperationContext("scenes.save"))
        client = TestClient(create_app(resolver=make_resolver(store, oracle), cfg=ServerConfig()))
        oracle.replies.append(duel())

        response = client.post(
            f"/sessions/{competitive_scene.scene_id}/turn",
            json={"player_actions": ["strike"], "opponent_actions": ["parry"]},
        )

        assert response.status_code == 500
        assert response.json()["error"] == "PersistenceFailure"

    @pytest.mark.api
    @pytest.mark.parametrize("actions", [[], ["  "], None])
    def test_player_actions_required(self, test_client, sandbox_scene, actions):
        response = test_client.post(f"/sessions/{sandbox_scene.scene_id}/turn", json={"player_actions": actions})

        assert response.status_code == 422

    @pytest.mark.unit
    def test_malformed_maps_like_oracle_failure(self):
        assert status_for(OracleMalformed("bad")) == 502
        assert status_for(PersistenceFailure("x")) == 500


# ============================================================================
# VOICE TURNS
# ============================================================================


class TestVoiceTurn:
    @pytest.mark.api
    def test_invalid_base64(self, test_client, sandbox_scene):
        response = test_client.post(
            f"/sessions/{sandbox_scene.scene_id}/turn/voice",
            json={"audio_base64": "%%% not base64 %%%"},
        )

        assert response.status_code == 422

    @pytest.mark.api
    def test_no_transcriber_is_bad_gateway(self, test_client, sandbox_scene):
        audio = base64.b64encode(b"RIFF").decode("ascii")

        response = test_client.post(
            f"/sessions/{sandbox_scene.scene_id}/turn/voice",
            json={"audio_base64": audio},
        )

        assert response.status_code == 502
        assert response.json()["error"] == "TranscriptionFailure"

    @pytest.mark.api
    def test_voice_turn(self, store, oracle, sandbox_scene):
        transcriber = AsyncMock()
        transcriber.transcribe.return_value = "open the gate"
        resolver = make_resolver(store, oracle, transcriber=transcriber)
        client = TestClient(create_app(resolver=resolver, cfg=ServerConfig()))
        oracle.replies.append(story("The gate creaks."))

        response = client.post(
            f"/sessions/{sandbox_scene.scene_id}/turn/voice",
            json={"audio_base64": base64.b64encode(b"RIFF").decode("ascii"), "filename": "take.wav"},
        )

        assert response.status_code == 200
        assert response.json()["transcript"] == "open the gate"
        assert response.json()["player_actions"] == ["open the gate"]
