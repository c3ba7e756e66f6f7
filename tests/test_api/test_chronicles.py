"""
Tests for root, health, persona and chronicle endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from chronicle_server import __version__
from chronicle_server.api.server import create_app
from chronicle_server.config import ServerConfig
from tests.fakes import story


@pytest.mark.api
def test_root(test_client):
    response = test_client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Chronicle Server API", "version": __version__}


@pytest.mark.api
def test_health(test_client):
    response = test_client.get("/health")

    assert response.json() == {"status": "ok", "personas": 2}


@pytest.mark.api
def test_list_personas(test_client):
    response = test_client.get("/personas")

    assert response.status_code == 200
    assert response.json()["personas"] == [
        {"persona_id": "the_conductor", "name": "The Conductor", "voice": "nova"},
        {"persona_id": "grand_tactician", "name": "The Grand Tactician", "voice": "onyx"},
    ]


@pytest.mark.api
def test_list_chronicles(test_client, sandbox_scene, competitive_scene):
    response = test_client.get("/chronicles")

    assert response.status_code == 200
    chronicles = response.json()["chronicles"]
    assert {c["scene_id"] for c in chronicles} == {sandbox_scene.scene_id, competitive_scene.scene_id}
    duel = next(c for c in chronicles if c["scene_id"] == competitive_scene.scene_id)
    assert duel["opponent_name"] == "Brom"
    assert duel["mode"] == "competitive"


@pytest.mark.api
def test_export_chronicle(test_client, oracle, sandbox_scene):
    oracle.replies.append(story("The candles gutter."))
    test_client.post(f"/sessions/{sandbox_scene.scene_id}/turn", json={"player_actions": ["blow out the candles"]})

    response = test_client.get(f"/chronicles/{sandbox_scene.scene_id}/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert f'filename="chronicle_{sandbox_scene.scene_id}.html"' in response.headers["content-disposition"]
    assert "The Grand Tactician" in response.text
    assert "blow out the candles" in response.text
    assert "The candles gutter." in response.text


@pytest.mark.api
def test_export_unknown_scene(test_client):
    response = test_client.get("/chronicles/missing/export")

    assert response.status_code == 404


@pytest.mark.api
def test_docs_follow_production_flag(resolver):
    cfg = ServerConfig()
    cfg.security.production = True

    client = TestClient(create_app(resolver=resolver, cfg=cfg))

    assert client.get("/docs").status_code == 404
    assert client.get("/openapi.json").status_code == 404
