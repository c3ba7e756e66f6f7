"""
Shared pytest fixtures for the Chronicle Server test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary SQLite scene stores
- A scripted oracle double and a resolver wired around it
- Pre-built scenes in each mode
- A FastAPI TestClient over an injected resolver

Coroutines are driven with ``asyncio.run`` inside the tests.
"""

import asyncio
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from chronicle_server.api.server import create_app
from chronicle_server.config import ServerConfig, use_test_store
from chronicle_server.game.memory import MemoryWindow
from chronicle_server.game.session import Mode, Participant, Scene
from chronicle_server.store.scene_store import SqliteSceneStore
from tests.fakes import ScriptedOracle, make_resolver

# ============================================================================
# STORE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Point the runtime store configuration at a per-test database file.

    Yields:
        Path to the temporary database file
    """
    with use_test_store(tmp_path / "scenes.db") as db_path:
        yield db_path


@pytest.fixture(scope="function")
def store(temp_db_path: Path) -> SqliteSceneStore:
    """An empty SQLite scene store in ``tmp_path``."""
    return SqliteSceneStore(temp_db_path)


# ============================================================================
# ORACLE AND RESOLVER FIXTURES
# ============================================================================


@pytest.fixture
def oracle() -> ScriptedOracle:
    """Scripted oracle with no queued replies; tests append what they need."""
    return ScriptedOracle()


@pytest.fixture
def resolver(store, oracle):
    """Turn resolver over the temp store and scripted oracle."""
    return make_resolver(store, oracle)


# ============================================================================
# SCENE FIXTURES
# ============================================================================


def _scene(mode: Mode, *, player_hp=0, opponent=None) -> Scene:
    return Scene(
        scene_id=Scene.new_id(),
        mode=mode,
        player=Participant("Aria", hp=player_hp, max_hp=player_hp),
        opponent=opponent,
        memory=MemoryWindow(capacity=5),
        setting="A drowned cathedral",
    )


@pytest.fixture
def sandbox_scene(store) -> Scene:
    """A stored sandbox scene."""
    scene = _scene(Mode.SANDBOX)
    asyncio.run(store.save(scene))
    return scene


@pytest.fixture
def competitive_scene(store) -> Scene:
    """A stored competitive scene, both sides at 10/10 HP."""
    scene = _scene(Mode.COMPETITIVE, player_hp=10, opponent=Participant("Brom", hp=10, max_hp=10))
    asyncio.run(store.save(scene))
    return scene


@pytest.fixture
def combat_scene(store) -> Scene:
    """A stored sandbox_combat scene against a 4 HP wolf."""
    scene = _scene(Mode.SANDBOX_COMBAT, player_hp=10, opponent=Participant("Grey Wolf", hp=4, max_hp=4))
    asyncio.run(store.save(scene))
    return scene


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def test_client(resolver) -> TestClient:
    """FastAPI TestClient over an app using the injected resolver."""
    return TestClient(create_app(resolver=resolver, cfg=ServerConfig()))
