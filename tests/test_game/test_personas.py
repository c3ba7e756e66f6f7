"""Tests for the persona registry."""

from pathlib import Path

import pytest

from chronicle_server.game.errors import UnknownPersona
from chronicle_server.game.personas import Persona, PersonaRegistry

SHIPPED_PERSONAS = Path(__file__).resolve().parents[2] / "data" / "personas"


@pytest.mark.unit
def test_builtin_personas():
    registry = PersonaRegistry()

    assert "grand_tactician" in registry
    assert "the_conductor" in registry
    assert [p.name for p in registry.directors()] == ["The Conductor", "The Grand Tactician"]


@pytest.mark.unit
def test_unknown_persona():
    with pytest.raises(UnknownPersona) as exc_info:
        PersonaRegistry().get("nobody")

    assert exc_info.value.persona_id == "nobody"


@pytest.mark.unit
def test_shipped_persona_directory_loads():
    registry = PersonaRegistry()

    assert registry.load_directory(SHIPPED_PERSONAS) >= 1
    assert registry.get("the_chronicler").voice == "fable"


@pytest.mark.unit
def test_yaml_persona_defaults(tmp_path):
    (tmp_path / "innkeeper.yml").write_text(
        "name: Old Maren\nsystem_prompt: You keep the inn.\n", encoding="utf-8"
    )
    (tmp_path / "director.yaml").write_text(
        "name: The Storm Director\nsystem_prompt: You direct storms.\nmodel: llama3.1:8b\n",
        encoding="utf-8",
    )
    registry = PersonaRegistry(personas=())

    assert registry.load_directory(tmp_path) == 2

    innkeeper = registry.get("innkeeper")
    assert innkeeper.role == "npc"
    assert innkeeper.voice == "shimmer"
    assert innkeeper.model is None

    director = registry.get("director")
    assert director.role == "gm"
    assert director.model == "llama3.1:8b"
    assert [p.persona_id for p in registry.directors()] == ["director"]


@pytest.mark.unit
def test_bad_files_are_skipped(tmp_path):
    (tmp_path / "broken.yaml").write_text("name: [unclosed\n", encoding="utf-8")
    (tmp_path / "list.yaml").write_text("- a\n- b\n", encoding="utf-8")
    (tmp_path / "incomplete.yaml").write_text("name: Nobody\n", encoding="utf-8")
    (tmp_path / "good.yaml").write_text("name: Good\nrole: gm\nsystem_prompt: Fine.\n", encoding="utf-8")
    registry = PersonaRegistry(personas=())

    assert registry.load_directory(tmp_path) == 1
    assert len(registry) == 1
    assert "good" in registry


@pytest.mark.unit
def test_missing_directory_loads_nothing(tmp_path):
    assert PersonaRegistry().load_directory(tmp_path / "absent") == 0


@pytest.mark.unit
def test_file_persona_replaces_builtin(tmp_path):
    (tmp_path / "grand_tactician.yaml").write_text(
        "name: The Grand Tactician\nrole: gm\nsystem_prompt: Replaced.\n", encoding="utf-8"
    )
    registry = PersonaRegistry()
    registry.load_directory(tmp_path)

    assert registry.get("grand_tactician").system_prompt == "Replaced."


@pytest.mark.unit
def test_to_dict():
    persona = Persona(persona_id="p", name="P", system_prompt="S")

    assert persona.to_dict() == {
        "persona_id": "p",
        "name": "P",
        "system_prompt": "S",
        "role": "gm",
        "model": None,
        "voice": "shimmer",
    }
