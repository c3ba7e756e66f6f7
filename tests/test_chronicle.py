"""Tests for the HTML chronicle export."""

import pytest

from chronicle_server.chronicle import chronicle_filename, render_chronicle
from chronicle_server.game.session import Mode, Participant, Scene


def _scene(**overrides) -> Scene:
    scene = Scene(
        scene_id="abc123",
        mode=Mode.COMPETITIVE,
        player=Participant("Aria", hp=6, max_hp=10),
        opponent=Participant("Brom", hp=0, max_hp=10),
        setting="A drowned cathedral",
        round=3,
        **overrides,
    )
    scene.history = [
        {"role": "assistant", "content": "Rain hammers the nave.", "speaker": "director"},
        {"role": "user", "content": 'ARIA ACTIONS: "feint; slash"', "speaker": "player"},
        {"role": "user", "content": 'BROM ACTIONS: "block"', "speaker": "opponent"},
        {"role": "assistant", "content": "Brom staggers.", "speaker": "director"},
    ]
    return scene


@pytest.mark.unit
def test_entries_are_attributed_in_order():
    page = render_chronicle(_scene(), director_name="The Grand Tactician")

    director = '<strong class="director">The Grand Tactician:</strong> Rain hammers the nave.'
    player = '<strong class="player">Aria:</strong> feint; slash'
    opponent = '<strong class="opponent">Brom:</strong> block'
    assert page.index(director) < page.index(player) < page.index(opponent)
    assert "Round 3 | Aria HP: 6 | Brom HP: 0" in page
    assert "<h3>Setting: A drowned cathedral</h3>" in page


@pytest.mark.unit
def test_text_is_escaped():
    scene = _scene()
    scene.history.append({"role": "user", "content": 'ARIA ACTION: "<script>alert(1)</script>"', "speaker": "player"})
    scene.player.name = "Aria <b>"

    page = render_chronicle(scene, director_name="<Director>")

    assert "<script>" not in page
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in page
    assert "&lt;Director&gt;" in page
    assert "Aria &lt;b&gt;" in page


@pytest.mark.unit
def test_outcome_shown_when_game_over():
    page = render_chronicle(
        _scene(game_over=True, final_reason="Brom was vanquished by Aria in round 3."),
        director_name="D",
    )

    assert "Outcome: Brom was vanquished by Aria in round 3." in page


@pytest.mark.unit
def test_sandbox_has_no_hp_line():
    scene = Scene(scene_id="s", mode=Mode.SANDBOX, player=Participant("Aria"))

    page = render_chronicle(scene, director_name="D")

    assert "Chronicle (Sandbox)" in page
    assert "HP:" not in page


@pytest.mark.unit
def test_filename():
    assert chronicle_filename(_scene()) == "chronicle_abc123.html"
