"""Tests for the memory window."""

import pytest

from chronicle_server.game.memory import MEMORY_HEADER, MemoryWindow


@pytest.mark.unit
def test_empty_window_renders_empty_string():
    assert MemoryWindow(capacity=3).render() == ""


@pytest.mark.unit
def test_render_has_header_and_one_line_per_entry():
    window = MemoryWindow(capacity=3)
    window.push("first")
    window.push("second")

    assert window.render() == f"{MEMORY_HEADER}\nfirst\nsecond"


@pytest.mark.unit
def test_never_exceeds_capacity_and_evicts_oldest_first():
    window = MemoryWindow(capacity=3)
    for i in range(1, 8):
        window.push(f"turn {i}")
        assert len(window) <= 3

    assert window.entries() == ["turn 5", "turn 6", "turn 7"]


@pytest.mark.unit
def test_restored_entries_are_trimmed_to_capacity():
    window = MemoryWindow(capacity=2, entries=["a", "b", "c"])

    assert window.entries() == ["b", "c"]


@pytest.mark.unit
def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        MemoryWindow(capacity=0)
