"""Tests for the status effect ledger."""

import pytest

from chronicle_server.game.effects import OPPONENT, PLAYER, StatusEffect, StatusEffectLedger


def _effect(name="Stunned", duration=2, target=PLAYER) -> StatusEffect:
    return StatusEffect(name=name, duration=duration, target=target)


class TestStatusEffectValidation:
    @pytest.mark.unit
    @pytest.mark.parametrize("duration", [0, -1])
    def test_non_positive_duration_rejected(self, duration):
        with pytest.raises(ValueError):
            _effect(duration=duration)

    @pytest.mark.unit
    def test_unknown_target_rejected(self):
        with pytest.raises(ValueError):
            _effect(target="bystander")

    @pytest.mark.unit
    def test_blank_name_rejected(self):
        with pytest.raises(ValueError):
            _effect(name="  ")


class TestTick:
    @pytest.mark.unit
    @pytest.mark.parametrize("duration", [1, 2, 5])
    def test_effect_survives_exactly_duration_ticks(self, duration):
        ledger = StatusEffectLedger()
        ledger.apply([_effect(duration=duration)])

        for _ in range(duration - 1):
            ledger.tick()
        assert [e.name for e in ledger.active(PLAYER)] == ["Stunned"]

        ledger.tick()
        assert ledger.active(PLAYER) == []

    @pytest.mark.unit
    def test_tick_decrements_every_effect_once(self):
        ledger = StatusEffectLedger()
        ledger.apply([_effect("A", 3), _effect("B", 2, OPPONENT)])

        ledger.tick()

        assert [(e.name, e.duration) for e in ledger.active(PLAYER)] == [("A", 2)]
        assert [(e.name, e.duration) for e in ledger.active(OPPONENT)] == [("B", 1)]

    @pytest.mark.unit
    def test_tick_returns_expired_effects(self):
        ledger = StatusEffectLedger()
        ledger.apply([_effect("Short", 1), _effect("Long", 3)])

        expired = ledger.tick()

        assert [e.name for e in expired] == ["Short"]
        assert len(ledger) == 1

    @pytest.mark.unit
    def test_apply_copies_effects(self):
        original = _effect(duration=2)
        ledger = StatusEffectLedger()
        ledger.apply([original])

        ledger.tick()

        assert original.duration == 2


class TestOrderingAndStacking:
    @pytest.mark.unit
    def test_duplicates_stack_in_insertion_order(self):
        ledger = StatusEffectLedger()
        ledger.apply([_effect("Bleeding", 1), _effect("Bleeding", 3)])

        assert [e.duration for e in ledger.active(PLAYER)] == [1, 3]
        ledger.tick()
        assert [e.duration for e in ledger.active(PLAYER)] == [2]

    @pytest.mark.unit
    def test_clear_only_drops_target(self):
        ledger = StatusEffectLedger()
        ledger.apply([_effect("Shielded"), _effect("Hexed", target=OPPONENT)])

        ledger.clear(OPPONENT)

        assert ledger.active(OPPONENT) == []
        assert [e.name for e in ledger.active(PLAYER)] == ["Shielded"]

    @pytest.mark.unit
    def test_describe(self):
        ledger = StatusEffectLedger()
        assert ledger.describe(PLAYER) == "none"

        ledger.apply([_effect("Stunned", 1), _effect("Bleeding", 2)])
        assert ledger.describe(PLAYER) == "Stunned (1), Bleeding (2)"

    @pytest.mark.unit
    def test_list_round_trip_keeps_order(self):
        ledger = StatusEffectLedger()
        ledger.apply([_effect("A", 1), _effect("B", 2, OPPONENT), _effect("C", 3)])

        restored = StatusEffectLedger.from_list(ledger.to_list())

        assert restored.to_list() == ledger.to_list()
