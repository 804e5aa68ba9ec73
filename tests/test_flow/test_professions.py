"""Tests for the two-slot profession picker and profession labels."""

import random

import pytest

from bitsettler.flow.errors import FlowValidationError
from bitsettler.flow.professions import (
    ActiveSlot,
    ProfessionSlots,
    display_profession,
    format_profession_display,
)

OPTIONS = ("Smithing", "Mining", "Forestry", "Cooking")


@pytest.fixture
def slots() -> ProfessionSlots:
    return ProfessionSlots(OPTIONS)


class TestToggle:
    """Click semantics."""

    def test_first_click_fills_primary(self, slots):
        slots.toggle("Mining")

        assert slots.primary == "Mining"
        assert slots.secondary is None
        assert slots.active_slot is ActiveSlot.PRIMARY

    def test_second_click_fills_secondary(self, slots):
        slots.toggle("Mining")
        slots.toggle("Smithing")

        assert (slots.primary, slots.secondary) == ("Mining", "Smithing")
        assert slots.active_slot is ActiveSlot.SECONDARY

    def test_clicking_assigned_label_clears_it(self, slots):
        slots.toggle("Mining")
        slots.toggle("Smithing")

        slots.toggle("Mining")

        assert slots.primary is None
        assert slots.secondary == "Smithing"
        assert slots.active_slot is ActiveSlot.PRIMARY

    def test_full_slots_replace_active_slot(self, slots):
        slots.toggle("Mining")
        slots.toggle("Smithing")
        slots.focus(ActiveSlot.PRIMARY)

        slots.toggle("Cooking")

        assert (slots.primary, slots.secondary) == ("Cooking", "Smithing")

    def test_cleared_primary_is_refilled_first(self, slots):
        slots.toggle("Mining")
        slots.toggle("Smithing")
        slots.toggle("Mining")

        slots.toggle("Forestry")

        assert (slots.primary, slots.secondary) == ("Forestry", "Smithing")

    def test_unknown_label_raises(self, slots):
        with pytest.raises(FlowValidationError):
            slots.toggle("Sailing")


class TestAssign:
    """Direct slot assignment."""

    def test_assign_moves_label_between_slots(self, slots):
        slots.assign(ActiveSlot.PRIMARY, "Mining")
        slots.assign(ActiveSlot.SECONDARY, "Mining")

        assert slots.primary is None
        assert slots.secondary == "Mining"

    def test_assign_swaps_when_both_set(self, slots):
        slots.assign(ActiveSlot.PRIMARY, "Mining")
        slots.assign(ActiveSlot.SECONDARY, "Smithing")

        slots.assign(ActiveSlot.SECONDARY, "Mining")

        assert (slots.primary, slots.secondary) == ("Smithing", "Mining")

    def test_assign_none_clears(self, slots):
        slots.assign(ActiveSlot.SECONDARY, "Mining")
        slots.assign(ActiveSlot.SECONDARY, None)

        assert slots.secondary is None
        assert slots.active_slot is ActiveSlot.SECONDARY

    def test_clear(self, slots):
        slots.toggle("Mining")
        slots.clear()

        assert slots.primary is None
        assert slots.secondary is None
        assert slots.active_slot is ActiveSlot.PRIMARY


class TestExclusivity:
    """Primary and secondary never hold the same label."""

    def test_random_interaction_sequences(self):
        rng = random.Random(20240611)
        labels = list(OPTIONS) + [None]

        for _ in range(500):
            slots = ProfessionSlots(OPTIONS)
            for _ in range(30):
                action = rng.choice(("toggle", "assign", "focus"))
                if action == "toggle":
                    slots.toggle(rng.choice(OPTIONS))
                elif action == "assign":
                    slots.assign(rng.choice(list(ActiveSlot)), rng.choice(labels))
                else:
                    slots.focus(rng.choice(list(ActiveSlot)))

                assert slots.primary is None or slots.primary != slots.secondary
                assert slots.primary in labels
                assert slots.secondary in labels


class TestDisplay:
    """Profession labels shown next to a member."""

    def test_chosen_primary_wins(self):
        assert display_profession("Smithing", "Mining") == "Smithing"

    def test_falls_back_to_top_then_default(self):
        assert display_profession(None, "Mining") == "Mining"
        assert display_profession(None) == "Settler"

    def test_format_with_secondary(self):
        assert format_profession_display("Smithing", "Mining") == "Smithing / Mining"
        assert format_profession_display(None, None, "Cooking") == "Cooking"
