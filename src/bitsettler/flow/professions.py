"""
Primary / secondary profession picking.

The options are the character's own skills ranked by level. Which slot a
click lands in is decided by ``ActiveSlot``, an explicit field that only the
transitions below change:

- clicking an assigned label clears it and makes its slot active;
- clicking an unassigned label fills the first open slot, primary first,
  and makes that slot active;
- with both slots full, a new label replaces the active slot;
- ``focus`` changes the active slot directly.

After every transition primary and secondary differ unless both are empty.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from bitsettler.flow.errors import FlowValidationError

DEFAULT_PROFESSION = "Settler"


class ActiveSlot(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ProfessionSlots:
    """Two-slot profession picker over a fixed list of options."""

    def __init__(self, options: Iterable[str]):
        self.options: tuple[str, ...] = tuple(options)
        self.primary: str | None = None
        self.secondary: str | None = None
        self.active_slot = ActiveSlot.PRIMARY

    def __repr__(self) -> str:
        return (
            f"ProfessionSlots(primary={self.primary!r}, secondary={self.secondary!r}, "
            f"active={self.active_slot.value})"
        )

    def _check_option(self, label: str) -> None:
        if label not in self.options:
            raise FlowValidationError(f"{label} is not one of this character's skills")

    def get(self, slot: ActiveSlot) -> str | None:
        return self.primary if slot is ActiveSlot.PRIMARY else self.secondary

    def _set(self, slot: ActiveSlot, label: str | None) -> None:
        if slot is ActiveSlot.PRIMARY:
            self.primary = label
        else:
            self.secondary = label

    def focus(self, slot: ActiveSlot) -> None:
        self.active_slot = slot

    def toggle(self, label: str) -> None:
        """Apply one click on a profession label."""
        self._check_option(label)

        if label == self.primary:
            self.primary = None
            self.active_slot = ActiveSlot.PRIMARY
        elif label == self.secondary:
            self.secondary = None
            self.active_slot = ActiveSlot.SECONDARY
        elif self.primary is None:
            self.primary = label
            self.active_slot = ActiveSlot.PRIMARY
        elif self.secondary is None:
            self.secondary = label
            self.active_slot = ActiveSlot.SECONDARY
        else:
            self._set(self.active_slot, label)

    def assign(self, slot: ActiveSlot, label: str | None) -> None:
        """Place ``label`` in ``slot``, swapping if it sits in the other slot."""
        other = ActiveSlot.SECONDARY if slot is ActiveSlot.PRIMARY else ActiveSlot.PRIMARY
        if label is not None:
            self._check_option(label)
            if self.get(other) == label:
                self._set(other, self.get(slot))
        self._set(slot, label)
        self.active_slot = slot

    def clear(self) -> None:
        self.primary = None
        self.secondary = None
        self.active_slot = ActiveSlot.PRIMARY


def display_profession(primary: str | None, top_profession: str | None = None) -> str:
    """Profession to show for a member: their pick, else the computed top one."""
    return primary or top_profession or DEFAULT_PROFESSION


def format_profession_display(
    primary: str | None, secondary: str | None, top_profession: str | None = None
) -> str:
    """``"Smithing / Mining"`` style label; the secondary only when chosen."""
    shown = display_profession(primary, top_profession)
    if secondary:
        return f"{shown} / {secondary}"
    return shown
