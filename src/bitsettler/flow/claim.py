"""
Claim-a-character flow.

    SEARCHING_SETTLEMENT -> SELECTING_CHARACTER -> SELECTING_PROFESSIONS
        -> CLAIMING -> DONE | FAILED

The settlement comes from the debounced search or from an invite code.
Professions are optional; ``skip_professions`` claims straight away.
"""

from __future__ import annotations

import logging

from bitsettler.flow.controller import FlowStep, SearchingFlowController
from bitsettler.flow.errors import FlowValidationError, GatewayError, TransportError
from bitsettler.flow.invite_codes import is_valid_invite_code, normalize_invite_code
from bitsettler.flow.models import Settlement
from bitsettler.flow.professions import ActiveSlot, ProfessionSlots

logger = logging.getLogger(__name__)


class ClaimFlowController(SearchingFlowController):
    """Lets a new account pick a settlement and claim one of its characters."""

    def _claim_steps(self) -> tuple[FlowStep, ...]:
        return (FlowStep.SELECTING_CHARACTER, FlowStep.SELECTING_PROFESSIONS)

    # -------------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------------

    async def select_settlement(self, settlement: Settlement | str) -> bool:
        """
        Pick a settlement and load its unclaimed characters.

        The previous character pick is dropped before anything is awaited.
        If another settlement is picked while this one is loading, this
        response is discarded.
        """
        if self.step not in (FlowStep.SEARCHING_SETTLEMENT, FlowStep.SELECTING_CHARACTER):
            self._set_inline_error("Finish or cancel the current step first")
            return False
        chosen = self._find_result(settlement)
        if chosen is None:
            self._set_inline_error("That settlement is no longer in the results")
            return False

        generation = self.generation
        self.selection.select_settlement(chosen)
        self.professions = ProfessionSlots(())
        self.candidates = []
        self.character_filter = ""
        self.error = None
        self.busy = True
        self._notify()

        try:
            candidates = await self.gateway.fetch_claimable_characters(chosen.id)
        except (GatewayError, TransportError) as e:
            if not self._is_stale(generation) and self._is_current(chosen):
                self.busy = False
                self._set_inline_error(str(e))
            return False

        if self._is_stale(generation) or not self._is_current(chosen):
            logger.debug("Discarding stale character list for settlement %s", chosen.id)
            return False
        self.busy = False
        self.candidates = candidates
        self._transition(FlowStep.SELECTING_CHARACTER)
        return True

    def _is_current(self, settlement: Settlement) -> bool:
        current = self.selection.selected_settlement
        return current is not None and current.id == settlement.id

    async def use_invite_code(self, code: str) -> bool:
        """Resolve an invite code to its settlement and characters."""
        normalized = normalize_invite_code(code)
        if not is_valid_invite_code(normalized):
            self._set_inline_error("Invite codes are 6 characters, like ABC234")
            return False
        if self.step is not FlowStep.SEARCHING_SETTLEMENT:
            self._set_inline_error("Finish or cancel the current step first")
            return False

        generation = self.generation
        self.busy = True
        self._notify()
        try:
            joined = await self.gateway.join_by_invite_code(normalized)
        except (GatewayError, TransportError) as e:
            if self._is_stale(generation):
                return False
            self.busy = False
            self._set_inline_error(str(e))
            return False

        if self._is_stale(generation):
            logger.debug("Dropping invite lookup for %s after cancel", normalized)
            return False
        self.busy = False
        self.search.cancel()
        self.selection.select_settlement(joined.settlement)
        self.professions = ProfessionSlots(())
        self.candidates = list(joined.characters)
        self._transition(FlowStep.SELECTING_CHARACTER)
        return True

    # -------------------------------------------------------------------------
    # Professions
    # -------------------------------------------------------------------------

    def continue_to_professions(self) -> bool:
        if self.step is not FlowStep.SELECTING_CHARACTER:
            return False
        if self.selection.selected_character is None:
            self._set_inline_error("Select a character to claim")
            return False
        self._transition(FlowStep.SELECTING_PROFESSIONS)
        return True

    def back_to_characters(self) -> None:
        if self.step is FlowStep.SELECTING_PROFESSIONS:
            self._transition(FlowStep.SELECTING_CHARACTER)

    def toggle_profession(self, label: str) -> bool:
        if self.step is not FlowStep.SELECTING_PROFESSIONS:
            return False
        try:
            self.professions.toggle(label)
        except FlowValidationError as e:
            self._set_inline_error(str(e))
            return False
        self._sync_professions()
        return True

    def assign_profession(self, slot: ActiveSlot, label: str | None) -> bool:
        if self.step is not FlowStep.SELECTING_PROFESSIONS:
            return False
        try:
            self.professions.assign(slot, label)
        except FlowValidationError as e:
            self._set_inline_error(str(e))
            return False
        self._sync_professions()
        return True

    def focus_slot(self, slot: ActiveSlot) -> None:
        self.professions.focus(slot)
        self._notify()

    def _sync_professions(self) -> None:
        self.selection.primary_profession = self.professions.primary
        self.selection.secondary_profession = self.professions.secondary
        self.error = None
        self._notify()

    async def skip_professions(self) -> bool:
        """Claim without choosing professions."""
        self.professions.clear()
        self._sync_professions()
        return await self.claim()
