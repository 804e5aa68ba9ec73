"""
Switch-character flow.

    LOADING_CANDIDATES -> SELECTING_CHARACTER -> CLAIMING -> DONE | FAILED

The caller already owns a character. The claim releases it and takes the
new one in a single server-side transaction.
"""

from __future__ import annotations

from bitsettler.flow.controller import FlowController, FlowStep
from bitsettler.flow.errors import GatewayError, TransportError


class SwitchFlowController(FlowController):
    """Moves an account from its current character to another unclaimed one."""

    initial_step = FlowStep.LOADING_CANDIDATES

    def _replaces_character_id(self) -> str | None:
        return self.current_character.id if self.current_character else None

    async def load(self) -> bool:
        """Fetch the switch candidates for the caller's settlement."""
        generation = self.generation
        self.busy = True
        self._transition(FlowStep.LOADING_CANDIDATES)
        try:
            result = await self.gateway.fetch_switch_candidates()
        except (GatewayError, TransportError) as e:
            if self._is_stale(generation):
                return False
            self.busy = False
            self._fail(FlowStep.LOADING_CANDIDATES, str(e))
            return False

        if self._is_stale(generation):
            return False
        self.busy = False
        self.selection.select_settlement(result.settlement)
        self.current_character = result.current_character
        current_id = result.current_character.id if result.current_character else None
        self.candidates = [c for c in result.available_characters if c.id != current_id]
        self._transition(FlowStep.SELECTING_CHARACTER)
        return True

    async def _retry_step(self, step: FlowStep) -> None:
        if step is FlowStep.LOADING_CANDIDATES:
            await self.load()
        else:
            await super()._retry_step(step)
