"""
Onboarding flow for a user bringing a new settlement in.

    SEARCHING_SETTLEMENT -> CONFIRMING_SETTLEMENT -> CONNECTING_AND_SYNCING
        -> SHOWING_INVITE_CODE -> DONE

While the sync runs a ticker publishes simulated ``PROGRESS`` events. Only
the sync result decides between ``completed`` and ``error``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from bitsettler.config import FlowSettings
from bitsettler.flow.controller import FlowStep, SearchingFlowController
from bitsettler.flow.errors import (
    GENERIC_SYNC_FAILURE,
    GENERIC_TRANSPORT_MESSAGE,
    GatewayError,
    SyncFailure,
    TransportError,
)
from bitsettler.flow.events import FlowEventKind
from bitsettler.flow.gateway import SettlementGateway
from bitsettler.flow.models import InviteCode, Settlement, SyncResult, SyncStats
from bitsettler.flow.progress import (
    SyncProgress,
    SyncProgressSimulator,
    SyncStage,
    terminal_progress,
)
from bitsettler.flow.store import MemoryKeyValueStore, SettlementSelectionStore

logger = logging.getLogger(__name__)

SYNC_MODE = "full"


class OnboardingFlowController(SearchingFlowController):
    """
    Connects a settlement: search, confirm, sync, then show its invite code.

    Args:
        gateway: Server operations.
        store: Selection cache. The invite code is read through it.
        settings: Timing configuration. Defaults to ``config.flow``.
        sync_timeout: Optional overall limit for the sync call in seconds,
            on top of the HTTP client's own timeout.
    """

    def __init__(
        self,
        gateway: SettlementGateway,
        *,
        store: SettlementSelectionStore | None = None,
        settings: FlowSettings | None = None,
        sync_timeout: float | None = None,
    ):
        selection_store = store or SettlementSelectionStore(MemoryKeyValueStore(), gateway)
        super().__init__(gateway, store=selection_store, settings=settings)
        self.selection_store = selection_store
        self.sync_timeout = sync_timeout
        self.simulator = SyncProgressSimulator(
            connecting=self.settings.connecting_seconds,
            syncing_members=self.settings.syncing_members_seconds,
            syncing_citizens=self.settings.syncing_citizens_seconds,
        )
        self.progress: SyncProgress | None = None
        self.sync_stats: SyncStats | None = None
        self.invite_code: InviteCode | None = None
        self._ticker: asyncio.Task[None] | None = None

    def _state_extras(self) -> dict[str, Any]:
        extras = super()._state_extras()
        extras.update(progress=self.progress, invite_code=self.invite_code)
        return extras

    # -------------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------------

    def select_settlement(self, settlement: Settlement | str) -> bool:
        if self.step is not FlowStep.SEARCHING_SETTLEMENT:
            self._set_inline_error("Finish or cancel the current step first")
            return False
        chosen = self._find_result(settlement)
        if chosen is None:
            self._set_inline_error("That settlement is no longer in the results")
            return False
        self.selection.select_settlement(chosen)
        self._transition(FlowStep.CONFIRMING_SETTLEMENT)
        return True

    async def confirm(self) -> bool:
        """Start syncing the selected settlement."""
        if self.step is not FlowStep.CONFIRMING_SETTLEMENT:
            self._set_inline_error("Nothing to confirm at this step")
            return False
        settlement = self.selection.selected_settlement
        if settlement is None:
            self._set_inline_error("Select a settlement first")
            return False
        return await self._run_sync(settlement)

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    def _emit_progress(self) -> None:
        self.events.emit(FlowEventKind.PROGRESS, self.state)

    async def _tick_progress(self) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            await asyncio.sleep(self.settings.progress_tick_seconds)
            progress = self.simulator.progress_at(loop.time() - started)
            if self.progress is None or progress.stage is not self.progress.stage:
                self.progress = progress
                self._emit_progress()

    async def _stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
            await asyncio.gather(ticker, return_exceptions=True)

    async def _call_sync(self, settlement_id: str) -> SyncResult:
        call = self.gateway.sync_settlement(settlement_id, SYNC_MODE)
        if self.sync_timeout is None:
            return await call
        return await asyncio.wait_for(call, self.sync_timeout)

    async def _run_sync(self, settlement: Settlement) -> bool:
        generation = self.generation
        self.busy = True
        self.sync_stats = None
        self.invite_code = None
        self.progress = SyncProgress.for_stage(SyncStage.CONNECTING)
        self._transition(FlowStep.CONNECTING_AND_SYNCING)
        self._emit_progress()
        self._ticker = asyncio.get_running_loop().create_task(self._tick_progress())

        result: SyncResult | None = None
        failure: str | None = None
        try:
            result = await self._call_sync(settlement.id)
            if not result.success:
                raise SyncFailure(result.error or GENERIC_SYNC_FAILURE)
        except TimeoutError:
            logger.warning("Sync of settlement %s timed out", settlement.id)
            failure = GENERIC_TRANSPORT_MESSAGE
        except TransportError as e:
            failure = e.message
        except SyncFailure as e:
            failure = str(e)
        except Exception:
            logger.exception("Unexpected error while syncing settlement %s", settlement.id)
            failure = GENERIC_TRANSPORT_MESSAGE
        finally:
            await self._stop_ticker()
            self.busy = False

        if self._is_stale(generation):
            logger.info("Dropping sync result for settlement %s after cancel", settlement.id)
            return False

        if failure is not None or result is None:
            message = failure or GENERIC_SYNC_FAILURE
            self.progress = terminal_progress(False, self.progress, message)
            self._emit_progress()
            self._fail(FlowStep.CONNECTING_AND_SYNCING, message)
            return False

        self.sync_stats = result.data
        self.progress = terminal_progress(True)
        self._emit_progress()
        if result.data is not None:
            logger.info(
                "Settlement %s synced: %d members, %d citizens in %dms",
                settlement.id,
                result.data.members_found,
                result.data.citizens_found,
                result.data.sync_duration_ms,
            )

        invite: InviteCode | None = None
        error: str | None = None
        try:
            invite = await self.selection_store.fetch_current(settlement.id)
        except (GatewayError, TransportError) as e:
            error = f"Invite code unavailable: {e}"
        if self._is_stale(generation):
            logger.info("Dropping invite code for settlement %s after cancel", settlement.id)
            return False
        self.selection_store.select(settlement)
        self.invite_code = invite
        self._transition(FlowStep.SHOWING_INVITE_CODE, error=error)
        return True

    async def _retry_step(self, step: FlowStep) -> None:
        if step is FlowStep.CONNECTING_AND_SYNCING and self.selection.selected_settlement:
            await self._run_sync(self.selection.selected_settlement)
        else:
            await super()._retry_step(step)

    # -------------------------------------------------------------------------
    # Invite code
    # -------------------------------------------------------------------------

    async def regenerate_invite_code(self) -> bool:
        """Replace the code server-side and show the value the server returns."""
        settlement = self.selection.selected_settlement
        if self.step is not FlowStep.SHOWING_INVITE_CODE or settlement is None:
            return False
        generation = self.generation
        self.busy = True
        self._notify()
        try:
            invite = await self.selection_store.regenerate(settlement.id)
        except (GatewayError, TransportError) as e:
            if self._is_stale(generation):
                return False
            self.busy = False
            self._set_inline_error(str(e))
            return False
        if self._is_stale(generation):
            return False
        self.invite_code = invite
        self.busy = False
        self.error = None
        self._notify()
        return True

    def finish(self) -> bool:
        if self.step is not FlowStep.SHOWING_INVITE_CODE:
            return False
        settlement = self.selection.selected_settlement
        detail = {
            "settlementId": settlement.id if settlement else None,
            "inviteCode": self.invite_code.code if self.invite_code else None,
        }
        self._complete(detail)
        return True

    def back_to_search(self) -> None:
        if self.step is FlowStep.CONFIRMING_SETTLEMENT:
            super().back_to_search()

    def _on_cancel(self) -> None:
        super()._on_cancel()
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        self.progress = None
        self.sync_stats = None
        self.invite_code = None
