"""
Shared machinery of the settlement flow controllers.

A controller owns one ``FlowSelection`` and moves it through ``FlowStep``s in
response to user actions and gateway responses. Hosts render from
``controller.state`` and subscribe to ``controller.events``.

Rules every variant follows:

- Every gateway call is caught where it is made. Failures become an inline
  ``error`` or the ``FAILED`` step; nothing is raised to the host.
- At most one commit-claim call is in flight per controller.
- A response that no longer matches the current selection is discarded.
- A response that arrives after ``cancel`` is dropped without a transition.
- Only 400, 404 and 409 claim answers are rejections. Other server errors
  fail the flow so the user can retry.
- ``FAILED`` only leads to ``retry`` (re-enter the failed step with the same
  selection) or ``cancel``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from bitsettler.config import FlowSettings, config
from bitsettler.flow.errors import (
    GENERIC_TRANSPORT_MESSAGE,
    FlowValidationError,
    GatewayError,
    NotFoundOrAlreadyClaimed,
    TransportError,
)
from bitsettler.flow.events import FlowEventChannel, FlowEventKind
from bitsettler.flow.gateway import SettlementGateway
from bitsettler.flow.models import (
    CharacterCandidate,
    CLAIM_REJECTION_STATUSES,
    ClaimRequest,
    ClaimResult,
    FlowSelection,
    InviteCode,
    Settlement,
)
from bitsettler.flow.professions import ActiveSlot, ProfessionSlots
from bitsettler.flow.progress import SyncProgress
from bitsettler.flow.search import DebouncedSearch
from bitsettler.flow.store import SettlementSelectionStore

logger = logging.getLogger(__name__)

CLAIM_REJECTED_FALLBACK = "Failed to claim character"


class FlowStep(Enum):
    SEARCHING_SETTLEMENT = "searching_settlement"
    CONFIRMING_SETTLEMENT = "confirming_settlement"
    CONNECTING_AND_SYNCING = "connecting_and_syncing"
    SHOWING_INVITE_CODE = "showing_invite_code"
    LOADING_CANDIDATES = "loading_candidates"
    SELECTING_CHARACTER = "selecting_character"
    SELECTING_PROFESSIONS = "selecting_professions"
    CLAIMING = "claiming"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class FlowState:
    """
    Immutable snapshot of a controller, published with every event.

    Attributes:
        step: Current step.
        settlement: Selected settlement, if any.
        character: Selected character, if any.
        primary_profession: Chosen primary profession.
        secondary_profession: Chosen secondary profession.
        active_slot: Slot a click replaces when both are full.
        display_name: Optional custom display name for the claim.
        query: Current settlement search text.
        search_results: Results for ``query``.
        candidates: Every character fetched for the settlement.
        visible_candidates: ``candidates`` after the character filter.
        character_filter: Client-side filter text.
        current_character: Caller's current character (switch flow).
        profession_options: Selected character's skills, best first.
        progress: Latest sync progress (onboarding flow).
        invite_code: Invite code shown after onboarding.
        error: Inline or ``FAILED`` message, shown verbatim.
        failed_step: Step that ``retry`` re-enters.
        busy: True while a gateway call started by the user is pending.
    """

    step: FlowStep
    settlement: Settlement | None = None
    character: CharacterCandidate | None = None
    primary_profession: str | None = None
    secondary_profession: str | None = None
    active_slot: ActiveSlot = ActiveSlot.PRIMARY
    display_name: str | None = None
    query: str = ""
    search_results: tuple[Settlement, ...] = ()
    candidates: tuple[CharacterCandidate, ...] = ()
    visible_candidates: tuple[CharacterCandidate, ...] = ()
    character_filter: str = ""
    current_character: CharacterCandidate | None = None
    profession_options: tuple[str, ...] = ()
    progress: SyncProgress | None = None
    invite_code: InviteCode | None = None
    error: str | None = None
    failed_step: FlowStep | None = None
    busy: bool = False


def filter_characters(
    candidates: Iterable[CharacterCandidate], text: str
) -> list[CharacterCandidate]:
    """Case-insensitive substring match on name, top profession or level."""
    needle = text.strip().lower()
    if not needle:
        return list(candidates)
    return [
        candidate
        for candidate in candidates
        if needle in candidate.name.lower()
        or (candidate.top_profession and needle in candidate.top_profession.lower())
        or needle in str(candidate.total_level)
    ]


class FlowController:
    """Base class: selection, character picking, claiming, retry and cancel."""

    initial_step = FlowStep.SELECTING_CHARACTER

    def __init__(
        self,
        gateway: SettlementGateway,
        *,
        store: SettlementSelectionStore | None = None,
        settings: FlowSettings | None = None,
    ):
        self.gateway = gateway
        self.store = store
        self.settings = settings or config.flow
        self.events = FlowEventChannel()
        self.selection = FlowSelection()
        self.step = self.initial_step
        self.error: str | None = None
        self.failed_step: FlowStep | None = None
        self.candidates: list[CharacterCandidate] = []
        self.character_filter = ""
        self.current_character: CharacterCandidate | None = None
        self.professions = ProfessionSlots(())
        self.claim_in_flight = False
        self.busy = False
        # Bumped by cancel so responses for an abandoned flow are dropped.
        self.generation = 0

    # -------------------------------------------------------------------------
    # State publication
    # -------------------------------------------------------------------------

    def _state_extras(self) -> dict[str, Any]:
        return {}

    @property
    def state(self) -> FlowState:
        return FlowState(
            step=self.step,
            settlement=self.selection.selected_settlement,
            character=self.selection.selected_character,
            primary_profession=self.professions.primary,
            secondary_profession=self.professions.secondary,
            active_slot=self.professions.active_slot,
            display_name=self.selection.custom_display_name,
            candidates=tuple(self.candidates),
            visible_candidates=tuple(self.visible_candidates),
            character_filter=self.character_filter,
            current_character=self.current_character,
            profession_options=self.professions.options,
            error=self.error,
            failed_step=self.failed_step,
            busy=self.busy or self.claim_in_flight,
            **self._state_extras(),
        )

    def _notify(self) -> None:
        self.events.emit(FlowEventKind.STATE_CHANGED, self.state)

    def _transition(self, step: FlowStep, *, error: str | None = None) -> None:
        logger.debug("%s: %s -> %s", type(self).__name__, self.step.value, step.value)
        self.step = step
        self.error = error
        if step is not FlowStep.FAILED:
            self.failed_step = None
        self._notify()

    def _fail(self, failed_step: FlowStep, message: str) -> None:
        logger.warning("%s failed during %s: %s", type(self).__name__, failed_step.value, message)
        self.failed_step = failed_step
        self._transition(FlowStep.FAILED, error=message)

    def _set_inline_error(self, message: str) -> None:
        self.error = message
        self._notify()

    def _complete(self, detail: dict[str, Any]) -> None:
        self._reset_selection()
        self._transition(FlowStep.DONE)
        self.events.emit(FlowEventKind.COMPLETED, self.state, detail)

    def _is_stale(self, generation: int) -> bool:
        return generation != self.generation

    def _reset_selection(self) -> None:
        self.selection.clear()
        self.candidates = []
        self.character_filter = ""
        self.current_character = None
        self.professions = ProfessionSlots(())

    # -------------------------------------------------------------------------
    # Character selection
    # -------------------------------------------------------------------------

    @property
    def visible_candidates(self) -> list[CharacterCandidate]:
        return filter_characters(self.candidates, self.character_filter)

    def set_character_filter(self, text: str) -> None:
        """Narrow the fetched candidates. Never issues a network call."""
        self.character_filter = text
        self._notify()

    def select_character(self, character_id: str) -> bool:
        if self.step is not FlowStep.SELECTING_CHARACTER:
            self._set_inline_error("Characters can only be picked from the character list")
            return False
        character = next((c for c in self.candidates if c.id == character_id), None)
        if character is None:
            self._set_inline_error("That character is not available")
            return False
        self.selection.select_character(character)
        self.professions = ProfessionSlots(character.ranked_skills())
        self.error = None
        self._notify()
        return True

    def set_display_name(self, name: str | None) -> None:
        self.selection.custom_display_name = name.strip() if name and name.strip() else None
        self._notify()

    # -------------------------------------------------------------------------
    # Claiming
    # -------------------------------------------------------------------------

    def _claim_steps(self) -> tuple[FlowStep, ...]:
        return (FlowStep.SELECTING_CHARACTER,)

    def _replaces_character_id(self) -> str | None:
        return None

    def _build_claim_request(self) -> ClaimRequest:
        character = self.selection.selected_character
        if character is None:
            raise FlowValidationError("Select a character to claim")
        settlement = self.selection.selected_settlement
        settlement_id = settlement.id if settlement else character.settlement_id
        if not settlement_id:
            raise FlowValidationError("Select a settlement first")
        return ClaimRequest(
            character_id=character.id,
            settlement_id=settlement_id,
            display_name=self.selection.custom_display_name,
            primary_profession=self.professions.primary,
            secondary_profession=self.professions.secondary,
            replaces_character_id=self._replaces_character_id(),
        )

    async def claim(self) -> bool:
        """
        Commit the selected character.

        Returns True when the claim succeeded. A second call while one is in
        flight returns False without issuing another request.
        """
        if self.claim_in_flight:
            logger.debug("Ignoring claim while another claim is in flight")
            return False

        retrying = self.step is FlowStep.FAILED and self.failed_step is FlowStep.CLAIMING
        if not retrying and self.step not in self._claim_steps():
            self._set_inline_error("Nothing to claim at this step")
            return False
        try:
            request = self._build_claim_request()
        except FlowValidationError as e:
            self._set_inline_error(str(e))
            return False

        generation = self.generation
        self.claim_in_flight = True
        self._transition(FlowStep.CLAIMING)
        result: ClaimResult | None = None
        failure = GENERIC_TRANSPORT_MESSAGE
        try:
            result = await self.gateway.commit_claim(request)
        except TransportError as e:
            failure = e.message
        except GatewayError as e:
            if e.status_code in CLAIM_REJECTION_STATUSES:
                result = ClaimResult(
                    success=False, error=e.message, code=e.code, status_code=e.status_code
                )
            else:
                failure = e.message
        except Exception:
            logger.exception("Unexpected error while committing claim")
        finally:
            self.claim_in_flight = False

        if self._is_stale(generation):
            logger.info("Dropping claim response for %s after cancel", request.character_id)
            return False
        if result is None:
            self._fail(FlowStep.CLAIMING, failure)
            return False
        if not result.success:
            self._reject_claim(
                NotFoundOrAlreadyClaimed(result.error or CLAIM_REJECTED_FALLBACK),
                drop_character=result.character_unavailable,
            )
            return False

        logger.info(
            "Claimed character %s in settlement %s", request.character_id, request.settlement_id
        )
        if self.store is not None and self.selection.selected_settlement is not None:
            self.store.select(self.selection.selected_settlement, request.character_id)
        self._complete({"character": result.character, "settlementId": request.settlement_id})
        return True

    def _reject_claim(self, rejection: NotFoundOrAlreadyClaimed, *, drop_character: bool) -> None:
        rejected = self.selection.selected_character
        self.selection.clear_character()
        self.professions = ProfessionSlots(())
        if rejected is not None:
            logger.info("Claim of %s rejected: %s", rejected.id, rejection)
            if drop_character:
                self.candidates = [c for c in self.candidates if c.id != rejected.id]
        self._transition(FlowStep.SELECTING_CHARACTER, error=str(rejection))

    # -------------------------------------------------------------------------
    # Retry / cancel
    # -------------------------------------------------------------------------

    async def _retry_step(self, step: FlowStep) -> None:
        if step is FlowStep.CLAIMING:
            await self.claim()

    async def retry(self) -> bool:
        """Re-enter the step that failed, with the same selection."""
        if self.step is not FlowStep.FAILED or self.failed_step is None:
            return False
        await self._retry_step(self.failed_step)
        return True

    def _on_cancel(self) -> None:
        """Hook for subclasses to stop background work."""

    def cancel(self) -> None:
        """Discard the selection and hand control back to the host."""
        self.generation += 1
        self._on_cancel()
        self._reset_selection()
        self.error = None
        self.failed_step = None
        self.busy = False
        self.step = self.initial_step
        self.events.emit(FlowEventKind.CANCELLED, self.state)


class SearchingFlowController(FlowController):
    """Base for the variants that start by searching for a settlement."""

    initial_step = FlowStep.SEARCHING_SETTLEMENT

    def __init__(
        self,
        gateway: SettlementGateway,
        *,
        store: SettlementSelectionStore | None = None,
        settings: FlowSettings | None = None,
    ):
        super().__init__(gateway, store=store, settings=settings)
        self.query = ""
        self.search_results: list[Settlement] = []
        self.search = DebouncedSearch(
            gateway,
            self._on_search_results,
            delay=self.settings.search_debounce_seconds,
            min_length=self.settings.min_query_length,
        )

    def _state_extras(self) -> dict[str, Any]:
        return {"query": self.query, "search_results": tuple(self.search_results)}

    def set_query(self, text: str) -> None:
        """Feed one keystroke's worth of search text."""
        self.query = text
        self.search.update(text)
        self._notify()

    def _on_search_results(self, query: str, results: list[Settlement], error: str | None) -> None:
        if self.step is not FlowStep.SEARCHING_SETTLEMENT:
            return
        self.search_results = list(results)
        self.error = error
        self._notify()

    def _find_result(self, settlement: Settlement | str) -> Settlement | None:
        if isinstance(settlement, Settlement):
            return settlement
        return next((s for s in self.search_results if s.id == settlement), None)

    def back_to_search(self) -> None:
        self.selection.clear()
        self.candidates = []
        self.professions = ProfessionSlots(())
        self._transition(FlowStep.SEARCHING_SETTLEMENT)

    def _on_cancel(self) -> None:
        self.search.cancel()
        self.query = ""
        self.search_results = []
