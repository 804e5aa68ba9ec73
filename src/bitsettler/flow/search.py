"""
Debounced settlement search.

Every keystroke calls ``update``. A search goes out only after the query has
been stable for ``delay`` seconds, and a result is only published if its
query is still the current one when it comes back:

    search = DebouncedSearch(gateway, on_results=render)
    search.update("R")
    search.update("Ri")
    search.update("Riv")     # one call, for "Riv", 300ms later

Calls already on the wire are not cancelled; their results are dropped if
the user typed something else meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from bitsettler.flow.errors import GatewayError, TransportError
from bitsettler.flow.gateway import SettlementGateway
from bitsettler.flow.models import Settlement

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3
DEFAULT_MIN_QUERY_LENGTH = 2

ResultsHandler = Callable[[str, list[Settlement], str | None], None]


class DebouncedSearch:
    """
    Coalesces rapid query edits into one search per pause in typing.

    Args:
        gateway: Source of search results.
        on_results: Called with ``(query, results, error)`` whenever the
            displayed results change. ``error`` is an inline message or None.
        delay: Debounce window in seconds.
        min_length: Shorter (stripped) queries clear the results instead of
            searching.
    """

    def __init__(
        self,
        gateway: SettlementGateway,
        on_results: ResultsHandler,
        *,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        min_length: int = DEFAULT_MIN_QUERY_LENGTH,
    ):
        self.gateway = gateway
        self.on_results = on_results
        self.delay = delay
        self.min_length = min_length
        self.query = ""
        self.calls_issued = 0
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def update(self, query: str) -> None:
        """Record a new query value and restart the debounce timer."""
        self.query = query
        self._cancel_timer()

        if len(query.strip()) < self.min_length:
            self.on_results(query, [], None)
            return

        self._timer = asyncio.get_running_loop().create_task(self._debounce(query))

    async def _debounce(self, query: str) -> None:
        await asyncio.sleep(self.delay)
        if query != self.query:
            return
        self._timer = None
        # Separate task so a later keystroke cancelling the timer never
        # cancels a request that is already on the wire.
        search = asyncio.get_running_loop().create_task(self._search(query))
        self._in_flight.add(search)
        search.add_done_callback(self._in_flight.discard)

    async def _search(self, query: str) -> None:
        self.calls_issued += 1
        error: str | None = None
        try:
            results = await self.gateway.search_settlements(query.strip())
        except (GatewayError, TransportError) as e:
            logger.warning("Settlement search for %r failed: %s", query, e)
            results = []
            error = str(e)

        if query != self.query:
            logger.debug("Discarding stale search results for %r", query)
            return
        self.on_results(query, results, error)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def cancel(self) -> None:
        """Drop the pending timer. In-flight responses will be discarded."""
        self._cancel_timer()
        self.query = ""

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no search is in flight."""
        while self.pending or self._in_flight:
            waiting = set(self._in_flight)
            if self._timer is not None and not self._timer.done():
                waiting.add(self._timer)
            await asyncio.wait(waiting)
