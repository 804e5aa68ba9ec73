"""
Tests for the debounced settlement search.

Covers coalescing of rapid edits into one request, the minimum query length,
and discarding of responses whose query is no longer current.
"""

import asyncio

import pytest

from bitsettler.flow.errors import GENERIC_TRANSPORT_MESSAGE, TransportError
from bitsettler.flow.search import DebouncedSearch
from tests.fakes import FakeGateway, settle

DELAY = 0.02


@pytest.fixture
def published() -> list[tuple[str, list, str | None]]:
    return []


@pytest.fixture
def search(gateway: FakeGateway, published) -> DebouncedSearch:
    def on_results(query, results, error):
        published.append((query, results, error))

    return DebouncedSearch(gateway, on_results, delay=DELAY, min_length=2)


# =============================================================================
# DEBOUNCE
# =============================================================================


class TestDebounce:
    """Rapid edits produce a single request for the last value."""

    async def test_five_rapid_updates_issue_one_call(self, search, gateway, published):
        for text in ("Ho", "Hol", "Holl", "Hollo", "Hollow"):
            search.update(text)

        await search.wait_idle()

        assert gateway.count("search_settlements") == 1
        assert gateway.args("search_settlements") == ["Hollow"]
        assert search.calls_issued == 1
        assert [query for query, _, _ in published] == ["Hollow"]
        assert len(published[0][1]) == 2

    async def test_pause_between_edits_issues_one_call_each(self, search, gateway):
        search.update("Hollow")
        await search.wait_idle()
        search.update("Hollow Oak")
        await search.wait_idle()

        assert gateway.args("search_settlements") == ["Hollow", "Hollow Oak"]

    async def test_no_call_before_delay(self, search, gateway):
        search.update("Hollow")
        await settle()

        assert search.pending is True
        assert gateway.count("search_settlements") == 0

    async def test_query_is_stripped_before_sending(self, search, gateway):
        search.update("  Oak  ")
        await search.wait_idle()

        assert gateway.args("search_settlements") == ["Oak"]


# =============================================================================
# MINIMUM LENGTH
# =============================================================================


class TestMinimumLength:
    """Short queries clear results without a network call."""

    async def test_short_query_publishes_empty_results(self, search, gateway, published):
        search.update("H")
        await asyncio.sleep(DELAY * 3)

        assert published == [("H", [], None)]
        assert gateway.count("search_settlements") == 0

    async def test_whitespace_does_not_count(self, search, gateway, published):
        search.update(" H ")
        await asyncio.sleep(DELAY * 3)

        assert gateway.count("search_settlements") == 0

    async def test_short_query_cancels_pending_search(self, search, gateway):
        search.update("Hollow")
        search.update("")
        await asyncio.sleep(DELAY * 3)

        assert gateway.count("search_settlements") == 0


# =============================================================================
# STALE RESPONSES
# =============================================================================


class TestStaleResponses:
    """Only the latest query's results are ever published."""

    async def test_out_of_order_response_is_discarded(self, search, gateway, published):
        gateway.hold.add("search_settlements")

        search.update("Hollow")
        await asyncio.sleep(DELAY * 3)
        search.update("Hollow C")
        await asyncio.sleep(DELAY * 3)
        assert gateway.count("search_settlements") == 2

        gateway.resume("search_settlements", 1)
        await settle()
        gateway.resume("search_settlements", 0)
        await search.wait_idle()

        assert [query for query, _, _ in published] == ["Hollow C"]
        assert [s.name for s in published[0][1]] == ["Hollow Creek"]

    async def test_response_after_cancel_is_discarded(self, search, gateway, published):
        gateway.hold.add("search_settlements")
        search.update("Hollow")
        await asyncio.sleep(DELAY * 3)

        search.cancel()
        gateway.resume("search_settlements")
        await search.wait_idle()

        assert published == []

    async def test_cancel_drops_pending_timer(self, search, gateway):
        search.update("Hollow")
        search.cancel()
        await asyncio.sleep(DELAY * 3)

        assert gateway.count("search_settlements") == 0


# =============================================================================
# ERRORS
# =============================================================================


class TestSearchErrors:
    """Gateway failures become an inline message with empty results."""

    async def test_transport_error_is_published_inline(self, search, gateway, published):
        gateway.errors["search_settlements"] = TransportError()

        search.update("Hollow")
        await search.wait_idle()

        assert published == [("Hollow", [], GENERIC_TRANSPORT_MESSAGE)]
