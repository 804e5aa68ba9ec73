"""Periodic treasury refresh for the settlement view."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from bitsettler.flow.errors import GatewayError, TransportError
from bitsettler.flow.gateway import SettlementGateway
from bitsettler.flow.models import TreasurySnapshot

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 300.0


class TreasuryPoller:
    """
    Refreshes one settlement's treasury on a fixed interval.

    The owning view calls ``start`` when it appears and ``stop`` when it goes
    away. After ``stop`` returns ``on_update`` is never called again, even for
    a fetch that was already in flight.
    """

    def __init__(
        self,
        gateway: SettlementGateway,
        settlement_id: str,
        on_update: Callable[[TreasurySnapshot], None],
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.gateway = gateway
        self.settlement_id = settlement_id
        self.on_update = on_update
        self.interval = interval
        self.last_snapshot: TreasurySnapshot | None = None
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Begin polling. Returns False if already running."""
        if self.running:
            logger.warning("Treasury polling already running for %s", self.settlement_id)
            return False
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(
            "Treasury polling started for %s every %.0fs", self.settlement_id, self.interval
        )
        return True

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("Treasury polling stopped for %s", self.settlement_id)

    async def refresh_now(self) -> TreasurySnapshot | None:
        """Fetch once and publish. Errors are logged and yield None."""
        try:
            snapshot = await self.gateway.fetch_treasury(self.settlement_id)
        except (GatewayError, TransportError) as e:
            logger.warning("Treasury refresh for %s failed: %s", self.settlement_id, e)
            return None
        except Exception:
            logger.exception("Unexpected error refreshing treasury for %s", self.settlement_id)
            return None
        if self._stopped:
            return None
        self.last_snapshot = snapshot
        self.on_update(snapshot)
        return snapshot

    async def _run(self) -> None:
        while not self._stopped:
            await self.refresh_now()
            await asyncio.sleep(self.interval)
