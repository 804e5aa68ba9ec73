"""
Per-controller event channel.

Each flow controller owns one ``FlowEventChannel``. Hosts subscribe to it
explicitly instead of listening for global notifications:

    unsubscribe = controller.events.subscribe(render)
    ...
    unsubscribe()

Handlers may be sync or async. Sync handlers run inline, in subscription
order; async handlers are scheduled on the running loop. A failing handler
is logged and does not affect the controller or the other handlers.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bitsettler.flow.controller import FlowState

logger = logging.getLogger(__name__)


class FlowEventKind(Enum):
    STATE_CHANGED = "state_changed"
    PROGRESS = "progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FlowEvent:
    """
    One notification from a controller.

    Attributes:
        kind: What happened.
        state: Controller snapshot taken when the event was emitted.
        sequence: Per-channel, monotonically increasing. Use it for ordering.
        timestamp: Unix epoch milliseconds (UTC), for display only.
        detail: Extra payload, e.g. the claimed character on ``COMPLETED``.
    """

    kind: FlowEventKind
    state: FlowState
    sequence: int
    timestamp: int
    detail: dict[str, Any] | None = None


SyncHandler = Callable[[FlowEvent], None]
AsyncHandler = Callable[[FlowEvent], Coroutine[Any, Any, None]]
EventHandler = SyncHandler | AsyncHandler
Unsubscribe = Callable[[], None]


class FlowEventChannel:
    """Typed observable owned by a single controller."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._sequence = 0
        self._waiters: list[tuple[FlowEventKind | None, asyncio.Future[FlowEvent]]] = []
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: EventHandler) -> Unsubscribe:
        """Register a handler; the returned callable removes it again."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def once(self, kind: FlowEventKind, handler: SyncHandler) -> Unsubscribe:
        """Call ``handler`` for the next event of ``kind`` only."""

        def wrapper(event: FlowEvent) -> None:
            if event.kind is not kind:
                return
            unsubscribe()
            handler(event)

        unsubscribe = self.subscribe(wrapper)
        return unsubscribe

    async def wait_for(
        self, kind: FlowEventKind | None = None, timeout: float | None = None
    ) -> FlowEvent:
        """
        Wait for the next event, optionally of one kind.

        Raises:
            asyncio.TimeoutError: If nothing arrives within ``timeout`` seconds.
        """
        future: asyncio.Future[FlowEvent] = asyncio.get_running_loop().create_future()
        entry = (kind, future)
        self._waiters.append(entry)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            if entry in self._waiters:
                self._waiters.remove(entry)

    def emit(
        self, kind: FlowEventKind, state: FlowState, detail: dict[str, Any] | None = None
    ) -> FlowEvent:
        self._sequence += 1
        event = FlowEvent(
            kind=kind,
            state=state,
            sequence=self._sequence,
            timestamp=int(datetime.now(UTC).timestamp() * 1000),
            detail=detail,
        )

        for handler in list(self._handlers):
            try:
                if inspect.iscoroutinefunction(handler):
                    task = asyncio.get_running_loop().create_task(handler(event))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                else:
                    handler(event)
            except Exception as e:
                logger.error(f"Flow event handler error for '{kind.value}': {e}", exc_info=True)

        for waited_kind, future in list(self._waiters):
            if (waited_kind is None or waited_kind is kind) and not future.done():
                future.set_result(event)

        return event

    def clear(self) -> None:
        self._handlers.clear()
