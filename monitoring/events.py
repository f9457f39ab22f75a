"""
Monitoring Events.

============================================================
PURPOSE
============================================================
Listener registration for scheduler notifications.

- One listener list per event kind
- Delivery is synchronous, in the publishing task
- A failing listener is logged and never breaks the publisher
- Coroutine listeners are scheduled on the running loop; the
  publisher does not wait for them
- No ordering guarantee between independent listeners

============================================================
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Set


logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Notifications published by the metrics scheduler."""

    SNAPSHOT_UPDATED = "snapshot_updated"
    ALERTS_RAISED = "alerts_raised"
    HEARTBEAT = "heartbeat"
    ERROR = "error"
    THRESHOLDS_UPDATED = "thresholds_updated"


Listener = Callable[[Any], Any]


class EventBus:
    """Per-kind publish/subscribe."""

    def __init__(self):
        self._listeners: Dict[EventKind, List[Listener]] = {kind: [] for kind in EventKind}
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, kind: EventKind, listener: Listener) -> None:
        """Register `listener` for `kind`. Registering twice is a no-op."""
        listeners = self._listeners[EventKind(kind)]
        if listener not in listeners:
            listeners.append(listener)

    def unsubscribe(self, kind: EventKind, listener: Listener) -> None:
        listeners = self._listeners[EventKind(kind)]
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, kind: EventKind) -> int:
        return len(self._listeners[EventKind(kind)])

    def publish(self, kind: EventKind, payload: Any) -> int:
        """
        Deliver `payload` to every listener of `kind`.

        Returns:
            Number of listeners that accepted the payload without raising
        """
        delivered = 0
        for listener in list(self._listeners[EventKind(kind)]):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    self._schedule(kind, result)
                delivered += 1
            except Exception as e:
                logger.error(f"Listener for {kind.value} failed: {e}", exc_info=True)
        return delivered

    def _schedule(self, kind: EventKind, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"Async listener for {kind.value} failed: {t.exception()}")

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for scheduled coroutine listeners to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = ["EventKind", "EventBus", "Listener"]
