"""Swap lifecycle events for the presentation layer.

The engine never talks to UI code directly. It emits events which the
page layer (toasts, progress bars, analytics) subscribes to.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class SwapEventType(str, Enum):
    """Kinds of events emitted while a swap executes."""

    STATUS_CHANGE = "status_change"
    PROGRESS = "progress"
    BALANCES_REFRESHED = "balances_refreshed"
    TERMINAL = "terminal"


@dataclass
class SwapEvent:
    """One emitted event."""

    type: SwapEventType
    payload: dict = field(default_factory=dict)


Listener = Callable[[SwapEvent], Any]


class SwapEventBus:
    """Minimal publish/subscribe hub.

    Listeners may be plain callables or coroutine functions; coroutine
    results are awaited in order. A failing listener is logged and never
    interrupts the swap.
    """

    def __init__(self):
        self._listeners: dict[Optional[SwapEventType], list[Listener]] = {}

    def subscribe(
        self,
        listener: Listener,
        event_type: Optional[SwapEventType] = None,
    ) -> Callable[[], None]:
        """Register a listener for one event type (or all when None).

        Returns:
            A callable removing the listener
        """
        self._listeners.setdefault(event_type, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event_type, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    async def emit(self, event_type: SwapEventType, **payload) -> None:
        """Deliver an event to its listeners."""
        event = SwapEvent(type=event_type, payload=payload)
        listeners = self._listeners.get(event_type, []) + self._listeners.get(None, [])
        for listener in listeners:
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning(f"Swap event listener failed on {event_type.value}: {e}")
