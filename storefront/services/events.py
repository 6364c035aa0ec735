"""
Inventory change notifications.

Explicit observer interface for the signals the admin side emits when stock
changes. Listeners register against the bus and get an unsubscribe handle
back; nothing is broadcast implicitly.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class InventoryEvent(str, Enum):
    INVENTORY_UPDATED = "inventory-updated"
    DAMAGE_REPORT_PROCESSED = "damage-report-processed"


Handler = Callable[[Optional[dict]], Union[None, Awaitable[None]]]


class InventoryEventBus:
    def __init__(self):
        self._handlers: Dict[InventoryEvent, List[Handler]] = {}

    def subscribe(self, event: InventoryEvent, handler: Handler) -> Callable[[], None]:
        """Register a handler. Returns a callable that removes it."""
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe():
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def handler_count(self, event: InventoryEvent) -> int:
        return len(self._handlers.get(event, []))

    async def publish(self, event: InventoryEvent, detail: Optional[dict] = None) -> int:
        """
        Deliver an event to every handler in registration order.
        A failing handler is logged and does not stop the others.
        Returns the number of handlers that ran cleanly.
        """
        delivered = 0
        for handler in list(self._handlers.get(event, [])):
            try:
                result: Any = handler(detail)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Handler for {event.value} failed: {e}", exc_info=True)
        logger.debug(f"Published {event.value} to {delivered} handler(s)")
        return delivered
