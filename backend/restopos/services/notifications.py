"""
In-memory notification hub for staff screens.

Staff clients hold an SSE connection; public actions (new order, call waiter)
publish small events that are fanned out to every connected client. Delivery
is best effort: no persistence, no replay, and a subscriber whose queue is
full simply misses events.
"""

import asyncio
import json
import logging
import os
import uuid
from typing import AsyncIterator, Awaitable, Callable, Dict, Any, Optional, Set

from restopos.utils.time_utils import iso_local

logger = logging.getLogger(__name__)

EVENT_CALL_WAITER = "call_waiter"
EVENT_NEW_ORDER = "new_order"
EVENT_TYPES = (EVENT_CALL_WAITER, EVENT_NEW_ORDER)

DEFAULT_QUEUE_SIZE = 100
HEARTBEAT_SECONDS = float(os.getenv("NOTIFY_HEARTBEAT_SECONDS", "15"))


class NotificationHub:
    """Registry of subscriber queues; one queue per connected client."""

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE):
        self.max_queue_size = max_queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        logger.info("Notification subscriber connected (%d total)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.info("Notification subscriber disconnected (%d left)", len(self._subscribers))

    def publish(
        self,
        event_type: str,
        table_number: int,
        customer_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Broadcast an event to all current subscribers.

        Args:
            event_type: "call_waiter" or "new_order"
            table_number: Table the event is about
            customer_name: Name given by the customer, if any

        Returns:
            The event that was published
        """
        if event_type not in EVENT_TYPES:
            raise ValueError(f"unknown event type: {event_type!r}")
        event = {
            "id": uuid.uuid4().hex,
            "type": event_type,
            "tableNumber": table_number,
            "customerName": customer_name,
            "createdAt": iso_local(),
        }
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Dropping %s event for a slow subscriber", event_type)
        return event


def format_sse(event: Dict[str, Any]) -> str:
    """Render one event in text/event-stream framing."""
    return f"id: {event['id']}\nevent: {event['type']}\ndata: {json.dumps(event)}\n\n"


async def event_stream(
    hub: NotificationHub,
    queue: asyncio.Queue,
    heartbeat_seconds: float = HEARTBEAT_SECONDS,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None
) -> AsyncIterator[str]:
    """
    Yield SSE frames for one subscriber until the client goes away.

    A comment line is sent whenever no event arrived within
    ``heartbeat_seconds`` so proxies keep the connection open.
    """
    try:
        yield ": connected\n\n"
        while True:
            if is_disconnected is not None and await is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield ": heartbeat\n\n"
                continue
            yield format_sse(event)
    finally:
        hub.unsubscribe(queue)
