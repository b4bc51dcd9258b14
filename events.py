"""
In-memory broadcaster for the kitchen screens (real-time only, not persisted).

Publishers are the sync order routes, which FastAPI runs in its threadpool,
so events reach each stream's queue through that stream's own event loop.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class KitchenBroadcaster:
    def __init__(self, max_queue: int = 100):
        self.max_queue = max_queue
        self.subscribers: List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []

    @property
    def queues(self) -> List[asyncio.Queue]:
        return [q for _, q in self.subscribers]

    def subscribe(self) -> asyncio.Queue:
        """Must be called from the coroutine that will consume the stream."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue)
        self.subscribers.append((loop, queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self.subscribers = [(loop, q) for loop, q in self.subscribers if q is not queue]

    def publish(self, event_type: str, order: Dict[str, Any], message: Optional[str] = None) -> None:
        """Fan an event out to every connected screen. Safe from any thread; never raises."""
        event = {
            "type": event_type,
            "order_id": order.get("id"),
            "status": order.get("status"),
            "payment_status": order.get("payment_status"),
            "message": message,
            "ts": datetime.now(timezone.utc).isoformat(),
        }
        for loop, q in list(self.subscribers):
            try:
                loop.call_soon_threadsafe(_deliver, q, event)
            except RuntimeError:
                # loop already closed; the stream is gone
                self.unsubscribe(q)

    async def stream(self, queue: asyncio.Queue) -> AsyncIterator[str]:
        try:
            # On connect, send a ping
            yield f"data: {json.dumps({'type': 'ping', 'ts': datetime.now(timezone.utc).isoformat()})}\n\n"
            while True:
                event = await queue.get()
                yield f"data: {json.dumps(event)}\n\n"
        except asyncio.CancelledError:
            pass
        finally:
            self.unsubscribe(queue)


def _deliver(queue: asyncio.Queue, event: Dict[str, Any]) -> None:
    try:
        queue.put_nowait(event)
    except asyncio.QueueFull:
        logger.warning("Kitchen stream queue full, dropping %s event", event["type"])


broadcaster = KitchenBroadcaster()
