"""WebSocket broadcast for content worker queue state."""

from api.ws.worker_broadcast import (
    broadcast_queue_snapshot,
    subscribe_worker_queue,
    unsubscribe_worker_queue,
)

__all__ = [
    "broadcast_queue_snapshot",
    "subscribe_worker_queue",
    "unsubscribe_worker_queue",
]
