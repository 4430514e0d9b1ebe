"""
In-memory WebSocket subscribers for content worker queue snapshots.
Every queue/processing change is pushed to all subscribers.
"""

from __future__ import annotations

from typing import Any

from fastapi import WebSocket

from api.schemas.worker_schemas import QueueSnapshot

_subscribers: set[WebSocket] = set()


def subscribe_worker_queue(ws: WebSocket) -> None:
    """Add a WebSocket to the subscriber set."""
    _subscribers.add(ws)


def unsubscribe_worker_queue(ws: WebSocket) -> None:
    """Remove a WebSocket from the subscriber set."""
    _subscribers.discard(ws)


async def broadcast_queue_snapshot(snapshot: QueueSnapshot | dict[str, Any]) -> None:
    """
    Send the snapshot to every subscribed WebSocket. Connections that fail
    to receive are dropped.
    """
    if not _subscribers:
        return
    payload = snapshot.model_dump(mode="json") if isinstance(snapshot, QueueSnapshot) else snapshot
    dead: set[WebSocket] = set()
    for ws in list(_subscribers):
        try:
            await ws.send_json(payload)
        except Exception:
            dead.add(ws)
    for ws in dead:
        _subscribers.discard(ws)
