"""
In-memory WebSocket subscribers for store change events.
Every store write is pushed as ``{"type": "DATA_UPDATE", "timestamp": ms}``
so connected views know to re-read.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .store import ChangeNotifier


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])

_subscribers: set[WebSocket] = set()
_pending: set[asyncio.Task] = set()


def subscribe(ws: WebSocket) -> None:
    _subscribers.add(ws)


def unsubscribe(ws: WebSocket) -> None:
    _subscribers.discard(ws)


def subscriber_count() -> int:
    return len(_subscribers)


async def broadcast(payload: dict[str, Any]) -> None:
    """Send payload to every connected socket, dropping the ones that fail."""
    dead: set[WebSocket] = set()
    for ws in list(_subscribers):
        try:
            await ws.send_json(payload)
        except Exception:
            dead.add(ws)
    for ws in dead:
        _subscribers.discard(ws)


def _on_change(event: dict[str, Any]) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # Written outside the event loop (e.g. a worker thread); nobody to push to from here
        logger.debug("Store change outside event loop, broadcast skipped")
        return
    if _subscribers:
        task = loop.create_task(broadcast(event))
        _pending.add(task)
        task.add_done_callback(_pending.discard)


def attach(notifier: ChangeNotifier) -> Callable[[], None]:
    """Forward a notifier's events to WebSocket subscribers; returns the detach callable."""
    return notifier.subscribe(_on_change)


@router.websocket("/ws")
async def sync_socket(ws: WebSocket) -> None:
    await ws.accept()
    subscribe(ws)
    try:
        while True:
            # Clients only listen; anything they send is ignored
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe(ws)
