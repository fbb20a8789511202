"""
Realtime collection snapshots over websockets.

Store listeners fire on whatever thread performed the write, so every payload is
handed to the connection's event loop through a queue.
"""
import asyncio
import contextlib
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect

from ..auth.security import identity_from_token
from ..constants import WATCHABLE_COLLECTIONS
from ..logging import bind_actor, structlog
from ..services.access import Identity
from ..services.aggregations import dashboard_summary
from ..services.mirror import StateMirror
from ..store.provider import DocumentStore
from ..store.registry import get_store


router = APIRouter(tags=["realtime"])
logger = structlog.get_logger(__name__)


async def _authenticate(websocket: WebSocket, token: Optional[str], store: DocumentStore, path: str) -> Optional[Identity]:
    if not token:
        await websocket.close(code=4401)
        return None
    try:
        identity = identity_from_token(token, store)
    except HTTPException:
        await websocket.close(code=4401)
        return None
    if not identity.can_access(path):
        await websocket.close(code=4403)
        return None
    bind_actor(identity.uid, identity.role_id)
    return identity


async def _pump(websocket: WebSocket, queue: "asyncio.Queue[Any]") -> None:
    while True:
        payload = await queue.get()
        try:
            await websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError) as e:
            # socket closed under us; the receive loop ends the session
            logger.warning("ws_send_failed", error=str(e))
            return


async def _serve(websocket: WebSocket, queue: "asyncio.Queue[Any]") -> None:
    sender = asyncio.create_task(_pump(websocket, queue))
    try:
        while True:
            data = await websocket.receive_text()
            if data and data.strip().lower() in {"ping", "keepalive"}:
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender


@router.websocket("/ws/collections/{name}")
async def ws_collection(websocket: WebSocket, name: str, token: Optional[str] = None, store: DocumentStore = Depends(get_store)):
    path = WATCHABLE_COLLECTIONS.get(name)
    if path is None:
        await websocket.close(code=4404)
        return
    identity = await _authenticate(websocket, token, store, path)
    if identity is None:
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Any]" = asyncio.Queue()

    def _on_change(docs):
        loop.call_soon_threadsafe(queue.put_nowait, {"collection": name, "items": docs})

    unsubscribe = store.subscribe(name, _on_change)
    logger.info("ws_subscribed", collection=name, uid=identity.uid)
    try:
        await _serve(websocket, queue)
    finally:
        unsubscribe()
        logger.info("ws_unsubscribed", collection=name, uid=identity.uid)


@router.websocket("/ws/dashboard")
async def ws_dashboard(websocket: WebSocket, token: Optional[str] = None, store: DocumentStore = Depends(get_store)):
    identity = await _authenticate(websocket, token, store, "/")
    if identity is None:
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Any]" = asyncio.Queue()

    def _on_change(state):
        loop.call_soon_threadsafe(queue.put_nowait, dashboard_summary(state))

    mirror = StateMirror(store, on_change=_on_change).start()
    try:
        await _serve(websocket, queue)
    finally:
        mirror.close()
        logger.info("ws_dashboard_closed", uid=identity.uid)
