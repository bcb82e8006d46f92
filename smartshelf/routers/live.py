from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from smartshelf.auth import authenticate_token
from smartshelf.errors import AuthError

logger = logging.getLogger(__name__)

router = APIRouter(tags=['live'])


@router.websocket('/ws')
async def live_updates(websocket: WebSocket):
    try:
        principal = authenticate_token(websocket.query_params.get('token'))
    except AuthError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def _deliver(event: str, data) -> None:
        # Publishers run on request worker threads.
        loop.call_soon_threadsafe(queue.put_nowait, {'event': event, 'data': data})

    async def _send() -> None:
        while True:
            await websocket.send_json(await queue.get())

    async def _receive() -> None:
        while True:
            await websocket.receive_text()

    # Subscribe before the handshake completes.
    unsubscribe = websocket.app.state.publisher.subscribe(_deliver)
    tasks: list[asyncio.Task] = []
    try:
        await websocket.accept()
        logger.info('Live-update subscriber connected: %s', principal.email)
        tasks = [asyncio.create_task(_send()), asyncio.create_task(_receive())]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning('Live-update connection for %s failed: %r', principal.email, exc)
    finally:
        unsubscribe()
        for task in tasks:
            task.cancel()
        logger.info('Live-update subscriber disconnected: %s', principal.email)
