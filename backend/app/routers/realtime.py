"""WebSocket stream of ``products`` change notifications."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.security.utils import get_authorization_scheme_param
import asyncio
import logging

from app.errors import AuthenticationFailure
from app.auth.auth_handler import caller_from_token
from app.realtime import ChangeEvent, change_feed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])


async def _answer_pings(websocket: WebSocket):
    while True:
        message = await websocket.receive_text()
        if message == "ping":
            await websocket.send_text("pong")


@router.websocket("/products")
async def products_changes(websocket: WebSocket):
    scheme, token = get_authorization_scheme_param(websocket.headers.get("authorization"))
    try:
        if scheme.lower() != "bearer" or not token:
            raise AuthenticationFailure("Not authenticated")
        caller = caller_from_token(token)
    except AuthenticationFailure:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def enqueue(event: ChangeEvent):
        # commits happen on threadpool workers
        loop.call_soon_threadsafe(queue.put_nowait, event)

    reader = asyncio.create_task(_answer_pings(websocket))
    logger.info("Change stream opened for user %s", caller.user_id)
    with change_feed.subscribe(enqueue):
        try:
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({getter, reader}, return_when=asyncio.FIRST_COMPLETED)
                if reader in done:
                    getter.cancel()
                    reader.result()
                    break
                await websocket.send_json(getter.result().to_message())
        except WebSocketDisconnect:
            pass
        finally:
            reader.cancel()
            logger.info("Change stream closed for user %s", caller.user_id)
