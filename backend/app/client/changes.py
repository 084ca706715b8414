"""Client side of the ``/realtime/products`` change stream."""
import asyncio
import inspect
import json
import logging
from typing import Callable, Optional

import websockets

from app.errors import MarketplaceError

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 3.0


class ChangeSubscription:
    """Calls ``on_change`` for every change message until cancelled.

    The payload is ignored; a message only means the table changed. Dropped
    connections are retried after ``reconnect_delay`` seconds.
    """

    def __init__(
        self,
        url: str,
        on_change: Callable,
        token: Optional[str] = None,
        reconnect_delay: float = RECONNECT_DELAY,
    ):
        self.url = url
        self.on_change = on_change
        self.token = token
        self.reconnect_delay = reconnect_delay
        self._task = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "ChangeSubscription":
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        return self

    async def cancel(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def __aenter__(self):
        return self.start()

    async def __aexit__(self, *exc_info):
        await self.cancel()

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _notify(self):
        try:
            result = self.on_change()
            if inspect.isawaitable(result):
                await result
        except MarketplaceError as e:
            # one failed refresh must not end the stream
            logger.warning("Handling a listing change failed: %s", e.message)

    async def _run(self):
        while True:
            try:
                async with websockets.connect(self.url, additional_headers=self._headers()) as ws:
                    logger.info("Listening for listing changes")
                    async for message in ws:
                        if _is_change(message):
                            await self._notify()
            except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
                logger.warning("Change stream dropped (%s), reconnecting in %.0fs", e, self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)


def _is_change(message) -> bool:
    try:
        payload = json.loads(message)
    except (TypeError, ValueError):
        return False
    return isinstance(payload, dict) and payload.get("type") == "change"


def subscribe_to_changes(url: str, on_change: Callable, token: Optional[str] = None) -> ChangeSubscription:
    return ChangeSubscription(url, on_change, token=token).start()
