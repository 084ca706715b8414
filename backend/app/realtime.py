"""In-process change notifications for the ``products`` table."""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event: str  # "INSERT" or "UPDATE"
    record_id: str

    def to_message(self) -> dict:
        return {"type": "change", "table": self.table, "event": self.event, "id": self.record_id}


class Subscription:
    """Handle returned by ``ChangeFeed.subscribe``; cancel it to stop delivery."""

    def __init__(self, feed: "ChangeFeed", token: int):
        self._feed = feed
        self._token = token
        self.active = True

    def cancel(self):
        if self.active:
            self._feed._remove(self._token)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.cancel()


class ChangeFeed:
    """Fan-out of committed listing writes.

    Writes commit on threadpool workers while subscribers live on the event
    loop, so the subscriber table is guarded by a lock and callbacks must be
    safe to call from any thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Callable[[ChangeEvent], None]] = {}
        self._next_token = 0

    def subscribe(self, callback: Callable[[ChangeEvent], None]) -> Subscription:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
        return Subscription(self, token)

    def _remove(self, token: int):
        with self._lock:
            self._subscribers.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ChangeEvent):
        with self._lock:
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                # one broken subscriber must not starve the others
                logger.exception("Change subscriber failed for %s %s", event.event, event.record_id)


change_feed = ChangeFeed()
