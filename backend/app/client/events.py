import inspect
from typing import Callable, Dict



class ListenerHandle:
    def __init__(self, registry: "Listeners", token: int):
        self._registry = registry
        self._token = token

    def cancel(self):
        self._registry._listeners.pop(self._token, None)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.cancel()


class Listeners:
    """Callbacks registered by child objects; async callbacks are awaited in order."""

    def __init__(self):
        self._listeners: Dict[int, Callable] = {}
        self._next = 0

    def add(self, callback: Callable) -> ListenerHandle:
        token = self._next
        self._next += 1
        self._listeners[token] = callback
        return ListenerHandle(self, token)

    def __len__(self):
        return len(self._listeners)

    async def emit(self, *args):
        for callback in list(self._listeners.values()):
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
