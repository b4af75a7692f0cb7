import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Hashable, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Runs a callback once a key has been quiet for `delay` seconds.

    Scheduling the same key again cancels the pending timer and starts a new
    one with the latest callback. Different keys keep independent timers.
    Callbacks may be plain functions or coroutine functions.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._timers: Dict[Hashable, Tuple[asyncio.TimerHandle, Callable[[], Any]]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, key: Hashable, callback: Callable[[], Any]) -> None:
        self.cancel(key)
        loop = asyncio.get_running_loop()
        handle = loop.call_later(self.delay, self._fire, key)
        self._timers[key] = (handle, callback)

    def cancel(self, key: Hashable) -> bool:
        entry = self._timers.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self.cancel(key)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._timers

    @property
    def pending(self) -> int:
        return len(self._timers)

    def flush(self) -> int:
        """Fire every pending callback now. Returns how many were fired."""
        keys = list(self._timers)
        for key in keys:
            handle, _ = self._timers[key]
            handle.cancel()
            self._fire(key)
        return len(keys)

    async def drain(self) -> None:
        """Wait for coroutine callbacks that have already fired."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _fire(self, key: Hashable) -> Optional[asyncio.Task]:
        entry = self._timers.pop(key, None)
        if entry is None:
            return None
        _, callback = entry
        result = callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task
        return None
