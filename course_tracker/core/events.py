import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from ..models.events import PlaybackEvent

logger = logging.getLogger(__name__)


class PlaybackEventChannel:
    """
    Ordered queue between the playback engine and the tracker.

    The engine publishes typed events without waiting; `run` delivers them to
    a single handler one at a time, in publication order, until closed.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: PlaybackEvent) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        """Stop accepting events. Events already queued are still delivered."""
        if not self._closed:
            self._closed = True
            # We use a sentinel 'None' to indicate completion
            self._queue.put_nowait(None)

    async def run(self, handler: Callable[[PlaybackEvent], Any]) -> int:
        """Deliver events until the channel is closed. Returns the number delivered."""
        delivered = 0
        while True:
            event: Optional[PlaybackEvent] = await self._queue.get()
            if event is None:
                break
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # Logged per event; the channel keeps delivering
                logger.error(f"❌ Playback event handler failed for {type(event).__name__}: {e}")
            delivered += 1
        return delivered
