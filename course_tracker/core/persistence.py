import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Set

from ..database.kv_store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """
    Writes whole-document snapshots to the store, one key at a time.

    Writes for the same key are serialised. A snapshot submitted while an
    earlier one is still waiting replaces it, so the store always ends with
    the newest snapshot and never goes back to an older one.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._pending: Dict[str, str] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Dict[str, Set[asyncio.Task]] = {}

    def submit(self, key: str, payload: str) -> asyncio.Task:
        """Queue a snapshot for key. Must be called from the event loop."""
        self._pending[key] = payload
        return self._track(key, asyncio.ensure_future(self._write(key)))

    def submit_merged(
        self,
        key: str,
        load: Callable[[], Awaitable[Dict[int, Any]]],
        updates: Dict[int, Any],
        dump: Callable[[Dict[int, Any]], str],
    ) -> asyncio.Task:
        """
        Queue a write of updates laid over the document currently persisted
        under key. Used when edits exist but the full document was never loaded.
        """
        earlier = list(self._tasks.get(key, ()))
        task = asyncio.ensure_future(self._merge(key, earlier, load, dict(updates), dump))
        return self._track(key, task)

    def _track(self, key: str, task: asyncio.Task) -> asyncio.Task:
        tasks = self._tasks.setdefault(key, set())
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        return task

    async def _merge(
        self,
        key: str,
        earlier: List[asyncio.Task],
        load: Callable[[], Awaitable[Dict[int, Any]]],
        updates: Dict[int, Any],
        dump: Callable[[Dict[int, Any]], str],
    ) -> bool:
        if earlier:
            await asyncio.gather(*earlier)
        document = await load()
        document.update(updates)
        self._pending[key] = dump(document)
        logger.debug(f"Merged {len(updates)} unsaved entries into {key}")
        return await self._write(key)

    async def _write(self, key: str) -> bool:
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            payload = self._pending.pop(key, None)
            if payload is None:
                # Already written by a task queued earlier
                return False
            try:
                await self.store.set(key, payload)
            except StoreError as e:
                # The next mutation rewrites the full document
                logger.warning(f"⚠️ Could not save {key}: {e}")
                return False
            return True

    async def wait_for(self, key: str) -> None:
        """Wait until no write for key is queued or running."""
        tasks = self._tasks.get(key)
        while tasks:
            await asyncio.gather(*list(tasks))

    async def drain(self) -> None:
        """Wait for every queued write."""
        for key in list(self._tasks):
            await self.wait_for(key)
