import asyncio
import logging
import math
from typing import Dict, Optional

from ..config import AppSettings, config
from ..database.json_maps import dump_map, load_progress_map
from ..database.kv_store import KeyValueStore
from ..models.session import SessionContext
from ..models.video_ref import VideoRef
from .engine import PlaybackEngine
from .guard import FolderSwitchGuard
from .persistence import SnapshotWriter

logger = logging.getLogger(__name__)


def compute_completion_percent(current_time: float, duration: float, window_sec: float = 6.0) -> float:
    """
    Maps a playback position to a completion percentage.

    Videos longer than the completion window spread 0-99% over everything
    before the window and ramp linearly from 99% to 100% inside it, so the
    true end of the media always reaches exactly 100.
    """
    if duration <= 0 or not math.isfinite(duration):
        return 0.0
    current_time = max(0.0, current_time)

    if duration <= window_sec:
        percent = current_time / duration * 100
    else:
        effective = duration - window_sec
        if current_time <= effective:
            percent = current_time / effective * 99
        else:
            percent = 99 + (current_time - effective) / window_sec

    return min(percent, 100.0)


class ProgressTracker:
    """
    Per-folder map of video id -> completion percentage.

    Natural playback can only move a stored value up. Explicit user actions
    (mark completed / not started) are the only way to set arbitrary values.
    """

    def __init__(
        self,
        store: KeyValueStore,
        guard: FolderSwitchGuard,
        engine: Optional[PlaybackEngine] = None,
        settings: Optional[AppSettings] = None,
    ):
        self.store = store
        self.guard = guard
        self.engine = engine
        self.settings = settings or config.settings
        self._writer = SnapshotWriter(store)

        self._context: Optional[SessionContext] = None
        self._progress: Dict[int, float] = {}
        self._loaded: Optional[asyncio.Event] = None
        self._dirty = False

    @property
    def context(self) -> Optional[SessionContext]:
        return self._context

    @property
    def progress(self) -> Dict[int, float]:
        return dict(self._progress)

    def get(self, video_id: int) -> float:
        return self._progress.get(video_id, 0.0)

    def _is_current(self, context: Optional[SessionContext]) -> bool:
        return context is not None and context == self._context and self.guard.is_current(context)

    # ------------------------------------------------------------------
    # Folder lifecycle
    # ------------------------------------------------------------------

    def reset(self, context: Optional[SessionContext]) -> None:
        """
        Point the tracker at a new folder. Clears in-memory state synchronously.
        Marks made while the previous folder was still loading are merged over
        its persisted map under its own key.
        """
        previous = self._context
        if previous is not None and self._dirty:
            self._writer.submit_merged(
                previous.progress_key,
                lambda: load_progress_map(self.store, previous.progress_key),
                self._progress,
                dump_map,
            )
            logger.info(f"💾 Saving unsaved progress of {previous.folder_path}")
        if self._loaded is not None:
            # Release events waiting on the previous folder; they fail the currency check
            self._loaded.set()
        self._context = context
        self._progress = {}
        self._loaded = asyncio.Event() if context is not None else None
        self._dirty = False

    async def load(self, context: SessionContext) -> bool:
        """Read the persisted map of context. Returns False if the folder was switched meanwhile."""
        await self._writer.wait_for(context.progress_key)
        loaded = await load_progress_map(self.store, context.progress_key)

        if not self._is_current(context):
            logger.debug(f"Dropping progress loaded for stale folder {context.folder_path}")
            return False

        # Explicit marks made while loading win over persisted values
        loaded.update(self._progress)
        self._progress = loaded
        if self._loaded is not None:
            self._loaded.set()
        if self._dirty:
            self._dirty = False
            self._persist(context)
        logger.info(f"📂 Loaded progress for {len(loaded)} video(s) in {context.folder_path}")
        return True

    async def _wait_loaded(self) -> None:
        event = self._loaded
        if event is not None:
            await event.wait()

    # ------------------------------------------------------------------
    # Playback updates
    # ------------------------------------------------------------------

    async def on_time_advanced(
        self,
        context: SessionContext,
        video: VideoRef,
        current_time: float,
        duration: float,
    ) -> Optional[float]:
        """
        Fold one time-advance notification into the map.
        Returns the committed percentage, or None when nothing was written.
        """
        if not duration or duration <= 0 or not math.isfinite(duration):
            return None

        if not self._is_current(context):
            return None

        # Early positions may still belong to the previously loaded source
        if current_time < self.settings.min_tracked_time_sec:
            return None

        computed = compute_completion_percent(current_time, duration, self.settings.completion_window_sec)

        await self._wait_loaded()
        if not self._is_current(context):
            logger.debug(f"Dropping stale progress for video {video.id} in {context.folder_path}")
            return None

        stored = self._progress.get(video.id, 0.0)
        new_value = max(stored, computed)
        if new_value == stored:
            return None
        if new_value < self.settings.completion_gate_pct and new_value - stored < self.settings.min_progress_change_pct:
            return None

        self._progress[video.id] = new_value
        self._persist(context)
        return new_value

    # ------------------------------------------------------------------
    # Explicit user actions
    # ------------------------------------------------------------------

    def mark_completed(self, video: VideoRef) -> None:
        self._progress[video.id] = 100.0
        self._persist(self._context)

    def mark_not_started(self, video: VideoRef) -> None:
        self._progress[video.id] = 0.0
        self._persist(self._context)

        if self.engine is not None and self.guard.is_loaded(video.id):
            self.engine.seek(0)
            self.engine.pause()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self, context: Optional[SessionContext]) -> None:
        if context is None:
            return
        if self._loaded is not None and not self._loaded.is_set():
            # Writing now would replace the persisted map with a partial one
            self._dirty = True
            return
        self._writer.submit(context.progress_key, dump_map(self._progress))

    async def flush(self) -> None:
        await self._writer.drain()
