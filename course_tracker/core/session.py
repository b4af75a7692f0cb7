import asyncio
import logging
from typing import Any, Coroutine, List, Optional, Set

from ..config import AppSettings, config
from ..database.kv_store import KeyValueStore
from ..models.events import PlaybackEnded, PlaybackEvent, TimeAdvanced
from ..models.session import SessionContext
from ..models.video_ref import VideoRef
from ..scanner.frame_extractor import FrameExtractor
from ..scanner.thumbnails import ThumbnailCacheGenerator, merge_by_id
from .engine import PlaybackEngine
from .guard import FolderSwitchGuard
from .notes import NotesStore
from .progress import ProgressTracker
from .resume import ResumeOffer, build_resume_offer

logger = logging.getLogger(__name__)


class WatchSession:
    """
    Facade the application shell talks to.

    Owns the guard and wires progress, notes and thumbnails to the active
    folder. Folder selection is synchronous; loading persisted state and
    generating thumbnails run as background tasks that check the guard
    before touching session state.
    """

    def __init__(
        self,
        store: KeyValueStore,
        extractor: Optional[FrameExtractor] = None,
        engine: Optional[PlaybackEngine] = None,
        settings: Optional[AppSettings] = None,
    ):
        self.settings = settings or config.settings
        self.engine = engine
        self.guard = FolderSwitchGuard()
        self.progress = ProgressTracker(store, self.guard, engine, self.settings)
        self.notes = NotesStore(store, self.guard, self.settings)
        self.thumbnails = ThumbnailCacheGenerator(store, extractor, self.settings)

        self.videos: List[VideoRef] = []
        self.current_video: Optional[VideoRef] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def context(self) -> Optional[SessionContext]:
        return self.guard.active

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Folder & video selection
    # ------------------------------------------------------------------

    def select_folder(self, folder_path: str, videos: List[VideoRef]) -> SessionContext:
        """
        Switch to folder_path with the listing supplied by the file-access layer.
        In-memory state is replaced before any background work starts. Unsaved
        progress and notes of the previous folder are written under its own keys.
        """
        context = self.guard.activate(folder_path)
        self.progress.reset(context)
        self.notes.reset(context)
        self.videos = list(videos)
        self.current_video = self.videos[0] if self.videos else None
        self.guard.load_video(self.current_video.id if self.current_video else None)

        self._spawn(self.progress.load(context))
        self._spawn(self.notes.load(context))
        self._spawn(self._generate_thumbnails(context, list(self.videos)))

        logger.info(f"📁 Selected {folder_path} ({len(self.videos)} videos)")
        return context

    def select_video(self, video: VideoRef) -> Optional[ResumeOffer]:
        """Load video in the engine. Returns a resume offer for partially watched videos."""
        self.current_video = video
        self.guard.load_video(video.id)
        return build_resume_offer(video.id, self.progress.get(video.id), self.settings)

    def accept_resume(self, offer: ResumeOffer) -> bool:
        if self.engine is None or not self.guard.is_loaded(offer.video_id):
            return False
        position = offer.seek_position(self.engine.duration)
        if position is None:
            return False
        self.engine.seek(position)
        return True

    def apply_rename(self, video_id: int, new_path: str, new_title: str) -> Optional[VideoRef]:
        """
        Replace the ref of a renamed file. The thumbnail cached under the old
        path is orphaned and a new one is generated for the new path.
        """
        old = next((v for v in self.videos if v.id == video_id), None)
        if old is None:
            return None

        renamed = VideoRef(id=video_id, title=new_title, file_path=new_path)
        self.videos = [renamed if v.id == video_id else v for v in self.videos]
        if self.current_video is not None and self.current_video.id == video_id:
            self.current_video = renamed

        context = self.guard.active
        if context is not None:
            self._spawn(self._generate_thumbnails(context, [renamed]))
        return renamed

    # ------------------------------------------------------------------
    # Thumbnails
    # ------------------------------------------------------------------

    async def _generate_thumbnails(self, context: SessionContext, videos: List[VideoRef]) -> None:
        await self.thumbnails.ensure_thumbnails(
            videos,
            on_batch=lambda batch: self._merge_thumbnails(context, batch),
        )

    def _merge_thumbnails(self, context: SessionContext, batch: List[VideoRef]) -> None:
        if not self.guard.is_current(context):
            logger.debug(f"Dropping thumbnails generated for stale folder {context.folder_path}")
            return
        updates = {v.id: v for v in batch if v.thumbnail}
        self.videos = merge_by_id(self.videos, updates)
        if self.current_video is not None:
            self.current_video = merge_by_id([self.current_video], updates)[0]

    # ------------------------------------------------------------------
    # Playback events & user actions
    # ------------------------------------------------------------------

    async def handle_event(self, event: PlaybackEvent) -> Optional[float]:
        if isinstance(event, TimeAdvanced):
            return await self.progress.on_time_advanced(
                event.context, event.video, event.current_time, event.duration
            )
        if isinstance(event, PlaybackEnded):
            # Reaching the end is the final position of the completion window
            return await self.progress.on_time_advanced(
                event.context, event.video, event.duration, event.duration
            )
        logger.debug(f"Ignoring unsupported playback event {type(event).__name__}")
        return None

    def mark_completed(self, video: VideoRef) -> None:
        self.progress.mark_completed(video)

    def mark_not_started(self, video: VideoRef) -> None:
        self.progress.mark_not_started(video)

    def update_note(self, video_id: int, text: str) -> None:
        self.notes.update_note(video_id, text)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait for background loads, thumbnail generation and queued writes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        await self.progress.flush()
        await self.notes.drain()

    async def close(self) -> None:
        """Write pending notes and wait for everything to land in the store."""
        self.notes.flush()
        await self.wait_idle()
