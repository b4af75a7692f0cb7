import asyncio
import logging
import os
from typing import Callable, Dict, List, Optional, Set

from ..config import AppSettings, config
from ..database.kv_store import KeyValueStore, StoreError
from ..models.video_ref import VideoRef
from .frame_extractor import FFmpegFrameExtractor, FrameExtractionError, FrameExtractor

logger = logging.getLogger(__name__)


class ThumbnailCacheGenerator:
    """
    Fills in VideoRef.thumbnail from the store, extracting frames on a miss.

    1. Pass-through for videos that already carry a thumbnail
    2. De-duplication against paths other callers are already processing
    3. Fixed-size batches to bound concurrent decoders
    4. Incremental merge by id after every batch
    """

    def __init__(
        self,
        store: KeyValueStore,
        extractor: Optional[FrameExtractor] = None,
        settings: Optional[AppSettings] = None,
    ):
        self.store = store
        self.settings = settings or config.settings
        self.extractor = extractor or FFmpegFrameExtractor(self.settings)
        self._in_flight: Set[str] = set()

    @property
    def in_flight(self) -> Set[str]:
        return set(self._in_flight)

    async def ensure_thumbnails(
        self,
        videos: List[VideoRef],
        on_batch: Optional[Callable[[List[VideoRef]], None]] = None,
    ) -> List[VideoRef]:
        """
        Returns the same videos in the same order, thumbnail populated where available.
        on_batch receives the working list after every completed batch.
        """
        working = list(videos)

        # Claim paths before the first suspension so concurrent callers see them
        todo: List[VideoRef] = []
        for video in working:
            if video.thumbnail:
                continue
            if video.file_path in self._in_flight:
                logger.debug(f"Thumbnail already in flight: {video.file_path}")
                continue
            self._in_flight.add(video.file_path)
            todo.append(video)

        if not todo:
            return working

        batch_size = self.settings.thumbnail_batch_size
        processed = 0
        try:
            for start in range(0, len(todo), batch_size):
                batch = todo[start:start + batch_size]
                results = await asyncio.gather(*(self._thumbnail_for(v) for v in batch))
                processed = start + len(batch)

                found: Dict[int, VideoRef] = {
                    video.id: video.with_thumbnail(thumb)
                    for video, thumb in zip(batch, results)
                    if thumb
                }
                if found:
                    working = merge_by_id(working, found)
                    if on_batch is not None:
                        on_batch(list(working))
        finally:
            # Release claims of items that never ran, e.g. after cancellation
            for video in todo[processed:]:
                self._in_flight.discard(video.file_path)

        return working

    async def _thumbnail_for(self, video: VideoRef) -> Optional[str]:
        try:
            cached = await self._read_cache(video.file_path)
            if cached:
                return cached

            try:
                thumbnail = await self.extractor.extract(video.file_path)
            except FrameExtractionError as e:
                logger.warning(f"⚠️ No thumbnail for {os.path.basename(video.file_path)}: {e}")
                return None
            except Exception as e:
                logger.error(f"❌ Frame extraction crashed for {os.path.basename(video.file_path)}: {e}")
                return None

            await self._write_cache(video.file_path, thumbnail)
            return thumbnail
        finally:
            self._in_flight.discard(video.file_path)

    async def _read_cache(self, file_path: str) -> Optional[str]:
        try:
            return await self.store.get(file_path)
        except StoreError as e:
            logger.warning(f"⚠️ Thumbnail cache read failed, regenerating: {e}")
            return None

    async def _write_cache(self, file_path: str, thumbnail: str) -> None:
        try:
            await self.store.set(file_path, thumbnail)
        except StoreError as e:
            logger.warning(f"⚠️ Thumbnail cache write failed: {e}")


def merge_by_id(videos: List[VideoRef], updates: Dict[int, VideoRef]) -> List[VideoRef]:
    """
    Replaces entries whose id has an update for the same file path.
    Idempotent and independent of arrival order.
    """
    merged = []
    for video in videos:
        update = updates.get(video.id)
        if update is not None and update.file_path == video.file_path:
            merged.append(update)
        else:
            merged.append(video)
    return merged
