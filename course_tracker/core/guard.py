import itertools
import logging
from typing import Optional

from ..models.session import SessionContext

logger = logging.getLogger(__name__)


class FolderSwitchGuard:
    """
    Single source of truth for the active folder and the loaded video.

    Components capture the SessionContext they were started with and ask
    `is_current` before committing anything after a suspension point.
    """

    def __init__(self):
        self._generations = itertools.count(1)
        self._active: Optional[SessionContext] = None
        self.loaded_video_id: Optional[int] = None

    @property
    def active(self) -> Optional[SessionContext]:
        return self._active

    def activate(self, folder_path: str) -> SessionContext:
        """Make folder_path the active folder. Every earlier context becomes stale."""
        context = SessionContext(folder_path=folder_path, generation=next(self._generations))
        previous = self._active
        self._active = context
        self.loaded_video_id = None
        if previous is not None:
            logger.debug(f"Folder switched: {previous.folder_path} -> {folder_path}")
        return context

    def deactivate(self) -> None:
        self._active = None
        self.loaded_video_id = None

    def is_current(self, context: Optional[SessionContext]) -> bool:
        return context is not None and context == self._active

    def load_video(self, video_id: Optional[int]) -> None:
        self.loaded_video_id = video_id

    def is_loaded(self, video_id: int) -> bool:
        return self.loaded_video_id is not None and self.loaded_video_id == video_id
