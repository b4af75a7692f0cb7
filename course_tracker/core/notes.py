import logging
from typing import Dict, Optional

from ..config import AppSettings, config
from ..database.json_maps import dump_map, load_notes_map
from ..database.kv_store import KeyValueStore
from ..models.session import SessionContext
from .guard import FolderSwitchGuard
from .persistence import SnapshotWriter
from .scheduler import Debouncer

logger = logging.getLogger(__name__)


class NotesStore:
    """
    Free-text notes per video with debounced persistence.

    Edits land in memory immediately; the whole folder document is written
    once the video's note has been quiet for the debounce window.
    """

    def __init__(
        self,
        store: KeyValueStore,
        guard: FolderSwitchGuard,
        settings: Optional[AppSettings] = None,
    ):
        self.store = store
        self.guard = guard
        self.settings = settings or config.settings
        self._writer = SnapshotWriter(store)
        self._debouncer = Debouncer(self.settings.notes_debounce_ms / 1000)

        self._context: Optional[SessionContext] = None
        self._notes: Dict[int, str] = {}
        self._loading = False
        self._dirty = False

    @property
    def notes(self) -> Dict[int, str]:
        return dict(self._notes)

    @property
    def pending(self) -> int:
        return self._debouncer.pending

    def get(self, video_id: int) -> str:
        return self._notes.get(video_id, "")

    def _is_current(self, context: Optional[SessionContext]) -> bool:
        return context is not None and context == self._context and self.guard.is_current(context)

    def reset(self, context: Optional[SessionContext]) -> None:
        """
        Point the store at a new folder and clear memory.

        Edits of the previous folder that are not saved yet are written under
        its own key. If its document never finished loading they are merged
        over what is persisted instead of replacing it.
        """
        previous = self._context
        unsaved = self._dirty or self._debouncer.pending > 0
        self._debouncer.cancel_all()
        if previous is not None and unsaved:
            if self._loading:
                self._writer.submit_merged(
                    previous.notes_key,
                    lambda: load_notes_map(self.store, previous.notes_key),
                    self._notes,
                    dump_map,
                )
            else:
                self._writer.submit(previous.notes_key, dump_map(self._notes))
            logger.info(f"💾 Saving unsaved notes of {previous.folder_path}")

        self._context = context
        self._notes = {}
        self._loading = context is not None
        self._dirty = False

    async def load(self, context: SessionContext) -> bool:
        await self._writer.wait_for(context.notes_key)
        loaded = await load_notes_map(self.store, context.notes_key)

        if not self._is_current(context):
            logger.debug(f"Dropping notes loaded for stale folder {context.folder_path}")
            return False

        # Edits typed while loading win over persisted text
        loaded.update(self._notes)
        self._notes = loaded
        self._loading = False
        if self._dirty:
            self._dirty = False
            self._writer.submit(context.notes_key, dump_map(self._notes))
        return True

    def update_note(self, video_id: int, text: str) -> None:
        self._notes[video_id] = text
        context = self._context
        if context is None:
            return
        self._debouncer.schedule((context, video_id), lambda: self._commit(context))

    def _commit(self, context: SessionContext) -> None:
        if not self._is_current(context):
            logger.debug(f"Dropping note write for stale folder {context.folder_path}")
            return
        if self._loading:
            # Writing now would replace the persisted map with a partial one
            self._dirty = True
            return
        self._writer.submit(context.notes_key, dump_map(self._notes))

    def flush(self) -> int:
        """Write every pending edit now instead of waiting for its timer."""
        return self._debouncer.flush()

    async def drain(self) -> None:
        await self._debouncer.drain()
        await self._writer.drain()
