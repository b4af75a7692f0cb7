import re
from pydantic import BaseModel, ConfigDict, Field

from ..config import PROGRESS_KEY_PREFIX, NOTES_KEY_PREFIX

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9]")


def sanitize_folder_key(folder_path: str) -> str:
    """Replaces every non-alphanumeric character so the path can be used as a storage key."""
    return _UNSAFE_KEY_CHARS.sub("_", folder_path)


class SessionContext(BaseModel):
    """
    Identity of the active folder selection.

    Passed into every operation and compared at each asynchronous resumption
    point. The generation number makes a reselection of the same folder a
    different context, so work started for the previous selection is stale.
    """
    model_config = ConfigDict(frozen=True)

    folder_path: str = Field(..., description="Absolute path of the selected folder")
    generation: int = Field(0, description="Activation counter assigned by the guard")

    @property
    def folder_key(self) -> str:
        return sanitize_folder_key(self.folder_path)

    @property
    def progress_key(self) -> str:
        return f"{PROGRESS_KEY_PREFIX}{self.folder_key}"

    @property
    def notes_key(self) -> str:
        return f"{NOTES_KEY_PREFIX}{self.folder_key}"
