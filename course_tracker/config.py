import os
import json
import logging
from typing import Dict, Any
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# ==============================================================================
# CONSTANTS & PATHS
# ==============================================================================

HOME_DIR = os.path.expanduser("~")

# Data Directory
# Support external volume mounts via environment variable
_DATA_DIR_OVERRIDE = os.getenv("TRACKER_DATA_DIR")

if _DATA_DIR_OVERRIDE:
    DATA_DIR = _DATA_DIR_OVERRIDE
else:
    DATA_DIR = os.path.join(HOME_DIR, ".course_tracker")

# Storage key prefixes (one JSON document per folder)
PROGRESS_KEY_PREFIX = "video_progress_"
NOTES_KEY_PREFIX = "video_notes_"

# Default Settings (with documentation keys)
DEFAULT_SETTINGS_JSON = {
    "_comment_completion_window": "Final seconds of a video that ramp progress from 99% to 100%.",
    "completion_window_sec": 6.0,
    "_comment_min_tracked_time": "Playback positions below this many seconds are ignored after a video loads.",
    "min_tracked_time_sec": 0.5,
    "_comment_min_change": "Progress below the completion gate is only saved when it moves by at least this many points.",
    "min_progress_change_pct": 1.0,
    "completion_gate_pct": 99.0,
    "_comment_notes": "Quiet period before a note edit is written to disk.",
    "notes_debounce_ms": 500,
    "_comment_thumbnails": "Thumbnail extraction: batch size, seek position and JPEG quality.",
    "thumbnail_batch_size": 3,
    "thumbnail_seek_max_sec": 2.0,
    "thumbnail_seek_ratio": 0.15,
    "thumbnail_quality": 80,
    "thumbnail_timeout_sec": 15,
    "_comment_resume": "Offer to continue a video when its progress lies between these bounds.",
    "resume_min_pct": 1.0,
    "resume_max_pct": 99.0,
    "log_level": "INFO",
}

# ==============================================================================
# SETTINGS MODEL
# ==============================================================================

class AppSettings(BaseSettings):
    """
    Pydantic model for tracker settings.
    Loads from env vars (TRACKER_*) or defaults.
    File loading is handled manually to preserve JSON comments.
    """
    model_config = SettingsConfigDict(env_prefix="TRACKER_", extra="ignore")

    completion_window_sec: float = Field(6.0, gt=0)
    min_tracked_time_sec: float = Field(0.5, ge=0)
    min_progress_change_pct: float = Field(1.0, ge=0)
    completion_gate_pct: float = Field(99.0, ge=0, le=100)

    notes_debounce_ms: int = Field(500, ge=0)

    thumbnail_batch_size: int = Field(3, ge=1)
    thumbnail_seek_max_sec: float = Field(2.0, ge=0)
    thumbnail_seek_ratio: float = Field(0.15, ge=0, le=1)
    thumbnail_quality: int = Field(80, ge=1, le=95)
    thumbnail_timeout_sec: int = Field(15, ge=1)

    resume_min_pct: float = Field(1.0, ge=0, le=100)
    resume_max_pct: float = Field(99.0, ge=0, le=100)

    log_level: str = Field("INFO")

# ==============================================================================
# CONFIG MANAGER
# ==============================================================================

class ConfigManager:
    def __init__(self, data_dir: str = DATA_DIR):
        self._data_dir = data_dir
        self.settings = self._load_settings()

    def ensure_directories(self):
        os.makedirs(self._data_dir, exist_ok=True)

    def _load_settings(self) -> AppSettings:
        # Load from JSON if exists
        file_data = {}
        if os.path.exists(self.settings_file):
            try:
                with open(self.settings_file, "r", encoding="utf-8") as f:
                    file_data = json.load(f)

                # Check for missing defaults and update file if needed
                dirty = False
                for k, v in DEFAULT_SETTINGS_JSON.items():
                    if k not in file_data:
                        file_data[k] = v
                        dirty = True

                if dirty:
                    self._save_json_raw(file_data)

            except (OSError, ValueError) as e:
                logger.warning(f"⚠️ Could not read settings.json: {e}")
                file_data = {}

        # Environment variables win over values from the file
        overrides = {
            k: v for k, v in file_data.items()
            if not k.startswith("_") and f"TRACKER_{k.upper()}" not in os.environ
        }
        try:
            return AppSettings(**overrides)
        except ValidationError as e:
            logger.warning(f"⚠️ Invalid values in settings.json, using defaults: {e}")
            return AppSettings()

    def _save_json_raw(self, data: Dict[str, Any]):
        try:
            self.ensure_directories()
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"❌ Error saving settings: {e}")

    def save(self, updates: Dict[str, Any]) -> bool:
        """
        Updates current settings with new values and saves to disk.
        Preserves existing keys (like comments).
        """
        try:
            # Reload raw file to preserve comments
            current_raw = dict(DEFAULT_SETTINGS_JSON)
            if os.path.exists(self.settings_file):
                with open(self.settings_file, "r", encoding="utf-8") as f:
                    current_raw = json.load(f)

            current_raw.update(updates)
            settings = AppSettings(**{k: v for k, v in current_raw.items() if not k.startswith("_")})
        except (OSError, ValueError) as e:
            logger.error(f"❌ Save failed: {e}")
            return False

        self._save_json_raw(current_raw)
        self.settings = settings
        return True

    @property
    def data_dir(self) -> str:
        return self._data_dir

    @property
    def settings_file(self) -> str:
        return os.path.join(self._data_dir, "settings.json")

    @property
    def store_file(self) -> str:
        return os.path.join(self._data_dir, "tracker_store.db")

# Global Instance
config = ConfigManager()
