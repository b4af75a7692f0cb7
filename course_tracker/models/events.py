from pydantic import BaseModel, ConfigDict, Field

from .session import SessionContext
from .video_ref import VideoRef


class PlaybackEvent(BaseModel):
    """Base payload for notifications emitted by the playback engine."""
    model_config = ConfigDict(frozen=True)

    context: SessionContext
    video: VideoRef


class TimeAdvanced(PlaybackEvent):
    current_time: float = Field(..., description="Elapsed playback time in seconds")
    duration: float = Field(..., description="Media duration in seconds, 0 while unknown")


class PlaybackEnded(PlaybackEvent):
    duration: float = Field(..., description="Media duration in seconds")
