from .video_ref import VideoRef
from .session import SessionContext, sanitize_folder_key
from .events import PlaybackEvent, TimeAdvanced, PlaybackEnded
