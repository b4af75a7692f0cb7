import asyncio
import base64
import io
import json
import logging
import subprocess
from typing import Optional, Protocol

from PIL import Image, UnidentifiedImageError

from ..config import AppSettings, config

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/jpeg;base64,"


class FrameExtractionError(Exception):
    """Raised when a still frame cannot be produced for a video."""


class FrameExtractor(Protocol):
    """
    Protocol for thumbnail producers.
    Implementations return a JPEG data URL or raise FrameExtractionError.
    """

    async def extract(self, file_path: str) -> str:
        ...


def probe_duration(file_path: str, timeout: int = 10) -> float:
    """
    Reads the container duration with ffprobe.
    Returns 0.0 when the container does not report one.
    """
    cmd = [
        "ffprobe",
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "json",
        file_path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=timeout)
        data = json.loads(result.stdout or "{}")
    except (OSError, subprocess.SubprocessError, ValueError) as e:
        raise FrameExtractionError(f"could not load metadata: {e}") from e

    try:
        return max(0.0, float(data.get("format", {}).get("duration", 0)))
    except (TypeError, ValueError):
        return 0.0


def thumbnail_seek_time(duration: float, max_sec: float = 2.0, ratio: float = 0.15) -> float:
    """Smart seek: a short way into the video, never past max_sec."""
    if duration <= 0:
        return 0.0
    return min(max_sec, duration * ratio)


def grab_frame(file_path: str, seek_time: float, timeout: int = 15) -> bytes:
    """Decodes one frame at seek_time and returns it as PNG bytes."""
    cmd = [
        "ffmpeg",
        "-ss", f"{seek_time:.3f}",
        "-i", file_path,
        "-frames:v", "1",
        "-f", "image2pipe",
        "-vcodec", "png",
        "-loglevel", "error",
        "-",
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        raise FrameExtractionError(f"decoder failed: {e}") from e

    if result.returncode != 0:
        message = result.stderr.decode(errors="replace").strip() or f"exit code {result.returncode}"
        raise FrameExtractionError(f"decoder failed: {message}")
    if not result.stdout:
        raise FrameExtractionError("decoder produced no frame")
    return result.stdout


def encode_jpeg_data_url(raw_frame: bytes, quality: int = 80) -> str:
    """Re-encodes a decoded frame as a compact JPEG data URL."""
    try:
        with Image.open(io.BytesIO(raw_frame)) as img:
            if img.width == 0 or img.height == 0:
                raise FrameExtractionError("frame has zero dimensions")
            buffer = io.BytesIO()
            img.convert("RGB").save(buffer, format="JPEG", quality=quality)
    except (UnidentifiedImageError, OSError) as e:
        raise FrameExtractionError(f"could not encode frame: {e}") from e

    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def extract_thumbnail(file_path: str, settings: AppSettings) -> str:
    """
    Sync pipeline: load metadata, seek, capture one frame, encode.
    Each step runs in its own short-lived process, so nothing of the decode
    pipeline outlives this call.
    """
    duration = probe_duration(file_path)
    seek_time = thumbnail_seek_time(duration, settings.thumbnail_seek_max_sec, settings.thumbnail_seek_ratio)
    try:
        raw = grab_frame(file_path, seek_time, timeout=settings.thumbnail_timeout_sec)
    except FrameExtractionError:
        if seek_time <= 0:
            raise
        # Attempt 2: fallback to the first frame
        raw = grab_frame(file_path, 0.0, timeout=settings.thumbnail_timeout_sec)

    return encode_jpeg_data_url(raw, settings.thumbnail_quality)


class FFmpegFrameExtractor:
    """
    Asynchronous wrapper for ffprobe/ffmpeg frame capture.
    Blocking work is offloaded to a worker thread.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or config.settings

    async def extract(self, file_path: str) -> str:
        return await asyncio.to_thread(extract_thumbnail, file_path, self.settings)
