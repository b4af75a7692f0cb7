"""
Shared fakes for the tracker tests.
Async code is driven with asyncio.run inside plain test functions.
"""
import asyncio
from collections import Counter
from typing import Dict, List, Optional, Set

import pytest

from course_tracker.config import AppSettings
from course_tracker.database.kv_store import StoreError
from course_tracker.models.video_ref import VideoRef
from course_tracker.scanner.frame_extractor import FrameExtractionError


class MemoryStore:
    """In-memory KeyValueStore that records calls and can fail or stall on demand."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})
        self.gets: List[str] = []
        self.sets: List[tuple] = []
        self.fail_reads = False
        self.fail_writes = False
        self.read_gate: Optional[asyncio.Event] = None

    async def get(self, key: str) -> Optional[str]:
        self.gets.append(key)
        if self.read_gate is not None:
            await self.read_gate.wait()
        if self.fail_reads:
            raise StoreError("disk unavailable")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            raise StoreError("disk full")
        self.sets.append((key, value))
        self.data[key] = value

    def writes_to(self, key: str) -> List[str]:
        return [value for k, value in self.sets if k == key]


class FakeExtractor:
    """FrameExtractor that counts calls per path and tracks peak concurrency."""

    def __init__(self, delay: float = 0.01, failing: Optional[Set[str]] = None):
        self.delay = delay
        self.failing = set(failing or ())
        self.calls: Counter = Counter()
        self.active = 0
        self.peak = 0

    async def extract(self, file_path: str) -> str:
        self.calls[file_path] += 1
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            if file_path in self.failing:
                raise FrameExtractionError("unsupported codec")
            return f"data:image/jpeg;base64,{file_path}"
        finally:
            self.active -= 1


class FakeEngine:
    """PlaybackEngine double recording seek/pause/play calls."""

    def __init__(self, duration: float = 0.0):
        self.current_time = 0.0
        self.duration = duration
        self.calls: List[tuple] = []

    def seek(self, time: float) -> None:
        self.current_time = time
        self.calls.append(("seek", time))

    def play(self) -> None:
        self.calls.append(("play",))

    def pause(self) -> None:
        self.calls.append(("pause",))


@pytest.fixture
def settings():
    return AppSettings(notes_debounce_ms=20)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def videos():
    return [
        VideoRef(id=1, title="Intro", file_path="/courses/A/01 Intro.mp4"),
        VideoRef(id=2, title="Setup", file_path="/courses/A/02 Setup.mp4"),
        VideoRef(id=3, title="Basics", file_path="/courses/A/03 Basics.mp4"),
    ]
