from typing import Protocol


class PlaybackEngine(Protocol):
    """
    Protocol for the player the tracker drives.
    Decoding and rendering stay inside the implementation.
    """

    @property
    def current_time(self) -> float:
        """Elapsed playback time in seconds."""
        ...

    @property
    def duration(self) -> float:
        """Media duration in seconds, 0 while metadata is not loaded."""
        ...

    def seek(self, time: float) -> None:
        ...

    def play(self) -> None:
        ...

    def pause(self) -> None:
        ...
