"""Playback progress, notes and thumbnail cache for local video courses."""

__version__ = "1.0.0"
