# Course Tracker Core Package

from .guard import FolderSwitchGuard
from .progress import ProgressTracker, compute_completion_percent
from .notes import NotesStore
from .resume import ResumeOffer, build_resume_offer
from .events import PlaybackEventChannel
from .session import WatchSession
