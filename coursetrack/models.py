from dataclasses import dataclass, field
from typing import FrozenSet


@dataclass(frozen=True)
class Chapter:
    """
    A named segment of a video.
    Position in the chapter list is the chapter number (0-based).
    """
    title: str
    display_time: str                   # "H:MM:SS" or "M:SS", as shown to the user
    source_url: str                     # Deep link that starts playback at this chapter
    offset_seconds: int = 0             # Start of the chapter on the playback clock

    def __repr__(self):
        return f"<Chapter '{self.title}' @ {self.display_time} ({self.offset_seconds}s)>"


@dataclass(frozen=True)
class VideoProgress:
    """
    Per-video progress record. Instances are never mutated; the store
    functions build replacements with dataclasses.replace().
    """
    completed_chapters: FrozenSet[int] = field(default_factory=frozenset)
    last_watched_chapter: int = -1
    progress_percentage: int = 0
    total_watch_time_seconds: int = 0
    updated_at: int = 0                 # Epoch milliseconds

    def to_dict(self) -> dict:
        return {
            "completedChapters": sorted(self.completed_chapters),
            "lastWatchedChapter": self.last_watched_chapter,
            "progressPercentage": self.progress_percentage,
            "totalWatchTimeSeconds": self.total_watch_time_seconds,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VideoProgress":
        """Raises KeyError/TypeError/ValueError on records that don't look like ours."""
        if not isinstance(data, dict):
            raise TypeError(f"Expected an object, got {type(data).__name__}")

        raw_completed = data.get("completedChapters", [])
        if not isinstance(raw_completed, list):
            raise TypeError(f"completedChapters must be a list, got {type(raw_completed).__name__}")
        completed = frozenset(int(i) for i in raw_completed)
        if any(i < 0 for i in completed):
            raise ValueError("Negative chapter index in completedChapters")

        return cls(
            completed_chapters=completed,
            last_watched_chapter=int(data.get("lastWatchedChapter", -1)),
            progress_percentage=int(data.get("progressPercentage", 0)),
            total_watch_time_seconds=int(data.get("totalWatchTimeSeconds", 0)),
            updated_at=int(data.get("updatedAt", 0)),
        )
