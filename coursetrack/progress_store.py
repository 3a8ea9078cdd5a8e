import dataclasses
import json
from typing import Dict, Iterable

from .models import VideoProgress
from .utils import get_logger, now_ms, round_half_up

logger = get_logger("ProgressStore")

STORAGE_KEY = "youtube-course-progress"

Store = Dict[str, VideoProgress]


def compute_percentage(completed_count: int, chapter_count: int) -> int:
    """Whole-number completion percentage; 0 for a video without chapters."""
    if chapter_count <= 0:
        return 0
    return round_half_up(100 * completed_count / chapter_count)


def get_video_progress(store: Store, video_id: str) -> VideoProgress:
    """Returns the record for video_id, or an empty one if the video was never touched."""
    return store.get(video_id) or VideoProgress()


def _recompute(progress: VideoProgress, completed: Iterable[int], chapter_count: int, **changes) -> VideoProgress:
    # Drop anything outside the chapter list so the percentage can't exceed 100
    completed = frozenset(i for i in completed if 0 <= i < chapter_count)
    return dataclasses.replace(
        progress,
        completed_chapters=completed,
        progress_percentage=compute_percentage(len(completed), chapter_count),
        updated_at=now_ms(),
        **changes,
    )


def apply_chapter_advance(store: Store, video_id: str, new_chapter_index: int,
                          chapter_count: int, watch_seconds: int = 1) -> Store:
    """
    Playback moved forward into new_chapter_index: every chapter before it
    counts as watched. Completion only grows here.

    Returns a new store; the one passed in is left as it was.
    """
    progress = get_video_progress(store, video_id)
    completed = progress.completed_chapters | set(range(new_chapter_index))

    updated = _recompute(
        progress,
        completed,
        chapter_count,
        last_watched_chapter=new_chapter_index,
        total_watch_time_seconds=progress.total_watch_time_seconds + watch_seconds,
    )

    new_store = dict(store)
    new_store[video_id] = updated
    return new_store


def toggle_completion(store: Store, video_id: str, chapter_index: int, chapter_count: int) -> Store:
    """Marks chapter_index completed, or un-marks it if it already was."""
    if not 0 <= chapter_index < chapter_count:
        raise ValueError(f"Chapter {chapter_index} is out of range (0..{chapter_count - 1})")

    progress = get_video_progress(store, video_id)
    completed = set(progress.completed_chapters)
    if chapter_index in completed:
        completed.discard(chapter_index)
    else:
        completed.add(chapter_index)

    updated = _recompute(progress, completed, chapter_count, last_watched_chapter=chapter_index)

    new_store = dict(store)
    new_store[video_id] = updated
    return new_store


def serialize_store(store: Store) -> str:
    return json.dumps({video_id: progress.to_dict() for video_id, progress in store.items()})


def deserialize_store(raw: str) -> Store:
    """
    Parses a serialized store. A document that isn't a JSON object gives an
    empty store; individual records that don't parse are dropped.
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Stored progress is not valid JSON, starting fresh: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning("Stored progress is not a JSON object, starting fresh.")
        return {}

    store = {}
    for video_id, record in data.items():
        try:
            store[video_id] = VideoProgress.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping unreadable progress record for {video_id}: {e}")
    return store


class ProgressStore:
    """
    Loads and saves the whole progress mapping as one value under one key.
    The update functions above are pure; callers save() after each one.
    """

    def __init__(self, substrate, key: str = STORAGE_KEY):
        self.substrate = substrate
        self.key = key

    def load(self) -> Store:
        raw = self.substrate.get(self.key)
        if raw is None:
            return {}
        return deserialize_store(raw)

    def save(self, store: Store):
        self.substrate.set(self.key, serialize_store(store))
        logger.debug(f"Saved progress for {len(store)} video(s).")
