import asyncio
import bisect
import enum
from typing import Callable, List, Optional, Sequence

from .exceptions import ChapterSourceError, InvalidVideoReference
from .models import Chapter, VideoProgress
from .player import PlaybackState, Player
from .progress_store import apply_chapter_advance, get_video_progress, toggle_completion
from .utils import extract_video_id, get_logger, round_half_up

logger = get_logger("Tracker")


class TrackerState(enum.Enum):
    IDLE = "idle"           # No chapters loaded
    READY = "ready"         # Chapters loaded, waiting for playback to start
    SAMPLING = "sampling"   # Playing; the timer samples the clock
    PAUSED = "paused"
    ENDED = "ended"


def resolve_chapter(chapters: Sequence[Chapter], position: float) -> int:
    """
    Index of the chapter playing at `position`: the last chapter whose offset
    is <= position. Equal offsets resolve to the later chapter. Positions
    before the first offset resolve to 0.
    """
    offsets = [c.offset_seconds for c in chapters]
    return max(bisect.bisect_right(offsets, position) - 1, 0)


class SamplingTimer:
    """
    Calls `callback` every `interval` seconds from a task on the running
    event loop. At most one task is alive; start() replaces it.
    """

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.callback()
            except Exception:
                # A failed tick must not stop sampling; the next one retries
                logger.exception("Sampling tick failed")

    def start(self):
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None


class PlaybackTracker:
    """
    Bridges a player's continuous clock to the chapter list and keeps the
    progress store in step with it.

    Every progress change goes through a pure store function followed by
    an explicit save.
    """

    def __init__(self, chapter_source, progress_store, player: Optional[Player] = None,
                 sample_interval: float = 1.0):
        self.chapter_source = chapter_source
        self.progress_store = progress_store
        self.sample_interval = sample_interval

        self.progress = progress_store.load()
        self.video_id: Optional[str] = None
        self.chapters: Sequence[Chapter] = ()
        self.current_chapter = 0
        self.state = TrackerState.IDLE
        self.last_error: Optional[str] = None

        self.player: Optional[Player] = None
        self._timer = SamplingTimer(sample_interval, self.sample)
        self._listeners: List[Callable[["PlaybackTracker"], None]] = []

        if player is not None:
            self.attach_player(player)

    # -- wiring --

    def attach_player(self, player: Player):
        self.player = player
        player.on_state_change(self.handle_state_change)

    def add_listener(self, callback: Callable[["PlaybackTracker"], None]):
        self._listeners.append(callback)

    def _notify(self):
        for callback in list(self._listeners):
            callback(self)

    def _set_state(self, state: TrackerState):
        if state != self.state:
            logger.debug(f"Tracker {self.state.value} -> {state.value}")
            self.state = state

    def _fail(self, message: str):
        self.last_error = message
        logger.error(message)
        self._notify()

    def _commit(self, new_progress) -> bool:
        """Saves first; in-memory progress only moves once the write succeeds."""
        try:
            self.progress_store.save(new_progress)
        except OSError as e:
            self._fail(f"Could not save progress: {e}")
            return False
        self.progress = new_progress
        return True

    # -- properties --

    @property
    def sampling(self) -> bool:
        return self._timer.active

    @property
    def video_progress(self) -> VideoProgress:
        if self.video_id is None:
            return VideoProgress()
        return get_video_progress(self.progress, self.video_id)

    # -- lifecycle --

    def load_video(self, reference: str, player: Optional[Player] = None) -> bool:
        """
        Loads the chapter list for a URL or video id. On failure the message
        lands in last_error and the previous video stays loaded.
        """
        try:
            video_id = extract_video_id(reference)
        except InvalidVideoReference as e:
            self._fail(str(e))
            return False

        try:
            chapters = self.chapter_source.fetch_chapters(video_id)
        except ChapterSourceError as e:
            self._fail(str(e))
            return False

        if not chapters:
            self._fail(f"No chapters found for video {video_id}")
            return False

        self._timer.cancel()
        self._set_state(TrackerState.IDLE)

        # Another session may have saved since we last looked
        self.progress = self.progress_store.load()
        self.video_id = video_id
        self.chapters = tuple(chapters)
        self.current_chapter = 0
        self.last_error = None
        if player is not None:
            self.attach_player(player)

        self._set_state(TrackerState.READY)
        logger.info(f"Loaded {len(self.chapters)} chapters for {video_id} "
                    f"({self.video_progress.progress_percentage}% complete)")
        self._notify()
        return True

    def handle_state_change(self, state: PlaybackState):
        if self.state == TrackerState.IDLE:
            return

        if state == PlaybackState.PLAYING:
            self._timer.start()
            self._set_state(TrackerState.SAMPLING)
        elif state == PlaybackState.PAUSED:
            self._timer.cancel()
            self._set_state(TrackerState.PAUSED)
        elif state == PlaybackState.ENDED:
            self._timer.cancel()
            self._set_state(TrackerState.ENDED)
        else:
            return
        self._notify()

    def close(self):
        """Ends the session: stops sampling and unloads the video."""
        self._timer.cancel()
        self.video_id = None
        self.chapters = ()
        self.current_chapter = 0
        self._set_state(TrackerState.IDLE)
        self._notify()

    # -- sampling --

    def sample(self):
        """One sampling step: read the clock, resolve the chapter, record forward progress."""
        if not self.chapters or self.player is None:
            return

        position = self.player.get_current_position()
        if position is None:
            logger.debug("Player clock not readable yet, skipping sample.")
            return

        new_chapter = resolve_chapter(self.chapters, position)
        previous = self.current_chapter
        if new_chapter == previous:
            return

        self.current_chapter = new_chapter
        if new_chapter > previous:
            logger.info(f"Advanced to chapter {new_chapter + 1}/{len(self.chapters)}: "
                        f"'{self.chapters[new_chapter].title}'")
            saved = self._commit(apply_chapter_advance(
                self.progress,
                self.video_id,
                new_chapter,
                len(self.chapters),
                watch_seconds=round_half_up(self.sample_interval),
            ))
            if not saved:
                return
        else:
            # Moving back never un-completes anything
            logger.info(f"Moved back to chapter {new_chapter + 1}/{len(self.chapters)}")
        self._notify()

    # -- user intents --

    def seek_to_chapter(self, index: int) -> bool:
        if not 0 <= index < len(self.chapters):
            logger.warning(f"Cannot seek to chapter {index}: out of range.")
            return False
        if self.player is None:
            logger.warning("Cannot seek: no player attached.")
            return False

        self.player.seek_to(self.chapters[index].offset_seconds)
        # Shown right away; the next sample reconciles with the real position
        self.current_chapter = index
        self._notify()
        return True

    def mark_chapter_completed(self, index: int) -> bool:
        """Toggles completion of a chapter, whatever the player is doing."""
        if self.video_id is None:
            logger.warning("Cannot mark chapter: no video loaded.")
            return False
        if not 0 <= index < len(self.chapters):
            logger.warning(f"Cannot mark chapter {index}: out of range.")
            return False

        if not self._commit(toggle_completion(self.progress, self.video_id, index, len(self.chapters))):
            return False
        done = index in self.video_progress.completed_chapters
        logger.info(f"Chapter {index + 1} marked {'completed' if done else 'not completed'}")
        self._notify()
        return True

    def resume(self) -> bool:
        """Seeks to the last chapter watched in an earlier session, if any."""
        last = self.video_progress.last_watched_chapter
        if last < 0:
            return False
        return self.seek_to_chapter(last)

    def snapshot(self) -> dict:
        progress = self.video_progress
        return {
            "video_id": self.video_id,
            "state": self.state.value,
            "chapters": list(self.chapters),
            "current_chapter": self.current_chapter,
            "completed_chapters": sorted(progress.completed_chapters),
            "progress_percentage": progress.progress_percentage,
            "last_watched_chapter": progress.last_watched_chapter,
            "total_watch_time_seconds": progress.total_watch_time_seconds,
            "updated_at": progress.updated_at,
            "error": self.last_error,
        }
