import abc
import enum
import time
from typing import Callable, List, Optional

from .utils import get_logger

logger = get_logger("Player")


class PlaybackState(enum.IntEnum):
    """Player states, numbered like the YouTube IFrame API's PlayerState."""
    UNSTARTED = -1
    ENDED = 0
    PLAYING = 1
    PAUSED = 2
    BUFFERING = 3
    CUED = 5


StateCallback = Callable[[PlaybackState], None]


class Player(abc.ABC):
    """The three things the tracker needs from a video player."""

    @abc.abstractmethod
    def get_current_position(self) -> Optional[float]:
        """Seconds into the video, or None while the player can't report a clock."""

    @abc.abstractmethod
    def seek_to(self, seconds: float):
        ...

    @abc.abstractmethod
    def on_state_change(self, callback: StateCallback):
        """Registers callback to receive every PlaybackState transition."""


class SimulatedPlayer(Player):
    """
    Headless player used by the CLI and the tests.
    The clock advances with real (monotonic) time while playing, scaled by speed.
    """

    def __init__(self, duration: float, speed: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.duration = duration
        self.speed = speed
        self._clock = clock
        self._callbacks: List[StateCallback] = []
        self._loaded = False
        self._position = 0.0
        self._started_at: Optional[float] = None
        self.state = PlaybackState.UNSTARTED

    def on_state_change(self, callback: StateCallback):
        self._callbacks.append(callback)

    def _emit(self, state: PlaybackState):
        self.state = state
        logger.debug(f"Player state -> {state.name}")
        for callback in list(self._callbacks):
            callback(state)

    def _settle(self):
        # Fold elapsed playing time into the stored position
        if self._started_at is not None:
            now = self._clock()
            self._position += (now - self._started_at) * self.speed
            self._started_at = now

    def load(self):
        self._loaded = True
        self._position = 0.0
        self._emit(PlaybackState.CUED)

    def get_current_position(self) -> Optional[float]:
        if not self._loaded:
            return None
        self._settle()
        if self._position >= self.duration:
            self._position = self.duration
            if self.state == PlaybackState.PLAYING:
                self._started_at = None
                self._emit(PlaybackState.ENDED)
        return self._position

    def seek_to(self, seconds: float):
        if not self._loaded:
            logger.debug("Seek ignored, player not loaded.")
            return
        self._settle()
        self._position = max(0.0, min(float(seconds), self.duration))

    def play(self):
        if not self._loaded:
            self.load()
        if self.state == PlaybackState.PLAYING:
            return
        self._started_at = self._clock()
        self._emit(PlaybackState.PLAYING)

    def pause(self):
        if self.state != PlaybackState.PLAYING:
            return
        self._settle()
        self._started_at = None
        self._emit(PlaybackState.PAUSED)

    def stop(self):
        self._settle()
        self._started_at = None
        self._emit(PlaybackState.ENDED)
