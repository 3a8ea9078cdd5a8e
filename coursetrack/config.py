import os
import pathlib
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .progress_store import STORAGE_KEY
from .utils import get_logger

logger = get_logger("Config")

DEFAULT_PROGRESS_FILE = pathlib.Path.home() / ".coursetrack" / "progress.json"
DEFAULT_SAMPLE_INTERVAL = 1.0
# Each advance credits the interval rounded to whole seconds; below this it rounds to 0
MIN_SAMPLE_INTERVAL = 0.5
DEFAULT_REQUEST_TIMEOUT = 10.0


@dataclass
class Settings:
    progress_file: pathlib.Path = DEFAULT_PROGRESS_FILE
    storage_key: str = STORAGE_KEY
    sample_interval: float = DEFAULT_SAMPLE_INTERVAL
    chapters_dir: Optional[pathlib.Path] = None   # Use local chapter files instead of YouTube
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def _positive_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        value = 0.0
    if value <= 0:
        logger.warning(f"{name}={raw!r} is not a positive number, using {default}")
        return default
    if value < minimum:
        logger.warning(f"{name}={raw!r} is below the minimum of {minimum}, using {default}")
        return default
    return value


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Builds Settings from defaults, overridden by COURSETRACK_* variables.
    A .env file (cwd, or env_file) is loaded first; real environment wins.
    """
    load_dotenv(env_file)

    progress_file = os.getenv("COURSETRACK_PROGRESS_FILE")
    chapters_dir = os.getenv("COURSETRACK_CHAPTERS_DIR")

    return Settings(
        progress_file=pathlib.Path(progress_file).expanduser() if progress_file else DEFAULT_PROGRESS_FILE,
        storage_key=os.getenv("COURSETRACK_STORAGE_KEY") or STORAGE_KEY,
        sample_interval=_positive_float("COURSETRACK_SAMPLE_INTERVAL", DEFAULT_SAMPLE_INTERVAL,
                                        minimum=MIN_SAMPLE_INTERVAL),
        chapters_dir=pathlib.Path(chapters_dir).expanduser() if chapters_dir else None,
        request_timeout=_positive_float("COURSETRACK_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
    )
