import logging
import math
import re
import sys
import time
from typing import Optional

from .exceptions import InvalidVideoReference

VIDEO_ID_PATTERN = re.compile(r"(?:v=|youtu\.be/|youtube\.com/shorts/|youtube\.com/embed/)([a-zA-Z0-9_-]{11})")
BARE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")


def seconds_to_display(seconds: int) -> str:
    """Formats seconds as H:MM:SS, or M:SS under an hour."""
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    seconds = seconds % 60
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def parse_timestamp_to_seconds(ts_str: str) -> int:
    """Converts H:MM:SS, M:SS or bare seconds to whole seconds."""
    if not ts_str:
        return 0
    parts = [int(p) for p in ts_str.strip().split(":")]
    if len(parts) == 3:
        h, m, s = parts
        return h * 3600 + m * 60 + s
    if len(parts) == 2:
        m, s = parts
        return m * 60 + s
    if len(parts) == 1:
        return parts[0]
    raise ValueError(f"Unrecognized timestamp: {ts_str!r}")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def now_ms() -> int:
    return int(time.time() * 1000)


def extract_video_id(reference: Optional[str]) -> str:
    """
    Pulls the 11 character video id out of a watch/short/embed URL,
    or accepts a bare id as-is.
    """
    if not reference or not reference.strip():
        raise InvalidVideoReference("Please enter a YouTube URL")

    reference = reference.strip()
    if BARE_ID_PATTERN.match(reference):
        return reference

    match = VIDEO_ID_PATTERN.search(reference)
    if not match:
        raise InvalidVideoReference(f"Invalid YouTube URL: {reference}")
    return match.group(1)


def setup_logging(level=logging.INFO):
    """Configures the root logger with a standard format."""
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
        datefmt="%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # requests/urllib3 connection chatter drowns out tracker output at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str):
    return logging.getLogger(name)
