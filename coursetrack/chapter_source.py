import abc
import json
import pathlib
import re
from typing import List

import requests
from bs4 import BeautifulSoup

from .exceptions import ChapterSourceError
from .models import Chapter
from .utils import get_logger, parse_timestamp_to_seconds, seconds_to_display

logger = get_logger("ChapterSource")

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

# "0:00 Intro", "1:02:03 - Wrap up", "[12:30] Q&A", "(5:00) Setup"
TIMESTAMP_LINE = re.compile(
    r"^\s*[\[(]?(?P<time>(?:\d{1,2}:)?\d{1,2}:\d{2})[\])]?\s*(?:[-–—:|]\s*)?(?P<title>.+?)\s*$"
)
PLAYER_RESPONSE = re.compile(r"ytInitialPlayerResponse\s*=\s*(\{.+?\})\s*;\s*(?:var\s|</script>|$)", re.S)


def chapter_url(video_id: str, offset_seconds: int) -> str:
    return f"{WATCH_URL.format(video_id=video_id)}&t={offset_seconds}s"


def parse_description_chapters(text: str, video_id: str) -> List[Chapter]:
    """
    Extracts chapters from timestamp lines in a video description.
    Needs at least two timestamp lines, one of them at 0:00.
    Returns [] when the description doesn't describe chapters.
    """
    rows = []
    for line in (text or "").splitlines():
        match = TIMESTAMP_LINE.match(line)
        if not match:
            continue
        time_str = match.group("time")
        rows.append((parse_timestamp_to_seconds(time_str), match.group("title")))

    if len(rows) < 2:
        return []

    # Stable sort keeps description order for equal offsets
    rows.sort(key=lambda row: row[0])
    if rows[0][0] != 0:
        logger.debug(f"Description timestamps for {video_id} don't start at 0:00; not chapters.")
        return []

    return [
        Chapter(
            title=title,
            display_time=seconds_to_display(offset),
            source_url=chapter_url(video_id, offset),
            offset_seconds=offset,
        )
        for offset, title in rows
    ]


class ChapterSource(abc.ABC):
    """Turns a video id into its ordered chapter list."""

    @abc.abstractmethod
    def fetch_chapters(self, video_id: str) -> List[Chapter]:
        """Raises ChapterSourceError when the video has no usable chapters."""


class YouTubeChapterSource(ChapterSource):
    """Reads chapters out of the description on the public watch page."""

    def __init__(self, timeout: float = 10.0, session=None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_description(self, html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")

        for script in soup.find_all("script"):
            content = script.string or ""
            if "ytInitialPlayerResponse" not in content:
                continue
            match = PLAYER_RESPONSE.search(content)
            if not match:
                continue
            try:
                player_response = json.loads(match.group(1))
            except ValueError as e:
                logger.debug(f"Could not decode player response: {e}")
                continue
            description = player_response.get("videoDetails", {}).get("shortDescription")
            if description:
                return description

        # Truncated, but sometimes enough for short chapter lists
        meta = soup.find("meta", attrs={"name": "description"})
        if meta and meta.get("content"):
            return meta["content"]
        return ""

    def fetch_chapters(self, video_id: str) -> List[Chapter]:
        url = WATCH_URL.format(video_id=video_id)
        logger.info(f"Fetching chapters for {video_id}")

        try:
            response = self.session.get(url, timeout=self.timeout, headers={"Accept-Language": "en"})
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch watch page for {video_id}: {e}")
            raise ChapterSourceError("Failed to fetch chapters") from e

        description = self._get_description(response.text)
        chapters = parse_description_chapters(description, video_id)
        if not chapters:
            raise ChapterSourceError(f"No chapters found for video {video_id}")

        logger.info(f"Found {len(chapters)} chapters for {video_id}")
        return chapters


class JsonChapterSource(ChapterSource):
    """
    Reads <directory>/<video_id>.json, a list of rows like
    {"title": "Intro", "start_time": "00:00:00", "seconds": 0}.
    Rows with a blank start time are skipped.
    """

    def __init__(self, directory):
        self.directory = pathlib.Path(directory)

    def fetch_chapters(self, video_id: str) -> List[Chapter]:
        json_path = self.directory / f"{video_id}.json"
        if not json_path.exists():
            raise ChapterSourceError(f"No chapter file for video {video_id}: {json_path}")

        try:
            with open(json_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read {json_path}: {e}")
            raise ChapterSourceError(f"Chapter file for {video_id} is unreadable") from e

        rows = []
        for item in data if isinstance(data, list) else []:
            if not isinstance(item, dict):
                continue
            title = item.get("title") or "Untitled"
            seconds = item.get("seconds")
            start_time = item.get("start_time") or ""

            # Trust the time string over the seconds column, like a hand-edited table
            try:
                if start_time:
                    offset = parse_timestamp_to_seconds(start_time)
                elif isinstance(seconds, (int, float)):
                    offset = int(seconds)
                else:
                    continue
            except ValueError:
                logger.warning(f"Skipping chapter '{title}' with bad start time {start_time!r}")
                continue
            if offset < 0:
                logger.warning(f"Skipping chapter '{title}' with negative start {offset}s")
                continue
            rows.append((offset, title))

        if not rows:
            raise ChapterSourceError(f"No chapters found for video {video_id}")

        rows.sort(key=lambda row: row[0])
        return [
            Chapter(
                title=title,
                display_time=seconds_to_display(offset),
                source_url=chapter_url(video_id, offset),
                offset_seconds=offset,
            )
            for offset, title in rows
        ]
