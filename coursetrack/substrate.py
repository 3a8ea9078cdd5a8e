import json
import os
import pathlib
import tempfile
from typing import Dict, Optional

from .utils import get_logger

logger = get_logger("Substrate")


class MemorySubstrate:
    """Key-value substrate kept in a dict. Nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str):
        self.values[key] = value


class JsonFileSubstrate:
    """
    Key-value substrate backed by one JSON object file of string values,
    e.g. {"youtube-course-progress": "{...}"}.

    Every set() rewrites the whole file through a temp file + rename,
    so a reader sees either the old document or the new one.
    """

    def __init__(self, path):
        self.path = pathlib.Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable substrate file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring substrate file {self.path}: top level is not an object")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str):
        values = self._read_all()
        values[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(values, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
