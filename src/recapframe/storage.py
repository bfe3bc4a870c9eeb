"""Storage backends and naming utilities."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime
from typing import Dict, Optional

logger = logging.getLogger("recapframe.storage")


def timestamp_slug(dt: datetime | None = None) -> str:
    now = dt or datetime.now()
    return now.strftime("%Y-%m-%d_%H%M%S")


def export_basename(title: str) -> str:
    slug = re.sub(r"\s+", "-", title.strip().lower()) if title else "meeting"
    return f"{slug}-summary"


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def ensure_structure(base_dir: str) -> dict:
    root = base_dir or os.getcwd()
    paths = {
        "root": root,
        "recordings": os.path.join(root, "Recordings"),
        "exports": os.path.join(root, "Exports"),
        "logs": os.path.join(root, "Logs"),
    }
    for path in paths.values():
        ensure_dir(path)
    paths["store"] = os.path.join(root, "meetings.json")
    return paths


class MemoryBlobBackend:
    """In-process key-value blob store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value


class FileBlobBackend:
    """Key-value blobs kept in one JSON file, replaced atomically on write."""

    def __init__(self, path: str) -> None:
        self.path = path

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected blob file layout in {self.path}")
        return data

    def read(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def write(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except ValueError:
            logger.warning("Blob file %s unreadable, starting fresh", self.path)
            data = {}
        data[key] = value
        directory = os.path.dirname(os.path.abspath(self.path))
        ensure_dir(directory)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".blob-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
