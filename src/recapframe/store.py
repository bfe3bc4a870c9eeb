"""Meeting history repository over a key-value blob backend."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from .analysis import DEFAULT_TITLE, strip_quotes
from .models import MeetingDraft, MeetingRecord
from .session_io import dump_records, load_records

logger = logging.getLogger("recapframe.store")

STORAGE_KEY = "meeting-histories"


class BlobBackend(Protocol):
    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...


def iso_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def record_id_for(timestamp: str) -> str:
    return "meeting-" + timestamp.replace(":", "-").replace(".", "-")


class MeetingStore:
    """Owns the persisted meeting collection, newest first.

    Every mutation rewrites the whole list and then reloads it, so ``list``
    always reflects what was just persisted.
    """

    def __init__(
        self,
        backend: BlobBackend,
        title_fn: Optional[Callable[[List[str]], str]] = None,
        key: str = STORAGE_KEY,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.backend = backend
        self.title_fn = title_fn
        self.key = key
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._records: List[MeetingRecord] = self._load()

    def _load(self) -> List[MeetingRecord]:
        try:
            blob = self.backend.read(self.key)
            if not blob:
                return []
            records = load_records(blob)
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("Error loading meeting history: %s", exc)
            return []
        for record in records:
            record.title = strip_quotes(record.title)
        return records

    def _persist(self, records: List[MeetingRecord]) -> None:
        self.backend.write(self.key, dump_records(records))
        self._records = self._load()

    def reload(self) -> List[MeetingRecord]:
        self._records = self._load()
        return self.list()

    def list(self) -> List[MeetingRecord]:
        return list(self._records)

    def get(self, record_id: str) -> Optional[MeetingRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def _title_for(self, draft: MeetingDraft) -> str:
        if self.title_fn is None:
            return DEFAULT_TITLE
        try:
            title = strip_quotes(self.title_fn(draft.summary) or "").strip()
        except Exception:
            logger.exception("Error generating title")
            return DEFAULT_TITLE
        return title or DEFAULT_TITLE

    def _unique_id(self, timestamp: str) -> str:
        base = record_id_for(timestamp)
        existing = {r.id for r in self._records}
        candidate = base
        suffix = 1
        while candidate in existing:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def save(self, draft: MeetingDraft) -> MeetingRecord:
        timestamp = iso_timestamp(self.clock())
        title = self._title_for(draft)
        record = MeetingRecord(
            id=self._unique_id(timestamp),
            title=title,
            timestamp=timestamp,
            text=draft.text,
            summary=list(draft.summary),
            action_items=list(draft.action_items),
            sentiment=draft.sentiment,
            segments=list(draft.segments) if draft.segments is not None else None,
        )
        self._persist([record] + self._load())
        logger.info("Saved meeting %s", record.id)
        return self.get(record.id) or record

    def delete(self, record_id: str) -> bool:
        current = self._load()
        remaining = [r for r in current if r.id != record_id]
        self._persist(remaining)
        removed = len(remaining) != len(current)
        if removed:
            logger.info("Deleted meeting %s", record_id)
        return removed
