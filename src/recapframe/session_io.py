"""Meeting record serialisation."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from .models import MeetingRecord, Segment, Sentiment


def record_to_dict(record: MeetingRecord) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": record.id,
        "title": record.title,
        "timestamp": record.timestamp,
        "summary": list(record.summary),
        "actionItems": list(record.action_items),
        "sentiment": {
            "overall": record.sentiment.overall,
            "positive": record.sentiment.positive,
            "negative": record.sentiment.negative,
        },
        "text": record.text,
    }
    if record.segments is not None:
        payload["segments"] = [
            {"start": seg.start, "end": seg.end, "text": seg.text}
            for seg in record.segments
        ]
    return payload


def record_from_dict(data: Dict[str, Any]) -> MeetingRecord:
    sentiment = data.get("sentiment") or {}
    segments = data.get("segments")
    return MeetingRecord(
        id=str(data["id"]),
        title=str(data.get("title", "")),
        timestamp=str(data.get("timestamp", "")),
        text=str(data.get("text", "")),
        summary=list(data.get("summary") or []),
        action_items=list(data.get("actionItems") or []),
        sentiment=Sentiment(
            overall=str(sentiment.get("overall", "neutral")),
            positive=float(sentiment.get("positive", 0.0)),
            negative=float(sentiment.get("negative", 0.0)),
        ),
        segments=(
            [
                Segment(start=float(s["start"]), end=float(s["end"]), text=str(s["text"]))
                for s in segments
            ]
            if segments is not None
            else None
        ),
    )


def dump_records(records: List[MeetingRecord]) -> str:
    return json.dumps([record_to_dict(r) for r in records])


def load_records(blob: str) -> List[MeetingRecord]:
    data = json.loads(blob)
    if not isinstance(data, list):
        raise ValueError("Meeting history blob is not a list")
    return [record_from_dict(item) for item in data]
