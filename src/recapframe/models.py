"""Data models for recapframe."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, List

from .errors import RecapError


@dataclass
class Segment:
    start: float
    end: float
    text: str


@dataclass
class Transcript:
    text: str
    segments: Optional[List[Segment]] = None


@dataclass
class AudioClip:
    data: bytes
    filename: str = "recording.wav"
    mime_type: str = "audio/wav"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class Sentiment:
    overall: str = "neutral"
    positive: float = 0.0
    negative: float = 0.0


@dataclass
class AnalysisResult:
    summary: List[str]
    action_items: List[str]
    sentiment: Sentiment


@dataclass
class MeetingDraft:
    """Analysed meeting that has not been persisted yet."""

    text: str
    summary: List[str]
    action_items: List[str]
    sentiment: Sentiment
    segments: Optional[List[Segment]] = None


@dataclass
class MeetingRecord:
    id: str
    title: str
    timestamp: str
    text: str
    summary: List[str]
    action_items: List[str]
    sentiment: Sentiment
    segments: Optional[List[Segment]] = None


@dataclass
class ChatMessage:
    question: str
    answer: str = ""
    status: str = "thinking"


@dataclass
class QuizQuestion:
    id: str
    type: str
    question: str
    correct_answer: str
    explanation: str
    options: Optional[List[str]] = None


@dataclass
class QuestionState:
    selected_answer: Optional[str]
    is_answered: bool
    is_correct: bool


@dataclass
class QuizConfig:
    num_questions: int = 10
    difficulty: str = "medium"


@dataclass
class ProgressEvent:
    phase: str
    percent: int


@dataclass
class Outcome:
    """Terminal result of a progress stream."""

    record: Optional[MeetingRecord] = None
    error: Optional[RecapError] = None
    events: List[ProgressEvent] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and self.record is not None
