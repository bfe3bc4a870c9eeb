"""Session flow: capture or upload, transcribe, analyse, save, then chat."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generator, List, Optional

from .analysis import AnalysisEngine
from .errors import ConfigurationError, InputError, RecapError
from .models import (
    AudioClip,
    ChatMessage,
    MeetingDraft,
    MeetingRecord,
    Outcome,
    ProgressEvent,
    Transcript,
)
from .qa import QuestionAnswerer
from .recorder import AudioRecorder
from .store import MeetingStore

logger = logging.getLogger("recapframe.session")

PipelineStream = Generator[ProgressEvent, None, Outcome]


class SessionState(str, Enum):
    SELECTING = "selecting"
    RECORDING = "recording"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    RESULTS = "results"


@dataclass(frozen=True)
class MeetingContext:
    """What a feature may read about the active meeting."""

    record_id: Optional[str]
    transcript: Optional[str]


def run(stream: PipelineStream, on_progress: Optional[Callable[[ProgressEvent], None]] = None) -> Outcome:
    """Drive a pipeline stream to completion and return its outcome."""
    events: List[ProgressEvent] = []
    while True:
        try:
            event = next(stream)
        except StopIteration as stop:
            outcome = stop.value or Outcome()
            outcome.events = events
            return outcome
        events.append(event)
        if on_progress:
            on_progress(event)


class ChatLog:
    def __init__(self) -> None:
        self.messages: List[ChatMessage] = []
        self.is_asking = False

    def clear(self) -> None:
        self.messages = []

    def ask(self, answerer: QuestionAnswerer, transcript: Optional[str], question: str) -> Optional[ChatMessage]:
        """Append a pending entry, then complete it or remove it on failure."""
        if not question.strip() or not transcript or self.is_asking:
            return None
        message = ChatMessage(question=question)
        self.messages.append(message)
        self.is_asking = True
        try:
            answer = answerer.ask(transcript, question)
        except Exception:
            self.messages = [m for m in self.messages if m is not message]
            raise
        finally:
            self.is_asking = False
        message.answer = answer
        message.status = "complete"
        return message


class MeetingSession:
    def __init__(
        self,
        transcriber,
        analysis: AnalysisEngine,
        store: MeetingStore,
        answerer: Optional[QuestionAnswerer] = None,
        recorder: Optional[AudioRecorder] = None,
    ) -> None:
        self.transcriber = transcriber
        self.analysis = analysis
        self.store = store
        self.answerer = answerer
        self.recorder = recorder
        self.state = SessionState.SELECTING
        self.view = "new"
        self.phase: Optional[str] = None
        self.progress = 0
        self.error: Optional[str] = None
        self.last_error: Optional[RecapError] = None
        self.active_record: Optional[MeetingRecord] = None
        self.chat = ChatLog()
        self._entry_state = SessionState.SELECTING

    # -- selection -------------------------------------------------------

    def choose_recording(self) -> None:
        self.state = SessionState.RECORDING
        self.error = None

    def choose_upload(self) -> None:
        self.state = SessionState.UPLOADING
        self.error = None

    def new_session(self) -> None:
        logger.info("New session")
        self.state = SessionState.SELECTING
        self.view = "new"
        self.active_record = None
        self.chat.clear()
        self.error = None
        self.last_error = None
        self.progress = 0
        self.phase = None

    # -- capture ---------------------------------------------------------

    def start_recording(self, include_system_audio: bool = False) -> bool:
        if self.recorder is None:
            raise ConfigurationError("No audio recorder configured")
        self.state = SessionState.RECORDING
        try:
            self.recorder.start(include_system_audio=include_system_audio)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.exception("Failed to start recording")
            self.error = str(exc) or "Failed to start recording"
            return False
        self.error = None
        return True

    def stop_recording(self, with_timestamps: bool = False) -> PipelineStream:
        if self.recorder is None:
            raise ConfigurationError("No audio recorder configured")
        self._ensure_idle()
        clip = self.recorder.stop()
        return self.process(clip, with_timestamps, entry_state=SessionState.RECORDING)

    def upload(self, clip: AudioClip, with_timestamps: bool = False) -> PipelineStream:
        self._ensure_idle()
        self.state = SessionState.UPLOADING
        return self.process(clip, with_timestamps, entry_state=SessionState.UPLOADING)

    # -- pipeline --------------------------------------------------------

    def _ensure_idle(self) -> None:
        if self.state == SessionState.PROCESSING:
            raise InputError("A meeting is already being processed", reason="busy")

    def process(
        self,
        clip: AudioClip,
        with_timestamps: bool = False,
        entry_state: Optional[SessionState] = None,
    ) -> PipelineStream:
        self._ensure_idle()
        if entry_state is None:
            entry_state = (
                self.state
                if self.state in (SessionState.RECORDING, SessionState.UPLOADING)
                else SessionState.UPLOADING
            )
        self._begin(entry_state)
        return self._pipeline(clip, with_timestamps, entry_state)

    def _begin(self, entry_state: SessionState) -> None:
        self._entry_state = entry_state
        self.state = SessionState.PROCESSING
        self.progress = 0
        self.phase = None
        self.error = None
        self.last_error = None

    def cancel(self) -> None:
        """Return an abandoned pipeline to the state it was started from."""
        if self.state != SessionState.PROCESSING:
            return
        logger.info("Processing cancelled")
        self.state = self._entry_state
        self.phase = None

    def _advance(self, phase: str, percent: int) -> ProgressEvent:
        self.phase = phase
        self.progress = max(self.progress, min(100, max(0, int(percent))))
        return ProgressEvent(phase, self.progress)

    def _track(self, stream: Generator[ProgressEvent, None, Transcript]) -> Generator[ProgressEvent, None, Transcript]:
        while True:
            try:
                event = next(stream)
            except StopIteration as stop:
                return stop.value
            yield self._advance(event.phase, event.percent)

    def _pipeline(self, clip: AudioClip, with_timestamps: bool, entry_state: SessionState) -> PipelineStream:
        logger.info("Processing %s (%s bytes)", clip.filename, clip.size)

        try:
            yield self._advance("transcribing", 0)
            transcript = yield from self._track(
                self.transcriber.transcribe_iter(clip, with_timestamps)
            )
            if not transcript or not transcript.text.strip():
                raise InputError("No speech was detected in the audio", reason="empty")
            yield self._advance("transcribing", 100)

            yield self._advance("analyzing", 100)
            analysis = self.analysis.analyze(transcript.text)

            yield self._advance("saving", 100)
            record = self.store.save(
                MeetingDraft(
                    text=transcript.text,
                    summary=analysis.summary,
                    action_items=analysis.action_items,
                    sentiment=analysis.sentiment,
                    segments=transcript.segments,
                )
            )
        except RecapError as exc:
            self._fail(exc, entry_state)
            if isinstance(exc, ConfigurationError):
                raise
            return Outcome(error=exc)
        except GeneratorExit:
            self.cancel()
            raise
        except Exception as exc:
            self._fail(RecapError(str(exc) or exc.__class__.__name__), entry_state)
            raise

        self._activate(record)
        self.state = SessionState.RESULTS
        logger.info("Meeting %s ready", record.id)
        return Outcome(record=record)

    def _fail(self, exc: RecapError, entry_state: SessionState) -> None:
        logger.error("Processing failed: %s", exc.message)
        self.last_error = exc
        self.error = f"Analysis failed: {exc.message}"
        self.state = entry_state

    # -- history ---------------------------------------------------------

    def _activate(self, record: MeetingRecord) -> None:
        if self.active_record is None or self.active_record.id != record.id:
            self.chat.clear()
        self.active_record = record
        self.view = "summary"

    @property
    def meetings(self) -> List[MeetingRecord]:
        return self.store.list()

    def load_record(self, record_id: str) -> Optional[MeetingRecord]:
        record = self.store.get(record_id)
        if record is None:
            return None
        self._activate(record)
        return record

    def delete_record(self, record_id: str) -> bool:
        if self.active_record is not None and self.active_record.id == record_id:
            self.active_record = None
            self.chat.clear()
        return self.store.delete(record_id)

    def context(self) -> MeetingContext:
        record = self.active_record
        if record is None:
            return MeetingContext(record_id=None, transcript=None)
        return MeetingContext(record_id=record.id, transcript=record.text)

    # -- questions -------------------------------------------------------

    def ask(self, question: str) -> Optional[ChatMessage]:
        if self.answerer is None:
            raise ConfigurationError("No question answering service configured")
        try:
            return self.chat.ask(self.answerer, self.context().transcript, question)
        except ConfigurationError:
            raise
        except RecapError as exc:
            self.last_error = exc
            self.error = exc.message
            return None
