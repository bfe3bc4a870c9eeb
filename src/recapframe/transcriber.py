"""Transcription through the OpenAI audio API or local Faster-Whisper."""

from __future__ import annotations

import io
import logging
import os
import tempfile
from typing import Any, Callable, Generator, List, Optional

from openai import OpenAI

from .audio_utils import validate_clip
from .config import Config, resolve_api_key
from .errors import ConfigurationError, InputError, RecapError, ServiceError
from .llm import translate_error
from .models import AudioClip, ProgressEvent, Segment, Transcript

logger = logging.getLogger("recapframe.transcriber")

TranscriptionStream = Generator[ProgressEvent, None, Transcript]


def _format_time(seconds: float) -> str:
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"


def format_timestamped_transcript(transcript: Transcript) -> str:
    if not transcript.segments:
        return transcript.text
    return "\n".join(
        f"[{_format_time(seg.start)} - {_format_time(seg.end)}] {seg.text}"
        for seg in transcript.segments
    )


def drive(stream: TranscriptionStream, progress_cb: Optional[Callable[[ProgressEvent], None]] = None) -> Transcript:
    while True:
        try:
            event = next(stream)
        except StopIteration as stop:
            return stop.value
        if progress_cb:
            progress_cb(event)


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class OpenAITranscriber:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "whisper-1",
        language: str = "en",
        client: Any = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
            client = OpenAI(api_key=api_key)
        self.client = client
        self.model = model
        self.language = language

    def transcribe_iter(self, clip: AudioClip, with_timestamps: bool = False) -> TranscriptionStream:
        validate_clip(clip)
        yield ProgressEvent("uploading", 0)

        kwargs: dict = {
            "model": self.model,
            "file": (clip.filename, io.BytesIO(clip.data), clip.mime_type),
            "language": self.language,
            "response_format": "verbose_json" if with_timestamps else "text",
        }
        if with_timestamps:
            kwargs["timestamp_granularities"] = ["segment"]

        yield ProgressEvent("transcribing", 50)
        try:
            response = self.client.audio.transcriptions.create(**kwargs)
        except Exception as exc:
            raise self._translate(exc) from exc
        yield ProgressEvent("transcribing", 100)

        if with_timestamps:
            raw_segments = _get(response, "segments") or []
            segments = [
                Segment(
                    start=float(_get(seg, "start", 0.0)),
                    end=float(_get(seg, "end", 0.0)),
                    text=str(_get(seg, "text", "")),
                )
                for seg in raw_segments
            ]
            return Transcript(
                text=str(_get(response, "text", "") or ""), segments=segments or None
            )

        text = response if isinstance(response, str) else _get(response, "text", "")
        return Transcript(text=(text or "").strip())

    def _translate(self, exc: Exception) -> RecapError:
        error = translate_error(exc)
        if isinstance(error, ServiceError) and error.status == 413:
            return InputError(
                "File size too large. Please upload a file smaller than 25MB.",
                reason="oversized",
            )
        if isinstance(error, ServiceError) and error.status == 400:
            return ServiceError(f"Invalid request: {error.message}", status=400)
        if isinstance(error, ServiceError) and not error.quota:
            return ServiceError(f"Transcription failed: {error.message}", status=error.status)
        return error

    def transcribe(
        self,
        clip: AudioClip,
        with_timestamps: bool = False,
        progress_cb: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> Transcript:
        return drive(self.transcribe_iter(clip, with_timestamps), progress_cb)


class LocalWhisperTranscriber:
    """Offline backend on Faster-Whisper; the model loads on first use."""

    def __init__(
        self,
        model_name: str = "small",
        language: Optional[str] = None,
        device: Optional[str] = None,
        compute_type: Optional[str] = None,
        model: Any = None,
    ) -> None:
        self.model_name = model_name
        self.language = language
        self.device = device
        self.compute_type = compute_type
        self._model = model

    def _load_model(self):
        if self._model is not None:
            return self._model
        try:
            from faster_whisper import WhisperModel
        except Exception as exc:  # pragma: no cover - optional dependency
            raise ServiceError("faster-whisper is required for local transcription.") from exc

        kwargs = {}
        if self.device:
            kwargs["device"] = self.device
        if self.compute_type:
            kwargs["compute_type"] = self.compute_type
        self._model = WhisperModel(self.model_name, **kwargs)
        return self._model

    def transcribe_iter(self, clip: AudioClip, with_timestamps: bool = False) -> TranscriptionStream:
        validate_clip(clip)
        yield ProgressEvent("processing", 0)
        model = self._load_model()

        suffix = os.path.splitext(clip.filename)[1] or ".wav"
        fd, path = tempfile.mkstemp(suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(clip.data)
            segments, info = model.transcribe(path, language=self.language)
            total = getattr(info, "duration", None)

            output: List[Segment] = []
            for seg in segments:
                output.append(Segment(start=seg.start, end=seg.end, text=seg.text.strip()))
                if total:
                    ratio = min(max(seg.end / total, 0.0), 1.0)
                    yield ProgressEvent("transcribing", int(ratio * 100))
        except RecapError:
            raise
        except Exception as exc:
            logger.exception("Local transcription failed")
            raise ServiceError(f"Transcription failed: {exc}") from exc
        finally:
            if os.path.exists(path):
                os.remove(path)

        yield ProgressEvent("transcribing", 100)
        text = " ".join(seg.text for seg in output if seg.text).strip()
        return Transcript(text=text, segments=(output or None) if with_timestamps else None)

    def transcribe(
        self,
        clip: AudioClip,
        with_timestamps: bool = False,
        progress_cb: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> Transcript:
        return drive(self.transcribe_iter(clip, with_timestamps), progress_cb)


def build_transcriber(config: Config):
    backend = (config.transcription.backend or "openai").lower()
    if backend == "local":
        return LocalWhisperTranscriber(
            model_name=config.transcription.local_model,
            language=config.language or None,
            device=config.transcription.device,
            compute_type=config.transcription.compute_type,
        )
    if backend == "openai":
        return OpenAITranscriber(
            api_key=resolve_api_key(config),
            model=config.transcription.model,
            language=config.language or "en",
        )
    raise InputError(f"Unknown transcription backend: {backend}", reason="invalid_config")
