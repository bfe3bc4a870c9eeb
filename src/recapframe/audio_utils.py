"""Audio helpers."""

from __future__ import annotations

import io
import mimetypes
import os
import wave
from typing import List, Optional

import numpy as np

from .errors import InputError
from .models import AudioClip

MAX_UPLOAD_BYTES = 25 * 1024 * 1024

SUPPORTED_FORMATS = (
    "audio/flac",
    "audio/m4a",
    "audio/mp3",
    "audio/mp4",
    "audio/mpeg",
    "audio/mpga",
    "audio/oga",
    "audio/ogg",
    "audio/wav",
    "audio/webm",
    "video/mp4",
    "video/webm",
)

# mimetypes disagrees between platforms for several audio extensions.
_EXTENSION_TYPES = {
    ".flac": "audio/flac",
    ".m4a": "audio/m4a",
    ".mp3": "audio/mpeg",
    ".mp4": "audio/mp4",
    ".mpeg": "audio/mpeg",
    ".mpga": "audio/mpga",
    ".oga": "audio/oga",
    ".ogg": "audio/ogg",
    ".wav": "audio/wav",
    ".webm": "audio/webm",
}

_MIME_ALIASES = {
    "audio/x-wav": "audio/wav",
    "audio/wave": "audio/wav",
    "audio/x-flac": "audio/flac",
    "audio/x-m4a": "audio/m4a",
}


def guess_mime_type(path: str) -> Optional[str]:
    ext = os.path.splitext(path)[1].lower()
    if ext in _EXTENSION_TYPES:
        return _EXTENSION_TYPES[ext]
    guessed, _ = mimetypes.guess_type(path)
    return guessed


def validate_clip(clip: AudioClip) -> None:
    if clip.size > MAX_UPLOAD_BYTES:
        raise InputError("File size must be less than 25MB", reason="oversized")
    mime = (clip.mime_type or "").lower()
    mime = _MIME_ALIASES.get(mime, mime)
    if mime not in SUPPORTED_FORMATS:
        raise InputError(
            "Unsupported file format. Please upload one of the following formats: "
            "FLAC, M4A, MP3, MP4, MPEG, MPGA, OGA, OGG, WAV, or WEBM",
            reason="unsupported_format",
        )


def clip_from_path(path: str) -> AudioClip:
    with open(path, "rb") as handle:
        data = handle.read()
    return AudioClip(
        data=data,
        filename=os.path.basename(path),
        mime_type=guess_mime_type(path) or "application/octet-stream",
    )


def encode_wav(frames: np.ndarray, sample_rate_hz: int, channels: int) -> bytes:
    if frames.dtype != np.int16:
        frames = frames.astype(np.int16)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as handle:
        handle.setnchannels(channels)
        handle.setsampwidth(2)
        handle.setframerate(sample_rate_hz)
        handle.writeframes(frames.tobytes())
    return buffer.getvalue()


def join_chunks(chunks: List[np.ndarray], channels: int) -> np.ndarray:
    if not chunks:
        return np.zeros((0, channels), dtype=np.int16)
    return np.concatenate([c.reshape(-1, c.shape[-1]) for c in chunks], axis=0)


def mix_down(mic: np.ndarray, system: np.ndarray) -> np.ndarray:
    """Mix system audio into the microphone channel layout."""
    frames = min(mic.shape[0], system.shape[0])
    if frames == 0:
        return mic.astype(np.int16)
    mic_part = mic[:frames].astype(np.int32)
    sys_mono = system[:frames].astype(np.int32).mean(axis=1, keepdims=True)
    mixed = (mic_part + sys_mono) / 2
    tail = mic[frames:].astype(np.int32)
    out = np.concatenate([mixed, tail], axis=0) if tail.size else mixed
    return np.clip(out, -32768, 32767).astype(np.int16)
