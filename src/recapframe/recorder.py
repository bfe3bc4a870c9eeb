"""Audio recording utilities."""

from __future__ import annotations

import logging
import threading
from typing import Optional, List, Dict, Any

from .audio_utils import encode_wav, join_chunks, mix_down
from .errors import InputError
from .models import AudioClip

logger = logging.getLogger("recapframe.recorder")


def _import_sounddevice():
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise RuntimeError("sounddevice is required for recording.") from exc
    return sd


def list_input_devices(loopback: bool = False, sd=None) -> List[Dict[str, Any]]:
    sd = sd or _import_sounddevice()
    devices = sd.query_devices()
    if loopback:
        return [d for d in devices if d.get("max_output_channels", 0) > 0]
    return [d for d in devices if d.get("max_input_channels", 0) > 0]


def select_preferred_device(
    candidates: List[Dict[str, Any]],
    prefer_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not candidates:
        raise RuntimeError("No input devices found.")
    if prefer_name:
        preferred = [
            d for d in candidates if prefer_name.lower() in d.get("name", "").lower()
        ]
        if preferred:
            return preferred[0]
    return candidates[0]


def find_input_device(
    prefer_name: Optional[str] = None, loopback: bool = False, sd=None
) -> dict:
    candidates = list_input_devices(loopback=loopback, sd=sd)
    return select_preferred_device(candidates, prefer_name=prefer_name)


class AudioRecorder:
    """Buffers microphone (and optionally system) audio until stopped.

    Every stream opened by ``start`` is stopped and closed by ``stop``, on
    the mixed microphone + system path as well.
    """

    def __init__(
        self,
        sample_rate_hz: int = 44100,
        channels: int = 1,
        system_channels: int = 2,
        device_name: Optional[str] = None,
        system_device_name: Optional[str] = None,
        sd=None,
    ) -> None:
        self.sample_rate_hz = sample_rate_hz
        self.channels = channels
        self.system_channels = system_channels
        self.device_name = device_name
        self.system_device_name = system_device_name
        self._sd = sd
        self._lock = threading.Lock()
        self._mic_stream = None
        self._system_stream = None
        self._mic_chunks: list = []
        self._system_chunks: list = []

    def _backend(self):
        if self._sd is None:
            self._sd = _import_sounddevice()
        return self._sd

    def is_recording(self) -> bool:
        return self._mic_stream is not None

    def start(self, include_system_audio: bool = False) -> None:
        if self.is_recording():
            raise InputError("A recording is already in progress", reason="busy")
        sd = self._backend()
        self._mic_chunks = []
        self._system_chunks = []

        mic_device = find_input_device(self.device_name, loopback=False, sd=sd)
        mic_stream = sd.InputStream(
            samplerate=self.sample_rate_hz,
            channels=self.channels,
            dtype="int16",
            device=mic_device.get("index"),
            callback=self._make_callback(self._mic_chunks),
        )
        try:
            mic_stream.start()
        except Exception:
            mic_stream.close()
            raise
        self._mic_stream = mic_stream
        logger.info("Recording started (mic=%s)", mic_device.get("name"))

        if include_system_audio:
            try:
                self._system_stream = self._open_system_stream(sd)
                logger.info("System audio capture enabled")
            except Exception as exc:
                logger.warning("Could not capture system audio: %s", exc)
                self._system_stream = None

    def _open_system_stream(self, sd):
        device = find_input_device(self.system_device_name, loopback=True, sd=sd)
        extra_settings = None
        if hasattr(sd, "WasapiSettings"):
            try:
                extra_settings = sd.WasapiSettings(loopback=True)
            except TypeError:
                extra_settings = None
        stream = sd.InputStream(
            samplerate=self.sample_rate_hz,
            channels=self.system_channels,
            dtype="int16",
            device=device.get("index"),
            callback=self._make_callback(self._system_chunks),
            extra_settings=extra_settings,
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        return stream

    def _make_callback(self, sink: list):
        def _callback(indata, _frames, _time, status):
            if status:
                logger.debug("Input status: %s", status)
            with self._lock:
                sink.append(indata.copy())

        return _callback

    def _release_streams(self) -> None:
        for stream in (self._mic_stream, self._system_stream):
            if stream is None:
                continue
            try:
                stream.stop()
            except Exception:
                logger.exception("Failed to stop input stream")
            finally:
                stream.close()
        self._mic_stream = None
        self._system_stream = None

    def stop(self) -> AudioClip:
        if not self.is_recording():
            raise InputError("No recording in progress", reason="busy")
        had_system = self._system_stream is not None
        self._release_streams()

        with self._lock:
            mic = join_chunks(self._mic_chunks, self.channels)
            system = join_chunks(self._system_chunks, self.system_channels)
            self._mic_chunks = []
            self._system_chunks = []

        frames = mix_down(mic, system) if had_system and system.shape[0] else mic
        logger.info(
            "Recording stopped (%.1fs)", frames.shape[0] / float(self.sample_rate_hz)
        )
        data = encode_wav(frames, self.sample_rate_hz, self.channels)
        return AudioClip(data=data, filename="recording.wav", mime_type="audio/wav")
