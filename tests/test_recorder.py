import io
import wave

import numpy as np
import pytest

from recapframe.errors import InputError
from recapframe.recorder import AudioRecorder, list_input_devices, select_preferred_device

DEVICES = [
    {"name": "Built-in Mic", "index": 0, "max_input_channels": 1, "max_output_channels": 0},
    {"name": "USB Headset", "index": 1, "max_input_channels": 1, "max_output_channels": 2},
    {"name": "Speakers", "index": 2, "max_input_channels": 0, "max_output_channels": 2},
]


class FakeStream:
    def __init__(self, kwargs, fail_start=False, fail_stop=False):
        self.kwargs = kwargs
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.started = False
        self.stopped = False
        self.closed = False

    def start(self):
        if self.fail_start:
            raise RuntimeError("device unavailable")
        self.started = True

    def stop(self):
        if self.fail_stop:
            raise RuntimeError("stop failed")
        self.stopped = True

    def close(self):
        self.closed = True

    def feed(self, frames):
        self.kwargs["callback"](frames, len(frames), None, None)


class FakeSoundDevice:
    def __init__(self, fail_system=False, fail_mic_stop=False, fail_mic_start=False):
        self.fail_system = fail_system
        self.fail_mic_start = fail_mic_start
        self.fail_mic_stop = fail_mic_stop
        self.streams = []

    def query_devices(self):
        return DEVICES

    def WasapiSettings(self, loopback=False):
        return {"loopback": loopback}

    def InputStream(self, **kwargs):
        is_system = "extra_settings" in kwargs
        stream = FakeStream(
            kwargs,
            fail_start=self.fail_system if is_system else self.fail_mic_start,
            fail_stop=not is_system and self.fail_mic_stop,
        )
        self.streams.append(stream)
        return stream


def _samples(clip):
    with wave.open(io.BytesIO(clip.data), "rb") as handle:
        assert handle.getsampwidth() == 2
        return handle.getnchannels(), np.frombuffer(handle.readframes(handle.getnframes()), dtype=np.int16)


def test_select_preferred_device_prefers_name():
    result = select_preferred_device(DEVICES, prefer_name="usb")
    assert result["name"] == "USB Headset"


def test_select_preferred_device_falls_back_to_first():
    assert select_preferred_device(DEVICES, prefer_name="missing")["index"] == 0
    with pytest.raises(RuntimeError):
        select_preferred_device([])


def test_list_input_devices_filters_by_direction():
    sd = FakeSoundDevice()
    assert [d["index"] for d in list_input_devices(sd=sd)] == [0, 1]
    assert [d["index"] for d in list_input_devices(loopback=True, sd=sd)] == [1, 2]


def test_microphone_recording():
    sd = FakeSoundDevice()
    recorder = AudioRecorder(sample_rate_hz=16000, device_name="built-in", sd=sd)
    recorder.start()
    mic = sd.streams[0]
    assert mic.kwargs["device"] == 0
    mic.feed(np.full((4, 1), 1200, dtype=np.int16))
    mic.feed(np.full((2, 1), -300, dtype=np.int16))

    clip = recorder.stop()

    assert clip.filename == "recording.wav"
    assert clip.mime_type == "audio/wav"
    channels, samples = _samples(clip)
    assert channels == 1
    assert samples.tolist() == [1200] * 4 + [-300] * 2
    assert mic.stopped and mic.closed
    assert recorder.is_recording() is False


def test_mixed_recording_releases_both_streams():
    sd = FakeSoundDevice()
    recorder = AudioRecorder(sample_rate_hz=16000, sd=sd)
    recorder.start(include_system_audio=True)
    mic, system = sd.streams
    assert system.kwargs["extra_settings"] == {"loopback": True}
    assert system.kwargs["device"] == 1

    mic.feed(np.full((4, 1), 1000, dtype=np.int16))
    system.feed(np.full((4, 2), 3000, dtype=np.int16))
    clip = recorder.stop()

    _, samples = _samples(clip)
    assert samples.tolist() == [2000] * 4
    assert mic.closed and system.closed
    assert mic.stopped and system.stopped


def test_system_audio_failure_falls_back_to_microphone():
    sd = FakeSoundDevice(fail_system=True)
    recorder = AudioRecorder(sd=sd)
    recorder.start(include_system_audio=True)

    mic, system = sd.streams
    assert system.closed
    mic.feed(np.full((3, 1), 500, dtype=np.int16))
    _, samples = _samples(recorder.stop())
    assert samples.tolist() == [500] * 3


def test_stop_failure_still_closes_streams():
    sd = FakeSoundDevice(fail_mic_stop=True)
    recorder = AudioRecorder(sd=sd)
    recorder.start(include_system_audio=True)
    recorder.stop()
    assert all(stream.closed for stream in sd.streams)


def test_start_and_stop_guards():
    recorder = AudioRecorder(sd=FakeSoundDevice())
    with pytest.raises(InputError):
        recorder.stop()
    recorder.start()
    with pytest.raises(InputError) as info:
        recorder.start()
    assert info.value.reason == "busy"


def test_microphone_start_failure_closes_stream():
    sd = FakeSoundDevice(fail_mic_start=True)
    recorder = AudioRecorder(sd=sd)
    with pytest.raises(RuntimeError):
        recorder.start()
    assert sd.streams[0].closed
    assert recorder.is_recording() is False
