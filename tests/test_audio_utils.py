import numpy as np
import pytest

from recapframe.audio_utils import (
    MAX_UPLOAD_BYTES,
    clip_from_path,
    guess_mime_type,
    join_chunks,
    mix_down,
    validate_clip,
)
from recapframe.errors import InputError
from recapframe.models import AudioClip


def test_guess_mime_type():
    assert guess_mime_type("talk.MP3") == "audio/mpeg"
    assert guess_mime_type("talk.wav") == "audio/wav"
    assert guess_mime_type("talk.m4a") == "audio/m4a"


def test_clip_from_path(tmp_path):
    path = tmp_path / "standup.webm"
    path.write_bytes(b"abc")
    clip = clip_from_path(str(path))
    assert clip.filename == "standup.webm"
    assert clip.mime_type == "audio/webm"
    assert clip.size == 3


def test_validate_clip_limits():
    validate_clip(AudioClip(data=b"\x00" * MAX_UPLOAD_BYTES, mime_type="audio/wav"))
    with pytest.raises(InputError) as info:
        validate_clip(AudioClip(data=b"\x00" * (MAX_UPLOAD_BYTES + 1)))
    assert info.value.reason == "oversized"
    with pytest.raises(InputError) as info:
        validate_clip(AudioClip(data=b"x", mime_type="application/pdf"))
    assert info.value.reason == "unsupported_format"


def test_join_chunks_empty():
    assert join_chunks([], 2).shape == (0, 2)


def test_mix_down_averages_and_keeps_mic_tail():
    mic = np.array([[30000], [30000], [100]], dtype=np.int16)
    system = np.array([[32767, 32767], [-32768, -32768]], dtype=np.int16)
    mixed = mix_down(mic, system)
    assert mixed.dtype == np.int16
    assert mixed[:, 0].tolist() == [31383, -1384, 100]
