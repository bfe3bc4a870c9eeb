import os
import tempfile

import pytest

from recapframe.config import Config, load_config, load_or_default, resolve_api_key, save_config
from recapframe.errors import ConfigurationError


def test_save_and_load_config_roundtrip():
    cfg = Config(base_dir="C:/Recap")
    cfg.service.chat_model = "gpt-4o-mini"
    cfg.transcription.backend = "local"
    cfg.quiz.difficulty = "hard"
    cfg.log_level = "debug"

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "recapframe_config.yml")
        save_config(path, cfg)
        loaded = load_config(path)

    assert loaded.base_dir == "C:/Recap"
    assert loaded.service.chat_model == "gpt-4o-mini"
    assert loaded.transcription.backend == "local"
    assert loaded.quiz.difficulty == "hard"
    assert loaded.log_level == "debug"
    assert loaded.store.key == "meeting-histories"


def test_load_or_default_without_file(tmp_path):
    cfg = load_or_default(str(tmp_path / "missing.yml"))
    assert cfg.service.temperature == 0.7
    assert cfg.quiz.num_questions == 10


def test_resolve_api_key_prefers_config(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "env-key")
    cfg = Config()
    assert resolve_api_key(cfg) == "env-key"
    cfg.service.api_key = "file-key"
    assert resolve_api_key(cfg) == "file-key"


def test_resolve_api_key_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        resolve_api_key(Config())
