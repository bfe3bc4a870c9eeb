"""Configuration handling."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
import yaml

from .errors import ConfigurationError

API_KEY_ENV = "OPENAI_API_KEY"


@dataclass
class AudioConfig:
    sample_rate_hz: int = 44100
    channels: int = 1
    system_channels: int = 2


@dataclass
class ServiceConfig:
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    chat_model: str = "gpt-3.5-turbo"
    quiz_model: Optional[str] = None
    temperature: float = 0.7
    analysis_max_tokens: int = 1000
    answer_max_tokens: int = 500
    title_max_tokens: int = 50
    timeout_s: Optional[float] = None
    max_attempts: int = 3


@dataclass
class TranscriptionConfig:
    backend: str = "openai"
    model: str = "whisper-1"
    local_model: str = "small"
    device: Optional[str] = None
    compute_type: Optional[str] = None


@dataclass
class QuizDefaults:
    num_questions: int = 10
    difficulty: str = "medium"


@dataclass
class StoreConfig:
    path: Optional[str] = None
    key: str = "meeting-histories"


@dataclass
class Config:
    base_dir: str = ""
    language: str = "en"
    log_level: str = "info"
    with_timestamps: bool = False
    include_system_audio: bool = False
    device_name: Optional[str] = None
    system_device_name: Optional[str] = None
    audio: AudioConfig = field(default_factory=AudioConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    quiz: QuizDefaults = field(default_factory=QuizDefaults)
    store: StoreConfig = field(default_factory=StoreConfig)


def resolve_api_key(config: Config) -> str:
    api_key = config.service.api_key or os.getenv(API_KEY_ENV)
    if not api_key:
        raise ConfigurationError(f"{API_KEY_ENV} environment variable is not set")
    return api_key


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    audio = AudioConfig(**data.get("audio", {}))
    service = ServiceConfig(**data.get("service", {}))
    transcription = TranscriptionConfig(**data.get("transcription", {}))
    quiz = QuizDefaults(**data.get("quiz", {}))
    store = StoreConfig(**data.get("store", {}))

    return Config(
        base_dir=data.get("base_dir", ""),
        language=data.get("language", "en"),
        log_level=str(data.get("log_level", "info")),
        with_timestamps=bool(data.get("with_timestamps", False)),
        include_system_audio=bool(data.get("include_system_audio", False)),
        device_name=data.get("device_name"),
        system_device_name=data.get("system_device_name"),
        audio=audio,
        service=service,
        transcription=transcription,
        quiz=quiz,
        store=store,
    )


def load_or_default(path: str) -> Config:
    if path and os.path.exists(path):
        return load_config(path)
    return Config()


def save_config(path: str, config: Config) -> None:
    data = {
        "base_dir": config.base_dir,
        "language": config.language,
        "log_level": config.log_level,
        "with_timestamps": config.with_timestamps,
        "include_system_audio": config.include_system_audio,
        "device_name": config.device_name,
        "system_device_name": config.system_device_name,
        "audio": {
            "sample_rate_hz": config.audio.sample_rate_hz,
            "channels": config.audio.channels,
            "system_channels": config.audio.system_channels,
        },
        "service": {
            "api_key": config.service.api_key,
            "base_url": config.service.base_url,
            "chat_model": config.service.chat_model,
            "quiz_model": config.service.quiz_model,
            "temperature": config.service.temperature,
            "analysis_max_tokens": config.service.analysis_max_tokens,
            "answer_max_tokens": config.service.answer_max_tokens,
            "title_max_tokens": config.service.title_max_tokens,
            "timeout_s": config.service.timeout_s,
            "max_attempts": config.service.max_attempts,
        },
        "transcription": {
            "backend": config.transcription.backend,
            "model": config.transcription.model,
            "local_model": config.transcription.local_model,
            "device": config.transcription.device,
            "compute_type": config.transcription.compute_type,
        },
        "quiz": {
            "num_questions": config.quiz.num_questions,
            "difficulty": config.quiz.difficulty,
        },
        "store": {
            "path": config.store.path,
            "key": config.store.key,
        },
    }
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
