"""Runtime configuration resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

# Length of one transcription unit. Longer chunks transcribe more reliably but
# delay feedback.
CHUNK_SECONDS = 10.0


def _default_data_dir() -> str:
    return os.getenv("SLOWDOWN_DATA_DIR") or str(Path.home() / ".slowdown")


def _optional_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    return int(raw)


class AppConfig(BaseModel):
    data_dir: str = Field(default_factory=_default_data_dir)
    sessions_file: str = Field(default="sessions.json")
    settings_file: str = Field(default="settings.json")

    chunk_seconds: float = Field(
        default=float(os.getenv("SLOWDOWN_CHUNK_SECONDS", str(CHUNK_SECONDS))), gt=0
    )
    sample_rate: int = Field(default=int(os.getenv("SLOWDOWN_SAMPLE_RATE", "16000")), gt=0)
    block_size: int = Field(default=int(os.getenv("SLOWDOWN_BLOCK_SIZE", "1600")), gt=0)

    history_limit: int = Field(default=100)
    rate_history_limit: int = Field(default=30)
    min_duration_seconds: float = Field(default=5.0)
    alert_cooldown_seconds: float = Field(default=10.0)
    log_history: int = Field(default=200)

    whisper_model: str = Field(default=os.getenv("WHISPER_MODEL", "tiny.en"))
    whisper_device: str = Field(default=os.getenv("WHISPER_DEVICE", "cpu"))
    whisper_compute_type: str = Field(default=os.getenv("WHISPER_COMPUTE_TYPE", "int8"))
    whisper_language: str | None = Field(default=os.getenv("WHISPER_LANGUAGE", "en") or None)
    transcribe_workers: int = Field(
        default=int(os.getenv("SLOWDOWN_TRANSCRIBE_WORKERS", "2")), ge=1
    )
    metrics_port: int | None = Field(default_factory=lambda: _optional_int("SLOWDOWN_METRICS_PORT"))

    @property
    def base_dir(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def sessions_path(self) -> Path:
        return self.base_dir / self.sessions_file

    @property
    def settings_path(self) -> Path:
        return self.base_dir / self.settings_file


@lru_cache()
def get_config() -> AppConfig:
    return AppConfig()
