"""Persistent user settings for threshold, window and alerts."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Optional

from ..audio.types import AudioSource

LOGGER = logging.getLogger("slowdown.settings")

DEFAULT_THRESHOLD = 160
MIN_THRESHOLD = 100
MAX_THRESHOLD = 250
DEFAULT_WINDOW_SECONDS = 60


@dataclass(slots=True, frozen=True)
class UserSettings:
    wpm_threshold: int = DEFAULT_THRESHOLD
    sliding_window_seconds: int = DEFAULT_WINDOW_SECONDS
    alert_sound_enabled: bool = True
    audio_source: str = AudioSource.MICROPHONE.value
    input_device: Optional[str] = None

    @property
    def source(self) -> AudioSource:
        return AudioSource(self.audio_source)


def clamp_threshold(value: int) -> int:
    value = int(value)
    if value == 0:
        return DEFAULT_THRESHOLD
    return max(MIN_THRESHOLD, min(MAX_THRESHOLD, value))


def clamp_window(value: int) -> int:
    value = int(value)
    return value if value > 0 else DEFAULT_WINDOW_SECONDS


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _to_source(value) -> str:
    try:
        return AudioSource(str(value)).value
    except ValueError:
        return AudioSource.MICROPHONE.value


class SettingsStore:
    """Settings backed by a JSON file.

    ``get()`` reloads the file when it changed on disk, so a running monitor
    sees edits made by another process.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._stamp: tuple[int, int, int] | None = None
        self._settings = self._load()

    def _file_stamp(self) -> tuple[int, int, int] | None:
        try:
            stat = self.path.stat()
        except OSError:
            return None
        return stat.st_ino, stat.st_mtime_ns, stat.st_size

    def _load(self) -> UserSettings:
        self._stamp = self._file_stamp()
        if not self.path.exists():
            return UserSettings()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable settings file %s: %s", self.path, exc)
            raw = {}
        if not isinstance(raw, dict):
            raw = {}
        return self._coerce(UserSettings(), raw)

    def get(self) -> UserSettings:
        if self._file_stamp() != self._stamp:
            with self._lock:
                self._refresh_locked()
        return self._settings

    def _refresh_locked(self) -> None:
        if self._file_stamp() != self._stamp:
            LOGGER.debug("Settings file changed, reloading")
            self._settings = self._load()

    def update(self, **kwargs) -> UserSettings:
        known = {key: value for key, value in kwargs.items() if key in UserSettings.__dataclass_fields__}
        with self._lock:
            self._refresh_locked()
            self._settings = self._coerce(self._settings, known)
            self._persist()
        return self._settings

    def _coerce(self, base: UserSettings, raw: dict) -> UserSettings:
        values = {}
        try:
            if "wpm_threshold" in raw:
                values["wpm_threshold"] = clamp_threshold(raw["wpm_threshold"])
            if "sliding_window_seconds" in raw:
                values["sliding_window_seconds"] = clamp_window(raw["sliding_window_seconds"])
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Invalid numeric setting ignored: %s", exc)
        if "alert_sound_enabled" in raw:
            values["alert_sound_enabled"] = _to_bool(raw["alert_sound_enabled"])
        if "audio_source" in raw:
            values["audio_source"] = _to_source(raw["audio_source"])
        if "input_device" in raw:
            values["input_device"] = str(raw["input_device"]) if raw["input_device"] else None
        return replace(base, **values)

    def _persist(self) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(asdict(self._settings)), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            LOGGER.error("Failed to save settings: %s", exc)
            return
        self._stamp = self._file_stamp()


__all__ = ["SettingsStore", "UserSettings", "clamp_threshold"]
