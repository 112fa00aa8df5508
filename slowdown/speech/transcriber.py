"""Transcriber interface plus a lazy faster-whisper implementation."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable

import numpy as np

try:  # pragma: no cover - optional heavy dependency
    from faster_whisper import WhisperModel  # type: ignore
except Exception:  # pragma: no cover
    WhisperModel = None  # type: ignore

from ..audio.types import AudioSegment
from ..config import AppConfig

LOGGER = logging.getLogger("slowdown.whisper")

WHISPER_SAMPLE_RATE = 16_000


class TranscriptionError(Exception):
    pass


@dataclass(slots=True, frozen=True)
class TranscriptionResult:
    """A chunk transcript, or an explicit "no speech" outcome."""

    text: str = ""
    no_speech: bool = False

    @classmethod
    def silence(cls) -> "TranscriptionResult":
        return cls(text="", no_speech=True)

    @property
    def word_count(self) -> int:
        if self.no_speech:
            return 0
        return len(self.text.split())


class Transcriber(ABC):
    """Blocking speech-to-text call; runs off the owner thread."""

    @abstractmethod
    def transcribe(self, segment: AudioSegment) -> TranscriptionResult:
        """Return the transcript for ``segment`` or raise ``TranscriptionError``."""

    def close(self) -> None:
        return None


class WhisperTranscriber(Transcriber):
    """Loads a faster-whisper model on first use."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self._lock = threading.Lock()
        self._model = None

    @property
    def available(self) -> bool:
        return WhisperModel is not None

    def _load_model(self):
        if WhisperModel is None:
            raise TranscriptionError("faster-whisper is not installed (pip install slowdown[whisper])")
        if self._model is None:
            with self._lock:
                if self._model is None:
                    try:
                        self._model = WhisperModel(
                            self.config.whisper_model,
                            device=self.config.whisper_device,
                            compute_type=self.config.whisper_compute_type,
                        )
                    except Exception as exc:  # pragma: no cover - hardware/env dep
                        LOGGER.error("Failed to load Whisper model '%s': %s", self.config.whisper_model, exc)
                        raise TranscriptionError(str(exc)) from exc
        return self._model

    def transcribe(self, segment: AudioSegment) -> TranscriptionResult:
        model = self._load_model()
        audio = _resample(segment.samples, segment.sample_rate, WHISPER_SAMPLE_RATE)
        if audio.size == 0:
            return TranscriptionResult.silence()
        try:
            segments, _info = model.transcribe(
                audio,
                language=self.config.whisper_language,
                beam_size=5,
                vad_filter=True,
            )
            text = _join_segments(segments)
        except Exception as exc:
            raise TranscriptionError(str(exc)) from exc
        if not text:
            return TranscriptionResult.silence()
        return TranscriptionResult(text=text)


def _join_segments(segments: Iterable) -> str:
    pieces = [getattr(segment, "text", "").strip() for segment in segments]
    return " ".join(piece for piece in pieces if piece).strip()


def _resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    data = np.asarray(samples, dtype=np.float32)
    if source_rate == target_rate or data.size == 0:
        return data
    target_len = max(1, int(round(data.size * target_rate / float(source_rate))))
    source_pos = np.arange(data.size, dtype=np.float64)
    target_pos = np.linspace(0, data.size - 1, target_len)
    return np.interp(target_pos, source_pos, data).astype(np.float32)


__all__ = [
    "Transcriber",
    "TranscriptionError",
    "TranscriptionResult",
    "WhisperTranscriber",
]
