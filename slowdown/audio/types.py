"""Dataclasses shared across audio helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class AudioSource(str, Enum):
    MICROPHONE = "microphone"
    SYSTEM_AUDIO = "systemAudio"

    @property
    def label(self) -> str:
        return "Microphone" if self is AudioSource.MICROPHONE else "System Audio"


@dataclass(slots=True)
class AudioSegment:
    """Merged mono float32 samples covering one chunk."""

    samples: np.ndarray
    sample_rate: int

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / float(self.sample_rate)


def to_mono(block: np.ndarray) -> np.ndarray:
    """Return a float32 copy of ``block`` with its channels averaged."""

    data = np.asarray(block)
    if np.issubdtype(data.dtype, np.integer):
        scale = float(np.iinfo(data.dtype).max) + 1.0
        data = data.astype(np.float32) / scale
    else:
        data = np.array(data, dtype=np.float32, copy=True)
    if data.ndim > 1:
        data = data.mean(axis=1, dtype=np.float32)
    return data
