"""Input level meter for live feedback."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from .types import to_mono

# RMS is amplified so normal speech lands in the visible part of the 0..1 range.
LEVEL_GAIN = 5.0
RECEIVING_FLOOR = 0.01


class LevelMeter:
    def __init__(self, on_level: Optional[Callable[[float, bool], None]] = None) -> None:
        self.on_level = on_level
        self.level = 0.0
        self.is_receiving_audio = False

    def process(self, block: np.ndarray) -> float:
        samples = to_mono(block)
        if samples.size == 0:
            return self.level
        rms = float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))
        self.level = max(0.0, min(1.0, rms * LEVEL_GAIN))
        self.is_receiving_audio = self.level > RECEIVING_FLOOR
        self._report()
        return self.level

    def reset(self) -> None:
        self.level = 0.0
        self.is_receiving_audio = False
        self._report()

    def _report(self) -> None:
        if self.on_level:
            self.on_level(self.level, self.is_receiving_audio)


__all__ = ["LevelMeter"]
