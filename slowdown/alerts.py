"""Speaking-too-fast alerts."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

import numpy as np

from . import metrics
from .wpm.rate_window import RateWindow
from .wpm.types import RateUpdate, utcnow

LOGGER = logging.getLogger("slowdown.alerts")

ALERT_COOLDOWN_SECONDS = 10.0


class TonePlayer:
    """Plays a short soft chime through the default output device."""

    def __init__(self, frequency: float = 880.0, duration: float = 0.15, sample_rate: int = 44_100) -> None:
        self.sample_rate = sample_rate
        self.tone = _chime(frequency, duration, sample_rate)

    def __call__(self) -> None:
        try:
            import sounddevice as sd  # type: ignore

            sd.play(self.tone, self.sample_rate)
        except Exception as exc:
            LOGGER.debug("Alert sound unavailable: %s", exc)


def _chime(frequency: float, duration: float, sample_rate: int) -> np.ndarray:
    t = np.arange(int(duration * sample_rate)) / float(sample_rate)
    envelope = np.exp(-t * 18.0)
    return (0.2 * envelope * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


class AlertManager:
    """Fires when the status enters TOO_FAST, at most once per cooldown."""

    def __init__(
        self,
        rate_window: RateWindow,
        *,
        settings: Optional[Callable[[], Any]] = None,
        player: Optional[Callable[[], None]] = None,
        on_alert: Optional[Callable[[RateUpdate], None]] = None,
        cooldown_seconds: float = ALERT_COOLDOWN_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings
        self.player = player or TonePlayer()
        self.on_alert = on_alert
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self.last_alert: Optional[datetime] = None
        self._unsubscribe = rate_window.subscribe(self.handle_update)

    @property
    def sound_enabled(self) -> bool:
        if self._settings is None:
            return True
        return bool(getattr(self._settings(), "alert_sound_enabled", True))

    def handle_update(self, update: RateUpdate) -> bool:
        if not update.entered_too_fast:
            return False
        now = self._clock()
        if self.last_alert is not None and (now - self.last_alert).total_seconds() < self.cooldown_seconds:
            LOGGER.debug("Alert suppressed by cooldown")
            return False
        self.last_alert = now
        metrics.ALERTS_FIRED.inc()
        LOGGER.info("Speaking too fast: %d WPM", update.wpm)
        if self.sound_enabled:
            self.player()
        if self.on_alert:
            self.on_alert(update)
        return True

    def close(self) -> None:
        self._unsubscribe()


__all__ = ["AlertManager", "TonePlayer", "ALERT_COOLDOWN_SECONDS"]
