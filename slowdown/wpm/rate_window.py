"""Sliding-window words-per-minute calculator."""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Tuple

from .. import metrics
from .types import Observation, RateStatus, RateUpdate, as_utc, utcnow

LOGGER = logging.getLogger("slowdown.rate")

DEFAULT_WINDOW_SECONDS = 60
DEFAULT_THRESHOLD = 160
STATUS_MARGIN = 10
MIN_DURATION_SECONDS = 5.0
HISTORY_LIMIT = 30

RateListener = Callable[[RateUpdate], None]


def classify(wpm: int, threshold: int) -> RateStatus:
    if wpm > threshold + STATUS_MARGIN:
        return RateStatus.TOO_FAST
    if wpm > threshold - STATUS_MARGIN:
        return RateStatus.WARNING
    return RateStatus.GOOD


class RateWindow:
    """Turns (words, duration) observations into a smoothed WPM and a status.

    Window length and threshold are read on every computation, either from
    ``settings`` (anything returning an object with ``wpm_threshold`` and
    ``sliding_window_seconds``) or from the constructor values.

    While the retained audio adds up to less than ``min_duration`` seconds the
    status is IDLE and ``current_wpm`` keeps its previous value; it only drops
    to 0 once the window is empty.
    """

    def __init__(
        self,
        *,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        threshold: int = DEFAULT_THRESHOLD,
        settings: Optional[Callable[[], Any]] = None,
        clock: Callable[[], datetime] = utcnow,
        min_duration: float = MIN_DURATION_SECONDS,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self._window_seconds = window_seconds
        self._threshold = threshold
        self._settings = settings
        self._clock = clock
        self.min_duration = min_duration
        self._lock = threading.Lock()
        self._observations: deque[Observation] = deque()
        self._history: deque[Tuple[int, datetime]] = deque(maxlen=history_limit)
        self._current_wpm = 0
        self._status = RateStatus.IDLE
        self._listeners: List[RateListener] = []

    @property
    def window_seconds(self) -> int:
        if self._settings is not None:
            value = int(getattr(self._settings(), "sliding_window_seconds", 0) or 0)
            if value > 0:
                return value
        return self._window_seconds

    @property
    def threshold(self) -> int:
        if self._settings is not None:
            value = int(getattr(self._settings(), "wpm_threshold", 0) or 0)
            if value > 0:
                return value
        return self._threshold

    @property
    def current_wpm(self) -> int:
        return self._current_wpm

    @property
    def status(self) -> RateStatus:
        return self._status

    def history(self) -> List[Tuple[int, datetime]]:
        with self._lock:
            return list(self._history)

    def observations(self) -> List[Observation]:
        with self._lock:
            return list(self._observations)

    def subscribe(self, listener: RateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def add_observation(
        self, word_count: int, duration_seconds: float, timestamp: datetime | None = None
    ) -> int:
        stamp = as_utc(timestamp) if timestamp is not None else self._clock()
        observation = Observation(
            word_count=max(0, int(word_count)),
            duration_seconds=max(0.0, float(duration_seconds)),
            timestamp=stamp,
        )
        with self._lock:
            previous = self._status
            self._observations.append(observation)
            self._prune()
            self._recompute()
            self._history.append((self._current_wpm, stamp))
            update = RateUpdate(self._current_wpm, self._status, previous, stamp)
            retained = len(self._observations)
        LOGGER.debug(
            "WPM %d (%s) from %d chunk(s) in window",
            update.wpm,
            update.status.value,
            retained,
        )
        metrics.CURRENT_WPM.set(update.wpm)
        self._notify(update)
        return update.wpm

    def reset(self) -> None:
        with self._lock:
            previous = self._status
            self._observations.clear()
            self._history.clear()
            self._current_wpm = 0
            self._status = RateStatus.IDLE
        metrics.CURRENT_WPM.set(0)
        self._notify(RateUpdate(0, RateStatus.IDLE, previous, self._clock()))

    def _prune(self) -> None:
        cutoff = self._clock() - timedelta(seconds=self.window_seconds)
        self._observations = deque(obs for obs in self._observations if obs.timestamp >= cutoff)

    def _recompute(self) -> None:
        if not self._observations:
            self._current_wpm = 0
            self._status = RateStatus.IDLE
            return
        total_words = sum(obs.word_count for obs in self._observations)
        total_duration = sum(obs.duration_seconds for obs in self._observations)
        if total_duration < self.min_duration:
            self._status = RateStatus.IDLE
            return
        self._current_wpm = math.floor(total_words / total_duration * 60)
        self._status = classify(self._current_wpm, self.threshold)

    def _notify(self, update: RateUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception:
                LOGGER.exception("Rate listener failed")


__all__ = ["RateWindow", "RateListener", "classify"]
