"""Value types shared by the rate calculator and its listeners."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class RateStatus(str, Enum):
    IDLE = "idle"
    GOOD = "good"
    WARNING = "warning"
    TOO_FAST = "tooFast"


@dataclass(slots=True, frozen=True)
class Observation:
    """Words recognized in one chunk, stamped with the result's arrival time."""

    word_count: int
    duration_seconds: float
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class RateUpdate:
    wpm: int
    status: RateStatus
    previous_status: RateStatus
    timestamp: datetime

    @property
    def entered_too_fast(self) -> bool:
        return self.status is RateStatus.TOO_FAST and self.previous_status is not RateStatus.TOO_FAST


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
