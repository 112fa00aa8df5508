"""Session history models (persisted as camelCase JSON)."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..audio.types import AudioSource
from ..wpm.types import as_utc, utcnow


class WPMDataPoint(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: UUID = Field(default_factory=uuid4)
    wpm: int
    timestamp: datetime

    @field_validator("timestamp", mode="after")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class Session(BaseModel):
    """One monitoring run; ``end_time`` is None while it is active."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID = Field(default_factory=uuid4)
    start_time: datetime = Field(default_factory=utcnow, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    audio_source: AudioSource = Field(default=AudioSource.MICROPHONE, alias="audioSource")
    data_points: List[WPMDataPoint] = Field(default_factory=list, alias="wpmDataPoints")

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def duration(self) -> float:
        return self.duration_at(utcnow())

    def duration_at(self, now: datetime) -> float:
        end = self.end_time or now
        return (end - self.start_time).total_seconds()

    @property
    def average_wpm(self) -> int:
        if not self.data_points:
            return 0
        return sum(point.wpm for point in self.data_points) // len(self.data_points)

    @property
    def max_wpm(self) -> int:
        return max((point.wpm for point in self.data_points), default=0)

    @property
    def min_wpm(self) -> int:
        return min((point.wpm for point in self.data_points), default=0)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = ["Session", "WPMDataPoint"]
