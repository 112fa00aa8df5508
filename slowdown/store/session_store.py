"""Session recorder with a bounded, persisted history."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from .. import metrics
from ..audio.types import AudioSource
from ..wpm.types import as_utc, utcnow
from .models import Session, WPMDataPoint

LOGGER = logging.getLogger("slowdown.sessions")

MAX_SESSIONS = 100

_SESSION_LIST = TypeAdapter(List[Session])


@dataclass(slots=True, frozen=True)
class NoActiveSession:
    pass


@dataclass(slots=True, frozen=True)
class ActiveSession:
    session: Session


SessionState = Union[NoActiveSession, ActiveSession]

NO_ACTIVE_SESSION = NoActiveSession()


@dataclass(slots=True, frozen=True)
class SessionEvent:
    kind: str  # started | ended | discarded | deleted | cleared
    session: Optional[Session] = None


SessionListener = Callable[[SessionEvent], None]


class SessionRecorder:
    """Owns the active session and the closed-session history.

    Sessions without data points are discarded when they end. Every change
    to the history truncates it to the newest ``limit`` entries and rewrites
    the whole file.
    """

    def __init__(
        self,
        path: Path,
        *,
        limit: int = MAX_SESSIONS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.path = Path(path)
        self.limit = limit
        self._clock = clock
        self._lock = threading.RLock()
        self._state: SessionState = NO_ACTIVE_SESSION
        self._listeners: List[SessionListener] = []
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._sessions: List[Session] = self._load()

    # Active session

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_session(self) -> Optional[Session]:
        state = self._state
        if isinstance(state, ActiveSession):
            return state.session
        return None

    def start_session(self, source: AudioSource) -> Session:
        with self._lock:
            if isinstance(self._state, ActiveSession):
                self._end_locked()
            session = Session(start_time=self._clock(), audio_source=AudioSource(source))
            self._state = ActiveSession(session)
        LOGGER.info("Started session %s with source %s", session.id, session.audio_source.value)
        self._notify(SessionEvent("started", session))
        return session

    def add_data_point(self, wpm: int, timestamp: datetime | None = None) -> Optional[WPMDataPoint]:
        with self._lock:
            state = self._state
            if not isinstance(state, ActiveSession):
                return None
            point = WPMDataPoint(
                wpm=max(0, int(wpm)),
                timestamp=as_utc(timestamp) if timestamp is not None else self._clock(),
            )
            state.session.data_points.append(point)
            return point

    def end_session(self) -> Optional[Session]:
        with self._lock:
            if not isinstance(self._state, ActiveSession):
                return None
            return self._end_locked()

    def _end_locked(self) -> Optional[Session]:
        session = self._state.session  # type: ignore[union-attr]
        self._state = NO_ACTIVE_SESSION
        session.end_time = self._clock()
        if not session.data_points:
            LOGGER.info("Discarded empty session %s", session.id)
            self._notify(SessionEvent("discarded", session))
            return None
        self._sessions.append(session)
        self._persist()
        LOGGER.info(
            "Ended session %s: %ds, average %d WPM",
            session.id,
            int(session.duration),
            session.average_wpm,
        )
        self._notify(SessionEvent("ended", session))
        return session

    # History

    @property
    def sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions)

    def get_session(self, session_id: UUID | str) -> Optional[Session]:
        wanted = str(session_id)
        with self._lock:
            for session in self._sessions:
                if str(session.id) == wanted:
                    return session
        return None

    def sessions_filtered(self, source: AudioSource | None = None) -> List[Session]:
        with self._lock:
            if source is None:
                return list(self._sessions)
            return [session for session in self._sessions if session.audio_source is AudioSource(source)]

    def delete_session(self, session_id: UUID | str) -> bool:
        wanted = str(session_id)
        with self._lock:
            before = len(self._sessions)
            removed = [session for session in self._sessions if str(session.id) == wanted]
            self._sessions = [session for session in self._sessions if str(session.id) != wanted]
            self._persist()
            deleted = len(self._sessions) != before
        for session in removed:
            self._notify(SessionEvent("deleted", session))
        return deleted

    def clear_all(self) -> None:
        with self._lock:
            self._sessions = []
            self._persist()
        LOGGER.info("Session history cleared")
        self._notify(SessionEvent("cleared"))

    # Statistics

    @property
    def total_sessions(self) -> int:
        return len(self._sessions)

    @property
    def total_speaking_time(self) -> float:
        now = self._clock()
        return sum(session.duration_at(now) for session in self.sessions)

    @property
    def overall_average_wpm(self) -> int:
        # Mean of per-session averages, not a mean over all data points.
        sessions = self.sessions
        if not sessions:
            return 0
        return sum(session.average_wpm for session in sessions) // len(sessions)

    # Events

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LOGGER.exception("Session listener failed")

    # Persistence

    def _load(self) -> List[Session]:
        if not self.path.exists():
            LOGGER.info("No existing sessions file found")
            return []
        try:
            sessions = _SESSION_LIST.validate_json(self.path.read_bytes())
        except (OSError, ValueError, ValidationError) as exc:
            LOGGER.warning("Failed to load sessions from %s: %s", self.path, exc)
            return []
        LOGGER.info("Loaded %d session(s)", len(sessions))
        return sessions[-self.limit :] if self.limit else sessions

    def _persist(self) -> None:
        if self.limit and len(self._sessions) > self.limit:
            self._sessions = self._sessions[-self.limit :]
        payload = [session.to_json() for session in self._sessions]
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            LOGGER.error("Failed to save sessions: %s", exc)
            metrics.SESSION_WRITES.labels(status="error").inc()
            return
        metrics.SESSION_WRITES.labels(status="ok").inc()
        LOGGER.debug("Saved %d session(s)", len(payload))


__all__ = [
    "ActiveSession",
    "NoActiveSession",
    "SessionEvent",
    "SessionRecorder",
    "SessionState",
    "MAX_SESSIONS",
]
