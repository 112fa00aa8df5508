"""Pytest configuration helpers."""

from __future__ import annotations

import sys
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


def _ensure_repo_on_path() -> None:
    """Allow tests to import from repo modules without setting PYTHONPATH."""
    repo_root = Path(__file__).resolve().parents[1]
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()

from slowdown.speech.transcriber import Transcriber  # noqa: E402


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):
    """Queues work until the test resolves it, in any order."""

    def __init__(self) -> None:
        self.calls: list[tuple[Future, object, tuple]] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.calls.append((future, fn, args))
        return future

    def run(self, index: int) -> None:
        future, fn, args = self.calls[index]
        try:
            future.set_result(fn(*args))  # type: ignore[operator]
        except Exception as exc:
            future.set_exception(exc)


class FakeTimer:
    def __init__(self, registry: list, interval: float, callback) -> None:
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False
        registry.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self):
        return self.callback()


class ScriptedTranscriber(Transcriber):
    """Returns queued results (or raises queued exceptions) in order."""

    def __init__(self, results=()) -> None:
        self.results = list(results)
        self.segments = []

    def transcribe(self, segment):
        self.segments.append(segment)
        outcome = self.results.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture()
def deferred_executor() -> DeferredExecutor:
    return DeferredExecutor()


@pytest.fixture()
def fake_timers():
    """Returns (registry, factory); the factory builds FakeTimer objects."""
    registry: list[FakeTimer] = []

    def factory(interval, callback):
        return FakeTimer(registry, interval, callback)

    return registry, factory


@pytest.fixture()
def scripted_transcriber():
    return ScriptedTranscriber
