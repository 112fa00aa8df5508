"""Prometheus metrics helpers."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, start_http_server

CHUNKS_SUBMITTED = Counter(
    "slowdown_chunks_submitted_total",
    "Audio chunks handed to the transcriber",
)

CHUNKS_SKIPPED = Counter(
    "slowdown_chunks_skipped_total",
    "Timer ticks that found an empty audio buffer",
)

TRANSCRIPTION_RESULTS = Counter(
    "slowdown_transcription_results_total",
    "Transcriber outcomes",
    labelnames=("status",),
)

CURRENT_WPM = Gauge(
    "slowdown_current_wpm",
    "Most recently computed words per minute",
)

ALERTS_FIRED = Counter(
    "slowdown_alerts_total",
    "Speaking-too-fast alerts raised",
)

SESSION_WRITES = Counter(
    "slowdown_session_writes_total",
    "Session history persistence attempts",
    labelnames=("status",),
)


def serve_metrics(port: int, addr: str = "127.0.0.1") -> None:
    start_http_server(port, addr=addr)
