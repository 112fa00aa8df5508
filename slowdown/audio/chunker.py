"""Fixed-length chunking of live audio into transcription units."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from .. import metrics
from ..config import CHUNK_SECONDS
from ..services.timer import RepeatingTimer
from ..speech.transcriber import Transcriber, TranscriptionResult
from ..wpm.types import Observation, utcnow
from .types import AudioSegment, to_mono

LOGGER = logging.getLogger("slowdown.chunker")


class ChunkerState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


class Chunker:
    """Buffers sample blocks and transcribes them every ``chunk_seconds``.

    Every transcript or "no speech" result becomes one ``Observation`` whose
    duration is the configured chunk length, stamped with the arrival time.
    Transcriptions run on ``executor`` and may finish out of order; results
    that arrive after ``stop()`` are dropped. The partial chunk buffered at
    ``stop()`` is discarded rather than flushed.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        on_observation: Callable[[Observation], None],
        *,
        sample_rate: int,
        chunk_seconds: float = CHUNK_SECONDS,
        executor: Optional[Executor] = None,
        clock: Callable[[], datetime] = utcnow,
        timer_factory: Callable[[float, Callable[[], None]], RepeatingTimer] = RepeatingTimer,
        max_workers: int = 2,
    ) -> None:
        self.transcriber = transcriber
        self.on_observation = on_observation
        self.sample_rate = int(sample_rate)
        self.chunk_seconds = float(chunk_seconds)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="slowdown-transcribe"
        )
        self._clock = clock
        self._timer_factory = timer_factory
        self._timer: RepeatingTimer | None = None
        self._lock = threading.Lock()
        self._pending: List[np.ndarray] = []
        self._state = ChunkerState.IDLE
        self._generation = 0
        self._in_flight = 0

    @property
    def state(self) -> ChunkerState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is ChunkerState.RECORDING

    @property
    def pending_frames(self) -> int:
        with self._lock:
            return sum(block.shape[0] for block in self._pending)

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def start(self) -> None:
        with self._lock:
            if self._state is ChunkerState.RECORDING:
                return
            self._state = ChunkerState.RECORDING
            self._generation += 1
            self._pending = []
        self._timer = self._timer_factory(self.chunk_seconds, self.flush)
        self._timer.start()
        LOGGER.info("Chunked transcription started (%.0fs intervals)", self.chunk_seconds)

    def push(self, block: np.ndarray) -> None:
        samples = to_mono(block)
        if samples.size == 0:
            return
        with self._lock:
            if self._state is not ChunkerState.RECORDING:
                return
            self._pending.append(samples)

    def flush(self) -> Optional[Future]:
        with self._lock:
            if self._state is not ChunkerState.RECORDING:
                return None
            if not self._pending:
                blocks = None
            else:
                blocks = self._pending
                self._pending = []
            generation = self._generation
        if blocks is None:
            LOGGER.debug("No audio in buffer, waiting")
            metrics.CHUNKS_SKIPPED.inc()
            return None
        segment = AudioSegment(samples=np.concatenate(blocks), sample_rate=self.sample_rate)
        LOGGER.debug("Submitting %d block(s), %d frames (%.1fs)", len(blocks), segment.frames, segment.duration)
        try:
            future = self._executor.submit(self.transcriber.transcribe, segment)
        except RuntimeError as exc:
            LOGGER.warning("Transcription executor unavailable: %s", exc)
            return None
        with self._lock:
            self._in_flight += 1
        metrics.CHUNKS_SUBMITTED.inc()
        future.add_done_callback(lambda done: self._on_done(generation, done))
        return future

    def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        with self._lock:
            was_recording = self._state is ChunkerState.RECORDING
            self._state = ChunkerState.IDLE
            self._generation += 1
            dropped = sum(block.shape[0] for block in self._pending)
            self._pending = []
        if was_recording:
            LOGGER.info("Chunked transcription stopped (%d buffered frame(s) discarded)", dropped)

    def close(self) -> None:
        self.stop()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _on_done(self, generation: int, future: Future) -> None:
        arrived = self._clock()
        with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
        if future.cancelled():
            metrics.TRANSCRIPTION_RESULTS.labels(status="cancelled").inc()
            return
        exc = future.exception()
        if exc is not None:
            LOGGER.warning("Transcription error: %s", exc)
            metrics.TRANSCRIPTION_RESULTS.labels(status="error").inc()
            return
        with self._lock:
            current = self._state is ChunkerState.RECORDING and generation == self._generation
        if not current:
            LOGGER.debug("Dropping transcription that arrived after stop")
            metrics.TRANSCRIPTION_RESULTS.labels(status="dropped").inc()
            return
        result: TranscriptionResult = future.result()
        if result.no_speech:
            LOGGER.debug("No speech detected in chunk")
            metrics.TRANSCRIPTION_RESULTS.labels(status="no_speech").inc()
        else:
            LOGGER.info("Chunk transcribed: %d word(s) in %.0fs", result.word_count, self.chunk_seconds)
            metrics.TRANSCRIPTION_RESULTS.labels(status="transcript").inc()
        observation = Observation(
            word_count=result.word_count,
            duration_seconds=self.chunk_seconds,
            timestamp=arrived,
        )
        try:
            self.on_observation(observation)
        except Exception:
            LOGGER.exception("Observation handler failed")


__all__ = ["Chunker", "ChunkerState"]
