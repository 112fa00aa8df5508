"""Coordinator wiring audio, chunked transcription, rate and sessions."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional

import numpy as np

from .audio.chunker import Chunker
from .audio.devices import DeviceRegistry, SoundDeviceRegistry
from .audio.inputs import AudioInput, AudioInputError, open_input
from .audio.levels import LevelMeter
from .audio.types import AudioSource
from .config import AppConfig
from .services.timer import RepeatingTimer
from .speech.transcriber import Transcriber
from .store.session_store import SessionRecorder
from .store.settings_store import SettingsStore
from .wpm.rate_window import RateWindow
from .wpm.types import Observation, utcnow

LOGGER = logging.getLogger("slowdown.monitor")


class SpeakingMonitor:
    """Runs one monitoring pipeline.

    Observations from the transcriber pool are handed to a single-worker
    ``dispatcher`` before they touch the rate window or the session
    recorder. Each observation feeds the rate window, then the smoothed
    ``current_wpm`` (not the raw word count) is recorded in the session.
    ``device_name`` overrides the saved input device without persisting it.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        settings: SettingsStore,
        transcriber: Transcriber,
        sessions: SessionRecorder,
        registry: Optional[DeviceRegistry] = None,
        input_factory: Optional[Callable[[AudioSource], AudioInput]] = None,
        dispatcher: Optional[Executor] = None,
        transcribe_executor: Optional[Executor] = None,
        timer_factory: Callable[[float, Callable[[], None]], RepeatingTimer] = RepeatingTimer,
        clock: Callable[[], datetime] = utcnow,
        on_level: Optional[Callable[[float, bool], None]] = None,
        device_name: Optional[str] = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self.transcriber = transcriber
        self.sessions = sessions
        self.registry = registry
        self.device_name = device_name
        self._input_factory = input_factory or self._open_input
        self.rate = RateWindow(
            settings=settings.get,
            clock=clock,
            min_duration=config.min_duration_seconds,
            history_limit=config.rate_history_limit,
        )
        self.levels = LevelMeter(on_level)
        self.chunker = Chunker(
            transcriber,
            self._on_observation,
            sample_rate=config.sample_rate,
            chunk_seconds=config.chunk_seconds,
            executor=transcribe_executor,
            clock=clock,
            timer_factory=timer_factory,
            max_workers=config.transcribe_workers,
        )
        self._owns_dispatcher = dispatcher is None
        self._dispatcher = dispatcher or ThreadPoolExecutor(max_workers=1, thread_name_prefix="slowdown-owner")
        self._lock = threading.RLock()
        self._input: Optional[AudioInput] = None
        self._monitoring = False
        self._run = 0

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    @property
    def audio_input(self) -> Optional[AudioInput]:
        return self._input

    def start(self, source: AudioSource | str | None = None, audio_input: Optional[AudioInput] = None) -> bool:
        with self._lock:
            if self._monitoring:
                return True
            try:
                if audio_input is None:
                    chosen = AudioSource(source) if source else self.settings.get().source
                    audio_input = self._input_factory(chosen)
                self.chunker.sample_rate = audio_input.sample_rate
                self.chunker.start()
                audio_input.start(self._on_block)
            except AudioInputError as exc:
                self.chunker.stop()
                LOGGER.error("Monitoring not started: %s", exc)
                return False
            self._input = audio_input
            self._monitoring = True
            self._run += 1
            self.sessions.start_session(audio_input.source)
        LOGGER.info("Monitoring started (%s)", audio_input.source.label)
        return True

    def stop(self) -> None:
        with self._lock:
            if not self._monitoring:
                return
            self._monitoring = False
            audio_input, self._input = self._input, None
            if audio_input is not None:
                audio_input.stop()
            self.chunker.stop()
            self.rate.reset()
            self.levels.reset()
            self.sessions.end_session()
        LOGGER.info("Monitoring stopped")

    def change_source(self, source: AudioSource | str) -> None:
        source = AudioSource(source)
        was_running = self._monitoring
        if was_running:
            self.stop()
        self.settings.update(audio_source=source.value)
        if was_running:
            self.start(source)

    def change_device(self, device_name: Optional[str]) -> None:
        was_running = self._monitoring
        if was_running:
            self.stop()
        self.device_name = None
        self.settings.update(input_device=device_name)
        if was_running:
            self.start()

    def close(self) -> None:
        self.stop()
        self.chunker.close()
        if self._owns_dispatcher:
            self._dispatcher.shutdown(wait=True)
        self.transcriber.close()

    def _open_input(self, source: AudioSource) -> AudioInput:
        if self.registry is None:
            self.registry = SoundDeviceRegistry()
        return open_input(
            source,
            self.registry,
            sample_rate=self.config.sample_rate,
            block_size=self.config.block_size,
            device_name=self.device_name or self.settings.get().input_device,
        )

    def _on_block(self, block: np.ndarray) -> None:
        self.levels.process(block)
        self.chunker.push(block)

    def _on_observation(self, observation: Observation) -> None:
        try:
            self._dispatcher.submit(self._apply_observation, self._run, observation)
        except RuntimeError:
            LOGGER.debug("Dispatcher closed; observation dropped")

    def _apply_observation(self, run: int, observation: Observation) -> None:
        with self._lock:
            if not self._monitoring or run != self._run:
                LOGGER.debug("Observation from a finished run dropped")
                return
            self.rate.add_observation(
                observation.word_count, observation.duration_seconds, observation.timestamp
            )
            self.sessions.add_data_point(self.rate.current_wpm, observation.timestamp)


__all__ = ["SpeakingMonitor"]
