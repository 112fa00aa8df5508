"""Audio sources feeding sample blocks into the pipeline."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

import numpy as np
import soundfile as sf

from .devices import AudioDevice, DeviceRegistry
from .types import AudioSource

LOGGER = logging.getLogger("slowdown.audio")

BlockCallback = Callable[[np.ndarray], None]


class AudioInputError(Exception):
    pass


class AudioInput(ABC):
    source: AudioSource = AudioSource.MICROPHONE
    sample_rate: int = 16_000

    @abstractmethod
    def start(self, on_block: BlockCallback) -> None:
        """Begin delivering blocks; raise ``AudioInputError`` if capture cannot start."""

    @abstractmethod
    def stop(self) -> None:
        ...

    @property
    @abstractmethod
    def running(self) -> bool:
        ...


class SoundDeviceInput(AudioInput):
    """Live capture through a PortAudio input stream."""

    def __init__(
        self,
        *,
        sample_rate: int,
        block_size: int,
        device: Optional[AudioDevice] = None,
        source: AudioSource = AudioSource.MICROPHONE,
    ) -> None:
        self.sample_rate = int(sample_rate)
        self.block_size = int(block_size)
        self.device = device
        self.source = source
        self._stream = None

    @property
    def running(self) -> bool:
        return self._stream is not None

    def start(self, on_block: BlockCallback) -> None:
        if self._stream is not None:
            return
        sd = self._import_sounddevice()

        def _callback(indata, frames, time_info, status):  # noqa: ARG001
            if status:
                LOGGER.debug("Input stream status: %s", status)
            on_block(indata.copy())

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                channels=1,
                dtype="float32",
                device=self.device.id if self.device else None,
                callback=_callback,
            )
            stream.start()
        except Exception as exc:
            raise AudioInputError(f"Could not open {self.source.label.lower()} input: {exc}") from exc
        self._stream = stream
        name = self.device.name if self.device else "default device"
        LOGGER.info("Capture started from %s (%s)", self.source.label, name)

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            LOGGER.warning("Error closing input stream: %s", exc)
        LOGGER.info("Capture stopped")

    def _import_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore
        except Exception as exc:
            raise AudioInputError(f"sounddevice unavailable: {exc}") from exc
        return sd


class FileInput(AudioInput):
    """Replays an audio file as if it were captured live."""

    def __init__(
        self,
        path: Path,
        *,
        block_size: int,
        realtime: bool = True,
        on_finished: Optional[Callable[[], None]] = None,
    ) -> None:
        self.path = Path(path)
        self.block_size = int(block_size)
        self.realtime = realtime
        self.on_finished = on_finished
        self.source = AudioSource.MICROPHONE
        try:
            info = sf.info(str(self.path))
        except Exception as exc:
            raise AudioInputError(f"Cannot read {self.path}: {exc}") from exc
        self.sample_rate = int(info.samplerate)
        self.duration = float(info.duration)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self, on_block: BlockCallback) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, args=(on_block,), name="slowdown-replay", daemon=True)
        self._thread.start()
        LOGGER.info("Replaying %s (%.1fs)", self.path.name, self.duration)

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=2)
        self._thread = None

    def _run(self, on_block: BlockCallback) -> None:
        pause = self.block_size / float(self.sample_rate) if self.realtime else 0.0
        try:
            for block in sf.blocks(str(self.path), blocksize=self.block_size, dtype="float32", always_2d=True):
                if self._stop.is_set():
                    return
                on_block(block)
                if pause:
                    self._stop.wait(pause)
        except Exception as exc:
            LOGGER.error("Replay of %s failed: %s", self.path.name, exc)
        if not self._stop.is_set() and self.on_finished:
            self.on_finished()


def open_input(
    source: AudioSource,
    registry: DeviceRegistry,
    *,
    sample_rate: int,
    block_size: int,
    device_name: Optional[str] = None,
) -> AudioInput:
    device = registry.find(device_name) if device_name else None
    if device_name and device is None:
        LOGGER.warning("Input device '%s' not found, using default", device_name)
    if source is AudioSource.SYSTEM_AUDIO and device is None:
        device = registry.loopback_device()
        if device is None:
            raise AudioInputError("No loopback/monitor input available for system audio")
    return SoundDeviceInput(sample_rate=sample_rate, block_size=block_size, device=device, source=source)


__all__ = [
    "AudioInput",
    "AudioInputError",
    "FileInput",
    "SoundDeviceInput",
    "open_input",
]
