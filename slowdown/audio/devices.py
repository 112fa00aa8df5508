"""Input device enumeration behind an injectable registry."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

LOGGER = logging.getLogger("slowdown.devices")

# Name fragments that identify loopback/monitor inputs carrying system output.
LOOPBACK_HINTS = ("monitor", "loopback", "stereo mix", "blackhole", "soundflower")


@dataclass(slots=True, frozen=True)
class AudioDevice:
    id: int
    name: str
    uid: str
    channels: int = 1
    default_sample_rate: float = 0.0

    @property
    def is_loopback(self) -> bool:
        lowered = self.name.lower()
        return any(hint in lowered for hint in LOOPBACK_HINTS)


class DeviceRegistry(ABC):
    @abstractmethod
    def list_input_devices(self) -> List[AudioDevice]:
        ...

    @abstractmethod
    def default_input_device(self) -> Optional[AudioDevice]:
        ...

    @abstractmethod
    def set_default_input_device(self, device: AudioDevice) -> bool:
        ...

    def find(self, name_or_uid: str) -> Optional[AudioDevice]:
        needle = name_or_uid.strip().lower()
        if not needle:
            return None
        devices = self.list_input_devices()
        for device in devices:
            if device.uid.lower() == needle or device.name.lower() == needle:
                return device
        for device in devices:
            if needle in device.name.lower():
                return device
        return None

    def loopback_device(self) -> Optional[AudioDevice]:
        for device in self.list_input_devices():
            if device.is_loopback:
                return device
        return None


class SoundDeviceRegistry(DeviceRegistry):
    """PortAudio devices as reported by ``sounddevice``."""

    def __init__(self) -> None:
        self._sd = self._try_import_sounddevice()

    def _try_import_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception as exc:  # PortAudio missing raises OSError at import
            LOGGER.warning("sounddevice unavailable: %s", exc)
            return None

    def list_input_devices(self) -> List[AudioDevice]:
        if not self._sd:
            return []
        try:
            raw_devices = self._sd.query_devices()
        except Exception as exc:
            LOGGER.warning("Device query failed: %s", exc)
            return []
        devices: List[AudioDevice] = []
        for index, info in enumerate(raw_devices):
            channels = int(info.get("max_input_channels", 0))
            if channels <= 0:
                continue
            devices.append(self._to_device(index, info))
        return devices

    def default_input_device(self) -> Optional[AudioDevice]:
        if not self._sd:
            return None
        try:
            info = self._sd.query_devices(kind="input")
        except Exception as exc:
            LOGGER.debug("No default input device: %s", exc)
            return None
        index = int(info.get("index", self._default_index()))
        return self._to_device(index, info)

    def set_default_input_device(self, device: AudioDevice) -> bool:
        if not self._sd:
            return False
        if device.id not in {known.id for known in self.list_input_devices()}:
            return False
        output = self._sd.default.device[1]
        self._sd.default.device = (device.id, output)
        LOGGER.info("Default input device set to %s", device.name)
        return True

    def _default_index(self) -> int:
        return int(self._sd.default.device[0])

    def _to_device(self, index: int, info) -> AudioDevice:
        name = str(info.get("name", f"Device {index}"))
        host = info.get("hostapi", 0)
        return AudioDevice(
            id=index,
            name=name,
            uid=f"{host}:{name}",
            channels=int(info.get("max_input_channels", 1)),
            default_sample_rate=float(info.get("default_samplerate", 0.0)),
        )


__all__ = ["AudioDevice", "DeviceRegistry", "SoundDeviceRegistry"]
