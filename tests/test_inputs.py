import threading

import numpy as np
import pytest
import soundfile as sf

from slowdown.audio.devices import AudioDevice, DeviceRegistry
from slowdown.audio.inputs import AudioInputError, FileInput, SoundDeviceInput, open_input
from slowdown.audio.types import AudioSource


class StaticRegistry(DeviceRegistry):
    def __init__(self, devices):
        self.devices = devices

    def list_input_devices(self):
        return list(self.devices)

    def default_input_device(self):
        return self.devices[0] if self.devices else None

    def set_default_input_device(self, device):
        return False


def test_file_input_delivers_every_frame(tmp_path):
    path = tmp_path / "talk.wav"
    audio = (np.sin(np.linspace(0, 200, 8000)) * 0.3).astype(np.float32)
    sf.write(str(path), audio, 8000)

    finished = threading.Event()
    received = []
    source = FileInput(path, block_size=1000, realtime=False, on_finished=finished.set)
    assert source.sample_rate == 8000
    assert source.duration == pytest.approx(1.0)

    source.start(received.append)
    assert finished.wait(timeout=5)
    source.stop()
    assert sum(block.shape[0] for block in received) == 8000
    assert not source.running


def test_file_input_rejects_unreadable_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("not audio", encoding="utf-8")
    with pytest.raises(AudioInputError):
        FileInput(path, block_size=1000)


def test_open_input_picks_named_device():
    registry = StaticRegistry([AudioDevice(id=4, name="USB Mic", uid="0:USB Mic")])
    audio_input = open_input(
        AudioSource.MICROPHONE, registry, sample_rate=16000, block_size=1600, device_name="usb mic"
    )
    assert isinstance(audio_input, SoundDeviceInput)
    assert audio_input.device.id == 4
    assert audio_input.source is AudioSource.MICROPHONE


def test_system_audio_uses_loopback_device():
    registry = StaticRegistry(
        [
            AudioDevice(id=1, name="Built-in Mic", uid="0:Built-in Mic"),
            AudioDevice(id=2, name="Monitor of Speakers", uid="0:Monitor of Speakers"),
        ]
    )
    audio_input = open_input(AudioSource.SYSTEM_AUDIO, registry, sample_rate=16000, block_size=1600)
    assert audio_input.device.id == 2
    assert audio_input.source is AudioSource.SYSTEM_AUDIO


def test_system_audio_without_loopback_fails():
    registry = StaticRegistry([AudioDevice(id=1, name="Built-in Mic", uid="0:Built-in Mic")])
    with pytest.raises(AudioInputError):
        open_input(AudioSource.SYSTEM_AUDIO, registry, sample_rate=16000, block_size=1600)
