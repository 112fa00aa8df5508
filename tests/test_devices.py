from types import SimpleNamespace

from slowdown.audio import devices as dev_mod
from slowdown.audio.devices import SoundDeviceRegistry


class FakeSoundDevice:
    def __init__(self):
        self.default = SimpleNamespace(device=(1, 3))
        self._devices = [
            {"name": "HDMI Output", "hostapi": 0, "max_input_channels": 0, "default_samplerate": 48000.0},
            {"name": "Built-in Microphone", "hostapi": 0, "max_input_channels": 1, "default_samplerate": 44100.0},
            {"name": "Monitor of Built-in Audio", "hostapi": 0, "max_input_channels": 2, "default_samplerate": 48000.0},
            {"name": "Speakers", "hostapi": 0, "max_input_channels": 0, "default_samplerate": 48000.0},
        ]

    def query_devices(self, kind=None):
        if kind == "input":
            index = self.default.device[0]
            return dict(self._devices[index], index=index)
        return self._devices


def _registry(monkeypatch, fake):
    monkeypatch.setattr(dev_mod.SoundDeviceRegistry, "_try_import_sounddevice", lambda self: fake)
    return SoundDeviceRegistry()


def test_lists_only_input_devices(monkeypatch):
    registry = _registry(monkeypatch, FakeSoundDevice())
    names = [device.name for device in registry.list_input_devices()]
    assert names == ["Built-in Microphone", "Monitor of Built-in Audio"]


def test_default_and_loopback_devices(monkeypatch):
    registry = _registry(monkeypatch, FakeSoundDevice())
    default = registry.default_input_device()
    assert default.name == "Built-in Microphone"
    assert not default.is_loopback
    assert registry.loopback_device().name == "Monitor of Built-in Audio"


def test_find_matches_name_uid_or_fragment(monkeypatch):
    registry = _registry(monkeypatch, FakeSoundDevice())
    assert registry.find("built-in microphone").id == 1
    assert registry.find("0:Monitor of Built-in Audio").id == 2
    assert registry.find("monitor").id == 2
    assert registry.find("usb") is None


def test_set_default_input_device(monkeypatch):
    fake = FakeSoundDevice()
    registry = _registry(monkeypatch, fake)
    monitor = registry.find("monitor")
    assert registry.set_default_input_device(monitor) is True
    assert fake.default.device == (2, 3)

    output_only = dev_mod.AudioDevice(id=3, name="Speakers", uid="0:Speakers")
    assert registry.set_default_input_device(output_only) is False


def test_missing_backend_reports_nothing(monkeypatch):
    registry = _registry(monkeypatch, None)
    assert registry.list_input_devices() == []
    assert registry.default_input_device() is None
    assert registry.loopback_device() is None
