import json

from slowdown import cli
from slowdown.audio.types import AudioSource
from slowdown.store.session_store import SessionRecorder


def _run(tmp_path, *argv):
    return cli.main(["--data-dir", str(tmp_path), "--log-level", "WARNING", *argv])


def _seed(tmp_path, clock, wpms_per_session):
    recorder = SessionRecorder(tmp_path / "sessions.json", clock=clock)
    sessions = []
    for source, wpms in wpms_per_session:
        recorder.start_session(source)
        for wpm in wpms:
            clock.advance(10)
            recorder.add_data_point(wpm)
        sessions.append(recorder.end_session())
    return sessions


def test_config_clamps_and_persists(tmp_path, capsys):
    assert _run(tmp_path, "config", "wpm_threshold=400", "alert_sound_enabled=false") == 0
    out = capsys.readouterr().out
    assert "wpm_threshold = 250" in out
    assert "alert_sound_enabled = False" in out
    saved = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert saved["wpm_threshold"] == 250


def test_config_rejects_unknown_keys(tmp_path, capsys):
    assert _run(tmp_path, "config", "volume=11") == 1
    assert "Unknown setting" in capsys.readouterr().err


def test_history_when_empty(tmp_path, capsys):
    assert _run(tmp_path, "history") == 0
    assert "No sessions recorded yet" in capsys.readouterr().out


def test_history_filters_by_source(tmp_path, clock, capsys):
    mic, system = _seed(tmp_path, clock, [(AudioSource.MICROPHONE, [120]), (AudioSource.SYSTEM_AUDIO, [150])])
    assert _run(tmp_path, "history", "--source", "systemAudio") == 0
    out = capsys.readouterr().out
    assert str(system.id)[:8] in out
    assert str(mic.id)[:8] not in out
    assert "System Audio" in out


def test_stats_report_totals(tmp_path, clock, capsys):
    _seed(tmp_path, clock, [(AudioSource.MICROPHONE, [100, 100]), (AudioSource.MICROPHONE, [200])])
    assert _run(tmp_path, "stats") == 0
    out = capsys.readouterr().out
    assert "Sessions:        2" in out
    assert "Speaking time:   30s" in out
    assert "Average WPM:     150" in out


def test_delete_by_prefix(tmp_path, clock, capsys):
    first, second = _seed(tmp_path, clock, [(AudioSource.MICROPHONE, [100]), (AudioSource.MICROPHONE, [110])])
    assert _run(tmp_path, "delete", str(first.id)[:8]) == 0
    assert f"Deleted {first.id}" in capsys.readouterr().out
    remaining = SessionRecorder(tmp_path / "sessions.json", clock=clock).sessions
    assert [s.id for s in remaining] == [second.id]

    assert _run(tmp_path, "delete", "zzzz") == 1
    assert "0 session(s) match" in capsys.readouterr().err


def test_clear_with_yes(tmp_path, clock, capsys):
    _seed(tmp_path, clock, [(AudioSource.MICROPHONE, [100])])
    assert _run(tmp_path, "clear", "--yes") == 0
    assert "History cleared" in capsys.readouterr().out
    assert SessionRecorder(tmp_path / "sessions.json", clock=clock).sessions == []


def test_format_duration():
    assert cli.format_duration(-3) == "0s"
    assert cli.format_duration(59) == "59s"
    assert cli.format_duration(61) == "1m 1s"
    assert cli.format_duration(3725) == "1h 2m"


def _ready_transcriber(monkeypatch, scripted_transcriber):
    transcriber = scripted_transcriber()
    transcriber.available = True
    monkeypatch.setattr(cli, "WhisperTranscriber", lambda config: transcriber)
    return transcriber


def test_replay_failure_repeats_warnings_on_exit(tmp_path, capsys, monkeypatch, scripted_transcriber):
    _ready_transcriber(monkeypatch, scripted_transcriber)
    assert _run(tmp_path, "replay", str(tmp_path / "missing.wav")) == 1
    err = capsys.readouterr().err
    assert "Warnings during this run:" in err
    assert "missing.wav" in err.split("Warnings during this run:", 1)[1]


def test_short_commands_do_not_repeat_warnings(tmp_path, capsys):
    (tmp_path / "sessions.json").write_text("{broken", encoding="utf-8")
    assert _run(tmp_path, "stats") == 0
    assert "Warnings during this run:" not in capsys.readouterr().err


def test_monitor_device_flag_is_not_saved(tmp_path, monkeypatch, scripted_transcriber):
    _ready_transcriber(monkeypatch, scripted_transcriber)
    config = cli.get_config().model_copy(update={"data_dir": str(tmp_path)})
    monitor = cli._build_monitor(config, device_name="USB Mic")
    try:
        assert monitor.device_name == "USB Mic"
        assert monitor.settings.get().input_device is None
    finally:
        monitor.close()
    assert not (tmp_path / "settings.json").exists()
