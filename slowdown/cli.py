"""Command-line front end for monitoring and session history."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

from .alerts import AlertManager
from .audio.devices import SoundDeviceRegistry
from .audio.inputs import AudioInputError, FileInput
from .audio.types import AudioSource
from .config import AppConfig, get_config
from .metrics import serve_metrics
from .monitor import SpeakingMonitor
from .services.logger import LogBuffer, configure_logging
from .speech.transcriber import WhisperTranscriber
from .store.models import Session
from .store.session_store import SessionRecorder
from .store.settings_store import SettingsStore, UserSettings
from .wpm.types import RateStatus, RateUpdate

LOGGER = logging.getLogger("slowdown.cli")

STATUS_LABELS = {
    RateStatus.IDLE: "listening",
    RateStatus.GOOD: "good",
    RateStatus.WARNING: "near limit",
    RateStatus.TOO_FAST: "TOO FAST",
}

# Commands whose console output scrolls; warnings are repeated when they exit.
LIVE_COMMANDS = {"monitor", "replay"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="slowdown", description="Live speaking-rate monitor")
    parser.add_argument("--data-dir", type=Path, help="Override the data directory")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    monitor = sub.add_parser("monitor", help="Monitor live audio")
    monitor.add_argument("--source", choices=[s.value for s in AudioSource], help="Audio source")
    monitor.add_argument("--device", help="Input device name for this run (not saved)")
    monitor.add_argument("--duration", type=float, help="Stop after this many seconds")
    monitor.add_argument("--metrics-port", type=int, help="Expose Prometheus metrics on this port")

    replay = sub.add_parser("replay", help="Run an audio file through the pipeline")
    replay.add_argument("path", type=Path)

    history = sub.add_parser("history", help="List recorded sessions")
    history.add_argument("--source", choices=[s.value for s in AudioSource])

    sub.add_parser("stats", help="Show aggregate statistics")

    delete = sub.add_parser("delete", help="Delete a session by id (or id prefix)")
    delete.add_argument("session_id")

    clear = sub.add_parser("clear", help="Delete all sessions")
    clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    sub.add_parser("devices", help="List audio input devices")

    config = sub.add_parser("config", help="Show or change settings")
    config.add_argument("assignments", nargs="*", metavar="KEY=VALUE")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = get_config()
    if args.data_dir:
        config = config.model_copy(update={"data_dir": str(args.data_dir)})
    buffer = LogBuffer(config.log_history, level=logging.WARNING)
    logger = configure_logging(args.log_level, buffer)
    handler = _COMMANDS[args.command]
    try:
        return handler(args, config)
    finally:
        logger.removeHandler(buffer)
        if args.command in LIVE_COMMANDS:
            _print_log_tail(buffer)


def _settings(config: AppConfig) -> SettingsStore:
    return SettingsStore(config.settings_path)


def _sessions(config: AppConfig) -> SessionRecorder:
    return SessionRecorder(config.sessions_path, limit=config.history_limit)


def _print_update(update: RateUpdate) -> None:
    label = STATUS_LABELS[update.status]
    print(f"{update.wpm:>4} WPM  {label}", flush=True)


def _build_monitor(config: AppConfig, device_name: Optional[str] = None) -> Optional[SpeakingMonitor]:
    transcriber = WhisperTranscriber(config)
    if not transcriber.available:
        print("faster-whisper is not installed; install slowdown[whisper]", file=sys.stderr)
        return None
    monitor = SpeakingMonitor(
        config=config,
        settings=_settings(config),
        transcriber=transcriber,
        sessions=_sessions(config),
        device_name=device_name,
    )
    monitor.rate.subscribe(_print_update)
    AlertManager(
        monitor.rate,
        settings=monitor.settings.get,
        cooldown_seconds=config.alert_cooldown_seconds,
        on_alert=lambda update: print(f"Slow down! {update.wpm} WPM", flush=True),
    )
    return monitor


def cmd_monitor(args, config: AppConfig) -> int:
    port = args.metrics_port or config.metrics_port
    if port:
        serve_metrics(port)
        LOGGER.info("Serving metrics on port %d", port)
    monitor = _build_monitor(config, device_name=args.device)
    if monitor is None:
        return 2
    ended: List[Session] = []
    monitor.sessions.subscribe(lambda event: event.kind == "ended" and ended.append(event.session))
    if not monitor.start(args.source):
        monitor.close()
        return 1
    deadline = time.monotonic() + args.duration if args.duration else None
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        pass
    finally:
        monitor.close()
    _print_session(ended)
    return 0


def cmd_replay(args, config: AppConfig) -> int:
    monitor = _build_monitor(config)
    if monitor is None:
        return 2
    ended: List[Session] = []
    monitor.sessions.subscribe(lambda event: event.kind == "ended" and ended.append(event.session))
    finished = threading.Event()
    try:
        audio_input = FileInput(args.path, block_size=config.block_size, on_finished=finished.set)
    except AudioInputError as exc:
        LOGGER.error("%s", exc)
        monitor.close()
        return 1
    if not monitor.start(audio_input=audio_input):
        monitor.close()
        return 1
    try:
        finished.wait()
        # Let the final tick flush the tail and pending transcriptions land.
        time.sleep(config.chunk_seconds)
        drain_deadline = time.monotonic() + 60.0
        while monitor.chunker.in_flight and time.monotonic() < drain_deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        pass
    finally:
        monitor.close()
    _print_session(ended)
    return 0


def cmd_history(args, config: AppConfig) -> int:
    source = AudioSource(args.source) if args.source else None
    sessions = sorted(_sessions(config).sessions_filtered(source), key=lambda s: s.start_time, reverse=True)
    if not sessions:
        print("No sessions recorded yet")
        return 0
    _print_session(sessions)
    return 0


def cmd_stats(args, config: AppConfig) -> int:  # noqa: ARG001
    recorder = _sessions(config)
    print(f"Sessions:        {recorder.total_sessions}")
    print(f"Speaking time:   {format_duration(recorder.total_speaking_time)}")
    print(f"Average WPM:     {recorder.overall_average_wpm}")
    return 0


def cmd_delete(args, config: AppConfig) -> int:
    recorder = _sessions(config)
    matches = [s for s in recorder.sessions if str(s.id).startswith(args.session_id)]
    if len(matches) != 1:
        print(f"{len(matches)} session(s) match '{args.session_id}'", file=sys.stderr)
        return 1
    recorder.delete_session(matches[0].id)
    print(f"Deleted {matches[0].id}")
    return 0


def cmd_clear(args, config: AppConfig) -> int:
    if not args.yes:
        answer = input("Delete all sessions? [y/N] ").strip().lower()
        if answer not in {"y", "yes"}:
            return 1
    _sessions(config).clear_all()
    print("History cleared")
    return 0


def cmd_devices(args, config: AppConfig) -> int:  # noqa: ARG001
    registry = SoundDeviceRegistry()
    default = registry.default_input_device()
    devices = registry.list_input_devices()
    if not devices:
        print("No input devices found")
        return 1
    for device in devices:
        marker = "*" if default and device.id == default.id else " "
        kind = " (loopback)" if device.is_loopback else ""
        print(f"{marker} [{device.id}] {device.name}{kind}")
    return 0


def cmd_config(args, config: AppConfig) -> int:
    store = _settings(config)
    if args.assignments:
        updates = {}
        for assignment in args.assignments:
            key, sep, value = assignment.partition("=")
            if not sep or key not in UserSettings.__dataclass_fields__:
                print(f"Unknown setting '{assignment}'", file=sys.stderr)
                return 1
            updates[key] = value
        store.update(**updates)
    current = store.get()
    for key in UserSettings.__dataclass_fields__:
        print(f"{key} = {getattr(current, key)}")
    return 0


def format_duration(seconds: float) -> str:
    seconds = int(max(0, seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _print_log_tail(buffer: LogBuffer) -> None:
    lines = buffer.get()
    if not lines:
        return
    print("Warnings during this run:", file=sys.stderr)
    for line in lines:
        print(f"  {line}", file=sys.stderr)


def _print_session(sessions: List[Session]) -> None:
    for session in sessions:
        started = session.start_time.astimezone().strftime("%Y-%m-%d %H:%M")
        print(
            f"{str(session.id)[:8]}  {started}  {session.audio_source.label:<12}  "
            f"{format_duration(session.duration):>8}  avg {session.average_wpm:>3}  "
            f"min {session.min_wpm:>3}  max {session.max_wpm:>3}"
        )


_COMMANDS = {
    "monitor": cmd_monitor,
    "replay": cmd_replay,
    "history": cmd_history,
    "stats": cmd_stats,
    "delete": cmd_delete,
    "clear": cmd_clear,
    "devices": cmd_devices,
    "config": cmd_config,
}


if __name__ == "__main__":
    raise SystemExit(main())
