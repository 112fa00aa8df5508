"""Logging setup plus a bounded in-memory tail for status displays."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import List

ROOT_LOGGER = "slowdown"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class LogBuffer(logging.Handler):
    """Keeps the most recent formatted log lines."""

    def __init__(self, capacity: int = 200, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._lines: deque[str] = deque(maxlen=max(1, int(capacity)))
        self._lines_lock = threading.Lock()
        self.setFormatter(logging.Formatter("%(asctime)s %(message)s", datefmt="%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:  # pragma: no cover - mirrors logging.Handler.handleError
            self.handleError(record)
            return
        with self._lines_lock:
            self._lines.append(line)

    def add(self, message: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        with self._lines_lock:
            self._lines.append(f"{stamp} {message}")

    def get(self) -> List[str]:
        with self._lines_lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lines_lock:
            self._lines.clear()


def configure_logging(level: int | str = logging.INFO, buffer: LogBuffer | None = None) -> logging.Logger:
    """Attach a stderr handler (and optional buffer) to the package logger."""

    logger = logging.getLogger(ROOT_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)
    if not any(getattr(handler, "_slowdown_console", False) for handler in logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        console._slowdown_console = True  # type: ignore[attr-defined]
        logger.addHandler(console)
    if buffer is not None and buffer not in logger.handlers:
        logger.addHandler(buffer)
    return logger


__all__ = ["LogBuffer", "configure_logging", "ROOT_LOGGER"]
