"""Repeating timer thread with cancel-and-join semantics."""

from __future__ import annotations

import logging
import threading
from typing import Callable

LOGGER = logging.getLogger("slowdown.timer")


class RepeatingTimer:
    """Calls ``callback`` every ``interval`` seconds until cancelled.

    ``cancel()`` waits for the worker thread to exit, so no tick can fire
    after it returns (unless it is called from inside the callback itself).
    """

    def __init__(self, interval: float, callback: Callable[[], None], *, name: str = "slowdown-timer") -> None:
        self.interval = float(interval)
        self.callback = callback
        self.name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join()
        self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.callback()
            except Exception:
                LOGGER.exception("Timer callback failed")


__all__ = ["RepeatingTimer"]
