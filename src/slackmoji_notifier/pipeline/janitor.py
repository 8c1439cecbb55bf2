"""Background sweep that keeps time-bounded bookkeeping from growing forever."""

import threading
from datetime import timedelta
from typing import Callable, Optional
from ..log import get_logger

logger = get_logger("janitor")


class AgingJanitor:
    def __init__(self, sweep: Callable[[], int], interval: timedelta, name: str = "aging-janitor"):
        self.sweep = sweep
        self.interval = interval
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"Janitor started, sweeping every {self.interval.total_seconds():.0f}s")

    def _run(self):
        while not self._stop.wait(self.interval.total_seconds()):
            self.run_once()

    def run_once(self) -> int:
        try:
            return self.sweep()
        except Exception:
            logger.exception("Janitor sweep failed")
            return 0

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            logger.debug("Janitor stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
