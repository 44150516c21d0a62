"""Periodic execution of monitor checks.

Runs one check right away, then one every ``interval`` seconds until
stopped. Checks run on the caller's thread, so two checks never overlap.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

logger = logging.getLogger(__name__)


class Scheduler:
    def __init__(self, job: Callable[[], object], interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._job = job
        self.interval = interval  # seconds
        self._stop = threading.Event()
        self.runs = 0

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def next_run_at(self) -> datetime:
        return datetime.now() + timedelta(seconds=self.interval)

    def run_once(self) -> None:
        """Run the job, logging instead of propagating any failure."""
        self.runs += 1
        try:
            self._job()
        except Exception:
            logger.exception("Error during monitor check")

    def start(self) -> None:
        """Block, running the job every interval until stop() is called."""
        self._stop.clear()
        logger.info("Starting scheduled monitoring (every %s seconds)", self.interval)
        while not self._stop.is_set():
            self.run_once()
            if self._stop.is_set():
                break
            logger.info("Next check will run at %s", self.next_run_at().strftime("%Y-%m-%d %H:%M:%S"))
            self._stop.wait(self.interval)
        logger.info("Scheduled monitoring stopped")

    def stop(self) -> None:
        self._stop.set()
