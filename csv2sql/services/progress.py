from __future__ import annotations

import logging
import sys
import threading
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from csv2sql.services.governor import ConnectionGovernor

"""Periodic status display.

- TTY: a single tqdm bar (unit=batch) with the in-flight connection count as postfix
- non-TTY (CI, redirected output): a plain log line every interval

    INFO Status: 120 insertions, 4 database connections

Counters are read from the governor without locking; the figures are advisory.
"""

__all__ = [
    "StatusReporter",
    "is_tty_enabled",
]

logger = logging.getLogger(__name__)


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and a progress bar should be displayed."""
    return sys.stdout.isatty()


class StatusReporter:
    """Background thread printing the governor's counters every ``interval`` seconds."""

    def __init__(self, governor: ConnectionGovernor, *, interval: float = 1.0, description: str = "Inserting") -> None:
        self.governor = governor
        self.interval = interval
        self.description = description
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=None,
                desc=description,
                unit="batch",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start(self) -> None:
        if self._thread is not None or self.interval <= 0:
            return
        self._thread = threading.Thread(target=self._run, name="csv2sql-status", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.report()

    def report(self) -> None:
        counters = self.governor.snapshot()
        if self.enabled and self.pbar is not None:
            self.pbar.update(counters.completed - self.pbar.n)
            self.pbar.set_postfix(conns=counters.held, failed=counters.failed)
        else:
            logger.info(f"Status: {counters.completed} insertions, {counters.held} database connections")

    def close(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self.enabled and self.pbar is not None:
            counters = self.governor.snapshot()
            self.pbar.update(counters.completed - self.pbar.n)
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> StatusReporter:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
